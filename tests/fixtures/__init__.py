"""
Test fixtures for deterministic testing.

This module provides:
- fixture_db: temp SQLite databases with pinned seed users
- seed helpers that bypass the service
- RecordingBroker: an in-memory job broker
"""

from .fixture_db import (
    COUNTRY,
    GROUP,
    ORGANISATION,
    CONTACT,
    EVENT,
    OPERATION,
    STATEMENT,
    TASK,
    RecordingBroker,
    add_actor,
    add_indicator,
    add_link,
    add_measure,
    create_fixture_db,
    guard_no_live_db,
)

__all__ = [
    "COUNTRY",
    "CONTACT",
    "EVENT",
    "GROUP",
    "OPERATION",
    "ORGANISATION",
    "STATEMENT",
    "TASK",
    "RecordingBroker",
    "add_actor",
    "add_indicator",
    "add_link",
    "add_measure",
    "create_fixture_db",
    "guard_no_live_db",
]
