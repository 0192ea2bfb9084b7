"""
Test configuration: repo root on sys.path, live-DB guard and shared fixtures.

Every test runs with GPAT_HOME pointed at a temp directory, and any
sqlite3.connect to the live registry DB raises.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import gpat.* and tests.fixtures
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from gpat.security.roles import Identity, Role  # noqa: E402
from gpat.service import RegistryService  # noqa: E402
from gpat.type_registry import TypeRegistry, get_type_registry  # noqa: E402
from tests.fixtures import RecordingBroker, create_fixture_db, guard_no_live_db  # noqa: E402

# =============================================================================
# DETERMINISM GUARD: Block live database access
# =============================================================================

_original_sqlite_connect = sqlite3.connect


def _guarded_sqlite_connect(database, *args, **kwargs):
    """Intercept sqlite3.connect to block live DB access."""
    guard_no_live_db(database)
    return _original_sqlite_connect(database, *args, **kwargs)


@pytest.fixture(autouse=True)
def guard_live_db_access(monkeypatch, tmp_path):
    """Isolate every test from the operator's registry."""
    monkeypatch.setattr(sqlite3, "connect", _guarded_sqlite_connect)
    monkeypatch.setenv("GPAT_HOME", str(tmp_path / "gpat-home"))
    monkeypatch.delenv("GPAT_DB", raising=False)
    monkeypatch.delenv("GPAT_TYPES_FILE", raising=False)
    monkeypatch.delenv("TASK_NOTIFICATION_DELAY", raising=False)
    get_type_registry.cache_clear()
    yield
    get_type_registry.cache_clear()


# =============================================================================
# REGISTRY FIXTURES
# =============================================================================


@pytest.fixture
def types():
    """Type tags shipped with the package."""
    return TypeRegistry.load()


@pytest.fixture
def store(tmp_path):
    store = create_fixture_db(tmp_path / "registry.db")
    yield store
    store.close()


@pytest.fixture
def broker():
    return RecordingBroker()


@pytest.fixture
def service(store, types, broker):
    return RegistryService(store, types=types, broker=broker)


# =============================================================================
# IDENTITIES (user ids match tests/fixtures/fixture_db.py SEED_USERS)
# =============================================================================


@pytest.fixture
def admin():
    return Identity(user_id=1, roles=frozenset({Role.ADMIN}))


@pytest.fixture
def coordinator():
    return Identity(user_id=2, roles=frozenset({Role.COORDINATOR}))


@pytest.fixture
def manager():
    return Identity(user_id=3, roles=frozenset({Role.MANAGER}))


@pytest.fixture
def other_manager():
    return Identity(user_id=4, roles=frozenset({Role.MANAGER}))


@pytest.fixture
def analyst():
    return Identity(user_id=5, roles=frozenset({Role.ANALYST}))


@pytest.fixture
def guest():
    return Identity(user_id=6, roles=frozenset({Role.GUEST}))


@pytest.fixture
def anonymous():
    return Identity.anonymous()
