from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "GPAT_HOME"
APP_ENV_DB = "GPAT_DB"
APP_ENV_TYPES = "GPAT_TYPES_FILE"


def app_home() -> Path:
    """
    User-writable home for the registry.
    Override with GPAT_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".gpat").resolve()


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    """
    Canonical DB path.

    Resolution order:
    1. GPAT_DB env var (explicit override)
    2. ~/.gpat/data/gpat.db (default)
    """
    if os.environ.get(APP_ENV_DB):
        return Path(os.environ[APP_ENV_DB]).expanduser().resolve()
    return data_dir() / "gpat.db"


def types_path() -> Path:
    """
    Type-tag table (actortypes / measuretypes).

    GPAT_TYPES_FILE overrides the copy shipped with the package.
    """
    if os.environ.get(APP_ENV_TYPES):
        return Path(os.environ[APP_ENV_TYPES]).expanduser().resolve()
    return Path(__file__).parent / "data" / "types.yaml"
