"""Shared utilities for the pantry tracker service."""

from .config import DEFAULT_APP_NAME, DEFAULT_STATE_KEY, ServiceSettings, get_settings
from .instrumentation import build_app, instrument_app
from .logging import configure_logging
from .database import (
    create_engine,
    dispose_engines,
    get_session_factory,
    resolve_database_url,
    session_scope,
)

__all__ = [
    "ServiceSettings",
    "get_settings",
    "build_app",
    "instrument_app",
    "configure_logging",
    "DEFAULT_APP_NAME",
    "DEFAULT_STATE_KEY",
    "create_engine",
    "dispose_engines",
    "get_session_factory",
    "resolve_database_url",
    "session_scope",
]
