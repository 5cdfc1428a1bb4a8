"""Durable storage for the pantry state snapshot.

A store persists exactly one serialized blob. Reading is forgiving: a missing
blob, unreadable medium or malformed JSON all produce the default state, and a
partially valid blob keeps every field and entry that still validates.
Writing is best effort: failures are logged and counted, never raised.
"""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ValidationError
from sqlalchemy import DateTime, Engine, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pantry.common import (
    DEFAULT_STATE_KEY,
    ServiceSettings,
    create_engine,
    get_session_factory,
    resolve_database_url,
    session_scope,
)

from .metrics import PANTRY_STATE_SAVE_SECONDS, PANTRY_STATE_STORE_FAILURES_TOTAL
from .models import (
    BarcodeCacheEntry,
    ClientRecord,
    InventoryItem,
    PantryState,
    Settings,
    Transaction,
    default_state,
    unique_strings,
)

logger = logging.getLogger(__name__)

_ENTRY_FIELDS: tuple[tuple[str, str, type[BaseModel]], ...] = (
    ("inventory", "inventory", InventoryItem),
    ("clients", "clients", ClientRecord),
    ("transactions", "transactions", Transaction),
)


def _parse_entries(key: str, value: Any, model: type[BaseModel]) -> tuple[Any, ...] | None:
    if not isinstance(value, list):
        logger.warning("Ignoring persisted %s: expected a list, got %s", key, type(value).__name__)
        return None
    entries = []
    for index, raw in enumerate(value):
        try:
            entries.append(model.model_validate(raw))
        except ValidationError as exc:
            logger.warning("Dropping malformed %s entry #%d: %s", key, index, exc.errors()[:1])
    return tuple(entries)


def _parse_barcode_cache(value: Any) -> dict[str, BarcodeCacheEntry] | None:
    if not isinstance(value, Mapping):
        logger.warning("Ignoring persisted barcodeCache: expected an object")
        return None
    cache: dict[str, BarcodeCacheEntry] = {}
    for barcode, raw in value.items():
        try:
            cache[str(barcode)] = BarcodeCacheEntry.model_validate(raw)
        except ValidationError:
            logger.warning("Dropping malformed barcode cache entry for %s", barcode)
    return cache


def parse_state(payload: Any) -> PantryState:
    """Build a state from a decoded blob, defaulting whatever is missing or invalid."""

    if not isinstance(payload, Mapping):
        logger.warning("Persisted state is not an object (%s); using defaults", type(payload).__name__)
        return default_state()

    updates: dict[str, Any] = {}
    for field_name, key, model in _ENTRY_FIELDS:
        if key in payload:
            entries = _parse_entries(key, payload[key], model)
            if entries is not None:
                updates[field_name] = entries

    if "settings" in payload:
        try:
            updates["settings"] = Settings.model_validate(payload["settings"])
        except ValidationError:
            logger.warning("Ignoring malformed persisted settings; using defaults")

    if "barcodeCache" in payload:
        cache = _parse_barcode_cache(payload["barcodeCache"])
        if cache is not None:
            updates["barcode_cache"] = cache

    for key in ("sources", "donors"):
        if key not in payload:
            continue
        if isinstance(payload[key], list):
            updates[key] = unique_strings(payload[key])
        else:
            logger.warning("Ignoring persisted %s: expected a list", key)

    return default_state().model_copy(update=updates)


def encode_state(state: PantryState) -> str:
    return json.dumps(state.to_payload(), separators=(",", ":"))


def decode_state(raw: str | bytes | None) -> PantryState:
    if raw is None:
        return default_state()
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8")
    if not raw.strip():
        return default_state()
    return parse_state(json.loads(raw))


class StateStore(Protocol):
    def load(self) -> PantryState:
        ...

    def save(self, state: PantryState) -> bool:
        ...


class _BlobStateStore(ABC):
    """Shared load/save policy; subclasses only move the serialized blob."""

    medium = "blob"

    def load(self) -> PantryState:
        try:
            return decode_state(self._read())
        except Exception as exc:
            PANTRY_STATE_STORE_FAILURES_TOTAL.labels(operation="load").inc()
            logger.warning("Could not load state from %s store; using defaults: %s", self.medium, exc)
            return default_state()

    def save(self, state: PantryState) -> bool:
        try:
            with PANTRY_STATE_SAVE_SECONDS.time():
                self._write(encode_state(state))
        except Exception as exc:
            PANTRY_STATE_STORE_FAILURES_TOTAL.labels(operation="save").inc()
            logger.warning("Could not save state to %s store; keeping it in memory only: %s", self.medium, exc)
            return False
        return True

    def close(self) -> None:
        return None

    @abstractmethod
    def _read(self) -> str | bytes | None:
        ...

    @abstractmethod
    def _write(self, payload: str) -> None:
        ...


class MemoryStateStore(_BlobStateStore):
    """Keeps the serialized blob in memory; used for tests and ephemeral runs."""

    medium = "memory"

    def __init__(self, payload: str | None = None) -> None:
        self.payload = payload

    def _read(self) -> str | None:
        return self.payload

    def _write(self, payload: str) -> None:
        self.payload = payload


class FileStateStore(_BlobStateStore):
    """Stores the blob as a JSON file, replaced atomically on every save."""

    medium = "file"

    def __init__(self, path: Path) -> None:
        self.path = path

    def _read(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_name(f"{self.path.name}.tmp")
        temp_path.write_text(payload, encoding="utf-8")
        os.replace(temp_path, self.path)


class Base(DeclarativeBase):
    """Base class for state store ORM models."""


class StateBlob(Base):
    __tablename__ = "pantry_state"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class DatabaseStateStore(_BlobStateStore):
    """Stores the blob in a single keyed row of the ``pantry_state`` table."""

    medium = "database"

    def __init__(self, database_url: str, *, key: str = DEFAULT_STATE_KEY) -> None:
        self.database_url = database_url
        self.key = key
        self._schema_engine: Engine | None = None

    def _session_factory(self):
        # Engines are rebuilt after dispose_engines(); an in-memory database
        # starts empty each time.
        engine = create_engine(self.database_url)
        if engine is not self._schema_engine:
            Base.metadata.create_all(engine)
            self._schema_engine = engine
        return get_session_factory(self.database_url)

    def _read(self) -> str | None:
        with session_scope(self._session_factory()) as session:
            row = session.get(StateBlob, self.key)
            return row.payload if row is not None else None

    def _write(self, payload: str) -> None:
        with session_scope(self._session_factory()) as session:
            session.merge(
                StateBlob(key=self.key, payload=payload, updated_at=datetime.now(timezone.utc))
            )


def build_state_store(settings: ServiceSettings) -> _BlobStateStore:
    """Pick the database store when a URL is configured, else the JSON file."""

    database_url = resolve_database_url(settings)
    if database_url:
        return DatabaseStateStore(database_url, key=settings.state_key)
    return FileStateStore(Path(settings.state_path))
