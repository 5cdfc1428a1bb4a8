"""State repository for the pantry tracker.

``PantryRepository`` is the single owner of the pantry state. Each mutating
operation reads the current snapshot, builds a complete replacement snapshot,
installs it and then hands it to the store. Operations that reference missing
records, or that would not change anything, are skipped: they log the reason,
bump a counter and return ``None`` instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import wraps
from typing import Any, TypeVar
from uuid import uuid4

from opentelemetry import trace
from pydantic import BaseModel

from .metrics import (
    PANTRY_OPERATIONS_SKIPPED_TOTAL,
    PANTRY_TRANSACTIONS_RECORDED_TOTAL,
    PANTRY_UNITS_MOVED_TOTAL,
)
from .models import (
    BarcodeCacheEntry,
    BarcodeLookup,
    ClientPatch,
    ClientRecord,
    InboundRequest,
    InventoryItem,
    InventoryItemPatch,
    OutboundRequest,
    PantryState,
    Settings,
    SettingsPatch,
    Transaction,
    TransactionItem,
    normalize_barcode,
)
from .store import StateStore

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)

# Fields that always hold a value; an explicit None in a patch leaves them alone.
_ITEM_REQUIRED_FIELDS = frozenset({"name", "category", "quantity", "weight_per_unit_lbs", "value_per_unit_usd"})
_CLIENT_REQUIRED_FIELDS = frozenset({"name", "identifier"})

_F = TypeVar("_F", bound=Callable[..., Any])
_R = TypeVar("_R", InventoryItem, ClientRecord)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def _traced(func: _F) -> _F:
    span_name = f"pantry.{func.__name__}"

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        with _tracer.start_as_current_span(span_name):
            return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def _changes(patch: BaseModel, *, required: frozenset[str]) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    for name in patch.model_fields_set:
        if name == "id":
            continue
        value = getattr(patch, name)
        if value is None and name in required:
            continue
        changes[name] = value
    return changes


def _replace(entries: tuple[_R, ...], updated: _R) -> tuple[_R, ...]:
    return tuple(updated if entry.id == updated.id else entry for entry in entries)


def _find(entries: Iterable[_R], entry_id: str | None) -> _R | None:
    if not entry_id:
        return None
    return next((entry for entry in entries if entry.id == entry_id), None)


@dataclass(frozen=True, slots=True)
class OutboundResult:
    client: ClientRecord
    transaction: Transaction


class PantryRepository:
    """Owns inventory, clients, the ledger, settings, barcode cache and vocabularies."""

    def __init__(
        self,
        store: StateStore,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._store = store
        self._clock = clock
        self._id_factory = id_factory
        self._state = store.load()
        self._revision = 0

    @property
    def state(self) -> PantryState:
        return self._state

    @property
    def revision(self) -> int:
        """Number of mutations applied since this repository was created."""

        return self._revision

    @property
    def store(self) -> StateStore:
        return self._store

    def now(self) -> datetime:
        return self._clock()

    # -- queries -----------------------------------------------------------

    def get_item(self, item_id: str | None) -> InventoryItem | None:
        return _find(self._state.inventory, item_id)

    def find_item_by_barcode(self, barcode: str | None) -> InventoryItem | None:
        code = normalize_barcode(barcode)
        if code is None:
            return None
        return next((item for item in self._state.inventory if item.barcode == code), None)

    def resolve_inventory_item(
        self, *, item_id: str | None = None, barcode: str | None = None
    ) -> InventoryItem | None:
        """Return the item an upsert with this id/barcode would update."""

        return self.get_item(item_id) or self.find_item_by_barcode(barcode)

    def get_client(self, client_id: str | None) -> ClientRecord | None:
        return _find(self._state.clients, client_id)

    def find_client_by_identifier(self, identifier: str | None) -> ClientRecord | None:
        if not identifier:
            return None
        return next((client for client in self._state.clients if client.identifier == identifier), None)

    def resolve_client(
        self, *, client_id: str | None = None, identifier: str | None = None
    ) -> ClientRecord | None:
        """Return the client an upsert with this id/identifier would update."""

        return self.get_client(client_id) or self.find_client_by_identifier(identifier)

    def get_transaction(self, transaction_id: str | None) -> Transaction | None:
        if not transaction_id:
            return None
        return next((tx for tx in self._state.transactions if tx.id == transaction_id), None)

    # -- inventory ---------------------------------------------------------

    @_traced
    def upsert_inventory_item(self, patch: InventoryItemPatch) -> InventoryItem:
        """Update the item matching ``patch.id`` or ``patch.barcode``, else create one."""

        item, inventory = self._merge_item(patch, self._clock())
        self._commit(self._state.model_copy(update={"inventory": inventory}))
        return item

    @_traced
    def adjust_inventory_quantity(self, item_id: str, delta: int) -> InventoryItem | None:
        """Apply a manual stock correction; no ledger entry is written."""

        item = self.get_item(item_id)
        if item is None:
            return self._skip("adjust_inventory_quantity", "unknown_item", item_id=item_id)
        updated = item.model_copy(
            update={"quantity": max(0, item.quantity + delta), "updated_at": self._clock()}
        )
        self._commit(self._state.model_copy(update={"inventory": _replace(self._state.inventory, updated)}))
        return updated

    def _merge_item(
        self, patch: InventoryItemPatch, now: datetime
    ) -> tuple[InventoryItem, tuple[InventoryItem, ...]]:
        changes = _changes(patch, required=_ITEM_REQUIRED_FIELDS)
        if "barcode" in changes:
            changes["barcode"] = normalize_barcode(changes["barcode"])
        if "allergens" in changes and changes["allergens"] is None:
            changes["allergens"] = ()

        inventory = self._state.inventory
        existing = self.resolve_inventory_item(item_id=patch.id, barcode=patch.barcode)
        if existing is not None:
            owner = self.find_item_by_barcode(changes.get("barcode"))
            if owner is not None and owner.id != existing.id:
                logger.warning(
                    "Barcode %s already belongs to item %s; keeping the barcode of item %s",
                    owner.barcode,
                    owner.id,
                    existing.id,
                )
                PANTRY_OPERATIONS_SKIPPED_TOTAL.labels(
                    operation="upsert_inventory_item", reason="barcode_conflict"
                ).inc()
                changes.pop("barcode")
            updated = existing.model_copy(update={**changes, "updated_at": now})
            return updated, _replace(inventory, updated)

        if not patch.name:
            msg = "name is required to create an inventory item"
            raise ValueError(msg)
        created = InventoryItem(id=self._id_factory(), created_at=now, updated_at=now, **changes)
        logger.info("Created inventory item %s (%s)", created.id, created.name)
        return created, (*inventory, created)

    # -- clients -----------------------------------------------------------

    @_traced
    def upsert_client(self, patch: ClientPatch) -> ClientRecord:
        """Update the client matching ``patch.id`` or ``patch.identifier``, else create one."""

        client, clients = self._merge_client(patch, self._clock())
        self._commit(self._state.model_copy(update={"clients": clients}))
        return client

    def _merge_client(
        self, patch: ClientPatch, now: datetime
    ) -> tuple[ClientRecord, tuple[ClientRecord, ...]]:
        changes = _changes(patch, required=_CLIENT_REQUIRED_FIELDS)
        if "allergies" in changes and changes["allergies"] is None:
            changes["allergies"] = ()

        clients = self._state.clients
        existing = self.resolve_client(client_id=patch.id, identifier=patch.identifier)
        if existing is not None:
            owner = self.find_client_by_identifier(changes.get("identifier"))
            if owner is not None and owner.id != existing.id:
                logger.warning(
                    "Identifier %s already belongs to client %s; keeping the identifier of client %s",
                    owner.identifier,
                    owner.id,
                    existing.id,
                )
                PANTRY_OPERATIONS_SKIPPED_TOTAL.labels(
                    operation="upsert_client", reason="identifier_conflict"
                ).inc()
                changes.pop("identifier")
            updated = existing.model_copy(update={**changes, "updated_at": now})
            return updated, _replace(clients, updated)

        if not patch.name or not patch.identifier:
            msg = "name and identifier are required to create a client"
            raise ValueError(msg)
        created = ClientRecord(id=self._id_factory(), created_at=now, updated_at=now, **changes)
        logger.info("Created client %s (%s)", created.id, created.identifier)
        return created, (*clients, created)

    # -- ledger ------------------------------------------------------------

    @_traced
    def record_inbound(self, request: InboundRequest) -> Transaction | None:
        """Receive stock for one item and append an IN transaction."""

        if request.quantity <= 0:
            return self._skip("record_inbound", "non_positive_quantity", item_id=request.item_id)
        item = self.get_item(request.item_id)
        if item is None:
            return self._skip("record_inbound", "unknown_item", item_id=request.item_id)

        now = self._clock()
        received = item.model_copy(update={"quantity": item.quantity + request.quantity, "updated_at": now})
        transaction = Transaction(
            id=self._id_factory(),
            type="IN",
            timestamp=request.timestamp or now,
            items=(
                TransactionItem(
                    item_id=item.id,
                    name=item.name,
                    quantity=request.quantity,
                    weight_per_unit_lbs=item.weight_per_unit_lbs,
                    value_per_unit_usd=item.value_per_unit_usd,
                ),
            ),
            source=request.source,
            donor=request.donor,
            location=request.location,
        )
        self._commit(
            self._state.model_copy(
                update={
                    "inventory": _replace(self._state.inventory, received),
                    "transactions": (*self._state.transactions, transaction),
                }
            )
        )
        PANTRY_TRANSACTIONS_RECORDED_TOTAL.labels(type="IN").inc()
        PANTRY_UNITS_MOVED_TOTAL.labels(type="IN").inc(request.quantity)
        logger.info("Recorded check-in of %d x %s", request.quantity, item.name)
        return transaction

    @_traced
    def record_outbound(self, request: OutboundRequest) -> OutboundResult | None:
        """Distribute a cart to a client and append an OUT transaction.

        Lines for unknown items are dropped; with no valid line left nothing is
        written, not even the client. Quantities are clamped at zero here; the
        stock sufficiency policy belongs to ``CheckOutService``.
        """

        if not request.items:
            return self._skip("record_outbound", "empty_cart")

        lines: list[TransactionItem] = []
        for line in request.items:
            item = self.get_item(line.item_id)
            if item is None:
                logger.info("Dropping check-out line for unknown item %s", line.item_id)
                continue
            lines.append(
                TransactionItem(
                    item_id=item.id,
                    name=item.name,
                    quantity=line.quantity,
                    weight_per_unit_lbs=item.weight_per_unit_lbs,
                    value_per_unit_usd=item.value_per_unit_usd,
                )
            )
        if not lines:
            return self._skip("record_outbound", "no_valid_items")

        now = self._clock()
        client_patch = ClientPatch.model_validate(request.client.model_dump(exclude_unset=True))
        client, clients = self._merge_client(client_patch, now)

        remaining = {item.id: item.quantity for item in self._state.inventory}
        for line in lines:
            remaining[line.item_id] = max(0, remaining[line.item_id] - line.quantity)
        touched = {line.item_id for line in lines}
        inventory = tuple(
            item.model_copy(update={"quantity": remaining[item.id], "updated_at": now})
            if item.id in touched
            else item
            for item in self._state.inventory
        )

        transaction = Transaction(
            id=self._id_factory(),
            type="OUT",
            timestamp=request.timestamp or now,
            items=tuple(lines),
            client_id=client.id,
            client_name=client.name,
            location=request.location,
        )
        self._commit(
            self._state.model_copy(
                update={
                    "inventory": inventory,
                    "clients": clients,
                    "transactions": (*self._state.transactions, transaction),
                }
            )
        )
        units = sum(line.quantity for line in lines)
        PANTRY_TRANSACTIONS_RECORDED_TOTAL.labels(type="OUT").inc()
        PANTRY_UNITS_MOVED_TOTAL.labels(type="OUT").inc(units)
        logger.info("Recorded check-out of %d units for client %s", units, client.id)
        return OutboundResult(client=client, transaction=transaction)

    # -- settings, cache and vocabularies ----------------------------------

    @_traced
    def update_settings(self, patch: SettingsPatch) -> Settings:
        changes = _changes(patch, required=frozenset(SettingsPatch.model_fields))
        if not changes:
            return self._state.settings
        settings = self._state.settings.model_copy(update=changes)
        self._commit(self._state.model_copy(update={"settings": settings}))
        return settings

    @_traced
    def upsert_barcode_cache(self, barcode: str, entry: BarcodeLookup) -> BarcodeCacheEntry | None:
        code = normalize_barcode(barcode)
        if code is None:
            return self._skip("upsert_barcode_cache", "empty_barcode")
        cached = BarcodeCacheEntry.model_validate({**entry.model_dump(), "cached_at": self._clock()})
        self._commit(
            self._state.model_copy(update={"barcode_cache": {**self._state.barcode_cache, code: cached}})
        )
        return cached

    @_traced
    def add_source(self, source: str) -> bool:
        return self._add_vocabulary("sources", source)

    @_traced
    def add_donor(self, donor: str) -> bool:
        return self._add_vocabulary("donors", donor)

    def _add_vocabulary(self, field: str, value: str) -> bool:
        current: tuple[str, ...] = getattr(self._state, field)
        if not value.strip():
            self._skip(f"add_{field[:-1]}", "blank")
            return False
        if value in current:
            return False
        self._commit(self._state.model_copy(update={field: (*current, value)}))
        return True

    # -- whole state -------------------------------------------------------

    @_traced
    def replace_state(self, state: PantryState) -> None:
        """Install an imported snapshot in place of the current one."""

        self._commit(state)
        logger.info(
            "Replaced state: %d items, %d clients, %d transactions",
            len(state.inventory),
            len(state.clients),
            len(state.transactions),
        )

    def _commit(self, state: PantryState) -> None:
        self._state = state
        self._revision += 1
        self._store.save(state)

    def _skip(self, operation: str, reason: str, **context: Any) -> None:
        PANTRY_OPERATIONS_SKIPPED_TOTAL.labels(operation=operation, reason=reason).inc()
        logger.info("Skipped %s (%s) %s", operation, reason, context or "")
        return None
