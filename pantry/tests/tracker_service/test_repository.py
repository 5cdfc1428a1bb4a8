import itertools
from datetime import datetime, timedelta, timezone

import pytest
from prometheus_client import REGISTRY

from pantry.tracker_service.app.models import (
    BarcodeLookup,
    CheckoutClient,
    ClientPatch,
    InboundRequest,
    InventoryItemPatch,
    OutboundLine,
    OutboundRequest,
    SettingsPatch,
)
from pantry.tracker_service.app.repository import PantryRepository
from pantry.tracker_service.app.store import MemoryStateStore

START = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


class _MetricTracker:
    def __init__(self, name: str, labels: dict[str, str] | None = None) -> None:
        self.name = name
        self.labels = labels or {}
        baseline = REGISTRY.get_sample_value(name, self.labels)
        self._baseline = baseline if baseline is not None else 0.0

    def delta(self) -> float:
        current = REGISTRY.get_sample_value(self.name, self.labels)
        value = current if current is not None else 0.0
        return value - self._baseline


class _Clock:
    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def _repository(store: MemoryStateStore | None = None, clock: _Clock | None = None) -> PantryRepository:
    counter = itertools.count(1)
    return PantryRepository(
        store or MemoryStateStore(),
        clock=clock or _Clock(),
        id_factory=lambda: f"id-{next(counter)}",
    )


def _checkout(item_id: str, quantity: int, *, name: str = "Jane", identifier: str = "J1") -> OutboundRequest:
    return OutboundRequest(
        client=CheckoutClient(name=name, identifier=identifier),
        items=(OutboundLine(item_id=item_id, quantity=quantity),),
    )


def test_create_item_then_receive_stock() -> None:
    repository = _repository()

    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=0))
    assert item.quantity == 0
    assert item.category == "Uncategorized"

    transaction = repository.record_inbound(InboundRequest(item_id=item.id, quantity=50, source="Donation"))

    assert transaction is not None
    assert transaction.type == "IN"
    assert transaction.source == "Donation"
    assert [line.quantity for line in transaction.items] == [50]
    assert repository.get_item(item.id).quantity == 50
    assert len(repository.state.transactions) == 1


def test_checkout_decrements_stock_and_creates_client() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=50, weight_per_unit_lbs=2.0))

    result = repository.record_outbound(_checkout(item.id, 20))

    assert result is not None
    assert repository.get_item(item.id).quantity == 30
    assert result.client.name == "Jane"
    assert result.client.identifier == "J1"
    assert [client.identifier for client in repository.state.clients] == ["J1"]
    assert result.transaction.type == "OUT"
    assert result.transaction.client_name == "Jane"
    assert result.transaction.client_id == result.client.id
    assert [line.quantity for line in result.transaction.items] == [20]
    assert result.transaction.items[0].weight_per_unit_lbs == 2.0


def test_checkout_of_unknown_item_writes_nothing() -> None:
    repository = _repository()
    skipped = _MetricTracker(
        "pantry_operations_skipped_total", {"operation": "record_outbound", "reason": "no_valid_items"}
    )

    result = repository.record_outbound(_checkout("missing", 1))

    assert result is None
    assert repository.state.transactions == ()
    assert repository.state.clients == ()
    assert repository.revision == 0
    assert skipped.delta() == 1


def test_checkout_drops_unknown_lines_but_keeps_valid_ones() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Beans", quantity=5))

    result = repository.record_outbound(
        OutboundRequest(
            client=CheckoutClient(name="Jane", identifier="J1"),
            items=(
                OutboundLine(item_id="missing", quantity=3),
                OutboundLine(item_id=item.id, quantity=2),
            ),
        )
    )

    assert result is not None
    assert [line.item_id for line in result.transaction.items] == [item.id]
    assert repository.get_item(item.id).quantity == 3


def test_empty_cart_is_skipped() -> None:
    repository = _repository()

    assert repository.record_outbound(OutboundRequest(client=CheckoutClient(name="Jane", identifier="J1"))) is None
    assert repository.state.clients == ()


def test_adjust_clamps_at_zero_without_ledger_entry() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Pasta", quantity=10))

    adjusted = repository.adjust_inventory_quantity(item.id, -100)

    assert adjusted is not None
    assert adjusted.quantity == 0
    assert repository.state.transactions == ()


def test_adjust_unknown_item_returns_none() -> None:
    repository = _repository()

    assert repository.adjust_inventory_quantity("missing", 5) is None
    assert repository.revision == 0


def test_upsert_by_barcode_updates_existing_item() -> None:
    repository = _repository()

    first = repository.upsert_inventory_item(InventoryItemPatch(name="Tomato Soup", barcode="123"))
    second = repository.upsert_inventory_item(InventoryItemPatch(name="Tomato Soup 10oz", barcode="123"))

    assert second.id == first.id
    assert len(repository.state.inventory) == 1
    assert repository.state.inventory[0].name == "Tomato Soup 10oz"


def test_upsert_is_idempotent_by_id() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Oats", quantity=4))

    patch = InventoryItemPatch(id=item.id, name="Rolled Oats", category="Breakfast")
    once = repository.upsert_inventory_item(patch)
    twice = repository.upsert_inventory_item(patch)

    assert len(repository.state.inventory) == 1
    assert once.name == twice.name == "Rolled Oats"
    assert twice.category == "Breakfast"
    assert twice.quantity == 4


def test_upsert_keeps_unset_fields_and_refreshes_updated_at() -> None:
    clock = _Clock()
    repository = _repository(clock=clock)
    item = repository.upsert_inventory_item(
        InventoryItemPatch(name="Milk", quantity=3, allergens=["milk", "milk"], reorder_threshold=2)
    )
    assert item.allergens == ("milk",)

    clock.advance(hours=1)
    updated = repository.upsert_inventory_item(InventoryItemPatch(id=item.id, quantity=None, value_per_unit_usd=1.5))

    assert updated.quantity == 3
    assert updated.reorder_threshold == 2
    assert updated.value_per_unit_usd == 1.5
    assert updated.created_at == START
    assert updated.updated_at == START + timedelta(hours=1)


def test_barcode_change_to_taken_code_is_dropped() -> None:
    repository = _repository()
    soup = repository.upsert_inventory_item(InventoryItemPatch(name="Soup", barcode="111"))
    beans = repository.upsert_inventory_item(InventoryItemPatch(name="Beans", barcode="222"))
    conflicts = _MetricTracker(
        "pantry_operations_skipped_total", {"operation": "upsert_inventory_item", "reason": "barcode_conflict"}
    )

    updated = repository.upsert_inventory_item(InventoryItemPatch(id=beans.id, name="Black Beans", barcode="111"))

    assert updated.name == "Black Beans"
    assert updated.barcode == "222"
    assert repository.get_item(soup.id).barcode == "111"
    assert conflicts.delta() == 1


def test_identifier_change_to_taken_identifier_is_dropped() -> None:
    repository = _repository()
    first = repository.upsert_client(ClientPatch(name="Ana", identifier="A1"))
    second = repository.upsert_client(ClientPatch(name="Ben", identifier="B1"))
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=5))
    conflicts = _MetricTracker(
        "pantry_operations_skipped_total", {"operation": "upsert_client", "reason": "identifier_conflict"}
    )

    result = repository.record_outbound(
        OutboundRequest(
            client=CheckoutClient(id=first.id, name="Ana", identifier="B1"),
            items=(OutboundLine(item_id=item.id, quantity=1),),
        )
    )

    assert result is not None
    assert result.client.id == first.id
    assert result.client.identifier == "A1"
    assert [client.identifier for client in repository.state.clients] == ["A1", "B1"]
    assert repository.get_client(second.id).name == "Ben"
    assert conflicts.delta() == 1


def test_create_without_name_raises() -> None:
    repository = _repository()

    with pytest.raises(ValueError):
        repository.upsert_inventory_item(InventoryItemPatch(quantity=3))
    with pytest.raises(ValueError):
        repository.upsert_client(ClientPatch(name="No Identifier"))


def test_checkout_reuses_client_by_identifier() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=10))
    existing = repository.upsert_client(ClientPatch(name="Jane Doe", identifier="J1", contact="555-0100"))

    result = repository.record_outbound(_checkout(item.id, 1, name="Jane", identifier="J1"))

    assert result is not None
    assert result.client.id == existing.id
    assert result.client.name == "Jane"
    assert result.client.contact == "555-0100"
    assert len(repository.state.clients) == 1


def test_duplicate_cart_lines_are_applied_in_turn() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=5))

    result = repository.record_outbound(
        OutboundRequest(
            client=CheckoutClient(name="Jane", identifier="J1"),
            items=(OutboundLine(item_id=item.id, quantity=3), OutboundLine(item_id=item.id, quantity=4)),
        )
    )

    assert result is not None
    assert len(result.transaction.items) == 2
    assert repository.get_item(item.id).quantity == 0


def test_inbound_skips_non_positive_and_unknown() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice"))
    revision = repository.revision

    assert repository.record_inbound(InboundRequest(item_id=item.id, quantity=0)) is None
    assert repository.record_inbound(InboundRequest(item_id="missing", quantity=4)) is None
    assert repository.revision == revision
    assert repository.state.transactions == ()


def test_quantity_never_negative_across_operations() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=2))
    for step in range(6):
        repository.record_outbound(_checkout(item.id, 3, identifier=f"C{step}"))
        repository.adjust_inventory_quantity(item.id, -1)
        repository.record_inbound(InboundRequest(item_id=item.id, quantity=1))
        assert all(entry.quantity >= 0 for entry in repository.state.inventory)

    counts = [tx.type for tx in repository.state.transactions]
    assert counts.count("OUT") == 6
    assert counts.count("IN") == 6


def test_inbound_timestamp_and_metrics() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice"))
    recorded = _MetricTracker("pantry_transactions_recorded_total", {"type": "IN"})
    units = _MetricTracker("pantry_units_moved_total", {"type": "IN"})
    when = datetime(2025, 2, 1, 12, 0)

    transaction = repository.record_inbound(InboundRequest(item_id=item.id, quantity=7, timestamp=when))

    assert transaction is not None
    assert transaction.timestamp == when.replace(tzinfo=timezone.utc)
    assert repository.get_item(item.id).updated_at == START
    assert recorded.delta() == 1
    assert units.delta() == 7


def test_update_settings_only_commits_changes() -> None:
    repository = _repository()

    unchanged = repository.update_settings(SettingsPatch())
    assert unchanged.visit_warning_days == 7
    assert repository.revision == 0

    updated = repository.update_settings(SettingsPatch(visit_warning_days=14))
    assert updated.visit_warning_days == 14
    assert repository.state.settings.visit_warning_days == 14
    assert repository.revision == 1


def test_vocabulary_additions() -> None:
    repository = _repository()

    assert repository.add_source("Food Drive") is True
    assert repository.add_source("Food Drive") is False
    assert repository.add_donor("   ") is False
    assert repository.add_donor("Church Pantry") is True

    assert repository.state.sources[-1] == "Food Drive"
    assert repository.state.sources.count("Food Drive") == 1
    assert repository.state.donors[-1] == "Church Pantry"


def test_barcode_cache_upsert() -> None:
    repository = _repository()

    entry = repository.upsert_barcode_cache(" 0123 ", BarcodeLookup(name="Peanut Butter", allergens=["peanuts"]))

    assert entry is not None
    assert entry.cached_at == START
    assert repository.state.barcode_cache["0123"].name == "Peanut Butter"
    assert repository.upsert_barcode_cache("  ", BarcodeLookup(name="x")) is None


def test_every_mutation_is_persisted() -> None:
    store = MemoryStateStore()
    repository = _repository(store=store)
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", barcode="999"))
    repository.record_inbound(InboundRequest(item_id=item.id, quantity=12, donor="Local Grocery"))
    repository.record_outbound(_checkout(item.id, 2))

    reloaded = PantryRepository(MemoryStateStore(store.payload))

    assert reloaded.state == repository.state
    assert reloaded.get_item(item.id).quantity == 10
    assert [tx.type for tx in reloaded.state.transactions] == ["IN", "OUT"]


def test_snapshots_are_immutable() -> None:
    repository = _repository()
    item = repository.upsert_inventory_item(InventoryItemPatch(name="Rice", quantity=1))
    before = repository.state

    repository.adjust_inventory_quantity(item.id, 5)

    assert before.inventory[0].quantity == 1
    assert repository.state.inventory[0].quantity == 6
    with pytest.raises(Exception):
        before.inventory[0].quantity = 3  # type: ignore[misc]
