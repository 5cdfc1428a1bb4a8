"""Read-only projections over a pantry state snapshot.

Nothing here mutates the snapshot or caches results; each call recomputes from
the state it is given.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from .models import ClientRecord, InventoryItem, PantryState, Transaction


@dataclass(frozen=True, slots=True)
class InventorySummary:
    distinct_items: int
    total_units: int
    total_weight_lbs: float


@dataclass(frozen=True, slots=True)
class ClientHistory:
    client: ClientRecord | None
    visits: tuple[Transaction, ...]


@dataclass(frozen=True, slots=True)
class VisitStatus:
    client_id: str
    visit_count: int
    last_visit_at: datetime | None
    days_since_last_visit: int | None
    warning_days: int
    overdue: bool


@dataclass(frozen=True, slots=True)
class ItemDistribution:
    item_id: str
    name: str
    quantity: int


@dataclass(frozen=True, slots=True)
class ClientDistribution:
    client_key: str
    name: str
    visits: int
    units: int


@dataclass(frozen=True, slots=True)
class DistributionReport:
    date_from: date | None
    date_to: date | None
    transaction_count: int
    by_item: tuple[ItemDistribution, ...]
    by_client: tuple[ClientDistribution, ...]
    total_weight_lbs: float
    total_value_usd: float


def is_low_stock(item: InventoryItem) -> bool:
    if item.reorder_threshold is None:
        return False
    return item.quantity <= item.reorder_threshold


def low_stock_items(state: PantryState) -> tuple[InventoryItem, ...]:
    return tuple(item for item in state.inventory if is_low_stock(item))


def inventory_summary(state: PantryState) -> InventorySummary:
    return InventorySummary(
        distinct_items=len(state.inventory),
        total_units=sum(item.quantity for item in state.inventory),
        total_weight_lbs=sum(item.quantity * item.weight_per_unit_lbs for item in state.inventory),
    )


def _client_visits(transactions: Iterable[Transaction], client_id: str) -> tuple[Transaction, ...]:
    return tuple(tx for tx in transactions if tx.type == "OUT" and tx.client_id == client_id)


def client_visit_history(state: PantryState, client_id: str) -> ClientHistory:
    """Return the client record and its check-outs in ledger order."""

    client = next((c for c in state.clients if c.id == client_id), None)
    return ClientHistory(client=client, visits=_client_visits(state.transactions, client_id))


def client_visit_status(state: PantryState, client_id: str, now: datetime) -> VisitStatus:
    """Flag a client whose last visit is at least ``visitWarningDays`` old."""

    visits = _client_visits(state.transactions, client_id)
    warning_days = state.settings.visit_warning_days
    if not visits:
        return VisitStatus(
            client_id=client_id,
            visit_count=0,
            last_visit_at=None,
            days_since_last_visit=None,
            warning_days=warning_days,
            overdue=False,
        )
    last_visit_at = max(tx.timestamp for tx in visits)
    days_since = max(0, (now - last_visit_at).days)
    return VisitStatus(
        client_id=client_id,
        visit_count=len(visits),
        last_visit_at=last_visit_at,
        days_since_last_visit=days_since,
        warning_days=warning_days,
        overdue=days_since >= warning_days,
    )


def _date_part(timestamp: datetime) -> str:
    # Date as recorded, without converting between time zones.
    return timestamp.isoformat()[:10]


def _in_range(timestamp: datetime, date_from: date | None, date_to: date | None) -> bool:
    day = _date_part(timestamp)
    if date_from is not None and day < date_from.isoformat():
        return False
    if date_to is not None and day > date_to.isoformat():
        return False
    return True


def distribution_report(
    state: PantryState,
    date_from: date | None = None,
    date_to: date | None = None,
) -> DistributionReport:
    """Aggregate check-outs between two dates, both bounds inclusive and optional."""

    in_range = [
        tx for tx in state.transactions if tx.type == "OUT" and _in_range(tx.timestamp, date_from, date_to)
    ]

    by_item: dict[str, ItemDistribution] = {}
    by_client: dict[str, ClientDistribution] = {}
    total_weight = 0.0
    total_value = 0.0
    for tx in in_range:
        for line in tx.items:
            current = by_item.get(line.item_id)
            by_item[line.item_id] = ItemDistribution(
                item_id=line.item_id,
                name=current.name if current else line.name,
                quantity=(current.quantity if current else 0) + line.quantity,
            )
            total_weight += line.quantity * line.weight_per_unit_lbs
            total_value += line.quantity * line.value_per_unit_usd

        key = tx.client_id or tx.client_name or "unknown"
        visitor = by_client.get(key)
        by_client[key] = ClientDistribution(
            client_key=key,
            name=visitor.name if visitor else (tx.client_name or "Unknown"),
            visits=(visitor.visits if visitor else 0) + 1,
            units=(visitor.units if visitor else 0) + sum(line.quantity for line in tx.items),
        )

    return DistributionReport(
        date_from=date_from,
        date_to=date_to,
        transaction_count=len(in_range),
        by_item=tuple(by_item.values()),
        by_client=tuple(by_client.values()),
        total_weight_lbs=total_weight,
        total_value_usd=total_value,
    )
