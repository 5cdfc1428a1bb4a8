"""Workflows that sit on top of the repository: check-out and barcode lookup."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Literal

from .barcode import BarcodeResolver
from .metrics import PANTRY_BARCODE_LOOKUPS_TOTAL
from .models import (
    UNCATEGORIZED,
    BarcodeLookup,
    InventoryItem,
    InventoryItemPatch,
    OutboundLine,
    OutboundRequest,
    normalize_barcode,
)
from .repository import OutboundResult, PantryRepository

logger = logging.getLogger(__name__)

BarcodeOrigin = Literal["inventory", "cache", "remote", "none"]


@dataclass(frozen=True, slots=True)
class StockShortfall:
    item_id: str
    name: str
    requested: int
    available: int


class InsufficientStockError(ValueError):
    """Raised when a cart asks for more units than are on hand."""

    def __init__(self, shortfalls: Iterable[StockShortfall]) -> None:
        self.shortfalls = tuple(shortfalls)
        details = "; ".join(
            f"cannot check out {s.requested} of {s.name}, only {s.available} available"
            for s in self.shortfalls
        )
        super().__init__(f"insufficient stock: {details}")


class CheckOutService:
    """Applies the stock sufficiency policy before recording a distribution."""

    def __init__(self, repository: PantryRepository, *, enforce_stock: bool = True) -> None:
        self.repository = repository
        self.enforce_stock = enforce_stock

    def find_shortfalls(self, lines: Iterable[OutboundLine]) -> list[StockShortfall]:
        """Compare requested units per item, summed across lines, with stock on hand."""

        requested: dict[str, int] = defaultdict(int)
        for line in lines:
            requested[line.item_id] += line.quantity

        shortfalls = []
        for item_id, quantity in requested.items():
            item = self.repository.get_item(item_id)
            if item is None:
                continue
            if quantity > item.quantity:
                shortfalls.append(
                    StockShortfall(item_id=item.id, name=item.name, requested=quantity, available=item.quantity)
                )
        return shortfalls

    def check_out(self, request: OutboundRequest) -> OutboundResult | None:
        if self.enforce_stock:
            shortfalls = self.find_shortfalls(request.items)
            if shortfalls:
                raise InsufficientStockError(shortfalls)
        return self.repository.record_outbound(request)


@dataclass(frozen=True, slots=True)
class BarcodeMatch:
    barcode: str
    origin: BarcodeOrigin
    item: InventoryItem | None = None
    lookup: BarcodeLookup | None = None


class BarcodeLookupService:
    """Resolves a scanned code from inventory, then the local cache, then the resolver."""

    def __init__(self, repository: PantryRepository, resolver: BarcodeResolver | None = None) -> None:
        self.repository = repository
        self.resolver = resolver

    async def lookup(self, code: str) -> BarcodeMatch:
        barcode = normalize_barcode(code)
        if barcode is None:
            msg = "barcode must be non-empty"
            raise ValueError(msg)

        item = self.repository.find_item_by_barcode(barcode)
        if item is not None:
            PANTRY_BARCODE_LOOKUPS_TOTAL.labels(outcome="inventory").inc()
            return BarcodeMatch(barcode=barcode, origin="inventory", item=item)

        cached = self.repository.state.barcode_cache.get(barcode)
        if cached is not None:
            PANTRY_BARCODE_LOOKUPS_TOTAL.labels(outcome="cache").inc()
            return BarcodeMatch(barcode=barcode, origin="cache", lookup=cached)

        if self.resolver is not None:
            lookup = await self.resolver.resolve(barcode)
            if lookup is not None:
                self.repository.upsert_barcode_cache(barcode, lookup)
                return BarcodeMatch(barcode=barcode, origin="remote", lookup=lookup)

        return BarcodeMatch(barcode=barcode, origin="none")

    async def ensure_item(self, code: str) -> InventoryItem | None:
        """Return the item for a code, creating an empty one from cached or remote metadata."""

        match = await self.lookup(code)
        if match.item is not None:
            return match.item
        if match.lookup is None or not match.lookup.name:
            return None
        # The resolver await may have let another request create the item.
        existing = self.repository.find_item_by_barcode(match.barcode)
        if existing is not None:
            return existing
        item = self.repository.upsert_inventory_item(
            InventoryItemPatch(
                name=match.lookup.name,
                category=match.lookup.category or UNCATEGORIZED,
                barcode=match.barcode,
                weight_per_unit_lbs=match.lookup.weight_per_unit_lbs or 0.0,
                allergens=match.lookup.allergens,
            )
        )
        logger.info("Created item %s from %s barcode metadata", item.id, match.origin)
        return item
