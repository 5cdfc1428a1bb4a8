"""HTTP routes for inventory items."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..dependencies import get_repository
from ..models import InventoryItem, InventoryItemPatch, normalize_barcode
from ..repository import PantryRepository
from ..schemas import InventorySummaryResponse, QuantityAdjustment
from ..views import inventory_summary, is_low_stock, low_stock_items

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _ensure_barcode_available(
    repository: PantryRepository, barcode: str | None, target: InventoryItem | None
) -> None:
    owner = repository.find_item_by_barcode(barcode)
    if owner is not None and target is not None and owner.id != target.id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Barcode {owner.barcode} already belongs to item {owner.id}",
        )


@router.get("", response_model=list[InventoryItem])
async def list_items(
    category: str | None = Query(default=None),
    low_stock: bool | None = Query(default=None, alias="lowStock"),
    repository: PantryRepository = Depends(get_repository),
) -> list[InventoryItem]:
    items = list(repository.state.inventory)
    if category is not None:
        items = [item for item in items if item.category == category]
    if low_stock is not None:
        items = [item for item in items if is_low_stock(item) == low_stock]
    return items


@router.get("/summary", response_model=InventorySummaryResponse)
async def get_summary(repository: PantryRepository = Depends(get_repository)) -> InventorySummaryResponse:
    state = repository.state
    summary = inventory_summary(state)
    return InventorySummaryResponse(
        distinct_items=summary.distinct_items,
        total_units=summary.total_units,
        total_weight_lbs=summary.total_weight_lbs,
        low_stock_items=len(low_stock_items(state)),
    )


@router.get("/low-stock", response_model=list[InventoryItem])
async def list_low_stock(repository: PantryRepository = Depends(get_repository)) -> list[InventoryItem]:
    return list(low_stock_items(repository.state))


@router.get("/{item_id}", response_model=InventoryItem)
async def get_item(item_id: str, repository: PantryRepository = Depends(get_repository)) -> InventoryItem:
    item = repository.get_item(item_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item


@router.post("", response_model=InventoryItem, status_code=status.HTTP_201_CREATED)
async def upsert_item(
    payload: InventoryItemPatch,
    response: Response,
    repository: PantryRepository = Depends(get_repository),
) -> InventoryItem:
    existing = repository.resolve_inventory_item(item_id=payload.id, barcode=payload.barcode)
    _ensure_barcode_available(repository, payload.barcode, existing)
    try:
        item = repository.upsert_inventory_item(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if existing is not None:
        response.status_code = status.HTTP_200_OK
    return item


@router.patch("/{item_id}", response_model=InventoryItem)
async def update_item(
    item_id: str,
    payload: InventoryItemPatch,
    repository: PantryRepository = Depends(get_repository),
) -> InventoryItem:
    existing = repository.get_item(item_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    if "barcode" in payload.model_fields_set and normalize_barcode(payload.barcode) is not None:
        _ensure_barcode_available(repository, payload.barcode, existing)
    patch = payload.model_copy(update={"id": item_id})
    return repository.upsert_inventory_item(patch)


@router.post("/{item_id}/adjust", response_model=InventoryItem)
async def adjust_quantity(
    item_id: str,
    payload: QuantityAdjustment,
    repository: PantryRepository = Depends(get_repository),
) -> InventoryItem:
    item = repository.adjust_inventory_quantity(item_id, payload.delta)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return item
