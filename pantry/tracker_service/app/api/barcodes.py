"""HTTP routes for barcode lookup and the local barcode cache."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_barcode_service, get_repository
from ..models import BarcodeCacheEntry, BarcodeLookup, InventoryItem
from ..repository import PantryRepository
from ..schemas import BarcodeLookupResponse
from ..services import BarcodeLookupService

router = APIRouter(prefix="/barcodes", tags=["barcodes"])


@router.get("/{code}", response_model=BarcodeLookupResponse)
async def lookup_barcode(
    code: str,
    service: BarcodeLookupService = Depends(get_barcode_service),
) -> BarcodeLookupResponse:
    try:
        match = await service.lookup(code)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return BarcodeLookupResponse.model_validate(match)


@router.put("/{code}", response_model=BarcodeCacheEntry)
async def cache_barcode(
    code: str,
    payload: BarcodeLookup,
    repository: PantryRepository = Depends(get_repository),
) -> BarcodeCacheEntry:
    entry = repository.upsert_barcode_cache(code, payload)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="barcode must be non-empty")
    return entry


@router.post("/{code}/item", response_model=InventoryItem)
async def ensure_item_for_barcode(
    code: str,
    service: BarcodeLookupService = Depends(get_barcode_service),
) -> InventoryItem:
    """Return the item carrying this barcode, creating an empty one from known metadata."""

    try:
        item = await service.ensure_item(code)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No product data for barcode")
    return item
