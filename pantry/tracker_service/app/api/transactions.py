"""HTTP routes for the transaction ledger: check-in and check-out."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_checkout_service, get_repository
from ..models import InboundRequest, OutboundRequest, Transaction, TransactionItem
from ..repository import PantryRepository
from ..schemas import CheckOutResponse, StockShortfallResponse
from ..services import CheckOutService, InsufficientStockError

router = APIRouter(prefix="/transactions", tags=["transactions"])


def _get_transaction_or_404(repository: PantryRepository, transaction_id: str) -> Transaction:
    transaction = repository.get_transaction(transaction_id)
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transaction not found")
    return transaction


@router.get("", response_model=list[Transaction])
async def list_transactions(
    type_filter: Literal["IN", "OUT"] | None = Query(default=None, alias="type"),
    repository: PantryRepository = Depends(get_repository),
) -> list[Transaction]:
    transactions = list(repository.state.transactions)
    if type_filter is not None:
        transactions = [tx for tx in transactions if tx.type == type_filter]
    return transactions


@router.get("/{transaction_id}", response_model=Transaction)
async def get_transaction(
    transaction_id: str, repository: PantryRepository = Depends(get_repository)
) -> Transaction:
    return _get_transaction_or_404(repository, transaction_id)


@router.get("/{transaction_id}/items", response_model=list[TransactionItem])
async def get_transaction_items(
    transaction_id: str, repository: PantryRepository = Depends(get_repository)
) -> list[TransactionItem]:
    return list(_get_transaction_or_404(repository, transaction_id).items)


@router.post("/inbound", response_model=Transaction, status_code=status.HTTP_201_CREATED)
async def check_in(
    payload: InboundRequest,
    repository: PantryRepository = Depends(get_repository),
) -> Transaction:
    if payload.quantity <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Quantity must be positive")
    transaction = repository.record_inbound(payload)
    if transaction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return transaction


@router.post("/outbound", response_model=CheckOutResponse, status_code=status.HTTP_201_CREATED)
async def check_out(
    payload: OutboundRequest,
    service: CheckOutService = Depends(get_checkout_service),
) -> CheckOutResponse:
    if not payload.items:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cart is empty")
    try:
        result = service.check_out(payload)
    except InsufficientStockError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": "Insufficient stock",
                "shortfalls": [
                    StockShortfallResponse.model_validate(shortfall).model_dump(by_alias=True)
                    for shortfall in exc.shortfalls
                ],
            },
        ) from exc
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No known items in cart")
    return CheckOutResponse(client=result.client, transaction=result.transaction)
