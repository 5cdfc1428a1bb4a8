"""HTTP routes for client records and visit history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from ..dependencies import get_repository
from ..models import ClientPatch, ClientRecord
from ..repository import PantryRepository
from ..schemas import ClientDetailResponse, ClientVisitsResponse, VisitStatusResponse
from ..views import client_visit_history, client_visit_status

router = APIRouter(prefix="/clients", tags=["clients"])


def _ensure_identifier_available(
    repository: PantryRepository, identifier: str | None, target: ClientRecord | None
) -> None:
    owner = repository.find_client_by_identifier(identifier)
    if owner is not None and target is not None and owner.id != target.id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Identifier {owner.identifier} already belongs to client {owner.id}",
        )


def _get_client_or_404(repository: PantryRepository, client_id: str) -> ClientRecord:
    client = repository.get_client(client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.get("", response_model=list[ClientRecord])
async def list_clients(
    search: str | None = Query(default=None, min_length=1),
    repository: PantryRepository = Depends(get_repository),
) -> list[ClientRecord]:
    clients = list(repository.state.clients)
    if search is not None:
        needle = search.lower()
        clients = [
            client
            for client in clients
            if needle in client.name.lower() or needle in client.identifier.lower()
        ]
    return clients


@router.get("/{client_id}", response_model=ClientDetailResponse)
async def get_client(
    client_id: str, repository: PantryRepository = Depends(get_repository)
) -> ClientDetailResponse:
    client = _get_client_or_404(repository, client_id)
    visit_status = client_visit_status(repository.state, client.id, repository.now())
    return ClientDetailResponse(
        client=client,
        visit_status=VisitStatusResponse.model_validate(visit_status),
    )


@router.get("/{client_id}/visits", response_model=ClientVisitsResponse)
async def get_client_visits(
    client_id: str, repository: PantryRepository = Depends(get_repository)
) -> ClientVisitsResponse:
    _get_client_or_404(repository, client_id)
    history = client_visit_history(repository.state, client_id)
    return ClientVisitsResponse(client=history.client, visits=list(history.visits))


@router.post("", response_model=ClientRecord, status_code=status.HTTP_201_CREATED)
async def upsert_client(
    payload: ClientPatch,
    response: Response,
    repository: PantryRepository = Depends(get_repository),
) -> ClientRecord:
    existing = repository.resolve_client(client_id=payload.id, identifier=payload.identifier)
    _ensure_identifier_available(repository, payload.identifier, existing)
    try:
        client = repository.upsert_client(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if existing is not None:
        response.status_code = status.HTTP_200_OK
    return client


@router.patch("/{client_id}", response_model=ClientRecord)
async def update_client(
    client_id: str,
    payload: ClientPatch,
    repository: PantryRepository = Depends(get_repository),
) -> ClientRecord:
    existing = _get_client_or_404(repository, client_id)
    if payload.identifier:
        _ensure_identifier_available(repository, payload.identifier, existing)
    return repository.upsert_client(payload.model_copy(update={"id": client_id}))
