"""HTTP routes for the check-in source and donor lists."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_repository
from ..repository import PantryRepository
from ..schemas import VocabularyEntry, VocabularyResponse, VocabularyUpdateResponse

router = APIRouter(prefix="/vocabulary", tags=["vocabulary"])


def _vocabulary(repository: PantryRepository, *, added: bool) -> VocabularyUpdateResponse:
    state = repository.state
    return VocabularyUpdateResponse(sources=list(state.sources), donors=list(state.donors), added=added)


@router.get("", response_model=VocabularyResponse)
async def get_vocabulary(repository: PantryRepository = Depends(get_repository)) -> VocabularyResponse:
    state = repository.state
    return VocabularyResponse(sources=list(state.sources), donors=list(state.donors))


@router.post("/sources", response_model=VocabularyUpdateResponse, status_code=status.HTTP_201_CREATED)
async def add_source(
    payload: VocabularyEntry,
    response: Response,
    repository: PantryRepository = Depends(get_repository),
) -> VocabularyUpdateResponse:
    added = repository.add_source(payload.value)
    if not added:
        response.status_code = status.HTTP_200_OK
    return _vocabulary(repository, added=added)


@router.post("/donors", response_model=VocabularyUpdateResponse, status_code=status.HTTP_201_CREATED)
async def add_donor(
    payload: VocabularyEntry,
    response: Response,
    repository: PantryRepository = Depends(get_repository),
) -> VocabularyUpdateResponse:
    added = repository.add_donor(payload.value)
    if not added:
        response.status_code = status.HTTP_200_OK
    return _vocabulary(repository, added=added)
