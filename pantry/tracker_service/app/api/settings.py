from fastapi import APIRouter, Depends

from ..dependencies import get_repository
from ..models import Settings, SettingsPatch
from ..repository import PantryRepository

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("", response_model=Settings)
async def get_pantry_settings(repository: PantryRepository = Depends(get_repository)) -> Settings:
    return repository.state.settings


@router.patch("", response_model=Settings)
async def update_pantry_settings(
    payload: SettingsPatch,
    repository: PantryRepository = Depends(get_repository),
) -> Settings:
    return repository.update_settings(payload)
