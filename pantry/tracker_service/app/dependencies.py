"""Dependency helpers for the pantry tracker service."""

from __future__ import annotations

from typing import cast

from fastapi import Depends, HTTPException, Request, status

from pantry.common import ServiceSettings

from .barcode import BarcodeResolver
from .repository import PantryRepository
from .services import BarcodeLookupService, CheckOutService


def get_service_settings(request: Request) -> ServiceSettings:
    return cast(ServiceSettings, request.app.state.settings)


def get_repository(request: Request) -> PantryRepository:
    repository = getattr(request.app.state, "repository", None)
    if repository is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Pantry repository is not ready",
        )
    return cast(PantryRepository, repository)


def get_barcode_resolver(request: Request) -> BarcodeResolver | None:
    resolver = getattr(request.app.state, "barcode_resolver", None)
    if resolver is None:
        return None
    if hasattr(resolver, "resolve") and hasattr(resolver, "close"):
        return cast(BarcodeResolver, resolver)
    return None


def get_checkout_service(
    repository: PantryRepository = Depends(get_repository),
    settings: ServiceSettings = Depends(get_service_settings),
) -> CheckOutService:
    return CheckOutService(repository, enforce_stock=settings.enforce_stock_on_checkout)


def get_barcode_service(
    repository: PantryRepository = Depends(get_repository),
    resolver: BarcodeResolver | None = Depends(get_barcode_resolver),
) -> BarcodeLookupService:
    return BarcodeLookupService(repository, resolver)
