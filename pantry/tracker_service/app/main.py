from contextlib import asynccontextmanager

from fastapi import FastAPI
from httpx import AsyncClient

from pantry.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    configure_logging,
    dispose_engines,
    get_settings,
)

from .api.barcodes import router as barcodes_router
from .api.clients import router as clients_router
from .api.health import router as health_router
from .api.inventory import router as inventory_router
from .api.reports import router as reports_router
from .api.settings import router as settings_router
from .api.transactions import router as transactions_router
from .api.vocabulary import router as vocabulary_router
from .barcode import BarcodeResolver, OpenFoodFactsResolver
from .repository import PantryRepository
from .store import build_state_store

SERVICE_NAME = "Pantry Tracker"


def create_app(
    settings: ServiceSettings | None = None,
    *,
    repository: PantryRepository | None = None,
    barcode_resolver: BarcodeResolver | None = None,
) -> FastAPI:
    """Create the Pantry Tracker FastAPI application."""

    resolved_settings = settings or get_settings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)

    if repository is None:
        repository = PantryRepository(build_state_store(resolved_settings))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolver = barcode_resolver
        owns_resolver = False
        app.state.repository = repository
        try:
            if resolver is None and resolved_settings.barcode_lookup_enabled:
                resolver = OpenFoodFactsResolver(
                    client=AsyncClient(timeout=resolved_settings.barcode_lookup_timeout_seconds),
                    base_url=resolved_settings.barcode_lookup_base_url,
                )
                owns_resolver = True
            app.state.barcode_resolver = resolver
            yield
        finally:
            app.state.repository = None
            app.state.barcode_resolver = None
            if owns_resolver and resolver is not None:
                await resolver.close()
            dispose_engines()

    app = build_app(resolved_settings, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(inventory_router)
    app.include_router(clients_router)
    app.include_router(transactions_router)
    app.include_router(settings_router)
    app.include_router(vocabulary_router)
    app.include_router(barcodes_router)
    app.include_router(reports_router)
    return app


app = create_app()
