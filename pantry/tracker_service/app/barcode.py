"""Barcode resolvers that turn a product code into prefill metadata."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from .metrics import PANTRY_BARCODE_LOOKUPS_TOTAL
from .models import BarcodeLookup, unique_strings

logger = logging.getLogger(__name__)

GRAMS_PER_POUND = 453.592


class BarcodeResolver(Protocol):
    async def resolve(self, code: str) -> BarcodeLookup | None:
        ...

    async def close(self) -> None:
        ...


def _strip_language(tag: str) -> str:
    return tag.split(":")[-1]


def _allergen_name(tag: str) -> str:
    return _strip_language(tag).replace("-", " ")


def _weight_lbs(product: dict[str, Any]) -> float | None:
    if product.get("product_quantity_unit") != "g":
        return None
    try:
        grams = float(product.get("product_quantity") or 0)
    except (TypeError, ValueError):
        return None
    if grams <= 0:
        return None
    return grams / GRAMS_PER_POUND


def parse_product(payload: dict[str, Any]) -> BarcodeLookup | None:
    """Map an Open Food Facts product response onto ``BarcodeLookup``."""

    if payload.get("status") != 1 or not isinstance(payload.get("product"), dict):
        return None
    product: dict[str, Any] = payload["product"]
    name = product.get("product_name") or product.get("generic_name") or None
    categories = product.get("categories_tags")
    category = None
    if isinstance(categories, list) and categories and isinstance(categories[0], str):
        category = _strip_language(categories[0]) or None
    allergen_tags = product.get("allergens_tags")
    if not isinstance(allergen_tags, list):
        allergen_tags = []
    return BarcodeLookup(
        name=name,
        category=category,
        weight_per_unit_lbs=_weight_lbs(product),
        allergens=unique_strings(_allergen_name(tag) for tag in allergen_tags if isinstance(tag, str)),
    )


class OpenFoodFactsResolver:
    """Looks products up in the Open Food Facts v0 product API."""

    def __init__(self, *, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def close(self) -> None:
        await self._client.aclose()

    async def resolve(self, code: str) -> BarcodeLookup | None:
        url = f"{self._base_url}/api/v0/product/{code}.json"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            PANTRY_BARCODE_LOOKUPS_TOTAL.labels(outcome="error").inc()
            logger.warning("Barcode lookup for %s failed: %s", code, exc)
            return None

        lookup = parse_product(payload) if isinstance(payload, dict) else None
        if lookup is None or not lookup.name:
            PANTRY_BARCODE_LOOKUPS_TOTAL.labels(outcome="not_found").inc()
            return None
        PANTRY_BARCODE_LOOKUPS_TOTAL.labels(outcome="remote").inc()
        return lookup
