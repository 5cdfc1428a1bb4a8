import pytest
from httpx import AsyncClient, ConnectError, MockTransport, Request, Response
from prometheus_client import REGISTRY

from pantry.tracker_service.app.barcode import OpenFoodFactsResolver, parse_product


class _MetricTracker:
    def __init__(self, name: str, labels: dict[str, str] | None = None) -> None:
        self.name = name
        self.labels = labels or {}
        baseline = REGISTRY.get_sample_value(name, self.labels)
        self._baseline = baseline if baseline is not None else 0.0

    def delta(self) -> float:
        current = REGISTRY.get_sample_value(self.name, self.labels)
        value = current if current is not None else 0.0
        return value - self._baseline


PRODUCT = {
    "status": 1,
    "product": {
        "product_name": "Creamy Peanut Butter",
        "categories_tags": ["en:spreads", "en:peanut-butters"],
        "product_quantity": "453.592",
        "product_quantity_unit": "g",
        "allergens_tags": ["en:peanuts", "fr:peanuts", "en:soybeans", "en:tree-nuts"],
    },
}


def _resolver(handler) -> OpenFoodFactsResolver:
    client = AsyncClient(transport=MockTransport(handler))
    return OpenFoodFactsResolver(client=client, base_url="https://off.test/")


def test_parse_product_maps_fields() -> None:
    lookup = parse_product(PRODUCT)

    assert lookup is not None
    assert lookup.name == "Creamy Peanut Butter"
    assert lookup.category == "spreads"
    assert lookup.weight_per_unit_lbs == pytest.approx(1.0)
    assert lookup.allergens == ("peanuts", "soybeans", "tree nuts")


def test_parse_product_edge_cases() -> None:
    assert parse_product({"status": 0}) is None
    assert parse_product({"status": 1, "product": "nope"}) is None

    sparse = parse_product(
        {"status": 1, "product": {"generic_name": "Oats", "product_quantity": "1", "product_quantity_unit": "kg"}}
    )
    assert sparse is not None
    assert sparse.name == "Oats"
    assert sparse.category is None
    assert sparse.weight_per_unit_lbs is None
    assert sparse.allergens == ()


@pytest.mark.asyncio
async def test_resolver_fetches_product() -> None:
    seen: list[str] = []
    remote = _MetricTracker("pantry_barcode_lookups_total", {"outcome": "remote"})

    def handler(request: Request) -> Response:
        seen.append(str(request.url))
        return Response(200, json=PRODUCT)

    resolver = _resolver(handler)
    lookup = await resolver.resolve("0123456789")
    await resolver.close()

    assert lookup is not None
    assert lookup.name == "Creamy Peanut Butter"
    assert seen == ["https://off.test/api/v0/product/0123456789.json"]
    assert remote.delta() == 1


@pytest.mark.asyncio
async def test_resolver_treats_unknown_product_as_missing() -> None:
    not_found = _MetricTracker("pantry_barcode_lookups_total", {"outcome": "not_found"})
    resolver = _resolver(lambda request: Response(200, json={"status": 0, "status_verbose": "product not found"}))

    assert await resolver.resolve("000") is None
    assert not_found.delta() == 1
    await resolver.close()


@pytest.mark.asyncio
async def test_resolver_swallows_transport_and_http_errors() -> None:
    errors = _MetricTracker("pantry_barcode_lookups_total", {"outcome": "error"})

    def failing(request: Request) -> Response:
        raise ConnectError("offline", request=request)

    offline = _resolver(failing)
    server_error = _resolver(lambda request: Response(503, text="busy"))
    garbage = _resolver(lambda request: Response(200, text="<html>"))

    assert await offline.resolve("1") is None
    assert await server_error.resolve("2") is None
    assert await garbage.resolve("3") is None
    assert errors.delta() == 3

    for resolver in (offline, server_error, garbage):
        await resolver.close()
