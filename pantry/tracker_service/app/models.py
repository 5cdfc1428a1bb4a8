"""Domain state model for the pantry tracker.

Every record is a frozen pydantic model and every collection is a tuple, so a
snapshot handed to a caller can never be mutated behind the repository's back.
Field aliases are the camelCase names used by the persisted state blob and the
JSON export.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    NonNegativeInt,
    PositiveInt,
    field_validator,
)

UNCATEGORIZED = "Uncategorized"
DEFAULT_VISIT_WARNING_DAYS = 7
DEFAULT_SOURCES: tuple[str, ...] = ("Donation", "Purchase", "Transfer", "Other")
DEFAULT_DONORS: tuple[str, ...] = (
    "Morgan State University",
    "Maryland Food Bank",
    "Local Grocery",
)

TransactionType = Literal["IN", "OUT"]


def _assume_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


# Naive timestamps are read as UTC so ledger entries always compare cleanly.
Timestamp = Annotated[datetime, AfterValidator(_assume_utc)]


def unique_strings(values: Iterable[Any] | None) -> tuple[str, ...]:
    """Drop non-strings and duplicates while keeping first-seen order."""

    if values is None:
        return ()
    return tuple(dict.fromkeys(value for value in values if isinstance(value, str)))


def normalize_barcode(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class GeoLocation(_Record):
    latitude: float
    longitude: float
    accuracy: float | None = None


class InventoryItem(_Record):
    id: str
    name: str
    category: str = UNCATEGORIZED
    barcode: str | None = None
    quantity: NonNegativeInt = 0
    weight_per_unit_lbs: NonNegativeFloat = Field(default=0.0, alias="weightPerUnitLbs")
    value_per_unit_usd: NonNegativeFloat = Field(default=0.0, alias="valuePerUnitUsd")
    reorder_threshold: int | None = Field(default=None, alias="reorderThreshold")
    allergens: tuple[str, ...] = ()
    created_at: Timestamp = Field(alias="createdAt")
    updated_at: Timestamp = Field(alias="updatedAt")

    @field_validator("allergens", mode="before")
    @classmethod
    def _unique_allergens(cls, value: Any) -> tuple[str, ...]:
        return unique_strings(value)


class ClientRecord(_Record):
    id: str
    name: str
    identifier: str
    contact: str | None = None
    allergies: tuple[str, ...] = ()
    notes: str | None = None
    created_at: Timestamp = Field(alias="createdAt")
    updated_at: Timestamp = Field(alias="updatedAt")

    @field_validator("allergies", mode="before")
    @classmethod
    def _unique_allergies(cls, value: Any) -> tuple[str, ...]:
        return unique_strings(value)


class TransactionItem(_Record):
    """A ledger line; weight and value are copied from the item when recorded."""

    item_id: str = Field(alias="itemId")
    name: str
    quantity: int
    weight_per_unit_lbs: float = Field(default=0.0, alias="weightPerUnitLbs")
    value_per_unit_usd: float = Field(default=0.0, alias="valuePerUnitUsd")


class Transaction(_Record):
    id: str
    type: TransactionType
    timestamp: Timestamp
    items: tuple[TransactionItem, ...] = ()
    source: str | None = None
    donor: str | None = None
    client_id: str | None = Field(default=None, alias="clientId")
    client_name: str | None = Field(default=None, alias="clientName")
    location: GeoLocation | None = None


class Settings(_Record):
    visit_warning_days: NonNegativeInt = Field(
        default=DEFAULT_VISIT_WARNING_DAYS, alias="visitWarningDays"
    )


class BarcodeLookup(_Record):
    """Product metadata for a barcode, as returned by a resolver."""

    name: str | None = None
    category: str | None = None
    weight_per_unit_lbs: NonNegativeFloat | None = Field(default=None, alias="weightPerUnitLbs")
    allergens: tuple[str, ...] = ()

    @field_validator("allergens", mode="before")
    @classmethod
    def _unique_allergens(cls, value: Any) -> tuple[str, ...]:
        return unique_strings(value)


class BarcodeCacheEntry(BarcodeLookup):
    cached_at: Timestamp = Field(alias="cachedAt")


class PantryState(_Record):
    inventory: tuple[InventoryItem, ...] = ()
    clients: tuple[ClientRecord, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    settings: Settings = Field(default_factory=Settings)
    barcode_cache: dict[str, BarcodeCacheEntry] = Field(default_factory=dict, alias="barcodeCache")
    sources: tuple[str, ...] = DEFAULT_SOURCES
    donors: tuple[str, ...] = DEFAULT_DONORS

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON-compatible persisted/exported representation."""

        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def default_state() -> PantryState:
    return PantryState()


# Inputs accepted by the repository. Only the fields a caller sets are applied
# on update, so every field is optional unless the operation needs it.


class _Input(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class InventoryItemPatch(_Input):
    id: str | None = None
    name: str | None = None
    category: str | None = None
    barcode: str | None = None
    quantity: NonNegativeInt | None = None
    weight_per_unit_lbs: NonNegativeFloat | None = Field(default=None, alias="weightPerUnitLbs")
    value_per_unit_usd: NonNegativeFloat | None = Field(default=None, alias="valuePerUnitUsd")
    reorder_threshold: int | None = Field(default=None, alias="reorderThreshold")
    allergens: tuple[str, ...] | None = None

    @field_validator("allergens", mode="before")
    @classmethod
    def _unique_allergens(cls, value: Any) -> tuple[str, ...] | None:
        return None if value is None else unique_strings(value)


class ClientPatch(_Input):
    id: str | None = None
    name: str | None = None
    identifier: str | None = None
    contact: str | None = None
    allergies: tuple[str, ...] | None = None
    notes: str | None = None

    @field_validator("allergies", mode="before")
    @classmethod
    def _unique_allergies(cls, value: Any) -> tuple[str, ...] | None:
        return None if value is None else unique_strings(value)


class SettingsPatch(_Input):
    visit_warning_days: NonNegativeInt | None = Field(default=None, alias="visitWarningDays")


class InboundRequest(_Input):
    item_id: str = Field(alias="itemId")
    quantity: int
    source: str | None = None
    donor: str | None = None
    timestamp: Timestamp | None = None
    location: GeoLocation | None = None


class CheckoutClient(_Input):
    id: str | None = None
    name: str = Field(min_length=1)
    identifier: str = Field(min_length=1)
    contact: str | None = None


class OutboundLine(_Input):
    item_id: str = Field(alias="itemId")
    quantity: PositiveInt


class OutboundRequest(_Input):
    client: CheckoutClient
    items: tuple[OutboundLine, ...] = ()
    timestamp: Timestamp | None = None
    location: GeoLocation | None = None
