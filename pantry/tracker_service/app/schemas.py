"""Pydantic schemas for the pantry tracker HTTP API.

Requests that map one to one onto repository inputs reuse the models from
``models``; the classes here cover the bodies and responses that only exist at
the HTTP boundary.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import BarcodeLookup, ClientRecord, InventoryItem, Settings, Transaction


class QuantityAdjustment(BaseModel):
    delta: int

    model_config = ConfigDict(populate_by_name=True)


class VocabularyEntry(BaseModel):
    value: str = Field(min_length=1, max_length=255)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("value")
    @classmethod
    def _strip(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value must not be blank")
        return cleaned


class VocabularyResponse(BaseModel):
    sources: list[str]
    donors: list[str]


class VocabularyUpdateResponse(VocabularyResponse):
    added: bool


class InventorySummaryResponse(BaseModel):
    distinct_items: int = Field(alias="distinctItems")
    total_units: int = Field(alias="totalUnits")
    total_weight_lbs: float = Field(alias="totalWeightLbs")
    low_stock_items: int = Field(alias="lowStockItems")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class VisitStatusResponse(BaseModel):
    client_id: str = Field(alias="clientId")
    visit_count: int = Field(alias="visitCount")
    last_visit_at: datetime | None = Field(default=None, alias="lastVisitAt")
    days_since_last_visit: int | None = Field(default=None, alias="daysSinceLastVisit")
    warning_days: int = Field(alias="warningDays")
    overdue: bool

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ClientDetailResponse(BaseModel):
    client: ClientRecord
    visit_status: VisitStatusResponse = Field(alias="visitStatus")

    model_config = ConfigDict(populate_by_name=True)


class ClientVisitsResponse(BaseModel):
    client: ClientRecord
    visits: list[Transaction]

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class CheckOutResponse(BaseModel):
    client: ClientRecord
    transaction: Transaction

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class StockShortfallResponse(BaseModel):
    item_id: str = Field(alias="itemId")
    name: str
    requested: int
    available: int

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ItemDistributionResponse(BaseModel):
    item_id: str = Field(alias="itemId")
    name: str
    quantity: int

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ClientDistributionResponse(BaseModel):
    client_key: str = Field(alias="clientKey")
    name: str
    visits: int
    units: int

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class DistributionReportResponse(BaseModel):
    date_from: date | None = Field(default=None, alias="from")
    date_to: date | None = Field(default=None, alias="to")
    transaction_count: int = Field(alias="transactionCount")
    by_item: list[ItemDistributionResponse] = Field(alias="byItem")
    by_client: list[ClientDistributionResponse] = Field(alias="byClient")
    total_weight_lbs: float = Field(alias="totalWeightLbs")
    total_value_usd: float = Field(alias="totalValueUsd")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class BarcodeLookupResponse(BaseModel):
    barcode: str
    origin: str
    item: InventoryItem | None = None
    lookup: BarcodeLookup | None = None

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ImportSummaryResponse(BaseModel):
    inventory: int
    clients: int
    transactions: int
    settings: Settings
