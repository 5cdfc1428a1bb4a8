"""CSV and JSON exports of the pantry state, and parsing of JSON backups."""

from __future__ import annotations

import csv
import io
import json
from typing import Any

from .models import PantryState
from .store import parse_state

CSV_HEADER = (
    "type",
    "timestamp",
    "client",
    "clientIdentifier",
    "itemName",
    "quantity",
    "weightPerUnitLbs",
    "valuePerUnitUsd",
)


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def export_transactions_csv(state: PantryState) -> str:
    """Render one CSV row per ledger line, quoting values with commas or quotes."""

    identifiers = {client.id: client.identifier for client in state.clients}
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for tx in state.transactions:
        for line in tx.items:
            writer.writerow(
                (
                    tx.type,
                    tx.model_dump(mode="json", include={"timestamp"})["timestamp"],
                    tx.client_name or "",
                    identifiers.get(tx.client_id, "") if tx.client_id else "",
                    line.name,
                    str(line.quantity),
                    _format_number(line.weight_per_unit_lbs),
                    _format_number(line.value_per_unit_usd),
                )
            )
    return buffer.getvalue()


def export_state_json(state: PantryState, *, indent: int | None = 2) -> str:
    return json.dumps(state.to_payload(), indent=indent)


def import_state_json(raw: str | bytes | dict[str, Any]) -> PantryState:
    """Parse a JSON backup; a body that is not a JSON object raises ``ValueError``."""

    payload = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    if not isinstance(payload, dict):
        msg = "backup must be a JSON object"
        raise ValueError(msg)
    return parse_state(payload)
