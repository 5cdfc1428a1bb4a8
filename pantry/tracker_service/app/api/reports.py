"""HTTP routes for distribution reports, exports and backup import."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status

from ..dependencies import get_repository
from ..exports import export_state_json, export_transactions_csv, import_state_json
from ..repository import PantryRepository
from ..schemas import DistributionReportResponse, ImportSummaryResponse
from ..views import distribution_report

router = APIRouter(prefix="/reports", tags=["reports"])


def _attachment(filename: str) -> dict[str, str]:
    return {"Content-Disposition": f'attachment; filename="{filename}"'}


@router.get("/distribution", response_model=DistributionReportResponse)
async def get_distribution_report(
    date_from: date | None = Query(default=None, alias="from"),
    date_to: date | None = Query(default=None, alias="to"),
    repository: PantryRepository = Depends(get_repository),
) -> DistributionReportResponse:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="'from' must not be after 'to'")
    report = distribution_report(repository.state, date_from, date_to)
    return DistributionReportResponse.model_validate(report)


@router.get("/export.csv")
async def export_csv(repository: PantryRepository = Depends(get_repository)) -> Response:
    stamp = repository.now().date().isoformat()
    return Response(
        content=export_transactions_csv(repository.state),
        media_type="text/csv",
        headers=_attachment(f"pantry-transactions-{stamp}.csv"),
    )


@router.get("/export.json")
async def export_json(repository: PantryRepository = Depends(get_repository)) -> Response:
    stamp = repository.now().date().isoformat()
    return Response(
        content=export_state_json(repository.state),
        media_type="application/json",
        headers=_attachment(f"pantry-backup-{stamp}.json"),
    )


@router.post("/import", response_model=ImportSummaryResponse)
async def import_backup(
    payload: Any = Body(...),
    repository: PantryRepository = Depends(get_repository),
) -> ImportSummaryResponse:
    try:
        state = import_state_json(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    repository.replace_state(state)
    return ImportSummaryResponse(
        inventory=len(state.inventory),
        clients=len(state.clients),
        transactions=len(state.transactions),
        settings=state.settings,
    )
