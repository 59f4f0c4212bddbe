"""Election results endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from app.dependencies import get_clock, get_db_client, require_organizer
from app.schemas.ballot import ElectionResultsResponse
from app.services.report_service import content_disposition, render_csv, report_filename
from app.services.tally_service import TallyService
from app.utils.time import Clock
from supabase import Client

router = APIRouter()


@router.get("/results", response_model=ElectionResultsResponse)
def election_results(
    election_id: str,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return counts, percentages and rankings for an election."""
    return TallyService(client).compute_results(election_id)


@router.get("/results.csv")
def election_results_csv(
    election_id: str,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> Response:
    """Download the results report as CSV."""
    results = TallyService(client).compute_results(election_id)
    filename = report_filename(results["title"])
    return Response(
        content=render_csv(results, generated_at=clock()),
        media_type="text/csv",
        headers={"Content-Disposition": content_disposition(filename)},
    )
