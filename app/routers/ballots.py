"""Ballot casting endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.dependencies import get_clock, get_current_user, get_current_user_id, get_db_client
from app.schemas.ballot import BallotCast, BallotCastResponse, VotingStatusResponse
from app.services.ballot_service import BallotService
from app.utils.time import Clock
from supabase import Client

router = APIRouter()


@router.post("", status_code=201, response_model=BallotCastResponse)
def cast_ballots(
    election_id: str,
    payload: BallotCast,
    user: Any = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Cast the caller's ballot for every selected position at once."""
    service = BallotService(client, clock=clock)
    ballots = service.cast_ballots(
        voter_id=get_current_user_id(user),
        election_id=election_id,
        selections=payload.selections,
    )
    return {"election_id": election_id, "ballots": ballots}


@router.get("/me", response_model=VotingStatusResponse)
def voting_status(
    election_id: str,
    user: Any = Depends(get_current_user),
    client: Client = Depends(get_db_client),
) -> dict:
    """Return positions the caller has already voted for (advisory)."""
    service = BallotService(client)
    positions = service.voted_positions(get_current_user_id(user), election_id)
    return {
        "election_id": election_id,
        "voted_positions": positions,
        "has_voted": bool(positions),
    }
