"""Candidate endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.dependencies import get_current_user, get_db_client, is_organizer, require_organizer
from app.schemas.candidate import (
    CandidateApproval,
    CandidateCreate,
    CandidateResponse,
    CandidateUpdate,
    PositionGroup,
)
from app.services.candidate_registry import CandidateRegistry
from app.utils.errors import ForbiddenError
from supabase import Client

election_router = APIRouter()
router = APIRouter()


@election_router.get("")
def list_candidates(
    election_id: str,
    include_unapproved: bool = False,
    _: Any = Depends(get_current_user),
    organizer: bool = Depends(is_organizer),
    client: Client = Depends(get_db_client),
) -> dict:
    """List candidates grouped by position."""
    if include_unapproved and not organizer:
        raise ForbiddenError("Only election organizers can view unapproved candidates")

    registry = CandidateRegistry(client)
    groups = registry.list_grouped(election_id, include_unapproved=include_unapproved)
    return {"positions": [PositionGroup(**group) for group in groups]}


@election_router.post("", status_code=201)
def create_candidate(
    election_id: str,
    payload: CandidateCreate,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
) -> dict:
    """Register a candidate for a position."""
    registry = CandidateRegistry(client)
    candidate = registry.create(
        election_id=election_id,
        user_id=payload.user_id,
        position=payload.position,
        party_name=payload.party_name,
        manifesto=payload.manifesto,
        is_approved=payload.is_approved,
    )
    return {"candidate": CandidateResponse(**candidate)}


@router.patch("/{candidate_id}")
def update_candidate(
    candidate_id: str,
    payload: CandidateUpdate,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
) -> dict:
    """Edit a candidate."""
    registry = CandidateRegistry(client)
    candidate = registry.update(candidate_id, payload.model_dump(exclude_unset=True))
    return {"candidate": CandidateResponse(**candidate)}


@router.post("/{candidate_id}/approval")
def set_candidate_approval(
    candidate_id: str,
    payload: CandidateApproval,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
) -> dict:
    """Approve a candidate or withdraw approval."""
    registry = CandidateRegistry(client)
    candidate = registry.set_approval(candidate_id, payload.is_approved)
    return {"candidate": CandidateResponse(**candidate)}


@router.delete("/{candidate_id}")
def delete_candidate(
    candidate_id: str,
    cascade: bool = False,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
) -> dict:
    """Remove a candidate; ``cascade`` confirms removal of their ballots."""
    registry = CandidateRegistry(client)
    result = registry.delete(candidate_id, cascade=cascade)
    return {"deleted": True, "deleted_ballots": result["deleted_ballots"]}
