"""Election endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from app.dependencies import get_clock, get_current_user, get_db_client, require_organizer
from app.schemas.election import (
    ElectionActivation,
    ElectionCreate,
    ElectionResponse,
    ElectionUpdate,
)
from app.services.election_service import ElectionService
from app.utils.time import Clock
from supabase import Client

router = APIRouter()


@router.get("")
def list_elections(
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> dict:
    """List every election with its current state."""
    service = ElectionService(client, clock=clock)
    return {"elections": service.list_all()}


@router.get("/open")
def list_open_elections(
    _: Any = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> dict:
    """List elections currently accepting ballots."""
    service = ElectionService(client, clock=clock)
    return {"elections": service.list_open()}


@router.post("", status_code=201)
def create_election(
    payload: ElectionCreate,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Create an election."""
    service = ElectionService(client, clock=clock)
    election = service.create(
        title=payload.title,
        description=payload.description,
        start_time=payload.start_time,
        end_time=payload.end_time,
        is_active=payload.is_active,
    )
    return {"election": ElectionResponse(**election)}


@router.get("/{election_id}")
def get_election(
    election_id: str,
    _: Any = Depends(get_current_user),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Return one election with its current state."""
    service = ElectionService(client, clock=clock)
    return {"election": ElectionResponse(**service.get(election_id))}


@router.patch("/{election_id}")
def update_election(
    election_id: str,
    payload: ElectionUpdate,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Edit title, description, bounds or activation."""
    service = ElectionService(client, clock=clock)
    election = service.update(election_id, payload.model_dump(exclude_none=True))
    return {"election": ElectionResponse(**election)}


@router.post("/{election_id}/activation")
def set_election_activation(
    election_id: str,
    payload: ElectionActivation,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
    clock: Clock = Depends(get_clock),
) -> dict:
    """Activate or deactivate an election."""
    service = ElectionService(client, clock=clock)
    election = service.set_active(election_id, payload.is_active)
    return {"election": ElectionResponse(**election)}


@router.delete("/{election_id}")
def delete_election(
    election_id: str,
    cascade: bool = False,
    _: Any = Depends(require_organizer),
    client: Client = Depends(get_db_client),
) -> dict:
    """Delete an election; ``cascade`` confirms removal of its candidates and ballots."""
    service = ElectionService(client)
    result = service.delete(election_id, cascade=cascade)
    return {
        "deleted": True,
        "deleted_candidates": result["deleted_candidates"],
        "deleted_ballots": result["deleted_ballots"],
    }
