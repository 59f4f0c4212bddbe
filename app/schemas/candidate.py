"""Candidate schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class CandidateCreate(BaseModel):
    """Request body for registering a candidate."""

    user_id: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1, max_length=100)
    party_name: str | None = Field(None, max_length=100)
    manifesto: str | None = Field(None, max_length=5000)
    is_approved: bool = True


class CandidateUpdate(BaseModel):
    """Partial candidate update."""

    user_id: str | None = Field(None, min_length=1)
    position: str | None = Field(None, min_length=1, max_length=100)
    party_name: str | None = Field(None, max_length=100)
    manifesto: str | None = Field(None, max_length=5000)


class CandidateApproval(BaseModel):
    """Request body for approving or withdrawing a candidate."""

    is_approved: bool


class CandidateResponse(BaseModel):
    """Candidate flattened with person-record display fields."""

    id: str
    election_id: str
    user_id: str | None = None
    position: str
    party_name: str = ""
    manifesto: str = ""
    is_approved: bool
    full_name: str
    student_id: str | None = None
    department: str
    created_at: datetime | None = None


class PositionGroup(BaseModel):
    """Candidates standing for one position."""

    position: str
    candidates: list[CandidateResponse] = Field(default_factory=list)
