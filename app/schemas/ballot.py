"""Ballot and results schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class BallotCast(BaseModel):
    """A voter's complete slate: position label to candidate id."""

    selections: dict[str, str] = Field(default_factory=dict)


class BallotReceipt(BaseModel):
    """Identifiers of one recorded ballot."""

    id: str
    position: str
    candidate_id: str
    created_at: datetime | None = None


class BallotCastResponse(BaseModel):
    """Response for a successful cast."""

    election_id: str
    ballots: list[BallotReceipt]


class VotingStatusResponse(BaseModel):
    """Positions the caller already has a ballot on record for."""

    election_id: str
    voted_positions: list[str] = Field(default_factory=list)
    has_voted: bool = False


class ResultEntry(BaseModel):
    """One candidate's line in the tally."""

    candidate_id: str
    candidate_name: str
    department: str
    party_name: str
    position: str
    vote_count: int
    percentage: float
    rank: int
    is_approved: bool


class PositionSummary(BaseModel):
    """Ballot total and leader for one position."""

    position: str
    total_votes: int
    leader_candidate_id: str | None = None


class ElectionResultsResponse(BaseModel):
    """Full tally for an election."""

    election_id: str
    title: str
    total_ballots: int
    positions: list[PositionSummary] = Field(default_factory=list)
    results: list[ResultEntry] = Field(default_factory=list)
