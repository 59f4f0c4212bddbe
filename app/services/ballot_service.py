"""Atomic ballot casting."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from app.services.candidate_registry import CandidateRegistry
from app.services.common import SupabaseService
from app.services.election_clock import ElectionState, classify
from app.utils.errors import (
    DuplicateVoteError,
    ElectionNotActiveError,
    EmptyBallotError,
    ForeignKeyViolationError,
    InvalidSelectionError,
    UniqueViolationError,
)
from app.utils.time import Clock, now_utc
from supabase import Client

logger = logging.getLogger(__name__)

RETURNED_COLUMNS = ("id", "position", "candidate_id", "created_at")


def normalize_selections(selections: Mapping[str, str]) -> dict[str, str]:
    """Strip position labels and candidate ids, rejecting blanks."""
    normalized: dict[str, str] = {}
    for raw_position, raw_candidate in selections.items():
        position = str(raw_position or "").strip()
        candidate_id = str(raw_candidate or "").strip()
        if not position:
            raise InvalidSelectionError("Every selection must name a position")
        if not candidate_id:
            raise InvalidSelectionError(f"No candidate selected for {position}")
        if position in normalized and normalized[position] != candidate_id:
            raise InvalidSelectionError(f"More than one candidate selected for {position}")
        normalized[position] = candidate_id
    return normalized


class BallotService:
    """Validate and persist one voter's slate for an election."""

    def __init__(self, client: Client, clock: Clock = now_utc) -> None:
        self.db = SupabaseService(client)
        self.registry = CandidateRegistry(client)
        self.clock = clock

    def _check_selections(self, election_id: str, selections: dict[str, str]) -> None:
        positions = self.registry.approved_positions(election_id)
        approved_anywhere = {
            candidate_id: position
            for position, candidate_ids in positions.items()
            for candidate_id in candidate_ids
        }

        for position, candidate_id in sorted(selections.items()):
            if position not in positions:
                raise InvalidSelectionError(f"{position} is not contested in this election")
            if candidate_id in positions[position]:
                continue
            if candidate_id in approved_anywhere:
                raise InvalidSelectionError(
                    f"Candidate is standing for {approved_anywhere[candidate_id]}, not {position}"
                )
            raise InvalidSelectionError(
                f"Selected candidate for {position} is not an approved candidate in this election"
            )

    def voted_positions(self, voter_id: str, election_id: str) -> list[str]:
        """Return positions the voter already has a ballot for.

        Advisory only: casting relies on the store's unique constraint.
        """
        rows = self.db.select_many(
            "votes",
            filters={"election_id": election_id, "voter_id": voter_id},
            columns="position",
        )
        return sorted({str(row["position"]) for row in rows})

    def cast_ballots(
        self,
        voter_id: str,
        election_id: str,
        selections: Mapping[str, str],
    ) -> list[dict[str, Any]]:
        """Record one ballot per selected position, all or nothing."""
        election = self.db.select_one(
            "elections", {"id": election_id}, not_found_label="Election"
        )

        state = classify(election, self.clock())
        if state is not ElectionState.ACTIVE:
            raise ElectionNotActiveError(state.value)

        normalized = normalize_selections(selections)
        self._check_selections(election_id, normalized)

        already = set(self.voted_positions(voter_id, election_id)).intersection(normalized)
        if already:
            logger.info(
                "Rejected duplicate ballot from %s in election %s", voter_id, election_id
            )
            raise DuplicateVoteError(already)

        if not normalized:
            raise EmptyBallotError()

        # Re-check the window at write time; validation above may have been slow.
        state = classify(election, self.clock())
        if state is not ElectionState.ACTIVE:
            raise ElectionNotActiveError(state.value)

        payloads = [
            {
                "voter_id": voter_id,
                "election_id": election_id,
                "candidate_id": candidate_id,
                "position": position,
            }
            for position, candidate_id in sorted(normalized.items())
        ]
        try:
            rows = self.db.insert_many("votes", payloads)
        except UniqueViolationError as exc:
            logger.info(
                "Ballot from %s in election %s lost a concurrent duplicate race",
                voter_id,
                election_id,
            )
            on_record = set(self.voted_positions(voter_id, election_id)).intersection(normalized)
            raise DuplicateVoteError(on_record or normalized) from exc
        except ForeignKeyViolationError as exc:
            raise InvalidSelectionError(
                "A selected candidate changed while your ballot was being recorded"
            ) from exc

        logger.info(
            "Recorded %s ballot(s) from %s in election %s", len(rows), voter_id, election_id
        )
        return [{key: row.get(key) for key in RETURNED_COLUMNS} for row in rows]
