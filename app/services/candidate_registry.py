"""Approved candidates per election, grouped by contested position."""

from __future__ import annotations

import logging
from typing import Any

from app.services.common import SupabaseService, group_by
from app.utils.errors import ConflictError, ForeignKeyViolationError, InvalidInputError
from supabase import Client

logger = logging.getLogger(__name__)

DEFAULT_PARTY = "Independent"
UNKNOWN = "Unknown"
EDITABLE_FIELDS = {"user_id", "position", "party_name", "manifesto", "is_approved"}


def _sort_key(candidate: dict[str, Any]) -> tuple[str, str, str]:
    return (
        str(candidate["position"]),
        str(candidate.get("created_at") or ""),
        str(candidate["id"]),
    )


def grouped(candidates: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Group candidates by position, positions in lexical order."""
    by_position = group_by(sorted(candidates, key=_sort_key), "position")
    return [
        {"position": position, "candidates": by_position[position]}
        for position in sorted(by_position)
    ]


class CandidateRegistry:
    """Candidate lookups and organizer candidate management.

    Listings are ordered by position label (lexical), then creation time,
    then id, so repeated calls return the same order.
    """

    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)

    def ensure_election(self, election_id: str) -> dict[str, Any]:
        """Return the election row or raise NotFoundError."""
        return self.db.select_one("elections", {"id": election_id}, not_found_label="Election")

    def _with_profiles(self, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        profiles = self.db.get_profiles_map(str(row.get("user_id") or "") for row in rows)
        flattened: list[dict[str, Any]] = []
        for row in rows:
            profile = profiles.get(str(row.get("user_id") or ""), {})
            payload = dict(row)
            payload["full_name"] = profile.get("full_name") or UNKNOWN
            payload["student_id"] = profile.get("student_id")
            payload["department"] = profile.get("department") or UNKNOWN
            flattened.append(payload)
        return flattened

    def _rows(self, election_id: str, approved_only: bool) -> list[dict[str, Any]]:
        filters: dict[str, Any] = {"election_id": election_id}
        if approved_only:
            filters["is_approved"] = True
        rows = self.db.select_many("candidates", filters=filters)
        return sorted(rows, key=_sort_key)

    def list_approved(self, election_id: str, with_profiles: bool = True) -> list[dict[str, Any]]:
        """Return the approved candidates voters can choose from."""
        self.ensure_election(election_id)
        rows = self._rows(election_id, approved_only=True)
        return self._with_profiles(rows) if with_profiles else rows

    def list_all(self, election_id: str) -> list[dict[str, Any]]:
        """Return every candidate in the election, approved or not."""
        self.ensure_election(election_id)
        return self._with_profiles(self._rows(election_id, approved_only=False))

    def list_grouped(self, election_id: str, include_unapproved: bool = False) -> list[dict[str, Any]]:
        """Return ``[{position, candidates}]`` for display."""
        if include_unapproved:
            return grouped(self.list_all(election_id))
        return grouped(self.list_approved(election_id))

    def approved_positions(self, election_id: str) -> dict[str, set[str]]:
        """Map each contested position to its approved candidate ids."""
        positions: dict[str, set[str]] = {}
        for row in self.list_approved(election_id, with_profiles=False):
            positions.setdefault(str(row["position"]), set()).add(str(row["id"]))
        return positions

    def get(self, candidate_id: str) -> dict[str, Any]:
        """Return one candidate with profile fields."""
        row = self.db.select_one("candidates", {"id": candidate_id}, not_found_label="Candidate")
        return self._with_profiles([row])[0]

    def create(
        self,
        election_id: str,
        user_id: str,
        position: str,
        party_name: str | None = None,
        manifesto: str | None = None,
        is_approved: bool = True,
    ) -> dict[str, Any]:
        """Register a candidate; organizer-created candidates are approved by default."""
        self.ensure_election(election_id)
        position_label = position.strip()
        if not position_label:
            raise InvalidInputError("Position is required")
        if not user_id.strip():
            raise InvalidInputError("Candidate person record is required")

        row = self.db.insert_one(
            "candidates",
            {
                "election_id": election_id,
                "user_id": user_id.strip(),
                "position": position_label,
                "party_name": (party_name or "").strip() or DEFAULT_PARTY,
                "manifesto": manifesto or "",
                "is_approved": is_approved,
            },
        )
        logger.info("Added candidate %s to election %s", row["id"], election_id)
        return self._with_profiles([row])[0]

    def update(self, candidate_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial candidate update.

        Moving a candidate that already has ballots to another position is
        rejected by the store's ballot foreign key.
        """
        current = self.db.select_one(
            "candidates", {"id": candidate_id}, not_found_label="Candidate"
        )
        payload = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        if "position" in payload:
            payload["position"] = str(payload["position"]).strip()
            if not payload["position"]:
                raise InvalidInputError("Position is required")
        if "party_name" in payload:
            payload["party_name"] = (payload["party_name"] or "").strip() or DEFAULT_PARTY
        if not payload:
            return self._with_profiles([current])[0]

        rows = self.db.update("candidates", {"id": candidate_id}, payload)
        updated = rows[0] if rows else {**current, **payload}
        return self._with_profiles([updated])[0]

    def set_approval(self, candidate_id: str, is_approved: bool) -> dict[str, Any]:
        """Approve or withdraw approval for a candidate."""
        return self.update(candidate_id, {"is_approved": is_approved})

    def delete(self, candidate_id: str, cascade: bool = False) -> dict[str, Any]:
        """Remove a candidate; ballots for them are only removed with ``cascade``.

        Without ``cascade`` only the candidate row is deleted, and the ballot
        foreign key refuses it while any ballot names the candidate. The
        cascade runs in a single database function so ballots and candidate
        go together or not at all.
        """
        candidate = self.db.select_one(
            "candidates", {"id": candidate_id}, not_found_label="Candidate"
        )
        if cascade:
            rows = self.db.execute(
                self.db.client.rpc("delete_candidate_cascade", {"p_candidate_id": candidate_id}),
                default=[],
            )
            removed_ballots = int(rows[0].get("deleted_ballots") or 0) if rows else 0
        else:
            try:
                self.db.delete("candidates", {"id": candidate_id})
            except ForeignKeyViolationError as exc:
                ballot_count = self.db.count("votes", {"candidate_id": candidate_id})
                raise ConflictError(
                    f"Candidate has {ballot_count} recorded ballot(s); confirm a cascade delete",
                    code="CANDIDATE_HAS_BALLOTS",
                ) from exc
            removed_ballots = 0

        logger.info("Deleted candidate %s and %s ballot(s)", candidate_id, removed_ballots)
        return {"candidate": candidate, "deleted_ballots": removed_ballots}
