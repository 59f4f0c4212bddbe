"""Election administration: creation, edits, activation and removal."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from app.services.common import SupabaseService
from app.services.election_clock import with_state
from app.utils.errors import ConflictError, ForeignKeyViolationError, InvalidInputError
from app.utils.time import Clock, now_utc, parse_timestamp, to_iso
from supabase import Client

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = {"title", "description", "start_time", "end_time", "is_active"}


def validate_bounds(start_time: str | datetime, end_time: str | datetime) -> None:
    """Raise InvalidInputError unless the election ends after it starts."""
    if parse_timestamp(end_time) <= parse_timestamp(start_time):
        raise InvalidInputError("End time must be after start time")


class ElectionService:
    """Organizer-facing election lifecycle."""

    def __init__(self, client: Client, clock: Clock = now_utc) -> None:
        self.db = SupabaseService(client)
        self.clock = clock

    def _get_row(self, election_id: str) -> dict[str, Any]:
        return self.db.select_one("elections", {"id": election_id}, not_found_label="Election")

    def get(self, election_id: str) -> dict[str, Any]:
        """Return one election annotated with its current state."""
        return with_state(self._get_row(election_id), self.clock())

    def list_all(self) -> list[dict[str, Any]]:
        """Return every election, newest first."""
        now = self.clock()
        rows = self.db.select_many("elections", order_by="created_at", descending=True)
        return [with_state(row, now) for row in rows]

    def list_open(self) -> list[dict[str, Any]]:
        """Return elections accepting ballots right now, earliest start first."""
        now = self.clock()
        current = to_iso(now)
        rows = self.db.execute(
            self.db.client.table("elections")
            .select("*")
            .eq("is_active", True)
            .lte("start_time", current)
            .gte("end_time", current)
            .order("start_time"),
            default=[],
        )
        return [with_state(row, now) for row in rows]

    def create(
        self,
        title: str,
        start_time: datetime,
        end_time: datetime,
        description: str = "",
        is_active: bool = False,
    ) -> dict[str, Any]:
        """Create an election."""
        if not title.strip():
            raise InvalidInputError("Election title is required")
        validate_bounds(start_time, end_time)

        election = self.db.insert_one(
            "elections",
            {
                "title": title.strip(),
                "description": description,
                "start_time": to_iso(start_time),
                "end_time": to_iso(end_time),
                "is_active": is_active,
            },
        )
        logger.info("Created election %s", election["id"])
        return with_state(election, self.clock())

    def update(self, election_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update, checking the bounds against the merged row."""
        current = self._get_row(election_id)
        payload = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS}
        if not payload:
            return with_state(current, self.clock())

        if "title" in payload:
            payload["title"] = str(payload["title"]).strip()
            if not payload["title"]:
                raise InvalidInputError("Election title is required")
        for key in ("start_time", "end_time"):
            if key in payload:
                payload[key] = to_iso(parse_timestamp(payload[key]))

        merged = {**current, **payload}
        validate_bounds(merged["start_time"], merged["end_time"])

        rows = self.db.update("elections", {"id": election_id}, payload)
        updated = rows[0] if rows else merged
        return with_state(updated, self.clock())

    def set_active(self, election_id: str, is_active: bool) -> dict[str, Any]:
        """Flip the organizer kill switch."""
        self._get_row(election_id)
        rows = self.db.update("elections", {"id": election_id}, {"is_active": is_active})
        logger.info(
            "Election %s %s", election_id, "activated" if is_active else "deactivated"
        )
        return with_state(rows[0], self.clock()) if rows else self.get(election_id)

    def delete(self, election_id: str, cascade: bool = False) -> dict[str, Any]:
        """Delete an election.

        Candidates and the election row are removed in one database function.
        Ballots are only removed when ``cascade`` is set; otherwise the ballot
        foreign key aborts the whole delete while any ballot exists.
        """
        election = self._get_row(election_id)
        try:
            rows = self.db.execute(
                self.db.client.rpc(
                    "delete_election",
                    {"p_election_id": election_id, "p_cascade": cascade},
                ),
                default=[],
            )
        except ForeignKeyViolationError as exc:
            ballot_count = self.db.count("votes", {"election_id": election_id})
            raise ConflictError(
                f"Election has {ballot_count} recorded ballot(s); confirm a cascade delete",
                code="ELECTION_HAS_BALLOTS",
            ) from exc

        summary = rows[0] if rows else {}
        removed_candidates = int(summary.get("deleted_candidates") or 0)
        removed_ballots = int(summary.get("deleted_ballots") or 0)
        logger.info(
            "Deleted election %s with %s candidate(s) and %s ballot(s)",
            election_id,
            removed_candidates,
            removed_ballots,
        )
        return {
            "election": election,
            "deleted_candidates": removed_candidates,
            "deleted_ballots": removed_ballots,
        }
