"""Vote counts, percentages and rankings for an election."""

from __future__ import annotations

from collections import Counter
from typing import Any

from app.services.candidate_registry import UNKNOWN, CandidateRegistry
from app.services.common import SupabaseService
from supabase import Client

# Ballots embed through the composite (candidate, election, position) key.
TALLY_COLUMNS = (
    "id,position,party_name,is_approved,"
    "votes!votes_candidate_fk(position),"
    "profiles(full_name,department)"
)


def percentage(count: int, total: int) -> float:
    """Share of ``total`` as a percentage rounded to two places; 0 when total is 0."""
    if total <= 0:
        return 0.0
    return round(count / total * 100, 2)


def rank_entries(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sort by votes descending then candidate id, and rank within each position."""
    ordered = sorted(entries, key=lambda row: (-int(row["vote_count"]), str(row["candidate_id"])))
    next_rank: dict[str, int] = {}
    for entry in ordered:
        position = str(entry["position"])
        next_rank[position] = next_rank.get(position, 0) + 1
        entry["rank"] = next_rank[position]
    return ordered


class TallyService:
    """Aggregate ballot rows into a results view.

    Every recorded ballot counts, including ballots for candidates whose
    approval was withdrawn after voting; those candidates are reported with
    ``is_approved`` false.
    """

    def __init__(self, client: Client) -> None:
        self.db = SupabaseService(client)
        self.registry = CandidateRegistry(client)

    def compute_results(self, election_id: str) -> dict[str, Any]:
        """Return per-candidate counts, per-position totals and rankings."""
        election = self.registry.ensure_election(election_id)

        # Candidates, their ballots and profiles come back from one statement,
        # so every count in a result describes the same moment.
        candidates = self.db.select_many(
            "candidates",
            filters={"election_id": election_id},
            columns=TALLY_COLUMNS,
        )
        counts: Counter[str] = Counter()
        position_totals: Counter[str] = Counter()
        for candidate in candidates:
            for ballot in candidate.get("votes") or []:
                counts[str(candidate["id"])] += 1
                position_totals[str(ballot["position"])] += 1

        entries: list[dict[str, Any]] = []
        for candidate in candidates:
            candidate_id = str(candidate["id"])
            vote_count = counts.get(candidate_id, 0)
            if not candidate.get("is_approved") and not vote_count:
                continue
            position = str(candidate["position"])
            profile = candidate.get("profiles") or {}
            entries.append(
                {
                    "candidate_id": candidate_id,
                    "candidate_name": profile.get("full_name") or UNKNOWN,
                    "department": profile.get("department") or UNKNOWN,
                    "party_name": candidate.get("party_name") or "",
                    "position": position,
                    "vote_count": vote_count,
                    "percentage": percentage(vote_count, position_totals.get(position, 0)),
                    "is_approved": bool(candidate.get("is_approved")),
                    "rank": 0,
                }
            )

        results = rank_entries(entries)
        positions = []
        for position in sorted({entry["position"] for entry in results}):
            leader = next(entry for entry in results if entry["position"] == position)
            total = position_totals.get(position, 0)
            positions.append(
                {
                    "position": position,
                    "total_votes": total,
                    "leader_candidate_id": leader["candidate_id"] if total else None,
                }
            )

        return {
            "election_id": str(election["id"]),
            "title": election.get("title", ""),
            "total_ballots": sum(position_totals.values()),
            "positions": positions,
            "results": results,
        }
