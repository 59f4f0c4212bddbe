"""API router package."""

from app.routers import ballots, candidates, elections, results

__all__ = [
    "ballots",
    "candidates",
    "elections",
    "results",
]
