"""Service package exports with lazy loading."""

from __future__ import annotations

from importlib import import_module
from typing import Any

_EXPORTS = {
    "BallotService": "app.services.ballot_service",
    "CandidateRegistry": "app.services.candidate_registry",
    "ElectionService": "app.services.election_service",
    "ElectionState": "app.services.election_clock",
    "SupabaseService": "app.services.common",
    "TallyService": "app.services.tally_service",
    "classify": "app.services.election_clock",
    "render_csv": "app.services.report_service",
}

__all__ = sorted(_EXPORTS.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module = import_module(_EXPORTS[name])
    return getattr(module, name)
