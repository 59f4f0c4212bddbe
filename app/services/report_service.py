"""CSV rendering of election results."""

from __future__ import annotations

import csv
import io
import re
import unicodedata
from datetime import datetime
from typing import Any
from urllib.parse import quote

HEADER = ["Rank", "Candidate Name", "Department", "Party", "Position", "Votes", "Percentage"]


def report_filename(title: str | None) -> str:
    """Return the download filename for an election's report."""
    cleaned = re.sub(r'["\\/]', "", (title or "").strip())
    slug = re.sub(r"\s+", "-", cleaned).strip("-") or "results"
    return f"election-results-{slug}.csv"


def content_disposition(filename: str) -> str:
    """Build an attachment header that survives non-Latin-1 filenames.

    Clients that understand RFC 6266 use the UTF-8 ``filename*``; older ones
    fall back to an ASCII-only ``filename``.
    """
    ascii_name = unicodedata.normalize("NFKD", filename).encode("ascii", "ignore").decode()
    ascii_name = re.sub(r"[^A-Za-z0-9._-]+", "-", ascii_name)
    ascii_name = re.sub(r"-{2,}", "-", ascii_name) or "election-results.csv"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def render_csv(results: dict[str, Any], generated_at: datetime) -> str:
    """Render a tally (as returned by ``TallyService``) to CSV text."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Election Results Report"])
    writer.writerow(["Election:", results.get("title") or "Unknown"])
    writer.writerow(["Total Votes:", str(results.get("total_ballots", 0))])
    writer.writerow(["Generated:", generated_at.isoformat(timespec="seconds")])
    writer.writerow([])
    writer.writerow(HEADER)
    for entry in results.get("results", []):
        writer.writerow(
            [
                entry["rank"],
                entry["candidate_name"],
                entry["department"],
                entry["party_name"],
                entry["position"],
                entry["vote_count"],
                f"{entry['percentage']}%",
            ]
        )
    return buffer.getvalue()
