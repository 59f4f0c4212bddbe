"""Write an election's results report as CSV."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def parse_args() -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Export the tally of one election to a CSV report.",
    )
    parser.add_argument(
        "election_id",
        type=str,
        help="Identifier of the election to export.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination file (default: election-results-<title>.csv in the cwd).",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the report instead of writing a file.",
    )
    return parser.parse_args()


def export_results(election_id: str, output: Path | None, to_stdout: bool) -> Path | None:
    """Compute the tally and write it out; return the written path."""
    from app.services.report_service import render_csv, report_filename
    from app.services.tally_service import TallyService
    from app.utils.supabase_client import get_service_client
    from app.utils.time import now_utc

    results = TallyService(get_service_client()).compute_results(election_id)
    content = render_csv(results, generated_at=now_utc())
    if to_stdout:
        sys.stdout.write(content)
        return None

    destination = output or Path(report_filename(results["title"]))
    destination.write_text(content, encoding="utf-8")
    return destination


def main() -> None:
    """CLI entry point."""
    args = parse_args()
    from app.utils.errors import AppError

    try:
        destination = export_results(args.election_id, args.output, args.stdout)
    except AppError as exc:
        print(f"Export failed: {exc.message}", file=sys.stderr)
        raise SystemExit(1) from exc

    if destination is not None:
        print(f"Wrote results for {args.election_id} to {destination}")


if __name__ == "__main__":
    main()
