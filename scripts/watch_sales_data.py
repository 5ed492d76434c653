#!/usr/bin/env python3
"""Poll the sales sources and rebuild the latest report whenever the data changes.

Each round fetches from the first usable source (local file, then fallback
URLs). A fetch whose content hash matches the last successful build is a
no-op. A failed round is logged and the previous report stays in place.
"""

from __future__ import annotations

import argparse
import json
import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path

from prepare_sales_report import text_fingerprint, write_latest_outputs
from sales_aggregation import SalesProcessingError
from sales_records import SalesDataError
from sales_source import fetch_sales_source, parse_sales_text


logger = logging.getLogger(__name__)

REFRESH_ERRORS = (SalesDataError, SalesProcessingError, OSError)


def read_state(path: Path) -> dict:
    if not path.exists():
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


def refresh(
    sources: Sequence[str | Path],
    processed_root: Path,
    state_file: Path,
    on_progress: Callable[[str], None] | None = None,
) -> dict | None:
    """Rebuild ``latest`` if the fetched data differs from the last build.

    Returns the generated outputs, or None when nothing changed.
    """
    state = read_state(state_file)
    origin, text = fetch_sales_source(sources, on_progress)
    fingerprint = text_fingerprint(text)
    if state.get("sha256") == fingerprint["sha256"]:
        return None

    generated = write_latest_outputs(
        parse_sales_text(text), processed_root, str(origin), fingerprint
    )
    state_file.parent.mkdir(parents=True, exist_ok=True)
    state_file.write_text(
        json.dumps(
            {
                "source": str(origin),
                "sha256": fingerprint["sha256"],
                "rows": generated["manifest"]["rows"],
                "refreshed_at": datetime.now().isoformat(timespec="seconds"),
                "latest_root": generated["latest_root"],
            },
            ensure_ascii=False,
            indent=2,
        ),
        encoding="utf-8",
    )
    return generated


def poll(
    sources: Sequence[str | Path],
    processed_root: Path,
    state_file: Path,
    interval: float,
    rounds: int | None = None,
) -> int:
    """Run ``rounds`` refreshes (forever when None); return the failure count."""
    failures = 0
    completed = 0
    while rounds is None or completed < rounds:
        try:
            generated = refresh(sources, processed_root, state_file)
        except REFRESH_ERRORS as exc:
            failures += 1
            logger.error("Sales refresh failed, keeping previous report: %s", exc)
        else:
            if generated is None:
                print("No changes detected.")
            else:
                print(
                    f"Updated latest files in: {generated['latest_root']} "
                    f"({generated['manifest']['rows']} rows)"
                )
        completed += 1
        if rounds is None or completed < rounds:
            time.sleep(interval)
    return failures


def parse_args() -> argparse.Namespace:
    root = Path(__file__).resolve().parents[1]
    parser = argparse.ArgumentParser(
        description="Poll the sales sources and rebuild the report when the data changes."
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=root / "Data" / "sales_data.csv",
        help="Local sales csv tried before any --source.",
    )
    parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        default=[],
        help="Fallback CSV path or http(s) URL (repeatable).",
    )
    parser.add_argument(
        "--processed-root",
        type=Path,
        default=root / "Data" / "processed",
        help="Root directory for latest processed files.",
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        default=root / "Data" / "processed" / ".watch_state.json",
        help="Hash of the last successfully built data.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=60,
        help="Polling interval in seconds.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one refresh and exit.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO)
    failures = poll(
        [args.input, *args.sources],
        args.processed_root,
        args.state_file,
        args.interval,
        rounds=1 if args.once else None,
    )
    if args.once and failures:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
