"""Load sales rows from files or URLs, falling back across sources."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from io import StringIO
from pathlib import Path

import pandas as pd
import requests

from sales_records import SalesDataError, normalize_frame, normalize_header


logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ["DIVISION", "BRANCH NAME", "BRAND", "ITEM DESCRIPTION"]
MIN_LOCAL_LENGTH = 50
MIN_REMOTE_LENGTH = 100
REQUEST_TIMEOUT = 30


def read_sales_table(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        return pd.read_excel(path, dtype=str, keep_default_na=False)
    return pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)


def validate_headers(
    columns: Iterable[object], required: Iterable[str] = REQUIRED_HEADERS
) -> None:
    present = {normalize_header(column) for column in columns}
    missing = [header for header in required if header not in present]
    if missing:
        raise SalesDataError(f"Missing required columns: {', '.join(missing)}")


def prepare_rows(
    raw: pd.DataFrame, required: Iterable[str] = REQUIRED_HEADERS
) -> pd.DataFrame:
    if len(raw.columns) == 0 or raw.empty:
        raise SalesDataError("Parsed data is empty or invalid format.")
    validate_headers(raw.columns, required)
    return normalize_frame(raw)


def load_sales_rows(
    path: Path, required: Iterable[str] = REQUIRED_HEADERS
) -> pd.DataFrame:
    return prepare_rows(read_sales_table(path), required)


def parse_sales_text(
    text: str, required: Iterable[str] = REQUIRED_HEADERS
) -> pd.DataFrame:
    try:
        raw = pd.read_csv(StringIO(text), dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise SalesDataError(f"Failed to parse CSV data: {exc}") from exc
    return prepare_rows(raw, required)


def _looks_like_html(text: str) -> bool:
    return text.lstrip().startswith("<")


def _read_local(source: Path) -> str:
    text = source.read_text(encoding="utf-8-sig")
    if _looks_like_html(text) or len(text) <= MIN_LOCAL_LENGTH:
        raise SalesDataError(f"{source} does not look like a sales CSV")
    return text


def _read_remote(url: str) -> str:
    response = requests.get(url, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    text = response.text
    if _looks_like_html(text) or len(text) < MIN_REMOTE_LENGTH:
        raise SalesDataError("Received invalid data (likely HTML error page)")
    return text


def is_url(source: str | Path) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


def fetch_sales_source(
    sources: Iterable[str | Path],
    on_progress: Callable[[str], None] | None = None,
) -> tuple[str | Path, str]:
    """Return the first source that yields usable CSV text, with that text."""
    attempted = 0
    for index, source in enumerate(sources, start=1):
        attempted += 1
        remote = is_url(source)
        if on_progress:
            on_progress(
                f"Attempting download via source {index}..."
                if remote
                else f"Checking for local data file {source}..."
            )
        try:
            if remote:
                return source, _read_remote(str(source))
            return source, _read_local(Path(source))
        except (OSError, requests.RequestException, SalesDataError) as exc:
            logger.warning("Sales source %s failed: %s", source, exc)

    raise SalesDataError(
        f"All data fetch attempts failed ({attempted} sources). "
        "Check the connection or place sales_data.csv in the data folder."
    )


def fetch_sales_text(
    sources: Iterable[str | Path],
    on_progress: Callable[[str], None] | None = None,
) -> str:
    return fetch_sales_source(sources, on_progress)[1]


def load_from_sources(
    sources: Iterable[str | Path],
    on_progress: Callable[[str], None] | None = None,
    required: Iterable[str] = REQUIRED_HEADERS,
) -> pd.DataFrame:
    return parse_sales_text(fetch_sales_text(sources, on_progress), required)
