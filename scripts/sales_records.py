"""Normalize raw sales rows into the canonical record shape."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, fields

import pandas as pd


class SalesDataError(ValueError):
    """Raised when a sales source cannot be turned into usable rows."""


# Source header -> record field.
STRING_HEADER_MAP = {
    "DIVISION": "division",
    "DEPARTMENT": "department",
    "CATEGORY": "category",
    "SUBCATEGORY": "subcategory",
    "CLASS": "class_name",
    "BRAND": "brand",
    "BRANCH CODE": "branch_code",
    "BRANCH NAME": "branch_name",
    "ITEM CODE": "item_code",
    "ITEM DESCRIPTION": "item_description",
}

SALES_HEADER_MAP = {
    "2024 CASH SALES": "cash_sales_2024",
    "2024 CREDIT SALES": "credit_sales_2024",
    "2024 TOTAL SALES": "total_sales_2024",
    "2025 CASH SALES": "cash_sales_2025",
    "2025 CREDIT SALES": "credit_sales_2025",
    "2025 TOTAL SALES": "total_sales_2025",
}

LEGACY_TOTAL_HEADERS = {
    "SALES2024": "total_sales_2024",
    "SALES2025": "total_sales_2025",
}

KNOWN_HEADERS = [*STRING_HEADER_MAP, *SALES_HEADER_MAP, *LEGACY_TOTAL_HEADERS]

# Order matters: it is the order of the search index.
DIMENSION_COLUMNS = [
    "division",
    "department",
    "category",
    "subcategory",
    "class_name",
    "brand",
    "branch_name",
    "branch_code",
    "item_code",
    "item_description",
]

METRIC_COLUMNS = [
    "cash_sales_2024",
    "credit_sales_2024",
    "total_sales_2024",
    "cash_sales_2025",
    "credit_sales_2025",
    "total_sales_2025",
]

MISSING_TOKENS = {"", "N/A", "#N/A"}

_NUMBER_PREFIX = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_NON_NUMERIC = re.compile(r"[^0-9.]")


@dataclass(frozen=True)
class SalesRecord:
    division: str = ""
    department: str = ""
    category: str = ""
    subcategory: str = ""
    class_name: str = ""
    brand: str = ""
    branch_code: str = ""
    branch_name: str = ""
    item_code: str = ""
    item_description: str = ""
    cash_sales_2024: float = 0.0
    credit_sales_2024: float = 0.0
    total_sales_2024: float = 0.0
    cash_sales_2025: float = 0.0
    credit_sales_2025: float = 0.0
    total_sales_2025: float = 0.0
    search_index: str = ""


RECORD_COLUMNS = [field.name for field in fields(SalesRecord)]


def normalize_header(header: object) -> str:
    return str(header or "").strip().upper()


def parse_sales_value(value: object) -> float:
    """Parse a sales cell leniently.

    Blank and N/A cells are zero. The sign comes from a leading or trailing
    minus or from accounting parentheses; the magnitude is the longest float
    literal left after stripping everything but digits and dots.
    """
    if value is None:
        return 0.0
    text = str(value).strip()
    if text == "" or text.lower() in ("n/a", "#n/a"):
        return 0.0

    negative = (
        text.startswith("-")
        or text.endswith("-")
        or (text.startswith("(") and text.endswith(")"))
    )
    match = _NUMBER_PREFIX.match(_NON_NUMERIC.sub("", text))
    if not match:
        return 0.0

    magnitude = abs(float(match.group(0)))
    if magnitude == 0:
        return 0.0
    return -magnitude if negative else magnitude


def clean_text(value: object) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    text = str(value).strip()
    if text in MISSING_TOKENS:
        return ""
    return text.upper()


def resolve_total(total: float, cash: float, credit: float, legacy: float) -> float:
    # Zero totals fall through to cash + credit, then to the legacy column.
    return total or (cash + credit) or legacy or 0.0


def build_search_index(values: Iterable[str]) -> str:
    return " ".join(str(value or "").lower() for value in values)


def _header_lookup(headers: Iterable[object]) -> dict[str, object]:
    lookup: dict[str, object] = {}
    for header in headers:
        key = normalize_header(header)
        if key in KNOWN_HEADERS and key not in lookup:
            lookup[key] = header
    return lookup


def normalize_row(
    raw: Mapping[object, object], headers: Iterable[object] | None = None
) -> SalesRecord:
    lookup = _header_lookup(raw.keys() if headers is None else headers)

    def cell(header: str) -> object:
        source = lookup.get(header)
        return raw.get(source) if source is not None else None

    values: dict[str, object] = {
        field: clean_text(cell(header)) for header, field in STRING_HEADER_MAP.items()
    }
    for header, field in SALES_HEADER_MAP.items():
        values[field] = parse_sales_value(cell(header))

    for header, field in LEGACY_TOTAL_HEADERS.items():
        year = field[-4:]
        values[field] = resolve_total(
            values[field],
            values[f"cash_sales_{year}"],
            values[f"credit_sales_{year}"],
            parse_sales_value(cell(header)),
        )

    values["search_index"] = build_search_index(
        values[column] for column in DIMENSION_COLUMNS
    )
    return SalesRecord(**values)


def records_to_frame(records: Iterable[SalesRecord]) -> pd.DataFrame:
    frame = pd.DataFrame([asdict(record) for record in records], columns=RECORD_COLUMNS)
    return _coerce_types(frame)


def normalize_frame(raw: pd.DataFrame) -> pd.DataFrame:
    """Normalize a whole source table into RECORD_COLUMNS."""
    lookup = _header_lookup(raw.columns)
    out = pd.DataFrame(index=range(len(raw)))

    def column(header: str) -> pd.Series | None:
        source = lookup.get(header)
        if source is None:
            return None
        return raw[source].reset_index(drop=True)

    for header, field in STRING_HEADER_MAP.items():
        series = column(header)
        out[field] = "" if series is None else series.map(clean_text)

    for header, field in SALES_HEADER_MAP.items():
        series = column(header)
        out[field] = 0.0 if series is None else series.map(parse_sales_value)

    for header, field in LEGACY_TOTAL_HEADERS.items():
        year = field[-4:]
        series = column(header)
        legacy = (
            pd.Series(0.0, index=out.index)
            if series is None
            else series.map(parse_sales_value)
        )
        out[field] = [
            resolve_total(total, cash, credit, fallback)
            for total, cash, credit, fallback in zip(
                out[field],
                out[f"cash_sales_{year}"],
                out[f"credit_sales_{year}"],
                legacy,
            )
        ]

    out["search_index"] = [
        build_search_index(values)
        for values in out[DIMENSION_COLUMNS].itertuples(index=False, name=None)
    ]
    return _coerce_types(out[RECORD_COLUMNS])


def _coerce_types(frame: pd.DataFrame) -> pd.DataFrame:
    out = frame.copy()
    for column in DIMENSION_COLUMNS + ["search_index"]:
        out[column] = out[column].astype(object).fillna("").astype(str)
    for column in METRIC_COLUMNS:
        out[column] = pd.to_numeric(out[column], errors="coerce").fillna(0.0).astype(float)
    return out.reset_index(drop=True)
