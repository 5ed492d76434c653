"""CSV, PDF and Excel renderings of drill-down tables."""

from __future__ import annotations

import math
import numbers
from collections.abc import Iterable
from io import BytesIO
from pathlib import Path

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from sales_aggregation import is_unbounded_growth
from sales_drilldown import PERCENT_COLUMNS, DrilldownTable


NEW_GROWTH_LABEL = "New"
HEADER_FILL = colors.Color(34 / 255, 197 / 255, 94 / 255)


def format_percent(value: object) -> str:
    if value is None or pd.isna(value):
        return "-"
    return f"{float(value):.2f}%"


def format_growth(value: object) -> str:
    if is_unbounded_growth(value):
        return NEW_GROWTH_LABEL
    return format_percent(value)


def format_abbreviated(value: object) -> str:
    if value is None or pd.isna(value):
        return "-"
    number = float(value)
    magnitude = abs(number)
    for threshold, suffix in ((1e9, "B"), (1e6, "M"), (1e3, "K")):
        if magnitude >= threshold:
            return f"{number / threshold:.2f}{suffix}"
    return f"{number:.2f}"


def _cell(column: str, value: object, abbreviate: bool) -> object:
    if column.endswith("growth"):
        return format_growth(value)
    if column in PERCENT_COLUMNS:
        return format_percent(value)
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        if column == "row_number":
            return int(value)
        return format_abbreviated(value) if abbreviate else value
    if abbreviate:
        return value or "-"
    return value


def display_frame(table: DrilldownTable, abbreviate: bool = False) -> pd.DataFrame:
    """Rows of ``table`` as shown on screen, one column per header label."""
    records = []
    for record in table.rows.to_dict(orient="records"):
        records.append(
            [_cell(column, record.get(column), abbreviate) for column in table.columns]
        )
    return pd.DataFrame(records, columns=table.labels)


def drilldown_to_csv(table: DrilldownTable) -> str:
    return display_frame(table).to_csv(index=False, lineterminator="\n")


def drilldown_to_pdf(table: DrilldownTable) -> bytes:
    buffer = BytesIO()
    document = SimpleDocTemplate(buffer, pagesize=landscape(A4), title=table.title)
    styles = getSampleStyleSheet()

    frame = display_frame(table, abbreviate=True)
    body = [list(frame.columns)] + [[str(v) for v in row] for row in frame.itertuples(index=False)]
    grid = Table(body, repeatRows=1)
    grid.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), HEADER_FILL),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
                ("FONTSIZE", (0, 0), (-1, -1), 8),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
            ]
        )
    )
    document.build([Paragraph(table.title, styles["Heading2"]), Spacer(1, 6), grid])
    return buffer.getvalue()


def _sheet_name(name: str) -> str:
    # Excel caps sheet names at 31 characters.
    return name[:31]


def write_drilldown_excel(tables: Iterable[DrilldownTable], path: Path) -> Path:
    tables = list(tables)
    if not tables:
        raise ValueError("No drilldown tables to write")
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for table in tables:
            display_frame(table).to_excel(
                writer, sheet_name=_sheet_name(table.view_type), index=False
            )
    return path


def json_safe(value: object) -> object:
    """Replace values JSON cannot carry: unbounded growth and NaN."""
    if isinstance(value, dict):
        return {key: json_safe(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(item) for item in value]
    if is_unbounded_growth(value):
        return NEW_GROWTH_LABEL
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return None
    if isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return float(value)
    return value
