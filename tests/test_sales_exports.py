import math

import numpy as np
import pandas as pd
import pytest

from sales_drilldown import build_drilldown
from sales_exports import (
    display_frame,
    drilldown_to_csv,
    drilldown_to_pdf,
    format_abbreviated,
    format_growth,
    format_percent,
    json_safe,
    write_drilldown_excel,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (math.inf, "New"),
        (16, "16.00%"),
        (-100.0, "-100.00%"),
        (None, "-"),
        (float("nan"), "-"),
    ],
)
def test_format_growth(value, expected):
    assert format_growth(value) == expected


def test_format_percent_and_abbreviated():
    assert format_percent(12.345) == "12.35%"
    assert format_abbreviated(1_500_000) == "1.50M"
    assert format_abbreviated(2_000_000_000) == "2.00B"
    assert format_abbreviated(-2500) == "-2.50K"
    assert format_abbreviated(999) == "999.00"


def test_display_frame_labels_and_growth(sample_rows):
    frame = display_frame(build_drilldown(sample_rows, "brands"))
    assert list(frame.columns[:3]) == ["#", "Name", "Total 2025"]
    lumo = frame.set_index("Name").loc["LUMO"]
    assert lumo["Total GR%"] == "New"
    assert lumo["Total 2025"] == 80
    assert lumo["#"] == 2


def test_csv_quotes_commas_and_marks_new(sample_rows):
    text = drilldown_to_csv(build_drilldown(sample_rows, "items"))
    lines = text.splitlines()
    assert lines[0].startswith("#,Item Code,Name,Total 2025")
    assert any('"CRUNCH CHIPS, LARGE"' in line for line in lines)
    assert any("LUMO WASH" in line and ",New," in line for line in lines)
    assert len(lines) == 6


def test_pdf_bytes(sample_rows):
    data = drilldown_to_pdf(build_drilldown(sample_rows, "pareto_brands"))
    assert data.startswith(b"%PDF")


def test_excel_has_one_sheet_per_view(sample_rows, tmp_path):
    tables = [build_drilldown(sample_rows, view) for view in ("brands", "lost_items")]
    path = write_drilldown_excel(tables, tmp_path / "out" / "drilldown.xlsx")

    sheets = pd.read_excel(path, sheet_name=None)
    assert list(sheets) == ["brands", "lost_items"]
    assert sheets["lost_items"]["Name"].tolist() == ["CRUNCH CHIPS"]


def test_excel_requires_tables(tmp_path):
    with pytest.raises(ValueError):
        write_drilldown_excel([], tmp_path / "empty.xlsx")


def test_json_safe():
    payload = {
        "growth": math.inf,
        "drop": -math.inf,
        "missing": float("nan"),
        "count": np.int64(3),
        "share": np.float64(1.5),
        "rows": [{"growth": np.float64(math.inf)}, (1, "a")],
        "flag": True,
    }
    assert json_safe(payload) == {
        "growth": "New",
        "drop": None,
        "missing": None,
        "count": 3,
        "share": 1.5,
        "rows": [{"growth": "New"}, [1, "a"]],
        "flag": True,
    }
    assert type(json_safe(np.int64(3))) is int
