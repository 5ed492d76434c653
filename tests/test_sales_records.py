import math

import pandas as pd
import pytest

from sales_records import (
    RECORD_COLUMNS,
    SalesRecord,
    normalize_frame,
    normalize_row,
    parse_sales_value,
    records_to_frame,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", 0.0),
        ("   ", 0.0),
        ("N/A", 0.0),
        ("n/a", 0.0),
        ("#N/A", 0.0),
        (None, 0.0),
        ("1,234.50", 1234.5),
        ("$ 1,000", 1000.0),
        ("-15", -15.0),
        ("200-", -200.0),
        ("(200)", -200.0),
        ("1.2.3", 1.2),
        (".5", 0.5),
        ("7.", 7.0),
        ("abc", 0.0),
        ("-", 0.0),
        (42, 42.0),
        (-3.5, -3.5),
    ],
)
def test_parse_sales_value(raw, expected):
    assert parse_sales_value(raw) == expected


def test_parse_sales_value_never_returns_negative_zero():
    value = parse_sales_value("-0")
    assert value == 0.0
    assert math.copysign(1, value) == 1


def test_normalize_row_matches_headers_case_insensitively():
    record = normalize_row(
        {
            " division ": "beauty",
            "Brand": " acme ",
            "branch name": "north",
            "Item Description": "day cream",
            "2025 total sales": "1,500",
            "2024 Cash Sales": "(20)",
        }
    )

    assert record.division == "BEAUTY"
    assert record.brand == "ACME"
    assert record.branch_name == "NORTH"
    assert record.item_description == "DAY CREAM"
    assert record.department == ""
    assert record.total_sales_2025 == 1500.0
    assert record.cash_sales_2024 == -20.0
    assert record.credit_sales_2025 == 0.0


def test_normalize_row_blanks_missing_text_tokens():
    record = normalize_row({"DIVISION": "N/A", "BRAND": "#N/A", "CLASS": ""})
    assert (record.division, record.brand, record.class_name) == ("", "", "")


def test_normalize_row_uses_only_given_headers():
    raw = {"DIVISION": "beauty", "BRAND": "acme"}
    record = normalize_row(raw, headers=["DIVISION"])
    assert record.division == "BEAUTY"
    assert record.brand == ""


def test_total_falls_back_to_cash_plus_credit_then_legacy():
    split = normalize_row(
        {"2024 TOTAL SALES": "0", "2024 CASH SALES": "30", "2024 CREDIT SALES": "20"}
    )
    legacy = normalize_row({"SALES2025": "75"})
    explicit = normalize_row({"2025 TOTAL SALES": "10", "SALES2025": "75"})

    assert split.total_sales_2024 == 50.0
    assert legacy.total_sales_2025 == 75.0
    assert explicit.total_sales_2025 == 10.0


def test_search_index_is_lowercase_dimensions_in_order():
    record = normalize_row(
        {
            "DIVISION": "Beauty",
            "BRAND": "Acme",
            "BRANCH NAME": "North",
            "BRANCH CODE": "b01",
            "ITEM CODE": "I001",
            "ITEM DESCRIPTION": "Day Cream",
        }
    )
    assert record.search_index == "beauty     acme north b01 i001 day cream"


def test_normalize_frame_agrees_with_normalize_row():
    raw_rows = [
        {"DIVISION": "beauty", "Brand": "acme", "2025 TOTAL SALES": "(5)", "ITEM CODE": "x1"},
        {"DIVISION": "food", "Brand": "N/A", "2024 CASH SALES": "7", "2024 CREDIT SALES": "3"},
    ]
    expected = records_to_frame(normalize_row(raw) for raw in raw_rows)
    result = normalize_frame(pd.DataFrame(raw_rows))

    pd.testing.assert_frame_equal(result, expected)
    assert list(result.columns) == RECORD_COLUMNS
    assert result.loc[1, "total_sales_2024"] == 10.0


def test_normalize_frame_handles_empty_table():
    result = normalize_frame(pd.DataFrame(columns=["DIVISION", "BRAND"]))
    assert result.empty
    assert list(result.columns) == RECORD_COLUMNS


def test_sales_record_defaults():
    record = SalesRecord()
    assert record.division == ""
    assert record.total_sales_2025 == 0.0
    with pytest.raises(AttributeError):
        record.division = "X"
