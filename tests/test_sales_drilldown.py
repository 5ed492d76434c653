import pytest

from sales_aggregation import is_unbounded_growth
from sales_drilldown import VIEW_TITLES, build_drilldown, view_columns
from sales_filters import FilterState


def test_brand_view_rows_and_summary(sample_rows):
    table = build_drilldown(sample_rows, "brands")

    assert table.title == "All Brands Deep Dive"
    assert table.entity_label == "Brands"
    assert table.rows["name"].tolist() == ["ACME", "LUMO", "CRUNCH"]
    assert table.rows["row_number"].tolist() == [1, 2, 3]
    assert table.summary["count"] == 3
    assert table.summary["total_2025"] == 290
    assert table.summary["growth"] == pytest.approx(16.0)
    assert table.performance_rate == {"rate": 100.0, "sold": 3, "total": 3}

    acme = table.rows.iloc[0]
    assert acme["cash_contribution_2025"] == pytest.approx(100 / 170 * 100)
    assert acme["contribution_2025"] == pytest.approx(170 / 290 * 100)
    assert acme["cash_growth"] == pytest.approx(25.0)
    assert is_unbounded_growth(table.rows.iloc[1]["growth"])


def test_item_views_show_codes(sample_rows):
    table = build_drilldown(sample_rows, "items")
    assert table.columns[:3] == ["row_number", "code", "name"]
    assert table.labels[1] == "Item Code"
    assert table.rows.iloc[0]["code"] == "I001"


def test_local_filters_and_search(sample_rows):
    table = build_drilldown(
        sample_rows, "items", filters=FilterState(divisions={"FOOD"}), search_term="large"
    )
    assert table.rows["name"].tolist() == ["CRUNCH CHIPS, LARGE"]
    # Shares stay relative to the filtered total, before the search.
    assert table.rows.iloc[0]["contribution_2025"] == pytest.approx(100.0)
    assert table.rows.iloc[0]["contribution_2024"] == pytest.approx(30.0)


def test_branch_view_lists_universe_with_zeros(sample_rows):
    table = build_drilldown(
        sample_rows,
        "branches",
        filters=FilterState(divisions={"FOOD"}),
        branch_universe=["EAST", "NORTH", "SOUTH"],
    )
    rows = table.rows.set_index("name")
    assert set(rows.index) == {"EAST", "NORTH", "SOUTH"}
    assert rows.loc["NORTH", "sales_2025"] == 0
    assert rows.loc["NORTH", "growth"] == 0
    assert rows.loc["SOUTH", "sales_2025"] == 40
    assert table.performance_rate is None


def test_pareto_view(sample_rows):
    table = build_drilldown(sample_rows, "pareto_items")
    assert table.rows["name"].tolist() == ["DAY CREAM"]


def test_new_and_lost_views(sample_rows):
    new = build_drilldown(sample_rows, "new_items")
    lost = build_drilldown(sample_rows, "lost_items")

    assert new.rows["name"].tolist() == ["LUMO WASH"]
    assert new.columns == view_columns("new_items")
    assert "sales_2024" not in new.columns
    assert lost.rows["name"].tolist() == ["CRUNCH CHIPS"]
    assert lost.rows.iloc[0]["contribution_2024"] == pytest.approx(28.0)
    assert lost.performance_rate == {"rate": 0.0, "sold": 0, "total": 1}


def test_sort_override(sample_rows):
    table = build_drilldown(sample_rows, "brands", sort_key="name", descending=False)
    assert table.rows["name"].tolist() == ["ACME", "CRUNCH", "LUMO"]
    assert table.rows["row_number"].tolist() == [1, 2, 3]


def test_empty_scope(sample_rows):
    table = build_drilldown(sample_rows, "brands", filters=FilterState(brands={"NONE"}))
    assert table.rows.empty
    assert table.summary["count"] == 0
    assert table.summary["growth"] == 0
    assert table.performance_rate == {"rate": 0.0, "sold": 0, "total": 0}


def test_every_view_builds(sample_rows):
    for view in VIEW_TITLES:
        table = build_drilldown(sample_rows, view)
        assert set(table.columns) <= set(table.rows.columns)


def test_unknown_view(sample_rows):
    with pytest.raises(ValueError, match="Unknown drilldown view"):
        build_drilldown(sample_rows, "suppliers")
