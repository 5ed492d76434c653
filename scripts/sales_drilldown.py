"""Deep-dive tables: one row per entity with cash/credit splits and shares."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import pandas as pd

from sales_aggregation import (
    DIMENSIONS,
    aggregate_by,
    contribution,
    growth,
    growth_series,
    pareto,
)
from sales_filters import FilterState, SaleType, apply_filters
from sales_sorting import search_rows, sort_rows


VIEW_TITLES = {
    "divisions": "All Divisions Deep Dive",
    "departments": "All Departments Deep Dive",
    "categories": "All Categories Deep Dive",
    "subcategories": "All Subcategories Deep Dive",
    "classes": "All Classes Deep Dive",
    "branches": "All Branches Deep Dive",
    "brands": "All Brands Deep Dive",
    "items": "All Items Deep Dive",
    "pareto_branches": "Pareto: Top 20% Branches",
    "pareto_brands": "Pareto: Top 20% Brands",
    "pareto_items": "Pareto: Top 20% Items",
    "new_brands": "New Brands in 2025",
    "new_items": "New Items in 2025",
    "lost_brands": "Lost Brands from 2024",
    "lost_items": "Lost Items from 2024",
}

# View -> dimension it rolls up.
VIEW_DIMENSIONS = {
    "divisions": "division",
    "departments": "department",
    "categories": "category",
    "subcategories": "subcategory",
    "classes": "class",
    "branches": "branch",
    "brands": "brand",
    "items": "item",
    "pareto_branches": "branch",
    "pareto_brands": "brand",
    "pareto_items": "item",
    "new_brands": "brand",
    "new_items": "item",
    "lost_brands": "brand",
    "lost_items": "item",
}

ENTITY_LABELS = {
    "branch": "Branches",
    "brand": "Brands",
    "item": "Items",
    "division": "Divisions",
    "department": "Departments",
    "subcategory": "Subcategories",
    "category": "Categories",
    "class": "Classes",
}

COLUMN_LABELS = {
    "row_number": "#",
    "code": "Item Code",
    "name": "Name",
    "sales_2025": "Total 2025",
    "cash_sales_2025": "Cash 2025",
    "credit_sales_2025": "Credit 2025",
    "cash_contribution_2025": "Cash % 25",
    "sales_2024": "Total 2024",
    "cash_sales_2024": "Cash 2024",
    "credit_sales_2024": "Credit 2024",
    "cash_contribution_2024": "Cash % 24",
    "growth": "Total GR%",
    "cash_growth": "Cash GR%",
    "credit_growth": "Credit GR%",
    "contribution_2025": "Contribution 2025",
    "contribution_2024": "Contribution 2024",
}

DEFAULT_COLUMNS = [
    "row_number",
    "name",
    "sales_2025",
    "sales_2024",
    "growth",
    "cash_sales_2025",
    "cash_sales_2024",
    "cash_contribution_2025",
    "cash_growth",
    "credit_sales_2025",
    "credit_sales_2024",
    "credit_growth",
]

VIEW_COLUMNS = {
    "new_brands": ["row_number", "name", "sales_2025", "cash_sales_2025", "credit_sales_2025", "contribution_2025"],
    "new_items": ["row_number", "code", "name", "sales_2025", "cash_sales_2025", "credit_sales_2025", "contribution_2025"],
    "lost_brands": ["row_number", "name", "sales_2024", "contribution_2024"],
    "lost_items": ["row_number", "code", "name", "sales_2024", "contribution_2024"],
}

PERCENT_COLUMNS = {
    "growth",
    "cash_growth",
    "credit_growth",
    "cash_contribution_2025",
    "cash_contribution_2024",
    "contribution_2025",
    "contribution_2024",
}


@dataclass
class DrilldownTable:
    view_type: str
    title: str
    entity_label: str
    columns: list[str]
    rows: pd.DataFrame
    summary: dict[str, float] = field(default_factory=dict)
    performance_rate: dict[str, float] | None = None

    @property
    def labels(self) -> list[str]:
        return [COLUMN_LABELS[column] for column in self.columns]


def view_columns(view_type: str) -> list[str]:
    if view_type in VIEW_COLUMNS:
        return list(VIEW_COLUMNS[view_type])
    columns = list(DEFAULT_COLUMNS)
    if "item" in view_type:
        columns.insert(1, "code")
    return columns


def _share(part: pd.Series, whole: pd.Series) -> pd.Series:
    return part.div(whole.where(whole.gt(0))).mul(100).fillna(0.0)


def _enrich(entities: pd.DataFrame) -> pd.DataFrame:
    out = entities.copy()
    out["cash_growth"] = growth_series(out["cash_sales_2025"], out["cash_sales_2024"])
    out["credit_growth"] = growth_series(out["credit_sales_2025"], out["credit_sales_2024"])
    out["cash_contribution_2025"] = _share(out["cash_sales_2025"], out["sales_2025"])
    out["cash_contribution_2024"] = _share(out["cash_sales_2024"], out["sales_2024"])
    return out


def _pad_branches(entities: pd.DataFrame, universe: Sequence[str]) -> pd.DataFrame:
    # Every selectable branch is listed, zero-filled when it has no rows.
    present = entities.set_index("name")
    padded = []
    for name in universe:
        if name in present.index:
            padded.append(present.loc[name].to_dict() | {"name": name})
        else:
            padded.append(
                {column: 0.0 for column in entities.columns} | {"name": name, "code": ""}
            )
    if not padded:
        return entities.head(0)
    return pd.DataFrame(padded)[list(entities.columns)]


def _summary(frame: pd.DataFrame) -> dict[str, float]:
    def total(column: str) -> float:
        return float(frame[column].fillna(0).sum()) if column in frame.columns else 0.0

    summary = {
        "count": len(frame),
        "total_2025": total("sales_2025"),
        "total_2024": total("sales_2024"),
        "cash_2025": total("cash_sales_2025"),
        "cash_2024": total("cash_sales_2024"),
        "credit_2025": total("credit_sales_2025"),
        "credit_2024": total("credit_sales_2024"),
    }
    summary["growth"] = growth(summary["total_2025"], summary["total_2024"])
    return summary


def _performance_rate(entities: pd.DataFrame) -> dict[str, float]:
    listed = len(entities)
    if listed == 0:
        return {"rate": 0.0, "sold": 0, "total": 0}
    sold = int(entities["sales_2025"].gt(0).sum())
    return {"rate": sold / listed * 100, "sold": sold, "total": listed}


def build_drilldown(
    rows: pd.DataFrame,
    view_type: str,
    filters: FilterState | None = None,
    search_term: str = "",
    sort_key: str = "sales_2025",
    descending: bool = True,
    branch_universe: Sequence[str] | None = None,
) -> DrilldownTable:
    """Build one deep-dive table over total sales.

    ``filters`` narrows the rows first; ``search_term`` then matches entity
    names and codes. ``branch_universe`` lists the branches shown by the
    ``branches`` view even without sales.
    """
    if view_type not in VIEW_DIMENSIONS:
        raise ValueError(f"Unknown drilldown view: {view_type}")

    filters = filters or FilterState()
    scope = apply_filters(rows, filters)
    local_total_2025 = float(scope["total_sales_2025"].sum())
    local_total_2024 = float(scope["total_sales_2024"].sum())

    dimension = VIEW_DIMENSIONS[view_type]
    key_column, code_column = DIMENSIONS[dimension]
    entities = _enrich(aggregate_by(scope, key_column, SaleType.ALL, code_column))

    if view_type == "branches" and branch_universe is not None:
        entities = _pad_branches(entities, branch_universe)
    elif view_type.startswith("pareto_"):
        _, entities = pareto(entities)
    elif view_type.startswith("new_"):
        entities = entities.loc[entities["sales_2025"].gt(0) & entities["sales_2024"].eq(0)]
    elif view_type.startswith("lost_"):
        entities = entities.loc[entities["sales_2024"].gt(0) & entities["sales_2025"].eq(0)]
    entities = entities.reset_index(drop=True)

    performance = None
    if dimension in ("brand", "item"):
        performance = _performance_rate(entities)

    out = entities.copy()
    out["contribution_2025"] = [contribution(v, local_total_2025) for v in out["sales_2025"]]
    out["contribution_2024"] = [contribution(v, local_total_2024) for v in out["sales_2024"]]
    out = sort_rows(search_rows(out, search_term), sort_key, descending)
    out.insert(0, "row_number", range(1, len(out) + 1))

    return DrilldownTable(
        view_type=view_type,
        title=VIEW_TITLES[view_type],
        entity_label=ENTITY_LABELS[dimension],
        columns=view_columns(view_type),
        rows=out,
        summary=_summary(out),
        performance_rate=performance,
    )
