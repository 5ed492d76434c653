"""Per-dimension sales rollups and the metrics derived from them.

One pass over the filtered rows yields, for every dimension, a table of
entity sales (selected sale type plus full cash/credit breakdowns) and the
growth of each entity. Pareto, new/lost and distinct-count summaries are
derived from those tables and the same filtered totals, so every percentage
is relative to a total of the same scope.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from dataclasses import asdict, dataclass, field

import pandas as pd

from sales_filters import (
    FilterState,
    SaleType,
    apply_filters,
    build_filter_options,
)
from sales_records import METRIC_COLUMNS
from sales_sorting import sort_rows


class SalesProcessingError(RuntimeError):
    """Raised when the aggregation pipeline fails on unexpected data."""


# Positive infinity marks growth from a zero base ("New" when rendered).
UNBOUNDED_GROWTH = math.inf

PARETO_TOP_SHARE = 0.20
TOP_BRANDS_LIMIT = 10
TOP_ITEMS_LIMIT = 50

# Dimension -> (key column, representative code column).
DIMENSIONS: dict[str, tuple[str, str | None]] = {
    "division": ("division", None),
    "department": ("department", None),
    "category": ("category", None),
    "subcategory": ("subcategory", None),
    "class": ("class_name", None),
    "brand": ("brand", None),
    "branch": ("branch_name", "branch_code"),
    "item": ("item_description", "item_code"),
}

ENTITY_COLUMNS = [
    "name",
    "code",
    "sales_2024",
    "sales_2025",
    "cash_sales_2024",
    "credit_sales_2024",
    "cash_sales_2025",
    "credit_sales_2025",
    "growth",
]

# Sale type -> (2024 metric, 2025 metric).
SALE_TYPE_METRICS = {
    SaleType.ALL: ("total_sales_2024", "total_sales_2025"),
    SaleType.CASH: ("cash_sales_2024", "cash_sales_2025"),
    SaleType.CREDIT: ("credit_sales_2024", "credit_sales_2025"),
}

# Summary group -> dimension.
ENTITY_GROUPS = {"branches": "branch", "brands": "brand", "items": "item"}


def is_unbounded_growth(value: object) -> bool:
    return isinstance(value, (int, float)) and math.isinf(value) and value > 0


def growth(current: float, previous: float) -> float:
    if previous == 0:
        return UNBOUNDED_GROWTH if current > 0 else 0.0
    return (current - previous) / previous * 100


def growth_series(current: pd.Series, previous: pd.Series) -> pd.Series:
    current = current.astype(float)
    previous = previous.astype(float)
    pct = (current - previous).div(previous.where(previous.ne(0))).mul(100)
    from_zero = current.gt(0).map({True: UNBOUNDED_GROWTH, False: 0.0}).astype(float)
    return pct.where(previous.ne(0), from_zero).astype(float)


def contribution(value: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return value / total * 100


@dataclass(frozen=True)
class ParetoResult:
    top_count: int = 0
    sales_percent: float = 0.0
    total_sales: float = 0.0
    total_contributors: int = 0
    top_sales: float = 0.0


@dataclass(frozen=True)
class EntityChange:
    count: int = 0
    sales: float = 0.0
    percent_of_total: float = 0.0


@dataclass(frozen=True)
class SalesTotals:
    total_sales_2024: float = 0.0
    total_sales_2025: float = 0.0
    cash_sales_2024: float = 0.0
    cash_sales_2025: float = 0.0
    credit_sales_2024: float = 0.0
    credit_sales_2025: float = 0.0
    growth: float = 0.0


def empty_entities() -> pd.DataFrame:
    return pd.DataFrame(
        {
            column: pd.Series(dtype=object if column in ("name", "code") else float)
            for column in ENTITY_COLUMNS
        }
    )


def aggregate_by(
    rows: pd.DataFrame,
    key: str | Callable[[pd.DataFrame], pd.Series],
    sale_type: SaleType | str = SaleType.ALL,
    code_column: str | None = None,
) -> pd.DataFrame:
    """Sum the six metrics of ``rows`` per key.

    Rows with a blank key are skipped. Groups come out in first-seen order;
    callers sort. ``code`` is the first code seen for each group.
    """
    sale_type = SaleType.parse(sale_type)
    keys = key(rows) if callable(key) else rows[key]
    keys = keys.fillna("").astype(str)
    mask = keys.ne("")
    if not mask.any():
        return empty_entities()

    scope = rows.loc[mask]
    grouped = scope.groupby(keys[mask], sort=False)
    sums = grouped[METRIC_COLUMNS].sum()
    if code_column:
        codes = grouped[code_column].first().fillna("").astype(str).tolist()
    else:
        codes = [""] * len(sums)

    metric_2024, metric_2025 = SALE_TYPE_METRICS[sale_type]
    out = pd.DataFrame(
        {
            "name": [str(name) for name in sums.index],
            "code": codes,
            "sales_2024": sums[metric_2024].to_numpy(dtype=float),
            "sales_2025": sums[metric_2025].to_numpy(dtype=float),
            "cash_sales_2024": sums["cash_sales_2024"].to_numpy(dtype=float),
            "credit_sales_2024": sums["credit_sales_2024"].to_numpy(dtype=float),
            "cash_sales_2025": sums["cash_sales_2025"].to_numpy(dtype=float),
            "credit_sales_2025": sums["credit_sales_2025"].to_numpy(dtype=float),
        }
    )
    out["growth"] = growth_series(out["sales_2025"], out["sales_2024"])
    return out[ENTITY_COLUMNS]


def aggregate_dimension(
    rows: pd.DataFrame, dimension: str, sale_type: SaleType | str = SaleType.ALL
) -> pd.DataFrame:
    key_column, code_column = DIMENSIONS[dimension]
    return aggregate_by(rows, key_column, sale_type, code_column)


def compute_totals(
    rows: pd.DataFrame, sale_type: SaleType | str = SaleType.ALL
) -> SalesTotals:
    sale_type = SaleType.parse(sale_type)
    sums = {column: float(rows[column].sum()) for column in METRIC_COLUMNS}
    metric_2024, metric_2025 = SALE_TYPE_METRICS[sale_type]
    show_cash = sale_type != SaleType.CREDIT
    show_credit = sale_type != SaleType.CASH
    return SalesTotals(
        total_sales_2024=sums[metric_2024],
        total_sales_2025=sums[metric_2025],
        cash_sales_2024=sums["cash_sales_2024"] if show_cash else 0.0,
        cash_sales_2025=sums["cash_sales_2025"] if show_cash else 0.0,
        credit_sales_2024=sums["credit_sales_2024"] if show_credit else 0.0,
        credit_sales_2025=sums["credit_sales_2025"] if show_credit else 0.0,
        growth=growth(sums[metric_2025], sums[metric_2024]),
    )


def pareto(
    entities: pd.DataFrame, sales_column: str = "sales_2025"
) -> tuple[ParetoResult, pd.DataFrame]:
    """Top 20% of positive contributors and their share of sales."""
    ranked = sort_rows(entities.loc[entities[sales_column] > 0], sales_column)
    contributors = len(ranked)
    if contributors == 0:
        return ParetoResult(), ranked.head(0)

    total_sales = float(ranked[sales_column].sum())
    if total_sales == 0:
        return ParetoResult(total_contributors=contributors), ranked.head(0)

    top_count = min(max(1, math.ceil(contributors * PARETO_TOP_SHARE)), contributors)
    top = ranked.head(top_count).reset_index(drop=True)
    top_sales = float(top[sales_column].sum())
    result = ParetoResult(
        top_count=top_count,
        sales_percent=top_sales / total_sales * 100,
        total_sales=total_sales,
        total_contributors=contributors,
        top_sales=top_sales,
    )
    return result, top


def new_entities(
    entities: pd.DataFrame, total_2025: float
) -> tuple[EntityChange, pd.DataFrame]:
    scope = entities.loc[entities["sales_2025"].gt(0) & entities["sales_2024"].eq(0)]
    sales = float(scope["sales_2025"].sum())
    change = EntityChange(
        count=len(scope),
        sales=sales,
        percent_of_total=contribution(sales, total_2025),
    )
    return change, scope[["name", "code", "sales_2025"]].reset_index(drop=True)


def lost_entities(
    entities: pd.DataFrame, total_2024: float
) -> tuple[EntityChange, pd.DataFrame]:
    scope = entities.loc[entities["sales_2024"].gt(0) & entities["sales_2025"].eq(0)]
    sales = float(scope["sales_2024"].sum())
    change = EntityChange(
        count=len(scope),
        sales=sales,
        percent_of_total=contribution(sales, total_2024),
    )
    return change, scope[["name", "code", "sales_2024"]].reset_index(drop=True)


def active_entity_counts(
    rows: pd.DataFrame, sale_type: SaleType | str = SaleType.ALL
) -> dict[str, dict[str, int]]:
    """Distinct names with a positive selected metric on at least one row, per year."""
    sale_type = SaleType.parse(sale_type)
    metrics = dict(zip(("2024", "2025"), SALE_TYPE_METRICS[sale_type]))
    counts: dict[str, dict[str, int]] = {}
    for group, dimension in ENTITY_GROUPS.items():
        column = DIMENSIONS[dimension][0]
        named = rows[column].fillna("").ne("")
        counts[group] = {
            year: int(rows.loc[named & rows[metric].gt(0), column].nunique())
            for year, metric in metrics.items()
        }
    return counts


def _frame_records(frame: pd.DataFrame) -> list[dict]:
    return frame.to_dict(orient="records")


@dataclass
class ProcessedSales:
    totals: SalesTotals = field(default_factory=SalesTotals)
    sales_by: dict[str, pd.DataFrame] = field(default_factory=dict)
    top_brands: pd.DataFrame = field(default_factory=pd.DataFrame)
    top_items: pd.DataFrame = field(default_factory=pd.DataFrame)
    top_division: dict | None = None
    active_counts: dict[str, dict[str, int]] = field(default_factory=dict)
    pareto: dict[str, ParetoResult] = field(default_factory=dict)
    pareto_contributors: dict[str, pd.DataFrame] = field(default_factory=dict)
    new_entities: dict[str, EntityChange] = field(default_factory=dict)
    lost_entities: dict[str, EntityChange] = field(default_factory=dict)
    new_lists: dict[str, pd.DataFrame] = field(default_factory=dict)
    lost_lists: dict[str, pd.DataFrame] = field(default_factory=dict)
    filter_options: dict[str, list[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "totals": asdict(self.totals),
            "sales_by": {name: _frame_records(f) for name, f in self.sales_by.items()},
            "top_brands": _frame_records(self.top_brands),
            "top_items": _frame_records(self.top_items),
            "top_division": self.top_division,
            "active_counts": self.active_counts,
            "pareto": {name: asdict(r) for name, r in self.pareto.items()},
            "pareto_contributors": {
                name: _frame_records(f) for name, f in self.pareto_contributors.items()
            },
            "new_entities": {name: asdict(c) for name, c in self.new_entities.items()},
            "lost_entities": {name: asdict(c) for name, c in self.lost_entities.items()},
            "new_lists": {name: _frame_records(f) for name, f in self.new_lists.items()},
            "lost_lists": {name: _frame_records(f) for name, f in self.lost_lists.items()},
            "filter_options": self.filter_options,
        }


def empty_processed_sales(
    filter_options: Mapping[str, list[str]] | None = None,
) -> ProcessedSales:
    empty = empty_entities()
    return ProcessedSales(
        totals=SalesTotals(),
        sales_by={dimension: empty.copy() for dimension in DIMENSIONS},
        top_brands=empty[["name", "sales_2024", "sales_2025"]].copy(),
        top_items=empty[["name", "sales_2024", "sales_2025"]].copy(),
        top_division=None,
        active_counts={group: {"2024": 0, "2025": 0} for group in ENTITY_GROUPS},
        pareto={group: ParetoResult() for group in ENTITY_GROUPS},
        pareto_contributors={group: empty.copy() for group in ENTITY_GROUPS},
        new_entities={group: EntityChange() for group in ENTITY_GROUPS},
        lost_entities={group: EntityChange() for group in ENTITY_GROUPS},
        new_lists={group: empty[["name", "code", "sales_2025"]].copy() for group in ENTITY_GROUPS},
        lost_lists={group: empty[["name", "code", "sales_2024"]].copy() for group in ENTITY_GROUPS},
        filter_options={name: list(values) for name, values in (filter_options or {}).items()},
    )


def _derive(
    rows: pd.DataFrame,
    filter_options: Mapping[str, list[str]],
    sale_type: SaleType,
) -> ProcessedSales:
    totals = compute_totals(rows, sale_type)
    sales_by = {
        dimension: sort_rows(aggregate_dimension(rows, dimension, sale_type), "sales_2025")
        for dimension in DIMENSIONS
    }

    division = sales_by["division"]
    top_division = None
    if not division.empty:
        first = division.iloc[0]
        top_division = {
            "name": first["name"],
            "sales_2024": float(first["sales_2024"]),
            "sales_2025": float(first["sales_2025"]),
            "growth": float(first["growth"]),
        }

    processed = ProcessedSales(
        totals=totals,
        sales_by=sales_by,
        top_brands=sales_by["brand"].head(TOP_BRANDS_LIMIT)[["name", "sales_2024", "sales_2025"]],
        top_items=sales_by["item"].head(TOP_ITEMS_LIMIT)[["name", "sales_2024", "sales_2025"]],
        top_division=top_division,
        active_counts=active_entity_counts(rows, sale_type),
        filter_options={name: list(values) for name, values in filter_options.items()},
    )

    for group, dimension in ENTITY_GROUPS.items():
        entities = sales_by[dimension]
        processed.pareto[group], processed.pareto_contributors[group] = pareto(entities)
        processed.new_entities[group], processed.new_lists[group] = new_entities(
            entities, totals.total_sales_2025
        )
        processed.lost_entities[group], processed.lost_lists[group] = lost_entities(
            entities, totals.total_sales_2024
        )
    return processed


def process_sales_data(
    rows: pd.DataFrame,
    filter_options: Mapping[str, list[str]] | None = None,
    sale_type: SaleType | str = SaleType.ALL,
) -> ProcessedSales:
    """Aggregate already-filtered rows into the full dashboard result."""
    try:
        sale_type = SaleType.parse(sale_type)
        options = build_filter_options(rows) if filter_options is None else filter_options
        if rows.empty:
            return empty_processed_sales(options)
        return _derive(rows, options, sale_type)
    except Exception as exc:
        raise SalesProcessingError(f"Error processing data: {exc}") from exc


def run_pipeline(
    rows: pd.DataFrame,
    filters: FilterState | None = None,
    search_term: str = "",
    filter_options: Mapping[str, list[str]] | None = None,
) -> ProcessedSales:
    """Filter the full row set, then aggregate. Options come from the unfiltered rows."""
    filters = filters or FilterState()
    options = build_filter_options(rows) if filter_options is None else filter_options
    filtered = apply_filters(rows, filters, search_term)
    return process_sales_data(filtered, options, filters.sale_type)
