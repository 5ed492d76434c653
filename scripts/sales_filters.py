"""Filter state, row predicates and filter option vocabularies."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

import pandas as pd

from sales_records import DIMENSION_COLUMNS


class SaleType(str, Enum):
    ALL = "ALL"
    CASH = "CASH"
    CREDIT = "CREDIT"

    @classmethod
    def parse(cls, value: object) -> "SaleType":
        if isinstance(value, cls):
            return value
        text = str(value or "ALL").strip().upper()
        try:
            return cls(text)
        except ValueError:
            raise ValueError(
                f"Unknown sale type {value!r}; expected one of ALL, CASH, CREDIT"
            ) from None


# Filter field -> record column.
FILTER_COLUMNS = {
    "divisions": "division",
    "departments": "department",
    "categories": "category",
    "subcategories": "subcategory",
    "classes": "class_name",
    "branches": "branch_name",
    "brands": "brand",
    "items": "item_description",
}

HIERARCHY_FILTERS = ["divisions", "departments", "categories", "subcategories", "classes"]
NARROWING_TRIGGERS = ["divisions", "departments", "categories"]


def _as_frozenset(values: Iterable[str] | None) -> frozenset[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = [values]
    return frozenset(str(value) for value in values)


@dataclass(frozen=True)
class FilterState:
    divisions: frozenset[str] = field(default_factory=frozenset)
    departments: frozenset[str] = field(default_factory=frozenset)
    categories: frozenset[str] = field(default_factory=frozenset)
    subcategories: frozenset[str] = field(default_factory=frozenset)
    classes: frozenset[str] = field(default_factory=frozenset)
    branches: frozenset[str] = field(default_factory=frozenset)
    brands: frozenset[str] = field(default_factory=frozenset)
    items: frozenset[str] = field(default_factory=frozenset)
    sale_type: SaleType = SaleType.ALL

    def __post_init__(self) -> None:
        for name in FILTER_COLUMNS:
            object.__setattr__(self, name, _as_frozenset(getattr(self, name)))
        object.__setattr__(self, "sale_type", SaleType.parse(self.sale_type))

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> "FilterState":
        kwargs = {
            name: values.get(name) or () for name in FILTER_COLUMNS if name in values
        }
        return cls(**kwargs, sale_type=SaleType.parse(values.get("sale_type")))

    def active(self) -> dict[str, frozenset[str]]:
        return {
            name: getattr(self, name)
            for name in FILTER_COLUMNS
            if getattr(self, name)
        }

    def has_hierarchy_narrowing(self) -> bool:
        return any(getattr(self, name) for name in NARROWING_TRIGGERS)


def filter_mask(
    rows: pd.DataFrame, filters: FilterState, names: Iterable[str] | None = None
) -> pd.Series:
    mask = pd.Series(True, index=rows.index)
    selected = FILTER_COLUMNS if names is None else list(names)
    for name in selected:
        accepted = getattr(filters, name)
        if accepted:
            mask &= rows[FILTER_COLUMNS[name]].isin(sorted(accepted))
    return mask


def search_mask(rows: pd.DataFrame, term: str) -> pd.Series:
    needle = (term or "").lower()
    if not needle:
        return pd.Series(True, index=rows.index)

    if "search_index" in rows.columns:
        return rows["search_index"].str.contains(needle, regex=False)

    mask = pd.Series(False, index=rows.index)
    for column in DIMENSION_COLUMNS:
        if column in rows.columns:
            mask |= (
                rows[column].fillna("").astype(str).str.lower().str.contains(
                    needle, regex=False
                )
            )
    return mask


def apply_filters(
    rows: pd.DataFrame, filters: FilterState, search_term: str = ""
) -> pd.DataFrame:
    mask = filter_mask(rows, filters) & search_mask(rows, search_term)
    return rows.loc[mask].reset_index(drop=True)


def _distinct_sorted(series: pd.Series) -> list[str]:
    values = series.fillna("").astype(str)
    return sorted(set(values[values.ne("")]))


def build_filter_options(rows: pd.DataFrame) -> dict[str, list[str]]:
    return {
        name: _distinct_sorted(rows[column]) if column in rows.columns else []
        for name, column in FILTER_COLUMNS.items()
    }


def available_options(
    rows: pd.DataFrame,
    filters: FilterState,
    options: Mapping[str, list[str]],
) -> dict[str, list[str]]:
    """Branch and brand choices left selectable under the hierarchy filters.

    With any of division/department/category selected, the universe is
    rebuilt from matching rows and replaces the global option lists.
    """
    branches = list(options.get("branches", []))
    brands = list(options.get("brands", []))

    if filters.has_hierarchy_narrowing():
        scope = rows.loc[filter_mask(rows, filters, HIERARCHY_FILTERS)]
        branches = _distinct_sorted(scope["branch_name"])
        brands = _distinct_sorted(scope["brand"])

    return {"branches": branches, "brands": brands}
