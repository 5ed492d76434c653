"""Stable sorting and name/code search over entity tables."""

from __future__ import annotations

from collections.abc import Sequence

import pandas as pd


def sort_rows(frame: pd.DataFrame, key: str, descending: bool = True) -> pd.DataFrame:
    # Missing values rank below everything: last when descending, first when ascending.
    if frame.empty or key not in frame.columns:
        return frame.reset_index(drop=True)
    return frame.sort_values(
        key,
        ascending=not descending,
        kind="stable",
        na_position="last" if descending else "first",
    ).reset_index(drop=True)


def search_rows(
    frame: pd.DataFrame, term: str, fields: Sequence[str] = ("name", "code")
) -> pd.DataFrame:
    needle = (term or "").lower()
    if not needle or frame.empty:
        return frame.reset_index(drop=True)

    mask = pd.Series(False, index=frame.index)
    for column in fields:
        if column in frame.columns:
            mask |= (
                frame[column]
                .fillna("")
                .astype(str)
                .str.lower()
                .str.contains(needle, regex=False)
            )
    return frame.loc[mask].reset_index(drop=True)
