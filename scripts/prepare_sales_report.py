#!/usr/bin/env python3
"""Convert a sales CSV into dashboard-ready marts, insights and drill-down exports."""

from __future__ import annotations

import argparse
import hashlib
import json
import logging
import shutil
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import Path

import pandas as pd

from sales_aggregation import ProcessedSales, run_pipeline
from sales_drilldown import VIEW_TITLES, DrilldownTable, build_drilldown
from sales_exports import (
    drilldown_to_csv,
    drilldown_to_pdf,
    format_growth,
    json_safe,
    write_drilldown_excel,
)
from sales_filters import (
    FILTER_COLUMNS,
    FilterState,
    SaleType,
    apply_filters,
    available_options,
)
from sales_source import fetch_sales_source, load_sales_rows, parse_sales_text


DEFAULT_VIEWS = [
    "divisions",
    "branches",
    "brands",
    "items",
    "pareto_brands",
    "new_brands",
    "lost_brands",
]

FILTER_FLAGS = {
    "divisions": "--division",
    "departments": "--department",
    "categories": "--category",
    "subcategories": "--subcategory",
    "classes": "--class",
    "branches": "--branch",
    "brands": "--brand",
    "items": "--item",
}


def file_sha256(path: Path, chunk_size: int = 1024 * 1024) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def source_fingerprint(path: Path) -> dict:
    stat = path.stat()
    return {
        "file_name": path.name,
        "size": stat.st_size,
        "mtime_ns": stat.st_mtime_ns,
        "sha256": file_sha256(path),
    }


def build_insights_snapshot(processed: ProcessedSales, filters: FilterState) -> dict:
    def top_rows(frame: pd.DataFrame, limit: int = 10) -> list[dict]:
        if frame.empty:
            return []
        cols = ["name", "sales_2024", "sales_2025", "growth"]
        return frame.head(limit)[cols].to_dict(orient="records")

    totals = processed.totals
    summary = processed.to_dict()
    return {
        "sale_type": filters.sale_type.value,
        "filters": {name: sorted(values) for name, values in filters.active().items()},
        "totals": {
            "total_sales_2024": totals.total_sales_2024,
            "total_sales_2025": totals.total_sales_2025,
            "cash_sales_2024": totals.cash_sales_2024,
            "cash_sales_2025": totals.cash_sales_2025,
            "credit_sales_2024": totals.credit_sales_2024,
            "credit_sales_2025": totals.credit_sales_2025,
            "growth": totals.growth,
        },
        "top_division": processed.top_division,
        "active_counts": processed.active_counts,
        "pareto": summary["pareto"],
        "new_entities": summary["new_entities"],
        "lost_entities": summary["lost_entities"],
        "top_brands_by_sales_2025": top_rows(processed.sales_by["brand"]),
        "top_branches_by_sales_2025": top_rows(processed.sales_by["branch"]),
    }


def write_json(path: Path, payload: object) -> None:
    path.write_text(
        json.dumps(json_safe(payload), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def text_fingerprint(text: str) -> dict:
    data = text.encode("utf-8")
    return {"size": len(data), "sha256": hashlib.sha256(data).hexdigest()}


def load_report_rows(
    input_path: Path,
    sources: Sequence[str | Path] = (),
    on_progress: Callable[[str], None] | None = None,
) -> tuple[pd.DataFrame, str, dict]:
    """Rows, the source they came from, and that source's fingerprint.

    Without fallback sources the input file is read directly (csv or xlsx).
    Otherwise the input file is tried first, then each source in order.
    """
    if not sources:
        if not input_path.exists():
            raise FileNotFoundError(f"Input not found: {input_path}")
        return load_sales_rows(input_path), str(input_path), source_fingerprint(input_path)

    origin, text = fetch_sales_source([input_path, *sources], on_progress)
    return parse_sales_text(text), str(origin), text_fingerprint(text)


def check_views(views: Sequence[str] | None) -> list[str]:
    views = list(DEFAULT_VIEWS if views is None else views)
    unknown = [view for view in views if view not in VIEW_TITLES]
    if unknown:
        raise ValueError(f"Unknown drilldown views: {', '.join(unknown)}")
    return views


def write_latest_outputs(
    rows: pd.DataFrame,
    processed_root: Path,
    source: str,
    fingerprint: dict,
    filters: FilterState | None = None,
    search_term: str = "",
    views: Sequence[str] | None = None,
) -> dict:
    filters = filters or FilterState()
    views = check_views(views)

    # Nothing under latest/ is removed until every table has been built.
    processed = run_pipeline(rows, filters, search_term)
    scope = apply_filters(rows, filters, search_term)
    branch_universe = available_options(rows, filters, processed.filter_options)["branches"]
    tables: list[DrilldownTable] = [
        build_drilldown(scope, view, branch_universe=branch_universe) for view in views
    ]

    latest_root = processed_root / "latest"
    if latest_root.exists():
        shutil.rmtree(latest_root)

    facts_dir = latest_root / "facts"
    marts_dir = latest_root / "marts"
    insights_dir = latest_root / "insights"
    drilldown_dir = latest_root / "drilldown"
    for path in [facts_dir, marts_dir, insights_dir, drilldown_dir]:
        path.mkdir(parents=True, exist_ok=True)

    fact_file = facts_dir / "sales_rows.csv"
    rows.to_csv(fact_file, index=False, encoding="utf-8")

    mart_files = {}
    for name, frame in processed.sales_by.items():
        mart = frame.copy()
        mart["growth"] = mart["growth"].map(format_growth)
        mart_file = marts_dir / f"sales_by_{name}.csv"
        mart.to_csv(mart_file, index=False, encoding="utf-8")
        mart_files[name] = str(mart_file)

    summary_file = insights_dir / "summary.json"
    write_json(summary_file, processed.to_dict())
    insights_file = insights_dir / "insights_snapshot.json"
    write_json(insights_file, build_insights_snapshot(processed, filters))

    drilldown_files = {}
    for table in tables:
        csv_file = drilldown_dir / f"{table.view_type}_data.csv"
        csv_file.write_text(drilldown_to_csv(table), encoding="utf-8")
        pdf_file = drilldown_dir / f"{table.view_type}_report.pdf"
        pdf_file.write_bytes(drilldown_to_pdf(table))
        drilldown_files[table.view_type] = {"csv": str(csv_file), "pdf": str(pdf_file)}

    excel_file = None
    if tables:
        excel_file = str(write_drilldown_excel(tables, drilldown_dir / "drilldown.xlsx"))

    manifest = {
        "generated_at": datetime.now().isoformat(timespec="seconds"),
        "source_file": source,
        "source_fingerprint": fingerprint,
        "rows": int(len(rows)),
        "sale_type": filters.sale_type.value,
        "search_term": search_term,
        "fact_file": str(fact_file),
        "mart_files": mart_files,
        "summary_file": str(summary_file),
        "insights_file": str(insights_file),
        "drilldown_files": drilldown_files,
        "excel_file": excel_file,
    }

    manifest_file = latest_root / "manifest.json"
    write_json(manifest_file, manifest)

    readme = latest_root / "README.md"
    readme.write_text(
        "\n".join(
            [
                "# Sales Report Processed Data",
                "",
                f"- Source: `{source}`",
                f"- Generated at: `{manifest['generated_at']}`",
                f"- Sale type: `{manifest['sale_type']}`",
                "- Key outputs:",
                "  - `facts/sales_rows.csv` (normalized rows)",
                "  - `marts/sales_by_*.csv` (dimension rollups, 2025 sales descending)",
                "  - `insights/summary.json` (totals, Pareto, new/lost, filter options)",
                "  - `insights/insights_snapshot.json` (quick insight seeds)",
                "  - `drilldown/*_data.csv`, `drilldown/*_report.pdf` (deep-dive tables)",
                "  - `drilldown/drilldown.xlsx` (all deep-dive tables)",
                "  - `manifest.json` (source fingerprint and file list)",
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    return {
        "latest_root": str(latest_root),
        "manifest_file": str(manifest_file),
        "readme_file": str(readme),
        "fact_file": str(fact_file),
        "mart_files": mart_files,
        "summary_file": str(summary_file),
        "insights_file": str(insights_file),
        "drilldown_files": drilldown_files,
        "excel_file": excel_file,
        "manifest": manifest,
    }


def build_latest_outputs(
    input_path: Path,
    processed_root: Path,
    filters: FilterState | None = None,
    search_term: str = "",
    views: Sequence[str] | None = None,
    sources: Sequence[str | Path] = (),
    on_progress: Callable[[str], None] | None = None,
) -> dict:
    views = check_views(views)
    rows, source, fingerprint = load_report_rows(input_path, sources, on_progress)
    return write_latest_outputs(
        rows, processed_root, source, fingerprint, filters, search_term, views
    )


def filters_from_args(args: argparse.Namespace) -> FilterState:
    return FilterState.from_mapping(
        {
            **{name: getattr(args, name) or () for name in FILTER_COLUMNS},
            "sale_type": args.sale_type,
        }
    )


def parse_args() -> argparse.Namespace:
    root = Path(__file__).resolve().parents[1]
    parser = argparse.ArgumentParser(
        description="Convert a sales CSV to analysis-ready marts and drill-down exports."
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=root / "Data" / "sales_data.csv",
        help="Path to source csv or xlsx file.",
    )
    parser.add_argument(
        "--processed-root",
        type=Path,
        default=root / "Data" / "processed",
        help="Root directory for processed outputs.",
    )
    parser.add_argument(
        "--source",
        dest="sources",
        action="append",
        default=[],
        help="Fallback CSV path or http(s) URL tried after --input (repeatable).",
    )
    for name, column in FILTER_COLUMNS.items():
        parser.add_argument(
            FILTER_FLAGS[name],
            dest=name,
            action="append",
            type=str.upper,
            help=f"Keep rows whose {column} matches (repeatable).",
        )
    parser.add_argument(
        "--sale-type",
        choices=[sale_type.value for sale_type in SaleType],
        default=SaleType.ALL.value,
        type=str.upper,
        help="Metric treated as sales: total, cash only or credit only.",
    )
    parser.add_argument(
        "--search",
        default="",
        help="Case-insensitive substring matched against every dimension.",
    )
    parser.add_argument(
        "--view",
        dest="views",
        action="append",
        choices=list(VIEW_TITLES),
        help="Drill-down view to export (repeatable, defaults to a standard set).",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress generated-file logs.",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=logging.INFO)
    generated = build_latest_outputs(
        args.input,
        args.processed_root,
        filters=filters_from_args(args),
        search_term=args.search,
        views=args.views,
        sources=args.sources,
        on_progress=None if args.quiet else print,
    )

    if args.quiet:
        return

    print("Generated latest sales report datasets:")
    print(f"- source: {generated['manifest']['source_file']}")
    print(f"- {generated['fact_file']}")
    print(f"- {generated['manifest_file']}")
    print(f"- {generated['summary_file']}")
    print(f"- {generated['insights_file']}")
    for name, path in generated["mart_files"].items():
        print(f"- sales_by_{name}: {path}")
    for view, paths in generated["drilldown_files"].items():
        print(f"- {view}: {paths['csv']}")


if __name__ == "__main__":
    main()
