from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from sales_records import normalize_frame


SAMPLE_CSV = """DIVISION,DEPARTMENT,CATEGORY,SUBCATEGORY,CLASS,BRAND,BRANCH CODE,BRANCH NAME,ITEM CODE,ITEM DESCRIPTION,2024 CASH SALES,2024 CREDIT SALES,2024 TOTAL SALES,2025 CASH SALES,2025 CREDIT SALES,2025 TOTAL SALES
Beauty,Skin Care,Creams,Face,Day,Acme,B01,North,I001,Day Cream,60,40,100,90,60,150
Beauty,Skin Care,Creams,Face,Night,Acme,B02,South,I002,Night Cream,20,30,50,10,10,20
Beauty,Hair,Shampoo,Daily,Basic,Lumo,B01,North,I003,Lumo Wash,0,0,0,30,50,80
Food,Snacks,Chips,Salted,Bags,Crunch,B03,East,I004,Crunch Chips,70,0,70,0,0,0
Food,Snacks,Chips,Salted,Bags,Crunch,B02,South,I005,"Crunch Chips, Large",10,20,30,25,15,40
"""


def row(**values) -> dict:
    """Raw source row keyed by canonical headers; unset metrics default to 0."""
    headers = {
        "division": "DIVISION",
        "department": "DEPARTMENT",
        "category": "CATEGORY",
        "subcategory": "SUBCATEGORY",
        "class_name": "CLASS",
        "brand": "BRAND",
        "branch_code": "BRANCH CODE",
        "branch_name": "BRANCH NAME",
        "item_code": "ITEM CODE",
        "item_description": "ITEM DESCRIPTION",
        "cash_2024": "2024 CASH SALES",
        "credit_2024": "2024 CREDIT SALES",
        "total_2024": "2024 TOTAL SALES",
        "cash_2025": "2025 CASH SALES",
        "credit_2025": "2025 CREDIT SALES",
        "total_2025": "2025 TOTAL SALES",
    }
    return {headers[key]: str(value) for key, value in values.items()}


@pytest.fixture
def make_rows():
    def _make(*rows: dict) -> pd.DataFrame:
        return normalize_frame(pd.DataFrame([row(**values) for values in rows]))

    return _make


@pytest.fixture
def sample_rows() -> pd.DataFrame:
    from io import StringIO

    raw = pd.read_csv(StringIO(SAMPLE_CSV), dtype=str, keep_default_na=False)
    return normalize_frame(raw)


@pytest.fixture
def sample_csv(tmp_path: Path) -> Path:
    path = tmp_path / "sales_data.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path
