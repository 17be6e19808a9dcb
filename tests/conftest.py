"""
Shared fixtures: small hand-built stores and the bundled CSV store
"""
from pathlib import Path

import pytest

from spend_core.data import DataStore, load_data_store

REPO_DATA_DIR = Path(__file__).resolve().parents[1] / "data"


@pytest.fixture(autouse=True)
def _default_data_dir(monkeypatch):
    """Tests read the bundled tables unless they point elsewhere themselves."""
    monkeypatch.delenv("SPEND_DASHBOARD_DATA_DIR", raising=False)


@pytest.fixture
def activity_rows():
    return [
        {"period": "2024Q1", "third_party_kind": "HCO", "business_unit": "B&I MKT", "amount": 100, "occurrence_count": 2, "activity_kind": "event"},
        {"period": "2024Q1", "third_party_kind": "Vendor", "business_unit": "B&I MKT", "amount": 30, "occurrence_count": 1, "activity_kind": "event"},
        {"period": "2024Q2", "third_party_kind": "HCO", "business_unit": "Medical", "amount": 50, "occurrence_count": 5, "activity_kind": "non-event"},
        {"period": "2025Q1", "third_party_kind": "HCO", "business_unit": "CV Sales", "amount": 70, "occurrence_count": 7, "activity_kind": "event"},
        {"period": "2025Q1", "third_party_kind": "HCO", "business_unit": "B&I MKT", "amount": 20, "occurrence_count": 1, "activity_kind": "event"},
    ]


@pytest.fixture
def breakdown_rows():
    return [
        {"year": 2024, "third_party_kind": "HCO", "hco_type_local": "大学", "hco_category_system": "", "business_unit_sub_level": "B&I MKT-Central MKT", "amount": 8_500_000, "occurrence_count": 12},
        {"year": 2024, "third_party_kind": "HCO", "hco_type_local": "学协会", "hco_category_system": "学协会-省级", "business_unit_sub_level": "B&I MKT-Regional MKT", "amount": 3_100_000, "occurrence_count": 15},
        {"year": 2024, "third_party_kind": "HCO", "hco_type_local": "基金会", "hco_category_system": "", "business_unit_sub_level": "Medical", "amount": 900_000, "occurrence_count": 3},
        {"year": 2024, "third_party_kind": "HCO", "hco_type_local": "", "hco_category_system": "", "business_unit_sub_level": "CV Sales", "amount": 400_000, "occurrence_count": 2},
        {"year": 2024, "third_party_kind": "Vendor", "hco_type_local": "", "hco_category_system": "", "business_unit_sub_level": "B&I MKT-Central MKT", "amount": 300_000, "occurrence_count": 1},
        {"year": 2025, "third_party_kind": "HCO", "hco_type_local": "民办非企业单位", "hco_category_system": "", "business_unit_sub_level": "CV MKT-Central MKT", "amount": 2_000_000, "occurrence_count": 4},
    ]


@pytest.fixture
def year_summary_rows():
    return [
        {"year": 2024, "hco_id": "H1", "hco_name": "Alpha 协会", "category": "Association", "total_amount": 500, "activity_count": 5},
        {"year": 2025, "hco_id": "H1", "hco_name": "Alpha 协会", "category": "Association", "total_amount": 700, "activity_count": 7},
        {"year": 2024, "hco_id": "H2", "hco_name": "Beta 大学", "category": "University", "total_amount": 300, "activity_count": 3},
        {"year": 2025, "hco_id": "H3", "hco_name": "Gamma 基金会", "category": "Foundation", "total_amount": 900, "activity_count": 0},
        {"year": 2025, "hco_id": "H4", "hco_name": "Delta 医院", "category": "Non-profit", "total_amount": 200, "activity_count": 2},
    ]


@pytest.fixture
def bu_year_rows():
    return [
        {"year": 2024, "hco_id": "H1", "hco_name": "Alpha 协会", "business_unit": "B&I MKT", "total_amount": 300, "activity_count": 3},
        {"year": 2024, "hco_id": "H1", "hco_name": "Alpha 协会", "business_unit": "Medical", "total_amount": 200, "activity_count": 2},
        {"year": 2025, "hco_id": "H1", "hco_name": "Alpha 协会", "business_unit": "B&I MKT", "total_amount": 400, "activity_count": 4},
        {"year": 2025, "hco_id": "H1", "hco_name": "Alpha 协会", "business_unit": "CV MKT", "total_amount": 300, "activity_count": 3},
        {"year": 2024, "hco_id": "H2", "hco_name": "Beta 大学", "business_unit": "CV MKT", "total_amount": 300, "activity_count": 3},
        {"year": 2025, "hco_id": "H4", "hco_name": "Delta 医院", "business_unit": "Medical", "total_amount": 250, "activity_count": 2},
    ]


@pytest.fixture
def master_rows():
    return [
        {"year": 2024, "entity_name": "Alpha 协会", "total_amount": 500, "activity_count": 5, "avg_amount": 999, "avg_amount_million": 9, "bubble_size": 9},
        {"year": 2024, "entity_name": "Beta 大学", "total_amount": 300, "activity_count": 3},
        {"year": 2025, "entity_name": "Alpha 协会", "total_amount": 700, "activity_count": 7},
        {"year": 2025, "entity_name": "Gamma 基金会", "total_amount": 900, "activity_count": 0},
    ]


@pytest.fixture
def store(activity_rows, breakdown_rows, year_summary_rows, bu_year_rows, master_rows):
    return DataStore.from_records(
        activity=activity_rows,
        hco_breakdown=breakdown_rows,
        hco_year_summary=year_summary_rows,
        hco_bu_year_summary=bu_year_rows,
        hco_master=master_rows,
    )


@pytest.fixture
def bundled_store():
    return load_data_store(REPO_DATA_DIR)
