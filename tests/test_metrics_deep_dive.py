"""
Tests for the BU deep-dive page payload
"""
import pytest

from spend_core.data import DataStore
from spend_core.filters import default_deep_dive_selection, with_selection
from spend_core.lookups import PARENT_BUS
from spend_core.metrics_deep_dive import (
    UNKNOWN_HCO,
    breakdown_view,
    compute_bu_deep_dive,
    hco_bu_heatmap,
    sub_level_view,
)


def test_category_mix_excludes_vendor():
    store = DataStore.from_records(
        hco_breakdown=[
            {"year": 2024, "third_party_kind": "HCO", "hco_type_local": "大学", "hco_category_system": "", "business_unit_sub_level": "Medical", "amount": 100, "occurrence_count": 1},
            {"year": 2024, "third_party_kind": "HCO", "hco_type_local": "学协会", "hco_category_system": "", "business_unit_sub_level": "Medical", "amount": 50, "occurrence_count": 1},
            {"year": 2024, "third_party_kind": "Vendor", "hco_type_local": "", "hco_category_system": "", "business_unit_sub_level": "Medical", "amount": 30, "occurrence_count": 1},
        ]
    )
    sel = with_selection(default_deep_dive_selection(store), periods=["2024Q1"])
    out = compute_bu_deep_dive(sel, store)
    assert [(r["name"], r["value"]) for r in out["hco_category_mix"]] == [("University", 100), ("Association", 50)]
    assert sum(r["value"] for r in out["hco_category_mix"]) == 150
    assert [(r["name"], r["value"]) for r in out["third_party_comparison"]] == [("HCO", 150.0), ("Vendor", 30.0)]


def test_breakdown_view_resolves_parent_and_category(store):
    rows = breakdown_view(store, default_deep_dive_selection(store))
    assert len(rows) == 5
    assert rows["parent_bu"].tolist() == ["B&I MKT", "B&I MKT", "Medical", "CV Sales", "CV MKT"]
    assert rows["hco_category"].tolist() == ["University", "Association", "Foundation", "Other", "Non-profit"]


def test_sub_level_drill_down(store):
    sel = with_selection(default_deep_dive_selection(store), business_units=["B&I MKT"])
    out = compute_bu_deep_dive(sel, store)
    assert [(r["bu_sub_level"], r["amount"], r["parent_bu"]) for r in out["sub_levels"]] == [
        ("B&I MKT-Central MKT", 8_500_000, "B&I MKT"),
        ("B&I MKT-Regional MKT", 3_100_000, "B&I MKT"),
    ]
    assert out["bu_category_stack"] == [
        {"bu": "B&I MKT", "University": 8_500_000, "Association": 3_100_000, "Foundation": 0.0, "Non-profit": 0.0, "Other": 0.0}
    ]


def test_sub_level_view_empty_for_flat_unit(store):
    sel = with_selection(default_deep_dive_selection(store), business_units=["Medical"])
    out = compute_bu_deep_dive(sel, store)
    assert out["sub_levels"] == []
    assert out["sub_level_summary"] == []
    assert [(r["name"], r["value"]) for r in out["hco_category_mix"]] == [("Foundation", 900_000)]


def test_sub_level_view_all_parents(store):
    rows = breakdown_view(store, default_deep_dive_selection(store))
    subs = sub_level_view(rows, PARENT_BUS)
    assert [r["bu_sub_level"] for r in subs] == ["B&I MKT-Central MKT", "B&I MKT-Regional MKT", "CV MKT-Central MKT"]


def test_deep_dive_stack_order(store):
    out = compute_bu_deep_dive(default_deep_dive_selection(store), store)
    assert [r["bu"] for r in out["bu_category_stack"]] == ["B&I MKT", "CV MKT", "Medical", "CV Sales"]
    assert [r["name"] for r in out["hco_category_mix"]] == ["University", "Association", "Non-profit", "Foundation", "Other"]
    assert out["third_party_comparison"][1] == {"name": "Vendor", "value": 300_000.0, "fill": out["third_party_comparison"][1]["fill"]}


def test_deep_dive_year_filter(store):
    sel = with_selection(default_deep_dive_selection(store), periods=["2025Q2"])
    out = compute_bu_deep_dive(sel, store)
    assert [r["bu"] for r in out["bu_category_stack"]] == ["CV MKT"]
    assert [r["name"] for r in out["third_party_comparison"]] == ["HCO"]


def test_heatmap_ranked_with_relative_intensity(store):
    heat = hco_bu_heatmap(store, (2024, 2025))
    assert heat["columns"] == list(PARENT_BUS)
    assert [r["hco_name"] for r in heat["rows"]] == ["Alpha 协会", "Beta 大学", "Delta 医院"]
    assert heat["max_value"] == 700
    alpha = {c["bu"]: c for c in heat["rows"][0]["cells"]}
    assert alpha["B&I MKT"]["intensity"] == pytest.approx(1.0)
    assert alpha["CV MKT"]["intensity"] == pytest.approx(0.2 + 0.8 * 300 / 700)
    assert alpha["S&CE"]["amount"] == 0.0 and alpha["S&CE"]["intensity"] == 0.0
    assert heat["rows"][0]["total"] == sum(c["amount"] for c in heat["rows"][0]["cells"])


def test_heatmap_limit(store):
    heat = hco_bu_heatmap(store, (2024, 2025), limit=2)
    assert [r["hco_name"] for r in heat["rows"]] == ["Alpha 协会", "Beta 大学"]


def test_heatmap_focus(store):
    heat = hco_bu_heatmap(store, (2024, 2025), focus_hco_id="H2")
    assert [r["hco_name"] for r in heat["rows"]] == ["Beta 大学"]
    # Shading is relative to the displayed row only.
    assert heat["max_value"] == 300
    cv = next(c for c in heat["rows"][0]["cells"] if c["bu"] == "CV MKT")
    assert cv["intensity"] == pytest.approx(1.0)


def test_heatmap_unknown_focus(store):
    heat = hco_bu_heatmap(store, (2024, 2025), focus_hco_id="H99")
    assert [r["hco_name"] for r in heat["rows"]] == [UNKNOWN_HCO]
    assert heat["rows"][0]["total"] == 0.0
    assert heat["max_value"] == 0.0


def test_heatmap_through_deep_dive_focus(store):
    sel = with_selection(default_deep_dive_selection(store), focus_hco_id="H4")
    out = compute_bu_deep_dive(sel, store)
    assert out["heatmap"]["focus_hco_id"] == "H4"
    assert [r["hco_name"] for r in out["heatmap"]["rows"]] == ["Delta 医院"]
    assert "hco_bu_heatmap" in out["charts"]


def test_deep_dive_bundled(bundled_store):
    out = compute_bu_deep_dive(default_deep_dive_selection(bundled_store), bundled_store)
    assert len(out["heatmap"]["rows"]) <= 20
    totals = [r["total"] for r in out["heatmap"]["rows"]]
    assert totals == sorted(totals, reverse=True)
    assert len(out["sub_level_summary"]) <= 15


def test_heatmap_focus_merges_name_variants():
    store = DataStore.from_records(
        hco_bu_year_summary=[
            {"year": 2024, "hco_id": "H1", "hco_name": "Alpha 协会", "business_unit": "B&I MKT", "total_amount": 300, "activity_count": 3},
            {"year": 2025, "hco_id": "H1", "hco_name": "Alpha协会", "business_unit": "Medical", "total_amount": 100, "activity_count": 1},
            {"year": 2025, "hco_id": "H2", "hco_name": "Beta 大学", "business_unit": "Medical", "total_amount": 900, "activity_count": 1},
        ]
    )
    heat = hco_bu_heatmap(store, (2024, 2025), focus_hco_id="H1")
    assert [r["hco_name"] for r in heat["rows"]] == ["Alpha 协会"]
    assert heat["rows"][0]["total"] == 400
    assert heat["max_value"] == 300
