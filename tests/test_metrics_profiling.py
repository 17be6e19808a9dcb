"""
Tests for the HCO profiling page payload
"""
import pytest

from spend_core.data import DataStore
from spend_core.filters import default_profiling_selection, with_selection
from spend_core.metrics_profiling import (
    aggregate_hcos,
    bu_breakdown_for,
    build_bubbles,
    compute_hco_profiling,
    filter_hcos,
)


def test_aggregate_hcos_sums_per_name(store):
    hcos = aggregate_hcos(store, (2024, 2025)).set_index("hco_name")
    assert hcos.loc["Alpha 协会", "total_amount"] == 1200
    assert hcos.loc["Alpha 协会", "activity_count"] == 12
    assert hcos.loc["Alpha 协会", "avg_amount_million"] == pytest.approx(100 / 1_000_000)
    assert hcos.loc["Gamma 基金会", "avg_amount_million"] == 0.0


def test_bu_breakdown_for(store):
    rows = bu_breakdown_for(store, "Alpha 协会", (2024, 2025))
    assert [(r["bu"], r["total_amount"]) for r in rows] == [
        ("B&I MKT", 700),
        ("CV MKT", 300),
        ("Medical", 200),
    ]
    assert bu_breakdown_for(store, "Alpha 协会", (2025,))[0]["total_amount"] == 400
    assert bu_breakdown_for(store, "Nobody", (2024, 2025)) == []


def test_profiling_kpis(store):
    out = compute_hco_profiling(default_profiling_selection(store), store)
    kpis = out["kpis"]
    assert kpis["total_spending"] == 2600
    assert kpis["total_activities"] == 17
    assert kpis["unique_hcos"] == 4
    assert kpis["avg_amount_per_activity"] == pytest.approx(2600 / 17)
    assert out["observation_years"] == {"earlier": 2024, "later": 2025}


def test_profiling_lifecycle_kpis(store):
    out = compute_hco_profiling(default_profiling_selection(store), store)
    counts = {r["status"]: r["count"] for r in out["lifecycle_kpis"]}
    assert counts == {"new_in_later": 2, "continued": 1, "used_in_earlier_only": 1, "one_time": 3}
    assert out["lifecycle_kpis"][0]["label"] == "New in 2025"


def test_profiling_lifecycle_filter(store):
    sel = with_selection(default_profiling_selection(store), lifecycle_status="New in 2025")
    out = compute_hco_profiling(sel, store)
    assert out["kpis"]["unique_hcos"] == 2
    # Zero-activity HCOs are left off the scatter.
    assert [b["name"] for b in out["bubbles"]] == ["Delta 医院"]
    # Lifecycle counts describe the whole population, not the filtered view.
    assert {r["status"]: r["count"] for r in out["lifecycle_kpis"]}["new_in_later"] == 2


def test_profiling_category_filter(store):
    sel = with_selection(default_profiling_selection(store), categories=["University"])
    out = compute_hco_profiling(sel, store)
    assert out["kpis"]["total_spending"] == 300
    assert [r["name"] for r in out["hco_category_mix"]] == ["University"]


def test_profiling_focus_highlights_without_filtering(store):
    sel = with_selection(default_profiling_selection(store), focus_hco="Beta 大学")
    out = compute_hco_profiling(sel, store)
    assert out["focus_hco"] == "Beta 大学"
    assert len(out["bubbles"]) == 3
    assert [b["name"] for b in out["bubbles"] if b["focused"]] == ["Beta 大学"]


def test_profiling_bubbles(store):
    out = compute_hco_profiling(default_profiling_selection(store), store)
    alpha = out["bubbles"][0]
    assert alpha["name"] == "Alpha 协会"
    assert alpha["x"] == 12
    assert alpha["z"] == pytest.approx(0.0012)
    assert alpha["link"] == "/bu-deep-dive?hcoId=H1"
    assert [r["bu"] for r in alpha["bu_breakdown"]] == ["B&I MKT", "CV MKT", "Medical"]


def test_profiling_top_hcos_per_year(store):
    out = compute_hco_profiling(default_profiling_selection(store), store)
    assert [r["hco_name"] for r in out["top_hcos"]["earlier"]] == ["Alpha 协会", "Beta 大学"]
    assert [r["hco_name"] for r in out["top_hcos"]["later"]] == ["Gamma 基金会", "Alpha 协会", "Delta 医院"]
    assert out["top_hcos"]["max_amount"] == 900


def test_profiling_empty_years(store):
    sel = with_selection(default_profiling_selection(store), years=[])
    out = compute_hco_profiling(sel, store)
    assert out["kpis"]["unique_hcos"] == 0
    assert out["kpis"]["avg_amount_per_activity"] == 0.0
    assert out["bubbles"] == []
    assert out["hco_category_mix"] == []


@pytest.fixture
def crowded_store():
    # 75 qualifying HCOs; every group of three shares a bubble size.
    rows = [
        {
            "year": 2025,
            "hco_id": f"H{i:03d}",
            "hco_name": f"HCO {i:03d}",
            "category": "Other",
            "total_amount": 1_000_000 * (25 - i // 3),
            "activity_count": 1,
        }
        for i in range(75)
    ]
    return DataStore.from_records(hco_year_summary=rows)


def test_scatter_cap_keeps_fifty_in_rank_order(crowded_store):
    hcos = aggregate_hcos(crowded_store, (2025,))
    bubbles = build_bubbles(hcos, crowded_store, (2025,), cap=50)
    assert len(bubbles) == 50
    sizes = [b["z"] for b in bubbles]
    assert sizes == sorted(sizes, reverse=True)
    assert [b["name"] for b in bubbles[:4]] == ["HCO 000", "HCO 001", "HCO 002", "HCO 003"]
    assert bubbles[-1]["name"] == "HCO 049"


def test_scatter_cap_via_settings(crowded_store):
    out = compute_hco_profiling(default_profiling_selection(crowded_store), crowded_store)
    assert len(out["bubbles"]) == 50
    assert out["kpis"]["unique_hcos"] == 75


def test_filter_hcos_applies_lifecycle_status(store):
    sel = with_selection(default_profiling_selection(store), lifecycle_status="Used in 2024 only")
    assert filter_hcos(store, sel)["hco_name"].tolist() == ["Beta 大学"]
    sel = with_selection(sel, lifecycle_status="New in 2025", categories=["Non-profit"])
    assert filter_hcos(store, sel)["hco_name"].tolist() == ["Delta 医院"]
    assert len(filter_hcos(store, default_profiling_selection(store))) == 4
