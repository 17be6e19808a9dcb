from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from spend_core.charts import mix_donut, to_vega_spec
from spend_core.data import DataStore
from spend_core.filters import STATUS_ALL, ProfilingSelection, bu_deep_dive_link
from spend_core.lookups import COLORS, category_color
from spend_core.pipeline import (
    LIFECYCLE_CONTINUED,
    LIFECYCLE_EARLIER_ONLY,
    LIFECYCLE_NEW,
    LIFECYCLE_ONE_TIME,
    RecordFilter,
    average_per_unit,
    classify_lifecycle,
    filter_records,
    group_sum,
    lifecycle_counts,
    lifecycle_labels,
    safe_ratio,
    top_n,
)


def aggregate_hcos(store: DataStore, years: Sequence[int]) -> pd.DataFrame:
    """HCO-year rows for ``years`` summed per HCO name.

    The id and category of the first row seen for a name are kept. Average amount
    (in millions) and bubble size are derived from the summed totals.
    """
    rows = filter_records(store.hco_year_summary, RecordFilter(years=tuple(years)))
    cols = ["hco_name", "hco_id", "category", "total_amount", "activity_count", "avg_amount_million", "bubble_size"]
    if rows.empty:
        return pd.DataFrame(columns=cols)
    sums = group_sum(rows, "hco_name", ["total_amount", "activity_count"])
    firsts = rows.drop_duplicates(subset=["hco_name"], keep="first")[["hco_name", "hco_id", "category"]]
    out = sums.merge(firsts, on="hco_name", how="left")
    out["avg_amount_million"] = safe_ratio(out["total_amount"], out["activity_count"]) / 1_000_000
    out["bubble_size"] = out["total_amount"] / 1_000_000
    return out[cols]


def bu_breakdown_for(store: DataStore, hco_name: str, years: Sequence[int]) -> List[Dict[str, Any]]:
    """Per-BU totals for one HCO in ``years``, largest first. Unknown names give []."""
    bu = store.hco_bu_year_summary
    if bu.empty:
        return []
    rows = bu[(bu["hco_name"] == hco_name) & bu["year"].isin(set(years))]
    grouped = top_n(group_sum(rows, "business_unit", ["total_amount", "activity_count"]), "total_amount")
    return grouped.rename(columns={"business_unit": "bu"}).to_dict(orient="records")


def build_bubbles(hcos: pd.DataFrame, store: DataStore, years: Sequence[int], *, cap: int = 50, focus: Optional[str] = None) -> List[Dict[str, Any]]:
    """Scatter rows (x=activities, y=avg amount in M, z=total in M), largest ``cap`` by z."""
    if hcos.empty:
        return []
    eligible = hcos[(hcos["activity_count"] > 0) & (hcos["total_amount"] > 0)]
    ranked = top_n(eligible, "bubble_size", cap)
    bubbles = []
    for r in ranked.itertuples(index=False):
        bubbles.append(
            {
                "x": int(r.activity_count),
                "y": float(r.avg_amount_million),
                "z": float(r.bubble_size),
                "name": r.hco_name,
                "hco_id": r.hco_id,
                "category": r.category,
                "total_amount": float(r.total_amount),
                "bu_breakdown": bu_breakdown_for(store, r.hco_name, years),
                "fill": category_color(r.category, COLORS["neutral"]),
                "focused": focus is not None and focus in (r.hco_name, r.hco_id),
                "link": bu_deep_dive_link(r.hco_id),
            }
        )
    return bubbles


def top_hcos_for_year(store: DataStore, year: int, n: int) -> pd.DataFrame:
    rows = filter_records(store.hco_year_summary, RecordFilter(years=(year,)))
    return top_n(rows, "total_amount", n)


def filter_hcos(store: DataStore, selection: ProfilingSelection, classified: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """Aggregated HCOs for the selected years, categories and lifecycle status.

    Statuses come from the classification of the whole HCO-year table, so the
    year filter never changes which status an HCO has.
    """
    hcos = filter_records(aggregate_hcos(store, selection.years), selection.record_filter())
    if selection.lifecycle_status != STATUS_ALL:
        earlier, later = store.observation_years
        labels = lifecycle_labels(earlier, later)
        if classified is None:
            classified = classify_lifecycle(store.hco_year_summary, earlier, later)
        status_by_id = dict(zip(classified["hco_id"], classified["status"]))
        hco_labels = hcos["hco_id"].map(lambda i: labels.get(status_by_id.get(i, LIFECYCLE_ONE_TIME)))
        hcos = hcos[hco_labels == selection.lifecycle_status]
    return hcos.reset_index(drop=True)


def compute_hco_profiling(selection: ProfilingSelection, store: DataStore) -> Dict[str, Any]:
    settings = selection.settings
    earlier, later = store.observation_years
    labels = lifecycle_labels(earlier, later)

    classified = classify_lifecycle(store.hco_year_summary, earlier, later)
    counts = lifecycle_counts(classified)

    hcos = filter_hcos(store, selection, classified)

    total_spending = float(hcos["total_amount"].sum()) if not hcos.empty else 0.0
    total_activities = int(hcos["activity_count"].sum()) if not hcos.empty else 0

    bubbles = build_bubbles(hcos, store, selection.years, cap=settings.scatter_cap, focus=selection.focus_hco)

    mix = top_n(group_sum(hcos, "category", "total_amount").rename(columns={"category": "name", "total_amount": "value"}), "value")
    mix["fill"] = mix["name"].map(lambda c: category_color(c, COLORS["neutral"]))

    top_earlier = top_hcos_for_year(store, earlier, settings.top_hcos_per_year)
    top_later = top_hcos_for_year(store, later, settings.top_hcos_per_year)
    max_top_amount = max(
        float(top_earlier["total_amount"].iloc[0]) if not top_earlier.empty else 0.0,
        float(top_later["total_amount"].iloc[0]) if not top_later.empty else 0.0,
    )

    charts: Dict[str, Any] = {}
    if bubbles:
        scatter_df = pd.DataFrame([{k: v for k, v in b.items() if k != "bu_breakdown"} for b in bubbles])
        hover = alt.selection_point(fields=["name"], on="mouseover", empty="all")
        scatter = (
            alt.Chart(scatter_df)
            .mark_circle()
            .encode(
                x=alt.X("x:Q", title="Activity Count"),
                y=alt.Y("y:Q", title="Avg Amount per Activity (M)", axis=alt.Axis(format=".2f")),
                size=alt.Size("z:Q", title="Total Amount (M)"),
                color=alt.Color("fill:N", scale=None),
                opacity=alt.condition(hover, alt.value(0.9), alt.value(0.4)),
                tooltip=[
                    alt.Tooltip("name:N", title="HCO"),
                    alt.Tooltip("category:N", title="Category"),
                    alt.Tooltip("total_amount:Q", title="Total", format="$,.0f"),
                    alt.Tooltip("x:Q", title="Activities"),
                ],
            )
            .add_params(hover)
        )
        charts["bubble"] = to_vega_spec(scatter)
    if not mix.empty:
        charts["hco_category_mix"] = mix_donut(mix, title="HCO Category")

    top_cols = ["hco_id", "hco_name", "category", "total_amount", "activity_count"]
    return {
        "filters": asdict(selection),
        "focus_hco": selection.focus_hco,
        "observation_years": {"earlier": earlier, "later": later},
        "kpis": {
            "total_spending": total_spending,
            "total_activities": total_activities,
            "unique_hcos": int(len(hcos)),
            "avg_amount_per_activity": average_per_unit(total_spending, total_activities),
        },
        "lifecycle_kpis": [
            {"status": status, "label": labels[status], "count": counts[status]}
            for status in (LIFECYCLE_NEW, LIFECYCLE_CONTINUED, LIFECYCLE_EARLIER_ONLY, LIFECYCLE_ONE_TIME)
        ],
        "bubbles": bubbles,
        "hco_category_mix": mix.to_dict(orient="records"),
        "top_hcos": {
            "earlier": top_earlier[top_cols].to_dict(orient="records") if not top_earlier.empty else [],
            "later": top_later[top_cols].to_dict(orient="records") if not top_later.empty else [],
            "max_amount": max_top_amount,
        },
        "charts": charts,
    }
