from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

import altair as alt
import pandas as pd

from spend_core.charts import mix_donut, to_vega_spec
from spend_core.data import DataStore
from spend_core.filters import OverviewSelection, hco_profiling_link
from spend_core.lookups import ACTIVITY_KIND_LABELS, COLORS, bu_color, category_color, classify_by_name, parent_of
from spend_core.pipeline import RecordFilter, filter_records, group_sum, top_n

KIND_FILLS = {"HCO": COLORS["primary"], "Vendor": COLORS["accent"], "event": COLORS["primary"], "non-event": COLORS["neutral"]}


def _kind_mix(rows: pd.DataFrame, column: str, keys, labels=None) -> list:
    out = []
    for key in keys:
        value = float(rows.loc[rows[column] == key, "amount"].sum()) if not rows.empty else 0.0
        out.append({"key": (labels or {}).get(key, key), "value": value, "fill": KIND_FILLS[key]})
    return out


def hco_master_view(store: DataStore, years) -> pd.DataFrame:
    """HCO-master rows for ``years`` with a name-inferred category."""
    master = filter_records(store.hco_master, RecordFilter(years=tuple(years)))
    master = master[["entity_name", "total_amount"]].rename(columns={"total_amount": "amount"})
    master["category"] = master["entity_name"].map(classify_by_name)
    return master


def compute_overview(selection: OverviewSelection, store: DataStore) -> Dict[str, Any]:
    rows = filter_records(store.activity, selection.record_filter())
    settings = selection.settings

    total_spending = float(rows["amount"].sum()) if not rows.empty else 0.0
    total_activities = int(rows["occurrence_count"].sum()) if not rows.empty else 0
    quarters = sorted(rows["period"].unique().tolist()) if not rows.empty else []

    trend = group_sum(rows, "period", ["amount", "occurrence_count"]).sort_values("period", kind="stable")

    bu = group_sum(rows.assign(business_unit=rows["business_unit"].map(parent_of)), "business_unit", ["amount", "occurrence_count"])
    # Fallback colors rotate by first-seen position, before ranking.
    bu["fill"] = [bu_color(name, i) for i, name in enumerate(bu["business_unit"])]
    bu = top_n(bu, "amount")

    # HCO section follows the selected years only; the master table carries no BU.
    years = selection.years
    master = hco_master_view(store, years)
    categories = top_n(group_sum(master, "category", "amount").rename(columns={"category": "name", "amount": "value"}), "value")
    categories["fill"] = categories["name"].map(category_color)

    per_hco = top_n(group_sum(master, "entity_name", "amount"), "amount")
    top_hcos = per_hco.head(settings.top_hcos).rename(columns={"entity_name": "name"})

    bu_rows = filter_records(store.hco_bu_year_summary, RecordFilter(years=years))
    bu_counts = bu_rows.groupby("hco_name")["business_unit"].nunique() if not bu_rows.empty else pd.Series(dtype=int)
    high_impact = per_hco.head(settings.top_hcos).rename(columns={"entity_name": "hco_name", "amount": "total_amount"})
    high_impact["bu_count"] = high_impact["hco_name"].map(bu_counts).fillna(0).astype(int)
    high_impact["link"] = high_impact["hco_name"].map(hco_profiling_link)

    charts: Dict[str, Any] = {}
    if not trend.empty:
        base = alt.Chart(trend).encode(x=alt.X("period:O", title="Quarter", axis=alt.Axis(grid=False)))
        bars = base.mark_bar(color=COLORS["primary"]).encode(
            y=alt.Y("amount:Q", title="Spending", axis=alt.Axis(format="$~s", gridDash=[4, 4], domain=False, ticks=False)),
            tooltip=["period", alt.Tooltip("amount:Q", format="$,.0f"), alt.Tooltip("occurrence_count:Q", format=",")],
        )
        line = base.mark_line(point=True, color=COLORS["accent"]).encode(
            y=alt.Y("occurrence_count:Q", title="Activities", axis=alt.Axis(orient="right")),
        )
        charts["quarterly_trend"] = to_vega_spec(alt.layer(bars, line).resolve_scale(y="independent"))
    if not bu.empty:
        bu_hover = alt.selection_point(fields=["business_unit"], on="mouseover", empty="all")
        bu_chart = (
            alt.Chart(bu)
            .mark_bar()
            .encode(
                x=alt.X("amount:Q", title="Spending", axis=alt.Axis(format="$~s")),
                y=alt.Y("business_unit:N", title="BU", sort="-x"),
                color=alt.Color("fill:N", scale=None),
                opacity=alt.condition(bu_hover, alt.value(1), alt.value(0.6)),
                tooltip=["business_unit", alt.Tooltip("amount:Q", format="$,.0f"), alt.Tooltip("occurrence_count:Q", format=",")],
            )
            .add_params(bu_hover)
        )
        charts["bu_breakdown"] = to_vega_spec(bu_chart)
    if not categories.empty:
        charts["hco_category_mix"] = mix_donut(categories, title="HCO Category")

    return {
        "filters": asdict(selection),
        "kpis": {
            "total_spending": total_spending,
            "total_activities": total_activities,
            "quarters_covered": {
                "count": len(quarters),
                "first": quarters[0] if quarters else None,
                "last": quarters[-1] if quarters else None,
            },
        },
        "quarterly_trend": trend.rename(columns={"period": "quarter", "occurrence_count": "count"}).to_dict(orient="records"),
        "third_party_mix": _kind_mix(rows, "third_party_kind", ("HCO", "Vendor")),
        "activity_mix": _kind_mix(rows, "activity_kind", ("event", "non-event"), ACTIVITY_KIND_LABELS),
        "bu_breakdown": bu.rename(columns={"business_unit": "bu", "occurrence_count": "count"}).to_dict(orient="records"),
        "hco_category_mix": categories.to_dict(orient="records"),
        "top_hcos": top_hcos.to_dict(orient="records"),
        "high_impact_hcos": high_impact.to_dict(orient="records"),
        "hco_total_spending": float(master["amount"].sum()) if not master.empty else 0.0,
        "charts": charts,
    }
