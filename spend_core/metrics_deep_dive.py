from __future__ import annotations

from dataclasses import asdict, replace
from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from spend_core.charts import mix_donut, to_vega_spec
from spend_core.data import DataStore
from spend_core.filters import DeepDiveSelection
from spend_core.lookups import (
    BU_SUBLEVEL_COLORS,
    COLORS,
    HCO_CATEGORIES,
    PARENT_BUS,
    category_color,
    has_sub_levels,
    parent_of,
    translate_hco_type,
)
from spend_core.pipeline import (
    RecordFilter,
    cell_intensity,
    cross_tab,
    cross_tab_max,
    filter_records,
    group_sum,
    top_n,
)

STACK_CATEGORIES = ("University", "Association", "Foundation", "Non-profit", "Other")
UNKNOWN_HCO = "Unknown HCO"


def breakdown_view(store: DataStore, selection: DeepDiveSelection, third_party_kind: str = "HCO") -> pd.DataFrame:
    """Breakdown rows for the selected years and parent BUs with parent and category resolved."""
    rows = filter_records(store.hco_breakdown, replace(selection.record_filter(), third_party_kind=third_party_kind))
    rows["parent_bu"] = rows["business_unit_sub_level"].map(parent_of)
    rows["hco_category"] = rows["hco_type_local"].map(translate_hco_type)
    return rows


def bu_category_stack(rows: pd.DataFrame) -> List[Dict[str, Any]]:
    """One row per parent BU with an amount column for every HCO category, largest total first."""
    if rows.empty:
        return []
    sums = group_sum(rows, ["parent_bu", "hco_category"], "amount")
    out: Dict[str, Dict[str, Any]] = {}
    for r in sums.itertuples(index=False):
        entry = out.setdefault(r.parent_bu, {"bu": r.parent_bu, **{c: 0.0 for c in STACK_CATEGORIES}})
        entry[r.hco_category] = entry.get(r.hco_category, 0.0) + float(r.amount)
    ordered = sorted(out.values(), key=lambda e: sum(e[c] for c in STACK_CATEGORIES), reverse=True)
    return ordered


def sub_level_view(rows: pd.DataFrame, business_units: Sequence[str]) -> List[Dict[str, Any]]:
    """Sums per sub-level for selected parents that have sub-levels; [] when none is selected."""
    parents = [bu for bu in business_units if has_sub_levels(bu)]
    if not parents or rows.empty:
        return []
    subs = rows[rows["parent_bu"].isin(parents) & (rows["business_unit_sub_level"] != rows["parent_bu"])]
    grouped = top_n(group_sum(subs, "business_unit_sub_level", ["amount", "occurrence_count"]), "amount")
    grouped["parent_bu"] = grouped["business_unit_sub_level"].map(parent_of)
    grouped["fill"] = grouped["business_unit_sub_level"].map(lambda s: BU_SUBLEVEL_COLORS.get(s, COLORS["primary"]))
    return grouped.rename(columns={"business_unit_sub_level": "bu_sub_level", "occurrence_count": "count"}).to_dict(orient="records")


def sub_level_summary(rows: pd.DataFrame, business_units: Sequence[str], limit: int = 15) -> List[Dict[str, Any]]:
    parents = [bu for bu in business_units if has_sub_levels(bu)]
    if not parents or rows.empty:
        return []
    detail = rows[rows["parent_bu"].isin(parents)]
    detail = detail[["parent_bu", "business_unit_sub_level", "hco_category", "amount", "occurrence_count"]]
    ranked = top_n(detail, "amount", limit)
    return ranked.rename(
        columns={"business_unit_sub_level": "bu_sub_level", "hco_category": "hco_type", "occurrence_count": "count"}
    ).to_dict(orient="records")


def hco_bu_heatmap(store: DataStore, years: Sequence[int], *, focus_hco_id: Optional[str] = None, limit: int = 20) -> Dict[str, Any]:
    """HCO x BU amounts with shading relative to the rows on display."""
    rows = filter_records(store.hco_bu_year_summary, RecordFilter(years=tuple(years)))
    if focus_hco_id is None:
        table = cross_tab(rows, "hco_name", "business_unit", "total_amount", limit=limit)
    else:
        # One row per id, labelled with the first name seen for it.
        table = cross_tab(rows, "hco_id", "business_unit", "total_amount", focus=focus_hco_id)
        if table:
            names = rows.loc[rows["hco_id"] == focus_hco_id, "hco_name"]
            table[0]["row"] = names.iloc[0]
        else:
            table = [{"row": UNKNOWN_HCO, "total": 0.0, "cells": {}}]
    max_value = cross_tab_max(table, PARENT_BUS)
    heat_rows = []
    for r in table:
        heat_rows.append(
            {
                "hco_name": r["row"],
                "total": r["total"],
                "cells": [
                    {"bu": bu, "amount": r["cells"].get(bu, 0.0), "intensity": cell_intensity(r["cells"].get(bu, 0.0), max_value)}
                    for bu in PARENT_BUS
                ],
            }
        )
    return {"columns": list(PARENT_BUS), "rows": heat_rows, "max_value": max_value, "focus_hco_id": focus_hco_id}


def compute_bu_deep_dive(selection: DeepDiveSelection, store: DataStore) -> Dict[str, Any]:
    settings = selection.settings
    hco_rows = breakdown_view(store, selection, "HCO")
    vendor_rows = breakdown_view(store, selection, "Vendor")

    stacked = bu_category_stack(hco_rows)

    mix = top_n(group_sum(hco_rows, "hco_category", "amount").rename(columns={"hco_category": "name", "amount": "value"}), "value")
    mix = mix[mix["value"] > 0].reset_index(drop=True)
    mix["fill"] = mix["name"].map(category_color)

    hco_amount = float(hco_rows["amount"].sum()) if not hco_rows.empty else 0.0
    vendor_amount = float(vendor_rows["amount"].sum()) if not vendor_rows.empty else 0.0
    comparison = [
        d
        for d in (
            {"name": "HCO", "value": hco_amount, "fill": COLORS["primary"]},
            {"name": "Vendor", "value": vendor_amount, "fill": COLORS["accent"]},
        )
        if d["value"] > 0
    ]

    heatmap = hco_bu_heatmap(store, selection.years, focus_hco_id=selection.focus_hco_id, limit=settings.heatmap_rows)

    charts: Dict[str, Any] = {}
    if stacked:
        stack_df = pd.DataFrame(stacked).melt(id_vars="bu", value_vars=list(STACK_CATEGORIES), var_name="category", value_name="amount")
        stack_chart = (
            alt.Chart(stack_df)
            .mark_bar()
            .encode(
                x=alt.X("bu:N", title="BU", sort=[s["bu"] for s in stacked]),
                y=alt.Y("amount:Q", stack="zero", title="Spending", axis=alt.Axis(format="$~s")),
                color=alt.Color(
                    "category:N",
                    title="HCO Category",
                    scale=alt.Scale(domain=list(STACK_CATEGORIES), range=[category_color(c) for c in STACK_CATEGORIES]),
                ),
                tooltip=["bu", "category", alt.Tooltip("amount:Q", format="$,.0f")],
            )
        )
        charts["bu_category_stack"] = to_vega_spec(stack_chart)
    if not mix.empty:
        charts["hco_category_mix"] = mix_donut(mix, title="HCO Category")
    if heatmap["rows"]:
        heat_df = pd.DataFrame(
            [{"hco_name": r["hco_name"], **c} for r in heatmap["rows"] for c in r["cells"]]
        )
        heat_chart = (
            alt.Chart(heat_df)
            .mark_rect()
            .encode(
                x=alt.X("bu:N", title="BU", sort=list(PARENT_BUS)),
                y=alt.Y("hco_name:N", title="HCO", sort=[r["hco_name"] for r in heatmap["rows"]]),
                opacity=alt.Opacity("intensity:Q", scale=None),
                color=alt.value(COLORS["primary"]),
                tooltip=["hco_name", "bu", alt.Tooltip("amount:Q", format="$,.0f")],
            )
        )
        charts["hco_bu_heatmap"] = to_vega_spec(heat_chart)

    return {
        "filters": asdict(selection),
        "categories": list(HCO_CATEGORIES),
        "bu_category_stack": stacked,
        "hco_category_mix": mix.to_dict(orient="records"),
        "sub_levels": sub_level_view(hco_rows, selection.business_units),
        "sub_level_summary": sub_level_summary(hco_rows, selection.business_units, limit=settings.summary_rows),
        "third_party_comparison": comparison,
        "heatmap": heatmap,
        "charts": charts,
    }
