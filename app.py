import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import pandas as pd
import streamlit as st

from spend_core.data import DataStoreError, format_currency, format_full_currency, load_data_store
from spend_core.filters import (
    STATUS_ALL,
    default_deep_dive_selection,
    default_overview_selection,
    default_profiling_selection,
    focus_from_query,
    lifecycle_status_options,
    multi_select_label,
    with_selection,
)
from spend_core.lookups import ACTIVITY_KIND_LABELS, THIRD_PARTY_KINDS
from spend_core.metrics_debug import compute_debug
from spend_core.metrics_deep_dive import compute_bu_deep_dive
from spend_core.metrics_overview import compute_overview
from spend_core.metrics_profiling import compute_hco_profiling

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

PAGES = ["Executive Overview", "HCO Profiling", "BU Deep Dive", "Data Quality"]
PAGE_KEYS = {
    "overview": "Executive Overview",
    "hco-profiling": "HCO Profiling",
    "bu-deep-dive": "BU Deep Dive",
    "debug": "Data Quality",
}


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .page-subtitle {color: #6b7280;font-size: 0.9rem;margin-top: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, subtitle: Optional[str] = None):
    container = st.container()
    container.markdown(f"<div class='card-title'>{title}</div>", unsafe_allow_html=True)
    if subtitle:
        container.caption(subtitle)
    body = container.container()
    with body:
        yield body


def render_page_header(title: str, subtitle: str, chips: List[str]):
    inject_base_styles()
    st.markdown(
        f"<div class='app-top-bar'><div class='page-title'>{title}</div><div class='page-subtitle'>{subtitle}</div></div>",
        unsafe_allow_html=True,
    )
    st.markdown("<div class='chip-row'>" + "".join(f"<span class='chip'>{c}</span>" for c in chips) + "</div>", unsafe_allow_html=True)


def render_chart(payload: Dict[str, Any], key: str, empty_message: str = "No data for the selected filters."):
    spec = payload.get("charts", {}).get(key)
    if spec:
        st.vega_lite_chart(spec, use_container_width=True)
    else:
        st.info(empty_message)


def open_page(page: str, **params: str):
    st.query_params.clear()
    st.query_params["page"] = page
    for k, v in params.items():
        st.query_params[k] = v
    st.rerun()


# ---------- Pages ----------
def render_overview(store):
    base = default_overview_selection(store)
    with st.sidebar:
        periods = st.multiselect("Quarter", options=store.periods, default=store.periods)
        bus = st.multiselect("BU", options=store.business_units, default=store.business_units)
        activity_kind = st.selectbox(
            "Activity type",
            options=["all", "event", "non-event"],
            format_func=lambda v: "All Activities" if v == "all" else f"{ACTIVITY_KIND_LABELS[v]} Only",
        )
        third_party_kind = st.radio("Third-party type", options=["all"] + list(THIRD_PARTY_KINDS), horizontal=True)
    selection = with_selection(base, periods=periods, business_units=bus, activity_kind=activity_kind, third_party_kind=third_party_kind)
    payload = compute_overview(selection, store)

    render_page_header(
        "Third-Party Activity Executive Overview",
        "Summary across spending, activities, BU behavior and HCO profile.",
        [multi_select_label("Quarters", periods, store.periods), multi_select_label("BUs", bus, store.business_units)],
    )
    kpis = payload["kpis"]
    cols = st.columns(3)
    cols[0].metric("Total Spending", format_currency(kpis["total_spending"]), help=format_full_currency(kpis["total_spending"]))
    cols[1].metric("Total Activities", f"{kpis['total_activities']:,}")
    covered = kpis["quarters_covered"]
    cols[2].metric(
        "Quarters Covered",
        f"{covered['count']} Quarters",
        help=f"{covered['first']} – {covered['last']}" if covered["count"] else "No data",
    )

    left, right = st.columns([2, 1])
    with left, card("Quarterly Spending & Activity Trend", "Spending (bars) and activity count (line) by quarter"):
        render_chart(payload, "quarterly_trend")
    with right, card("HCO vs Vendor"):
        st.dataframe(pd.DataFrame(payload["third_party_mix"]).drop(columns=["fill"]), hide_index=True, use_container_width=True)
        st.dataframe(pd.DataFrame(payload["activity_mix"]).drop(columns=["fill"]), hide_index=True, use_container_width=True)

    with card("Spending by BU"):
        render_chart(payload, "bu_breakdown")

    left, right = st.columns(2)
    with left, card("HCO Category Mix", f"Total HCO spending {format_currency(payload['hco_total_spending'])}"):
        render_chart(payload, "hco_category_mix")
    with right, card("High-Impact HCOs", "Top HCOs by spending and number of engaged BUs"):
        for row in payload["high_impact_hcos"]:
            c1, c2, c3 = st.columns([4, 2, 2])
            c1.write(row["hco_name"])
            c2.write(format_currency(row["total_amount"]))
            if c3.button(f"{row['bu_count']} BUs ›", key=f"hco-{row['hco_name']}"):
                open_page("hco-profiling", hco=row["hco_name"])


def render_profiling(store):
    focus = focus_from_query(st.query_params, "hco")
    base = default_profiling_selection(store, focus=focus)
    with st.sidebar:
        years = st.multiselect("Year", options=store.years, default=store.years)
        categories = st.multiselect("HCO Type", options=store.hco_categories, default=store.hco_categories)
        status = st.selectbox("HCO status", options=lifecycle_status_options(store), index=0)
    selection = with_selection(base, years=years, categories=categories, lifecycle_status=status or STATUS_ALL)
    payload = compute_hco_profiling(selection, store)

    render_page_header(
        "HCO Profiling",
        "HCO lifecycle analysis with year-over-year comparison and BU engagement details.",
        [multi_select_label("Years", years, store.years), multi_select_label("HCO Types", categories, store.hco_categories), status],
    )
    if payload["focus_hco"]:
        c1, c2 = st.columns([6, 1])
        c1.markdown(f"**Selected HCO:** {payload['focus_hco']}")
        if c2.button("Clear ✕"):
            open_page("hco-profiling")

    kpis = payload["kpis"]
    cols = st.columns(4)
    cols[0].metric("Total HCO Spending", format_currency(kpis["total_spending"]), help=format_full_currency(kpis["total_spending"]))
    cols[1].metric("Total Activities", f"{kpis['total_activities']:,}")
    cols[2].metric("Unique HCOs", str(kpis["unique_hcos"]))
    cols[3].metric("Avg Amount/Activity", format_currency(kpis["avg_amount_per_activity"]))

    cols = st.columns(4)
    for col, item in zip(cols, payload["lifecycle_kpis"]):
        col.metric(item["label"], str(item["count"]))
    st.caption("One-time HCOs overlap with the new and earlier-only counts; the four tiles do not sum to the population.")

    with card("HCO Spending vs Activity", "Bubble size = total spending; top 50 HCOs"):
        render_chart(payload, "bubble")
        focused = [b for b in payload["bubbles"] if b["focused"]]
        for b in focused:
            st.dataframe(pd.DataFrame(b["bu_breakdown"]), hide_index=True, use_container_width=True)
            if st.button("Open in BU Deep Dive", key=f"dd-{b['hco_id']}"):
                open_page("bu-deep-dive", hcoId=b["hco_id"])

    left, right = st.columns(2)
    with left, card("HCO Category Mix"):
        render_chart(payload, "hco_category_mix")
    with right, card("Top HCOs by Year"):
        years_info = payload["observation_years"]
        for key in ("earlier", "later"):
            st.markdown(f"**{years_info[key]}**")
            st.dataframe(pd.DataFrame(payload["top_hcos"][key]), hide_index=True, use_container_width=True)


def render_deep_dive(store):
    focus = focus_from_query(st.query_params, "hcoId")
    base = default_deep_dive_selection(store, focus=focus)
    with st.sidebar:
        periods = st.multiselect("Quarter", options=store.periods, default=store.periods)
        bus = st.multiselect("BU", options=store.parent_business_units, default=store.parent_business_units)
    selection = with_selection(base, periods=periods, business_units=bus)
    payload = compute_bu_deep_dive(selection, store)

    chips = [multi_select_label("Quarters", periods, store.periods), multi_select_label("BUs", bus, store.parent_business_units)]
    if focus:
        rows = payload["heatmap"]["rows"]
        chips.append(f"HCO: {rows[0]['hco_name'] if rows else focus}")
    render_page_header("BU Deep Dive", "BU behavior by HCO category, sub-level and HCO.", chips)

    left, right = st.columns([2, 1])
    with left, card("BU × HCO Category"):
        render_chart(payload, "bu_category_stack")
    with right, card("HCO Category Mix"):
        render_chart(payload, "hco_category_mix")

    with card("BU Sub-levels", "Shown when B&I MKT or CV MKT is selected"):
        if payload["sub_levels"]:
            st.dataframe(pd.DataFrame(payload["sub_levels"]).drop(columns=["fill"]), hide_index=True, use_container_width=True)
            st.dataframe(pd.DataFrame(payload["sub_level_summary"]), hide_index=True, use_container_width=True)
        else:
            st.info("Select a BU with sub-levels to see the breakdown.")

    with card("HCO vs Vendor"):
        st.dataframe(pd.DataFrame(payload["third_party_comparison"]).drop(columns=["fill"], errors="ignore"), hide_index=True)

    with card("HCO × BU Heatmap", "Shading is relative to the rows shown"):
        render_chart(payload, "hco_bu_heatmap")


def render_debug(store):
    payload = compute_debug(store)
    render_page_header("Data Quality / Debug", f"Source: {payload['source']}", [])
    with card("Data Quality"):
        st.markdown("**Row counts**")
        st.write(payload["row_counts"])
        if payload["period_coverage"]:
            st.markdown("**Quarter coverage**")
            st.dataframe(pd.DataFrame(payload["period_coverage"]), hide_index=True)
        st.write({"hcos_classified": payload["lifecycle_population"]})
    with card("BU totals above HCO-year totals", "Reported only; the data is used as-is"):
        if payload["bu_total_overruns"]:
            st.dataframe(pd.DataFrame(payload["bu_total_overruns"]), hide_index=True)
        else:
            st.success("All per-BU sums are within the yearly totals.")
    with card("Unmapped values"):
        st.write(
            {
                "bu_sub_levels": payload["unmapped_bu_sub_levels"],
                "hco_types": payload["unmapped_hco_types"],
            }
        )
    st.caption("Replace the CSV files under data/ to refresh; the tables are re-read when they change.")


# ---------- UI setup ----------
st.set_page_config(page_title="Third-Party Spend Dashboard", layout="wide")
inject_base_styles()

try:
    data_store = load_data_store()
except DataStoreError as exc:
    st.error(f"Could not load spending tables: {exc}")
    st.stop()

requested = PAGE_KEYS.get(st.query_params.get("page", "overview"), PAGES[0])
with st.sidebar:
    st.markdown("### Navigate")
    nav_choice = st.radio("Navigate", PAGES, index=PAGES.index(requested))
    st.markdown("---")
    st.markdown("### Filters")

if nav_choice == "Executive Overview":
    render_overview(data_store)
elif nav_choice == "HCO Profiling":
    render_profiling(data_store)
elif nav_choice == "BU Deep Dive":
    render_deep_dive(data_store)
else:
    render_debug(data_store)
