"""Generic aggregation steps shared by every page compute.

All functions are pure: they take frames, never mutate them, and return new frames
or plain Python structures.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

import pandas as pd

from spend_core.lookups import parent_of

ALL = "all"

Keys = Union[str, Sequence[str]]

LIFECYCLE_NEW = "new_in_later"
LIFECYCLE_CONTINUED = "continued"
LIFECYCLE_EARLIER_ONLY = "used_in_earlier_only"
LIFECYCLE_ONE_TIME = "one_time"
LIFECYCLE_STATUSES: Tuple[str, ...] = (LIFECYCLE_NEW, LIFECYCLE_CONTINUED, LIFECYCLE_EARLIER_ONLY, LIFECYCLE_ONE_TIME)


@dataclass(frozen=True)
class RecordFilter:
    """Conjunctive row predicate.

    ``None`` leaves a dimension unconstrained; an empty tuple matches nothing.
    Business units are compared at parent granularity. A dimension only applies to
    frames that carry its column.
    """

    periods: Optional[Tuple[str, ...]] = None
    years: Optional[Tuple[int, ...]] = None
    business_units: Optional[Tuple[str, ...]] = None
    bu_column: str = "business_unit"
    categories: Optional[Tuple[str, ...]] = None
    category_column: str = "category"
    activity_kind: str = ALL
    third_party_kind: str = ALL


def filter_records(df: pd.DataFrame, flt: RecordFilter) -> pd.DataFrame:
    if df.empty:
        return df.copy()
    mask = pd.Series(True, index=df.index)
    if flt.periods is not None and "period" in df.columns:
        mask &= df["period"].isin(set(flt.periods))
    if flt.years is not None and "year" in df.columns:
        mask &= df["year"].isin(set(flt.years))
    if flt.business_units is not None and flt.bu_column in df.columns:
        mask &= df[flt.bu_column].map(parent_of).isin(set(flt.business_units))
    if flt.categories is not None and flt.category_column in df.columns:
        mask &= df[flt.category_column].isin(set(flt.categories))
    if flt.activity_kind != ALL and "activity_kind" in df.columns:
        mask &= df["activity_kind"] == flt.activity_kind
    if flt.third_party_kind != ALL and "third_party_kind" in df.columns:
        mask &= df["third_party_kind"] == flt.third_party_kind
    return df[mask].copy()


def _as_list(keys: Keys) -> List[str]:
    return [keys] if isinstance(keys, str) else list(keys)


def group_sum(df: pd.DataFrame, keys: Keys, measures: Keys = ("amount",)) -> pd.DataFrame:
    """Sum ``measures`` per distinct ``keys``, buckets in order of first appearance."""
    key_cols = _as_list(keys)
    measure_cols = _as_list(measures)
    if df.empty:
        return pd.DataFrame(columns=key_cols + measure_cols)
    out = df.groupby(key_cols, sort=False, dropna=False)[measure_cols].sum().reset_index()
    return out[key_cols + measure_cols]


def average_per_unit(total_amount: Any, activity_count: Any) -> float:
    """``total_amount / activity_count``, 0.0 whenever the ratio is undefined."""
    try:
        total = float(total_amount)
        count = float(activity_count)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(total) or math.isnan(count) or count == 0:
        return 0.0
    ratio = total / count
    return ratio if math.isfinite(ratio) else 0.0


def safe_ratio(numerator: pd.Series, denominator: pd.Series) -> pd.Series:
    num = pd.to_numeric(numerator, errors="coerce").astype(float)
    den = pd.to_numeric(denominator, errors="coerce").astype(float)
    out = num / den.where(den != 0)
    return out.replace([math.inf, -math.inf], math.nan).fillna(0.0)


def top_n(df: pd.DataFrame, score: str, n: Optional[int] = None) -> pd.DataFrame:
    """Stable descending sort on ``score``; equal scores keep their input order."""
    if df.empty:
        return df.reset_index(drop=True)
    ranked = df.sort_values(score, ascending=False, kind="stable", na_position="last")
    if n is not None:
        ranked = ranked.head(max(0, int(n)))
    return ranked.reset_index(drop=True)


# ---------------- Cross-tabulation ----------------
def cross_tab(
    df: pd.DataFrame,
    row_key: str,
    col_key: str,
    measure: str,
    *,
    focus: Optional[str] = None,
    focus_key: Optional[str] = None,
    limit: Optional[int] = 20,
) -> List[Dict[str, Any]]:
    """Sparse row x column sums.

    Each row is ``{"row": key, "total": float, "cells": {col: float}}`` where the total
    is the sum of the row's cells. With ``focus`` set, only rows whose ``focus_key``
    (defaults to ``row_key``) equals it are kept and no ranking cap applies; otherwise
    rows are ranked by total (stable) and capped at ``limit``.
    """
    if focus is not None:
        df = df[df[focus_key or row_key] == focus]
    rows: Dict[Any, Dict[Any, float]] = {}
    for rk, ck, val in zip(df[row_key], df[col_key], df[measure]):
        cells = rows.setdefault(rk, {})
        cells[ck] = cells.get(ck, 0.0) + float(val)
    out = [{"row": rk, "total": float(sum(cells.values())), "cells": cells} for rk, cells in rows.items()]
    if focus is not None:
        return out
    out.sort(key=lambda r: r["total"], reverse=True)
    return out[:limit] if limit is not None else out


def cross_tab_max(rows: Iterable[Dict[str, Any]], columns: Optional[Iterable[Any]] = None) -> float:
    """Largest cell among ``rows``, optionally restricted to ``columns``."""
    keep = set(columns) if columns is not None else None
    return max(
        (v for r in rows for c, v in r["cells"].items() if keep is None or c in keep),
        default=0.0,
    )


def cell_intensity(value: float, max_value: float, *, floor: float = 0.2) -> float:
    if value <= 0 or max_value <= 0:
        return 0.0
    return floor + (value / max_value) * (1 - floor)


# ---------------- Lifecycle ----------------
def entity_years(df: pd.DataFrame, id_col: str = "hco_id", year_col: str = "year") -> Dict[str, Set[int]]:
    years: Dict[str, Set[int]] = {}
    for entity, year in zip(df[id_col], df[year_col]):
        years.setdefault(entity, set()).add(int(year))
    return years


def lifecycle_status(years: Set[int], earlier: int, later: int) -> str:
    in_earlier = earlier in years
    in_later = later in years
    if in_later and not in_earlier:
        return LIFECYCLE_NEW
    if in_earlier and in_later:
        return LIFECYCLE_CONTINUED
    if in_earlier and not in_later:
        return LIFECYCLE_EARLIER_ONLY
    return LIFECYCLE_ONE_TIME


def classify_lifecycle(df: pd.DataFrame, earlier: int, later: int, id_col: str = "hco_id") -> pd.DataFrame:
    """One row per entity with its primary status and the independent one-time flag.

    ``one_time`` is true for entities seen in exactly one year and overlaps with
    ``new_in_later`` / ``used_in_earlier_only``, so the tallies do not partition the
    population.
    """
    rows = []
    for entity, years in entity_years(df, id_col=id_col).items():
        rows.append(
            {
                id_col: entity,
                "years": sorted(years),
                "status": lifecycle_status(years, earlier, later),
                "one_time": len(years) == 1,
            }
        )
    return pd.DataFrame(rows, columns=[id_col, "years", "status", "one_time"])


def lifecycle_counts(classified: pd.DataFrame) -> Dict[str, int]:
    counts = {status: 0 for status in LIFECYCLE_STATUSES}
    if classified.empty:
        return counts
    for status in (LIFECYCLE_NEW, LIFECYCLE_CONTINUED, LIFECYCLE_EARLIER_ONLY):
        counts[status] = int((classified["status"] == status).sum())
    counts[LIFECYCLE_ONE_TIME] = int(classified["one_time"].sum())
    return counts


def lifecycle_labels(earlier: int, later: int) -> Dict[str, str]:
    return {
        LIFECYCLE_NEW: f"New in {later}",
        LIFECYCLE_CONTINUED: f"Continued ({earlier} & {later})",
        LIFECYCLE_EARLIER_ONLY: f"Used in {earlier} only",
        LIFECYCLE_ONE_TIME: "One-time HCOs",
    }


def years_from_periods(periods: Iterable[str]) -> Tuple[int, ...]:
    """Distinct years of ``YYYYQn`` period keys, ascending."""
    years = set()
    for p in periods:
        s = str(p)[:4]
        if s.isdigit():
            years.add(int(s))
    return tuple(sorted(years))
