from __future__ import annotations

from typing import Any, Dict

import pandas as pd

from spend_core.data import TABLE_FILES, DataStore, find_bu_total_overruns
from spend_core.lookups import BU_SUBLEVEL_TO_PARENT, HCO_TYPE_MAP
from spend_core.pipeline import classify_lifecycle


def compute_debug(store: DataStore) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "source": str(store.source) if store.source is not None else None,
        "row_counts": {name: int(len(store.table(name))) for name in TABLE_FILES},
        "period_coverage": [],
        "lifecycle_population": 0,
        "bu_total_overruns": [],
        "unmapped_bu_sub_levels": [],
        "unmapped_hco_types": [],
    }

    activity = store.activity
    if not activity.empty:
        cov = (
            activity.assign(year=activity["period"].str[:4])
            .groupby("year")["period"]
            .agg(["min", "max", "nunique"])
            .reset_index()
            .rename(columns={"nunique": "quarters_present"})
        )
        payload["period_coverage"] = cov.to_dict(orient="records")

    earlier, later = store.observation_years
    payload["lifecycle_population"] = int(len(classify_lifecycle(store.hco_year_summary, earlier, later)))
    payload["bu_total_overruns"] = find_bu_total_overruns(store).to_dict(orient="records")

    # Unknown keys still resolve (self-parent / Other); listed here for data authors.
    breakdown: pd.DataFrame = store.hco_breakdown
    if not breakdown.empty:
        subs = breakdown["business_unit_sub_level"]
        payload["unmapped_bu_sub_levels"] = sorted(set(subs[~subs.isin(set(BU_SUBLEVEL_TO_PARENT))]))
        types = breakdown["hco_type_local"]
        payload["unmapped_hco_types"] = sorted(set(types[~types.isin(set(HCO_TYPE_MAP))]))
    return payload
