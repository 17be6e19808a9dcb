from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, is_dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from spend_core.lookups import HCO_CATEGORIES, PARENT_BUS, parent_of
from spend_core.pipeline import group_sum, safe_ratio

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parents[1] / "data"
DATA_DIR_ENV = "SPEND_DASHBOARD_DATA_DIR"

TABLE_FILES: Dict[str, str] = {
    "activity": "activity.csv",
    "hco_breakdown": "hco_breakdown.csv",
    "hco_year_summary": "hco_year_summary.csv",
    "hco_bu_year_summary": "hco_bu_year_summary.csv",
    "hco_master": "hco_master.csv",
}

# table -> (string columns, numeric columns)
TABLE_SCHEMAS: Dict[str, Tuple[List[str], List[str]]] = {
    "activity": (["period", "third_party_kind", "business_unit", "activity_kind"], ["amount", "occurrence_count"]),
    "hco_breakdown": (
        ["third_party_kind", "hco_type_local", "hco_category_system", "business_unit_sub_level"],
        ["year", "amount", "occurrence_count"],
    ),
    "hco_year_summary": (["hco_id", "hco_name", "category"], ["year", "total_amount", "activity_count"]),
    "hco_bu_year_summary": (["hco_id", "hco_name", "business_unit"], ["year", "total_amount", "activity_count"]),
    "hco_master": (["entity_name"], ["year", "total_amount", "activity_count"]),
}

INT_COLUMNS = {"year", "occurrence_count", "activity_count"}

# Cached in the source table but always recomputed here.
MASTER_DERIVED_COLUMNS = ["avg_amount", "avg_amount_million", "bubble_size"]


class DataStoreError(RuntimeError):
    """Raised when a static table is missing or lacks a required column."""


def get_data_dir(data_dir: Optional[os.PathLike | str] = None) -> Path:
    if data_dir is not None:
        return Path(data_dir)
    env = os.environ.get(DATA_DIR_ENV)
    return Path(env) if env else DATA_DIR


def file_signature(files: Iterable[Path]) -> Tuple[Tuple[str, float], ...]:
    return tuple((f.name, f.stat().st_mtime) for f in files)


# ---------------- Normalization ----------------
def numericize(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0)
            if col in INT_COLUMNS:
                df[col] = df[col].astype(int)
    return df


def coerce_str_safe(df: pd.DataFrame, cols: Iterable[str]) -> pd.DataFrame:
    for col in cols:
        if col in df.columns:
            df[col] = df[col].fillna("").astype(str).str.strip()
    return df


def prepare_table(df: pd.DataFrame, table: str) -> pd.DataFrame:
    str_cols, num_cols = TABLE_SCHEMAS[table]
    missing = [c for c in str_cols + num_cols if c not in df.columns]
    if missing:
        raise DataStoreError(f"{table}: missing columns {missing}")
    df = df.copy()
    df = coerce_str_safe(df, str_cols)
    df = numericize(df, num_cols)
    if table == "hco_master":
        df = add_master_derived(df.drop(columns=MASTER_DERIVED_COLUMNS, errors="ignore"))
    return df.reset_index(drop=True)


def add_master_derived(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df["avg_amount"] = safe_ratio(df["total_amount"], df["activity_count"])
    df["avg_amount_million"] = df["avg_amount"] / 1_000_000
    df["bubble_size"] = df["total_amount"] / 1_000_000
    return df


def _empty_table(table: str) -> pd.DataFrame:
    str_cols, num_cols = TABLE_SCHEMAS[table]
    return pd.DataFrame(columns=str_cols + num_cols)


def _frame_from_records(records: Iterable[Any], table: str) -> pd.DataFrame:
    rows = [asdict(r) if is_dataclass(r) else dict(r) for r in records]
    if not rows:
        df = _empty_table(table)
        if table == "hco_master":
            df = df.reindex(columns=list(df.columns) + MASTER_DERIVED_COLUMNS)
        return df
    return prepare_table(pd.DataFrame(rows), table)


# ---------------- Store ----------------
@dataclass(frozen=True, eq=False)
class DataStore:
    """Read-only handle on the five static tables.

    Instances hash by identity, so a store can be part of a memoization key.
    """

    activity: pd.DataFrame
    hco_breakdown: pd.DataFrame
    hco_year_summary: pd.DataFrame
    hco_bu_year_summary: pd.DataFrame
    hco_master: pd.DataFrame
    source: Optional[Path] = None

    @classmethod
    def from_records(
        cls,
        *,
        activity: Iterable[Any] = (),
        hco_breakdown: Iterable[Any] = (),
        hco_year_summary: Iterable[Any] = (),
        hco_bu_year_summary: Iterable[Any] = (),
        hco_master: Iterable[Any] = (),
    ) -> "DataStore":
        return cls(
            activity=_frame_from_records(activity, "activity"),
            hco_breakdown=_frame_from_records(hco_breakdown, "hco_breakdown"),
            hco_year_summary=_frame_from_records(hco_year_summary, "hco_year_summary"),
            hco_bu_year_summary=_frame_from_records(hco_bu_year_summary, "hco_bu_year_summary"),
            hco_master=_frame_from_records(hco_master, "hco_master"),
        )

    def table(self, name: str) -> pd.DataFrame:
        if name not in TABLE_FILES:
            raise KeyError(name)
        return getattr(self, name)

    @property
    def periods(self) -> List[str]:
        return sorted(self.activity["period"].dropna().astype(str).unique().tolist())

    @property
    def business_units(self) -> List[str]:
        """Parent units seen in the activity table; filtering happens at parent granularity."""
        return sorted({parent_of(b) for b in self.activity["business_unit"].dropna().astype(str)})

    @property
    def parent_business_units(self) -> List[str]:
        return list(PARENT_BUS)

    @property
    def hco_categories(self) -> List[str]:
        return list(HCO_CATEGORIES)

    @property
    def years(self) -> List[int]:
        return sorted(int(y) for y in self.hco_year_summary["year"].dropna().unique())

    @property
    def observation_years(self) -> Tuple[int, int]:
        """(earlier, later) years used for lifecycle classification."""
        years = self.years
        if len(years) >= 2:
            return years[-2], years[-1]
        if years:
            return years[0] - 1, years[0]
        return 0, 0


def load_table(path: Path, table: str) -> pd.DataFrame:
    if not path.exists():
        raise DataStoreError(f"{table}: file not found at {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
    return prepare_table(df, table)


def find_bu_total_overruns(store: DataStore) -> pd.DataFrame:
    """(hco_id, year) pairs whose per-BU amounts sum above the HCO-year total."""
    cols = ["hco_id", "year", "bu_total", "total_amount", "excess"]
    bu = store.hco_bu_year_summary
    yearly = store.hco_year_summary
    if bu.empty or yearly.empty:
        return pd.DataFrame(columns=cols)
    bu_sum = group_sum(bu, ["hco_id", "year"], "total_amount").rename(columns={"total_amount": "bu_total"})
    year_sum = group_sum(yearly, ["hco_id", "year"], "total_amount")
    merged = bu_sum.merge(year_sum, on=["hco_id", "year"], how="inner")
    merged["excess"] = merged["bu_total"] - merged["total_amount"]
    return merged[merged["excess"] > 0][cols].reset_index(drop=True)


@lru_cache(maxsize=4)
def _load_data_store_cached(data_dir: str, files_sig: Tuple[Tuple[str, float], ...]) -> DataStore:
    base = Path(data_dir)
    frames = {name: load_table(base / filename, name) for name, filename in TABLE_FILES.items()}
    store = DataStore(source=base, **frames)
    logger.info(
        "Loaded spending tables from %s: %s",
        base,
        ", ".join(f"{name}={len(df)}" for name, df in frames.items()),
    )
    overruns = find_bu_total_overruns(store)
    if not overruns.empty:
        logger.warning("%d HCO-year(s) have BU amounts above the yearly total", len(overruns))
    return store


def load_data_store(data_dir: Optional[os.PathLike | str] = None) -> DataStore:
    base = get_data_dir(data_dir)
    files = [base / filename for filename in TABLE_FILES.values()]
    missing = [f.name for f in files if not f.exists()]
    if missing:
        raise DataStoreError(f"Missing data files in {base}: {missing}")
    return _load_data_store_cached(str(base.resolve()), file_signature(files))


# ---------------- Formatting ----------------
def format_currency(value: object) -> str:
    """Compact dollar label: $1.2M, $350K, $900."""
    if value is None or pd.isna(value):
        return "N/A"
    v = float(value)
    if v >= 1_000_000:
        return f"${v / 1_000_000:.1f}M"
    if v >= 1_000:
        return f"${v / 1_000:.0f}K"
    return f"${v:.0f}"


def format_full_currency(value: object) -> str:
    if value is None or pd.isna(value):
        return "N/A"
    return f"${float(value):,.0f}"
