from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple
from urllib.parse import urlencode

from spend_core.data import DataStore
from spend_core.lookups import ACTIVITY_KINDS, THIRD_PARTY_KINDS
from spend_core.pipeline import ALL, RecordFilter, lifecycle_labels, years_from_periods

STATUS_ALL = "All"


@dataclass(frozen=True)
class PipelineSettings:
    top_hcos: int = 5
    top_hcos_per_year: int = 10
    heatmap_rows: int = 20
    scatter_cap: int = 50
    summary_rows: int = 15


@dataclass(frozen=True)
class OverviewSelection:
    periods: Tuple[str, ...] = ()
    business_units: Tuple[str, ...] = ()
    activity_kind: str = ALL
    third_party_kind: str = ALL
    settings: PipelineSettings = field(default_factory=PipelineSettings)

    @property
    def years(self) -> Tuple[int, ...]:
        return years_from_periods(self.periods)

    def record_filter(self) -> RecordFilter:
        return RecordFilter(
            periods=self.periods,
            business_units=self.business_units,
            activity_kind=self.activity_kind,
            third_party_kind=self.third_party_kind,
        )


@dataclass(frozen=True)
class ProfilingSelection:
    years: Tuple[int, ...] = ()
    categories: Tuple[str, ...] = ()
    lifecycle_status: str = STATUS_ALL
    focus_hco: Optional[str] = None
    settings: PipelineSettings = field(default_factory=PipelineSettings)

    def record_filter(self) -> RecordFilter:
        return RecordFilter(years=self.years, categories=self.categories)


@dataclass(frozen=True)
class DeepDiveSelection:
    periods: Tuple[str, ...] = ()
    business_units: Tuple[str, ...] = ()
    focus_hco_id: Optional[str] = None
    settings: PipelineSettings = field(default_factory=PipelineSettings)

    @property
    def years(self) -> Tuple[int, ...]:
        return years_from_periods(self.periods)

    def record_filter(self, bu_column: str = "business_unit_sub_level") -> RecordFilter:
        return RecordFilter(years=self.years, business_units=self.business_units, bu_column=bu_column)


# ---------------- Defaults ----------------
def default_overview_selection(store: DataStore) -> OverviewSelection:
    return OverviewSelection(periods=tuple(store.periods), business_units=tuple(store.business_units))


def default_profiling_selection(store: DataStore, focus: Optional[str] = None) -> ProfilingSelection:
    return ProfilingSelection(
        years=tuple(store.years),
        categories=tuple(store.hco_categories),
        focus_hco=_clean_focus(focus),
    )


def default_deep_dive_selection(store: DataStore, focus: Optional[str] = None) -> DeepDiveSelection:
    return DeepDiveSelection(
        periods=tuple(store.periods),
        business_units=tuple(store.parent_business_units),
        focus_hco_id=_clean_focus(focus),
    )


# ---------------- Transitions ----------------
def toggle_option(selected: Sequence[str], option: str) -> Tuple[str, ...]:
    if option in selected:
        return tuple(s for s in selected if s != option)
    return tuple(selected) + (option,)


def toggle_all(selected: Sequence[str], options: Sequence[str]) -> Tuple[str, ...]:
    if len(selected) == len(options):
        return ()
    return tuple(options)


def toggle_third_party_kind(state: OverviewSelection, kind: str) -> OverviewSelection:
    """Clicking the active kind clears the filter; any other kind activates it."""
    if state.third_party_kind == kind:
        return replace(state, third_party_kind=ALL)
    return replace(state, third_party_kind=kind)


def with_selection(state, **changes):
    """Return a copy of ``state`` with whole dimensions replaced."""
    normalized = {k: (tuple(v) if isinstance(v, list) else v) for k, v in changes.items()}
    return replace(state, **normalized)


def multi_select_label(label: str, selected: Sequence[str], options: Sequence[str]) -> str:
    if not selected:
        return f"Select {label}"
    if len(selected) == len(options):
        return f"All {label}"
    if len(selected) <= 2:
        return ", ".join(str(s) for s in selected)
    return f"{len(selected)} selected"


# ---------------- Normalization ----------------
def _clean_focus(value: Optional[object]) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def _pick(raw: Mapping, key: str, options: Sequence, cast=str) -> Tuple:
    """Known options from ``raw[key]`` in option order; absent key means all options."""
    if key not in raw or raw.get(key) is None:
        return tuple(options)
    wanted = set()
    for v in raw.get(key) or []:
        try:
            wanted.add(cast(v))
        except (TypeError, ValueError):
            continue
    return tuple(o for o in options if o in wanted)


def _choice(value: Optional[object], allowed: Iterable[str], default: str) -> str:
    s = str(value) if value is not None else default
    return s if s in set(allowed) else default


def normalize_settings(raw: Optional[Mapping]) -> PipelineSettings:
    raw = raw or {}
    base = PipelineSettings()
    values = {}
    for name in ("top_hcos", "top_hcos_per_year", "heatmap_rows", "scatter_cap", "summary_rows"):
        try:
            values[name] = max(1, min(500, int(raw.get(name, getattr(base, name)))))
        except (TypeError, ValueError):
            values[name] = getattr(base, name)
    return PipelineSettings(**values)


def normalize_overview_selection(raw: Mapping, store: DataStore) -> OverviewSelection:
    return OverviewSelection(
        periods=_pick(raw, "periods", store.periods),
        business_units=_pick(raw, "business_units", store.business_units),
        activity_kind=_choice(raw.get("activity_kind"), (ALL,) + ACTIVITY_KINDS, ALL),
        third_party_kind=_choice(raw.get("third_party_kind"), (ALL,) + THIRD_PARTY_KINDS, ALL),
        settings=normalize_settings(raw.get("settings")),
    )


def normalize_profiling_selection(raw: Mapping, store: DataStore) -> ProfilingSelection:
    return ProfilingSelection(
        years=_pick(raw, "years", store.years, cast=int),
        categories=_pick(raw, "categories", store.hco_categories),
        lifecycle_status=_choice(raw.get("lifecycle_status"), lifecycle_status_options(store), STATUS_ALL),
        focus_hco=_clean_focus(raw.get("focus_hco")),
        settings=normalize_settings(raw.get("settings")),
    )


def normalize_deep_dive_selection(raw: Mapping, store: DataStore) -> DeepDiveSelection:
    return DeepDiveSelection(
        periods=_pick(raw, "periods", store.periods),
        business_units=_pick(raw, "business_units", store.parent_business_units),
        focus_hco_id=_clean_focus(raw.get("focus_hco_id")),
        settings=normalize_settings(raw.get("settings")),
    )


def lifecycle_status_options(store: DataStore) -> List[str]:
    earlier, later = store.observation_years
    labels = lifecycle_labels(earlier, later)
    return [STATUS_ALL] + [labels[k] for k in list(labels)[:3]]


# ---------------- Navigation ----------------
def focus_from_query(params: Mapping[str, object], key: str) -> Optional[str]:
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    return _clean_focus(value)


def hco_profiling_link(hco_name: str) -> str:
    return "/hco-profiling?" + urlencode({"hco": hco_name})


def bu_deep_dive_link(hco_id: str, year: Optional[int] = None) -> str:
    params = {"hcoId": hco_id}
    if year is not None:
        params["year"] = str(year)
    return "/bu-deep-dive?" + urlencode(params)
