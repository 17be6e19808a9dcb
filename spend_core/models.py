"""Typed record schemas for the static spending tables.

The pipeline works on pandas frames; these dataclasses document the row shapes and
are accepted by ``DataStore.from_records`` alongside plain dicts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ThirdPartyKind = Literal["HCO", "Vendor"]
ActivityKind = Literal["event", "non-event"]
HcoCategory = Literal["University", "Association", "Foundation", "Non-profit", "Other"]


@dataclass(frozen=True)
class ActivityRecord:
    period: str
    third_party_kind: ThirdPartyKind
    business_unit: str
    amount: float
    occurrence_count: int
    activity_kind: ActivityKind


@dataclass(frozen=True)
class HcoBreakdownRecord:
    year: int
    third_party_kind: ThirdPartyKind
    hco_type_local: str
    hco_category_system: str
    business_unit_sub_level: str
    amount: float
    occurrence_count: int


@dataclass(frozen=True)
class HcoYearSummaryRecord:
    year: int
    hco_id: str
    hco_name: str
    category: HcoCategory
    total_amount: float
    activity_count: int


@dataclass(frozen=True)
class HcoBuYearSummaryRecord:
    year: int
    hco_id: str
    hco_name: str
    business_unit: str
    total_amount: float
    activity_count: int


@dataclass(frozen=True)
class HcoMasterRecord:
    year: int
    entity_name: str
    total_amount: float
    activity_count: int

    # Cached values in the source table are ignored; these are always derived.
    @property
    def avg_amount(self) -> float:
        return self.total_amount / self.activity_count if self.activity_count else 0.0

    @property
    def avg_amount_million(self) -> float:
        return self.avg_amount / 1_000_000

    @property
    def bubble_size(self) -> float:
        return self.total_amount / 1_000_000
