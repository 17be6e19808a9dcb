from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel


class PipelineSettingsModel(BaseModel):
    top_hcos: int = 5
    top_hcos_per_year: int = 10
    heatmap_rows: int = 20
    scatter_cap: int = 50
    summary_rows: int = 15


# A missing list means "all options selected"; an empty list selects nothing.
class OverviewSelectionModel(BaseModel):
    periods: Optional[List[str]] = None
    business_units: Optional[List[str]] = None
    activity_kind: Literal["all", "event", "non-event"] = "all"
    third_party_kind: Literal["all", "HCO", "Vendor"] = "all"
    settings: Optional[PipelineSettingsModel] = None


class ProfilingSelectionModel(BaseModel):
    years: Optional[List[int]] = None
    categories: Optional[List[str]] = None
    lifecycle_status: str = "All"
    focus_hco: Optional[str] = None
    settings: Optional[PipelineSettingsModel] = None


class DeepDiveSelectionModel(BaseModel):
    periods: Optional[List[str]] = None
    business_units: Optional[List[str]] = None
    focus_hco_id: Optional[str] = None
    settings: Optional[PipelineSettingsModel] = None


class MetaListResponse(BaseModel):
    values: List[str]
