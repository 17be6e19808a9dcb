from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

# Sub-level business unit -> parent business unit. Flat units map to themselves.
BU_SUBLEVEL_TO_PARENT: Dict[str, str] = {
    "B&I MKT-Central MKT": "B&I MKT",
    "B&I MKT-Regional MKT": "B&I MKT",
    "B&I MKT-Others Dimission": "B&I MKT",
    "CV MKT-Central MKT": "CV MKT",
    "CV MKT-Regional MKT": "CV MKT",
    "CV MKT-Others Dimission": "CV MKT",
    "B&I Sales": "B&I Sales",
    "CKM-KAM": "CKM-KAM",
    "CV Sales": "CV Sales",
    "Medical": "Medical",
    "VA&P": "VA&P",
    "S&CE": "S&CE",
}

BUS_WITH_SUBLEVELS: Tuple[str, ...] = ("B&I MKT", "CV MKT")

PARENT_BUS: Tuple[str, ...] = ("B&I MKT", "B&I Sales", "CKM-KAM", "CV MKT", "CV Sales", "Medical", "VA&P", "S&CE")

HCO_CATEGORIES: Tuple[str, ...] = ("Association", "Foundation", "University", "Non-profit", "Other")
DEFAULT_CATEGORY = "Other"

HCO_TYPE_MAP: Dict[str, str] = {
    "大学": "University",
    "基金会": "Foundation",
    "民办非企业单位": "Non-profit",
    "学协会": "Association",
}

# Evaluated in order, first match wins.
NAME_CATEGORY_RULES: List[Tuple[str, Tuple[str, ...]]] = [
    ("Foundation", ("基金会", "基金")),
    ("University", ("大学", "学院")),
    ("Non-profit", ("医院", "研究院", "研究所", "研究中心", "服务中心", "促进中心", "关爱中心")),
    ("Association", ("协会", "学会", "联合会", "联盟", "促进会", "商会")),
]

THIRD_PARTY_KINDS: Tuple[str, ...] = ("HCO", "Vendor")
ACTIVITY_KINDS: Tuple[str, ...] = ("event", "non-event")
ACTIVITY_KIND_LABELS: Dict[str, str] = {"event": "Event", "non-event": "Non-event"}

# ---------------- Palettes ----------------
COLORS: Dict[str, str] = {
    "primary": "#005EB8",
    "secondary": "#009FDA",
    "accent": "#FFC20A",
    "neutral": "#6C757D",
    "purple": "#A855F7",
    "red": "#E53935",
    "green": "#43A047",
    "orange": "#FB8C00",
    "pink": "#EC407A",
}

BU_COLORS: Dict[str, str] = {
    "B&I MKT": "#005EB8",
    "B&I Sales": "#009FDA",
    "CKM-KAM": "#FFC20A",
    "CV MKT": "#A855F7",
    "CV Sales": "#43A047",
    "Medical": "#E53935",
    "S&CE": "#FB8C00",
    "VA&P": "#EC407A",
}

BU_COLORS_ROTATION: Tuple[str, ...] = ("#005EB8", "#009FDA", "#FFC20A", "#10B981", "#8B5CF6", "#F97316", "#EC4899", "#14B8A6")

BU_SUBLEVEL_COLORS: Dict[str, str] = {
    "B&I MKT-Central MKT": "#005EB8",
    "B&I MKT-Regional MKT": "#3B82F6",
    "B&I MKT-Others Dimission": "#93C5FD",
    "CV MKT-Central MKT": "#10B981",
    "CV MKT-Regional MKT": "#34D399",
    "CV MKT-Others Dimission": "#A7F3D0",
}

HCO_CATEGORY_COLORS: Dict[str, str] = {
    "University": "#005EB8",
    "Association": "#FFC20A",
    "Foundation": "#009FDA",
    "Non-profit": "#6C757D",
    "Other": "#A855F7",
}


def parent_of(sub_unit: str) -> str:
    """Parent business unit of a sub-level key; unknown units are their own parent."""
    return BU_SUBLEVEL_TO_PARENT.get(sub_unit) or sub_unit


def has_sub_levels(unit: str) -> bool:
    return unit in BUS_WITH_SUBLEVELS


def children_of(parent: str) -> List[str]:
    return [sub for sub, p in BU_SUBLEVEL_TO_PARENT.items() if p == parent and sub != parent]


def translate_hco_type(local_label: Optional[str]) -> str:
    if not local_label:
        return DEFAULT_CATEGORY
    return HCO_TYPE_MAP.get(local_label, DEFAULT_CATEGORY)


def classify_by_name(name: Optional[str], rules: Sequence[Tuple[str, Tuple[str, ...]]] = NAME_CATEGORY_RULES) -> str:
    """Infer an HCO category from its display name.

    Rules are checked in priority order (Foundation, University, Non-profit,
    Association); the first category with a keyword contained in the name wins.
    Names matching nothing, and empty names, fall back to ``Other``.
    """
    if not name:
        return DEFAULT_CATEGORY
    for category, keywords in rules:
        if any(k in name for k in keywords):
            return category
    return DEFAULT_CATEGORY


def bu_color(unit: str, index: int = 0) -> str:
    return BU_COLORS.get(unit) or BU_COLORS_ROTATION[index % len(BU_COLORS_ROTATION)]


def category_color(category: str, fallback: str = COLORS["purple"]) -> str:
    return HCO_CATEGORY_COLORS.get(category, fallback)
