from __future__ import annotations

from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

alt.data_transformers.disable_max_rows()


def to_vega_spec(chart: alt.Chart) -> Dict[str, Any]:
    """Convert an Altair chart into a Vega-Lite spec dict (JSON-serializable)."""
    return chart.to_dict()


def mix_donut(data: pd.DataFrame, *, category: str = "name", value: str = "value", title: Optional[str] = None) -> Dict[str, Any]:
    """Donut of a category mix; slice colors come from the payload's ``fill`` column."""
    domain: List[str] = data[category].astype(str).tolist() if not data.empty else []
    colors: List[str] = data["fill"].tolist() if "fill" in data.columns and not data.empty else []
    chart = (
        alt.Chart(data)
        .mark_arc(innerRadius=60)
        .encode(
            theta=alt.Theta(f"{value}:Q", stack=True),
            color=alt.Color(f"{category}:N", title=title, scale=alt.Scale(domain=domain, range=colors) if colors else alt.Undefined),
            tooltip=[alt.Tooltip(f"{category}:N", title=title or "Category"), alt.Tooltip(f"{value}:Q", format="$,.0f")],
        )
    )
    return to_vega_spec(chart)
