"""Core (UI-agnostic) third-party spending dashboard logic.

This package contains:
- domain lookups (BU hierarchy, HCO type translation, name classifier, palettes)
- the static data store (CSV -> pandas)
- per-page selection state
- the shared aggregation pipeline
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
