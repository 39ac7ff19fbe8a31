"""Core (UI-agnostic) dashboard logic.

This package contains:
- record fetching and validation (JSON over HTTP -> pandas)
- filter normalization and application
- facet extraction and per-category aggregation
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
