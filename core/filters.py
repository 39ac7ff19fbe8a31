from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Dict, Mapping, Optional

import pandas as pd


# Filter dimension -> record column.
FILTER_FIELDS: Dict[str, str] = {
    "end_year": "end_year",
    "topics": "topic",
    "sector": "sector",
    "region": "region",
    "pest": "pestle",
    "source": "source",
    "country": "country",
}

FILTER_ALIASES: Dict[str, str] = {"endYear": "end_year"}


@dataclass(frozen=True)
class FilterState:
    end_year: str = ""
    topics: str = ""
    sector: str = ""
    region: str = ""
    pest: str = ""
    source: str = ""
    country: str = ""

    def active(self) -> Dict[str, str]:
        """Non-empty dimensions only."""
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name)}


def as_text(value: object) -> str:
    """Render a scalar as filter/record text; integral numbers drop the decimal part."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def normalize_filters(raw: Optional[Mapping[str, object]]) -> FilterState:
    raw = dict(raw or {})
    for alias, name in FILTER_ALIASES.items():
        if alias in raw and name not in raw:
            raw[name] = raw.pop(alias)
    values = {name: as_text(raw.get(name)) for name in FILTER_FIELDS}
    return FilterState(**values)


def apply_user_filters(records: pd.DataFrame, state: FilterState) -> pd.DataFrame:
    """Keep rows whose columns equal every non-empty filter value exactly."""
    active = state.active()
    if not active or records.empty:
        return records

    mask = pd.Series(True, index=records.index)
    for name, value in active.items():
        col = FILTER_FIELDS[name]
        if col not in records.columns:
            # A missing column never matches a constraint.
            return records.iloc[0:0]
        mask &= records[col].astype(str).eq(value) & records[col].notna()
    return records[mask]
