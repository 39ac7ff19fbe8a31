from __future__ import annotations

from typing import Dict, List

import pandas as pd

from core.filters import FILTER_FIELDS


def distinct_values(records: pd.DataFrame, field: str) -> List[str]:
    """Distinct values of ``field`` in first-occurrence order."""
    if records.empty or field not in records.columns:
        return []
    return records[field].drop_duplicates().tolist()


def compute_facets(records: pd.DataFrame) -> Dict[str, List[str]]:
    """Options for each filter control, taken from the filtered records.

    Blank values are left out: an empty selection already means "no constraint".
    """
    facets: Dict[str, List[str]] = {}
    for name, col in FILTER_FIELDS.items():
        facets[name] = [v for v in distinct_values(records, col) if isinstance(v, str) and v != ""]
    return facets
