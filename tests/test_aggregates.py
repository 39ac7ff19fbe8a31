from __future__ import annotations

import math

import pandas as pd
import pytest

from core import aggregates
from core.aggregates import (
    CATEGORY_METRICS,
    category_chart_data,
    intensity_over_time,
    sector_color,
    sector_colors,
    sector_impact_totals,
)
from core.data import records_to_frame
from tests.factories import make_item


def _frame(rows):
    return records_to_frame([make_item(**row) for row in rows])


def test_intensity_over_time_averages_per_year() -> None:
    df = _frame(
        [
            {"end_year": "2020", "intensity": 10},
            {"end_year": "2021", "intensity": 30},
            {"end_year": "2020", "intensity": 20},
        ]
    )
    out = intensity_over_time(df)
    assert out["year"].tolist() == ["2020", "2021"]
    assert out["average_intensity"].tolist() == [15.0, 30.0]


def test_intensity_over_time_sorts_year_text_not_numbers() -> None:
    df = _frame([{"end_year": "9", "intensity": 1}, {"end_year": "10", "intensity": 2}, {"end_year": "", "intensity": 3}])
    out = intensity_over_time(df)
    assert out["year"].tolist() == ["", "10", "9"]
    assert out["average_intensity"].tolist() == [3.0, 2.0, 1.0]


def test_intensity_over_time_of_empty_frame() -> None:
    out = intensity_over_time(records_to_frame([]))
    assert out.empty
    assert list(out.columns) == ["year", "average_intensity"]


def test_category_chart_data_averages_each_metric() -> None:
    df = _frame(
        [
            {"sector": "A", "impact": 2, "intensity": 4},
            {"sector": "B", "impact": 6, "intensity": 1},
            {"sector": "A", "impact": 4, "intensity": 8},
        ]
    )
    data = category_chart_data(df, ["A", "B"], "sector")
    assert data["labels"] == ["A", "B"]
    assert [d["label"] for d in data["datasets"]] == [label for label, _, _ in CATEGORY_METRICS]
    by_metric = {d["metric"]: d["data"] for d in data["datasets"]}
    assert by_metric["impact"] == [3.0, 6.0]
    assert by_metric["intensity"] == [6.0, 1.0]
    assert data["datasets"][0]["backgroundColor"] == "rgba(75, 192, 192, 0.6)"


def test_category_without_rows_is_not_a_number() -> None:
    df = _frame([{"sector": "A", "impact": 2}])
    data = category_chart_data(df, ["A", "Ghost"], "sector")
    impact = next(d["data"] for d in data["datasets"] if d["metric"] == "impact")
    assert impact[0] == 2.0
    assert math.isnan(impact[1])


def test_sector_impact_totals_sum_per_sector() -> None:
    df = _frame([{"sector": "A", "impact": 2}, {"sector": "A", "impact": 4}, {"sector": "B", "impact": 6}])
    assert sector_impact_totals(df, ["A", "B"]) == [6.0, 6.0]
    assert sector_impact_totals(df, ["A", "Ghost"]) == [6.0, 0.0]


def test_sector_colors_follow_index_formula() -> None:
    assert sector_colors(["a", "b", "c", "d"]) == [
        "rgba(0, 0, 0, 0.6)",
        "rgba(50, 80, 120, 0.6)",
        "rgba(100, 160, 240, 0.6)",
        "rgba(150, 240, 105, 0.6)",
    ]
    assert sector_color(6) == "rgba(45, 225, 210, 0.6)"


def test_aggregation_errors_degrade_to_empty_series(caplog: pytest.LogCaptureFixture) -> None:
    broken = pd.DataFrame({"sector": ["A"], "end_year": ["2020"]})
    with caplog.at_level("ERROR", logger=aggregates.__name__):
        series = intensity_over_time(broken)
        totals = sector_impact_totals(broken, ["A"])
        data = category_chart_data(broken, ["A"], "sector")
    assert series.empty
    assert totals == [0.0]
    # Missing metric columns are a no-data case, not an error.
    assert all(math.isnan(d["data"][0]) for d in data["datasets"])
    assert "failed; rendering empty series" in caplog.text
