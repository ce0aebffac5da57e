import pytest

from services.workers.insights.nodes.statistics import (
    analyze_statistics,
    correlation_pairs,
    count_outliers,
    pearson,
)


def test_single_extreme_value_is_an_outlier():
    rows = [{"amount": 10} for _ in range(14)] + [{"amount": 1000}]
    report = analyze_statistics(rows, ["amount"])
    assert report.outliers == {"amount": 1}
    assert report.outlier_total == 1
    assert report.column_stats["amount"].count == 15
    assert report.column_stats["amount"].max_value == 1000


def test_too_few_values_have_no_outliers():
    assert count_outliers([1, 1, 1, 1, 1, 1, 1, 1, 500]) == 0


def test_constant_values_have_no_outliers():
    assert count_outliers([5.0] * 20) == 0


def test_linear_relationship_is_a_strong_correlation():
    rows = [{"x": i, "y": 2 * i} for i in range(1, 13)]
    assert pearson(rows, "x", "y") == pytest.approx(1.0)
    report = analyze_statistics(rows, ["x", "y"])
    assert [pair.label for pair in report.strong_correlations] == ["x and y"]


def test_inverse_relationship_counts_as_strong():
    rows = [{"x": i, "y": 100 - 3 * i} for i in range(1, 13)]
    assert pearson(rows, "x", "y") == pytest.approx(-1.0)
    assert len(analyze_statistics(rows, ["x", "y"]).strong_correlations) == 1


def test_correlation_needs_ten_pairs_and_spread():
    short = [{"x": i, "y": i} for i in range(9)]
    flat = [{"x": 3, "y": i} for i in range(20)]
    assert pearson(short, "x", "y") == 0.0
    assert pearson(flat, "x", "y") == 0.0


def test_pairs_only_count_rows_with_both_values():
    rows = [{"x": i, "y": i * 3 if i % 2 else None} for i in range(30)]
    # 15 complete pairs remain, all on one line
    assert pearson(rows, "x", "y") == pytest.approx(1.0)


def test_correlation_pairs_are_limited_to_leading_columns():
    columns = ["a", "b", "c", "d", "e"]
    rows = [{name: i * (k + 1) for k, name in enumerate(columns)} for i in range(12)]
    labels = [pair.label for pair in correlation_pairs(rows, columns)]
    assert labels == ["a and b", "a and c", "a and d", "b and c", "b and d", "c and d"]


def test_single_numeric_column_has_no_pairs():
    assert correlation_pairs([{"a": 1}], ["a"]) == []
