import random

from services.workers.insights.core.types import PRIORITY_HIGH, QualityScore
from services.workers.insights.nodes.actions import build_action_items, data_quality_item, dataset_size_item
from services.workers.insights.nodes.classify import classify_columns
from services.workers.insights.nodes.kpis import build_kpis, variability_kpi
from services.workers.insights.nodes.patterns import detect_domain
from services.workers.insights.nodes.quality import score_quality
from services.workers.insights.nodes.report import (
    build_insights,
    build_summary,
    build_visualizations,
    detect_date_range,
)
from services.workers.insights.nodes.statistics import analyze_statistics
from services.workers.insights.nodes.trends import build_trend_series


def _context(rows, filename):
    classification = classify_columns(rows)
    quality = score_quality(rows, classification)
    domain = detect_domain(rows, classification.columns, filename)
    return classification, quality, domain


def test_churn_kpis(churn_rows):
    classification, quality, domain = _context(churn_rows, "churn_data.csv")
    kpis = build_kpis(churn_rows, classification, quality, domain)
    names = [kpi.name for kpi in kpis]
    assert names == [
        "Dataset Scale",
        "Data Quality Index",
        "Customer Churn Rate",
        "Revenue at Risk",
        "Data Variability",
    ]
    churn = kpis[2]
    # 8 of 30 customers churned
    assert churn.value == 27
    assert churn.change == "High Risk"
    assert kpis[0].value == 30 and kpis[0].change == "Small Dataset"


def test_revenue_kpis(sales_rows):
    classification, quality, domain = _context(sales_rows, "sales.csv")
    kpis = {kpi.name: kpi for kpi in build_kpis(sales_rows, classification, quality, domain)}
    assert kpis["Total Revenue"].value == 59500
    assert kpis["Revenue per Customer"].value == 1488
    assert len(kpis) <= 6


def test_generic_kpis_and_cap():
    rows = [{"a": i, "b": i * 2, "group": "x" if i % 2 else "y"} for i in range(1, 21)]
    classification, quality, domain = _context(rows, "numbers.csv")
    assert domain.tag == "generic"
    names = [kpi.name for kpi in build_kpis(rows, classification, quality, domain)]
    assert "Performance Score" in names
    assert "Data Diversity" in names
    assert len(names) <= 6


def test_variability_without_usable_values():
    kpi = variability_kpi([{"a": 0}, {"a": 0}], "a")
    assert kpi.change == "No data"
    assert kpi.value == 0


def test_action_items_end_with_review(churn_rows):
    classification, quality, _ = _context(churn_rows, "churn_data.csv")
    items = build_action_items(
        churn_rows, classification, quality, filename="churn_data.csv", insight_count=4, now_ms=1700000000000
    )
    assert 1 <= len(items) <= 4
    review = items[-1]
    assert review.title == "Review Analysis of churn_data.csv"
    assert review.priority == PRIORITY_HIGH
    assert review.id == "action_insights_review_1700000000000"
    assert "4 key insights" in review.description
    # 30 rows is a small sample
    assert any(item.title == "Increase Sample Size" for item in items)


def test_action_items_keep_three_conditional_slots():
    rows = [{"v": (i % 3) * 1000 if i % 5 else None, "cat": "a" if i else "b"} for i in range(60)]
    classification = classify_columns(rows)
    quality = score_quality(rows, classification)
    items = build_action_items(rows, classification, quality, filename="f.csv", insight_count=1, now_ms=1)
    assert len(items) <= 4
    assert items[-1].category == "Review"


def test_data_quality_item_lists_incomplete_columns():
    quality = QualityScore(60, 100, 100, 87, {"a": 50.0, "b": 70.0, "c": 100.0})
    item = data_quality_item(quality, 5)
    assert item is not None
    assert "2 columns (a, b)" in item.description
    assert item.estimated_impact == "40% data quality improvement"


def test_dataset_size_items():
    assert dataset_size_item(10, 1).title == "Increase Sample Size"
    assert dataset_size_item(60000, 1).title == "Optimize Large Dataset Processing"
    assert dataset_size_item(5000, 1) is None


def test_summary_reports_counts_and_date_range(sales_rows):
    classification = classify_columns(sales_rows)
    quality = score_quality(sales_rows, classification)
    summary = build_summary(sales_rows, classification, quality, "sales.csv")
    stats = summary["statistics"]
    assert stats["totalRecords"] == 40
    assert stats["columns"] == 4
    assert stats["dateRange"] == "2024-01-15 to 2024-12-15"
    assert stats["accuracy"] == 99
    assert summary["executive"].startswith("Analysis of sales.csv processed 40 records across 4 columns.")


def test_date_range_unavailable_without_dates(churn_rows):
    assert detect_date_range(churn_rows, []) == "Not available"


def test_insights_mention_quality_and_correlations():
    rows = [{"x": i, "y": 2 * i} for i in range(1, 13)]
    classification = classify_columns(rows)
    quality = score_quality(rows, classification)
    statistics = analyze_statistics(rows, classification.numeric)
    domain = detect_domain(rows, classification.columns)
    insights = build_insights(classification, quality, statistics, domain)
    assert insights[0] == "Data quality score: 100% - Excellent for reliable analysis"
    assert any("Strong correlations detected between x and y" in line for line in insights)
    assert insights[-1].endswith("trend analysis and anomaly detection")


def test_visualizations_include_trend_and_category_charts(churn_rows):
    classification = classify_columns(churn_rows)
    series = build_trend_series(churn_rows, classification.numeric, rng=random.Random(2), year=2024)
    charts = build_visualizations(churn_rows, classification, series, "churn_data.csv")
    assert [chart["type"] for chart in charts] == ["line", "bar"]
    assert charts[0]["title"] == "Monthly Charges Trends Over Time"
    assert charts[0]["source"] == "data"
    assert len(charts[0]["data"]) == 12
    assert len(charts[1]["data"]) <= 8


def test_no_numeric_columns_means_no_charts():
    rows = [{"name": "a"}, {"name": "b"}]
    classification = classify_columns(rows)
    series = build_trend_series(rows, [], rng=random.Random(0), year=2024)
    assert build_visualizations(rows, classification, series, "x.csv") == []
