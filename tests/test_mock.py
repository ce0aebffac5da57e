import random
from datetime import datetime, timezone

from services.workers.insights.core.types import FileDescriptor
from services.workers.insights.mock import (
    MOCK_INSIGHTS,
    fallback_action_items,
    fallback_kpis,
    generate_mock_analysis,
)


FILE = FileDescriptor(original_name="quarterly.pdf", mime_type="application/pdf", size=5120)


def test_full_mock_analysis_is_flagged_synthetic():
    result = generate_mock_analysis(FILE, "FULL_ANALYSIS", random.Random(8))
    assert result.synthetic is True
    assert result.trend_source == "synthetic"
    assert result.status == "COMPLETED"
    assert result.insights == MOCK_INSIGHTS
    assert len(result.trends) == 12
    assert [chart["title"] for chart in result.visualizations] == [
        "Revenue Trend Analysis",
        "Customer Acquisition by Channel",
    ]
    assert all(chart["source"] == "synthetic" for chart in result.visualizations)

    year = datetime.now(timezone.utc).year
    assert result.summary["statistics"]["dateRange"] == f"{year}-01-01 to {year}-12-31"
    assert "quarterly.pdf" in result.summary["executive"]


def test_mock_sections_follow_the_analysis_type():
    summary_only = generate_mock_analysis(FILE, "SUMMARY", random.Random(1))
    assert summary_only.summary is not None
    assert summary_only.kpis == [] and summary_only.trends == []

    kpis_only = generate_mock_analysis(FILE, "KPI_EXTRACTION", random.Random(1))
    assert kpis_only.summary is None
    assert [kpi.name for kpi in kpis_only.kpis] == ["File Size", "Data Analysis"]

    trends_only = generate_mock_analysis(FILE, "TREND_ANALYSIS", random.Random(1))
    assert trends_only.summary is None and trends_only.kpis == []
    assert len(trends_only.trends) == 12


def test_mock_output_is_reproducible_with_a_seed():
    first = generate_mock_analysis(FILE, "FULL_ANALYSIS", random.Random(99))
    second = generate_mock_analysis(FILE, "FULL_ANALYSIS", random.Random(99))
    assert first.trends == second.trends
    assert first.summary == second.summary


def test_fallback_kpis_report_size_in_kilobytes():
    size_kpi, progress_kpi = fallback_kpis(FILE)
    assert size_kpi.value == 5 and size_kpi.unit == "KB"
    assert progress_kpi.value == 100


def test_fallback_action_item():
    (item,) = fallback_action_items(FILE, now_ms=42)
    assert item.id == "action_fallback_42"
    assert item.title == "Review quarterly.pdf Data"
    assert item.priority == "HIGH"


def test_every_mock_type_includes_an_action_item():
    for analysis_type in ("SUMMARY", "KPI_EXTRACTION", "TREND_ANALYSIS", "COMPARISON", "FULL_ANALYSIS"):
        result = generate_mock_analysis(FILE, analysis_type, random.Random(0))
        assert len(result.action_items) == 1
        payload = result.to_dict()
        assert payload["synthetic"] is True
        assert payload["actionItems"][0]["status"] == "PENDING"
