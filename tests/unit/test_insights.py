"""
Unit tests for the statistical insight helpers.
"""

import pytest

from bizsuite.services.insights import (
    AnalysisType,
    analyze,
    assess_risk,
    detect_anomalies,
    forecast,
    linear_trend,
    prediction_accuracy,
)

pytestmark = pytest.mark.unit


class TestAnomalies:
    def test_single_outlier(self):
        values = [10, 11, 9, 10, 10, 11, 9, 10, 10, 60]
        anomalies = detect_anomalies(values)

        assert [a["index"] for a in anomalies] == [9]
        assert anomalies[0]["value"] == 60

    def test_constant_series_has_no_anomalies(self):
        assert detect_anomalies([5, 5, 5, 5]) == []

    def test_too_few_values(self):
        assert detect_anomalies([1]) == []


class TestTrend:
    def test_perfect_line(self):
        trend = linear_trend([1, 3, 5, 7])

        assert trend["slope"] == pytest.approx(2.0)
        assert trend["intercept"] == pytest.approx(1.0)
        assert trend["r_squared"] == pytest.approx(1.0)

    def test_forecast_continues_line(self):
        assert forecast([1, 3, 5, 7], periods=2) == pytest.approx([9.0, 11.0])

    def test_empty_and_single_value(self):
        assert linear_trend([]) == {"slope": 0.0, "intercept": 0.0, "r_squared": 0.0}
        assert forecast([4], periods=2) == [4.0, 4.0]


class TestRisk:
    def test_weighted_score_and_level(self):
        risk = assess_risk({"churn": 0.9, "late_payments": 0.5}, {"churn": 3})

        # (0.9 * 3 + 0.5) / 4
        assert risk["score"] == 0.8
        assert risk["level"] == "HIGH"
        assert risk["top_factors"] == ["churn", "late_payments"]

    def test_values_are_clamped(self):
        assert assess_risk({"a": 5, "b": -1})["score"] == 0.5

    def test_no_factors(self):
        assert assess_risk({}) == {"score": 0.0, "level": "LOW", "top_factors": []}


class TestAnalyze:
    def test_anomaly_insight(self):
        insight = analyze(AnalysisType.ANOMALY_DETECTION, {"values": [10, 11, 9, 10, 10, 11, 9, 10, 10, 60]})

        assert insight["title"] == "1 anomalies detected"
        assert insight["impact"] == "MEDIUM"
        assert insight["confidence"] == 0.85

    def test_predictive_insight(self):
        insight = analyze(AnalysisType.PREDICTIVE_ANALYSIS, {"values": [100, 110, 120], "periods": 1})

        assert insight["title"] == "Upward trend"
        assert insight["result"]["forecast"] == pytest.approx([130.0])
        assert insight["confidence"] == 0.75

    def test_risk_insight(self):
        insight = analyze(AnalysisType.RISK_ASSESSMENT, {"factors": {"budget_overrun": 0.5}})

        assert insight["title"] == "Medium risk"
        assert insight["description"] == "Weighted risk score 0.50. Main factors: budget_overrun."
        assert insight["impact"] == "MEDIUM"

    def test_non_numeric_values_rejected(self):
        with pytest.raises(ValueError):
            analyze(AnalysisType.ANOMALY_DETECTION, {"values": ["a", "b"]})


class TestAccuracy:
    def test_exact_prediction(self):
        assert prediction_accuracy(100, 100) == 1.0

    def test_relative_error(self):
        assert prediction_accuracy(100, 80) == pytest.approx(0.8)

    def test_clamped(self):
        assert prediction_accuracy(100, 300) == 0.0
        assert prediction_accuracy(0, 10) == 0.0
