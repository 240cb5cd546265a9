"""
Statistical helpers behind AI insights and predictions.

Plain descriptive statistics: z-score outliers, least-squares trend
forecasting and weighted risk scoring. Each analysis type carries a fixed
confidence.
"""

import statistics
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

ANOMALY_Z_SCORE = 2.0


class AnalysisType(str, Enum):
    ANOMALY_DETECTION = "ANOMALY_DETECTION"
    PREDICTIVE_ANALYSIS = "PREDICTIVE_ANALYSIS"
    RISK_ASSESSMENT = "RISK_ASSESSMENT"


ANALYSIS_CONFIDENCE = {
    AnalysisType.ANOMALY_DETECTION: 0.85,
    AnalysisType.PREDICTIVE_ANALYSIS: 0.75,
    AnalysisType.RISK_ASSESSMENT: 0.90,
}


def _values(data: Dict[str, Any]) -> List[float]:
    values = data.get("values") or []
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError):
        raise ValueError("'values' must be a list of numbers")


def detect_anomalies(values: Sequence[float], threshold: float = ANOMALY_Z_SCORE) -> List[Dict[str, float]]:
    """Return points whose absolute z-score exceeds threshold."""
    if len(values) < 2:
        return []
    mean = statistics.fmean(values)
    stdev = statistics.pstdev(values)
    if stdev == 0:
        return []
    return [
        {"index": i, "value": value, "z_score": round((value - mean) / stdev, 4)}
        for i, value in enumerate(values)
        if abs(value - mean) / stdev > threshold
    ]


def linear_trend(values: Sequence[float]) -> Dict[str, float]:
    """Least-squares fit of values against their index."""
    n = len(values)
    if n == 0:
        return {"slope": 0.0, "intercept": 0.0, "r_squared": 0.0}
    if n == 1:
        return {"slope": 0.0, "intercept": float(values[0]), "r_squared": 0.0}

    xs = range(n)
    mean_x = (n - 1) / 2
    mean_y = statistics.fmean(values)
    sxx = sum((x - mean_x) ** 2 for x in xs)
    sxy = sum((x - mean_x) * (y - mean_y) for x, y in zip(xs, values))
    slope = sxy / sxx
    intercept = mean_y - slope * mean_x

    ss_tot = sum((y - mean_y) ** 2 for y in values)
    ss_res = sum((y - (intercept + slope * x)) ** 2 for x, y in zip(xs, values))
    r_squared = 1 - ss_res / ss_tot if ss_tot else 1.0

    return {"slope": slope, "intercept": intercept, "r_squared": r_squared}


def forecast(values: Sequence[float], periods: int = 1) -> List[float]:
    trend = linear_trend(values)
    n = len(values)
    return [trend["intercept"] + trend["slope"] * (n + i) for i in range(periods)]


def assess_risk(factors: Dict[str, float], weights: Optional[Dict[str, float]] = None) -> Dict[str, Any]:
    """Weighted mean of 0..1 risk factors with a LOW/MEDIUM/HIGH level."""
    if not factors:
        return {"score": 0.0, "level": "LOW", "top_factors": []}

    weights = weights or {}
    total_weight = sum(weights.get(name, 1.0) for name in factors)
    score = sum(max(0.0, min(1.0, float(value))) * weights.get(name, 1.0) for name, value in factors.items())
    score = score / total_weight if total_weight else 0.0

    if score >= 0.7:
        level = "HIGH"
    elif score >= 0.4:
        level = "MEDIUM"
    else:
        level = "LOW"

    top = sorted(factors.items(), key=lambda item: item[1], reverse=True)[:3]
    return {"score": round(score, 4), "level": level, "top_factors": [name for name, _ in top]}


def analyze(analysis_type: AnalysisType, data: Dict[str, Any]) -> Dict[str, Any]:
    """Run one analysis and describe the result as an insight."""
    if analysis_type == AnalysisType.ANOMALY_DETECTION:
        values = _values(data)
        anomalies = detect_anomalies(values)
        if anomalies:
            title = f"{len(anomalies)} anomalies detected"
            description = "Values deviating more than two standard deviations from the mean: " + ", ".join(
                str(a["value"]) for a in anomalies
            )
            impact = "HIGH" if len(anomalies) > 1 else "MEDIUM"
        else:
            title = "No anomalies detected"
            description = f"All {len(values)} values are within two standard deviations of the mean."
            impact = "LOW"
        result = {"anomalies": anomalies}

    elif analysis_type == AnalysisType.PREDICTIVE_ANALYSIS:
        values = _values(data)
        periods = int(data.get("periods", 3))
        trend = linear_trend(values)
        direction = "upward" if trend["slope"] > 0 else "downward" if trend["slope"] < 0 else "flat"
        title = f"{direction.capitalize()} trend"
        description = f"Linear trend of {trend['slope']:.2f} per period over {len(values)} observations."
        impact = "MEDIUM" if direction != "flat" else "LOW"
        result = {"trend": trend, "forecast": forecast(values, periods)}

    else:
        risk = assess_risk(data.get("factors") or {}, data.get("weights"))
        title = f"{risk['level'].capitalize()} risk"
        description = f"Weighted risk score {risk['score']:.2f}."
        if risk["top_factors"]:
            description += " Main factors: " + ", ".join(risk["top_factors"]) + "."
        impact = risk["level"]
        result = {"risk": risk}

    return {
        "type": analysis_type.value,
        "title": title,
        "description": description,
        "impact": impact,
        "confidence": ANALYSIS_CONFIDENCE[analysis_type],
        "result": result,
    }


def prediction_accuracy(predicted: float, actual: float) -> float:
    """1 - relative error, clamped to [0, 1]; 0 when nothing positive was predicted."""
    if predicted <= 0:
        return 0.0
    accuracy = 1 - abs(predicted - actual) / predicted
    return max(0.0, min(1.0, accuracy))
