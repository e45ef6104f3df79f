"""
Chart-data preparation for the dashboard's charting library.

Every function returns the renderer-neutral shape ``{labels, datasets: [{label,
data, styling}]}``. A missing sample is ``None`` (``null`` in JSON) so the
renderer draws a gap; it is never replaced by zero. ``ChartData.to_chartjs``
flattens styling into each dataset the way Chart.js expects it.
"""

import statistics
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from healthdash.domain.models import MeasurementSite, RiskCategory, VitalReading
from healthdash.domain.thresholds import DEFAULT_THRESHOLDS, ThresholdTable
from healthdash.services.normalization import normalize_reading

logger = structlog.get_logger(__name__)

ChartType = Literal["line", "bar", "bubble", "doughnut"]

MEDICAL_PALETTE = {
    "primary": "#2563eb",
    "secondary": "#dc2626",
    "success": "#16a34a",
    "warning": "#ea580c",
    "info": "#0891b2",
    "purple": "#7c3aed",
}

INDICATOR_LABELS = ["Systolic", "Diastolic", "Pulse", "SpO2", "Temperature"]
RISK_LABELS = ["Low risk", "Moderate risk", "High risk", "Very high risk"]
REPORT_PERIODS = (7, 30, 90)

# Resting reference values shown next to the latest measurement
REFERENCE_SYSTOLIC = 120.0
REFERENCE_DIASTOLIC = 80.0
REFERENCE_SPO2 = 95.0
REFERENCE_PULSE_RANGE = (60.0, 100.0)


class BubblePoint(BaseModel):
    x: int
    y: int
    r: float


class ChartDataset(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str | None = None
    data: list[float | None] | list[BubblePoint]
    styling: dict[str, Any] = Field(default_factory=dict)

    def to_chartjs(self) -> dict[str, Any]:
        dataset: dict[str, Any] = {}
        if self.label is not None:
            dataset["label"] = self.label
        dataset["data"] = [
            point.model_dump() if isinstance(point, BubblePoint) else point for point in self.data
        ]
        dataset.update(self.styling)
        return dataset


class ChartData(BaseModel):
    model_config = ConfigDict(frozen=True)

    labels: list[str] = Field(default_factory=list)
    datasets: list[ChartDataset]

    def to_chartjs(self) -> dict[str, Any]:
        return {
            "labels": list(self.labels),
            "datasets": [dataset.to_chartjs() for dataset in self.datasets],
        }


class ChartSpec(BaseModel):
    """A chart ready for rendering: id, chart type, data and options."""

    model_config = ConfigDict(frozen=True)

    chart_id: str
    type: ChartType
    data: ChartData
    options: dict[str, Any] = Field(default_factory=dict)

    def to_chartjs(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data.to_chartjs(), "options": self.options}


class ReportSeries(BaseModel):
    """Daily series for the report section, one entry per stored day."""

    model_config = ConfigDict(frozen=True)

    labels: list[str]
    heart_rate: list[float | None]
    systolic: list[float | None]
    diastolic: list[float | None]
    blood_sugar: list[float | None]
    sleep_duration: list[float | None]
    hrv: list[float | None]
    health_score: list[float | None]


def _line_styling(color: str, alpha: str = "20", **extra: Any) -> dict[str, Any]:
    styling: dict[str, Any] = {
        "borderColor": color,
        "backgroundColor": color + alpha,
        "borderWidth": 2,
        "fill": False,
        "tension": 0.4,
    }
    styling.update(extra)
    return styling


def _timeline(records: Sequence[Mapping[str, Any]]) -> tuple[list[str], list[VitalReading]]:
    labels = [str(record.get("timestamp", "")) for record in records]
    readings = [normalize_reading(record) for record in records]
    return labels, readings


def _indicator_values(reading: VitalReading) -> list[float | None]:
    bp, spo2, temperature = reading.blood_pressure, reading.spo2, reading.temperature
    return [
        bp.systolic if bp else None,
        bp.diastolic if bp else None,
        reading.pulse,
        spo2.percent if spo2 else None,
        temperature.value if temperature else None,
    ]


def prepare_dual_axis_data(records: Sequence[Mapping[str, Any]]) -> ChartData:
    """Blood pressure on the left axis, pulse on the right axis."""
    labels, readings = _timeline(records)
    return ChartData(
        labels=labels,
        datasets=[
            ChartDataset(
                label="Systolic",
                data=[r.blood_pressure.systolic if r.blood_pressure else None for r in readings],
                styling=_line_styling(MEDICAL_PALETTE["primary"], yAxisID="y", unit="mmHg"),
            ),
            ChartDataset(
                label="Diastolic",
                data=[r.blood_pressure.diastolic if r.blood_pressure else None for r in readings],
                styling=_line_styling(MEDICAL_PALETTE["info"], yAxisID="y", unit="mmHg"),
            ),
            ChartDataset(
                label="Pulse",
                data=[r.pulse for r in readings],
                styling=_line_styling(MEDICAL_PALETTE["secondary"], yAxisID="y1", unit="bpm"),
            ),
        ],
    )


def prepare_blood_oxygen_data(records: Sequence[Mapping[str, Any]]) -> ChartData:
    """Saturation as a filled area, perfusion index on a secondary axis."""
    labels, readings = _timeline(records)
    return ChartData(
        labels=labels,
        datasets=[
            ChartDataset(
                label="SpO2",
                data=[r.spo2.percent if r.spo2 else None for r in readings],
                styling=_line_styling(MEDICAL_PALETTE["success"], alpha="30", fill=True),
            ),
            ChartDataset(
                label="Perfusion index",
                data=[r.spo2.pi if r.spo2 else None for r in readings],
                styling=_line_styling(MEDICAL_PALETTE["warning"], borderWidth=1, yAxisID="y1"),
            ),
        ],
    )


def prepare_temperature_data(records: Sequence[Mapping[str, Any]]) -> ChartData:
    labels, readings = _timeline(records)
    return ChartData(
        labels=labels,
        datasets=[
            ChartDataset(
                label="Temperature",
                data=[r.temperature.value if r.temperature else None for r in readings],
                styling={
                    "backgroundColor": MEDICAL_PALETTE["warning"] + "80",
                    "borderColor": MEDICAL_PALETTE["warning"],
                    "borderWidth": 1,
                    "borderRadius": 4,
                    "borderSkipped": False,
                },
            )
        ],
    )


def pearson(xs: Sequence[float | None], ys: Sequence[float | None]) -> float:
    """
    Pearson correlation over the samples where both series are present.

    Returns 0.0 when fewer than two complete pairs exist or either series is
    constant, so the heatmap never shows an undefined cell.
    """
    pairs = [(x, y) for x, y in zip(xs, ys) if x is not None and y is not None]
    if len(pairs) < 2:
        return 0.0
    try:
        return statistics.correlation([x for x, _ in pairs], [y for _, y in pairs])
    except statistics.StatisticsError:
        return 0.0


def correlation_matrix(records: Sequence[Mapping[str, Any]]) -> list[list[float]]:
    _, readings = _timeline(records)
    columns = list(zip(*(_indicator_values(r) for r in readings))) or [()] * len(INDICATOR_LABELS)
    size = len(INDICATOR_LABELS)
    return [
        [1.0 if i == j else pearson(columns[i], columns[j]) for j in range(size)]
        for i in range(size)
    ]


def prepare_correlation_data(records: Sequence[Mapping[str, Any]]) -> ChartData:
    """Correlation heatmap drawn as a bubble scatter; radius grows with |r|."""
    matrix = correlation_matrix(records)
    points = [
        BubblePoint(x=j, y=i, r=abs(value) * 20 + 5)
        for i, row in enumerate(matrix)
        for j, value in enumerate(row)
    ]
    return ChartData(
        labels=list(INDICATOR_LABELS),
        datasets=[
            ChartDataset(
                label="Correlation strength",
                data=points,
                styling={
                    "backgroundColor": MEDICAL_PALETTE["purple"] + "60",
                    "borderColor": MEDICAL_PALETTE["purple"],
                    "borderWidth": 1,
                },
            )
        ],
    )


def reference_values(thresholds: ThresholdTable = DEFAULT_THRESHOLDS) -> list[float]:
    axillary = thresholds.temperature.range_for(MeasurementSite.AXILLARY)
    return [
        REFERENCE_SYSTOLIC,
        REFERENCE_DIASTOLIC,
        sum(REFERENCE_PULSE_RANGE) / 2,
        REFERENCE_SPO2,
        round((axillary.min + axillary.max) / 2, 2),
    ]


def prepare_stacked_bar_data(
    records: Sequence[Mapping[str, Any]], thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> ChartData:
    """Latest measurement against the reference value and the personal peak."""
    _, readings = _timeline(records)
    if readings:
        current = _indicator_values(readings[-1])
        columns = list(zip(*(_indicator_values(r) for r in readings)))
        peaks = [max((v for v in column if v is not None), default=None) for column in columns]
    else:
        current = [None] * len(INDICATOR_LABELS)
        peaks = [None] * len(INDICATOR_LABELS)

    def bar(color: str, alpha: str) -> dict[str, Any]:
        return {"backgroundColor": color + alpha, "borderColor": color, "borderWidth": 1}

    return ChartData(
        labels=list(INDICATOR_LABELS),
        datasets=[
            ChartDataset(
                label="Current", data=current, styling=bar(MEDICAL_PALETTE["primary"], "80")
            ),
            ChartDataset(
                label="Reference",
                data=list(reference_values(thresholds)),
                styling=bar(MEDICAL_PALETTE["success"], "60"),
            ),
            ChartDataset(
                label="Personal peak", data=peaks, styling=bar(MEDICAL_PALETTE["warning"], "60")
            ),
        ],
    )


def record_risk_level(
    reading: VitalReading, thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> RiskCategory:
    """Additive per-record risk points used for the risk distribution chart."""
    points = 0

    bp = reading.blood_pressure
    if bp is not None:
        stages = thresholds.blood_pressure
        if bp.systolic >= stages.stage3.systolic or bp.diastolic >= stages.stage3.diastolic:
            points += 3
        elif bp.systolic >= stages.stage2.systolic or bp.diastolic >= stages.stage2.diastolic:
            points += 2
        elif bp.systolic >= stages.stage1.systolic or bp.diastolic >= stages.stage1.diastolic:
            points += 1

    if reading.spo2 is not None:
        percent = reading.spo2.percent
        if percent < 85:
            points += 3
        elif percent < 90:
            points += 2
        elif percent < 95:
            points += 1

    if reading.temperature is not None:
        value = reading.temperature.value
        if value > 38.5 or value < 35:
            points += 2
        elif value > 37.5 or value < 36:
            points += 1

    pulse = reading.pulse
    if pulse:
        if pulse > 120 or pulse < 50:
            points += 2
        elif pulse > 100 or pulse < 60:
            points += 1

    if points >= 6:
        return RiskCategory.VERY_HIGH
    if points >= 4:
        return RiskCategory.HIGH
    if points >= 2:
        return RiskCategory.MODERATE
    return RiskCategory.LOW


def prepare_risk_distribution_data(
    records: Sequence[Mapping[str, Any]], thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> ChartData:
    """Doughnut of how many records fall into each risk category."""
    _, readings = _timeline(records)
    order = [RiskCategory.LOW, RiskCategory.MODERATE, RiskCategory.HIGH, RiskCategory.VERY_HIGH]
    counts = dict.fromkeys(order, 0)
    for reading in readings:
        counts[record_risk_level(reading, thresholds)] += 1

    colors = [
        MEDICAL_PALETTE["success"],
        MEDICAL_PALETTE["warning"],
        MEDICAL_PALETTE["secondary"],
        MEDICAL_PALETTE["primary"],
    ]
    return ChartData(
        labels=list(RISK_LABELS),
        datasets=[
            ChartDataset(
                data=[float(counts[category]) for category in order],
                styling={"backgroundColor": colors, "borderColor": colors, "borderWidth": 2},
            )
        ],
    )


# ---------------------------------------------------------------------------
# Report section: daily records kept by the dashboard
# ---------------------------------------------------------------------------


def _parse_date(value: Any) -> datetime | None:
    # Naive timestamps are taken as UTC so mixed records still order correctly
    if isinstance(value, str) and value:
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def _positive_number(value: Any) -> float | None:
    """Stored daily values are loosely typed; anything non-positive is a gap."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _nested(record: Mapping[str, Any], key: str) -> Any:
    bp = record.get("bloodPressure")
    if isinstance(bp, Mapping) and bp.get(key) is not None:
        return bp.get(key)
    return record.get(key)


def recent_health_series(records: Sequence[Mapping[str, Any]], days: int = 7) -> ReportSeries:
    """
    The last ``days`` daily records, oldest first, labelled ``M/DD``.

    Records are ordered by ``lastUpdated`` (falling back to ``date``); a
    record with neither is left out of the series.
    """
    dated: list[tuple[datetime, Mapping[str, Any]]] = []
    for record in records:
        stamp = _parse_date(record.get("lastUpdated")) or _parse_date(record.get("date"))
        if stamp is None:
            logger.debug("report_record_skipped", reason="no_date")
            continue
        dated.append((stamp, record))
    dated.sort(key=lambda item: item[0])
    recent = dated[-days:] if days > 0 else []

    return ReportSeries(
        labels=[f"{stamp.month}/{stamp.day:02d}" for stamp, _ in recent],
        heart_rate=[_positive_number(r.get("heartRate")) for _, r in recent],
        systolic=[_positive_number(_nested(r, "systolic")) for _, r in recent],
        diastolic=[_positive_number(_nested(r, "diastolic")) for _, r in recent],
        blood_sugar=[_positive_number(r.get("bloodSugar")) for _, r in recent],
        sleep_duration=[_positive_number(r.get("sleepDuration")) for _, r in recent],
        hrv=[_positive_number(r.get("hrv")) for _, r in recent],
        health_score=[_positive_number(r.get("healthScore")) for _, r in recent],
    )


def _y_axis(
    title: str, minimum: float | None, maximum: float, begin_at_zero: bool = False
) -> dict[str, Any]:
    axis: dict[str, Any] = {
        "beginAtZero": begin_at_zero,
        "max": maximum,
        "title": {"display": True, "text": title},
    }
    if minimum is not None:
        axis["min"] = minimum
    return {"scales": {"y": axis}}


def _filled_line(label: str, data: list[float | None], color: str, rgb: str) -> ChartDataset:
    return ChartDataset(
        label=label,
        data=data,
        styling={
            "borderColor": color,
            "backgroundColor": f"rgba({rgb}, 0.1)",
            "tension": 0.4,
            "fill": True,
        },
    )


def report_charts(records: Sequence[Mapping[str, Any]], days: int = 7) -> list[ChartSpec]:
    """The seven report-section charts for the selected period."""
    if days not in REPORT_PERIODS:
        raise ValueError(f"report period must be one of {REPORT_PERIODS}, got {days}")
    series = recent_health_series(records, days)
    weekly = recent_health_series(records, 7)

    blood_pressure = ChartData(
        labels=series.labels,
        datasets=[
            ChartDataset(
                label="Systolic",
                data=series.systolic,
                styling={
                    "borderColor": "#ef4444",
                    "backgroundColor": "rgba(239, 68, 68, 0.1)",
                    "tension": 0.4,
                    "fill": False,
                },
            ),
            ChartDataset(
                label="Diastolic",
                data=series.diastolic,
                styling={
                    "borderColor": "#3b82f6",
                    "backgroundColor": "rgba(59, 130, 246, 0.1)",
                    "tension": 0.4,
                    "fill": False,
                },
            ),
        ],
    )
    sleep = ChartData(
        labels=series.labels,
        datasets=[
            ChartDataset(
                label="Sleep duration",
                data=series.sleep_duration,
                styling={
                    "backgroundColor": "rgba(99, 102, 241, 0.8)",
                    "borderColor": "#6366f1",
                    "borderWidth": 1,
                },
            )
        ],
    )
    weekly_sleep = ChartData(
        labels=weekly.labels,
        datasets=[
            ChartDataset(
                data=weekly.sleep_duration,
                styling={
                    "backgroundColor": [
                        "#ef4444",
                        "#f97316",
                        "#eab308",
                        "#22c55e",
                        "#06b6d4",
                        "#3b82f6",
                        "#8b5cf6",
                    ]
                },
            )
        ],
    )

    return [
        ChartSpec(
            chart_id="report-blood-pressure-chart",
            type="line",
            data=blood_pressure,
            options=_y_axis("Blood pressure (mmHg)", 50, 200),
        ),
        ChartSpec(
            chart_id="report-blood-sugar-chart",
            type="line",
            data=ChartData(
                labels=series.labels,
                datasets=[
                    _filled_line("Blood sugar", series.blood_sugar, "#f59e0b", "245, 158, 11")
                ],
            ),
            options=_y_axis("Blood sugar (mmol/L)", 3, 10),
        ),
        ChartSpec(
            chart_id="report-heart-rate-chart",
            type="line",
            data=ChartData(
                labels=series.labels,
                datasets=[_filled_line("Heart rate", series.heart_rate, "#dc2626", "220, 38, 38")],
            ),
            options=_y_axis("Heart rate (bpm)", 50, 120),
        ),
        ChartSpec(
            chart_id="report-sleep-quality-chart",
            type="bar",
            data=sleep,
            options=_y_axis("Sleep duration (hours)", None, 12, begin_at_zero=True),
        ),
        ChartSpec(
            chart_id="report-weekly-sleep-chart",
            type="doughnut",
            data=weekly_sleep,
            options={"plugins": {"legend": {"position": "bottom"}}},
        ),
        ChartSpec(
            chart_id="report-hrv-trend-chart",
            type="line",
            data=ChartData(
                labels=series.labels,
                datasets=[_filled_line("HRV", series.hrv, "#10b981", "16, 185, 129")],
            ),
            options=_y_axis("HRV (ms)", 15, 60),
        ),
        ChartSpec(
            chart_id="report-health-score-chart",
            type="line",
            data=ChartData(
                labels=series.labels,
                datasets=[
                    _filled_line("Health score", series.health_score, "#8b5cf6", "139, 92, 246")
                ],
            ),
            options=_y_axis("Health score", 60, 100),
        ),
    ]


def vital_sign_charts(
    records: Sequence[Mapping[str, Any]], thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> list[ChartSpec]:
    """The six vital-sign charts for a reading history, oldest first."""
    return [
        ChartSpec(
            chart_id="dual-axis-trend-chart", type="line", data=prepare_dual_axis_data(records)
        ),
        ChartSpec(
            chart_id="blood-oxygen-area-chart",
            type="line",
            data=prepare_blood_oxygen_data(records),
        ),
        ChartSpec(
            chart_id="temperature-bar-chart", type="bar", data=prepare_temperature_data(records)
        ),
        ChartSpec(
            chart_id="correlation-heatmap-chart",
            type="bubble",
            data=prepare_correlation_data(records),
        ),
        ChartSpec(
            chart_id="stacked-bar-chart",
            type="bar",
            data=prepare_stacked_bar_data(records, thresholds),
        ),
        ChartSpec(
            chart_id="risk-stratification-chart",
            type="doughnut",
            data=prepare_risk_distribution_data(records, thresholds),
        ),
    ]
