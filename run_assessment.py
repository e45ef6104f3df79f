"""
Scenario runner for the full assessment pipeline.

This script exercises:
1. Configuration loading and validation
2. Assessment of representative readings (hypertension, hypoxemia, fever...)
3. Latest-device-reading extraction from a history export
4. Chart-data preparation for the dashboard
5. Rejection of malformed readings

Run with: python run_assessment.py [history-export.json]
"""

import sys
from datetime import UTC, datetime, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.charts.session import ChartSession
from adapters.storage.history import (
    DAILY_RECORDS_KEY,
    HEALTH_RECORDS_KEY,
    HistorySource,
    InMemoryHistorySource,
    JsonFileHistorySource,
    latest_device_reading,
)
from healthdash.config import get_config, print_config_summary, validate_config
from healthdash.domain.errors import StructuralError
from healthdash.domain.models import AssessmentReport, MissingData
from healthdash.services.assessment import HealthAssessmentService
from healthdash.services.visualization import vital_sign_charts

console = Console()

SCENARIOS: list[tuple[str, dict]] = [
    ("Stage 3 hypertension", {"bloodPressure": {"systolic": 185, "diastolic": 115, "pulse": 88}}),
    ("Severe hypoxemia, poor perfusion", {"spO2": {"percent": 88, "pi": 0.4, "pr": 96}}),
    ("Axillary fever", {"temperature": {"value": 37.5, "location": "腋下"}}),
    ("Axillary high fever", {"temperature": {"value": 38.0, "location": "腋下"}}),
    ("Bradycardia", {"heartRate": 45}),
    (
        "Fever with tachycardia",
        {"temperature": {"value": 38.2, "location": "腋下"}, "heartRate": 110},
    ),
    ("Temperature only", {"temperature": {"value": 36.6, "location": "口腔"}}),
    (
        "Healthy adult",
        {
            "bloodPressure": {"systolic": 118, "diastolic": 76, "pulse": 72},
            "spO2": {"percent": 98, "pi": 3.2, "pr": 72},
            "temperature": {"value": 36.5, "location": "腋下"},
        },
    ),
]


def sample_history() -> InMemoryHistorySource:
    """A week of device records and daily summaries, as the dashboard stores them."""
    start = datetime(2026, 10, 1, 8, 0, tzinfo=UTC)
    records = []
    daily = []
    for day in range(7):
        stamp = start + timedelta(days=day)
        records += [
            {
                "device": True,
                "type": "血压",
                "timestamp": stamp.isoformat(),
                "data": {"systolic": 128 + day * 3, "diastolic": 82 + day, "pulse": 70 + day},
            },
            {
                "device": True,
                "type": "血氧",
                "timestamp": stamp.isoformat(),
                "data": {"percent": 97 - day % 3, "pi": 2.5, "pr": 71 + day},
            },
            {
                "device": True,
                "type": "体温",
                "timestamp": stamp.isoformat(),
                "data": {"value": 36.4 + day * 0.1, "location": "腋下"},
            },
        ]
        daily.append(
            {
                "date": stamp.isoformat(),
                "heartRate": 70 + day,
                "bloodPressure": {"systolic": 128 + day * 3, "diastolic": 82 + day},
                "bloodSugar": 5.4,
                "sleepDuration": 7.0 - day * 0.2,
                "hrv": 42 + day,
                "healthScore": 88 - day,
            }
        )
    return InMemoryHistorySource(
        {HEALTH_RECORDS_KEY: records, DAILY_RECORDS_KEY: daily}, source_name="sample"
    )


def _category(result: object) -> str:
    if isinstance(result, MissingData):
        return f"[dim]{result.status.value}[/dim]"
    return f"{result.category.value} ({result.risk_level.value})"  # type: ignore[attr-defined]


def print_report(title: str, report: AssessmentReport) -> None:
    composite = report.composite_score
    risk = report.risk_stratification
    vitals = report.basic_vital_signs

    table = Table(title=title)
    table.add_column("Item", style="cyan")
    table.add_column("Result", style="white")

    table.add_row("Composite score", f"{composite.score:.2f} ({composite.grade.value})")
    table.add_row("Confidence", f"{composite.confidence:.0f}%")
    table.add_row("Risk", f"{risk.category.value}, follow up {risk.follow_up_interval.value}")
    table.add_row("Blood pressure", _category(vitals.blood_pressure))
    table.add_row("Blood oxygen", _category(vitals.blood_oxygen))
    table.add_row("Temperature", _category(vitals.temperature))
    table.add_row("Pulse", _category(vitals.pulse))
    for insight in report.derived_insights.insights:
        table.add_row(f"Insight ({insight.type.value})", insight.insight)

    console.print(table)


def run_configuration() -> bool:
    console.print(Panel("Configuration", style="blue"))
    try:
        validate_config()
        print_config_summary()
    except Exception as e:
        console.print(f"Configuration failed: {e}", style="red")
        return False
    return True


def run_scenarios(service: HealthAssessmentService) -> bool:
    console.print(Panel("Assessment Scenarios", style="blue"))
    for title, reading in SCENARIOS:
        print_report(title, service.assess(reading))
    return True


def run_history(service: HealthAssessmentService, source: HistorySource) -> bool:
    console.print(Panel(f"Latest Device Reading ({source.source_name})", style="blue"))

    result = source.read(HEALTH_RECORDS_KEY)
    if result.is_err():
        console.print(f"Could not read history: {result.unwrap_err()}", style="red")
        return False

    snapshot = latest_device_reading(result.unwrap())
    console.print(
        f"{snapshot.device_records} device records of {snapshot.total_records}, "
        f"last update {snapshot.last_update}",
        style="green",
    )
    if not snapshot.has_data():
        console.print("No device measurements recorded yet", style="yellow")
        return True

    print_report("Latest reading", service.assess(snapshot.reading))
    return True


def run_charts(source: HistorySource) -> bool:
    console.print(Panel("Chart Data", style="blue"))

    records = source.read(HEALTH_RECORDS_KEY).unwrap_or([])
    daily = source.read(DAILY_RECORDS_KEY).unwrap_or([])
    snapshots = _readings_by_time(records)

    session = ChartSession(report_days=7)
    for spec in vital_sign_charts(snapshots, get_config().scoring.thresholds):
        session.render(spec)
    session.render_report(daily)

    table = Table(title="Rendered Charts")
    table.add_column("Chart", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Points", style="green")
    for chart_id, spec in session.charts.items():
        table.add_row(chart_id, spec.type, str(len(spec.data.labels)))
    console.print(table)
    return True


def _readings_by_time(records: list[dict]) -> list[dict]:
    # Each device record carries one measurement; merge those taken at the same time
    grouped: dict[str, list[dict]] = {}
    for record in records:
        grouped.setdefault(str(record.get("timestamp")), []).append(record)
    return [
        {"timestamp": stamp, **latest_device_reading(group).reading}
        for stamp, group in sorted(grouped.items())
    ]


def run_error_handling(service: HealthAssessmentService) -> bool:
    console.print(Panel("Malformed Readings", style="blue"))
    for reading in ({"bloodPressure": {"systolic": 120}}, {"spO2": {"percent": "high"}}):
        try:
            service.assess(reading)
        except StructuralError as e:
            console.print(f"Rejected {reading}: {e}", style="green")
        else:
            console.print(f"Accepted malformed reading {reading}", style="red")
            return False
    return True


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv if argv is None else argv
    console.print(Panel("Health Dashboard - Assessment Scenarios", style="bold blue"))

    config = get_config()
    service = HealthAssessmentService(
        weights=config.scoring.weights, thresholds=config.scoring.thresholds
    )
    source: HistorySource = JsonFileHistorySource(argv[1]) if len(argv) > 1 else sample_history()

    steps = [
        ("Configuration", run_configuration),
        ("Scenarios", lambda: run_scenarios(service)),
        ("History", lambda: run_history(service, source)),
        ("Charts", lambda: run_charts(source)),
        ("Error Handling", lambda: run_error_handling(service)),
    ]

    results = []
    for name, step in steps:
        console.print(f"\n{'=' * 60}")
        try:
            results.append((name, step()))
        except Exception as e:
            console.print(f"{name} failed with exception: {e}", style="red")
            results.append((name, False))

    summary = Table(title="Summary")
    summary.add_column("Step", style="cyan")
    summary.add_column("Result", style="white")
    for name, ok in results:
        summary.add_row(name, "PASSED" if ok else "FAILED")
    console.print(summary)

    return 0 if all(ok for _, ok in results) else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv))
