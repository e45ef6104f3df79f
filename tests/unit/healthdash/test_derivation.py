"""
Tests for the derivation engine in `healthdash/services/derivation.py`.
"""

from __future__ import annotations

from healthdash.domain.models import (
    BloodPressureReading,
    InsightType,
    SpO2Reading,
    TemperatureReading,
    VitalReading,
)
from healthdash.services.derivation import DEFAULT_RULES, DerivationEngine, DerivationRule


def rules_fired(reading: VitalReading) -> list[str]:
    return [insight.rule for insight in DerivationEngine().derive(reading).insights]


def test_metabolic_insight_for_fever_with_fast_pulse() -> None:
    insights = DerivationEngine().derive(
        VitalReading(temperature=TemperatureReading(value=38.2), pulse=110)
    )

    assert [i.type for i in insights.insights] == [InsightType.METABOLIC]
    assert insights.insights[0].confidence == "moderate"
    assert len(insights.derivation_methods) == 3
    assert len(insights.limitations) == 4


def test_circulation_load_uses_resolved_pulse() -> None:
    reading = VitalReading(
        blood_pressure=BloodPressureReading(systolic=150, diastolic=95, pulse=108), pulse=108
    )

    assert rules_fired(reading) == ["circulation_load"]


def test_weak_circulation() -> None:
    reading = VitalReading(
        blood_pressure=BloodPressureReading(systolic=92, diastolic=60), pulse=52
    )

    assert rules_fired(reading) == ["weak_circulation"]


def test_respiratory_rule_needs_perfusion_index() -> None:
    assert rules_fired(VitalReading(spo2=SpO2Reading(percent=91, pi=0.6))) == [
        "respiratory_perfusion"
    ]
    assert rules_fired(VitalReading(spo2=SpO2Reading(percent=91))) == []


def test_several_rules_fire_independently() -> None:
    reading = VitalReading(
        blood_pressure=BloodPressureReading(systolic=160, diastolic=100, pulse=115),
        spo2=SpO2Reading(percent=90, pi=0.3),
        temperature=TemperatureReading(value=38.6),
        pulse=115,
    )

    assert rules_fired(reading) == ["circulation_load", "respiratory_perfusion", "metabolic"]


def test_healthy_reading_has_no_insights() -> None:
    reading = VitalReading(
        blood_pressure=BloodPressureReading(systolic=118, diastolic=76, pulse=72),
        spo2=SpO2Reading(percent=98, pi=3.0),
        temperature=TemperatureReading(value=36.5),
        pulse=72,
    )

    assert DerivationEngine().derive(reading).insights == []


def test_custom_rules_are_injectable() -> None:
    always = DerivationRule(
        name="always",
        type=InsightType.CIRCULATION,
        condition=lambda reading: True,
        insight="insight",
        recommendation="recommendation",
        reference="reference",
        derivation="derivation",
    )

    engine = DerivationEngine(rules=(always, *DEFAULT_RULES))

    assert [i.rule for i in engine.derive(VitalReading()).insights] == ["always"]
