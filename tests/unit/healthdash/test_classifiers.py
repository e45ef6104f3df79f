"""
Tests for the vital-sign classifiers in `healthdash/services/classifiers.py`.

Covers:
- Blood pressure grading with the either-value rule and monotonic tiers
- Blood oxygen grading and perfusion tiers
- Site-specific temperature grading with strict boundaries
- Pulse grading
- MissingData sentinels for absent inputs
- Injected threshold tables
"""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from healthdash.domain.models import (
    BloodOxygenCategory,
    BloodPressureCategory,
    BloodPressureReading,
    DataStatus,
    MeasurementSite,
    MissingData,
    PerfusionTier,
    PulseCategory,
    RiskLevel,
    SpO2Reading,
    TemperatureCategory,
    TemperatureReading,
    VariabilityLevel,
    VitalReading,
)
from healthdash.domain.thresholds import PulseThresholds, ThresholdTable
from healthdash.services.classifiers import (
    assess_basic_vital_signs,
    classify_blood_oxygen,
    classify_blood_pressure,
    classify_pulse,
    classify_temperature,
    perfusion_tier,
    variability,
)


RISK_ORDER = list(RiskLevel)


def bp(systolic: float, diastolic: float) -> BloodPressureReading:
    return BloodPressureReading(systolic=systolic, diastolic=diastolic)


def rank(result: object) -> int:
    assert not isinstance(result, MissingData)
    return RISK_ORDER.index(result.risk_level)  # type: ignore[attr-defined]


class TestBloodPressure:
    @pytest.mark.parametrize(
        ("systolic", "diastolic", "category", "risk"),
        [
            (118, 76, BloodPressureCategory.NORMAL, RiskLevel.LOW),
            (130, 80, BloodPressureCategory.HIGH_NORMAL, RiskLevel.LOW_MODERATE),
            (140, 80, BloodPressureCategory.STAGE1_HYPERTENSION, RiskLevel.MODERATE),
            (160, 95, BloodPressureCategory.STAGE2_HYPERTENSION, RiskLevel.HIGH),
            (185, 115, BloodPressureCategory.STAGE3_HYPERTENSION, RiskLevel.VERY_HIGH),
        ],
    )
    def test_grades(
        self, systolic: float, diastolic: float, category: BloodPressureCategory, risk: RiskLevel
    ) -> None:
        result = classify_blood_pressure(bp(systolic, diastolic))

        assert not isinstance(result, MissingData)
        assert result.category is category
        assert result.risk_level is risk

    @pytest.mark.parametrize(
        ("systolic", "diastolic", "score"), [(118, 76, 1.0), (135, 80, 0.8), (185, 115, 0.2)]
    )
    def test_score_follows_risk_level(
        self, systolic: float, diastolic: float, score: float
    ) -> None:
        result = classify_blood_pressure(bp(systolic, diastolic))

        assert not isinstance(result, MissingData)
        assert result.score == score

    def test_diastolic_alone_elevates(self) -> None:
        result = classify_blood_pressure(bp(120, 112))

        assert not isinstance(result, MissingData)
        assert result.category is BloodPressureCategory.STAGE3_HYPERTENSION

    @given(
        low=st.floats(min_value=60, max_value=250),
        high=st.floats(min_value=60, max_value=250),
        diastolic=st.floats(min_value=40, max_value=84),
    )
    def test_risk_monotonic_in_systolic(self, low: float, high: float, diastolic: float) -> None:
        """Raising systolic never lowers the risk tier."""
        low, high = min(low, high), max(low, high)
        first = classify_blood_pressure(bp(low, diastolic))
        second = classify_blood_pressure(bp(high, diastolic))

        assert not isinstance(first, MissingData) and not isinstance(second, MissingData)
        assert rank(first) <= rank(second)

    def test_boundaries_strictly_increase(self) -> None:
        ranks = [
            rank(classify_blood_pressure(bp(systolic, 70)))
            for systolic in (120, 130, 140, 160, 180)
        ]

        assert ranks == sorted(ranks)
        assert len(set(ranks)) == len(ranks)

    def test_variability(self) -> None:
        result = variability(120, 80)

        assert result.coefficient == pytest.approx(40.0)
        assert result.interpretation is VariabilityLevel.HIGH
        assert variability(100, 95).interpretation is VariabilityLevel.LOW

    def test_missing(self) -> None:
        result = classify_blood_pressure(None)

        assert isinstance(result, MissingData)
        assert result.status is DataStatus.NO_DATA


class TestBloodOxygen:
    def test_severe_hypoxemia_with_poor_perfusion(self) -> None:
        result = classify_blood_oxygen(SpO2Reading(percent=88, pi=0.4))

        assert not isinstance(result, MissingData)
        assert result.category is BloodOxygenCategory.SEVERE_HYPOXEMIA
        assert result.risk_level is RiskLevel.VERY_HIGH
        assert result.perfusion is PerfusionTier.POOR
        assert "perfusion is poor" in result.assessment

    @pytest.mark.parametrize(
        ("percent", "category"),
        [
            (90, BloodOxygenCategory.MILD_HYPOXEMIA),
            (94.9, BloodOxygenCategory.MILD_HYPOXEMIA),
            (95, BloodOxygenCategory.NORMAL),
        ],
    )
    def test_cutoffs(self, percent: float, category: BloodOxygenCategory) -> None:
        result = classify_blood_oxygen(SpO2Reading(percent=percent))

        assert not isinstance(result, MissingData)
        assert result.category is category
        assert result.perfusion is None

    @pytest.mark.parametrize(
        ("pi", "tier"),
        [
            (0.2, PerfusionTier.POOR),
            (0.5, PerfusionTier.FAIR),
            (1.0, PerfusionTier.GOOD),
            (2.0, PerfusionTier.EXCELLENT),
            (None, None),
        ],
    )
    def test_perfusion_tiers(self, pi: float | None, tier: PerfusionTier | None) -> None:
        assert perfusion_tier(pi) is tier


class TestTemperature:
    def test_axillary_fever(self) -> None:
        result = classify_temperature(
            TemperatureReading(value=37.5, location=MeasurementSite.AXILLARY)
        )

        assert not isinstance(result, MissingData)
        assert result.category is TemperatureCategory.FEVER
        assert result.risk_level is RiskLevel.MODERATE
        assert (result.normal_range.min, result.normal_range.max) == (36.0, 37.2)

    def test_axillary_high_fever(self) -> None:
        # 38.0 is past the axillary max plus margin (37.7)
        result = classify_temperature(
            TemperatureReading(value=38.0, location=MeasurementSite.AXILLARY)
        )

        assert not isinstance(result, MissingData)
        assert result.category is TemperatureCategory.HIGH_FEVER
        assert result.risk_level is RiskLevel.HIGH

    @pytest.mark.parametrize(
        ("value", "category"),
        [
            (37.2, TemperatureCategory.NORMAL),
            (37.3, TemperatureCategory.FEVER),
            (37.8, TemperatureCategory.HIGH_FEVER),
            (36.0, TemperatureCategory.NORMAL),
            (35.8, TemperatureCategory.LOW_NORMAL),
            (35.2, TemperatureCategory.HYPOTHERMIA),
        ],
    )
    def test_strict_boundaries(self, value: float, category: TemperatureCategory) -> None:
        result = classify_temperature(TemperatureReading(value=value))

        assert not isinstance(result, MissingData)
        assert result.category is category

    def test_site_specific_range(self) -> None:
        # 37.4 is normal rectally but fever under the arm
        rectal = classify_temperature(
            TemperatureReading(value=37.4, location=MeasurementSite.RECTAL)
        )
        axillary = classify_temperature(TemperatureReading(value=37.4))

        assert rectal.category is TemperatureCategory.NORMAL  # type: ignore[union-attr]
        assert axillary.category is TemperatureCategory.FEVER  # type: ignore[union-attr]


class TestPulse:
    @pytest.mark.parametrize(
        ("pulse", "category", "risk"),
        [
            (45, PulseCategory.BRADYCARDIA, RiskLevel.MODERATE),
            (50, PulseCategory.NORMAL, RiskLevel.LOW),
            (100, PulseCategory.NORMAL, RiskLevel.LOW),
            (110, PulseCategory.TACHYCARDIA, RiskLevel.MODERATE),
            (130, PulseCategory.SEVERE_TACHYCARDIA, RiskLevel.HIGH),
        ],
    )
    def test_grades(self, pulse: float, category: PulseCategory, risk: RiskLevel) -> None:
        result = classify_pulse(pulse)

        assert not isinstance(result, MissingData)
        assert result.category is category
        assert result.risk_level is risk

    @pytest.mark.parametrize("pulse", [None, 0])
    def test_missing(self, pulse: float | None) -> None:
        assert isinstance(classify_pulse(pulse), MissingData)

    def test_injected_thresholds(self) -> None:
        table = ThresholdTable(
            pulse=PulseThresholds(
                bradycardia_below=40, tachycardia_above=110, severe_tachycardia_above=130
            )
        )

        result = classify_pulse(45, thresholds=table)

        assert result.category is PulseCategory.NORMAL  # type: ignore[union-attr]


def test_assess_basic_vital_signs_marks_each_missing_input() -> None:
    signs = assess_basic_vital_signs(VitalReading(spo2=SpO2Reading(percent=97, pr=70), pulse=70))

    assert isinstance(signs.blood_pressure, MissingData)
    assert isinstance(signs.temperature, MissingData)
    assert signs.blood_oxygen.category is BloodOxygenCategory.NORMAL  # type: ignore[union-attr]
    assert signs.pulse.category is PulseCategory.NORMAL  # type: ignore[union-attr]
