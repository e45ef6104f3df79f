"""
Sub-model evaluators.

Each evaluator starts from a base score of 0.5, applies additive
adjustments from a fixed rubric and clamps the result to [0, 1]. Evaluators
are stateless: thresholds are injected, the reading is passed per call.
"""

from typing import Protocol

import structlog

from healthdash.domain.models import (
    BloodOxygenPerfusionResult,
    BloodPressureStabilityResult,
    Correlation,
    DataStatus,
    EfficiencyLevel,
    EfficiencyResult,
    MissingData,
    PerfusionTier,
    PulseCategory,
    PulseClassification,
    StabilityLevel,
    SubModelAssessments,
    SubModelResult,
    SynergyLevel,
    SynergyResult,
    TemperatureCategory,
    TemperatureClassification,
    TemperaturePulseSynergyResult,
    VariabilityLevel,
    VitalReading,
)
from healthdash.domain.thresholds import DEFAULT_THRESHOLDS, ThresholdTable, risk_level_to_number
from healthdash.services.classifiers import (
    classify_pulse,
    classify_temperature,
    perfusion_tier,
    variability,
)

logger = structlog.get_logger(__name__)

BASE_SCORE = 0.5

STABILITY_ADJUSTMENTS = {
    StabilityLevel.STABLE: 0.3,
    StabilityLevel.MODERATE: 0.1,
    StabilityLevel.UNSTABLE: -0.2,
}
VARIABILITY_ADJUSTMENTS = {
    VariabilityLevel.LOW: 0.2,
    VariabilityLevel.MODERATE: 0.1,
    VariabilityLevel.HIGH: -0.1,
}
PERFUSION_ADJUSTMENTS = {
    PerfusionTier.POOR: -0.2,
    PerfusionTier.FAIR: 0.1,
    PerfusionTier.GOOD: 0.2,
    PerfusionTier.EXCELLENT: 0.3,
}
EFFICIENCY_ADJUSTMENTS = {
    EfficiencyLevel.EXCELLENT: 0.2,
    EfficiencyLevel.GOOD: 0.1,
    EfficiencyLevel.POOR: -0.1,
}
SYNERGY_ADJUSTMENTS = {
    SynergyLevel.GOOD: 0.2,
    SynergyLevel.MODERATE: 0.1,
    SynergyLevel.POOR: -0.1,
}

TEMPERATURE_FIELD_SCORES = {
    TemperatureCategory.NORMAL: 1.0,
    TemperatureCategory.LOW_NORMAL: 0.6,
    TemperatureCategory.FEVER: 0.4,
    TemperatureCategory.HIGH_FEVER: 0.2,
    TemperatureCategory.HYPOTHERMIA: 0.2,
}
PULSE_FIELD_SCORES = {
    PulseCategory.NORMAL: 1.0,
    PulseCategory.TACHYCARDIA: 0.6,
    PulseCategory.BRADYCARDIA: 0.4,
    PulseCategory.SEVERE_TACHYCARDIA: 0.2,
}

FEBRILE = {TemperatureCategory.FEVER, TemperatureCategory.HIGH_FEVER}
TACHYCARDIC = {PulseCategory.TACHYCARDIA, PulseCategory.SEVERE_TACHYCARDIA}

_STABILITY_WORDS = {
    StabilityLevel.STABLE: "good",
    StabilityLevel.MODERATE: "fair",
    StabilityLevel.UNSTABLE: "unstable",
}
_SYNERGY_WORDS = {
    SynergyLevel.GOOD: "good",
    SynergyLevel.MODERATE: "fair",
    SynergyLevel.POOR: "needs attention",
}


def clamp(score: float) -> float:
    return max(0.0, min(1.0, score))


def analyze_correlation(
    temperature: TemperatureClassification | MissingData,
    pulse: PulseClassification | MissingData,
) -> Correlation:
    """
    Advisory concordance check between temperature and pulse.

    A febrile temperature with a fast pulse, or hypothermia with a slow
    pulse, is physiologically concordant. Never feeds a score.
    """
    if isinstance(temperature, MissingData) or isinstance(pulse, MissingData):
        return Correlation.NONE
    if temperature.category in FEBRILE and pulse.category in TACHYCARDIC:
        return Correlation.POSITIVE
    if (
        temperature.category is TemperatureCategory.HYPOTHERMIA
        and pulse.category is PulseCategory.BRADYCARDIA
    ):
        return Correlation.POSITIVE
    return Correlation.NONE


class SubModelEvaluator(Protocol):
    """One weighted component of the composite score."""

    name: str

    def evaluate(self, reading: VitalReading) -> SubModelResult | MissingData: ...


class _EvaluatorBase:
    name = ""

    def __init__(self, thresholds: ThresholdTable = DEFAULT_THRESHOLDS) -> None:
        self.thresholds = thresholds
        self.logger = logger.bind(component=self.name)

    def correlation(self, reading: VitalReading) -> Correlation:
        return analyze_correlation(
            classify_temperature(reading.temperature, self.thresholds),
            classify_pulse(reading.pulse, reading.pulse_source, self.thresholds),
        )


class BloodPressureStabilityModel(_EvaluatorBase):
    """Single-reading stability from the spread between systolic and diastolic."""

    name = "blood_pressure_stability"

    def evaluate(self, reading: VitalReading) -> BloodPressureStabilityResult | MissingData:
        bp = reading.blood_pressure
        if bp is None:
            return MissingData(
                message="Insufficient blood pressure data for a stability assessment"
            )

        spread = variability(bp.systolic, bp.diastolic)
        ratio = spread.coefficient / 100
        if ratio < 0.1:
            stability = StabilityLevel.STABLE
        elif ratio < 0.2:
            stability = StabilityLevel.MODERATE
        else:
            stability = StabilityLevel.UNSTABLE

        score = clamp(
            BASE_SCORE
            + STABILITY_ADJUSTMENTS[stability]
            + VARIABILITY_ADJUSTMENTS[spread.interpretation]
        )
        self.logger.debug("submodel_evaluated", score=score, stability=stability.value)
        return BloodPressureStabilityResult(
            score=score,
            label=stability.value,
            assessment=(
                f"Blood pressure stability: {_STABILITY_WORDS[stability]}, "
                f"variability: {spread.interpretation.value}, score: {score * 100:.0f}"
            ),
            correlation=self.correlation(reading),
            stability=stability,
            variability=spread,
            trend=MissingData(
                status=DataStatus.INSUFFICIENT_DATA,
                message="A trend needs multiple measurements",
            ),
        )


class BloodOxygenPerfusionModel(_EvaluatorBase):
    """Peripheral perfusion (perfusion index) combined with oxygenation efficiency."""

    name = "blood_oxygen_perfusion"

    def evaluate(self, reading: VitalReading) -> BloodOxygenPerfusionResult | MissingData:
        spo2 = reading.spo2
        if spo2 is None:
            return MissingData(
                message="Insufficient blood oxygen data for a perfusion assessment"
            )

        tier = perfusion_tier(spo2.pi)
        ratio = spo2.percent / 100
        if ratio >= 0.95:
            efficiency = EfficiencyLevel.EXCELLENT
        elif ratio >= 0.90:
            efficiency = EfficiencyLevel.GOOD
        else:
            efficiency = EfficiencyLevel.POOR

        # No perfusion index reported: perfusion contributes nothing
        perfusion_adjustment = PERFUSION_ADJUSTMENTS[tier] if tier is not None else 0.0
        score = clamp(BASE_SCORE + perfusion_adjustment + EFFICIENCY_ADJUSTMENTS[efficiency])

        perfusion_text = tier.value if tier is not None else "not reported"
        self.logger.debug("submodel_evaluated", score=score, perfusion=perfusion_text)
        return BloodOxygenPerfusionResult(
            score=score,
            label=tier.value if tier is not None else efficiency.value,
            assessment=(
                f"Peripheral perfusion: {perfusion_text}, "
                f"oxygenation efficiency: {efficiency.value}, score: {score * 100:.0f}"
            ),
            correlation=self.correlation(reading),
            perfusion=tier,
            efficiency=EfficiencyResult(ratio=ratio, interpretation=efficiency),
            stability=MissingData(
                status=DataStatus.INSUFFICIENT_DATA,
                message="Stability needs multiple measurements",
            ),
        )


class TemperaturePulseSynergyModel(_EvaluatorBase):
    """Joint assessment of temperature and pulse; needs both."""

    name = "temperature_pulse_synergy"

    def evaluate(self, reading: VitalReading) -> TemperaturePulseSynergyResult | MissingData:
        temperature = classify_temperature(reading.temperature, self.thresholds)
        pulse = classify_pulse(reading.pulse, reading.pulse_source, self.thresholds)
        if isinstance(temperature, MissingData) or isinstance(pulse, MissingData):
            return MissingData(
                status=DataStatus.INSUFFICIENT_DATA,
                message="Insufficient temperature or pulse data for a synergy assessment",
                score=0.0,
            )

        temperature_score = TEMPERATURE_FIELD_SCORES[temperature.category]
        pulse_score = PULSE_FIELD_SCORES[pulse.category]

        risk = (
            risk_level_to_number(temperature.risk_level) + risk_level_to_number(pulse.risk_level)
        ) / 2
        if risk < 0.3:
            level = SynergyLevel.GOOD
        elif risk < 0.6:
            level = SynergyLevel.MODERATE
        else:
            level = SynergyLevel.POOR
        correlation = analyze_correlation(temperature, pulse)

        score = clamp(
            BASE_SCORE
            + 0.3 * (temperature_score - 0.5)
            + 0.3 * (pulse_score - 0.5)
            + SYNERGY_ADJUSTMENTS[level]
        )

        assessment = f"Temperature-pulse synergy: {_SYNERGY_WORDS[level]}"
        if correlation is Correlation.POSITIVE:
            assessment += ", temperature and pulse move together as expected physiologically"
        assessment += f", score: {score * 100:.0f}"

        self.logger.debug("submodel_evaluated", score=score, synergy=level.value)
        return TemperaturePulseSynergyResult(
            score=score,
            label=level.value,
            assessment=assessment,
            correlation=correlation,
            temperature=temperature,
            pulse=pulse,
            temperature_score=temperature_score,
            pulse_score=pulse_score,
            synergy=SynergyResult(score=risk, interpretation=level, correlation=correlation),
        )


def evaluate_sub_models(
    reading: VitalReading, thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> SubModelAssessments:
    """Run the three evaluators over one canonical reading."""
    return SubModelAssessments(
        blood_pressure_stability=BloodPressureStabilityModel(thresholds).evaluate(reading),
        blood_oxygen_perfusion=BloodOxygenPerfusionModel(thresholds).evaluate(reading),
        temperature_pulse_synergy=TemperaturePulseSynergyModel(thresholds).evaluate(reading),
    )
