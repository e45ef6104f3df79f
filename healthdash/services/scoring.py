"""
Composite scoring, risk stratification and recommendations.

Only sub-models that actually produced a score take part in the composite;
an absent sub-model is dropped from both numerator and denominator rather
than counted as zero.
"""

import structlog

from healthdash.domain.models import (
    BasicVitalSigns,
    BloodOxygenCategory,
    BloodPressureCategory,
    CompositeScore,
    FollowUpInterval,
    Grade,
    MissingData,
    PersonalizedRecommendations,
    RiskCategory,
    RiskStratification,
    ScoringWeights,
    SubModelAssessments,
    SubModelResult,
    TemperatureCategory,
    VitalReading,
)

logger = structlog.get_logger(__name__)

RISK_RECOMMENDATIONS: dict[RiskCategory, list[str]] = {
    RiskCategory.VERY_HIGH: [
        "Seek medical care immediately",
        "Monitor vital signs closely",
        "Avoid strenuous activity",
    ],
    RiskCategory.HIGH: [
        "Consult a doctor",
        "Monitor more frequently",
        "Adjust lifestyle",
    ],
    RiskCategory.MODERATE: [
        "Monitor regularly",
        "Improve daily habits",
        "Take preventive measures",
    ],
    RiskCategory.LOW: [
        "Maintain healthy habits",
        "Have regular checkups",
        "Keep monitoring",
    ],
}

FOLLOW_UP_INTERVALS: dict[RiskCategory, FollowUpInterval] = {
    RiskCategory.VERY_HIGH: FollowUpInterval.DAILY,
    RiskCategory.HIGH: FollowUpInterval.WEEKLY,
    RiskCategory.MODERATE: FollowUpInterval.MONTHLY,
    RiskCategory.LOW: FollowUpInterval.QUARTERLY,
}

BREAKDOWN_KEYS = {
    "blood_pressure_stability": "bloodPressureStability",
    "blood_oxygen_perfusion": "bloodOxygenPerfusion",
    "temperature_pulse_synergy": "temperaturePulseSynergy",
}

MISSING_DATA_BOILERPLATE = "Missing blood glucose, lipid, exercise and diet data"
DERIVATION_BOILERPLATE = (
    "Part of the assessment relies on logical derivation; supplement complete data"
)


def score_to_grade(score: float) -> Grade:
    if score >= 0.9:
        return Grade.EXCELLENT
    if score >= 0.8:
        return Grade.GOOD
    if score >= 0.6:
        return Grade.FAIR
    if score >= 0.4:
        return Grade.POOR
    return Grade.CRITICAL


class CompositeScorer:
    """Weighted mean of the sub-model scores that are present."""

    def __init__(self, weights: ScoringWeights | None = None) -> None:
        self.weights = weights or ScoringWeights()
        self.logger = logger.bind(component="composite_scorer")

    def score(self, assessments: SubModelAssessments) -> CompositeScore:
        total_score = 0.0
        total_weight = 0.0
        breakdown: dict[str, float | None] = {}

        for field, key in BREAKDOWN_KEYS.items():
            result = getattr(assessments, field)
            if isinstance(result, MissingData):
                breakdown[key] = None
                continue
            weight: float = getattr(self.weights, field)
            total_score += result.score * weight
            total_weight += weight
            breakdown[key] = result.score

        composite = total_score / total_weight if total_weight > 0 else 0.0
        composite = max(0.0, min(1.0, composite))

        return CompositeScore(
            score=round(composite, 2),
            grade=score_to_grade(composite),
            confidence=min(100.0, total_weight * 100),
            weights=self.weights,
            contributing_weight=total_weight,
            breakdown=breakdown,
        )


def stratify_risk(composite: CompositeScore) -> RiskStratification:
    score, grade = composite.score, composite.grade
    if grade is Grade.CRITICAL or score < 0.4:
        category = RiskCategory.VERY_HIGH
    elif grade is Grade.POOR or score < 0.6:
        category = RiskCategory.HIGH
    elif grade is Grade.FAIR or score < 0.8:
        category = RiskCategory.MODERATE
    else:
        category = RiskCategory.LOW

    return RiskStratification(
        category=category,
        level=grade,
        score=score,
        follow_up_interval=FOLLOW_UP_INTERVALS[category],
        recommendations=list(RISK_RECOMMENDATIONS[category]),
    )


def build_recommendations(
    reading: VitalReading,
    vital_signs: BasicVitalSigns,
    stratification: RiskStratification,
) -> PersonalizedRecommendations:
    """Risk-tier actions plus condition-specific lifestyle, monitoring and medical advice."""
    lifestyle: list[str] = []
    monitoring: list[str] = []
    medical: list[str] = []

    bp = reading.blood_pressure
    if bp is not None and (bp.systolic >= 140 or bp.diastolic >= 90):
        lifestyle += [
            "Low-salt diet (no more than 5 g of salt per day)",
            "Regular aerobic exercise (150 minutes per week)",
            "Control body weight and avoid obesity",
        ]
        monitoring.append("Measure blood pressure every morning and evening")

    spo2 = reading.spo2
    if spo2 is not None and spo2.percent < 95:
        lifestyle += [
            "Improve indoor ventilation",
            "Avoid smoking and second-hand smoke",
            "Moderate aerobic exercise",
        ]
        monitoring.append("Monitor blood oxygen saturation daily")

    bp_result = vital_signs.blood_pressure
    if not isinstance(bp_result, MissingData) and bp_result.category in {
        BloodPressureCategory.STAGE2_HYPERTENSION,
        BloodPressureCategory.STAGE3_HYPERTENSION,
    }:
        medical.append("See a doctor about antihypertensive treatment")
    oxygen_result = vital_signs.blood_oxygen
    if (
        not isinstance(oxygen_result, MissingData)
        and oxygen_result.category is BloodOxygenCategory.SEVERE_HYPOXEMIA
    ):
        medical.append("Seek medical evaluation for low blood oxygen")
    temperature_result = vital_signs.temperature
    if (
        not isinstance(temperature_result, MissingData)
        and temperature_result.category is TemperatureCategory.HIGH_FEVER
    ):
        medical.append("Seek medical care for high fever")

    return PersonalizedRecommendations(
        immediate=list(stratification.recommendations),
        lifestyle=lifestyle,
        monitoring=monitoring,
        medical=medical,
        data_collection=data_collection_recommendations(reading),
    )


def data_collection_recommendations(reading: VitalReading) -> list[str]:
    recommendations: list[str] = []
    if reading.blood_pressure is None:
        recommendations.append("Add a blood pressure monitor")
    if reading.spo2 is None:
        recommendations.append("Add a pulse oximeter")
    recommendations += [
        "Add blood glucose measurements",
        "Add an exercise log",
        "Add a diet log",
    ]
    return recommendations


def data_limitations(reading: VitalReading) -> list[str]:
    limitations: list[str] = []
    if reading.blood_pressure is None:
        limitations.append("Missing blood pressure data")
    if reading.spo2 is None:
        limitations.append("Missing blood oxygen data")
    if reading.temperature is None:
        limitations.append("Missing body temperature data")
    if reading.pulse is None:
        limitations.append("Missing pulse data")
    limitations += [MISSING_DATA_BOILERPLATE, DERIVATION_BOILERPLATE]
    return limitations


def present_results(assessments: SubModelAssessments) -> list[SubModelResult]:
    """Sub-model results that contribute to the composite."""
    return [
        result
        for result in (
            assessments.blood_pressure_stability,
            assessments.blood_oxygen_perfusion,
            assessments.temperature_pulse_synergy,
        )
        if not isinstance(result, MissingData)
    ]
