"""
Derivation engine: cross-vital insights from pairs of readings.

Every rule is evaluated independently; several can fire on one reading and
none firing yields an empty insight list. Confidence is always "moderate".
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from healthdash.domain.models import DerivedInsight, DerivedInsights, InsightType, VitalReading

logger = structlog.get_logger(__name__)

GUIDE = "Clinical Interpretation Guide for Basic Vital Signs"

DERIVATION_METHODS = [
    "Circulatory state derived from blood pressure and pulse",
    "Respiratory state derived from blood oxygen and perfusion index",
    "Metabolic state derived from body temperature and pulse",
]

DERIVATION_LIMITATIONS = [
    "Derived results rest on limited data and have limited accuracy",
    "Derived results need validation against more clinical data",
    "Laboratory tests such as blood glucose and lipids are recommended",
    "Derivations reflect statistical association and do not replace clinical diagnosis",
]


@dataclass(frozen=True)
class DerivationRule:
    """A predicate over the canonical reading plus the insight it emits."""

    name: str
    type: InsightType
    condition: Callable[[VitalReading], bool]
    insight: str
    recommendation: str
    reference: str
    derivation: str

    def apply(self, reading: VitalReading) -> DerivedInsight | None:
        if not self.condition(reading):
            return None
        return DerivedInsight(
            type=self.type,
            rule=self.name,
            insight=self.insight,
            recommendation=self.recommendation,
            reference=self.reference,
            derivation=self.derivation,
        )


def _circulation_load(reading: VitalReading) -> bool:
    bp = reading.blood_pressure
    pulse = reading.pulse
    return bp is not None and pulse is not None and bp.systolic >= 140 and pulse > 100


def _weak_circulation(reading: VitalReading) -> bool:
    bp = reading.blood_pressure
    pulse = reading.pulse
    return bp is not None and pulse is not None and bp.systolic < 100 and pulse < 60


def _respiratory_perfusion(reading: VitalReading) -> bool:
    spo2 = reading.spo2
    return spo2 is not None and spo2.pi is not None and spo2.percent < 95 and spo2.pi < 1.0


def _metabolic(reading: VitalReading) -> bool:
    temperature = reading.temperature
    return (
        temperature is not None
        and reading.pulse is not None
        and temperature.value > 37.5
        and reading.pulse > 100
    )


DEFAULT_RULES: tuple[DerivationRule, ...] = (
    DerivationRule(
        name="circulation_load",
        type=InsightType.CIRCULATION,
        condition=_circulation_load,
        insight="Elevated blood pressure with a fast pulse suggests increased circulatory load",
        recommendation="Monitor blood glucose to rule out a metabolic abnormality",
        reference=f"{GUIDE}, chapter 3",
        derivation=(
            "Without glucose data, elevated blood pressure with a fast pulse is used "
            "as an indirect marker of metabolic risk"
        ),
    ),
    DerivationRule(
        name="weak_circulation",
        type=InsightType.CIRCULATION,
        condition=_weak_circulation,
        insight="Low blood pressure with a slow pulse suggests weakened circulatory function",
        recommendation="Evaluate cardiac function and fluid status",
        reference=f"{GUIDE}, chapter 3",
        derivation="Circulatory state derived from concurrent blood pressure and pulse changes",
    ),
    DerivationRule(
        name="respiratory_perfusion",
        type=InsightType.RESPIRATORY,
        condition=_respiratory_perfusion,
        insight=(
            "Low oxygen saturation with a low perfusion index suggests a respiratory "
            "or circulatory problem"
        ),
        recommendation="Evaluate respiratory and lung function",
        reference=f"{GUIDE}, chapter 4",
        derivation="Peripheral circulation assessed from SpO2 against the perfusion index",
    ),
    DerivationRule(
        name="metabolic",
        type=InsightType.METABOLIC,
        condition=_metabolic,
        insight="Raised body temperature with a fast pulse suggests an increased metabolic rate",
        recommendation="Monitor inflammatory markers and metabolic parameters",
        reference=f"{GUIDE}, chapter 5",
        derivation="Metabolic state derived from concurrent temperature and pulse changes",
    ),
)


class DerivationEngine:
    """Applies every rule to a reading; rules are injectable for alternative guidelines."""

    def __init__(self, rules: tuple[DerivationRule, ...] = DEFAULT_RULES) -> None:
        self.rules = rules
        self.logger = logger.bind(component="derivation_engine")

    def derive(self, reading: VitalReading) -> DerivedInsights:
        insights = [
            insight for rule in self.rules if (insight := rule.apply(reading)) is not None
        ]
        if insights:
            self.logger.info("insights_derived", rules=[i.rule for i in insights])
        return DerivedInsights(
            insights=insights,
            derivation_methods=list(DERIVATION_METHODS),
            limitations=list(DERIVATION_LIMITATIONS),
        )
