"""
Health assessment orchestrator.

Key architectural decisions:
- Single pass: normalize -> classify -> sub-models (+ derivation) -> composite -> report
- Stateless: weights and thresholds are injected, nothing survives between calls
- Partial input is normal: absent vitals become MissingData sentinels, never errors
- Malformed input aborts the whole assessment with one StructuralError
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import structlog

from healthdash.domain.errors import StructuralError
from healthdash.domain.models import (
    AssessmentReport,
    ScoringWeights,
    TransparencyReport,
    VitalReading,
)
from healthdash.domain.thresholds import DEFAULT_THRESHOLDS, ThresholdTable
from healthdash.services.classifiers import assess_basic_vital_signs
from healthdash.services.derivation import DerivationEngine
from healthdash.services.normalization import normalize_reading
from healthdash.services.scoring import (
    CompositeScorer,
    build_recommendations,
    data_limitations,
    present_results,
    stratify_risk,
)
from healthdash.services.submodels import evaluate_sub_models

logger = structlog.get_logger(__name__)

TRANSPARENCY = TransparencyReport(
    data_sources=[
        "Blood pressure: systolic, diastolic, pulse",
        "Blood oxygen: saturation, perfusion index, pulse rate",
        "Body temperature: value and measurement site",
    ],
    assessment_methods=[
        "Blood pressure graded against the WHO/ISH 2021 classification",
        "Blood oxygen graded against clinical saturation standards",
        "Body temperature graded against site-specific normal ranges",
        "Pulse graded against the adult resting heart-rate range",
    ],
    derivation_logic=[
        "Circulatory derivation: blood pressure and pulse",
        "Respiratory derivation: blood oxygen and perfusion index",
        "Metabolic derivation: body temperature and pulse",
    ],
    limitations=[
        "Based on four core vital signs; data dimensions are limited",
        "Derived assessments need clinical validation",
        "Missing blood glucose, lipid, exercise and diet data",
        "A single measurement cannot reflect long-term trends",
    ],
    references=[
        "WHO/ISH 2021 hypertension management guideline",
        "Clinical Interpretation Guide for Basic Vital Signs",
        "Clinical guideline for pulse oximetry monitoring",
    ],
)


class HealthAssessmentService:
    """
    Builds a complete assessment report from one vital-sign reading.

    Safe to share between threads and requests: the service holds only its
    immutable configuration.
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        thresholds: ThresholdTable = DEFAULT_THRESHOLDS,
        derivation_engine: DerivationEngine | None = None,
    ) -> None:
        self.weights = weights or ScoringWeights()
        self.thresholds = thresholds
        self.scorer = CompositeScorer(self.weights)
        self.derivation_engine = derivation_engine or DerivationEngine()
        self.logger = logger.bind(component="health_assessment_service")

    def assess(
        self,
        raw: Mapping[str, Any] | VitalReading,
        generated_at: datetime | None = None,
    ) -> AssessmentReport:
        """
        Assess one reading.

        Args:
            raw: Device record mapping or canonical reading.
            generated_at: Report timestamp; defaults to now (UTC).

        Raises:
            StructuralError: The reading is malformed, or the pipeline failed
                unexpectedly (chained to the original exception).
        """
        try:
            reading = normalize_reading(raw)
            vital_signs = assess_basic_vital_signs(reading, self.thresholds)
            sub_models = evaluate_sub_models(reading, self.thresholds)
            insights = self.derivation_engine.derive(reading)
            composite = self.scorer.score(sub_models)
            stratification = stratify_risk(composite)

            report = AssessmentReport(
                generated_at=generated_at or datetime.now(UTC),
                composite_score=composite,
                risk_stratification=stratification,
                basic_vital_signs=vital_signs,
                sub_model_assessments=sub_models,
                derived_insights=insights,
                personalized_recommendations=build_recommendations(
                    reading, vital_signs, stratification
                ),
                data_limitations=data_limitations(reading),
                transparency=TRANSPARENCY,
                parameter_settings=self.parameter_settings(),
            )
        except StructuralError as e:
            self.logger.warning("assessment_rejected", error=str(e))
            raise
        except Exception as e:
            self.logger.exception("assessment_failed", error=str(e))
            raise StructuralError(f"Health assessment failed: {e}") from e

        self.logger.info(
            "assessment_completed",
            score=composite.score,
            grade=composite.grade.value,
            risk_category=stratification.category.value,
            submodels_present=len(present_results(sub_models)),
            insights=len(insights.insights),
        )
        return report

    def parameter_settings(self) -> dict[str, Any]:
        """Weights and thresholds in effect, as the dashboard's settings panel shows them."""
        return {
            "weights": self.weights.model_dump(mode="json", by_alias=True),
            "thresholds": self.thresholds.model_dump(mode="json", by_alias=True),
        }
