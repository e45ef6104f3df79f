"""
Domain models for vital-sign assessment.

These models represent the core health concepts and are framework-agnostic.
They use Pydantic for validation but could be swapped to dataclasses if needed.
Every model is frozen: an assessment builds fresh values per call and never
mutates them afterwards. JSON field names are camelCase to match the dashboard.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class DomainModel(BaseModel):
    """Immutable base with camelCase aliases for the browser-facing JSON."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class RiskLevel(str, Enum):
    """Per-vital-sign risk tiers, ordered from least to most severe."""

    LOW = "low"
    LOW_MODERATE = "low_moderate"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


class BloodPressureCategory(str, Enum):
    NORMAL = "normal"
    HIGH_NORMAL = "high_normal"
    STAGE1_HYPERTENSION = "stage1_hypertension"
    STAGE2_HYPERTENSION = "stage2_hypertension"
    STAGE3_HYPERTENSION = "stage3_hypertension"


class BloodOxygenCategory(str, Enum):
    NORMAL = "normal"
    MILD_HYPOXEMIA = "mild_hypoxemia"
    SEVERE_HYPOXEMIA = "severe_hypoxemia"


class TemperatureCategory(str, Enum):
    NORMAL = "normal"
    LOW_NORMAL = "low_normal"
    FEVER = "fever"
    HIGH_FEVER = "high_fever"
    HYPOTHERMIA = "hypothermia"


class PulseCategory(str, Enum):
    NORMAL = "normal"
    BRADYCARDIA = "bradycardia"
    TACHYCARDIA = "tachycardia"
    SEVERE_TACHYCARDIA = "severe_tachycardia"


class MeasurementSite(str, Enum):
    """Body site a temperature was taken at; each has its own normal range."""

    AXILLARY = "axillary"
    ORAL = "oral"
    RECTAL = "rectal"
    EAR = "ear"
    FOREHEAD = "forehead"


class PulseSource(str, Enum):
    """Which device the resolved pulse came from."""

    BLOOD_PRESSURE_CUFF = "blood_pressure_cuff"
    OXIMETER = "oximeter"
    HEART_RATE = "heart_rate"


class DataStatus(str, Enum):
    NO_DATA = "no_data"
    INSUFFICIENT_DATA = "insufficient_data"


class VariabilityLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class StabilityLevel(str, Enum):
    STABLE = "stable"
    MODERATE = "moderate"
    UNSTABLE = "unstable"


class PerfusionTier(str, Enum):
    POOR = "poor"
    FAIR = "fair"
    GOOD = "good"
    EXCELLENT = "excellent"


class EfficiencyLevel(str, Enum):
    POOR = "poor"
    GOOD = "good"
    EXCELLENT = "excellent"


class SynergyLevel(str, Enum):
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"


class Correlation(str, Enum):
    POSITIVE = "positive_correlation"
    NONE = "no_significant_correlation"


class Grade(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class RiskCategory(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


class FollowUpInterval(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class InsightType(str, Enum):
    CIRCULATION = "circulation"
    RESPIRATORY = "respiratory"
    METABOLIC = "metabolic"


# ---------------------------------------------------------------------------
# Input: one canonical reading, produced by services.normalization
# ---------------------------------------------------------------------------


class BloodPressureReading(DomainModel):
    """Cuff measurement in mmHg, with the cuff's own pulse when it reports one."""

    systolic: float = Field(gt=0.0)
    diastolic: float = Field(gt=0.0)
    pulse: float | None = Field(default=None, ge=0.0)


class SpO2Reading(DomainModel):
    """Pulse-oximeter measurement: saturation %, perfusion index %, pulse rate."""

    percent: float = Field(ge=0.0, le=100.0)
    pi: float | None = Field(default=None, ge=0.0)
    pr: float | None = Field(default=None, ge=0.0)


class TemperatureReading(DomainModel):
    value: float
    location: MeasurementSite = MeasurementSite.AXILLARY


class VitalReading(DomainModel):
    """
    Canonical reading fed to the classifiers.

    Any sub-record may be absent. ``pulse`` is resolved once at the input
    boundary (cuff before oximeter) so classifiers never probe device fields.
    """

    blood_pressure: BloodPressureReading | None = None
    spo2: SpO2Reading | None = Field(default=None, alias="spO2")
    temperature: TemperatureReading | None = None
    pulse: float | None = Field(default=None, ge=0.0)
    pulse_source: PulseSource | None = None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class MissingData(DomainModel):
    """Sentinel for an absent vital sign; excluded from scoring, never read as "low"."""

    status: DataStatus = DataStatus.NO_DATA
    message: str
    score: float | None = None


class TemperatureRange(DomainModel):
    min: float
    max: float

    @model_validator(mode="after")
    def min_below_max(self) -> "TemperatureRange":
        if self.min >= self.max:
            raise ValueError(f"temperature range min {self.min} must be below max {self.max}")
        return self


class VariabilityResult(DomainModel):
    coefficient: float = Field(description="|systolic - diastolic| / mean * 100")
    interpretation: VariabilityLevel


class ClassificationResult(DomainModel):
    category: str
    risk_level: RiskLevel
    score: float = Field(ge=0.0, le=1.0, description="Per-vital score, higher is healthier")
    values: dict[str, float | str | None] = Field(default_factory=dict)
    assessment: str


class BloodPressureClassification(ClassificationResult):
    category: BloodPressureCategory
    variability: VariabilityResult


class BloodOxygenClassification(ClassificationResult):
    category: BloodOxygenCategory
    perfusion: PerfusionTier | None = None


class TemperatureClassification(ClassificationResult):
    category: TemperatureCategory
    location: MeasurementSite
    normal_range: TemperatureRange


class PulseClassification(ClassificationResult):
    category: PulseCategory
    source: PulseSource | None = None


class BasicVitalSigns(DomainModel):
    blood_pressure: BloodPressureClassification | MissingData
    blood_oxygen: BloodOxygenClassification | MissingData
    temperature: TemperatureClassification | MissingData
    pulse: PulseClassification | MissingData


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class SubModelResult(DomainModel):
    score: float = Field(ge=0.0, le=1.0)
    label: str = Field(description="Qualitative label for the score")
    assessment: str
    correlation: Correlation = Correlation.NONE


class BloodPressureStabilityResult(SubModelResult):
    stability: StabilityLevel
    variability: VariabilityResult
    trend: MissingData


class EfficiencyResult(DomainModel):
    ratio: float
    interpretation: EfficiencyLevel


class BloodOxygenPerfusionResult(SubModelResult):
    perfusion: PerfusionTier | None
    efficiency: EfficiencyResult
    stability: MissingData


class SynergyResult(DomainModel):
    score: float = Field(description="Mean risk number of temperature and pulse")
    interpretation: SynergyLevel
    correlation: Correlation


class TemperaturePulseSynergyResult(SubModelResult):
    temperature: TemperatureClassification
    pulse: PulseClassification
    temperature_score: float
    pulse_score: float
    synergy: SynergyResult


class SubModelAssessments(DomainModel):
    blood_pressure_stability: BloodPressureStabilityResult | MissingData
    blood_oxygen_perfusion: BloodOxygenPerfusionResult | MissingData
    temperature_pulse_synergy: TemperaturePulseSynergyResult | MissingData


# ---------------------------------------------------------------------------
# Composite score and stratification
# ---------------------------------------------------------------------------


class ScoringWeights(DomainModel):
    """Weight of each sub-model in the composite; overridable per service or via env."""

    blood_pressure_stability: float = Field(default=0.35, ge=0.0)
    blood_oxygen_perfusion: float = Field(default=0.25, ge=0.0)
    temperature_pulse_synergy: float = Field(default=0.40, ge=0.0)

    @model_validator(mode="after")
    def at_least_one_positive(self) -> "ScoringWeights":
        if self.total() <= 0.0:
            raise ValueError("at least one scoring weight must be positive")
        return self

    def total(self) -> float:
        return (
            self.blood_pressure_stability
            + self.blood_oxygen_perfusion
            + self.temperature_pulse_synergy
        )


class CompositeScore(DomainModel):
    score: float = Field(ge=0.0, le=1.0)
    grade: Grade
    confidence: float = Field(ge=0.0, le=100.0)
    weights: ScoringWeights
    contributing_weight: float = Field(ge=0.0)
    breakdown: dict[str, float | None]


class RiskStratification(DomainModel):
    category: RiskCategory
    level: Grade
    score: float
    follow_up_interval: FollowUpInterval
    recommendations: list[str]


class DerivedInsight(DomainModel):
    type: InsightType
    rule: str
    insight: str
    confidence: Literal["moderate"] = "moderate"
    recommendation: str
    reference: str
    derivation: str


class DerivedInsights(DomainModel):
    insights: list[DerivedInsight]
    derivation_methods: list[str]
    limitations: list[str]


class PersonalizedRecommendations(DomainModel):
    immediate: list[str] = Field(default_factory=list)
    lifestyle: list[str] = Field(default_factory=list)
    monitoring: list[str] = Field(default_factory=list)
    medical: list[str] = Field(default_factory=list)
    data_collection: list[str] = Field(default_factory=list)


class TransparencyReport(DomainModel):
    data_sources: list[str]
    assessment_methods: list[str]
    derivation_logic: list[str]
    limitations: list[str]
    references: list[str]


class AssessmentReport(DomainModel):
    """Everything one assessment call produces, assembled by the orchestrator."""

    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    composite_score: CompositeScore
    risk_stratification: RiskStratification
    basic_vital_signs: BasicVitalSigns
    sub_model_assessments: SubModelAssessments
    derived_insights: DerivedInsights
    personalized_recommendations: PersonalizedRecommendations
    data_limitations: list[str]
    transparency: TransparencyReport
    parameter_settings: dict[str, Any]
