"""
Reference threshold tables for the vital-sign classifiers.

Pure data, no behavior. ``ThresholdTable`` is injectable so a caller can run
the same classifiers against a different guideline without copying code.
"""

from pydantic import Field, model_validator

from healthdash.domain.models import DomainModel, MeasurementSite, RiskLevel, TemperatureRange


class BloodPressureStage(DomainModel):
    """Lower bound of a stage: either value at or above it reaches the stage."""

    systolic: float = Field(gt=0.0)
    diastolic: float = Field(gt=0.0)


class BloodPressureThresholds(DomainModel):
    # WHO/ISH 2021 grading
    high_normal: BloodPressureStage = BloodPressureStage(systolic=130, diastolic=85)
    stage1: BloodPressureStage = BloodPressureStage(systolic=140, diastolic=90)
    stage2: BloodPressureStage = BloodPressureStage(systolic=160, diastolic=100)
    stage3: BloodPressureStage = BloodPressureStage(systolic=180, diastolic=110)

    @model_validator(mode="after")
    def stages_ascend(self) -> "BloodPressureThresholds":
        stages = [self.high_normal, self.stage1, self.stage2, self.stage3]
        for lower, upper in zip(stages, stages[1:]):
            if lower.systolic >= upper.systolic or lower.diastolic >= upper.diastolic:
                raise ValueError("blood pressure stages must be strictly ascending")
        return self


class BloodOxygenThresholds(DomainModel):
    severe_below: float = Field(default=90.0, ge=0.0, le=100.0)
    mild_below: float = Field(default=95.0, ge=0.0, le=100.0)

    @model_validator(mode="after")
    def severe_below_mild(self) -> "BloodOxygenThresholds":
        if self.severe_below > self.mild_below:
            raise ValueError("severe hypoxemia cutoff must not exceed the mild cutoff")
        return self


def _default_temperature_ranges() -> dict[MeasurementSite, TemperatureRange]:
    return {
        MeasurementSite.AXILLARY: TemperatureRange(min=36.0, max=37.2),
        MeasurementSite.ORAL: TemperatureRange(min=36.3, max=37.2),
        MeasurementSite.RECTAL: TemperatureRange(min=36.6, max=37.6),
        MeasurementSite.EAR: TemperatureRange(min=36.1, max=37.1),
        MeasurementSite.FOREHEAD: TemperatureRange(min=35.8, max=37.0),
    }


class TemperatureThresholds(DomainModel):
    ranges: dict[MeasurementSite, TemperatureRange] = Field(
        default_factory=_default_temperature_ranges
    )
    # Distance beyond the normal range that separates fever from high fever
    # (and low-normal from hypothermia)
    margin: float = Field(default=0.5, gt=0.0)
    default_site: MeasurementSite = MeasurementSite.AXILLARY

    @model_validator(mode="after")
    def default_site_has_range(self) -> "TemperatureThresholds":
        if self.default_site not in self.ranges:
            raise ValueError(f"no normal range configured for default site {self.default_site}")
        return self

    def range_for(self, site: MeasurementSite | None) -> TemperatureRange:
        """Normal range for the site, falling back to the default site."""
        if site in self.ranges:
            return self.ranges[site]
        return self.ranges[self.default_site]


class PulseThresholds(DomainModel):
    bradycardia_below: float = Field(default=50.0, gt=0.0)
    tachycardia_above: float = Field(default=100.0, gt=0.0)
    severe_tachycardia_above: float = Field(default=120.0, gt=0.0)

    @model_validator(mode="after")
    def ordered(self) -> "PulseThresholds":
        if not self.bradycardia_below < self.tachycardia_above < self.severe_tachycardia_above:
            raise ValueError("pulse thresholds must be strictly ascending")
        return self


class ThresholdTable(DomainModel):
    blood_pressure: BloodPressureThresholds = Field(default_factory=BloodPressureThresholds)
    blood_oxygen: BloodOxygenThresholds = Field(default_factory=BloodOxygenThresholds)
    temperature: TemperatureThresholds = Field(default_factory=TemperatureThresholds)
    pulse: PulseThresholds = Field(default_factory=PulseThresholds)


DEFAULT_THRESHOLDS = ThresholdTable()

# Per-vital score carried on each classification: healthier tiers score higher.
RISK_LEVEL_SCORES: dict[RiskLevel, float] = {
    RiskLevel.LOW: 1.0,
    RiskLevel.LOW_MODERATE: 0.8,
    RiskLevel.MODERATE: 0.6,
    RiskLevel.HIGH: 0.4,
    RiskLevel.VERY_HIGH: 0.2,
}

# Synergy-facing risk number: riskier tiers score higher.
RISK_LEVEL_NUMBERS: dict[RiskLevel, float] = {
    RiskLevel.LOW: 0.2,
    RiskLevel.LOW_MODERATE: 0.4,
    RiskLevel.MODERATE: 0.6,
    RiskLevel.HIGH: 0.8,
    RiskLevel.VERY_HIGH: 1.0,
}


def risk_level_to_score(risk_level: RiskLevel) -> float:
    return RISK_LEVEL_SCORES[risk_level]


def risk_level_to_number(risk_level: RiskLevel) -> float:
    return RISK_LEVEL_NUMBERS[risk_level]
