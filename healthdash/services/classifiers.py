"""
Vital-sign classifiers.

Each classifier maps one canonical sub-record onto a category and a risk
tier using an injectable ``ThresholdTable``. An absent sub-record yields a
``MissingData`` sentinel so the caller excludes it from scoring instead of
reading it as low risk.
"""

from healthdash.domain.models import (
    BasicVitalSigns,
    BloodOxygenCategory,
    BloodOxygenClassification,
    BloodPressureCategory,
    BloodPressureClassification,
    BloodPressureReading,
    MissingData,
    PerfusionTier,
    PulseCategory,
    PulseClassification,
    PulseSource,
    RiskLevel,
    SpO2Reading,
    TemperatureCategory,
    TemperatureClassification,
    TemperatureReading,
    VariabilityLevel,
    VariabilityResult,
    VitalReading,
)
from healthdash.domain.thresholds import (
    DEFAULT_THRESHOLDS,
    BloodPressureStage,
    ThresholdTable,
    risk_level_to_score,
)

_BLOOD_PRESSURE_ASSESSMENTS = {
    BloodPressureCategory.STAGE3_HYPERTENSION: "Severe hypertension, immediate medical care needed",
    BloodPressureCategory.STAGE2_HYPERTENSION: "Stage 2 hypertension, medical treatment advised",
    BloodPressureCategory.STAGE1_HYPERTENSION: "Stage 1 hypertension, lifestyle changes advised",
    BloodPressureCategory.HIGH_NORMAL: "High-normal blood pressure, preventive measures advised",
    BloodPressureCategory.NORMAL: "Blood pressure normal",
}

_BLOOD_OXYGEN_ASSESSMENTS = {
    BloodOxygenCategory.SEVERE_HYPOXEMIA: "Severe hypoxemia, immediate medical care needed",
    BloodOxygenCategory.MILD_HYPOXEMIA: "Mild hypoxemia, monitor and improve oxygenation",
    BloodOxygenCategory.NORMAL: "Blood oxygen saturation normal",
}

_TEMPERATURE_ASSESSMENTS = {
    TemperatureCategory.HIGH_FEVER: "High fever, cooling measures needed",
    TemperatureCategory.FEVER: "Fever, monitor and rest",
    TemperatureCategory.NORMAL: "Body temperature normal",
    TemperatureCategory.LOW_NORMAL: "Body temperature on the low side, keep warm",
    TemperatureCategory.HYPOTHERMIA: "Hypothermia, warming measures needed",
}

_PULSE_ASSESSMENTS = {
    PulseCategory.SEVERE_TACHYCARDIA: "Severe tachycardia, medical evaluation needed",
    PulseCategory.TACHYCARDIA: "Tachycardia, monitoring advised",
    PulseCategory.NORMAL: "Pulse normal",
    PulseCategory.BRADYCARDIA: "Bradycardia, monitoring advised",
}


def variability(systolic: float, diastolic: float) -> VariabilityResult:
    """Pulse-pressure spread as a percentage of mean pressure."""
    mean = (systolic + diastolic) / 2
    coefficient = abs(systolic - diastolic) / mean * 100
    if coefficient < 10:
        level = VariabilityLevel.LOW
    elif coefficient < 20:
        level = VariabilityLevel.MODERATE
    else:
        level = VariabilityLevel.HIGH
    return VariabilityResult(coefficient=coefficient, interpretation=level)


def perfusion_tier(pi: float | None) -> PerfusionTier | None:
    """Tier of the perfusion index; None when the oximeter did not report one."""
    if pi is None:
        return None
    if pi < 0.5:
        return PerfusionTier.POOR
    if pi < 1.0:
        return PerfusionTier.FAIR
    if pi < 2.0:
        return PerfusionTier.GOOD
    return PerfusionTier.EXCELLENT


def classify_blood_pressure(
    reading: BloodPressureReading | None, thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> BloodPressureClassification | MissingData:
    if reading is None:
        return MissingData(message="No blood pressure data")

    table = thresholds.blood_pressure
    systolic, diastolic = reading.systolic, reading.diastolic

    def reaches(stage: BloodPressureStage) -> bool:
        # Either value crossing the stage boundary elevates the category
        return systolic >= stage.systolic or diastolic >= stage.diastolic

    if reaches(table.stage3):
        category, risk = BloodPressureCategory.STAGE3_HYPERTENSION, RiskLevel.VERY_HIGH
    elif reaches(table.stage2):
        category, risk = BloodPressureCategory.STAGE2_HYPERTENSION, RiskLevel.HIGH
    elif reaches(table.stage1):
        category, risk = BloodPressureCategory.STAGE1_HYPERTENSION, RiskLevel.MODERATE
    elif reaches(table.high_normal):
        category, risk = BloodPressureCategory.HIGH_NORMAL, RiskLevel.LOW_MODERATE
    else:
        category, risk = BloodPressureCategory.NORMAL, RiskLevel.LOW

    return BloodPressureClassification(
        category=category,
        risk_level=risk,
        score=risk_level_to_score(risk),
        values={"systolic": systolic, "diastolic": diastolic, "pulse": reading.pulse},
        assessment=_BLOOD_PRESSURE_ASSESSMENTS[category],
        variability=variability(systolic, diastolic),
    )


def classify_blood_oxygen(
    reading: SpO2Reading | None, thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> BloodOxygenClassification | MissingData:
    if reading is None:
        return MissingData(message="No blood oxygen data")

    table = thresholds.blood_oxygen
    if reading.percent < table.severe_below:
        category, risk = BloodOxygenCategory.SEVERE_HYPOXEMIA, RiskLevel.VERY_HIGH
    elif reading.percent < table.mild_below:
        category, risk = BloodOxygenCategory.MILD_HYPOXEMIA, RiskLevel.MODERATE
    else:
        category, risk = BloodOxygenCategory.NORMAL, RiskLevel.LOW

    tier = perfusion_tier(reading.pi)
    assessment = _BLOOD_OXYGEN_ASSESSMENTS[category]
    if tier is PerfusionTier.POOR:
        assessment += "; peripheral perfusion is poor"

    return BloodOxygenClassification(
        category=category,
        risk_level=risk,
        score=risk_level_to_score(risk),
        values={"percent": reading.percent, "pi": reading.pi, "pr": reading.pr},
        assessment=assessment,
        perfusion=tier,
    )


def classify_temperature(
    reading: TemperatureReading | None, thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> TemperatureClassification | MissingData:
    """
    Classify against the normal range of the measurement site.

    Comparisons are strict: a value equal to ``max`` is normal, a value equal
    to ``max + margin`` is fever rather than high fever.
    """
    if reading is None:
        return MissingData(message="No body temperature data")

    table = thresholds.temperature
    normal_range = table.range_for(reading.location)
    value = reading.value

    if value > normal_range.max + table.margin:
        category, risk = TemperatureCategory.HIGH_FEVER, RiskLevel.HIGH
    elif value > normal_range.max:
        category, risk = TemperatureCategory.FEVER, RiskLevel.MODERATE
    elif value < normal_range.min - table.margin:
        category, risk = TemperatureCategory.HYPOTHERMIA, RiskLevel.HIGH
    elif value < normal_range.min:
        category, risk = TemperatureCategory.LOW_NORMAL, RiskLevel.LOW_MODERATE
    else:
        category, risk = TemperatureCategory.NORMAL, RiskLevel.LOW

    return TemperatureClassification(
        category=category,
        risk_level=risk,
        score=risk_level_to_score(risk),
        values={"value": value, "location": reading.location.value},
        assessment=_TEMPERATURE_ASSESSMENTS[category],
        location=reading.location,
        normal_range=normal_range,
    )


def classify_pulse(
    pulse: float | None,
    source: PulseSource | None = None,
    thresholds: ThresholdTable = DEFAULT_THRESHOLDS,
) -> PulseClassification | MissingData:
    if not pulse:
        return MissingData(message="No pulse data")

    table = thresholds.pulse
    if pulse < table.bradycardia_below:
        category, risk = PulseCategory.BRADYCARDIA, RiskLevel.MODERATE
    elif pulse > table.severe_tachycardia_above:
        category, risk = PulseCategory.SEVERE_TACHYCARDIA, RiskLevel.HIGH
    elif pulse > table.tachycardia_above:
        category, risk = PulseCategory.TACHYCARDIA, RiskLevel.MODERATE
    else:
        category, risk = PulseCategory.NORMAL, RiskLevel.LOW

    return PulseClassification(
        category=category,
        risk_level=risk,
        score=risk_level_to_score(risk),
        values={"value": pulse},
        assessment=_PULSE_ASSESSMENTS[category],
        source=source,
    )


def assess_basic_vital_signs(
    reading: VitalReading, thresholds: ThresholdTable = DEFAULT_THRESHOLDS
) -> BasicVitalSigns:
    """Run all four classifiers over one canonical reading."""
    return BasicVitalSigns(
        blood_pressure=classify_blood_pressure(reading.blood_pressure, thresholds),
        blood_oxygen=classify_blood_oxygen(reading.spo2, thresholds),
        temperature=classify_temperature(reading.temperature, thresholds),
        pulse=classify_pulse(reading.pulse, reading.pulse_source, thresholds),
    )
