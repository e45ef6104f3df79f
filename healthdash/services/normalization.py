"""
Input normalization boundary.

Device records arrive with differently named fields depending on which
monitor produced them. ``normalize_reading`` resolves every alias once,
following ``FIELD_PRECEDENCE``, and returns the canonical ``VitalReading``
the classifiers consume. Nothing downstream probes raw field names.

Field precedence (first present key wins):

    blood_pressure         bloodPressure, blood_pressure, bp
    systolic / diastolic   nested keys, then top-level systolic / diastolic
    spo2                   spO2, spo2, bloodOxygen, blood_oxygen
    spo2.percent           percent, spo2, value
    spo2.pi                pi, perfusionIndex, perfusion_index
    spo2.pr                pr, pulseRate, pulse_rate
    temperature            temperature, temp (mapping, or a bare number)
    temperature.value      value, temperature, temp
    temperature.location   location, site
    pulse                  cuff pulse, then oximeter pr, then heartRate / heart_rate / pulse
"""

import math
from collections.abc import Mapping
from typing import Any

import structlog

from healthdash.domain.errors import StructuralError
from healthdash.domain.models import (
    BloodPressureReading,
    MeasurementSite,
    PulseSource,
    SpO2Reading,
    TemperatureReading,
    VitalReading,
)

logger = structlog.get_logger(__name__)

FIELD_PRECEDENCE: dict[str, tuple[str, ...]] = {
    "blood_pressure": ("bloodPressure", "blood_pressure", "bp"),
    "systolic": ("systolic",),
    "diastolic": ("diastolic",),
    "bp_pulse": ("pulse",),
    "spo2": ("spO2", "spo2", "bloodOxygen", "blood_oxygen"),
    "spo2_percent": ("percent", "spo2", "value"),
    "spo2_pi": ("pi", "perfusionIndex", "perfusion_index"),
    "spo2_pr": ("pr", "pulseRate", "pulse_rate"),
    "temperature": ("temperature", "temp"),
    "temperature_value": ("value", "temperature", "temp"),
    "temperature_location": ("location", "site"),
    "pulse": ("heartRate", "heart_rate", "pulse"),
}

SITE_ALIASES: dict[str, MeasurementSite] = {
    # Traditional and simplified Chinese site names used by the device apps
    "腋下": MeasurementSite.AXILLARY,
    "口腔": MeasurementSite.ORAL,
    "直腸": MeasurementSite.RECTAL,
    "直肠": MeasurementSite.RECTAL,
    "耳溫": MeasurementSite.EAR,
    "耳温": MeasurementSite.EAR,
    "額溫": MeasurementSite.FOREHEAD,
    "额温": MeasurementSite.FOREHEAD,
    "axillary": MeasurementSite.AXILLARY,
    "armpit": MeasurementSite.AXILLARY,
    "underarm": MeasurementSite.AXILLARY,
    "oral": MeasurementSite.ORAL,
    "mouth": MeasurementSite.ORAL,
    "rectal": MeasurementSite.RECTAL,
    "ear": MeasurementSite.EAR,
    "tympanic": MeasurementSite.EAR,
    "forehead": MeasurementSite.FOREHEAD,
    "temporal": MeasurementSite.FOREHEAD,
}


def resolve_site(location: Any) -> MeasurementSite:
    """Map a site key to a MeasurementSite; unknown or missing keys map to axillary."""
    if isinstance(location, MeasurementSite):
        return location
    if isinstance(location, str):
        key = location.strip()
        return SITE_ALIASES.get(key) or SITE_ALIASES.get(key.lower(), MeasurementSite.AXILLARY)
    return MeasurementSite.AXILLARY


def _first_present(record: Mapping[str, Any], field: str) -> Any:
    for key in FIELD_PRECEDENCE[field]:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _as_number(value: Any, name: str) -> float:
    # bool is an int subclass; a checkbox value is never a measurement
    if isinstance(value, bool):
        raise StructuralError(f"{name} must be a number, got boolean {value!r}")
    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError as e:
            raise StructuralError(f"{name} must be a number, got {value!r}") from e
    else:
        raise StructuralError(f"{name} must be a number, got {type(value).__name__}")
    if not math.isfinite(number):
        raise StructuralError(f"{name} must be a finite number, got {value!r}")
    return number


def _optional_number(value: Any, name: str) -> float | None:
    if value is None:
        return None
    return _as_number(value, name)


def _as_mapping(value: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise StructuralError(f"{name} must be an object, got {type(value).__name__}")
    return value


def _normalize_blood_pressure(raw: Mapping[str, Any]) -> BloodPressureReading | None:
    nested = _first_present(raw, "blood_pressure")
    if nested is not None:
        record = _as_mapping(nested, "bloodPressure")
        systolic = _first_present(record, "systolic")
        diastolic = _first_present(record, "diastolic")
        pulse = _first_present(record, "bp_pulse")
    else:
        # Flat cuff record: systolic, diastolic and pulse at the top level
        systolic = _first_present(raw, "systolic")
        diastolic = _first_present(raw, "diastolic")
        pulse = _first_present(raw, "bp_pulse")
        if systolic is None and diastolic is None:
            return None

    if systolic is None:
        raise StructuralError("bloodPressure.systolic is required")
    if diastolic is None:
        raise StructuralError("bloodPressure.diastolic is required")

    systolic_value = _as_number(systolic, "bloodPressure.systolic")
    diastolic_value = _as_number(diastolic, "bloodPressure.diastolic")
    if systolic_value <= 0 or diastolic_value <= 0:
        raise StructuralError("bloodPressure values must be positive")

    return BloodPressureReading(
        systolic=systolic_value,
        diastolic=diastolic_value,
        pulse=_optional_number(pulse, "bloodPressure.pulse"),
    )


def _normalize_spo2(raw: Mapping[str, Any]) -> SpO2Reading | None:
    nested = _first_present(raw, "spo2")
    if nested is None:
        return None
    if isinstance(nested, Mapping):
        percent = _first_present(nested, "spo2_percent")
        pi = _first_present(nested, "spo2_pi")
        pr = _first_present(nested, "spo2_pr")
    else:
        percent, pi, pr = nested, None, None

    if percent is None:
        raise StructuralError("spO2.percent is required")
    percent_value = _as_number(percent, "spO2.percent")
    if not 0.0 <= percent_value <= 100.0:
        raise StructuralError(f"spO2.percent must be within 0-100, got {percent_value}")

    pi_value = _optional_number(pi, "spO2.pi")
    pr_value = _optional_number(pr, "spO2.pr")
    if (pi_value is not None and pi_value < 0) or (pr_value is not None and pr_value < 0):
        raise StructuralError("spO2.pi and spO2.pr must not be negative")

    return SpO2Reading(percent=percent_value, pi=pi_value, pr=pr_value)


def _normalize_temperature(raw: Mapping[str, Any]) -> TemperatureReading | None:
    nested = _first_present(raw, "temperature")
    if nested is None:
        return None
    if isinstance(nested, Mapping):
        value = _first_present(nested, "temperature_value")
        location = _first_present(nested, "temperature_location")
    elif isinstance(nested, str | int | float):
        value, location = nested, None
    else:
        raise StructuralError(
            f"temperature must be an object or number, got {type(nested).__name__}"
        )

    if value is None:
        raise StructuralError("temperature.value is required")
    return TemperatureReading(
        value=_as_number(value, "temperature.value"),
        location=resolve_site(location),
    )


def _resolve_pulse(
    raw: Mapping[str, Any],
    blood_pressure: BloodPressureReading | None,
    spo2: SpO2Reading | None,
) -> tuple[float | None, PulseSource | None]:
    if blood_pressure is not None and blood_pressure.pulse:
        return blood_pressure.pulse, PulseSource.BLOOD_PRESSURE_CUFF
    if spo2 is not None and spo2.pr:
        return spo2.pr, PulseSource.OXIMETER

    # Top-level "pulse" is only a heart rate when no cuff record claimed it
    candidates = {key: raw.get(key) for key in FIELD_PRECEDENCE["pulse"]}
    for key, value in candidates.items():
        if value is None or isinstance(value, Mapping):
            continue
        pulse = _as_number(value, key)
        if pulse < 0:
            raise StructuralError(f"{key} must not be negative")
        if pulse > 0:
            return pulse, PulseSource.HEART_RATE
    return None, None


def normalize_reading(raw: Mapping[str, Any] | VitalReading) -> VitalReading:
    """
    Produce the canonical reading from a raw device record.

    Args:
        raw: A mapping as posted by the dashboard or stored per device, or an
            already-canonical ``VitalReading`` (returned unchanged).

    Raises:
        StructuralError: The record is not a mapping, a sub-record is not a
            mapping, a value is not numeric, or a required value is missing.
    """
    if isinstance(raw, VitalReading):
        return raw
    if not isinstance(raw, Mapping):
        raise StructuralError(f"reading must be an object, got {type(raw).__name__}")

    blood_pressure = _normalize_blood_pressure(raw)
    spo2 = _normalize_spo2(raw)
    temperature = _normalize_temperature(raw)
    pulse, pulse_source = _resolve_pulse(raw, blood_pressure, spo2)

    reading = VitalReading(
        blood_pressure=blood_pressure,
        spo2=spo2,
        temperature=temperature,
        pulse=pulse,
        pulse_source=pulse_source,
    )
    logger.debug(
        "reading_normalized",
        has_blood_pressure=blood_pressure is not None,
        has_spo2=spo2 is not None,
        has_temperature=temperature is not None,
        pulse_source=pulse_source.value if pulse_source else None,
    )
    return reading
