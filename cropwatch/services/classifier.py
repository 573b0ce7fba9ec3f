"""Kind classifier: maps free-text device-type labels to semantic reading kinds.

Labels come from device-type reference data and are not constrained to a
fixed vocabulary (``temperature_f``, ``co2_ppm``, vendor strings...), so
classification is substring based and case-insensitive.

The category flags are not mutually exclusive: a label containing both
``temp`` and ``humid`` sets both. Callers that need a single kind go
through :func:`resolve_kind`, which applies the fixed priority
temperature > humidity > co2.
"""

from dataclasses import dataclass
from typing import Literal

__all__ = ["KindClassification", "classify", "resolve_kind", "KIND_PRIORITY"]

Kind = Literal["temperature", "humidity", "co2"]
TemperatureUnit = Literal["celsius", "fahrenheit", "kelvin"]

KIND_PRIORITY: tuple[Kind, ...] = ("temperature", "humidity", "co2")


@dataclass(frozen=True)
class KindClassification:
    """Membership flags for one label, plus the unit when it is a temperature."""

    is_temperature: bool = False
    is_humidity: bool = False
    is_co2: bool = False
    unit: TemperatureUnit | None = None


def _temperature_unit(label: str) -> TemperatureUnit:
    if "_f" in label or label.endswith("f"):
        return "fahrenheit"
    if "_k" in label or label.endswith("k"):
        return "kelvin"
    return "celsius"


def classify(label: str | None) -> KindClassification:
    """Classify a raw column label. Unrecognized or empty labels match nothing."""
    if not label:
        return KindClassification()

    lowered = label.strip().lower()
    is_temperature = "temp" in lowered

    return KindClassification(
        is_temperature=is_temperature,
        is_humidity="humid" in lowered,
        is_co2="co2" in lowered,
        unit=_temperature_unit(lowered) if is_temperature else None,
    )


def resolve_kind(classification: KindClassification) -> Kind | None:
    """Pick the single kind a classification stands for, by fixed priority."""
    flags = {
        "temperature": classification.is_temperature,
        "humidity": classification.is_humidity,
        "co2": classification.is_co2,
    }
    for kind in KIND_PRIORITY:
        if flags[kind]:
            return kind
    return None
