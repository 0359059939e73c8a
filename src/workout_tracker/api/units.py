"""
Unit conversion — kg/lbs and cm/inches.

Storage is always kilograms and centimeters; the per-exercise or
per-user unit only affects display and input. Values travel as strings
because that is how the forms and documents hold them.

Malformed numbers are passed through unchanged rather than rejected;
callers that need a number must check with is_numeric() first.
"""

from typing import Iterable, List, Union

from workout_tracker.sdk.types import HeightUnit, WeightUnit


KG_PER_LB = 0.453592
CM_PER_INCH = 2.54

Number = Union[str, float, int]


def is_numeric(value: Number) -> bool:
    """True if value parses as a finite decimal number."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return number == number and number not in (float("inf"), float("-inf"))


def to_canonical_weight(value: Number, source_unit: str) -> str:
    """Weight in source_unit → kilograms string."""
    if not is_numeric(value):
        return value
    number = float(value)
    if source_unit == WeightUnit.LBS:
        number *= KG_PER_LB
    return _format_canonical(number)


def to_display_weight(kilograms: Number, target_unit: str) -> str:
    """Kilograms → whole-number string in target_unit."""
    if not is_numeric(kilograms):
        return kilograms
    number = float(kilograms)
    if target_unit == WeightUnit.LBS:
        number /= KG_PER_LB
    return f"{number:.0f}"


def to_canonical_height(value: Number, source_unit: str) -> str:
    """Height in source_unit → centimeters string."""
    if not is_numeric(value):
        return value
    number = float(value)
    if source_unit == HeightUnit.INCHES:
        number *= CM_PER_INCH
    return _format_canonical(number)


def to_display_height(centimeters: Number, target_unit: str) -> str:
    """Centimeters → whole-number string in target_unit."""
    if not is_numeric(centimeters):
        return centimeters
    number = float(centimeters)
    if target_unit == HeightUnit.INCHES:
        number /= CM_PER_INCH
    return f"{number:.0f}"


def convert_exercise_sets_to_kg(exercises: Iterable) -> List:
    """Return copies of exercises with every set weight in kilograms.

    Each exercise converts from its own weight_unit, which it keeps as
    its display unit.
    """
    converted = []
    for exercise in exercises:
        sets = [
            s.replace(weight=to_canonical_weight(s.weight, exercise.weight_unit))
            for s in exercise.sets
        ]
        converted.append(exercise.replace(sets=sets))
    return converted


def _format_canonical(number: float) -> str:
    # Six decimals, trailing zeros dropped
    text = f"{number:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text
