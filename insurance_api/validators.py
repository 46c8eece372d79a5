# insurance_api/validators.py
import math
import numbers
from typing import Any, Optional, Sequence

from .config import FieldRange, Settings
from .records import RawRecord, ValidationResult

# (field, label) in the order messages are reported
NUMERIC_FIELDS = (("age", "Age"), ("bmi", "BMI"), ("children", "Number of children"))
CATEGORICAL_FIELDS = (("sex", "Sex"), ("smoker", "Smoker"), ("region", "Region"))


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def check_numeric(value: Any, bounds: FieldRange, label: str) -> Optional[str]:
    """Return an error message for a numeric field, or None when it is fine."""
    if _is_missing(value):
        return f"{label} cannot be empty"
    if not _is_number(value):
        return f"{label} must be a number"
    if math.isnan(float(value)):
        return f"{label} cannot be empty"
    if not bounds.contains(float(value)):
        return f"{label} must be between {bounds.low:g} and {bounds.high:g}"
    return None


def check_categorical(value: Any, allowed: Sequence[str], label: str) -> Optional[str]:
    if _is_missing(value) or (isinstance(value, str) and value.strip() == ""):
        return f"{label} cannot be empty"
    if value not in allowed:
        return f"{label} must be one of: {', '.join(allowed)}"
    return None


class Validator:
    """Checks a raw record against the configured ranges and level sets."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def validate(self, record: RawRecord) -> ValidationResult:
        # every rule runs; messages keep the field order above
        messages = []
        for name, label in NUMERIC_FIELDS:
            msg = check_numeric(getattr(record, name), self.settings.range_for(name), label)
            if msg:
                messages.append(msg)
        for name, label in CATEGORICAL_FIELDS:
            msg = check_categorical(getattr(record, name), self.settings.levels(name), label)
            if msg:
                messages.append(msg)
        return ValidationResult(valid=not messages, messages=messages)
