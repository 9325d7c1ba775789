"""
Shared input validation for all calculators.

Raw inputs arrive as numbers, numeric strings (form fields) or
``{"value": N, "unit": U}`` dicts. ``validate_inputs`` coerces them to
canonical units and reports every violated constraint as data instead of
raising, so callers can render field-level messages.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Tuple

from pydantic import BaseModel

from .models import FieldError, ValidationFailure


class Rule(BaseModel):
    """Constraint set for one named input.

    Bounds follow pydantic's naming: ``gt``/``ge``/``lt``/``le``.
    """

    kind: Literal["number", "enum", "flag"] = "number"
    label: str = ""
    unit: str = ""  # canonical unit
    analyte: str = ""  # key into _UNIT_CONVERSIONS
    gt: Optional[float] = None
    ge: Optional[float] = None
    lt: Optional[float] = None
    le: Optional[float] = None
    choices: List[str] = []
    aliases: Dict[str, str] = {}
    message: str = ""  # overrides the bound violation message


def positive(label: str, unit: str = "", analyte: str = "", **kw: Any) -> Rule:
    return Rule(label=label, unit=unit, analyte=analyte, gt=0, **kw)


SEX_RULE = Rule(
    kind="enum",
    label="Sex",
    choices=["male", "female"],
    aliases={"m": "male", "f": "female"},
)


def flag(label: str) -> Rule:
    return Rule(kind="flag", label=label)


# ── Unit conversion ─────────────────────────────────────────────────────────

# analyte → {unit (lowercase): factor to canonical}
_UNIT_CONVERSIONS: Dict[str, Dict[str, float]] = {
    "height":      {"cm": 1.0, "m": 100, "in": 2.54, "inches": 2.54, "ft": 30.48, "feet": 30.48},
    "weight":      {"kg": 1.0, "lb": 1/2.20462, "lbs": 1/2.20462, "pounds": 1/2.20462, "g": 0.001},
    "age":         {"years": 1.0, "year": 1.0, "yrs": 1.0, "y": 1.0},
    "creatinine":  {"mg/dl": 1.0, "µmol/l": 1/88.4, "umol/l": 1/88.4, "μmol/l": 1/88.4, "micromol/l": 1/88.4},
    "calcium":     {"mg/dl": 1.0, "mmol/l": 4.008},
    "albumin":     {"g/dl": 1.0, "g/l": 0.1},
    "cholesterol": {"mg/dl": 1.0, "mmol/l": 38.67},
    "pressure":    {"mmhg": 1.0, "kpa": 7.50062},
}

_TRUE_STRINGS = {"true", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "no", "n", "0"}


def accepted_units(rule: Rule) -> List[str]:
    return sorted(_UNIT_CONVERSIONS.get(rule.analyte, {}))


def _unwrap(raw: Any) -> Tuple[Any, str]:
    """Split a ``{value, unit}`` dict; anything else has no unit."""
    if isinstance(raw, dict):
        unit = raw.get("unit") or ""
        return raw.get("value"), str(unit).strip()
    return raw, ""


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_missing(raw: Any) -> bool:
    """True when a raw input (bare or ``{value, unit}``) carries no value."""
    value, _ = _unwrap(raw)
    return _is_missing(value)


class Validated(BaseModel):
    """Coerced values plus every constraint that failed."""

    values: Dict[str, Any] = {}
    errors: List[FieldError] = []

    @property
    def ok(self) -> bool:
        return not self.errors

    def failure(self, calculator: str) -> ValidationFailure:
        return ValidationFailure(calculator=calculator, errors=self.errors)


def _coerce_number(name: str, raw: Any, rule: Rule) -> Tuple[Optional[float], Optional[FieldError]]:
    label = rule.label or name
    value, unit = _unwrap(raw)

    if isinstance(value, bool):
        return None, FieldError(field=name, constraint="number", message=f"{label} must be a number.")
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None, FieldError(field=name, constraint="number", message=f"{label} must be a number.")
    elif isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            # ints beyond float range
            return None, FieldError(field=name, constraint="finite", message=f"{label} must be a finite number.")
    else:
        return None, FieldError(field=name, constraint="number", message=f"{label} must be a number.")

    if math.isnan(number) or math.isinf(number):
        return None, FieldError(field=name, constraint="finite", message=f"{label} must be a finite number.")

    if unit and unit.lower() != rule.unit.lower():
        factor = _UNIT_CONVERSIONS.get(rule.analyte, {}).get(unit.lower())
        if factor is None:
            return None, FieldError(field=name, constraint="unit", message=f"Unsupported unit for {label}: {unit}.")
        number *= factor
        if math.isinf(number):
            return None, FieldError(field=name, constraint="finite", message=f"{label} must be a finite number.")

    violated = None
    if rule.gt is not None and number <= rule.gt:
        violated = ("gt", f"{label} must be greater than {rule.gt:g}.")
    elif rule.ge is not None and number < rule.ge:
        violated = ("ge", f"{label} must be at least {rule.ge:g}.")
    elif rule.lt is not None and number >= rule.lt:
        violated = ("lt", f"{label} must be less than {rule.lt:g}.")
    elif rule.le is not None and number > rule.le:
        violated = ("le", f"{label} must be at most {rule.le:g}.")
    if violated is not None:
        constraint, message = violated
        return None, FieldError(field=name, constraint=constraint, message=rule.message or message)

    return number, None


def _coerce_enum(name: str, raw: Any, rule: Rule) -> Tuple[Optional[str], Optional[FieldError]]:
    label = rule.label or name
    value, _ = _unwrap(raw)
    if isinstance(value, Enum):
        value = value.value
    text = str(value).strip().lower()
    text = rule.aliases.get(text, text)
    if text not in rule.choices:
        return None, FieldError(
            field=name,
            constraint="enum",
            message=f"{label} must be one of: {', '.join(rule.choices)}.",
        )
    return text, None


def _coerce_flag(name: str, raw: Any, rule: Rule) -> Tuple[Optional[bool], Optional[FieldError]]:
    label = rule.label or name
    value, _ = _unwrap(raw)
    if isinstance(value, bool):
        return value, None
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value), None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True, None
        if text in _FALSE_STRINGS:
            return False, None
    return None, FieldError(field=name, constraint="flag", message=f"{label} must be yes or no.")


_COERCERS = {
    "number": _coerce_number,
    "enum": _coerce_enum,
    "flag": _coerce_flag,
}


def validate_inputs(raw: Mapping[str, Any], rules: Mapping[str, Rule]) -> Validated:
    """Check every ruled field of ``raw``; fields without a rule are ignored."""
    values: Dict[str, Any] = {}
    errors: List[FieldError] = []
    for name, rule in rules.items():
        if is_missing(raw.get(name)):
            errors.append(FieldError(
                field=name, constraint="required", message=f"{rule.label or name} is required.",
            ))
            continue
        coerced, error = _COERCERS[rule.kind](name, raw[name], rule)
        if error is not None:
            errors.append(error)
        else:
            values[name] = coerced
    return Validated(values=values, errors=errors)
