"""Pydantic models for cardiacalc."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel


class Sex(str, Enum):
    """Biological sex used by sex-specific formulas."""

    MALE = "male"
    FEMALE = "female"


class FieldError(BaseModel):
    """A single violated input constraint."""

    field: str
    constraint: str  # required, number, finite, gt, ge, lt, le, enum, flag, unit
    message: str


class ValidationFailure(BaseModel):
    """Inputs were missing or out of range; nothing was computed."""

    status: Literal["invalid"] = "invalid"
    calculator: str
    errors: List[FieldError]

    def error_messages(self, prefix: str = "") -> List[str]:
        """Get error messages as strings, optionally prefixed with the calculator name."""
        lead = f"{prefix}: " if prefix else ""
        return [f"{lead}{e.message}" for e in self.errors]

    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class NotComputable(BaseModel):
    """Inputs were valid but the formula's precondition was not met."""

    status: Literal["not_computable"] = "not_computable"
    calculator: str
    reason: str
    message: str


class CalculationResult(BaseModel):
    """An unrounded calculator output and the unit implied by its formula."""

    status: Literal["ok"] = "ok"
    calculator: str
    value: float
    unit: str
    inputs: Dict[str, Any] = {}


class HeartRateZones(CalculationResult):
    """Target heart-rate zones; ``value`` holds the age-predicted maximum."""

    moderate_min: int
    moderate_max: int
    vigorous_min: int
    vigorous_max: int


class FraminghamResult(CalculationResult):
    """Point total (``value``) and the 10-year risk bracket it maps to."""

    points: int
    risk_percent: float
    risk_label: str
    risk_qualifier: Literal["below", "exact", "above"]
    breakdown: Dict[str, int] = {}


Outcome = Union[CalculationResult, NotComputable, ValidationFailure]


class Interpretation(BaseModel):
    """Categorical reading of a calculator output."""

    label: str
    severity: int = 0  # 0 = no concern, higher = more concern
    band: str
    display_text: str


class CalcInput(BaseModel):
    id: str
    label: str
    type: str = "number"
    required: bool = True
    canonical_unit: str = ""
    accepted_units: List[str] = []
    constraints: Dict[str, Any] = {}


class CalculatorDef(BaseModel):
    id: str
    title: str
    short_name: str
    description: str
    version: str
    tags: List[str]
    inputs: List[CalcInput]


class CalcInfoResult(BaseModel):
    """Result from calc_info."""

    calc_id: str
    title: str
    description: Optional[str] = None
    version: str
    tags: List[str] = []
    inputs: List[Dict[str, Any]]


class ExecuteCalcResult(BaseModel):
    """Result from execute_calc."""

    success: bool
    status: Literal["ok", "not_computable", "invalid"] = "invalid"
    calc_id: Optional[str] = None
    outputs: Optional[Dict[str, Any]] = None
    message: Optional[str] = None  # set when not computable
    errors: List[Any] = []  # strings or FieldError dicts
    warnings: List[Any] = []
    audit_trace: Optional[Dict[str, Any]] = None

    def error_messages(self) -> List[str]:
        """Get error messages as strings."""
        msgs = []
        for e in self.errors:
            if isinstance(e, str):
                msgs.append(e)
            elif isinstance(e, dict):
                msgs.append(e.get("message", str(e)))
            else:
                msgs.append(str(e))
        return msgs
