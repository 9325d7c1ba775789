"""
Framingham-style 10-year cardiovascular risk point score.

Scoring is entirely table driven: the point tables below are configuration
data taken from the NCEP ATP III point charts and can be replaced wholesale
(``compute_framingham(..., tables=...)`` or ``FraminghamTables.from_json``)
without touching the scoring code.

This is an illustrative point system, not a validated clinical instrument.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from .bands import Band, band_table, classify, interpret_band
from .models import FraminghamResult, Interpretation, Outcome, Sex
from .validation import SEX_RULE, Rule, flag, positive, validate_inputs


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Bracket(_Frozen):
    """Points awarded for values at or above ``lower`` (up to the next bracket)."""

    lower: float
    points: int


class BracketTable(_Frozen):
    brackets: Tuple[Bracket, ...]

    @model_validator(mode="after")
    def _ascending(self) -> "BracketTable":
        if not self.brackets:
            raise ValueError("bracket table is empty")
        lowers = [b.lower for b in self.brackets]
        if lowers != sorted(set(lowers)):
            raise ValueError(f"bracket lower bounds must be strictly ascending: {lowers}")
        return self

    def points_for(self, value: float) -> int:
        if value < self.brackets[0].lower:
            raise ValueError(f"{value} is below the first bracket ({self.brackets[0].lower})")
        points = self.brackets[0].points
        for bracket in self.brackets:
            if value >= bracket.lower:
                points = bracket.points
            else:
                break
        return points


class AgeBand(_Frozen):
    age_lower: float
    table: BracketTable


class AgeBandedTable(_Frozen):
    """A bracket table that changes with the patient's age decade."""

    bands: Tuple[AgeBand, ...]

    @model_validator(mode="after")
    def _ascending(self) -> "AgeBandedTable":
        lowers = [b.age_lower for b in self.bands]
        if not lowers or lowers != sorted(set(lowers)):
            raise ValueError(f"age bands must be strictly ascending: {lowers}")
        return self

    def points_for(self, age: float, value: float) -> int:
        chosen = None
        for band in self.bands:
            if age >= band.age_lower:
                chosen = band
        if chosen is None:
            raise ValueError(f"age {age} is below the first age band ({self.bands[0].age_lower})")
        return chosen.table.points_for(value)


class RiskRow(_Frozen):
    max_points: int
    percent: float


class RiskTable(_Frozen):
    """Point total → 10-year risk percent.

    Totals below the first row report ``<first%``; totals beyond the last row
    report ``>last%``.
    """

    rows: Tuple[RiskRow, ...]
    min_points: int  # lowest total that maps to the first row

    @model_validator(mode="after")
    def _monotonic(self) -> "RiskTable":
        if not self.rows:
            raise ValueError("risk table is empty")
        points = [r.max_points for r in self.rows]
        percents = [r.percent for r in self.rows]
        if points != sorted(set(points)) or percents != sorted(percents):
            raise ValueError("risk table must be ascending in points and non-decreasing in percent")
        if self.min_points > points[0]:
            raise ValueError("min_points exceeds the first row")
        return self

    def lookup(self, points: int) -> Tuple[float, str, str]:
        """Return ``(percent, label, qualifier)`` for a point total."""
        if points < self.min_points:
            first = self.rows[0].percent
            return first, f"<{first:g}%", "below"
        for row in self.rows:
            if points <= row.max_points:
                return row.percent, f"{row.percent:g}%", "exact"
        top = self.rows[-1].percent
        return top, f">{top:g}%", "above"


class SexTables(_Frozen):
    age: BracketTable
    total_cholesterol: AgeBandedTable
    hdl: BracketTable
    smoker: BracketTable  # keyed by age; non-smokers score 0
    sbp_untreated: BracketTable
    sbp_treated: BracketTable
    risk: RiskTable


class FraminghamTables(_Frozen):
    male: SexTables
    female: SexTables

    def for_sex(self, sex: Sex) -> SexTables:
        return self.male if sex is Sex.MALE else self.female

    @classmethod
    def from_json(cls, text: str) -> "FraminghamTables":
        return cls.model_validate_json(text)


# ── ATP III point tables ────────────────────────────────────────────────────

def _table(*pairs: Tuple[float, int]) -> BracketTable:
    return BracketTable(brackets=tuple(Bracket(lower=lo, points=p) for lo, p in pairs))


_AGE_DECADES = (20, 40, 50, 60, 70)
_TC_LOWERS = (0, 160, 200, 240, 280)


def _by_decade(columns: Tuple[Tuple[int, ...], ...]) -> AgeBandedTable:
    """``columns[i]`` holds the points for each cholesterol bracket in age decade ``i``."""
    return AgeBandedTable(bands=tuple(
        AgeBand(age_lower=age, table=_table(*zip(_TC_LOWERS, col)))
        for age, col in zip(_AGE_DECADES, columns)
    ))


def _risk(min_points: int, *rows: Tuple[int, float]) -> RiskTable:
    return RiskTable(min_points=min_points, rows=tuple(RiskRow(max_points=p, percent=pct) for p, pct in rows))


_HDL = _table((0, 2), (40, 1), (50, 0), (60, -1))

ATP_III_TABLES = FraminghamTables(
    male=SexTables(
        age=_table((20, -9), (35, -4), (40, 0), (45, 3), (50, 6), (55, 8), (60, 10), (65, 11), (70, 12), (75, 13)),
        total_cholesterol=_by_decade((
            (0, 4, 7, 9, 11),
            (0, 3, 5, 6, 8),
            (0, 2, 3, 4, 5),
            (0, 1, 1, 2, 3),
            (0, 0, 0, 1, 1),
        )),
        hdl=_HDL,
        smoker=_table((20, 8), (40, 5), (50, 3), (60, 1), (70, 1)),
        sbp_untreated=_table((0, 0), (120, 0), (130, 1), (140, 1), (160, 2)),
        sbp_treated=_table((0, 0), (120, 1), (130, 2), (140, 2), (160, 3)),
        risk=_risk(
            0,
            (4, 1), (6, 2), (7, 3), (8, 4), (9, 5), (10, 6), (11, 8), (12, 10),
            (13, 12), (14, 16), (15, 20), (16, 25), (17, 30),
        ),
    ),
    female=SexTables(
        age=_table((20, -7), (35, -3), (40, 0), (45, 3), (50, 6), (55, 8), (60, 10), (65, 12), (70, 14), (75, 16)),
        total_cholesterol=_by_decade((
            (0, 4, 8, 11, 13),
            (0, 3, 6, 8, 10),
            (0, 2, 4, 5, 7),
            (0, 1, 2, 3, 4),
            (0, 1, 1, 2, 2),
        )),
        hdl=_HDL,
        smoker=_table((20, 9), (40, 7), (50, 4), (60, 2), (70, 1)),
        sbp_untreated=_table((0, 0), (120, 1), (130, 2), (140, 3), (160, 4)),
        sbp_treated=_table((0, 0), (120, 3), (130, 4), (140, 5), (160, 6)),
        risk=_risk(
            9,
            (12, 1), (14, 2), (15, 3), (16, 4), (17, 5), (18, 6), (19, 8),
            (20, 11), (21, 14), (22, 17), (23, 22), (24, 27), (25, 30),
        ),
    ),
)


# ── Calculator ──────────────────────────────────────────────────────────────

MIN_AGE, MAX_AGE = 20, 79

FRAMINGHAM_RULES: Dict[str, Rule] = {
    "age": Rule(
        label="Age", unit="years", analyte="age", ge=MIN_AGE, le=MAX_AGE,
        message=f"Age must be between {MIN_AGE} and {MAX_AGE} for this calculator.",
    ),
    "sex": SEX_RULE,
    "total_cholesterol": positive("Total cholesterol", "mg/dL", "cholesterol"),
    "hdl_cholesterol": positive("HDL cholesterol", "mg/dL", "cholesterol"),
    "systolic_bp": positive("Systolic blood pressure", "mmHg", "pressure"),
    "bp_treated": flag("On blood pressure treatment"),
    "smoker": flag("Current smoker"),
}

RISK_BANDS = band_table(
    Band(20.0, "High risk", 2, "high", "Estimated 10-year risk of 20% or more."),
    Band(10.0, "Intermediate risk", 1, "intermediate", "Estimated 10-year risk between 10% and 20%."),
    Band(-math.inf, "Low risk", 0, "low", "Estimated 10-year risk below 10%."),
)


def compute_framingham(
    age: Any,
    sex: Any,
    total_cholesterol: Any,
    hdl_cholesterol: Any,
    systolic_bp: Any,
    bp_treated: Any,
    smoker: Any,
    tables: Optional[FraminghamTables] = None,
) -> Outcome:
    """Accumulate points per risk factor and map the total to a risk bracket.

    Ages outside 20-79 are rejected, never clamped.
    """
    checked = validate_inputs(
        {
            "age": age,
            "sex": sex,
            "total_cholesterol": total_cholesterol,
            "hdl_cholesterol": hdl_cholesterol,
            "systolic_bp": systolic_bp,
            "bp_treated": bp_treated,
            "smoker": smoker,
        },
        FRAMINGHAM_RULES,
    )
    if not checked.ok:
        return checked.failure("framingham_risk")

    v = checked.values
    t = (tables or ATP_III_TABLES).for_sex(Sex(v["sex"]))
    sbp_table = t.sbp_treated if v["bp_treated"] else t.sbp_untreated
    breakdown = {
        "age": t.age.points_for(v["age"]),
        "total_cholesterol": t.total_cholesterol.points_for(v["age"], v["total_cholesterol"]),
        "hdl_cholesterol": t.hdl.points_for(v["hdl_cholesterol"]),
        "smoker": t.smoker.points_for(v["age"]) if v["smoker"] else 0,
        "systolic_bp": sbp_table.points_for(v["systolic_bp"]),
    }
    points = sum(breakdown.values())
    percent, label, qualifier = t.risk.lookup(points)
    return FraminghamResult(
        calculator="framingham_risk",
        value=points,
        unit="points",
        inputs=v,
        points=points,
        risk_percent=percent,
        risk_label=label,
        risk_qualifier=qualifier,
        breakdown=breakdown,
    )


def interpret_framingham(result: FraminghamResult) -> Interpretation:
    if not isinstance(result, FraminghamResult):
        raise TypeError(f"expected a successful framingham_risk result, got {type(result).__name__}")
    band = classify(result.risk_percent, RISK_BANDS)
    return interpret_band(band, f"{result.points} points, 10-year risk {result.risk_label}. {band.text}")
