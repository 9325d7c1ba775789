"""Calculator registry and dispatch.

Callers that hold loosely typed form data go through ``execute_calc``; it
resolves the calculator, runs compute and interpret, and folds the outcome
into an ``ExecuteCalcResult``. Every calculator runs independently, so one
invalid form never blocks another in ``execute_batch``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import calculators as calc
from .framingham import FRAMINGHAM_RULES, compute_framingham, interpret_framingham
from .formatting import format_value
from .models import (
    CalcInfoResult,
    CalcInput,
    CalculationResult,
    CalculatorDef,
    ExecuteCalcResult,
    NotComputable,
    ValidationFailure,
)
from .validation import Rule, accepted_units, is_missing, validate_inputs

logger = logging.getLogger(__name__)

# Extra fields adjusted_body_weight accepts to derive ideal_weight itself
_IBW_FIELDS = ("height", "sex")


def _calc_inputs(rules: Mapping[str, Rule]) -> List[CalcInput]:
    inputs = []
    for field_id, rule in rules.items():
        constraints: Dict[str, Any] = {
            key: getattr(rule, key) for key in ("gt", "ge", "lt", "le") if getattr(rule, key) is not None
        }
        if rule.kind == "enum":
            constraints["allowed_values"] = list(rule.choices)
        inputs.append(CalcInput(
            id=field_id,
            label=rule.label or field_id,
            type={"number": "number", "enum": "enum", "flag": "bool"}[rule.kind],
            canonical_unit=rule.unit,
            accepted_units=accepted_units(rule),
            constraints=constraints,
        ))
    return inputs


def _make_calc_entry(
    calc_id: str,
    title: str,
    short_name: str,
    rules: Mapping[str, Rule],
    compute: Optional[Callable[..., Any]],
    interpret: Callable[..., Any],
    formula: str,
    description: str = "",
    tags: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "def": CalculatorDef(
            id=calc_id,
            title=title,
            short_name=short_name,
            description=description,
            version="1.0",
            tags=tags or [],
            inputs=_calc_inputs(rules),
        ),
        "rules": dict(rules),
        "compute": compute,
        "interpret": interpret,
        "formula": formula,
    }


# ── Calculator Registry ─────────────────────────────────────────────────────

CALCULATORS: Dict[str, Dict[str, Any]] = {
    "bmi": _make_calc_entry(
        "bmi", "Body Mass Index (BMI)", "BMI", calc.BMI_RULES, calc.compute_bmi, calc.interpret_bmi,
        "BMI = weight / height_m^2", "Weight relative to height.", ["physical"],
    ),
    "bsa": _make_calc_entry(
        "bsa", "Body Surface Area (Mosteller)", "BSA", calc.BSA_RULES, calc.compute_bsa, calc.interpret_bsa,
        "BSA = sqrt(weight*height_cm/3600) (Mosteller)", "Body surface area for dosing.", ["physical"],
    ),
    "ckd_epi_gfr": _make_calc_entry(
        "ckd_epi_gfr", "eGFR (CKD-EPI 2021)", "eGFR", calc.EGFR_RULES, calc.compute_egfr, calc.interpret_egfr,
        "eGFR = 142 * min(Scr/k,1)^a * max(Scr/k,1)^-1.200 * 0.9938^age * sex factor",
        "Race-free CKD-EPI creatinine equation with KDIGO staging.", ["laboratory", "renal"],
    ),
    "ideal_body_weight": _make_calc_entry(
        "ideal_body_weight", "Ideal Body Weight (Devine)", "IBW", calc.IBW_RULES,
        calc.compute_ideal_body_weight, calc.interpret_ideal_body_weight,
        "IBW = 50 (male) / 45.5 (female) + 2.3 * inches over 5 ft", "Devine ideal body weight.", ["physical"],
    ),
    "adjusted_body_weight": _make_calc_entry(
        "adjusted_body_weight", "Adjusted Body Weight", "AdjBW", calc.ADJBW_RULES,
        calc.compute_adjusted_body_weight, calc.interpret_adjusted_body_weight,
        "AdjBW = IBW + 0.4*(actual - IBW), only when actual > 120% of IBW",
        "Dosing weight for patients well above ideal body weight.", ["physical", "dosage"],
    ),
    "bmr": _make_calc_entry(
        "bmr", "Basal Metabolic Rate (Mifflin-St Jeor)", "BMR", calc.BMR_RULES, calc.compute_bmr, calc.interpret_bmr,
        "BMR = 10*weight + 6.25*height - 5*age + (5 male / -161 female)", "Resting energy expenditure.",
        ["physical"],
    ),
    "calcium_correction": _make_calc_entry(
        "calcium_correction", "Albumin-Corrected Calcium", "Corrected Ca", calc.CALCIUM_RULES,
        calc.compute_corrected_calcium, calc.interpret_corrected_calcium,
        "corrected_Ca = Ca + 0.8*(4.0 - albumin)", "Total calcium adjusted for low or high albumin.",
        ["laboratory"],
    ),
    "target_heart_rate": _make_calc_entry(
        "target_heart_rate", "Target Heart Rate Zones", "THR", calc.THR_RULES,
        calc.compute_target_heart_rate, calc.interpret_target_heart_rate,
        "maxHR = 220 - age; moderate 50-70%, vigorous 70-85%", "Exercise heart-rate zones.", ["cardio"],
    ),
    "abi": _make_calc_entry(
        "abi", "Ankle-Brachial Index Interpretation", "ABI", calc.ABI_RULES, None, calc.interpret_abi,
        "ABI classified against fixed bands", "Peripheral artery disease screening.", ["cardio"],
    ),
    "framingham_risk": _make_calc_entry(
        "framingham_risk", "Framingham Risk Score (simplified points)", "FRS", FRAMINGHAM_RULES,
        compute_framingham, interpret_framingham,
        "ATP III point tables: age, total cholesterol, HDL, smoking, SBP (treated/untreated)",
        "Illustrative 10-year cardiovascular risk points.", ["cardio", "risk"],
    ),
}


def list_calculators() -> List[Dict[str, str]]:
    return [
        {
            "id": cid,
            "title": c["def"].title,
            "description": c["def"].description,
            "version": c["def"].version,
        }
        for cid, c in CALCULATORS.items()
    ]


def _resolve_calc_id(input_id: str) -> str:
    """Resolve a calculator ID case-insensitively; unknown IDs come back unchanged."""
    if input_id in CALCULATORS:
        return input_id
    input_lower = input_id.strip().lower()
    for cid in CALCULATORS:
        if cid.lower() == input_lower:
            return cid
    return input_id


def calc_info(calc_id: str) -> CalcInfoResult:
    """Input schema for a calculator. Raises ``ValueError`` for unknown IDs."""
    resolved = _resolve_calc_id(calc_id)
    if resolved not in CALCULATORS:
        raise ValueError(f"Calculator '{calc_id}' not found")
    calc_def = CALCULATORS[resolved]["def"]
    return CalcInfoResult(
        calc_id=resolved,
        title=calc_def.title,
        description=calc_def.description,
        version=calc_def.version,
        tags=calc_def.tags,
        inputs=[inp.model_dump() for inp in calc_def.inputs],
    )


def _inputs_used(values: Mapping[str, Any], rules: Mapping[str, Rule]) -> Dict[str, str]:
    return {k: f"{v} {rules[k].unit}".strip() if k in rules else str(v) for k, v in values.items()}


def _invalid(entry: Dict[str, Any], failure: ValidationFailure, warnings: List[str]) -> ExecuteCalcResult:
    messages = failure.error_messages(entry["def"].short_name)
    return ExecuteCalcResult(
        success=False,
        status="invalid",
        calc_id=entry["def"].id,
        errors=[
            {"field": e.field, "constraint": e.constraint, "message": msg}
            for e, msg in zip(failure.errors, messages)
        ],
        warnings=warnings,
    )


def _fold_outcome(entry: Dict[str, Any], outcome: Any, log: List[str], warnings: List[str]) -> ExecuteCalcResult:
    calc_def = entry["def"]
    if isinstance(outcome, ValidationFailure):
        return _invalid(entry, outcome, warnings)

    if isinstance(outcome, NotComputable):
        interpretation = entry["interpret"](outcome)
        return ExecuteCalcResult(
            success=False,
            status="not_computable",
            calc_id=calc_def.id,
            outputs={"interpretation": interpretation.model_dump()},
            message=outcome.message,
            warnings=warnings,
            audit_trace={"inputs_used": {}, "log": log + [entry["formula"], f"Not computable: {outcome.reason}"]},
        )

    result: CalculationResult = outcome
    interpretation = entry["interpret"](result)
    outputs = {
        "result": result.value,
        "unit": result.unit,
        "display": format_value(result),
        "interpretation": interpretation.model_dump(),
    }
    outputs.update(result.model_dump(exclude={"status", "calculator", "value", "unit", "inputs"}))
    return ExecuteCalcResult(
        success=True,
        status="ok",
        calc_id=calc_def.id,
        outputs=outputs,
        warnings=warnings,
        audit_trace={"inputs_used": _inputs_used(result.inputs, entry["rules"]), "log": log + [entry["formula"]]},
    )


def _interpret_only(entry: Dict[str, Any], picked: Dict[str, Any], warnings: List[str]) -> ExecuteCalcResult:
    rules = entry["rules"]
    checked = validate_inputs(picked, rules)
    if not checked.ok:
        return _invalid(entry, checked.failure(entry["def"].id), warnings)
    interpretation = entry["interpret"](**checked.values)
    (value,) = checked.values.values()
    return ExecuteCalcResult(
        success=True,
        status="ok",
        calc_id=entry["def"].id,
        outputs={
            "result": value,
            "unit": "",
            "display": f"{value:.2f}",
            "interpretation": interpretation.model_dump(),
        },
        warnings=warnings,
        audit_trace={"inputs_used": _inputs_used(checked.values, rules), "log": [entry["formula"]]},
    )


def execute_calc(calc_id: str, variables: Optional[Mapping[str, Any]] = None) -> ExecuteCalcResult:
    """
    Execute a calculation with loosely typed variables.

    Args:
        calc_id: Calculator ID (case-insensitive)
        variables: field ID → number, numeric string, flag, or {"value", "unit"}

    Returns:
        ExecuteCalcResult; never raises for bad input.
    """
    resolved = _resolve_calc_id(calc_id)
    entry = CALCULATORS.get(resolved)
    if entry is None:
        logger.warning("Unknown calculator requested: %s", calc_id)
        return ExecuteCalcResult(success=False, status="invalid", calc_id=calc_id,
                                 errors=[f"Calculator '{calc_id}' not found"])

    rules = entry["rules"]
    variables = dict(variables or {})
    derives_ibw = resolved == "adjusted_body_weight"
    warnings: List[str] = []
    for field_id in variables:
        if field_id not in rules and not (derives_ibw and field_id in _IBW_FIELDS):
            logger.warning("Unrecognised field ignored for %s: %s", resolved, field_id)
            warnings.append(f"Unrecognised field ignored: {field_id}")

    log: List[str] = []
    if derives_ibw and is_missing(variables.get("ideal_weight")) and any(f in variables for f in _IBW_FIELDS):
        ibw = calc.compute_ideal_body_weight(variables.get("height"), variables.get("sex"))
        if isinstance(ibw, ValidationFailure):
            return _invalid(entry, ibw, warnings)
        variables["ideal_weight"] = ibw.value
        log.append(f"IBW computed first (Devine): {ibw.value:.1f} kg")

    picked = {name: variables.get(name) for name in rules}
    logger.debug("Executing %s with fields %s", resolved, sorted(k for k, v in picked.items() if v is not None))

    try:
        if entry["compute"] is None:
            return _interpret_only(entry, picked, warnings)
        outcome = entry["compute"](**picked)
        return _fold_outcome(entry, outcome, log, warnings)
    except Exception as e:
        logger.exception("Calculation failed for %s", resolved)
        return ExecuteCalcResult(
            success=False,
            status="invalid",
            calc_id=resolved,
            errors=[f"Calculation failed: {e}"],
            warnings=warnings,
        )


def execute_batch(requests: Mapping[str, Mapping[str, Any]]) -> Dict[str, ExecuteCalcResult]:
    """Run several calculators; each result stands alone."""
    return {calc_id: execute_calc(calc_id, variables) for calc_id, variables in requests.items()}


def format_calc_info(info: CalcInfoResult) -> str:
    """Format calculator info as plain text, one line per input."""
    lines = [
        f"Calculator: {info.title} ({info.calc_id})",
        "",
        "Inputs:",
    ]

    for inp in info.inputs:
        inp_id = inp.get("id", "unknown")
        label = inp.get("label", inp_id)
        inp_type = inp.get("type", "number")
        unit = inp.get("canonical_unit", "")
        units = inp.get("accepted_units", [])
        constraints = inp.get("constraints", {})

        req_marker = "*" if inp.get("required", False) else ""
        unit_str = f" (default_unit: {unit})" if unit else ""

        line = f"  - {inp_id}{req_marker}: {label}{unit_str} [{inp_type}]"

        if units:
            line += f" units: {', '.join(units)}"
        if "allowed_values" in constraints:
            line += f" one of: {', '.join(constraints['allowed_values'])}"
        for key, symbol in (("gt", ">"), ("ge", ">="), ("lt", "<"), ("le", "<=")):
            if key in constraints:
                line += f" {symbol}{constraints[key]:g}"

        lines.append(line)

    return "\n".join(lines)
