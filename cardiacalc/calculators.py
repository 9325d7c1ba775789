"""
Biometric calculators: one compute/interpret pair per formula.

Compute functions accept raw inputs (numbers, numeric strings or
``{"value", "unit"}`` dicts), validate them, and return a
``CalculationResult``, a ``NotComputable`` or a ``ValidationFailure``.
Nothing here raises for bad input, keeps state or performs I/O.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Union

from .bands import Band, band_table, classify, interpret_band
from .models import (
    CalculationResult,
    HeartRateZones,
    Interpretation,
    NotComputable,
    Outcome,
    Sex,
    ValidationFailure,
)
from .validation import SEX_RULE, Rule, positive, validate_inputs


def _require_ok(result: Any, calculator: str) -> CalculationResult:
    if not isinstance(result, CalculationResult) or result.calculator != calculator:
        raise TypeError(f"expected a successful {calculator} result, got {type(result).__name__}")
    return result


def _informational(text: str) -> Interpretation:
    return Interpretation(label="Informational", severity=0, band="informational", display_text=text)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


WEIGHT = positive("Weight", "kg", "weight")
HEIGHT = positive("Height", "cm", "height")
AGE = positive("Age", "years", "age")


# 1. BMI ──────────────────────────────────────────────────────────────────────
BMI_RULES: Dict[str, Rule] = {"weight": WEIGHT, "height": HEIGHT}

BMI_BANDS = band_table(
    Band(30.0, "Obese", 2, "obese"),
    Band(25.0, "Overweight", 1, "overweight"),
    Band(18.5, "Normal range", 0, "normal"),
    Band(-math.inf, "Underweight", 1, "underweight"),
)


def compute_bmi(weight: Any, height: Any) -> Outcome:
    checked = validate_inputs({"weight": weight, "height": height}, BMI_RULES)
    if not checked.ok:
        return checked.failure("bmi")
    wt = checked.values["weight"]
    ht_m = checked.values["height"] / 100
    return CalculationResult(calculator="bmi", value=wt / (ht_m * ht_m), unit="kg/m²", inputs=checked.values)


def interpret_bmi(result: CalculationResult) -> Interpretation:
    result = _require_ok(result, "bmi")
    return interpret_band(classify(result.value, BMI_BANDS))


# 2. BSA (Mosteller) ─────────────────────────────────────────────────────────
BSA_RULES: Dict[str, Rule] = {"weight": WEIGHT, "height": HEIGHT}


def compute_bsa(weight: Any, height: Any) -> Outcome:
    checked = validate_inputs({"weight": weight, "height": height}, BSA_RULES)
    if not checked.ok:
        return checked.failure("bsa")
    wt, ht_cm = checked.values["weight"], checked.values["height"]
    return CalculationResult(calculator="bsa", value=math.sqrt((wt * ht_cm) / 3600), unit="m²", inputs=checked.values)


def interpret_bsa(result: CalculationResult) -> Interpretation:
    _require_ok(result, "bsa")
    return _informational(
        "BSA is often used by clinicians for drug dosing or physiological assessments. "
        "Typical adult values range from 1.5 to 2.2 m²."
    )


# 3. eGFR (CKD-EPI 2021, race-free) ──────────────────────────────────────────
EGFR_RULES: Dict[str, Rule] = {
    "creatinine": positive("Serum creatinine", "mg/dL", "creatinine"),
    "age": AGE,
    "sex": SEX_RULE,
}

# sex → (kappa, alpha, sex factor)
_CKD_EPI_COEFFS = {
    Sex.FEMALE: (0.7, -0.241, 1.012),
    Sex.MALE: (0.9, -0.302, 1.0),
}

EGFR_BANDS = band_table(
    Band(90.0, "Stage 1", 0, "stage_1",
         "Normal or high kidney function (check for kidney damage if other signs present)."),
    Band(60.0, "Stage 2", 1, "stage_2", "Mildly decreased kidney function."),
    Band(45.0, "Stage 3a", 2, "stage_3a", "Mild to moderately decreased kidney function."),
    Band(30.0, "Stage 3b", 3, "stage_3b", "Moderate to severely decreased kidney function."),
    Band(15.0, "Stage 4", 4, "stage_4", "Severely decreased kidney function."),
    Band(-math.inf, "Stage 5", 5, "stage_5", "Kidney failure."),
)


def compute_egfr(creatinine: Any, age: Any, sex: Any) -> Outcome:
    checked = validate_inputs({"creatinine": creatinine, "age": age, "sex": sex}, EGFR_RULES)
    if not checked.ok:
        return checked.failure("ckd_epi_gfr")
    cr, age_yr = checked.values["creatinine"], checked.values["age"]
    kappa, alpha, sex_factor = _CKD_EPI_COEFFS[Sex(checked.values["sex"])]

    # min/max split: alpha applies below kappa, -1.2 above it
    ratio = cr / kappa
    term1 = min(ratio, 1.0) ** alpha
    term2 = max(ratio, 1.0) ** -1.200
    age_factor = 0.9938 ** age_yr
    egfr = 142 * term1 * term2 * age_factor * sex_factor
    return CalculationResult(calculator="ckd_epi_gfr", value=egfr, unit="mL/min/1.73m²", inputs=checked.values)


def interpret_egfr(result: CalculationResult) -> Interpretation:
    result = _require_ok(result, "ckd_epi_gfr")
    return interpret_band(classify(result.value, EGFR_BANDS))


# 4. Ideal Body Weight (Devine) ──────────────────────────────────────────────
IBW_RULES: Dict[str, Rule] = {"height": HEIGHT, "sex": SEX_RULE}


def compute_ideal_body_weight(height: Any, sex: Any) -> Outcome:
    checked = validate_inputs({"height": height, "sex": sex}, IBW_RULES)
    if not checked.ok:
        return checked.failure("ideal_body_weight")
    ht_in = checked.values["height"] / 2.54
    over_5ft = max(0.0, ht_in - 60)
    base = 50.0 if Sex(checked.values["sex"]) is Sex.MALE else 45.5
    return CalculationResult(
        calculator="ideal_body_weight", value=base + 2.3 * over_5ft, unit="kg", inputs=checked.values,
    )


def interpret_ideal_body_weight(result: CalculationResult) -> Interpretation:
    _require_ok(result, "ideal_body_weight")
    return _informational(
        "This is an estimation using the Devine formula. "
        "IBW is often used for ventilator settings or certain drug dosages."
    )


# 5. Adjusted Body Weight ────────────────────────────────────────────────────
ADJBW_RULES: Dict[str, Rule] = {
    "actual_weight": positive("Actual body weight", "kg", "weight"),
    "ideal_weight": positive("Ideal body weight", "kg", "weight"),
}
ADJBW_THRESHOLD = 1.2

_ADJBW_NOT_NEEDED = (
    "Adjusted Body Weight is typically calculated when Actual Body Weight "
    "significantly exceeds Ideal Body Weight (e.g., >120%)."
)


def compute_adjusted_body_weight(actual_weight: Any, ideal_weight: Any) -> Outcome:
    """Adjusted body weight from an already computed ideal body weight.

    Only meaningful above 120% of IBW; below that a ``NotComputable`` is
    returned rather than an error.
    """
    checked = validate_inputs({"actual_weight": actual_weight, "ideal_weight": ideal_weight}, ADJBW_RULES)
    if not checked.ok:
        return checked.failure("adjusted_body_weight")
    actual, ideal = checked.values["actual_weight"], checked.values["ideal_weight"]
    if actual <= ADJBW_THRESHOLD * ideal:
        return NotComputable(
            calculator="adjusted_body_weight",
            reason="below_threshold",
            message=_ADJBW_NOT_NEEDED,
        )
    return CalculationResult(
        calculator="adjusted_body_weight",
        value=ideal + 0.4 * (actual - ideal),
        unit="kg",
        inputs=checked.values,
    )


def interpret_adjusted_body_weight(result: Union[CalculationResult, NotComputable]) -> Interpretation:
    if isinstance(result, NotComputable) and result.calculator == "adjusted_body_weight":
        return Interpretation(label="Not applicable", severity=0, band="not_applicable", display_text=result.message)
    _require_ok(result, "adjusted_body_weight")
    return _informational(
        "AdjBW estimates a relevant body mass for dosing certain drugs in obese patients. "
        "It's used when Actual Weight significantly exceeds Ideal Weight."
    )


# 6. BMR (Mifflin-St Jeor) ───────────────────────────────────────────────────
BMR_RULES: Dict[str, Rule] = {"weight": WEIGHT, "height": HEIGHT, "age": AGE, "sex": SEX_RULE}


def compute_bmr(weight: Any, height: Any, age: Any, sex: Any) -> Outcome:
    checked = validate_inputs({"weight": weight, "height": height, "age": age, "sex": sex}, BMR_RULES)
    if not checked.ok:
        return checked.failure("bmr")
    v = checked.values
    sex_constant = 5 if Sex(v["sex"]) is Sex.MALE else -161
    bmr = 10 * v["weight"] + 6.25 * v["height"] - 5 * v["age"] + sex_constant
    return CalculationResult(calculator="bmr", value=bmr, unit="kcal/day", inputs=v)


def interpret_bmr(result: CalculationResult) -> Interpretation:
    _require_ok(result, "bmr")
    return _informational(
        "This is the estimated minimum calories your body needs at rest. "
        "Total daily energy needs depend on activity levels."
    )


# 7. Albumin-corrected calcium ───────────────────────────────────────────────
CALCIUM_RULES: Dict[str, Rule] = {
    "total_calcium": positive("Total calcium", "mg/dL", "calcium"),
    "albumin": positive("Albumin", "g/dL", "albumin"),
}
NORMAL_ALBUMIN = 4.0

_NORMAL_RANGE_NOTE = "the typical normal range (approx. 8.5-10.5 mg/dL)."
CALCIUM_BANDS = band_table(
    Band(10.5, "High", 1, "high", f"Result is above {_NORMAL_RANGE_NOTE}", inclusive=False),
    Band(8.5, "Normal", 0, "normal", f"Result is within {_NORMAL_RANGE_NOTE}"),
    Band(-math.inf, "Low", 1, "low", f"Result is below {_NORMAL_RANGE_NOTE}"),
)


def compute_corrected_calcium(total_calcium: Any, albumin: Any) -> Outcome:
    checked = validate_inputs({"total_calcium": total_calcium, "albumin": albumin}, CALCIUM_RULES)
    if not checked.ok:
        return checked.failure("calcium_correction")
    ca, alb = checked.values["total_calcium"], checked.values["albumin"]
    return CalculationResult(
        calculator="calcium_correction", value=ca + 0.8 * (NORMAL_ALBUMIN - alb), unit="mg/dL", inputs=checked.values,
    )


def interpret_corrected_calcium(result: CalculationResult) -> Interpretation:
    result = _require_ok(result, "calcium_correction")
    band = classify(result.value, CALCIUM_BANDS)
    albumin = result.inputs["albumin"]
    text = (
        f"Corrected for Albumin ({albumin:.1f} g/dL). "
        f"This estimates calcium if albumin were normal ({NORMAL_ALBUMIN:.1f} g/dL). {band.text}"
    )
    return interpret_band(band, text)


# 8. Target Heart Rate zones ─────────────────────────────────────────────────
THR_RULES: Dict[str, Rule] = {"age": positive("Age", "years", "age", lt=220)}


def compute_target_heart_rate(age: Any) -> Outcome:
    """Heart-rate zones from the age-predicted maximum (220 - age).

    Age must be below 220: at or above it the maximum is zero or negative and
    no zone exists, so such ages are rejected as invalid.
    """
    checked = validate_inputs({"age": age}, THR_RULES)
    if not checked.ok:
        return checked.failure("target_heart_rate")
    max_hr = 220 - checked.values["age"]
    # the 70% bound closes the moderate zone and opens the vigorous one
    return HeartRateZones(
        calculator="target_heart_rate",
        value=max_hr,
        unit="bpm",
        inputs=checked.values,
        moderate_min=_round_half_up(0.50 * max_hr),
        moderate_max=_round_half_up(0.70 * max_hr),
        vigorous_min=_round_half_up(0.70 * max_hr),
        vigorous_max=_round_half_up(0.85 * max_hr),
    )


def interpret_target_heart_rate(result: HeartRateZones) -> Interpretation:
    _require_ok(result, "target_heart_rate")
    return Interpretation(
        label="Target heart rate zones",
        severity=0,
        band="informational",
        display_text=(
            f"Moderate intensity (50-70%): {result.moderate_min}-{result.moderate_max} bpm. "
            f"Vigorous intensity (70-85%): {result.vigorous_min}-{result.vigorous_max} bpm."
        ),
    )


# 9. Ankle-Brachial Index ────────────────────────────────────────────────────
ABI_RULES: Dict[str, Rule] = {"abi": Rule(label="Ankle-Brachial Index")}

ABI_BANDS = band_table(
    Band(1.3, "Non-compressible arteries", 2, "non_compressible",
         "Non-compressible arteries (suggests calcification, may require further investigation)",
         inclusive=False),
    Band(1.0, "Normal", 0, "normal", "Normal"),
    Band(0.91, "Borderline", 1, "borderline", "Borderline"),
    Band(0.41, "Mild to Moderate PAD", 2, "mild_moderate_pad",
         "Mild to Moderate Peripheral Artery Disease (PAD)"),
    Band(-math.inf, "Severe PAD", 3, "severe_pad", "Severe Peripheral Artery Disease (PAD)"),
)


def interpret_abi(abi: Any) -> Union[Interpretation, ValidationFailure]:
    """Classify a raw ABI ratio. There is no compute step; any finite number is accepted."""
    checked = validate_inputs({"abi": abi}, ABI_RULES)
    if not checked.ok:
        return checked.failure("abi")
    return interpret_band(classify(checked.values["abi"], ABI_BANDS))
