from __future__ import annotations

import pytest

from cardiacalc.calculators import (
    compute_adjusted_body_weight,
    compute_bmi,
    compute_bmr,
    compute_bsa,
    compute_corrected_calcium,
    compute_egfr,
    compute_ideal_body_weight,
    compute_target_heart_rate,
    interpret_abi,
    interpret_adjusted_body_weight,
    interpret_bmi,
    interpret_bmr,
    interpret_bsa,
    interpret_corrected_calcium,
    interpret_egfr,
    interpret_ideal_body_weight,
    interpret_target_heart_rate,
)
from cardiacalc.models import CalculationResult, HeartRateZones, NotComputable, ValidationFailure


# ── BMI ──────────────────────────────────────────────────────────────────────

def test_bmi_example() -> None:
    result = compute_bmi(70, 175)
    assert isinstance(result, CalculationResult)
    assert result.value == pytest.approx(22.857, abs=1e-3)
    assert result.unit == "kg/m²"
    assert interpret_bmi(result).label == "Normal range"


@pytest.mark.parametrize(
    "weight, label, severity",
    [
        (18.4, "Underweight", 1),
        (18.5, "Normal range", 0),
        (24.99, "Normal range", 0),
        (25.0, "Overweight", 1),
        (29.99, "Overweight", 1),
        (30.0, "Obese", 2),
    ],
)
def test_bmi_band_edges_belong_to_upper_band(weight, label, severity) -> None:
    # height 100 cm makes BMI equal to the weight
    interp = interpret_bmi(compute_bmi(weight, 100))
    assert (interp.label, interp.severity) == (label, severity)


def test_bmi_invalid_inputs() -> None:
    result = compute_bmi(0, -5)
    assert isinstance(result, ValidationFailure)
    assert result.fields() == ["weight", "height"]


def test_bmi_oversized_integer_is_a_field_error() -> None:
    result = compute_bmi(10**400, 175)
    assert isinstance(result, ValidationFailure)
    assert [(e.field, e.constraint) for e in result.errors] == [("weight", "finite")]


def test_interpret_rejects_other_results() -> None:
    with pytest.raises(TypeError):
        interpret_bmi(compute_bsa(70, 175))
    with pytest.raises(TypeError):
        interpret_bmi(compute_bmi(0, 175))


# ── BSA ──────────────────────────────────────────────────────────────────────

def test_bsa_mosteller() -> None:
    result = compute_bsa(70, 175)
    assert result.value == pytest.approx(1.84466, abs=1e-5)
    assert result.unit == "m²"
    interp = interpret_bsa(result)
    assert interp.band == "informational"
    assert "1.5 to 2.2 m²" in interp.display_text


# ── eGFR ─────────────────────────────────────────────────────────────────────

def test_egfr_male_example() -> None:
    result = compute_egfr(1.1, 50, "male")
    expected = 142 * (1.1 / 0.9) ** -1.200 * 0.9938 ** 50
    assert result.value == pytest.approx(expected)
    assert result.value == pytest.approx(81.8, abs=0.1)
    assert result.unit == "mL/min/1.73m²"
    assert interpret_egfr(result).label == "Stage 2"


def test_egfr_female_below_kappa_uses_alpha() -> None:
    result = compute_egfr(0.6, 40, "female")
    expected = 142 * (0.6 / 0.7) ** -0.241 * 0.9938 ** 40 * 1.012
    assert result.value == pytest.approx(expected)
    assert interpret_egfr(result).label == "Stage 1"


def test_egfr_at_kappa_both_terms_are_one() -> None:
    result = compute_egfr(0.9, 60, "male")
    assert result.value == pytest.approx(142 * 0.9938 ** 60)


def test_egfr_above_kappa_does_not_use_alpha() -> None:
    result = compute_egfr(2.0, 60, "male")
    single_power = 142 * (2.0 / 0.9) ** -0.302 * 0.9938 ** 60
    assert result.value == pytest.approx(142 * (2.0 / 0.9) ** -1.200 * 0.9938 ** 60)
    assert result.value != pytest.approx(single_power)


@pytest.mark.parametrize(
    "creatinine, stage, severity",
    [
        (0.5, "Stage 1", 0),
        (1.1, "Stage 2", 1),
        (1.5, "Stage 3a", 2),
        (2.0, "Stage 3b", 3),
        (3.0, "Stage 4", 4),
        (6.0, "Stage 5", 5),
    ],
)
def test_egfr_stages(creatinine, stage, severity) -> None:
    interp = interpret_egfr(compute_egfr(creatinine, 50, "male"))
    assert (interp.label, interp.severity) == (stage, severity)
    assert interp.display_text


def test_egfr_requires_sex() -> None:
    result = compute_egfr(1.0, 50, None)
    assert isinstance(result, ValidationFailure)
    assert result.fields() == ["sex"]


def test_egfr_accepts_si_creatinine() -> None:
    conventional = compute_egfr(1.0, 50, "female")
    si = compute_egfr({"value": 88.4, "unit": "umol/L"}, 50, "female")
    assert si.value == pytest.approx(conventional.value)


# ── IBW / AdjBW ──────────────────────────────────────────────────────────────

def test_ibw_devine() -> None:
    male = compute_ideal_body_weight(175, "male")
    female = compute_ideal_body_weight(175, "female")
    assert male.value == pytest.approx(50 + 2.3 * (175 / 2.54 - 60))
    assert female.value == pytest.approx(45.5 + 2.3 * (175 / 2.54 - 60))
    assert male.unit == "kg"
    assert "Devine" in interpret_ideal_body_weight(male).display_text


def test_ibw_short_patients_floor_at_base_weight() -> None:
    assert compute_ideal_body_weight(140, "male").value == 50.0
    assert compute_ideal_body_weight(140, "female").value == 45.5


def test_adjbw_example() -> None:
    result = compute_adjusted_body_weight(140, 92.3)
    assert isinstance(result, CalculationResult)
    assert result.value == pytest.approx(92.3 + 0.4 * (140 - 92.3))
    assert result.value == pytest.approx(111.4, abs=0.05)
    assert interpret_adjusted_body_weight(result).band == "informational"


def test_adjbw_not_computable_at_or_below_threshold() -> None:
    ideal = 70.0
    for actual in (60.0, 1.2 * ideal):
        result = compute_adjusted_body_weight(actual, ideal)
        assert isinstance(result, NotComputable)
        assert result.reason == "below_threshold"
        assert "120%" in result.message
    interp = interpret_adjusted_body_weight(compute_adjusted_body_weight(60, ideal))
    assert interp.band == "not_applicable"


def test_adjbw_requires_ideal_weight() -> None:
    result = compute_adjusted_body_weight(140, None)
    assert isinstance(result, ValidationFailure)
    assert result.fields() == ["ideal_weight"]


def test_adjbw_chains_from_ibw() -> None:
    ibw = compute_ideal_body_weight(175, "male")
    result = compute_adjusted_body_weight(140, ibw.value)
    assert result.value == pytest.approx(ibw.value + 0.4 * (140 - ibw.value))


# ── BMR ──────────────────────────────────────────────────────────────────────

def test_bmr_mifflin_st_jeor() -> None:
    assert compute_bmr(70, 175, 30, "male").value == pytest.approx(1648.75)
    female = compute_bmr(70, 175, 30, "female")
    assert female.value == pytest.approx(1482.75)
    assert female.unit == "kcal/day"
    assert "at rest" in interpret_bmr(female).display_text


def test_bmr_rejects_zero_age() -> None:
    result = compute_bmr(70, 175, 0, "male")
    assert isinstance(result, ValidationFailure)
    assert result.fields() == ["age"]


# ── Corrected calcium ────────────────────────────────────────────────────────

def test_corrected_calcium_echoes_albumin() -> None:
    result = compute_corrected_calcium(8.0, 3.0)
    assert result.value == pytest.approx(8.8)
    interp = interpret_corrected_calcium(result)
    assert interp.label == "Normal"
    assert "Corrected for Albumin (3.0 g/dL)" in interp.display_text
    assert "within the typical normal range" in interp.display_text


@pytest.mark.parametrize("total", [0.1, 7.3, 8.5, 9.99, 10.5, 14.2])
def test_corrected_calcium_is_unchanged_at_normal_albumin(total) -> None:
    assert compute_corrected_calcium(total, 4.0).value == total


@pytest.mark.parametrize(
    "total, label",
    [(8.4, "Low"), (8.5, "Normal"), (10.5, "Normal"), (10.6, "High")],
)
def test_corrected_calcium_bands_inclusive_normal(total, label) -> None:
    assert interpret_corrected_calcium(compute_corrected_calcium(total, 4.0)).label == label


def test_corrected_calcium_albumin_rounded_to_one_place() -> None:
    interp = interpret_corrected_calcium(compute_corrected_calcium(9.0, 2.46))
    assert "(2.5 g/dL)" in interp.display_text


# ── Target heart rate ────────────────────────────────────────────────────────

def test_thr_zones() -> None:
    result = compute_target_heart_rate(20)
    assert isinstance(result, HeartRateZones)
    assert result.value == 200
    assert (result.moderate_min, result.moderate_max) == (100, 140)
    assert (result.vigorous_min, result.vigorous_max) == (140, 170)
    assert "100-140 bpm" in interpret_target_heart_rate(result).display_text


def test_thr_rounds_half_up() -> None:
    # 50% of 197 is exactly 98.5
    assert compute_target_heart_rate(23).moderate_min == 99


@pytest.mark.parametrize("age", [0, -1, 220, 230])
def test_thr_rejects_out_of_range_age(age) -> None:
    assert isinstance(compute_target_heart_rate(age), ValidationFailure)


# ── ABI ──────────────────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "abi, band",
    [
        (1.31, "non_compressible"),
        (1.3, "normal"),
        (1.0, "normal"),
        (0.99, "borderline"),
        (0.91, "borderline"),
        (0.9, "mild_moderate_pad"),
        (0.41, "mild_moderate_pad"),
        (0.4, "severe_pad"),
        (0.0, "severe_pad"),
        (-0.2, "severe_pad"),
    ],
)
def test_abi_bands(abi, band) -> None:
    assert interpret_abi(abi).band == band


def test_abi_rejects_non_numbers() -> None:
    result = interpret_abi("n/a")
    assert isinstance(result, ValidationFailure)
    assert result.errors[0].constraint == "number"
