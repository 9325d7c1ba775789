"""Display rounding for calculator results. Computation never rounds; this does."""

from __future__ import annotations

from typing import Dict

from .models import CalculationResult, FraminghamResult, HeartRateZones

DISCLAIMER = (
    "These calculators are intended for informational and educational purposes only and do not "
    "substitute for professional medical diagnosis, advice, or treatment. Normal values and risk "
    "interpretations can vary. Always consult with a qualified healthcare professional for accurate "
    "interpretation and recommendations. Framingham Risk Score calculations are based on specific "
    "population data and may have limitations."
)

# calculator id → decimal places shown
DISPLAY_PRECISION: Dict[str, int] = {
    "bmi": 1,
    "bsa": 2,
    "ckd_epi_gfr": 0,
    "ideal_body_weight": 1,
    "adjusted_body_weight": 1,
    "bmr": 0,
    "calcium_correction": 1,
}
DEFAULT_PRECISION = 2


def format_value(result: CalculationResult) -> str:
    if isinstance(result, HeartRateZones):
        return (
            f"Moderate: {result.moderate_min}-{result.moderate_max} bpm, "
            f"Vigorous: {result.vigorous_min}-{result.vigorous_max} bpm"
        )
    if isinstance(result, FraminghamResult):
        return f"{result.points} points (10-year risk {result.risk_label})"
    places = DISPLAY_PRECISION.get(result.calculator, DEFAULT_PRECISION)
    return f"{result.value:.{places}f} {result.unit}"
