"""Clinical biometric and cardiovascular risk calculators."""

from .calculators import (
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
from .framingham import ATP_III_TABLES, FraminghamTables, compute_framingham, interpret_framingham
from .models import (
    CalculationResult,
    FraminghamResult,
    HeartRateZones,
    Interpretation,
    NotComputable,
    Sex,
    ValidationFailure,
)
from .tools import CALCULATORS, calc_info, execute_batch, execute_calc, list_calculators

__version__ = "0.1.0"
