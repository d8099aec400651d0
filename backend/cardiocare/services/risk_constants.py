# backend/cardiocare/services/risk_constants.py
"""
Enums, coefficients and point tables used by the risk assessment engine.

Everything here is built once at import time and never mutated.
"""
import enum
from dataclasses import dataclass

from cardiocare.services.range_table import RangeTable


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class CholesterolUnit(str, enum.Enum):
    MG_DL = "mg/dL"
    MMOL_L = "mmol/L"


class Algorithm(str, enum.Enum):
    YOUTH_LIFETIME = "youth_lifetime"
    ASCVD = "ascvd"
    FRAMINGHAM = "framingham"


class RiskLevel(str, enum.Enum):
    LOW = "low"
    BORDERLINE = "borderline"
    MODERATE = "moderate"
    HIGH = "high"
    HIGH_LIFETIME = "high_lifetime"
    LOW_LIFETIME = "low_lifetime"


class HealthRiskFactor(str, enum.Enum):
    SMOKER = "smoker"
    DIABETIC = "diabetic"
    TREATED_HYPERTENSION = "treated_hypertension"
    HIGH_SYSTOLIC_BP = "high_systolic_bp"
    HIGH_CHOLESTEROL = "high_cholesterol"
    OBESITY = "obesity"


MMOL_TO_MG_DL = 38.67

# Age bands (inclusive)
YOUTH_MAX_AGE = 19
FRAMINGHAM_MAX_AGE = 39
ASCVD_MAX_AGE = 79
FRAMINGHAM_TABLE_MAX_AGE = 79

# High-risk thresholds, in percent
ASCVD_HIGH_RISK_THRESHOLD = 7.5
FRAMINGHAM_HIGH_RISK_THRESHOLD = 20.0
YOUTH_HIGH_RISK_THRESHOLD = 30.0

# Tagging thresholds shared by all algorithms
HIGH_SYSTOLIC_BP_MMHG = 140
HIGH_TOTAL_CHOLESTEROL_MG_DL = 240

# Youth heuristic
YOUTH_CHOLESTEROL_LIMIT = 200
YOUTH_SYSTOLIC_LIMIT = 130
YOUTH_BMI_LIMIT = 25
YOUTH_SMOKER_POINTS = 2
YOUTH_PERCENT_BY_FACTORS = {0: 5.0, 1: 20.0, 2: 39.0}
YOUTH_PERCENT_MANY_FACTORS = 50.0
YOUTH_PERCENT_SMOKER_MANY_FACTORS = 65.0


# ==================== ASCVD (Pooled Cohort Equations) ====================

@dataclass(frozen=True)
class AscvdCoefficients:
    ln_age: float
    ln_age_squared: float
    ln_total_chol: float
    ln_age_x_ln_total_chol: float
    ln_hdl: float
    ln_age_x_ln_hdl: float
    ln_treated_sbp: float
    ln_age_x_ln_treated_sbp: float
    ln_untreated_sbp: float
    ln_age_x_ln_untreated_sbp: float
    smoker: float
    ln_age_x_smoker: float
    diabetes: float
    baseline_survival: float
    mean_sum: float


# 2013 ACC/AHA equations, white cohort
ASCVD_COEFFICIENTS = {
    Gender.MALE: AscvdCoefficients(
        ln_age=12.344,
        ln_age_squared=0.0,
        ln_total_chol=11.853,
        ln_age_x_ln_total_chol=-2.664,
        ln_hdl=-7.990,
        ln_age_x_ln_hdl=1.769,
        ln_treated_sbp=1.797,
        ln_age_x_ln_treated_sbp=0.0,
        ln_untreated_sbp=1.764,
        ln_age_x_ln_untreated_sbp=0.0,
        smoker=7.837,
        ln_age_x_smoker=-1.795,
        diabetes=0.658,
        baseline_survival=0.9144,
        mean_sum=61.18,
    ),
    Gender.FEMALE: AscvdCoefficients(
        ln_age=-29.799,
        ln_age_squared=4.884,
        ln_total_chol=13.540,
        ln_age_x_ln_total_chol=-3.114,
        ln_hdl=-13.578,
        ln_age_x_ln_hdl=3.149,
        ln_treated_sbp=2.019,
        ln_age_x_ln_treated_sbp=0.0,
        ln_untreated_sbp=1.957,
        ln_age_x_ln_untreated_sbp=0.0,
        smoker=7.574,
        ln_age_x_smoker=-1.665,
        diabetes=0.661,
        baseline_survival=0.9665,
        mean_sum=-29.18,
    ),
}

# Age used in the smoking interaction is capped at 70
ASCVD_SMOKER_INTERACTION_MAX_AGE = 70


# ==================== FRAMINGHAM (points system) ====================

@dataclass(frozen=True)
class FraminghamTables:
    age_points: RangeTable
    cholesterol_points: RangeTable  # age band -> RangeTable(total cholesterol -> points)
    smoker_points: RangeTable
    hdl_points: RangeTable
    untreated_sbp_points: RangeTable
    treated_sbp_points: RangeTable
    diabetes_points: int
    percent_by_points: RangeTable


_AGE_BANDS = ("20-34", "35-39", "40-44", "45-49", "50-54", "55-59", "60-64", "65-69", "70-74", "75-79")
_DECADE_BANDS = ("20-39", "40-49", "50-59", "60-69", "70-79")
_CHOLESTEROL_BANDS = ("<160", "160-199", "200-239", "240-279", ">=280")
_SBP_BANDS = ("<120", "120-129", "130-139", "140-159", ">=160")

_HDL_POINTS = RangeTable("hdl", [(">=60", -1), ("50-59", 0), ("40-49", 1), ("<40", 2)])


def _cholesterol_by_decade(gender: str, rows):
    return RangeTable(
        f"{gender}.age_cholesterol",
        [
            (decade, RangeTable(f"{gender}.cholesterol[{decade}]", list(zip(_CHOLESTEROL_BANDS, points))))
            for decade, points in zip(_DECADE_BANDS, rows)
        ],
    )


def _percent_table(gender: str, below_one_key: str, first_mapped: int):
    # "<1" is reported as 0.5 and ">=30" as 30
    entries = [(below_one_key, 0.5)]
    entries += [(str(p), 0.5) for p in range(first_mapped, 9)]
    entries += [("9-12", 1.0), ("13-14", 2.0), ("15", 3.0), ("16", 4.0), ("17", 5.0),
                ("18", 6.0), ("19", 8.0), ("20", 11.0), ("21", 14.0), ("22", 17.0),
                ("23", 22.0), ("24", 27.0), (">=25", 30.0)]
    return RangeTable(f"{gender}.percent", entries)


FRAMINGHAM_TABLES = {
    Gender.MALE: FraminghamTables(
        age_points=RangeTable("male.age", list(zip(_AGE_BANDS, (-9, -4, 0, 3, 6, 8, 10, 11, 12, 13)))),
        cholesterol_points=_cholesterol_by_decade("male", (
            (0, 4, 7, 9, 11),
            (0, 3, 5, 6, 8),
            (0, 2, 3, 4, 5),
            (0, 1, 1, 2, 3),
            (0, 0, 0, 1, 1),
        )),
        smoker_points=RangeTable("male.smoker", list(zip(_DECADE_BANDS, (8, 5, 3, 1, 1)))),
        hdl_points=_HDL_POINTS,
        untreated_sbp_points=RangeTable("male.sbp_untreated", list(zip(_SBP_BANDS, (0, 0, 1, 1, 2)))),
        treated_sbp_points=RangeTable("male.sbp_treated", list(zip(_SBP_BANDS, (0, 1, 2, 2, 3)))),
        diabetes_points=2,
        percent_by_points=_percent_table("male", "<0", 0),
    ),
    Gender.FEMALE: FraminghamTables(
        age_points=RangeTable("female.age", list(zip(_AGE_BANDS, (-7, -3, 0, 3, 6, 8, 10, 12, 14, 16)))),
        cholesterol_points=_cholesterol_by_decade("female", (
            (0, 4, 8, 11, 13),
            (0, 3, 6, 8, 10),
            (0, 2, 4, 5, 7),
            (0, 1, 2, 3, 4),
            (0, 1, 1, 2, 2),
        )),
        smoker_points=RangeTable("female.smoker", list(zip(_DECADE_BANDS, (9, 7, 4, 2, 1)))),
        hdl_points=_HDL_POINTS,
        untreated_sbp_points=RangeTable("female.sbp_untreated", list(zip(_SBP_BANDS, (0, 1, 2, 3, 4)))),
        treated_sbp_points=RangeTable("female.sbp_treated", list(zip(_SBP_BANDS, (0, 3, 4, 5, 6)))),
        diabetes_points=4,
        percent_by_points=_percent_table("female", "<9", 9),
    ),
}
