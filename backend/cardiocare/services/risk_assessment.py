# backend/cardiocare/services/risk_assessment.py

import logging
import math
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError

from cardiocare.core.exceptions import RiskValidationError
from cardiocare.schemas.risk_assessment import RiskAssessmentInput, RiskAssessmentResult
from cardiocare.services.risk_constants import (
    ASCVD_COEFFICIENTS,
    ASCVD_HIGH_RISK_THRESHOLD,
    ASCVD_MAX_AGE,
    ASCVD_SMOKER_INTERACTION_MAX_AGE,
    FRAMINGHAM_HIGH_RISK_THRESHOLD,
    FRAMINGHAM_MAX_AGE,
    FRAMINGHAM_TABLE_MAX_AGE,
    FRAMINGHAM_TABLES,
    HIGH_SYSTOLIC_BP_MMHG,
    HIGH_TOTAL_CHOLESTEROL_MG_DL,
    MMOL_TO_MG_DL,
    YOUTH_BMI_LIMIT,
    YOUTH_CHOLESTEROL_LIMIT,
    YOUTH_HIGH_RISK_THRESHOLD,
    YOUTH_MAX_AGE,
    YOUTH_PERCENT_BY_FACTORS,
    YOUTH_PERCENT_MANY_FACTORS,
    YOUTH_PERCENT_SMOKER_MANY_FACTORS,
    YOUTH_SMOKER_POINTS,
    YOUTH_SYSTOLIC_LIMIT,
    Algorithm,
    CholesterolUnit,
    Gender,
    HealthRiskFactor,
    RiskLevel,
)

logger = logging.getLogger(__name__)


def select_algorithm(age: int) -> Algorithm:
    """Every age maps to exactly one algorithm; 80+ falls back to Framingham."""
    if age <= YOUTH_MAX_AGE:
        return Algorithm.YOUTH_LIFETIME
    if age <= FRAMINGHAM_MAX_AGE:
        return Algorithm.FRAMINGHAM
    if age <= ASCVD_MAX_AGE:
        return Algorithm.ASCVD
    return Algorithm.FRAMINGHAM


def to_mg_dl(value: float, unit: CholesterolUnit) -> float:
    if unit == CholesterolUnit.MMOL_L:
        return value * MMOL_TO_MG_DL
    return value


def normalize_units(data: RiskAssessmentInput) -> RiskAssessmentInput:
    """Return a copy with both cholesterol values declared in mg/dL."""
    return data.model_copy(update={
        "total_cholesterol": to_mg_dl(data.total_cholesterol, data.total_cholesterol_unit),
        "total_cholesterol_unit": CholesterolUnit.MG_DL,
        "hdl_cholesterol": to_mg_dl(data.hdl_cholesterol, data.hdl_cholesterol_unit),
        "hdl_cholesterol_unit": CholesterolUnit.MG_DL,
    })


def framingham_percentage(points: int, gender: Gender) -> float:
    return FRAMINGHAM_TABLES[Gender(gender)].percent_by_points.lookup(points)


def collect_risk_factors(data: RiskAssessmentInput) -> List[HealthRiskFactor]:
    """Reporting tags shared by every algorithm (expects mg/dL input)."""
    factors = []
    if data.is_smoker:
        factors.append(HealthRiskFactor.SMOKER)
    if data.is_diabetic:
        factors.append(HealthRiskFactor.DIABETIC)
    if data.is_treated_hypertension:
        factors.append(HealthRiskFactor.TREATED_HYPERTENSION)
    if data.systolic_bp >= HIGH_SYSTOLIC_BP_MMHG:
        factors.append(HealthRiskFactor.HIGH_SYSTOLIC_BP)
    if data.total_cholesterol >= HIGH_TOTAL_CHOLESTEROL_MG_DL:
        factors.append(HealthRiskFactor.HIGH_CHOLESTEROL)
    return factors


class RiskAssessmentEngine:
    """
    Cardiovascular risk scoring.

    Picks an algorithm from the patient's age, normalizes cholesterol units,
    computes score and percentage, and classifies the result. Stateless, so a
    single instance can be shared across requests.
    """

    def calculate_risk(self, data: Union[RiskAssessmentInput, Mapping[str, Any]]) -> RiskAssessmentResult:
        if not isinstance(data, RiskAssessmentInput):
            try:
                data = RiskAssessmentInput.model_validate(data)
            except ValidationError as e:
                raise RiskValidationError(
                    "Invalid risk assessment input",
                    details={"errors": _format_errors(e)}
                ) from e

        data = normalize_units(data)
        algorithm = select_algorithm(data.age)
        logger.debug(f"Scoring age={data.age} gender={data.gender.value} with {algorithm.value}")

        if algorithm == Algorithm.YOUTH_LIFETIME:
            return self._calculate_youth(data)
        if algorithm == Algorithm.ASCVD:
            return self._calculate_ascvd(data)
        return self._calculate_framingham(data)

    # ==================== ASCVD ====================

    def _calculate_ascvd(self, data: RiskAssessmentInput) -> RiskAssessmentResult:
        c = ASCVD_COEFFICIENTS[data.gender]

        ln_age = math.log(data.age)
        ln_total_chol = math.log(data.total_cholesterol)
        ln_hdl = math.log(data.hdl_cholesterol)
        ln_sbp = math.log(data.systolic_bp)

        individual_sum = (
            c.ln_age * ln_age
            + c.ln_age_squared * ln_age ** 2
            + c.ln_total_chol * ln_total_chol
            + c.ln_age_x_ln_total_chol * ln_age * ln_total_chol
            + c.ln_hdl * ln_hdl
            + c.ln_age_x_ln_hdl * ln_age * ln_hdl
        )

        if data.is_treated_hypertension:
            individual_sum += c.ln_treated_sbp * ln_sbp + c.ln_age_x_ln_treated_sbp * ln_age * ln_sbp
        else:
            individual_sum += c.ln_untreated_sbp * ln_sbp + c.ln_age_x_ln_untreated_sbp * ln_age * ln_sbp

        if data.is_smoker:
            smoker_age = math.log(min(data.age, ASCVD_SMOKER_INTERACTION_MAX_AGE))
            individual_sum += c.smoker + c.ln_age_x_smoker * smoker_age

        if data.is_diabetic:
            individual_sum += c.diabetes

        risk = 1 - c.baseline_survival ** math.exp(individual_sum - c.mean_sum)
        percentage = round(min(max(risk, 0.0), 1.0) * 100, 2)

        if percentage < 5:
            level = RiskLevel.LOW
        elif percentage < ASCVD_HIGH_RISK_THRESHOLD:
            level = RiskLevel.BORDERLINE
        elif percentage < 20:
            level = RiskLevel.MODERATE
        else:
            level = RiskLevel.HIGH

        return RiskAssessmentResult(
            risk_score=round(individual_sum, 4),
            risk_percentage=percentage,
            is_high_risk=percentage >= ASCVD_HIGH_RISK_THRESHOLD,
            risk_level=level,
            algorithm_used=Algorithm.ASCVD,
            risk_factors=tuple(collect_risk_factors(data)),
        )

    # ==================== FRAMINGHAM ====================

    def _calculate_framingham(self, data: RiskAssessmentInput) -> RiskAssessmentResult:
        tables = FRAMINGHAM_TABLES[data.gender]
        # Oldest band covers everyone past the end of the tables
        age = min(data.age, FRAMINGHAM_TABLE_MAX_AGE)

        points = tables.age_points.lookup(age)
        points += tables.cholesterol_points.lookup(age).lookup(data.total_cholesterol)
        if data.is_smoker:
            points += tables.smoker_points.lookup(age)
        points += tables.hdl_points.lookup(data.hdl_cholesterol)

        sbp_table = tables.treated_sbp_points if data.is_treated_hypertension else tables.untreated_sbp_points
        points += sbp_table.lookup(data.systolic_bp)

        if data.is_diabetic:
            points += tables.diabetes_points

        percentage = tables.percent_by_points.lookup(points)

        if percentage < 10:
            level = RiskLevel.LOW
        elif percentage < FRAMINGHAM_HIGH_RISK_THRESHOLD:
            level = RiskLevel.MODERATE
        else:
            level = RiskLevel.HIGH

        return RiskAssessmentResult(
            risk_score=points,
            risk_percentage=percentage,
            is_high_risk=percentage >= FRAMINGHAM_HIGH_RISK_THRESHOLD,
            risk_level=level,
            algorithm_used=Algorithm.FRAMINGHAM,
            risk_factors=tuple(collect_risk_factors(data)),
        )

    # ==================== YOUTH / LIFETIME ====================

    def _calculate_youth(self, data: RiskAssessmentInput) -> RiskAssessmentResult:
        count = 0
        factors = collect_risk_factors(data)

        if data.total_cholesterol > YOUTH_CHOLESTEROL_LIMIT:
            count += 1
            _add_factor(factors, HealthRiskFactor.HIGH_CHOLESTEROL)
        if data.systolic_bp > YOUTH_SYSTOLIC_LIMIT:
            count += 1
            _add_factor(factors, HealthRiskFactor.HIGH_SYSTOLIC_BP)
        if data.is_smoker:
            count += YOUTH_SMOKER_POINTS
        if data.weight_kg and data.height_cm:
            height_m = data.height_cm / 100
            bmi = data.weight_kg / (height_m * height_m)
            if bmi > YOUTH_BMI_LIMIT:
                count += 1
                _add_factor(factors, HealthRiskFactor.OBESITY)

        if data.is_smoker and count >= 3:
            percentage = YOUTH_PERCENT_SMOKER_MANY_FACTORS
        else:
            percentage = YOUTH_PERCENT_BY_FACTORS.get(count, YOUTH_PERCENT_MANY_FACTORS)

        return RiskAssessmentResult(
            risk_score=count,
            risk_percentage=percentage,
            is_high_risk=percentage > YOUTH_HIGH_RISK_THRESHOLD,
            risk_level=RiskLevel.HIGH_LIFETIME if count >= 2 else RiskLevel.LOW_LIFETIME,
            algorithm_used=Algorithm.YOUTH_LIFETIME,
            risk_factors=tuple(factors),
        )


def _add_factor(factors: List[HealthRiskFactor], factor: HealthRiskFactor):
    if factor not in factors:
        factors.append(factor)


def _format_errors(error: ValidationError) -> List[Dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]
