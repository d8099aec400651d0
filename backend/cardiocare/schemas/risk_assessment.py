# backend/cardiocare/schemas/risk_assessment.py

from pydantic import BaseModel, Field
from typing import Optional, Tuple

from cardiocare.services.risk_constants import (
    Algorithm,
    CholesterolUnit,
    Gender,
    HealthRiskFactor,
    RiskLevel,
)


class RiskAssessmentInput(BaseModel):
    age: int = Field(..., ge=0, le=120)
    gender: Gender
    is_smoker: bool = False
    is_diabetic: bool = False
    is_treated_hypertension: bool = False
    systolic_bp: int = Field(..., gt=0, le=300, description="mmHg")
    total_cholesterol: float = Field(..., gt=0)
    total_cholesterol_unit: CholesterolUnit = CholesterolUnit.MG_DL
    hdl_cholesterol: float = Field(..., gt=0)
    hdl_cholesterol_unit: CholesterolUnit = CholesterolUnit.MG_DL
    weight_kg: Optional[float] = Field(None, gt=0)  # youth branch only
    height_cm: Optional[float] = Field(None, gt=0)  # youth branch only


class RiskAssessmentResult(BaseModel):
    risk_score: float
    risk_percentage: float = Field(..., ge=0, le=100)
    is_high_risk: bool
    risk_level: RiskLevel
    algorithm_used: Algorithm
    risk_factors: Tuple[HealthRiskFactor, ...] = ()

    class Config:
        frozen = True
