# backend/cardiocare/services/food_service.py

import logging
from typing import Any, Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from cardiocare.models.database import Food, NUTRIENT_CARBS, NUTRIENT_FAT, NUTRIENT_PROTEIN
from cardiocare.schemas.agent import SearchFoodsArgs

logger = logging.getLogger(__name__)


def _servings_divisor():
    # Zero or missing servings count as one
    return func.coalesce(func.nullif(Food.servings, 0), 1)


def _per_serving_nutrient(code: str):
    return Food.total_nutrients[(code, "quantity")].as_float() / _servings_divisor()


class FoodService:
    """
    Read access to the food catalog for the assistant.

    Nutrient totals are stored per recipe; every filter and projection here
    works per serving.
    """

    def __init__(self, db: Session):
        self.db = db

    def search_foods(self, criteria: SearchFoodsArgs) -> List[Food]:
        query = self.db.query(Food)

        if criteria.name:
            query = query.filter(Food.recipe_name.ilike(f"%{criteria.name}%"))

        per_serving_calories = Food.calories / _servings_divisor()
        bounds = [
            (per_serving_calories, criteria.min_calories, criteria.max_calories),
            (_per_serving_nutrient(NUTRIENT_PROTEIN), criteria.min_protein, criteria.max_protein),
            (_per_serving_nutrient(NUTRIENT_CARBS), criteria.min_carbs, criteria.max_carbs),
            (_per_serving_nutrient(NUTRIENT_FAT), criteria.min_fat, criteria.max_fat),
        ]
        for expression, minimum, maximum in bounds:
            if minimum is not None:
                query = query.filter(expression >= minimum)
            if maximum is not None:
                query = query.filter(expression <= maximum)

        foods = query.order_by(Food.recipe_name).limit(criteria.limit).all()
        logger.info(f"Food search name={criteria.name!r} returned {len(foods)} rows")
        return foods

    @staticmethod
    def simplify(food: Food) -> Dict[str, Any]:
        servings = food.servings or 1
        nutrients = food.total_nutrients or {}

        def per_serving(code: str) -> float:
            quantity = (nutrients.get(code) or {}).get("quantity") or 0
            return round(quantity / servings, 1)

        return {
            "name": food.recipe_name,
            "per_serving": {
                "calories": round((food.calories or 0) / servings),
                "protein_g": per_serving(NUTRIENT_PROTEIN),
                "carbs_g": per_serving(NUTRIENT_CARBS),
                "fat_g": per_serving(NUTRIENT_FAT),
            },
            "servings_per_recipe": food.servings,
            "link": food.url,
        }
