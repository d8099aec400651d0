#/backend/cardiocare/models/database.py
from sqlalchemy import create_engine, Column, String, Float, JSON, DateTime, Text
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
from cardiocare.core.config import settings

Base = declarative_base()

# Create engine
engine = create_engine(settings.database_url, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Nutrient codes used inside Food.total_nutrients
NUTRIENT_PROTEIN = "PROCNT"
NUTRIENT_CARBS = "CHOCDF"
NUTRIENT_FAT = "FAT"


class Food(Base):
    """Recipe-level nutrition record. Nutrient totals cover the whole recipe, not one serving."""
    __tablename__ = "foods"

    hash_id = Column(String(64), primary_key=True)
    recipe_name = Column(String(255), index=True, nullable=False)
    source = Column(String(255), nullable=True)
    url = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    servings = Column(Float, nullable=True)
    calories = Column(Float, nullable=True)
    total_weight_g = Column(Float, nullable=True)
    diet_labels = Column(JSON, default=list)  # ["Balanced", "Low-Sodium"]
    health_labels = Column(JSON, default=list)
    cautions = Column(JSON, default=list)
    cuisine_type = Column(JSON, default=list)
    meal_type = Column(JSON, default=list)
    dish_type = Column(JSON, default=list)
    ingredient_lines = Column(JSON, default=list)
    total_nutrients = Column(JSON, default=dict)  # {"PROCNT": {"label": "Protein", "quantity": 42.1, "unit": "g"}}
    daily_values = Column(JSON, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
