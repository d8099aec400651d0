# backend/cardiocare/schemas/agent.py

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Intent(str, Enum):
    GREETING = "GREETING"
    OFF_TOPIC = "OFF_TOPIC"
    MEDICAL = "MEDICAL"


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ParsedAgentReply(BaseModel):
    response: str
    suggested_actions: List[str] = Field(..., min_length=1, max_length=2)


# ==================== TOOLS ====================

class ToolName(str, Enum):
    GET_SYSTEM_TIME = "get_system_time"
    QUERY_DATABASE = "query_database"
    GET_DATABASE_SCHEMA = "get_database_schema"
    SEARCH_FOODS = "search_foods"


class ToolCallRequest(BaseModel):
    name: str  # kept as str so unknown names reach the executor and come back as errors
    arguments: Dict[str, Any] = Field(default_factory=dict)
    call_id: str = ""


class ToolCallResult(BaseModel):
    name: str
    call_id: str = ""
    content: str
    is_error: bool = False


class NoArgs(BaseModel):
    pass


class QueryDatabaseArgs(BaseModel):
    query: str = Field(..., description="The SQL SELECT query to execute.")


class SearchFoodsArgs(BaseModel):
    """Per-serving nutrition filters. Accepts camelCase and snake_case keys."""
    name: Optional[str] = Field(None, description="Part of the recipe name, e.g. 'chicken' or 'salad'.")
    limit: int = Field(5, description="Maximum number of results (default 5).")
    min_calories: Optional[float] = Field(None, alias="minCalories", description="Minimum calories per serving.")
    max_calories: Optional[float] = Field(None, alias="maxCalories", description="Maximum calories per serving.")
    min_protein: Optional[float] = Field(None, alias="minProtein", description="Minimum protein (g) per serving.")
    max_protein: Optional[float] = Field(None, alias="maxProtein", description="Maximum protein (g) per serving.")
    min_carbs: Optional[float] = Field(None, alias="minCarbs", description="Minimum carbohydrates (g) per serving.")
    max_carbs: Optional[float] = Field(None, alias="maxCarbs", description="Maximum carbohydrates (g) per serving.")
    min_fat: Optional[float] = Field(None, alias="minFat", description="Minimum fat (g) per serving.")
    max_fat: Optional[float] = Field(None, alias="maxFat", description="Maximum fat (g) per serving.")

    class Config:
        populate_by_name = True

    @field_validator(
        "min_calories", "max_calories", "min_protein", "max_protein",
        "min_carbs", "max_carbs", "min_fat", "max_fat",
        mode="before",
    )
    @classmethod
    def coerce_number(cls, v):
        # Models often send numbers as strings; anything unparseable means "not provided"
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, (int, float)):
            return v
        try:
            return float(str(v).strip())
        except ValueError:
            return None

    @field_validator("limit", mode="before")
    @classmethod
    def coerce_limit(cls, v):
        try:
            limit = int(float(str(v).strip()))
        except (TypeError, ValueError):
            return 5
        return limit if limit > 0 else 5

    @field_validator("name", mode="before")
    @classmethod
    def blank_name(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None
