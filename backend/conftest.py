# backend/conftest.py
"""
Pytest configuration and fixtures for CardioCare tests
Provides an in-memory food catalog, fake chat models and a fake history store
"""

import pytest
from datetime import datetime
from typing import Any, Dict, List, Sequence
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from langchain_core.messages import AIMessage

from cardiocare.models.database import Base, Food


# ===== DATABASE FIXTURES =====

@pytest.fixture(scope="function")
def test_engine():
    """
    Provide a clean in-memory SQLite engine for each test
    StaticPool keeps one connection so worker threads see the same database
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory bound to the test engine (what ToolExecutor expects)"""
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


def _nutrients(protein: float, carbs: float, fat: float) -> Dict[str, Dict[str, Any]]:
    return {
        "PROCNT": {"label": "Protein", "quantity": protein, "unit": "g"},
        "CHOCDF": {"label": "Carbs", "quantity": carbs, "unit": "g"},
        "FAT": {"label": "Fat", "quantity": fat, "unit": "g"},
    }


@pytest.fixture
def seeded_foods(test_db):
    """
    Create a small food catalog
    Totals are per recipe; per-serving values are noted in comments
    """
    foods = [
        # 400 kcal, 40 g protein, 10 g carbs, 20 g fat per serving
        Food(
            hash_id="chicken-salad",
            recipe_name="Grilled Chicken Salad",
            url="https://example.org/chicken-salad",
            servings=2,
            calories=800,
            total_nutrients=_nutrients(80, 20, 40),
        ),
        # 650 kcal, 25 g protein, 90 g carbs, 21 g fat per serving
        Food(
            hash_id="beef-pho",
            recipe_name="Beef Pho",
            url="https://example.org/beef-pho",
            servings=4,
            calories=2600,
            total_nutrients=_nutrients(100, 360, 84),
        ),
        # zero servings are treated as one: 150 kcal, 12.6 g protein
        Food(
            hash_id="boiled-eggs",
            recipe_name="Boiled Chicken Eggs",
            url="https://example.org/boiled-eggs",
            servings=0,
            calories=150,
            total_nutrients=_nutrients(12.6, 1.1, 10.0),
        ),
        # missing servings: 90 kcal
        Food(
            hash_id="oatmeal",
            recipe_name="Oatmeal with Berries",
            url=None,
            servings=None,
            calories=90,
            total_nutrients=_nutrients(3.04, 15.5, 1.49),
        ),
    ]
    for food in foods:
        test_db.add(food)
    test_db.commit()
    return {food.hash_id: food for food in foods}


# ===== FAKE CHAT MODELS =====

def make_fake_llm(*replies) -> MagicMock:
    """
    Chat model double: ``ainvoke`` returns the given replies in order
    Strings become AIMessage content; exceptions are raised
    """
    side_effect = [AIMessage(content=r) if isinstance(r, str) else r for r in replies]
    llm = MagicMock()
    llm.ainvoke = AsyncMock(side_effect=side_effect)
    return llm


@pytest.fixture
def fake_llm_factory():
    return make_fake_llm


# ===== FAKE HISTORY STORE =====

class InMemoryChatHistoryStore:
    """Same interface as MongoChatHistoryStore, backed by a list"""

    def __init__(self, messages: Sequence[Dict[str, Any]] = ()):
        self.messages: List[Dict[str, Any]] = [dict(m) for m in messages]
        self.fail_on_append = False

    async def load_recent(self, user_id: str, limit: int) -> List[Dict[str, Any]]:
        own = [m for m in self.messages if m["user_id"] == user_id]
        return list(reversed(own))[:limit]

    async def append(self, user_id: str, role: str, content: str) -> None:
        if self.fail_on_append:
            raise ConnectionError("history store unavailable")
        self.messages.append({
            "user_id": user_id,
            "role": role,
            "content": content,
            "created_at": datetime.utcnow(),
        })

    async def get_history(self, user_id: str, offset: int = 0, limit: int = 20) -> Dict[str, Any]:
        own = list(reversed([m for m in self.messages if m["user_id"] == user_id]))
        return {"items": own[offset:offset + limit], "total": len(own), "offset": offset, "limit": limit}

    async def delete_older_than(self, cutoff: datetime) -> int:
        before = len(self.messages)
        self.messages = [m for m in self.messages if m["created_at"] >= cutoff]
        return before - len(self.messages)


@pytest.fixture
def history_store():
    return InMemoryChatHistoryStore()


# ===== PYTEST CONFIGURATION =====

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
