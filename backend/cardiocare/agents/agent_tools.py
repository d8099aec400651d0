# backend/cardiocare/agents/agent_tools.py
"""
Tools available to the medical responder.

Tools:
- get_system_time      current timestamp (ISO-8601)
- get_database_schema  tables and columns of the food catalog database
- query_database       read-only SELECT (best-effort guard, not a security boundary)
- search_foods         per-serving nutrition search over the food catalog

Every tool returns a string. Failures come back as "Error..." strings so the
model can react; nothing raises past ``ToolExecutor.execute``.
"""
import asyncio
import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from langchain_core.tools import StructuredTool
from pydantic import ValidationError
from sqlalchemy import inspect, text

from cardiocare.models.database import SessionLocal
from cardiocare.schemas.agent import (
    NoArgs,
    QueryDatabaseArgs,
    SearchFoodsArgs,
    ToolCallRequest,
    ToolCallResult,
    ToolName,
)
from cardiocare.services.food_service import FoodService

logger = logging.getLogger(__name__)

SELECT_ONLY_ERROR = "Error: Only SELECT queries are allowed for safety."
NO_FOODS_MESSAGE = "No foods found matching criteria."

TOOL_DESCRIPTIONS: Dict[ToolName, str] = {
    ToolName.GET_SYSTEM_TIME: "Returns the current system time. Use this when the user asks for the date or time.",
    ToolName.QUERY_DATABASE: (
        "Execute a read-only SQL query against the database. "
        "Only SELECT statements are accepted."
    ),
    ToolName.GET_DATABASE_SCHEMA: (
        "List the tables and their columns. Use this before writing a query "
        "to learn the table and column names."
    ),
    ToolName.SEARCH_FOODS: (
        "Search foods by name and per-serving nutrition (calories, protein, carbs, fat). "
        "Useful for diet planning and checking food information."
    ),
}

TOOL_ARGS: Dict[ToolName, type] = {
    ToolName.GET_SYSTEM_TIME: NoArgs,
    ToolName.QUERY_DATABASE: QueryDatabaseArgs,
    ToolName.GET_DATABASE_SCHEMA: NoArgs,
    ToolName.SEARCH_FOODS: SearchFoodsArgs,
}


def json_serializer(obj):
    """JSON serializer for values the json module can't handle (dates, decimals)"""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    return str(obj)


def is_select_query(query: str) -> bool:
    return query.strip().lower().startswith("select")


class ToolExecutor:
    """
    Runs tool calls requested by the model.

    Database tools run in a worker thread with their own session so a
    cancelled turn simply abandons the thread's result.
    """

    def __init__(
        self,
        session_factory: Callable = SessionLocal,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.session_factory = session_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def execute(self, request: ToolCallRequest) -> ToolCallResult:
        try:
            name = ToolName(request.name)
        except ValueError:
            logger.warning(f"[Tool:{request.name}] Unknown tool requested")
            return self._result(request, f"Error: Unknown tool '{request.name}'.")

        logger.info(f"[Tool:{name.value}] Called with {request.arguments}")

        try:
            if name == ToolName.GET_SYSTEM_TIME:
                content = self.get_system_time()
            elif name == ToolName.QUERY_DATABASE:
                args = QueryDatabaseArgs.model_validate(request.arguments or {})
                content = await asyncio.to_thread(self.query_database, args.query)
            elif name == ToolName.GET_DATABASE_SCHEMA:
                content = await asyncio.to_thread(self.get_database_schema)
            elif name == ToolName.SEARCH_FOODS:
                args = SearchFoodsArgs.model_validate(request.arguments or {})
                content = await asyncio.to_thread(self.search_foods, args)
            else:
                content = f"Error: Tool '{name.value}' is not implemented."
        except ValidationError as e:
            logger.warning(f"[Tool:{name.value}] Invalid arguments: {e}")
            content = f"Error: Invalid arguments for {name.value}: {e.errors()[0]['msg']}"
        except Exception as e:
            logger.error(f"[Tool:{name.value}] Error: {e}", exc_info=True)
            content = f"Error: {e}"

        return self._result(request, content)

    async def execute_all(self, requests: Sequence[ToolCallRequest]) -> List[ToolCallResult]:
        """Run a batch one call at a time, results in request order."""
        results = []
        for request in requests:
            results.append(await self.execute(request))
        return results

    @staticmethod
    def _result(request: ToolCallRequest, content: str) -> ToolCallResult:
        return ToolCallResult(
            name=request.name,
            call_id=request.call_id,
            content=content,
            is_error=content.startswith("Error"),
        )

    # ==================== TOOL BODIES ====================

    def get_system_time(self) -> str:
        return self.clock().isoformat()

    def query_database(self, query: str) -> str:
        if not is_select_query(query):
            logger.warning(f"[Tool:query_database] Rejected non-SELECT statement: {query[:80]!r}")
            return SELECT_ONLY_ERROR

        db = self.session_factory()
        try:
            result = db.execute(text(query))
            rows = [dict(row._mapping) for row in result]
            return json.dumps(rows, default=json_serializer)
        except Exception as e:
            logger.error(f"[Tool:query_database] Error: {e}")
            return f"Error executing query: {e}"
        finally:
            db.rollback()
            db.close()

    def get_database_schema(self) -> str:
        db = self.session_factory()
        try:
            inspector = inspect(db.get_bind())
            schema: Dict[str, List[str]] = {}
            for table in inspector.get_table_names():
                schema[table] = [
                    f"{column['name']} ({column['type']})"
                    for column in inspector.get_columns(table)
                ]
            return json.dumps(schema, indent=2)
        except Exception as e:
            logger.error(f"[Tool:get_database_schema] Error: {e}")
            return f"Error getting schema: {e}"
        finally:
            db.close()

    def search_foods(self, args: SearchFoodsArgs) -> str:
        db = self.session_factory()
        try:
            foods = FoodService(db).search_foods(args)
            if not foods:
                return json.dumps({"message": NO_FOODS_MESSAGE, "data": []})
            data = [FoodService.simplify(food) for food in foods]
            return json.dumps({"message": "Success", "data": data}, ensure_ascii=False)
        except Exception as e:
            logger.error(f"[Tool:search_foods] Error: {e}", exc_info=True)
            return f"Error searching foods: {e}"
        finally:
            db.close()

    # ==================== LANGCHAIN SCHEMAS ====================

    def langchain_tools(self) -> List[StructuredTool]:
        """StructuredTool wrappers, used to bind tool schemas to the chat model."""
        return [self._as_structured_tool(name) for name in ToolName]

    def _as_structured_tool(self, name: ToolName) -> StructuredTool:
        async def run(**kwargs) -> str:
            result = await self.execute(ToolCallRequest(name=name.value, arguments=kwargs))
            return result.content

        return StructuredTool.from_function(
            coroutine=run,
            name=name.value,
            description=TOOL_DESCRIPTIONS[name],
            args_schema=TOOL_ARGS[name],
        )
