"""
Singleton agent runtime.

The chat models, tool executor, router and ``AgentService`` are built ONCE at
application startup and reused for every turn. The router keeps no per-turn
data, so sharing it across concurrent requests is safe.
"""

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from cardiocare.agents.agent_service import AgentService
from cardiocare.agents.agent_tools import ToolExecutor
from cardiocare.agents.conversation_router import ConversationRouter
from cardiocare.agents.intent_classifier import IntentClassifier
from cardiocare.agents.llm_factory import create_medical_llm, create_router_llm
from cardiocare.agents.medical_responder import MedicalResponder
from cardiocare.core.exceptions import AgentNotInitializedError
from cardiocare.core.mongodb import MongoChatHistoryStore, close_mongo_clients, init_mongodb_collections
from cardiocare.models.database import SessionLocal

logger = logging.getLogger(__name__)

# Global singleton instance
_agent_service: Optional[AgentService] = None


def build_agent_service(
    router_llm,
    medical_llm,
    history_store,
    session_factory: Callable = SessionLocal
) -> AgentService:
    """Wire classifier, responder, tools and router into an ``AgentService``."""
    tool_executor = ToolExecutor(session_factory=session_factory)
    router = ConversationRouter(
        classifier=IntentClassifier(router_llm),
        medical_responder=MedicalResponder(medical_llm, tools=tool_executor.langchain_tools()),
        tool_executor=tool_executor,
        router_llm=router_llm,
    )
    return AgentService(router=router, history_store=history_store)


@asynccontextmanager
async def initialize_agent(
    router_llm=None,
    medical_llm=None,
    history_store=None,
    session_factory: Callable = SessionLocal,
    init_collections: bool = True
):
    """
    Build the agent at application startup and tear it down on shutdown.

    Usage:
        async with initialize_agent():
            # Application runs here with get_agent_service() available
            pass
    """
    global _agent_service

    logger.info("[AgentRuntime] Initializing agent...")

    try:
        if init_collections:
            try:
                init_mongodb_collections()
                logger.info("[AgentRuntime] Chat history indexes ready")
            except Exception as mongo_error:
                logger.error(f"[AgentRuntime] MongoDB index setup failed: {mongo_error}")
                logger.warning("[AgentRuntime] Proceeding without index setup")

        _agent_service = build_agent_service(
            router_llm=router_llm or create_router_llm(),
            medical_llm=medical_llm or create_medical_llm(),
            history_store=history_store or MongoChatHistoryStore(),
            session_factory=session_factory,
        )
        logger.info("[AgentRuntime] Agent ready for requests")

        yield _agent_service

    except Exception as e:
        logger.error(f"[AgentRuntime] Failed to initialize agent: {e}", exc_info=True)
        raise

    finally:
        logger.info("[AgentRuntime] Shutting down agent...")
        _agent_service = None
        close_mongo_clients()


def get_agent_service() -> AgentService:
    """
    Get the singleton ``AgentService``.

    Raises:
        AgentNotInitializedError: If initialize_agent() has not run
    """
    if _agent_service is None:
        raise AgentNotInitializedError()
    return _agent_service


def is_initialized() -> bool:
    return _agent_service is not None
