# backend/cardiocare/agents/agent_service.py

import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

from cardiocare.agents.conversation_router import ConversationRouter
from cardiocare.agents.response_parser import ResponseParser
from cardiocare.core.config import settings
from cardiocare.core.exceptions import AgentError, AgentTimeoutError, CardioCareError
from cardiocare.schemas.agent import ChatRole, ParsedAgentReply

logger = logging.getLogger(__name__)


def to_langchain_messages(history: List[Dict[str, Any]]) -> List[BaseMessage]:
    """Stored messages (chronological) to LangChain messages."""
    messages: List[BaseMessage] = []
    for item in history:
        if item.get("role") == ChatRole.ASSISTANT.value:
            messages.append(AIMessage(content=item.get("content", "")))
        else:
            messages.append(HumanMessage(content=item.get("content", "")))
    return messages


class AgentService:
    """
    Top-level entry point for one chat turn.

    load history → route → parse → persist user + assistant messages.
    Nothing is written unless a reply exists.
    """

    def __init__(
        self,
        router: ConversationRouter,
        history_store,
        parser: Optional[ResponseParser] = None,
        history_limit: Optional[int] = None,
        default_timeout_seconds: Optional[float] = None
    ):
        self.router = router
        self.history_store = history_store
        self.parser = parser or ResponseParser()
        self.history_limit = settings.agent_history_limit if history_limit is None else history_limit
        self.default_timeout_seconds = (
            settings.agent_turn_timeout_seconds if default_timeout_seconds is None else default_timeout_seconds
        )

    async def call_agent(
        self,
        user_id: str,
        user_message: str,
        thread_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None
    ) -> ParsedAgentReply:
        thread_id = thread_id or str(uuid.uuid4())
        timeout = self.default_timeout_seconds if timeout_seconds is None else timeout_seconds
        logger.info(f"[AgentService] Turn started user={user_id} thread={thread_id}")

        history = await self._load_history(user_id)
        messages = history + [HumanMessage(content=user_message)]

        try:
            if timeout and timeout > 0:
                state = await asyncio.wait_for(self.router.run(messages, thread_id=thread_id), timeout=timeout)
            else:
                state = await self.router.run(messages, thread_id=thread_id)
        except asyncio.TimeoutError:
            logger.error(f"[AgentService] Turn timed out after {timeout}s (thread={thread_id})")
            raise AgentTimeoutError(timeout, details={"thread_id": thread_id})
        except CardioCareError:
            raise
        except Exception as e:
            logger.error(f"[AgentService] Turn failed (thread={thread_id}): {e}", exc_info=True)
            raise AgentError(f"Agent failed to produce a reply: {e}", details={"thread_id": thread_id}) from e

        reply = self.parser.parse(state.final_text)
        logger.info(
            f"[AgentService] Turn finished intent={state.intent.value if state.intent else None} "
            f"path={[node.value for node in state.visited]}"
        )

        await self._persist(user_id, user_message, reply)
        return reply

    async def get_history(self, user_id: str, offset: int = 0, limit: int = 20) -> Dict[str, Any]:
        return await self.history_store.get_history(user_id, offset=offset, limit=limit)

    async def cleanup_old_messages(self, now: Optional[datetime] = None) -> int:
        """Delete chat messages older than the retention window."""
        cutoff = (now or datetime.utcnow()) - timedelta(hours=settings.chat_message_retention_hours)
        return await self.history_store.delete_older_than(cutoff)

    async def _load_history(self, user_id: str) -> List[BaseMessage]:
        try:
            recent = await self.history_store.load_recent(user_id, self.history_limit)
        except Exception as e:
            logger.warning(f"[AgentService] Could not load history for user {user_id}: {e}", exc_info=True)
            return []
        # Store returns newest-first
        return to_langchain_messages(list(reversed(recent)))

    async def _persist(self, user_id: str, user_message: str, reply: ParsedAgentReply):
        try:
            await self.history_store.append(user_id, ChatRole.USER.value, user_message)
            await self.history_store.append(user_id, ChatRole.ASSISTANT.value, reply.response)
        except Exception as e:
            logger.error(f"[AgentService] Failed to save chat messages for user {user_id}: {e}", exc_info=True)
