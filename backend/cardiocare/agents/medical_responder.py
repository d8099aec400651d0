# backend/cardiocare/agents/medical_responder.py

import logging
from typing import List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, SystemMessage
from langchain_core.tools import BaseTool

from cardiocare.agents.intent_classifier import is_intent_artifact
from cardiocare.agents.prompts import MEDICAL_SYSTEM_PROMPT
from cardiocare.schemas.agent import ToolCallRequest

logger = logging.getLogger(__name__)


def filter_history(messages: Sequence[BaseMessage]) -> List[BaseMessage]:
    """Drop classifier results so the patient-facing model never sees routing output."""
    return [m for m in messages if not is_intent_artifact(m)]


def tool_requests(message: BaseMessage) -> List[ToolCallRequest]:
    """Tool calls carried by a model reply, in the order the model issued them."""
    if not isinstance(message, AIMessage):
        return []
    return [
        ToolCallRequest(
            name=call.get("name", ""),
            arguments=call.get("args") or {},
            call_id=call.get("id") or "",
        )
        for call in message.tool_calls or []
    ]


class MedicalResponder:
    """
    Medical persona model with the tool set bound.

    A reply either carries tool calls (the router runs them and calls back) or
    is the final answer. Model errors propagate to the caller.
    """

    def __init__(self, llm, tools: Optional[Sequence[BaseTool]] = None):
        self.llm = llm.bind_tools(list(tools)) if tools else llm

    def build_messages(self, messages: Sequence[BaseMessage]) -> List[BaseMessage]:
        return [SystemMessage(content=MEDICAL_SYSTEM_PROMPT)] + filter_history(messages)

    async def respond(self, messages: Sequence[BaseMessage]) -> AIMessage:
        prompt = self.build_messages(messages)
        logger.info(f"[Node:medical_agent] Invoking model with {len(prompt)} messages")

        reply = await self.llm.ainvoke(prompt)

        if reply.tool_calls:
            names = ", ".join(call.get("name", "?") for call in reply.tool_calls)
            logger.info(f"[Node:medical_agent] Tool calls requested: {names}")
        else:
            logger.info("[Node:medical_agent] Final answer produced")
        return reply
