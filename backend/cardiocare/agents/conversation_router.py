# backend/cardiocare/agents/conversation_router.py
"""
Conversation routing as an explicit finite-state machine.

Flow:
1. classifier → labels the latest user message
2. [Transition] → medical_agent, greeting_handler or refusal_handler
3. medical_agent → tools when the reply carries tool calls, else end
4. tools → always back to medical_agent
5. greeting_handler / refusal_handler → end (single shot)

The router holds no per-turn data; every ``run`` works on its own
``ConversationState``, so one instance serves concurrent turns.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from cardiocare.agents.agent_tools import ToolExecutor
from cardiocare.agents.intent_classifier import IntentClassifier
from cardiocare.agents.medical_responder import MedicalResponder, tool_requests
from cardiocare.agents.prompts import GREETING_SYSTEM_PROMPT, REFUSAL_SYSTEM_PROMPT, TOOL_LIMIT_REPLY
from cardiocare.core.config import settings
from cardiocare.schemas.agent import Intent

logger = logging.getLogger(__name__)


class RouterNode(str, Enum):
    CLASSIFY = "classifier"
    MEDICAL = "medical_agent"
    TOOLS = "tools"
    GREETING = "greeting_handler"
    REFUSAL = "refusal_handler"
    END = "end"


class Decision(str, Enum):
    MEDICAL = "medical"
    GREETING = "greeting"
    REFUSAL = "refusal"
    TOOL_CALLS = "tool_calls"
    FINAL = "final"
    TOOL_LIMIT = "tool_limit"
    DONE = "done"


TRANSITIONS: Dict[Tuple[RouterNode, Decision], RouterNode] = {
    (RouterNode.CLASSIFY, Decision.MEDICAL): RouterNode.MEDICAL,
    (RouterNode.CLASSIFY, Decision.GREETING): RouterNode.GREETING,
    (RouterNode.CLASSIFY, Decision.REFUSAL): RouterNode.REFUSAL,
    (RouterNode.MEDICAL, Decision.TOOL_CALLS): RouterNode.TOOLS,
    (RouterNode.MEDICAL, Decision.FINAL): RouterNode.END,
    (RouterNode.MEDICAL, Decision.TOOL_LIMIT): RouterNode.END,
    (RouterNode.TOOLS, Decision.DONE): RouterNode.MEDICAL,
    (RouterNode.GREETING, Decision.DONE): RouterNode.END,
    (RouterNode.REFUSAL, Decision.DONE): RouterNode.END,
}

INTENT_DECISIONS = {
    Intent.MEDICAL: Decision.MEDICAL,
    Intent.GREETING: Decision.GREETING,
    Intent.OFF_TOPIC: Decision.REFUSAL,
}


@dataclass
class ConversationState:
    messages: List[BaseMessage]
    thread_id: Optional[str] = None
    intent: Optional[Intent] = None
    tool_iterations: int = 0
    visited: List[RouterNode] = field(default_factory=list)

    @property
    def last_message(self) -> Optional[BaseMessage]:
        return self.messages[-1] if self.messages else None

    @property
    def final_text(self) -> str:
        message = self.last_message
        if message is None:
            return ""
        if isinstance(message.content, str):
            return message.content
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in message.content
        )


def latest_user_message(messages: Sequence[BaseMessage]) -> Optional[HumanMessage]:
    for message in reversed(messages):
        if isinstance(message, HumanMessage):
            return message
    return None


class ConversationRouter:
    """Runs one conversational turn through the state machine."""

    def __init__(
        self,
        classifier: IntentClassifier,
        medical_responder: MedicalResponder,
        tool_executor: ToolExecutor,
        router_llm,
        max_tool_iterations: Optional[int] = None
    ):
        self.classifier = classifier
        self.medical_responder = medical_responder
        self.tool_executor = tool_executor
        self.router_llm = router_llm
        self.max_tool_iterations = (
            settings.agent_max_tool_iterations if max_tool_iterations is None else max_tool_iterations
        )

    async def run(self, messages: Sequence[BaseMessage], thread_id: Optional[str] = None) -> ConversationState:
        state = ConversationState(messages=list(messages), thread_id=thread_id)
        node = RouterNode.CLASSIFY

        while node != RouterNode.END:
            state.visited.append(node)
            decision = await self._step(node, state)
            next_node = TRANSITIONS[(node, decision)]
            logger.info(f"[Edge:{node.value}] {decision.value} → {next_node.value}")
            node = next_node

        return state

    async def _step(self, node: RouterNode, state: ConversationState) -> Decision:
        if node == RouterNode.CLASSIFY:
            return await self._classify(state)
        if node == RouterNode.MEDICAL:
            return await self._medical(state)
        if node == RouterNode.TOOLS:
            return await self._tools(state)
        if node == RouterNode.GREETING:
            return await self._single_shot(state, GREETING_SYSTEM_PROMPT, "greeting_handler")
        if node == RouterNode.REFUSAL:
            return await self._single_shot(state, REFUSAL_SYSTEM_PROMPT, "refusal_handler")
        raise ValueError(f"No handler for router node {node}")

    # ==================== NODES ====================

    async def _classify(self, state: ConversationState) -> Decision:
        result = await self.classifier.classify(state.messages)
        state.intent = result.intent
        if result.message is not None:
            state.messages.append(result.message)
        return INTENT_DECISIONS[result.intent]

    async def _medical(self, state: ConversationState) -> Decision:
        reply = await self.medical_responder.respond(state.messages)

        if not reply.tool_calls:
            state.messages.append(reply)
            return Decision.FINAL

        if state.tool_iterations >= self.max_tool_iterations:
            logger.warning(
                f"[Node:medical_agent] Tool limit of {self.max_tool_iterations} reached "
                f"(thread={state.thread_id}), ending turn"
            )
            state.messages.append(AIMessage(content=TOOL_LIMIT_REPLY))
            return Decision.TOOL_LIMIT

        state.messages.append(reply)
        return Decision.TOOL_CALLS

    async def _tools(self, state: ConversationState) -> Decision:
        requests = tool_requests(state.last_message)
        results = await self.tool_executor.execute_all(requests)
        for result in results:
            state.messages.append(
                ToolMessage(content=result.content, tool_call_id=result.call_id, name=result.name)
            )
        state.tool_iterations += 1
        logger.info(f"[Node:tools] Executed {len(results)} tool calls (iteration {state.tool_iterations})")
        return Decision.DONE

    async def _single_shot(self, state: ConversationState, system_prompt: str, label: str) -> Decision:
        # Only the latest user turn is sent
        user_message = latest_user_message(state.messages)
        prompt: List[BaseMessage] = [SystemMessage(content=system_prompt)]
        if user_message is not None:
            prompt.append(user_message)

        logger.info(f"[Node:{label}] Generating reply")
        reply = await self.router_llm.ainvoke(prompt)
        state.messages.append(reply)
        return Decision.DONE
