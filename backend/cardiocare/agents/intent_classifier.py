# backend/cardiocare/agents/intent_classifier.py

import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from cardiocare.agents.prompts import CLASSIFIER_SYSTEM_PROMPT
from cardiocare.core.config import settings
from cardiocare.schemas.agent import Intent

logger = logging.getLogger(__name__)


@dataclass
class ClassificationResult:
    intent: Intent
    message: Optional[AIMessage] = None  # raw classifier reply, None when the call failed


def _message_text(message: BaseMessage) -> str:
    content = message.content
    if isinstance(content, str):
        return content
    # Content blocks: keep the text parts
    return "".join(
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content
    )


def parse_intent(raw: str) -> Intent:
    """Lenient parse of ``{"intent": ...}``. Anything unusable means MEDICAL."""
    if not raw:
        return Intent.MEDICAL

    cleaned = raw.replace("```json", "").replace("```JSON", "").replace("```", "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start:end + 1]

    try:
        payload = json.loads(cleaned)
    except ValueError:
        logger.warning(f"[Node:classifier] Unparseable classifier output: {raw[:50]!r}")
        return Intent.MEDICAL

    value = payload.get("intent") if isinstance(payload, dict) else None
    try:
        return Intent(str(value).strip().upper())
    except ValueError:
        logger.warning(f"[Node:classifier] Unknown intent {value!r}, defaulting to MEDICAL")
        return Intent.MEDICAL


def is_intent_artifact(message: BaseMessage) -> bool:
    """True for an assistant message that is a bare classifier result."""
    if not isinstance(message, AIMessage) or not isinstance(message.content, str):
        return False
    try:
        payload = json.loads(message.content)
    except ValueError:
        return False
    if not isinstance(payload, dict):
        return False
    value = payload.get("intent")
    return isinstance(value, str) and value in {intent.value for intent in Intent}


class IntentClassifier:
    """
    Labels the latest user message as GREETING, OFF_TOPIC or MEDICAL.

    One model call per turn. Earlier turns are sent as context only. Never
    raises: model or parse failures fall back to MEDICAL.
    """

    def __init__(self, llm, context_messages: Optional[int] = None):
        self.llm = llm
        self.context_messages = (
            settings.classifier_context_messages if context_messages is None else context_messages
        )

    def build_messages(self, messages: Sequence[BaseMessage]) -> List[BaseMessage]:
        latest_index = None
        for i in range(len(messages) - 1, -1, -1):
            if isinstance(messages[i], HumanMessage):
                latest_index = i
                break

        prompt: List[BaseMessage] = [SystemMessage(content=CLASSIFIER_SYSTEM_PROMPT)]
        if latest_index is None:
            return prompt

        context = [
            m for m in messages[:latest_index]
            if isinstance(m, HumanMessage)
            or (isinstance(m, AIMessage) and not m.tool_calls and not is_intent_artifact(m))
        ]
        if self.context_messages > 0:
            prompt.extend(context[-self.context_messages:])
        prompt.append(messages[latest_index])
        return prompt

    async def classify(self, messages: Sequence[BaseMessage]) -> ClassificationResult:
        prompt = self.build_messages(messages)
        if len(prompt) == 1:
            logger.warning("[Node:classifier] No user message to classify, defaulting to MEDICAL")
            return ClassificationResult(intent=Intent.MEDICAL)

        try:
            reply = await self.llm.ainvoke(prompt)
        except Exception as e:
            logger.error(f"[Node:classifier] Model call failed: {e}", exc_info=True)
            return ClassificationResult(intent=Intent.MEDICAL)

        text = _message_text(reply)
        intent = parse_intent(text)
        logger.info(f"[Node:classifier] Intent={intent.value}")

        if not isinstance(reply, AIMessage):
            reply = AIMessage(content=text)
        return ClassificationResult(intent=intent, message=reply)
