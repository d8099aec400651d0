# backend/cardiocare/agents/llm_factory.py

import logging

from langchain_openai import ChatOpenAI

from cardiocare.core.config import settings

logger = logging.getLogger(__name__)

JSON_RESPONSE_FORMAT = {"response_format": {"type": "json_object"}}


def _build_chat_model(model: str, temperature: float, json_mode: bool) -> ChatOpenAI:
    logger.info(f"[LLM] Creating chat model {model} (temperature={temperature}, json={json_mode})")
    return ChatOpenAI(
        model=model,
        temperature=temperature,
        openai_api_key=settings.llm_api_key,
        base_url=settings.llm_base_url,
        timeout=settings.llm_request_timeout_seconds,
        model_kwargs=JSON_RESPONSE_FORMAT if json_mode else {},
    )


def create_router_llm() -> ChatOpenAI:
    """Small, fast model in JSON mode. Used by the classifier and the greeting/refusal nodes."""
    return _build_chat_model(settings.router_model, settings.router_temperature, json_mode=True)


def create_medical_llm() -> ChatOpenAI:
    """Large model for medical answers. Tools are bound by the responder."""
    return _build_chat_model(settings.medical_model, settings.medical_temperature, json_mode=False)
