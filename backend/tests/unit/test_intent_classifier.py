"""
Test Intent Classifier
Tests lenient parsing of classifier output, prompt construction
and the MEDICAL fallback on model failure
"""

import asyncio

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from cardiocare.agents.intent_classifier import IntentClassifier, is_intent_artifact, parse_intent
from cardiocare.agents.prompts import CLASSIFIER_SYSTEM_PROMPT
from cardiocare.schemas.agent import Intent


# ===== PARSING =====

@pytest.mark.parametrize("raw,expected", [
    ('{"intent": "GREETING"}', Intent.GREETING),
    ('{"intent": "OFF_TOPIC"}', Intent.OFF_TOPIC),
    ('{"intent": "MEDICAL"}', Intent.MEDICAL),
    ('```json\n{"intent": "GREETING"}\n```', Intent.GREETING),
    ('Sure, here it is: {"intent": "OFF_TOPIC"} done', Intent.OFF_TOPIC),
    ('{"intent": "greeting"}', Intent.GREETING),
])
def test_parse_intent_valid(raw, expected):
    assert parse_intent(raw) == expected


@pytest.mark.parametrize("raw", [
    "",
    "GREETING",
    "{not json}",
    '{"intent": "WEATHER"}',
    '{"category": "GREETING"}',
    '["GREETING"]',
    '{"intent": null}',
    '{"intent": ["GREETING"]}',
])
def test_parse_intent_defaults_to_medical(raw):
    assert parse_intent(raw) == Intent.MEDICAL


def test_is_intent_artifact():
    assert is_intent_artifact(AIMessage(content='{"intent": "MEDICAL"}'))
    assert not is_intent_artifact(AIMessage(content='{"intent": "OTHER"}'))
    assert not is_intent_artifact(AIMessage(content='{"response": "Hi", "suggested_actions": []}'))
    assert not is_intent_artifact(AIMessage(content="plain text"))
    assert not is_intent_artifact(HumanMessage(content='{"intent": "MEDICAL"}'))
    assert not is_intent_artifact(AIMessage(content='{"intent": ["MEDICAL"]}'))
    assert not is_intent_artifact(AIMessage(content='{"intent": {"label": "MEDICAL"}}'))


# ===== CLASSIFY =====

def test_classify_returns_intent_and_message(fake_llm_factory):
    llm = fake_llm_factory('{"intent": "GREETING"}')
    classifier = IntentClassifier(llm)

    result = asyncio.run(classifier.classify([HumanMessage(content="Xin chào Bubu!")]))

    assert result.intent == Intent.GREETING
    assert isinstance(result.message, AIMessage)
    assert result.message.content == '{"intent": "GREETING"}'
    llm.ainvoke.assert_awaited_once()


def test_classify_unparseable_output_defaults_to_medical(fake_llm_factory):
    llm = fake_llm_factory("I think this is a greeting")
    classifier = IntentClassifier(llm)

    result = asyncio.run(classifier.classify([HumanMessage(content="hi")]))

    assert result.intent == Intent.MEDICAL
    assert result.message is not None


def test_classify_model_failure_defaults_to_medical(fake_llm_factory):
    llm = fake_llm_factory(RuntimeError("upstream 503"))
    classifier = IntentClassifier(llm)

    result = asyncio.run(classifier.classify([HumanMessage(content="Is pho healthy?")]))

    assert result.intent == Intent.MEDICAL
    assert result.message is None


def test_classify_without_user_message_skips_model(fake_llm_factory):
    llm = fake_llm_factory('{"intent": "GREETING"}')
    classifier = IntentClassifier(llm)

    result = asyncio.run(classifier.classify([AIMessage(content="Hello")]))

    assert result.intent == Intent.MEDICAL
    llm.ainvoke.assert_not_awaited()


def test_build_messages_uses_latest_user_turn_with_bounded_context():
    classifier = IntentClassifier(llm=None, context_messages=2)
    history = [
        HumanMessage(content="old question"),
        AIMessage(content="old answer"),
        HumanMessage(content="second question"),
        AIMessage(content='{"intent": "MEDICAL"}'),
        AIMessage(content="", tool_calls=[{"name": "get_system_time", "args": {}, "id": "call_1"}]),
        AIMessage(content="second answer"),
        HumanMessage(content="latest question"),
    ]

    prompt = classifier.build_messages(history)

    assert isinstance(prompt[0], SystemMessage)
    assert prompt[0].content == CLASSIFIER_SYSTEM_PROMPT
    assert [m.content for m in prompt[1:]] == ["second question", "second answer", "latest question"]


def test_build_messages_without_context():
    classifier = IntentClassifier(llm=None, context_messages=0)
    prompt = classifier.build_messages([
        HumanMessage(content="first"),
        AIMessage(content="reply"),
        HumanMessage(content="latest"),
    ])
    assert [m.content for m in prompt[1:]] == ["latest"]
