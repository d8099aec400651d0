"""
Test Response Parser
Tests each recovery layer on its own, then the full parse() pipeline
with fenced, double-encoded, leaked and malformed model output
"""

import json

import pytest
from pydantic import ValidationError

from cardiocare.agents.response_parser import (
    DEFAULT_SUGGESTED_ACTIONS,
    FALLBACK_RESPONSE,
    ResponseParser,
    extract_bullet_actions,
    extract_json_object,
    is_placeholder_actions,
    scrape_fields,
    split_leaked_actions,
    strip_code_fences,
    unescape_json_string,
    unwrap_double_encoded,
)
from cardiocare.schemas.agent import ParsedAgentReply


@pytest.fixture
def parser():
    return ResponseParser()


# ===== LAYER: FENCES =====

def test_strip_code_fences():
    raw = '```json\n{"response": "Hi"}\n```'
    assert strip_code_fences(raw) == '{"response": "Hi"}'
    assert strip_code_fences("```\nplain\n```") == "plain"
    assert strip_code_fences("no fences") == "no fences"


# ===== LAYER: JSON OBJECT =====

def test_extract_json_object_uses_outer_braces():
    text = 'Sure! {"response": "Eat {more} greens", "suggested_actions": []} hope that helps'
    payload = extract_json_object(text)
    assert payload == {"response": "Eat {more} greens", "suggested_actions": []}


def test_extract_json_object_rejects_non_objects():
    assert extract_json_object("no braces here") is None
    assert extract_json_object("} backwards {") is None
    assert extract_json_object('{"response": "unterminated}') is None


# ===== LAYER: DOUBLE ENCODING =====

def test_unwrap_double_encoded_prefers_inner_fields():
    inner = json.dumps({"response": "Inner text", "suggested_actions": ["Walk daily"]})
    payload = {"response": inner, "suggested_actions": ["Outer"]}
    assert unwrap_double_encoded(payload) == {
        "response": "Inner text",
        "suggested_actions": ["Walk daily"],
    }


def test_unwrap_double_encoded_keeps_outer_actions_when_inner_has_none():
    inner = json.dumps({"response": "Inner text"})
    payload = {"response": inner, "suggested_actions": ["Outer action"]}
    assert unwrap_double_encoded(payload)["suggested_actions"] == ["Outer action"]


def test_unwrap_double_encoded_ignores_plain_text():
    payload = {"response": "{not json at all", "suggested_actions": []}
    assert unwrap_double_encoded(payload) is payload
    payload = {"response": "Plain", "suggested_actions": []}
    assert unwrap_double_encoded(payload) is payload


# ===== LAYER: LEAKED SECTION =====

@pytest.mark.parametrize("heading", [
    "Suggested Actions:",
    "**Suggested Actions:**",
    "### Suggested actions",
    "Gợi ý hành động:",
    "Hành động gợi ý:",
    "Đề xuất hành động:",
])
def test_split_leaked_actions_headings(heading):
    text = f"Eat more fiber.\n\n{heading}\n- Walk 30 minutes\n- Cut salt"
    body, section = split_leaked_actions(text)
    assert body == "Eat more fiber."
    assert extract_bullet_actions(section) == ["Walk 30 minutes", "Cut salt"]


def test_split_leaked_actions_ignores_inline_mentions():
    text = "Suggested actions include walking and sleeping well."
    assert split_leaked_actions(text) == (text, None)


def test_split_leaked_actions_keeps_prose_after_heading():
    # A heading followed by ordinary paragraphs is part of the answer
    text = "Eat more fiber.\n\nSuggested actions:\nTry oats in the morning, then walk after lunch."
    assert split_leaked_actions(text) == (text, None)


def test_split_leaked_actions_vietnamese_recommendation_is_body_text():
    text = "Đề xuất: ăn cá hồi hai lần mỗi tuần.\nNgoài ra nên đi bộ 30 phút."
    assert split_leaked_actions(text) == (text, None)


def test_extract_bullet_actions_limits_and_lengths():
    section = "\n".join([
        "1. Walk daily",
        "2) x",
        "- " + "a" * 61,
        "* Eat oats",
        "• Sleep 8 hours",
        "- Drink water",
        "not a bullet",
    ])
    assert extract_bullet_actions(section) == ["Walk daily", "Eat oats", "Sleep 8 hours"]
    assert extract_bullet_actions(None) == []


def test_is_placeholder_actions():
    assert is_placeholder_actions([])
    assert is_placeholder_actions(["Action 1", "Action 2"])
    assert is_placeholder_actions(["..."])
    assert is_placeholder_actions(["Action 1 (max 5 words)", "Action 2 (max 5 words)"])
    assert is_placeholder_actions(["Short follow-up (max 5 words)"])
    assert not is_placeholder_actions(["A", "B"])
    assert not is_placeholder_actions(["Action 1", "Walk daily"])


# ===== LAYER: FIELD SCRAPING =====

def test_scrape_fields_from_broken_json():
    raw = '{"response": "Line one\\nShe said \\"hi\\"\\tok", "suggested_actions": ["Walk", "Rest"], oops'
    response, actions = scrape_fields(raw)
    assert response == 'Line one\nShe said "hi"\tok'
    assert actions == ["Walk", "Rest"]


def test_scrape_fields_without_matches():
    assert scrape_fields("just words") == (None, [])


def test_unescape_json_string():
    assert unescape_json_string("a\\nb\\rc\\td\\\"e\\\\f") == 'a\nb\rc\td"e\\f'
    assert unescape_json_string("keep \\u00e9") == "keep \\u00e9"


# ===== FULL PIPELINE =====

def test_parse_clean_json_exact(parser):
    reply = parser.parse('{"response":"Hi","suggested_actions":["A","B"]}')
    assert reply.response == "Hi"
    assert reply.suggested_actions == ["A", "B"]


def test_parse_fenced_json(parser):
    raw = '```json\n{"response": "Oats are great.", "suggested_actions": ["Oat recipes", "Fiber goals"]}\n```'
    reply = parser.parse(raw)
    assert reply.response == "Oats are great."
    assert reply.suggested_actions == ["Oat recipes", "Fiber goals"]


def test_parse_double_encoded(parser):
    inner = json.dumps({"response": "Inner advice", "suggested_actions": ["Walk daily"]})
    raw = json.dumps({"response": inner, "suggested_actions": []})
    reply = parser.parse(raw)
    assert reply.response == "Inner advice"
    assert reply.suggested_actions == ["Walk daily"]


def test_parse_recovers_actions_leaked_into_response(parser):
    raw = json.dumps({
        "response": "Limit salt to 5 g a day.\n\nSuggested Actions:\n- Low-salt recipes\n- Track blood pressure",
        "suggested_actions": ["Action 1 (max 5 words)", "Action 2 (max 5 words)"],
    })
    reply = parser.parse(raw)
    assert reply.response == "Limit salt to 5 g a day."
    assert reply.suggested_actions == ["Low-salt recipes", "Track blood pressure"]


def test_parse_recovers_actions_when_json_list_is_empty(parser):
    raw = json.dumps({
        "response": "Limit salt to 5 g a day.\n\nSuggested Actions:\n- Low-salt recipes\n- Track blood pressure",
        "suggested_actions": [],
    })
    reply = parser.parse(raw)
    assert reply.response == "Limit salt to 5 g a day."
    assert reply.suggested_actions == ["Low-salt recipes", "Track blood pressure"]


def test_parse_recovers_actions_leaked_after_json(parser):
    raw = (
        '{"response": "Walk after meals.", "suggested_actions": ["Action 1", "Action 2"]}\n'
        "Gợi ý hành động:\n1. Đi bộ mỗi ngày\n2. Ăn nhiều rau"
    )
    reply = parser.parse(raw)
    assert reply.response == "Walk after meals."
    assert reply.suggested_actions == ["Đi bộ mỗi ngày", "Ăn nhiều rau"]


def test_parse_caps_model_supplied_actions_at_two(parser):
    raw = '{"response":"Hi","suggested_actions":["A","B","C","D","E"]}'
    assert parser.parse(raw).suggested_actions == ["A", "B"]


def test_parse_caps_recovered_actions_at_two(parser):
    raw = json.dumps({
        "response": "Move more.\n\nSuggested Actions:\n- Walk daily\n- Take stairs\n- Stretch",
        "suggested_actions": [],
    })
    reply = parser.parse(raw)
    assert reply.response == "Move more."
    assert reply.suggested_actions == ["Walk daily", "Take stairs"]


def test_parsed_reply_rejects_more_than_two_actions():
    with pytest.raises(ValidationError):
        ParsedAgentReply(response="Hi", suggested_actions=["A", "B", "C"])


def test_parse_keeps_vietnamese_recommendation_line(parser):
    answer = "Đề xuất: ăn cá hồi hai lần mỗi tuần.\nNgoài ra nên đi bộ 30 phút."
    raw = json.dumps({"response": answer, "suggested_actions": ["Món cá hồi", "Lịch đi bộ"]}, ensure_ascii=False)
    reply = parser.parse(raw)
    assert reply.response == answer
    assert reply.suggested_actions == ["Món cá hồi", "Lịch đi bộ"]


def test_parse_scrapes_broken_json(parser):
    raw = '{"response": "Try oats\\nfor breakfast", "suggested_actions": ["Oat recipes"] trailing garbage'
    reply = parser.parse(raw)
    assert reply.response == "Try oats\nfor breakfast"
    assert reply.suggested_actions == ["Oat recipes"]


def test_parse_plain_text_passthrough(parser):
    reply = parser.parse("Just drink more water.")
    assert reply.response == "Just drink more water."
    assert reply.suggested_actions == list(DEFAULT_SUGGESTED_ACTIONS)


def test_parse_plain_text_with_leaked_section(parser):
    reply = parser.parse("Sleep matters.\n\nSuggested Actions:\n- Sleep tips\n- Stress relief")
    assert reply.response == "Sleep matters."
    assert reply.suggested_actions == ["Sleep tips", "Stress relief"]


@pytest.mark.parametrize("raw", [
    "",
    "   ",
    None,
    "plain text",
    "```json\n```",
    '{"intent": "MEDICAL"}',
    '{"response": ""}',
    "{{{{",
    '{"response": "ok", "suggested_actions": "single"}',
    '{"response": 42, "suggested_actions": [null, "", "Walk"]}',
])
def test_parse_always_returns_actions(parser, raw):
    reply = parser.parse(raw)
    assert reply.suggested_actions
    assert reply.response


def test_parse_empty_uses_fallback_response(parser):
    reply = parser.parse("")
    assert reply.response == FALLBACK_RESPONSE
    assert reply.suggested_actions == list(DEFAULT_SUGGESTED_ACTIONS)


def test_parse_non_string_fields_are_coerced(parser):
    reply = parser.parse('{"response": 42, "suggested_actions": [null, "", "Walk"]}')
    assert reply.response == "42"
    assert reply.suggested_actions == ["Walk"]
