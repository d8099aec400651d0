"""
Structured reply extraction for raw model output.

The medical model is asked for ``{"response": ..., "suggested_actions": [...]}``
but regularly wraps it in markdown fences, double-encodes it, or appends a
human-readable "Suggested Actions:" list outside the JSON. Each recovery step
is a small pure function; ``ResponseParser.parse`` tries them in order and
always returns a usable ``ParsedAgentReply``.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from cardiocare.schemas.agent import ParsedAgentReply

logger = logging.getLogger(__name__)

DEFAULT_SUGGESTED_ACTIONS = ("Check my heart health", "Heart-healthy meal ideas")
FALLBACK_RESPONSE = "Sorry, I couldn't put together an answer just now. Could you ask again?"

MAX_LEAKED_ACTIONS = 3
MAX_SUGGESTED_ACTIONS = 2
MIN_ACTION_LENGTH = 2
MAX_ACTION_LENGTH = 60

_FENCE_PATTERN = re.compile(r"```[ \t]*(?:json|JSON)?")

# Heading on its own line, optionally decorated with markdown, in English or Vietnamese
_LEAKED_HEADING_PATTERN = re.compile(
    r"^[ \t]*(?:[#>*_\-]+[ \t]*)*"
    r"(?:suggested[ \t]+actions?|gợi ý hành động|hành động gợi ý|đề xuất hành động)"
    r"[ \t]*[*_]*[ \t]*(?::[ \t]*[*_]*[ \t]*)?$",
    re.IGNORECASE | re.MULTILINE,
)

_BULLET_PATTERN = re.compile(r"^\s*(?:[-*•+]|\d+[.)])\s+(.+?)\s*$")

# Template values echoed from the prompt, e.g. "Action 1 (max 5 words)"
_PLACEHOLDER_PATTERN = re.compile(
    r"^\s*(?:"
    r"(?:action|suggestion|suggested action|short follow-up|another follow-up|hành động|gợi ý)\s*\d*"
    r"|\d+|\.{3}|…"
    r")\s*(?:\([^)]*\))?\s*$",
    re.IGNORECASE,
)

_RESPONSE_FIELD_PATTERN = re.compile(r'"response"\s*:\s*"((?:[^"\\]|\\.)*)"', re.DOTALL)
_ACTIONS_FIELD_PATTERN = re.compile(r'"suggested_actions"\s*:\s*\[(.*?)\]', re.DOTALL)
_QUOTED_STRING_PATTERN = re.compile(r'"((?:[^"\\]|\\.)*)"', re.DOTALL)
_ESCAPE_PATTERN = re.compile(r"\\(.)", re.DOTALL)
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", '"': '"', "\\": "\\", "/": "/"}


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers, keeping everything else."""
    return _FENCE_PATTERN.sub("", text).strip()


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Parse the span from the first '{' to the last '}' as a JSON object."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        payload = json.loads(text[start:end + 1])
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def unwrap_double_encoded(payload: Dict[str, Any]) -> Dict[str, Any]:
    """If ``response`` is itself a JSON envelope, prefer its fields (one level)."""
    response = payload.get("response")
    if not isinstance(response, str) or not response.strip().startswith("{"):
        return payload

    inner = extract_json_object(strip_code_fences(response))
    if not inner or "response" not in inner:
        return payload

    logger.debug("[ResponseParser] Unwrapped double-encoded response")
    return {
        "response": inner.get("response"),
        "suggested_actions": inner.get("suggested_actions") or payload.get("suggested_actions"),
    }


def _is_bullet_section(section: str) -> bool:
    return all(_BULLET_PATTERN.match(line) for line in section.splitlines() if line.strip())


def split_leaked_actions(text: str) -> Tuple[str, Optional[str]]:
    """Split ``text`` at a trailing "Suggested Actions" section.

    Only a heading followed by nothing but bullet or numbered lines counts.
    Returns ``(body, section)``; ``section`` is None when no such section is found.
    """
    for match in _LEAKED_HEADING_PATTERN.finditer(text):
        section = text[match.end():]
        if _is_bullet_section(section):
            return text[:match.start()].rstrip(), section
    return text, None


def extract_bullet_actions(section: Optional[str], max_items: int = MAX_LEAKED_ACTIONS) -> List[str]:
    """Bullet or numbered lines of 2-60 characters, at most ``max_items``."""
    if not section:
        return []

    actions = []
    for line in section.splitlines():
        match = _BULLET_PATTERN.match(line)
        if not match:
            continue
        item = match.group(1).strip().strip("*_`\"'").strip()
        if MIN_ACTION_LENGTH <= len(item) <= MAX_ACTION_LENGTH:
            actions.append(item)
        if len(actions) >= max_items:
            break
    return actions


def is_placeholder_actions(actions: List[str]) -> bool:
    """True for an empty list or one made only of template values like "Action 1"."""
    if not actions:
        return True
    return all(_PLACEHOLDER_PATTERN.match(action) for action in actions)


def unescape_json_string(value: str) -> str:
    return _ESCAPE_PATTERN.sub(lambda m: _ESCAPES.get(m.group(1), m.group(0)), value)


def scrape_fields(text: str) -> Tuple[Optional[str], List[str]]:
    """Regex extraction of ``response`` and ``suggested_actions`` from broken JSON."""
    response = None
    match = _RESPONSE_FIELD_PATTERN.search(text)
    if match:
        response = unescape_json_string(match.group(1))

    actions: List[str] = []
    match = _ACTIONS_FIELD_PATTERN.search(text)
    if match:
        actions = [
            unescape_json_string(item).strip()
            for item in _QUOTED_STRING_PATTERN.findall(match.group(1))
        ]
        actions = [a for a in actions if a]

    return response, actions


def _clean_actions(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


class ResponseParser:
    """Turns raw model text into ``ParsedAgentReply``. Never raises."""

    def __init__(self, default_actions=DEFAULT_SUGGESTED_ACTIONS, fallback_response: str = FALLBACK_RESPONSE):
        self.default_actions = list(default_actions)
        self.fallback_response = fallback_response

    def parse(self, raw: Optional[str]) -> ParsedAgentReply:
        try:
            response, actions = self._parse(raw or "")
        except Exception as e:
            # Last resort: the parser contract is a well-formed reply for any input
            logger.error(f"[ResponseParser] Unexpected parse failure: {e}", exc_info=True)
            response, actions = (raw or "").strip(), []

        if not response or not response.strip():
            response = self.fallback_response
        if not actions:
            actions = list(self.default_actions)

        return ParsedAgentReply(
            response=response.strip(),
            suggested_actions=actions[:MAX_SUGGESTED_ACTIONS],
        )

    def _parse(self, raw: str) -> Tuple[str, List[str]]:
        if not raw.strip():
            return "", []

        text = strip_code_fences(raw)
        payload = extract_json_object(text)

        if payload is not None and "response" in payload:
            return self._from_payload(payload, text)

        logger.warning("[ResponseParser] No JSON envelope found, falling back to field scraping")
        response, actions = scrape_fields(text)
        if response is None:
            response, leaked = split_leaked_actions(text)
            if not actions:
                actions = extract_bullet_actions(leaked)
        return response, actions

    def _from_payload(self, payload: Dict[str, Any], text: str) -> Tuple[str, List[str]]:
        payload = unwrap_double_encoded(payload)

        response = payload.get("response")
        response = "" if response is None else str(response)
        actions = _clean_actions(payload.get("suggested_actions"))

        response, leaked = split_leaked_actions(response)
        _, trailing_leaked = split_leaked_actions(text[text.rfind("}") + 1:])

        if is_placeholder_actions(actions):
            recovered = extract_bullet_actions(leaked) or extract_bullet_actions(trailing_leaked)
            if recovered:
                logger.debug(f"[ResponseParser] Recovered {len(recovered)} leaked suggested actions")
            actions = recovered

        return response, actions
