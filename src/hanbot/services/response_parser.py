"""Parsing of free-form model replies.

Model replies may end with a JSON block such as ``{"misused_words": ["词"]}``.
Model output is untrusted text, so nothing here raises: a block that cannot
be decoded is treated as absent.
"""
import json
import logging
import re
from typing import Iterator, List, Optional, Tuple

from hanbot.models.chat_models import ParsedReply

logger = logging.getLogger(__name__)

MISUSED_KEY = "misused_words"

AFFIRMATIVE_PATTERN = re.compile(r"^[\W_]*(yes|y)\b", re.IGNORECASE)
AFFIRMATIVE_CHINESE = ("是", "对")


def _closing_brace(text: str, start: int) -> int:
    """Index of the brace closing the one at ``start``, or -1."""
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return -1


def iter_blocks(text: str) -> Iterator[Tuple[int, str]]:
    """Yield ``(offset, block)`` for each top-level brace block with the key."""
    position = text.find("{")
    while position != -1:
        end = _closing_brace(text, position)
        if end == -1:
            # Stray brace in the prose; try the next one
            position = text.find("{", position + 1)
            continue
        block = text[position:end + 1]
        if f'"{MISUSED_KEY}"' in block:
            yield position, block
        position = text.find("{", end + 1)


def _find_block(text: str) -> Optional[Tuple[int, str]]:
    """Locate the authoritative block: the last match in the text."""
    last = None
    for found in iter_blocks(text):
        last = found
    return last


def _decode_block(block: str) -> Optional[List[str]]:
    try:
        data = json.loads(block)
    except ValueError:
        logger.warning("Could not decode feedback block: %.200s", block)
        return None
    if not isinstance(data, dict):
        return None
    words = data.get(MISUSED_KEY)
    if not isinstance(words, list):
        return None
    return [str(word).strip() for word in words if isinstance(word, str) and word.strip()]


def parse_reply(text: Optional[str]) -> ParsedReply:
    """Split a model reply into display text and misused words."""
    text = text or ""
    found = _find_block(text)
    if found is None:
        return ParsedReply(display_text=text.strip())

    start, block = found
    misused = _decode_block(block)
    if misused is None:
        return ParsedReply(display_text=text.strip())
    return ParsedReply(display_text=text[:start].strip(), misused_words=misused)


def strip_structured_block(text: Optional[str]) -> str:
    """Return the reply text without the trailing feedback block."""
    return parse_reply(text).display_text


def extract_misused_words(text: Optional[str]) -> List[str]:
    """Return the misused words reported in the reply, or an empty list."""
    return parse_reply(text).misused_words or []


def parse_yes_no(text: Optional[str]) -> bool:
    """Leniently read a yes/no answer; anything not starting with yes is no."""
    answer = (text or "").strip()
    if AFFIRMATIVE_PATTERN.match(answer):
        return True
    return answer.lstrip("\"'“‘*「").startswith(AFFIRMATIVE_CHINESE)
