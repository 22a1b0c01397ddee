"""Prompt templates for the tutor."""
import re
from typing import List, Optional, Sequence

from hanbot.models.chat_models import ChatMessage, Role

STANDING_PROMPT = (
    "You are a teacher teaching Chinese to an English speaker. Be supportive and pedagogical. "
    "Use only the vocabulary words provided."
)

HSK2_INSTRUCTION = " You may also use any HSK2 vocabulary."

ACKNOWLEDGE_REQUEST = (
    "Respond to the next prompt in Chinese using words in this vocabulary and all HSK2 words. "
    "Acknowledge by replying with exactly: Acknowledged."
)

RANDOM_TOPIC_PROMPT = "discuss a random topic"

PLACEHOLDER_PATTERN = re.compile(r"^(start|begin|go|hi|hello|start conversation)$", re.IGNORECASE)

CORRECTNESS_SYSTEM = "Answer only yes or no."

MISUSED_INSTRUCTION = (
    "When you correct the user's answer, at the END of your message add a JSON block on a new line "
    "with the list of Chinese words they used incorrectly, e.g.:\n"
    '{"misused_words": ["词1", "词2"]}\n'
    'If no words were misused, use: {"misused_words": []}'
)


def vocabulary_block(vocabulary: Sequence[str]) -> str:
    if not vocabulary:
        return ""
    return f"Use ONLY these Chinese words in your responses: {', '.join(vocabulary)}."


def is_placeholder(content: str) -> bool:
    """Whether a first message carries no real content."""
    content = content.strip()
    return not content or bool(PLACEHOLDER_PATTERN.match(content))


def acknowledge_messages(vocabulary: Sequence[str]) -> List[ChatMessage]:
    system = (
        f"{STANDING_PROMPT}\n\n{vocabulary_block(vocabulary)}{HSK2_INSTRUCTION}\n\n"
        "Respond to the next prompt in Chinese using words in this vocabulary and all HSK2 words."
    )
    return [
        ChatMessage(role=Role.SYSTEM, content=system),
        ChatMessage(role=Role.USER, content=ACKNOWLEDGE_REQUEST),
    ]


def first_reply_system_prompt(vocabulary: Sequence[str], topic: Optional[str]) -> str:
    if topic and topic.strip():
        topic_part = f'The user has requested a topic or theme (in English): "{topic}".'
    else:
        topic_part = "The user did not specify a topic; use a general conversation theme."
    return (
        f"{STANDING_PROMPT}\n\n{topic_part}\n\n{vocabulary_block(vocabulary)}{HSK2_INSTRUCTION}\n\n"
        "You MUST reply with your first message in Chinese. Greet the user and start the conversation "
        "(e.g. introduce the topic and ask a first question). Respond in Chinese only."
    )


def continuation_system_prompt(vocabulary: Sequence[str]) -> str:
    return (
        f"{STANDING_PROMPT}\n\n"
        "You are continuing a conversation. For each user message you must do TWO things in order:\n\n"
        "1. First, evaluate the user's answer for correctness. Output this evaluation clearly "
        "(e.g. whether their answer is correct or incorrect, what was wrong or what was good, brief feedback).\n\n"
        "2. Then, respond conversationally in Chinese: continue the dialogue, ask a follow-up question, "
        "or give encouragement, using ONLY the vocabulary words listed below.\n\n"
        f"{MISUSED_INSTRUCTION}\n\n"
        f"{vocabulary_block(vocabulary)}{HSK2_INSTRUCTION}\n\nRespond in Chinese."
    )


def correctness_messages(context: Sequence[ChatMessage], sentence: str) -> List[ChatMessage]:
    lines = "\n".join(f"[{message.role.value}]: {message.content}" for message in context)
    prompt = (
        f"Conversation:\n{lines}\n\n"
        "is the following sentence correct and meaningful in the context of the conversation? "
        f"answer just yes or no: {sentence}"
    )
    return [
        ChatMessage(role=Role.SYSTEM, content=CORRECTNESS_SYSTEM),
        ChatMessage(role=Role.USER, content=prompt),
    ]
