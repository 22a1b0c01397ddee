"""Models for chat turn data structures."""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from hanbot.exceptions import InputValidationError


CONVERSATION_ID_RE = re.compile(r"\s*([+-]?\d+)")


class Role(Enum):
    """Author of a chat message."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    """One message sent to the language model."""
    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class UsageEvent:
    """A usage record produced by a turn."""
    word: str
    correct: bool
    word_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"word": self.word, "correct": self.correct}


@dataclass
class ParsedReply:
    """Model output split into display text and the trailing feedback block.

    ``misused_words`` is None when no decodable block was found.
    """
    display_text: str
    misused_words: Optional[List[str]] = None

    @property
    def has_block(self) -> bool:
        return self.misused_words is not None


@dataclass
class TurnRequest:
    """A learner turn as received from the chat surface."""
    messages: List[ChatMessage]
    conversation_id: Optional[int] = None
    new_words: Optional[int] = None
    topic: Optional[str] = None

    @property
    def last_message(self) -> ChatMessage:
        return self.messages[-1]

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TurnRequest":
        """Build a request from a client payload, validating its shape."""
        if not isinstance(payload, dict):
            raise InputValidationError("request body must be an object")

        raw_messages = payload.get("messages")
        if not isinstance(raw_messages, list) or not raw_messages:
            raise InputValidationError("messages array required")

        messages = []
        for index, raw in enumerate(raw_messages):
            if not isinstance(raw, dict):
                raise InputValidationError(f"message {index} must be an object")
            role = raw.get("role")
            content = raw.get("content")
            if role not in (Role.USER.value, Role.ASSISTANT.value):
                raise InputValidationError(f"message {index} has invalid role: {role!r}")
            if not isinstance(content, str):
                raise InputValidationError(f"message {index} content must be a string")
            messages.append(ChatMessage(role=Role(role), content=content))

        if messages[-1].role is not Role.USER:
            raise InputValidationError("Last message must be from user")

        new_words = payload.get("newWordsPerConversation")
        if new_words is not None and (isinstance(new_words, bool) or not isinstance(new_words, int)):
            raise InputValidationError("newWordsPerConversation must be an integer")

        topic = payload.get("topic")
        if topic is not None and not isinstance(topic, str):
            raise InputValidationError("topic must be a string")

        return cls(
            messages=messages,
            conversation_id=parse_conversation_id(payload.get("conversationId")),
            new_words=new_words,
            topic=topic,
        )


def parse_conversation_id(value: Any) -> Optional[int]:
    """Parse an opaque conversation id from its leading integer.

    ``"12abc"`` resolves to 12; a value without leading digits counts as absent.
    """
    if value is None or isinstance(value, bool):
        return None
    match = CONVERSATION_ID_RE.match(str(value))
    return int(match.group(1)) if match else None


@dataclass
class TurnResult:
    """Outcome of a completed turn."""
    content: str
    conversation_id: int
    message_id: int
    segments: List[str] = field(default_factory=list)
    usage_recorded: List[UsageEvent] = field(default_factory=list)
    misused_words: List[str] = field(default_factory=list)
    is_new_conversation: bool = False
    created_conversation: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the response payload."""
        body = {
            "content": self.content,
            "conversationId": str(self.conversation_id),
            "messageId": str(self.message_id),
            "segments": list(self.segments),
            "usageRecorded": [event.to_dict() for event in self.usage_recorded],
        }
        if self.misused_words:
            body["misusedWords"] = list(self.misused_words)
        return body
