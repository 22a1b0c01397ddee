"""Tests for database and chat models."""
import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hanbot.exceptions import InputValidationError
from hanbot.models.base import utcnow
from hanbot.models.chat_models import (
    ChatMessage,
    Role,
    TurnRequest,
    TurnResult,
    UsageEvent,
    parse_conversation_id,
)
from hanbot.models.models import Conversation, Message, UsageRecord, Word


def test_word_text_is_unique(db: Session):
    db.add(Word(text="茶", frequency=1))
    db.commit()
    db.add(Word(text="茶", frequency=2))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_word_usage_relationship(db: Session):
    word = Word(text="茶", frequency=1)
    db.add(word)
    db.flush()
    db.add_all([
        UsageRecord(word_id=word.id, correct=True, timestamp=utcnow()),
        UsageRecord(word_id=word.id, correct=False, timestamp=utcnow()),
    ])
    db.commit()
    db.refresh(word)
    assert len(word.usage) == 2
    assert word.created_at is not None
    assert repr(word) == "<Word 茶 #1>"


def test_usage_requires_existing_word(db: Session):
    db.add(UsageRecord(word_id=9999, correct=True))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_message_role_is_checked(db: Session):
    conversation = Conversation(topic="tea")
    db.add(conversation)
    db.flush()
    db.add(Message(conversation_id=conversation.id, role="system", content="x"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_turn_request_from_payload():
    request = TurnRequest.from_payload({
        "messages": [
            {"role": "assistant", "content": "你好"},
            {"role": "user", "content": "你好"},
        ],
        "conversationId": "12",
        "newWordsPerConversation": 5,
        "topic": "tea",
    })
    assert request.conversation_id == 12
    assert request.new_words == 5
    assert request.topic == "tea"
    assert request.last_message == ChatMessage(role=Role.USER, content="你好")


@pytest.mark.parametrize("payload", [
    None,
    {"messages": "hi"},
    {"messages": [{"role": "user"}]},
    {"messages": [{"role": "system", "content": "x"}, {"role": "user", "content": "y"}]},
    {"messages": [{"role": "user", "content": "y"}], "newWordsPerConversation": True},
    {"messages": [{"role": "user", "content": "y"}], "topic": 3},
])
def test_turn_request_rejects_malformed_payload(payload):
    with pytest.raises(InputValidationError):
        TurnRequest.from_payload(payload)


@pytest.mark.parametrize("value, expected", [
    (None, None),
    ("", None),
    ("abc", None),
    (True, None),
    (7, 7),
    ("7", 7),
    (" 8 ", 8),
    ("12abc", 12),
    ("abc12", None),
])
def test_parse_conversation_id(value, expected):
    assert parse_conversation_id(value) == expected


def test_turn_result_to_dict():
    result = TurnResult(
        content="好",
        conversation_id=3,
        message_id=9,
        segments=["好"],
        usage_recorded=[UsageEvent(word="喝", correct=False, word_id=4)],
        misused_words=["喝"],
    )
    assert result.to_dict() == {
        "content": "好",
        "conversationId": "3",
        "messageId": "9",
        "segments": ["好"],
        "usageRecorded": [{"word": "喝", "correct": False}],
        "misusedWords": ["喝"],
    }
    assert "misusedWords" not in TurnResult(content="", conversation_id=1, message_id=1).to_dict()
