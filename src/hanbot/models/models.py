"""Database models for the tutor."""
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from hanbot.models.base import Base, TimestampMixin, utcnow


class Word(Base, TimestampMixin):
    """Word model."""

    __tablename__ = "words"

    id = Column(Integer, primary_key=True)
    text = Column(String, unique=True, nullable=False, index=True)
    frequency = Column(Integer, nullable=False, index=True)  # 1 = most frequent
    pinyin = Column(String, nullable=False, default="")
    translation = Column(String, nullable=False, default="")

    # Relationships
    usage = relationship(
        "UsageRecord",
        back_populates="word",
        order_by=lambda: [UsageRecord.timestamp.desc(), UsageRecord.id.desc()],
    )

    def __repr__(self) -> str:
        return f"<Word {self.text} #{self.frequency}>"


class UsageRecord(Base):
    """One observed use of a word by the learner."""

    __tablename__ = "usage_history"

    id = Column(Integer, primary_key=True)
    word_id = Column(Integer, ForeignKey("words.id"), nullable=False, index=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    correct = Column(Boolean, nullable=False)

    # Relationships
    word = relationship("Word", back_populates="usage")


class Conversation(Base, TimestampMixin):
    """Conversation model."""

    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True)
    topic = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    # Relationships
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by=lambda: [Message.created_at, Message.id],
    )


class Message(Base, TimestampMixin):
    """Message in a conversation."""

    __tablename__ = "messages"
    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant')", name="ck_messages_role"),
    )

    id = Column(Integer, primary_key=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), nullable=False, index=True)
    role = Column(String, nullable=False)  # user, assistant
    content = Column(Text, nullable=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
