"""Service for conversations and their messages."""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from hanbot.models.base import utcnow
from hanbot.models.models import Conversation, Message

logger = logging.getLogger(__name__)


class ConversationService:
    """Service for managing conversations."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def create_conversation(self, topic: Optional[str] = None, commit: bool = True) -> Conversation:
        """Create a new conversation."""
        now = utcnow()
        conversation = Conversation(topic=topic, created_at=now, updated_at=now)
        self.db.add(conversation)
        if commit:
            self.db.commit()
            self.db.refresh(conversation)
        else:
            self.db.flush()
        logger.info(f"Created conversation {conversation.id} (topic: {topic})")
        return conversation

    def get_conversation(self, conversation_id: int) -> Optional[Conversation]:
        """Get a conversation by its ID."""
        return self.db.query(Conversation).filter(Conversation.id == conversation_id).first()

    def get_messages(self, conversation_id: int) -> List[Message]:
        """Messages of a conversation in the order they were appended."""
        return (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at, Message.id)
            .all()
        )

    def append_message(
        self,
        conversation_id: int,
        role: str,
        content: str,
        commit: bool = True,
    ) -> Message:
        """Append a message and touch the conversation's update time."""
        conversation = self.get_conversation(conversation_id)
        if not conversation:
            raise ValueError(f"Conversation {conversation_id} not found")

        now = utcnow()
        conversation.updated_at = now
        message = Message(conversation_id=conversation_id, role=role, content=content, created_at=now)
        self.db.add(message)
        if commit:
            self.db.commit()
            self.db.refresh(message)
        else:
            self.db.flush()
        return message

    def get_conversation_by_id(self, conversation_id: int) -> Optional[Dict[str, Any]]:
        """Conversation with its messages, or None."""
        conversation = self.get_conversation(conversation_id)
        if not conversation:
            return None
        return self._serialize(conversation)

    def get_current_conversation(self) -> Optional[Dict[str, Any]]:
        """The most recently updated conversation with its messages."""
        conversation = (
            self.db.query(Conversation)
            .order_by(
                func.coalesce(Conversation.updated_at, Conversation.created_at).desc(),
                Conversation.id.desc(),
            )
            .first()
        )
        if not conversation:
            return None
        return self._serialize(conversation)

    def _serialize(self, conversation: Conversation) -> Dict[str, Any]:
        return {
            "id": conversation.id,
            "topic": conversation.topic,
            "created_at": conversation.created_at,
            "updated_at": conversation.updated_at,
            "messages": [
                {"id": message.id, "role": message.role, "content": message.content}
                for message in self.get_messages(conversation.id)
            ],
        }
