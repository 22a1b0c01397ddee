"""Conversation turn orchestration.

A turn runs as a fixed sequence of states. A new conversation goes through
an acknowledgement call and a first reply. A continuation goes through an
optional yes/no correctness check and the main reply, after which usage
records for the learner's message are written.

All writes of a turn happen in one database session that is committed only
when the turn completes, so a failed model call leaves no partial rows.
Writes are staged until the last model call has returned; no database write
lock is held while a turn waits on the model.
"""
import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from hanbot.config import VocabularySettings
from hanbot.exceptions import (
    ConfigurationError,
    HanbotError,
    InputValidationError,
    RemoteServiceError,
)
from hanbot.models.chat_models import (
    ChatMessage,
    ParsedReply,
    Role,
    TurnRequest,
    TurnResult,
    UsageEvent,
)
from hanbot.models.models import Conversation
from hanbot.monitoring import conversations_started, error_count, turns
from hanbot.services import prompts
from hanbot.services.conversation_service import ConversationService
from hanbot.services.llm_client import LLMClient
from hanbot.services.response_parser import parse_reply, parse_yes_no
from hanbot.services.usage_policy import UsagePolicy
from hanbot.services.vocabulary_service import VocabularyService
from hanbot.services.word_service import WordService

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Internal server error"
REMOTE_ERROR = "The language model service failed, please try again later"


class TurnState(Enum):
    """States of a conversation turn."""
    RESOLVE = "resolve"
    NEW_CONVERSATION_BOOTSTRAP = "new_conversation_bootstrap"
    NEW_CONVERSATION_FIRST_REPLY = "new_conversation_first_reply"
    CONTINUATION_RESOLVE = "continuation_resolve"
    CORRECTNESS_CHECK = "correctness_check"
    MAIN_REPLY = "main_reply"
    DONE = "done"


@dataclass
class TurnContext:
    """Working state of one turn."""
    request: TurnRequest
    db: Session
    vocabulary: List[str]
    policy: UsagePolicy
    conversations: ConversationService
    state: TurnState = TurnState.RESOLVE
    conversation: Optional[Conversation] = None
    topic: Optional[str] = None
    all_correct: bool = False
    pending_usage: List[UsageEvent] = field(default_factory=list)

    def enter(self, state: TurnState) -> None:
        logger.debug(f"Turn state {self.state.value} -> {state.value}")
        self.state = state


class TutorService:
    """Runs conversation turns against the model and the word store."""

    def __init__(
        self,
        session_factory: sessionmaker,
        llm: LLMClient,
        segment: Callable[[str], List[str]],
        config: Optional[VocabularySettings] = None,
        acknowledge_call: bool = True,
    ):
        self.session_factory = session_factory
        self.llm = llm
        self.segment = segment
        self.config = config or VocabularySettings()
        self.acknowledge_call = acknowledge_call
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, conversation_id: int) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def handle_turn(self, request: TurnRequest) -> TurnResult:
        """Run one turn and return what the learner should see."""
        if request.conversation_id is None:
            return await self._run_in_session(request)
        # Turns of the same conversation never interleave
        async with self._lock_for(request.conversation_id):
            return await self._run_in_session(request)

    async def _run_in_session(self, request: TurnRequest) -> TurnResult:
        db = self.session_factory()
        kind = "unknown"
        try:
            result = await self._run(request, db)
            kind = "new" if result.is_new_conversation else "continuation"
            db.commit()
            if result.created_conversation:
                conversations_started.inc()
            turns.labels(kind=kind, outcome="ok").inc()
            return result
        except Exception:
            db.rollback()
            turns.labels(kind=kind, outcome="error").inc()
            raise
        finally:
            db.close()

    async def _run(self, request: TurnRequest, db: Session) -> TurnResult:
        word_service = WordService(db)
        context = TurnContext(
            request=request,
            db=db,
            vocabulary=VocabularyService(db, self.config).get_selected_vocabulary(request.new_words),
            policy=UsagePolicy(word_service, self.segment),
            conversations=ConversationService(db),
        )

        if request.conversation_id is not None:
            context.conversation = context.conversations.get_conversation(request.conversation_id)
            if context.conversation is None:
                logger.info(f"Conversation {request.conversation_id} not found")

        if context.conversation is None and len(request.messages) == 1:
            context.enter(TurnState.NEW_CONVERSATION_BOOTSTRAP)
            await self._acknowledge(context)
            context.enter(TurnState.NEW_CONVERSATION_FIRST_REPLY)
            result = await self._first_reply(context)
        else:
            context.enter(TurnState.CONTINUATION_RESOLVE)
            self._resolve_continuation(context)
            if len(request.messages) >= 2:
                context.enter(TurnState.CORRECTNESS_CHECK)
                await self._check_correctness(context)
            context.enter(TurnState.MAIN_REPLY)
            result = await self._main_reply(context)

        context.enter(TurnState.DONE)
        return result

    async def _acknowledge(self, context: TurnContext) -> None:
        """Prime the model with the vocabulary; the reply is not used."""
        if not self.acknowledge_call:
            return
        try:
            reply = await self.llm.chat(prompts.acknowledge_messages(context.vocabulary))
        except HanbotError as e:
            logger.warning(f"Acknowledgement call failed, continuing: {e}")
            return
        if "acknowledged" not in reply.lower():
            logger.info(f"Unexpected acknowledgement reply: {reply[:100]!r}")

    def _create_conversation(self, context: TurnContext) -> Conversation:
        return context.conversations.create_conversation(context.topic, commit=False)

    async def _first_reply(self, context: TurnContext) -> TurnResult:
        requested_topic = context.request.topic
        context.topic = requested_topic or self.config.default_topic

        raw_content = context.request.last_message.content
        first_content = raw_content.strip()
        prompt = prompts.RANDOM_TOPIC_PROMPT if prompts.is_placeholder(first_content) else first_content

        reply = await self.llm.chat([
            ChatMessage(role=Role.SYSTEM, content=prompts.first_reply_system_prompt(context.vocabulary, requested_topic)),
            ChatMessage(role=Role.USER, content=prompt),
        ])
        parsed = parse_reply(reply)

        context.conversation = self._create_conversation(context)
        conversation_id = context.conversation.id
        context.conversations.append_message(conversation_id, Role.USER.value, first_content or raw_content, commit=False)
        message = context.conversations.append_message(
            conversation_id, Role.ASSISTANT.value, parsed.display_text, commit=False
        )
        logger.info(f"Started conversation {conversation_id} (topic: {context.topic})")
        return TurnResult(
            content=parsed.display_text,
            conversation_id=conversation_id,
            message_id=message.id,
            segments=self.segment(parsed.display_text),
            is_new_conversation=True,
            created_conversation=True,
        )

    def _resolve_continuation(self, context: TurnContext) -> None:
        """Pick the stored conversation; a missing one is created after the model replies."""
        stored_topic = context.conversation.topic if context.conversation is not None else None
        context.topic = stored_topic or context.request.topic or self.config.default_topic
        if context.conversation is None:
            logger.debug(f"Continuing in a new conversation (topic: {context.topic})")
        else:
            logger.debug(f"Continuing conversation {context.conversation.id} (topic: {context.topic})")

    async def _check_correctness(self, context: TurnContext) -> None:
        """Ask the model whether the learner's message is correct as a whole."""
        request = context.request
        recent = request.messages[-self.config.context_messages:]
        reply = await self.llm.chat(prompts.correctness_messages(recent, request.last_message.content))
        if not parse_yes_no(reply):
            logger.debug(f"Correctness check negative: {reply[:50]!r}")
            return
        context.all_correct = True
        context.pending_usage.extend(context.policy.all_correct_events(request.last_message.content))

    async def _main_reply(self, context: TurnContext) -> TurnResult:
        request = context.request
        messages = [ChatMessage(role=Role.SYSTEM, content=prompts.continuation_system_prompt(context.vocabulary))]
        messages.extend(request.messages)
        parsed: ParsedReply = parse_reply(await self.llm.chat(messages))
        misused = parsed.misused_words or []

        created = context.conversation is None
        if created:
            context.conversation = self._create_conversation(context)
        conversation_id = context.conversation.id
        context.conversations.append_message(
            conversation_id, Role.USER.value, request.last_message.content, commit=False
        )
        message = context.conversations.append_message(
            conversation_id, Role.ASSISTANT.value, parsed.display_text, commit=False
        )

        if not context.all_correct:
            context.pending_usage.extend(context.policy.vocabulary_events(
                request.last_message.content, context.vocabulary, misused
            ))
        usage = context.policy.record(context.pending_usage, commit=False)

        return TurnResult(
            content=parsed.display_text,
            conversation_id=conversation_id,
            message_id=message.id,
            segments=self.segment(parsed.display_text),
            usage_recorded=usage,
            misused_words=misused,
            created_conversation=created,
        )

    async def respond(self, payload: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
        """Handle a turn payload and return ``(status, body)``."""
        try:
            request = TurnRequest.from_payload(payload)
            result = await self.handle_turn(request)
            return 200, result.to_dict()
        except InputValidationError as e:
            logger.warning(f"Rejected turn request: {e.message}")
            error_count.labels(error_type="validation").inc()
            return e.status_code, e.to_dict()
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e.message}")
            error_count.labels(error_type="configuration").inc()
            return e.status_code, e.to_dict()
        except RemoteServiceError as e:
            logger.error(f"Remote service error (transient: {e.is_transient}): {e.message} {e.details}")
            error_count.labels(error_type="remote").inc()
            return e.status_code, {"error": REMOTE_ERROR}
        except Exception:
            logger.exception("Turn failed")
            error_count.labels(error_type="internal").inc()
            return 500, {"error": GENERIC_ERROR}
