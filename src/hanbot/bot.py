"""Telegram handlers: the chat surface of the tutor."""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from telegram import Update
from telegram.constants import MessageLimit
from telegram.ext import Application, CallbackContext, CommandHandler, MessageHandler, filters

from hanbot.config import VocabularySettings
from hanbot.exceptions import HanbotError
from hanbot.services.conversation_service import ConversationService
from hanbot.services.dictionary_service import DictionaryService, pinyin_to_diacritic
from hanbot.services.tutor_service import TutorService
from hanbot.services.vocabulary_service import VocabularyService
from hanbot.services.word_service import WordService

# Get logger for this module
logger = logging.getLogger(__name__)

START_PLACEHOLDER = "start"

MSG_WELCOME = (
    "你好! I'm your Chinese tutor.\n\n"
    "Just write to me in Chinese. I only use words you know plus a few new ones.\n"
    "/start [topic] - begin a new conversation\n"
    "/resume - continue the last conversation\n"
    "/vocab [details] - show the working vocabulary\n"
    "/word <词> - look up a word\n"
    "/newwords <n> - new words per conversation\n"
    "/mark <词> <yes|no> - record a use of a word"
)
MSG_ERROR = "Sorry, something went wrong. Please try again."


class AdminNotificationHandler(logging.Handler):
    """Logging handler that forwards error records to the admin chats."""

    def __init__(self, application: Application, admin_ids: List[int], level=logging.ERROR):
        super().__init__(level)
        self.application = application
        self.admin_ids = admin_ids
        self.pending: Set[asyncio.Task] = set()
        self.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    def emit(self, record):
        """Send the log record to the admin chats."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        message = self.format(record)[:MessageLimit.MAX_TEXT_LENGTH - 32]
        for chat_id in self.admin_ids:
            task = loop.create_task(
                self.application.bot.send_message(chat_id=chat_id, text=f"⚠️ {record.levelname} Alert:\n\n{message}")
            )
            self.pending.add(task)
            task.add_done_callback(self._sent)

    def _sent(self, task: asyncio.Task) -> None:
        self.pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            # Below this handler's level so a failed alert does not send another one
            logger.warning(f"Failed to notify admin: {error}")


def setup_admin_notifications(application: Application, admin_ids: List[int]) -> Optional[AdminNotificationHandler]:
    """Attach the admin notification handler to the root logger."""
    if not admin_ids:
        return None
    handler = AdminNotificationHandler(application, admin_ids)
    logging.getLogger().addHandler(handler)
    return handler


def truncate(text: str, limit: int = MessageLimit.MAX_TEXT_LENGTH) -> str:
    """Fit text into one Telegram message."""
    return text if len(text) <= limit else text[:limit - 1] + "…"


def _services(context: CallbackContext) -> Dict[str, Any]:
    return context.application.bot_data


async def log_received(update: Update, context_type: str) -> None:
    """Log message."""
    txt = f" {update.message.text}" if update.message and update.message.text else ""
    user = update.effective_user
    logger.info(f"Received @{context_type:8} from user {user.username if user else '?'}{txt}")


def build_payload(context: CallbackContext, messages: List[Dict[str, str]], topic: Optional[str] = None) -> Dict[str, Any]:
    """Turn payload for the tutor from the chat state."""
    payload = {"messages": messages, "conversationId": context.chat_data.get("conversation_id")}
    if context.chat_data.get("new_words") is not None:
        payload["newWordsPerConversation"] = context.chat_data["new_words"]
    if topic:
        payload["topic"] = topic
    return payload


def format_reply(body: Dict[str, Any]) -> str:
    """Display text plus the feedback of the turn."""
    lines = [body["content"] or "…"]
    misused = body.get("misusedWords")
    if misused:
        lines.append(f"\n❌ Misused: {', '.join(misused)}")
    usage = body.get("usageRecorded") or []
    if usage:
        marks = " ".join(f"{'✅' if event['correct'] else '❌'}{event['word']}" for event in usage)
        lines.append(f"\n📊 {marks}")
    return truncate("\n".join(lines))


async def run_turn(update: Update, context: CallbackContext, payload: Dict[str, Any]) -> None:
    """Send a turn to the tutor and reply with the outcome."""
    tutor: TutorService = _services(context)["tutor"]
    await update.message.chat.send_action("typing")
    status, body = await tutor.respond(payload)
    if status != 200:
        await update.message.reply_text(f"⚠️ {body.get('error', MSG_ERROR)}")
        return
    context.chat_data["conversation_id"] = int(body["conversationId"])
    await update.message.reply_text(format_reply(body))


async def handle_start(update: Update, context: CallbackContext) -> None:
    """Start a new conversation, optionally on a topic."""
    await log_received(update, "start")
    topic = " ".join(context.args or []).strip() or None
    context.chat_data.pop("conversation_id", None)
    await update.message.reply_text(MSG_WELCOME)
    payload = build_payload(context, [{"role": "user", "content": START_PLACEHOLDER}], topic=topic)
    await run_turn(update, context, payload)


async def handle_message(update: Update, context: CallbackContext) -> None:
    """Continue the current conversation with the learner's message."""
    await log_received(update, "message")
    text = update.message.text
    history: List[Dict[str, str]] = []
    conversation_id = context.chat_data.get("conversation_id")
    if conversation_id is not None:
        db = _services(context)["session_factory"]()
        try:
            conversation = ConversationService(db).get_conversation_by_id(conversation_id)
        finally:
            db.close()
        if conversation:
            history = [{"role": m["role"], "content": m["content"]} for m in conversation["messages"]]
        else:
            context.chat_data.pop("conversation_id", None)
    history.append({"role": "user", "content": text})
    await run_turn(update, context, build_payload(context, history))


async def handle_resume(update: Update, context: CallbackContext) -> None:
    """Pick up the most recently updated conversation."""
    await log_received(update, "resume")
    db = _services(context)["session_factory"]()
    try:
        conversation = ConversationService(db).get_current_conversation()
    finally:
        db.close()
    if not conversation:
        await update.message.reply_text("No conversation yet. Use /start to begin one.")
        return
    context.chat_data["conversation_id"] = conversation["id"]
    last = next((m for m in reversed(conversation["messages"]) if m["role"] == "assistant"), None)
    text = f"Resuming conversation about {conversation['topic'] or 'anything'}."
    if last:
        text += f"\n\n{last['content']}"
    await update.message.reply_text(truncate(text))


async def handle_vocab(update: Update, context: CallbackContext) -> None:
    """Show the current working vocabulary."""
    await log_received(update, "vocab")
    services = _services(context)
    show_details = bool(context.args) and context.args[0].lower() == "details"
    db = services["session_factory"]()
    try:
        vocabulary = VocabularyService(db, services["vocabulary_config"])
        new_words = context.chat_data.get("new_words")
        if show_details:
            details = vocabulary.get_vocabulary_details(new_words)
            words = [item["word"] for item in details]
        else:
            words = vocabulary.get_selected_vocabulary(new_words)
    finally:
        db.close()
    if not words:
        await update.message.reply_text("The word list is empty. Seed it with `python -m hanbot.seed`.")
        return
    if show_details:
        lines = [
            f"{item['word']} {pinyin_to_diacritic(item['pinyin'])} {item['english_translation']} "
            f"(#{item['frequency']}, {len(item['usage'])} uses)"
            for item in details
        ]
        await update.message.reply_text(truncate("\n".join(lines)))
        return
    await update.message.reply_text(truncate(f"📚 {len(words)} words:\n" + " ".join(words)))


async def handle_word(update: Update, context: CallbackContext) -> None:
    """Look up a word, adding it to the word list on first lookup."""
    await log_received(update, "word")
    if not context.args:
        await update.message.reply_text("Usage: /word <词>")
        return
    text = context.args[0].strip()
    services = _services(context)
    dictionary: DictionaryService = services["dictionary"]
    config: VocabularySettings = services["vocabulary_config"]
    db = services["session_factory"]()
    try:
        word_service = WordService(db)
        try:
            word = await word_service.get_or_create_word(text, dictionary, config.max_frequency_rank)
        except HanbotError as e:
            logger.error(f"Lookup of {text} failed: {e.message}")
            await update.message.reply_text("⚠️ The dictionary is not available right now.")
            return
        if word is None:
            await update.message.reply_text(f"No dictionary entry for {text}.")
            return
        details = word_service.get_word_details(word_id=word.id)
        if services.get("segmenter") is not None:
            services["segmenter"].add_words([word.text])
    finally:
        db.close()

    history = details["usage_history"]
    correct = sum(1 for record in history if record["correct"])
    await update.message.reply_text(truncate(
        f"{details['word']} [{pinyin_to_diacritic(details['pinyin'])}]\n"
        f"{details['english_translation']}\n"
        f"Frequency rank: {details['frequency']}\n"
        f"Used {len(history)} times, {correct} correct"
    ))


async def handle_new_words(update: Update, context: CallbackContext) -> None:
    """Set the number of new words introduced per conversation."""
    await log_received(update, "newwords")
    config: VocabularySettings = _services(context)["vocabulary_config"]
    try:
        value = int(context.args[0])
    except (IndexError, TypeError, ValueError):
        current = context.chat_data.get("new_words", config.default_new_words)
        await update.message.reply_text(f"Usage: /newwords <n> (currently {current})")
        return
    context.chat_data["new_words"] = config.clamp_new_words(value)
    await update.message.reply_text(f"New words per conversation: {context.chat_data['new_words']}")


async def handle_mark(update: Update, context: CallbackContext) -> None:
    """Record a use of a word by hand."""
    await log_received(update, "mark")
    if len(context.args or []) != 2 or context.args[1].lower() not in ("yes", "no"):
        await update.message.reply_text("Usage: /mark <词> <yes|no>")
        return
    text, verdict = context.args
    db = _services(context)["session_factory"]()
    try:
        WordService(db).record_usage_for(verdict.lower() == "yes", text=text)
    except HanbotError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return
    finally:
        db.close()
    await update.message.reply_text(f"Recorded {text}: {verdict.lower()}")


async def handle_error(update: object, context: CallbackContext) -> None:
    """Log handler errors and tell the learner."""
    logger.error("Error while handling update", exc_info=context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(MSG_ERROR)


def register_handlers(application: Application) -> None:
    """Register all handlers on the application."""
    application.add_handler(CommandHandler("start", handle_start))
    application.add_handler(CommandHandler("resume", handle_resume))
    application.add_handler(CommandHandler("vocab", handle_vocab))
    application.add_handler(CommandHandler("word", handle_word))
    application.add_handler(CommandHandler("newwords", handle_new_words))
    application.add_handler(CommandHandler("mark", handle_mark))
    application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))
    application.add_error_handler(handle_error)
