"""Main application: wires storage, the model client and the Telegram bot."""
import logging
from typing import Optional

from telegram.ext import Application

from hanbot.bot import register_handlers, setup_admin_notifications
from hanbot.config import Settings, settings as default_settings
from hanbot.models.base import create_db_engine, create_session_factory, init_db
from hanbot.monitoring import start_monitoring
from hanbot.services.dictionary_service import DictionaryService
from hanbot.services.llm_client import LLMClient
from hanbot.services.segmenter import Segmenter
from hanbot.services.tutor_service import TutorService
from hanbot.services.word_service import WordService


class HanBot:
    """Main application class."""

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize the application."""
        self.settings = settings or default_settings
        self.application: Optional[Application] = None
        self.engine = None
        self.session_factory = None
        self.llm: Optional[LLMClient] = None
        self.segmenter: Optional[Segmenter] = None
        self.running = False
        self.logger = logging.getLogger(__name__)

    def build_tutor(self) -> TutorService:
        """Create storage, segmenter and model client, and the tutor on top."""
        self.engine = create_db_engine(self.settings.database.url, self.settings.database.echo)
        init_db(self.engine)
        self.session_factory = create_session_factory(self.engine)
        self.logger.info("Database initialized")

        db = self.session_factory()
        try:
            known_words = [word.text for word in WordService(db).get_all_words()]
        finally:
            db.close()
        self.segmenter = Segmenter(known_words)
        self.logger.info(f"Segmenter loaded with {len(known_words)} known words")

        self.llm = LLMClient(self.settings.llm)
        return TutorService(
            self.session_factory,
            self.llm,
            self.segmenter.segment,
            config=self.settings.vocabulary,
            acknowledge_call=self.settings.llm.acknowledge_call,
        )

    async def start(self) -> None:
        """Start the application."""
        if self.running:
            return

        if not self.settings.bot.token:
            raise ValueError("TELEGRAM_BOT_TOKEN is required")

        try:
            tutor = self.build_tutor()

            # Create application
            self.application = Application.builder().token(self.settings.bot.token).build()
            self.application.bot_data.update({
                "tutor": tutor,
                "session_factory": self.session_factory,
                "segmenter": self.segmenter,
                "dictionary": DictionaryService(self.settings.dictionary),
                "vocabulary_config": self.settings.vocabulary,
            })
            register_handlers(self.application)
            setup_admin_notifications(self.application, self.settings.bot.admin_ids)
            self.logger.info("Handlers added")

            if self.settings.monitoring.port:
                start_monitoring(self.settings.monitoring.port)
                self.logger.info(f"Metrics exported on port {self.settings.monitoring.port}")

            # Start application
            await self.application.initialize()
            await self.application.start()
            await self.application.updater.start_polling()
            self.logger.info("Application started")

            self.running = True

        except Exception as e:
            self.logger.error("Failed to start application: %s", str(e))
            await self._release_resources()
            self.application = None
            raise

    async def stop(self) -> None:
        """Stop the application."""
        if not self.running:
            return

        try:
            if self.application:
                await self.application.updater.stop()
                await self.application.stop()
                await self.application.shutdown()
                self.logger.info("Application stopped")

            await self._release_resources()

        except Exception as e:
            self.logger.error("Error while stopping application: %s", str(e))
            raise
        finally:
            self.running = False
            self.application = None

    async def _release_resources(self) -> None:
        """Close the model client and the database engine."""
        if self.llm:
            await self.llm.close()
            self.llm = None
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.logger.info("Database engine disposed")
