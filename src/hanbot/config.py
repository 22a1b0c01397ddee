"""Configuration settings for the tutor."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
CEDICT_LOOKUP_FILE = DATA_DIR / "cedict-lookup.json"
FREQUENCY_FILE = DATA_DIR / "word-frequency.json"
SEED_WORDS_FILE = DATA_DIR / "words-3000.json"

GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
CEDICT_URL = "https://raw.githubusercontent.com/bsun94/ChineseDictionary/master/dict_db/cedict_ts.u8"


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'hanbot.db'}")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


def get_admin_ids() -> list[int]:
    """Get admin IDs from environment variable."""
    return [int(id_) for id_ in os.getenv("TELEGRAM_ADMIN_IDS", "").split(",") if id_]


@dataclass
class BotSettings:
    """Bot configuration settings."""
    token: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    admin_ids: list[int] = field(default_factory=get_admin_ids)


@dataclass
class LLMSettings:
    """Language model settings."""
    api_key: str = os.getenv("GROQ_API_KEY", "").strip()
    api_url: str = os.getenv("LLM_API_URL", GROQ_API_URL)
    model: str = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
    max_tokens: int = int(os.getenv("LLM_MAX_TOKENS", "1024"))
    timeout: float = float(os.getenv("LLM_TIMEOUT", "60"))
    # The acknowledgement call before a new conversation can be switched off
    acknowledge_call: bool = os.getenv("LLM_ACKNOWLEDGE_CALL", "true").lower() == "true"


@dataclass
class VocabularySettings:
    """Working vocabulary selection settings."""
    top_n: int = int(os.getenv("VOCAB_TOP_N", "250"))
    default_new_words: int = int(os.getenv("DEFAULT_NEW_WORDS", "10"))
    min_new_words: int = 1
    max_new_words: int = int(os.getenv("MAX_NEW_WORDS", "50"))
    due_hours: float = float(os.getenv("DUE_HOURS", "24"))
    score_base: int = 3001  # must exceed max_frequency_rank
    max_frequency_rank: int = 3000
    default_topic: str = "general conversation"
    context_messages: int = 6

    def clamp_new_words(self, value: Optional[int]) -> int:
        """Clamp a requested new-words count into the allowed range."""
        if value is None:
            return self.default_new_words
        return max(self.min_new_words, min(self.max_new_words, value))

    def validate(self) -> None:
        """Validate vocabulary settings and raise ValueError if invalid."""
        if self.top_n < 1:
            raise ValueError("VOCAB_TOP_N must be positive")
        if not self.min_new_words <= self.default_new_words <= self.max_new_words:
            raise ValueError("DEFAULT_NEW_WORDS must be between 1 and MAX_NEW_WORDS")
        if self.due_hours <= 0:
            raise ValueError("DUE_HOURS must be positive")
        if self.score_base <= self.max_frequency_rank:
            raise ValueError("score base must be greater than the maximum frequency rank")


@dataclass
class DictionarySettings:
    """Dictionary and frequency data settings."""
    data_dir: Path = DATA_DIR
    cedict_lookup_file: Path = CEDICT_LOOKUP_FILE
    frequency_file: Path = FREQUENCY_FILE
    seed_words_file: Path = SEED_WORDS_FILE
    cedict_url: str = os.getenv("CEDICT_URL", CEDICT_URL)
    seed_usage_count: int = 300


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    port: int = int(os.getenv("METRICS_PORT", "0"))


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_bot_settings() -> BotSettings:
    """Get bot settings."""
    return BotSettings()


def get_llm_settings() -> LLMSettings:
    """Get language model settings."""
    return LLMSettings()


def get_vocabulary_settings() -> VocabularySettings:
    """Get vocabulary settings."""
    return VocabularySettings()


def get_dictionary_settings() -> DictionarySettings:
    """Get dictionary settings."""
    return DictionarySettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    bot: BotSettings = field(default_factory=get_bot_settings)
    llm: LLMSettings = field(default_factory=get_llm_settings)
    vocabulary: VocabularySettings = field(default_factory=get_vocabulary_settings)
    dictionary: DictionarySettings = field(default_factory=get_dictionary_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        self.vocabulary.validate()

        if self.llm.max_tokens < 1:
            raise ValueError("LLM_MAX_TOKENS must be positive")

        if self.llm.timeout <= 0:
            raise ValueError("LLM_TIMEOUT must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
