"""Test configuration."""
import os
from pathlib import Path
from typing import Generator, List

import pytest
from dotenv import load_dotenv
from sqlalchemy.orm import Session, sessionmaker

# Set test environment before any imports
os.environ["ENV"] = "test"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from hanbot.config import VocabularySettings  # noqa: E402
from hanbot.models.base import create_db_engine, create_session_factory, init_db  # noqa: E402


def split_segment(text: str) -> List[str]:
    """Deterministic segmentation for tests: whitespace-separated tokens."""
    return text.split()


@pytest.fixture
def engine():
    """In-memory database with all tables created."""
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    """Session factory bound to the test engine."""
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def vocabulary_config() -> VocabularySettings:
    """Vocabulary settings with the documented defaults."""
    return VocabularySettings(top_n=250, default_new_words=10, max_new_words=50, due_hours=24)


@pytest.fixture
def segment():
    return split_segment
