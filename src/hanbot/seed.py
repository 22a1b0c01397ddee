"""Seed the word store from a frequency-ranked word list.

Usage: python -m hanbot.seed [path/to/words-3000.json]

The file is a JSON array of ``{word, frequency, pinyin, english_translation}``
objects. Seeding replaces all words and conversations.
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from hanbot.config import ensure_directories, settings
from hanbot.logging_config import setup_logging
from hanbot.models.base import create_db_engine, create_session_factory, init_db
from hanbot.models.models import Conversation, Message
from hanbot.services.word_service import WordService

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("word", "frequency")


def load_seed_file(path: Path) -> List[Dict[str, Any]]:
    """Read and check the seed rows."""
    rows = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(rows, list) or not rows:
        raise ValueError("Seed file must be a non-empty JSON array")
    for index, row in enumerate(rows):
        if not isinstance(row, dict) or any(key not in row for key in REQUIRED_FIELDS):
            raise ValueError(f"Seed row {index} must have 'word' and 'frequency'")
    return rows


def seed(path: Path, database_url: Optional[str] = None, usage_count: Optional[int] = None) -> tuple:
    """Seed the database at ``database_url`` from ``path``."""
    rows = load_seed_file(path)
    engine = create_db_engine(database_url or settings.database.url)
    try:
        init_db(engine)
        db = create_session_factory(engine)()
        try:
            db.query(Message).delete()
            db.query(Conversation).delete()
            return WordService(db).seed_words(
                rows,
                usage_count if usage_count is not None else settings.dictionary.seed_usage_count,
            )
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
    finally:
        engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the HanBot word store")
    parser.add_argument("path", nargs="?", type=Path, default=settings.dictionary.seed_words_file)
    parser.add_argument("--database-url", default=None, help="defaults to DATABASE_URL")
    parser.add_argument("--usage-count", type=int, default=None, help="words marked as already used")
    args = parser.parse_args(argv)

    ensure_directories()
    setup_logging("Seeding HanBot word store ...")

    if not args.path.exists():
        logger.error(f"Seed file not found: {args.path}")
        return 1
    try:
        words, usage = seed(args.path, args.database_url, args.usage_count)
    except ValueError as e:
        logger.error(f"Invalid seed data: {e}")
        return 1
    print(f"Seeded {words} words and {usage} initial usage records.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
