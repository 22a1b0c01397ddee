"""Service for managing words and their usage history."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from hanbot.exceptions import InputValidationError
from hanbot.models.base import utcnow
from hanbot.models.models import UsageRecord, Word

logger = logging.getLogger(__name__)


class WordService:
    """Service for managing words in the system."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get_word(self, word_id: int) -> Optional[Word]:
        """Get a word by its ID."""
        return self.db.query(Word).filter(Word.id == word_id).first()

    def get_word_by_text(self, text: str) -> Optional[Word]:
        """Get a word by its surface form."""
        return self.db.query(Word).filter(Word.text == text).first()

    def get_all_words(self) -> List[Word]:
        """Get all words, most frequent first."""
        return self.db.query(Word).order_by(Word.frequency, Word.id).all()

    def get_word_count(self) -> int:
        """Get the count of words in the database."""
        return self.db.query(Word).count()

    def get_usage_history(self, word_id: int) -> List[UsageRecord]:
        """Usage records of a word, newest first."""
        return (
            self.db.query(UsageRecord)
            .filter(UsageRecord.word_id == word_id)
            .order_by(UsageRecord.timestamp.desc(), UsageRecord.id.desc())
            .all()
        )

    def get_words_with_usage(self) -> List[Tuple[Word, Sequence[UsageRecord]]]:
        """All words with their usage history, most frequent first."""
        words = (
            self.db.query(Word)
            .options(selectinload(Word.usage))
            .order_by(Word.frequency, Word.id)
            .all()
        )
        return [(word, list(word.usage)) for word in words]

    def record_usage(
        self,
        word_id: int,
        correct: bool,
        timestamp: Optional[datetime] = None,
        commit: bool = True,
    ) -> UsageRecord:
        """Record one use of a word."""
        record = UsageRecord(word_id=word_id, correct=bool(correct), timestamp=timestamp or utcnow())
        self.db.add(record)
        if commit:
            self.db.commit()
            self.db.refresh(record)
        else:
            self.db.flush()
        logger.debug(f"Recorded usage of word {word_id}: correct={record.correct}")
        return record

    def record_usage_for(
        self,
        correct: Any,
        word_id: Optional[int] = None,
        text: Optional[str] = None,
    ) -> UsageRecord:
        """Record usage for a word given by id or by surface form."""
        if not isinstance(correct, bool):
            raise InputValidationError("correct is required and must be boolean")
        word = self.get_word(word_id) if isinstance(word_id, int) else None
        if word is None and isinstance(text, str):
            word = self.get_word_by_text(text)
        if word is None:
            raise InputValidationError("Word not found")
        return self.record_usage(word.id, correct)

    def create_word(
        self,
        text: str,
        frequency: int,
        pinyin: str = "",
        translation: str = "",
        commit: bool = True,
    ) -> Word:
        """Create a new word."""
        word = Word(text=text, frequency=frequency, pinyin=pinyin, translation=translation)
        self.db.add(word)
        if commit:
            self.db.commit()
            self.db.refresh(word)
        else:
            self.db.flush()
        logger.info(f"Created word {text} with frequency {frequency}")
        return word

    def next_frequency_rank(self, max_rank: int) -> int:
        """Rank for a word with no known frequency: one past the rarest word."""
        current = self.db.query(func.max(Word.frequency)).scalar() or 0
        return min(current + 1, max_rank)

    async def get_or_create_word(self, text: str, dictionary, max_rank: int = 3000) -> Optional[Word]:
        """Return a word, creating it from dictionary data on first lookup.

        Returns None when the dictionary does not know the word.
        """
        text = text.strip()
        if not text:
            return None
        existing = self.get_word_by_text(text)
        if existing:
            return existing

        entry = await dictionary.find(text)
        if entry is None:
            logger.info(f"No dictionary entry for {text}")
            return None
        frequency = dictionary.lookup_frequency(text) or self.next_frequency_rank(max_rank)
        return self.create_word(
            text,
            frequency=min(frequency, max_rank),
            pinyin=entry.pinyin,
            translation=entry.english_translation,
        )

    def search_words(self, query: str, limit: int = 10) -> List[Word]:
        """Search for words by surface form, pinyin or translation."""
        return (
            self.db.query(Word)
            .filter(
                or_(
                    Word.text.contains(query),
                    Word.pinyin.ilike(f"%{query}%"),
                    Word.translation.ilike(f"%{query}%"),
                )
            )
            .order_by(Word.frequency)
            .limit(limit)
            .all()
        )

    def get_word_details(
        self,
        word_id: Optional[int] = None,
        text: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Get detailed information about a word, including usage history."""
        word = self.get_word(word_id) if word_id is not None else None
        if word is None and text:
            word = self.get_word_by_text(text)
        if not word:
            return None

        return {
            "id": word.id,
            "word": word.text,
            "frequency": word.frequency,
            "pinyin": word.pinyin,
            "english_translation": word.translation,
            "usage_history": [
                {"timestamp": record.timestamp, "correct": record.correct}
                for record in self.get_usage_history(word.id)
            ],
        }

    def seed_words(self, rows: List[Dict[str, Any]], usage_count: int = 300) -> Tuple[int, int]:
        """Replace all words with the seed list and mark the most frequent as used.

        Returns the number of words and usage records created.
        """
        if not rows:
            raise ValueError("Seed data must be a non-empty list")

        self.db.query(UsageRecord).delete()
        self.db.query(Word).delete()
        words = [
            Word(
                text=row["word"],
                frequency=int(row["frequency"]),
                pinyin=row.get("pinyin", ""),
                translation=row.get("english_translation", ""),
            )
            for row in rows
        ]
        self.db.add_all(words)
        self.db.flush()

        most_frequent = sorted(words, key=lambda word: word.frequency)[:usage_count]
        now = utcnow()
        self.db.add_all(UsageRecord(word_id=word.id, correct=True, timestamp=now) for word in most_frequent)
        self.db.commit()
        logger.info(f"Seeded {len(words)} words and {len(most_frequent)} usage records")
        return len(words), len(most_frequent)
