"""Service for choosing the working vocabulary of a conversation turn."""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from hanbot.config import VocabularySettings
from hanbot.models.base import as_utc, utcnow
from hanbot.models.models import UsageRecord, Word
from hanbot.services.word_service import WordService

logger = logging.getLogger(__name__)

WordWithUsage = Tuple[Word, Sequence[UsageRecord]]


def last_correct_use(usage: Iterable[UsageRecord]) -> Optional[datetime]:
    """Latest timestamp among correct uses, independent of input order."""
    timestamps = [as_utc(record.timestamp) for record in usage if record.correct]
    return max(timestamps) if timestamps else None


def score_word(
    frequency: int,
    usage: Iterable[UsageRecord],
    now: Optional[datetime] = None,
    config: Optional[VocabularySettings] = None,
) -> int:
    """Priority of a word for the working vocabulary; higher is preferred.

    The score is ``score_base - frequency`` plus a need score of 1 when the
    word is due (no correct use, or the last one is older than the due
    threshold) and 0 otherwise. Since the need score is at most 1, a more
    frequent word always outranks a less frequent one in the same state.
    """
    config = config or VocabularySettings()
    base = config.score_base - frequency
    last_success = last_correct_use(usage)
    if last_success is None:
        return base + 1
    elapsed = (now or utcnow()) - last_success
    need_score = 1 if elapsed >= timedelta(hours=config.due_hours) else 0
    return base + need_score


def compute_selected_vocabulary(
    data: Sequence[WordWithUsage],
    top_n: int,
    new_k: int,
    now: Optional[datetime] = None,
    config: Optional[VocabularySettings] = None,
) -> List[str]:
    """Pick the working vocabulary from words and their usage history.

    Union of the ``top_n`` best-scored words and the ``new_k`` most frequent
    words that were never used. Sorting is stable, so ties keep input order.
    """
    if not data:
        return []
    now = now or utcnow()

    scored = [
        (word, score_word(word.frequency, usage, now=now, config=config), bool(usage))
        for word, usage in data
    ]
    by_score = sorted(scored, key=lambda item: item[1], reverse=True)
    selected = {}  # dict keeps insertion order and drops duplicates
    for word, _, _ in by_score[:top_n]:
        selected.setdefault(word.text, None)

    if new_k > 0:
        unused = sorted(
            (word for word, _, has_usage in scored if not has_usage),
            key=lambda word: word.frequency,
        )
        for word in unused[:new_k]:
            selected.setdefault(word.text, None)

    return list(selected)


class VocabularyService:
    """Service for the working vocabulary."""

    def __init__(self, db: Session, config: Optional[VocabularySettings] = None):
        """Initialize the service with a database session."""
        self.db = db
        self.config = config or VocabularySettings()
        self.word_service = WordService(db)

    def get_selected_vocabulary(
        self,
        new_words: Optional[int] = None,
        top_n: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[str]:
        """Compute the working vocabulary from the current word snapshot."""
        new_k = self.config.clamp_new_words(new_words)
        top_n = top_n or self.config.top_n
        data = self.word_service.get_words_with_usage()
        vocabulary = compute_selected_vocabulary(data, top_n, new_k, now=now, config=self.config)
        logger.info(
            f"Selected {len(vocabulary)} words from {len(data)} (top_n={top_n}, new_k={new_k})"
        )
        return vocabulary

    def get_vocabulary_details(self, new_words: Optional[int] = None) -> List[Dict[str, Any]]:
        """Working vocabulary with dictionary data and usage history."""
        details = []
        for text in self.get_selected_vocabulary(new_words):
            word = self.word_service.get_word_by_text(text)
            if not word:
                details.append({
                    "id": 0,
                    "word": text,
                    "frequency": 0,
                    "pinyin": "",
                    "english_translation": "",
                    "created_at": None,
                    "usage": [],
                })
                continue
            details.append({
                "id": word.id,
                "word": word.text,
                "frequency": word.frequency,
                "pinyin": word.pinyin,
                "english_translation": word.translation,
                "created_at": word.created_at,
                "usage": [
                    {"timestamp": record.timestamp, "correct": record.correct}
                    for record in self.word_service.get_usage_history(word.id)
                ],
            })
        return details
