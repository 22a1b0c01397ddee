"""Which words of a learner message get a usage record, and with what verdict."""
import logging
from typing import Callable, Collection, Iterable, List, Optional

from hanbot.models.chat_models import UsageEvent
from hanbot.monitoring import usage_events
from hanbot.services.word_service import WordService

logger = logging.getLogger(__name__)


class UsagePolicy:
    """Turns a learner message into usage records.

    Two rules exist. When the whole message was judged correct, every token
    that is a known word is recorded as correct. Otherwise only tokens in the
    turn's working vocabulary are recorded, and a token is correct unless the
    model listed it as misused.
    """

    def __init__(self, word_service: WordService, segment: Callable[[str], List[str]]):
        self.word_service = word_service
        self.segment = segment

    def _known_tokens(self, text: str) -> Iterable:
        for token in self.segment(text):
            if not token.strip():
                continue
            word = self.word_service.get_word_by_text(token)
            if word is not None:
                yield token, word

    def all_correct_events(self, text: str) -> List[UsageEvent]:
        """Events for a message judged correct as a whole."""
        return [
            UsageEvent(word=word.text, correct=True, word_id=word.id)
            for _, word in self._known_tokens(text)
        ]

    def vocabulary_events(
        self,
        text: str,
        vocabulary: Collection[str],
        misused_words: Optional[Collection[str]] = None,
    ) -> List[UsageEvent]:
        """Events for vocabulary words in the message, graded by the misused list."""
        vocabulary = set(vocabulary)
        misused = set(misused_words or ())
        events = []
        for token, word in self._known_tokens(text):
            if token not in vocabulary:
                continue
            events.append(UsageEvent(word=word.text, correct=token not in misused, word_id=word.id))
        return events

    def record(self, events: Iterable[UsageEvent], commit: bool = True) -> List[UsageEvent]:
        """Persist the events, one usage record each."""
        recorded = []
        for event in events:
            self.word_service.record_usage(event.word_id, event.correct, commit=commit)
            usage_events.labels(correct=str(event.correct).lower()).inc()
            recorded.append(event)
        if recorded:
            logger.info(
                f"Recorded {len(recorded)} usage events "
                f"({sum(1 for event in recorded if not event.correct)} incorrect)"
            )
        return recorded
