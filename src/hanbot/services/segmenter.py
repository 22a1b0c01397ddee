"""Chinese word segmentation."""
import logging
from typing import Iterable, List, Optional

import jieba

logger = logging.getLogger(__name__)


class Segmenter:
    """Splits Chinese text into word tokens with jieba."""

    def __init__(self, extra_words: Optional[Iterable[str]] = None):
        self.tokenizer = jieba.Tokenizer()
        for word in extra_words or ():
            self.tokenizer.add_word(word)

    def add_words(self, words: Iterable[str]) -> None:
        """Teach the tokenizer words it should keep whole."""
        for word in words:
            self.tokenizer.add_word(word)

    def segment(self, text: str) -> List[str]:
        """Ordered tokens of the text; the whole text if segmentation fails."""
        if not text:
            return []
        try:
            return [token for token in self.tokenizer.lcut(text) if token]
        except Exception as e:
            logger.error(f"Segmentation failed, returning text as one token: {e}")
            return [text]

    __call__ = segment
