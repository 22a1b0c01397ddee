"""Dictionary lookups: CC-CEDICT entries, frequency ranks and pinyin display."""
import asyncio
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import httpx

from hanbot.config import DictionarySettings
from hanbot.exceptions import DictionaryLookupError

logger = logging.getLogger(__name__)

# 傳統 传统 [chuan2 tong3] /traditional/convention/
CEDICT_LINE = re.compile(r"^(\S+)\s+(\S+)\s+\[([^\]]+)\]\s+(.*)$")

TONE_MARKS = {
    "a": "āáǎà",
    "e": "ēéěè",
    "i": "īíǐì",
    "o": "ōóǒò",
    "u": "ūúǔù",
    "ü": "ǖǘǚǜ",
}
NUMERIC_SYLLABLE = re.compile(r"^(.+?)([0-5])$")
HAS_NUMERIC_TONE = re.compile(r"\b[a-züv:]+[1-5]\b", re.IGNORECASE)


@dataclass
class DictionaryEntry:
    """Pinyin and English gloss for a simplified form."""
    pinyin: str
    english_translation: str


def parse_cedict_line(line: str) -> Optional[tuple[str, DictionaryEntry]]:
    """Parse one CC-CEDICT line into ``(simplified, entry)``."""
    match = CEDICT_LINE.match(line.strip())
    if not match:
        return None
    _, simplified, pinyin, rest = match.groups()
    glosses = [part.strip() for part in rest.split("/") if part.strip()]
    return simplified, DictionaryEntry(pinyin=pinyin, english_translation="; ".join(glosses))


def parse_cedict(text: str) -> Dict[str, DictionaryEntry]:
    """Parse a CC-CEDICT file; the first entry for a simplified form wins."""
    entries: Dict[str, DictionaryEntry] = {}
    for line in text.splitlines():
        if not line.strip() or line.startswith("#"):
            continue
        parsed = parse_cedict_line(line)
        if parsed is None:
            continue
        simplified, entry = parsed
        entries.setdefault(simplified, entry)
    return entries


def _tone_vowel_index(syllable: str) -> int:
    """Index of the vowel carrying the tone mark, or -1."""
    lower = syllable.lower()
    for vowel in ("a", "e"):
        if vowel in lower:
            return lower.index(vowel)
    if "ou" in lower:
        return lower.index("o")
    # Otherwise the last vowel takes the mark (liù, guǐ)
    for i in range(len(lower) - 1, -1, -1):
        if lower[i] in "iouüv":
            return i
    return -1


def syllable_to_diacritic(syllable: str) -> str:
    """Convert one numeric-tone syllable, e.g. ``hao3`` to ``hǎo``."""
    match = NUMERIC_SYLLABLE.match(syllable)
    if not match:
        return syllable
    base, tone = match.group(1), int(match.group(2))
    base = base.replace("u:", "ü").replace("U:", "Ü")
    if tone in (0, 5):
        return base.replace("v", "ü").replace("V", "Ü")

    index = _tone_vowel_index(base)
    if index == -1:
        return base
    char = base[index]
    key = "ü" if char.lower() in ("v", "ü") else char.lower()
    marked = TONE_MARKS[key][tone - 1]
    if char.isupper():
        marked = marked.upper()
    result = base[:index] + marked + base[index + 1:]
    return result.replace("v", "ü").replace("V", "Ü")


def pinyin_to_diacritic(pinyin: str) -> str:
    """Convert numeric pinyin (``ni3 hao3``) to diacritics; other text is unchanged."""
    if not pinyin or not HAS_NUMERIC_TONE.search(pinyin):
        return pinyin
    return " ".join(syllable_to_diacritic(part) for part in pinyin.split())


def _load_json_map(path: Path) -> dict:
    """Load a JSON object from disk; a missing or broken file gives an empty map."""
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Could not read {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


class DictionaryService:
    """Lookups against local data files, with a remote CC-CEDICT fallback."""

    def __init__(
        self,
        config: Optional[DictionarySettings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or DictionarySettings()
        self.http_client = http_client
        self._local: Optional[Dict[str, DictionaryEntry]] = None
        self._frequencies: Optional[Dict[str, int]] = None
        self._remote: Optional[Dict[str, DictionaryEntry]] = None
        self._remote_lock = asyncio.Lock()

    def _local_entries(self) -> Dict[str, DictionaryEntry]:
        if self._local is None:
            raw = _load_json_map(self.config.cedict_lookup_file)
            self._local = {
                word: DictionaryEntry(
                    pinyin=str(value.get("pinyin", "")),
                    english_translation=str(value.get("english_translation", "")),
                )
                for word, value in raw.items()
                if isinstance(value, dict)
            }
        return self._local

    def lookup(self, word: str) -> Optional[DictionaryEntry]:
        """Look a word up in the local CEDICT map."""
        if not word or not word.strip():
            return None
        return self._local_entries().get(word.strip())

    def lookup_frequency(self, word: str) -> Optional[int]:
        """Frequency rank of a word from the local frequency file."""
        if not word or not word.strip():
            return None
        if self._frequencies is None:
            raw = _load_json_map(self.config.frequency_file)
            self._frequencies = {
                key: value for key, value in raw.items()
                if isinstance(value, int) and not isinstance(value, bool) and value >= 1
            }
        return self._frequencies.get(word.strip())

    async def _load_remote(self) -> Dict[str, DictionaryEntry]:
        """Download and parse CC-CEDICT once per process."""
        async with self._remote_lock:
            if self._remote is not None:
                return self._remote
            url = self.config.cedict_url
            logger.info(f"Downloading CC-CEDICT from {url}")
            client = self.http_client or httpx.AsyncClient(timeout=120)
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                logger.error(f"CEDICT remote fetch failed: {url}: {e}")
                raise DictionaryLookupError(f"CEDICT remote fetch failed: {e}") from e
            finally:
                if self.http_client is None:
                    await client.aclose()
            if response.status_code >= 400:
                logger.error(f"CEDICT remote fetch failed: {url} -> {response.status_code}")
                raise DictionaryLookupError(
                    f"CEDICT remote fetch failed: {response.status_code}",
                    status_code=response.status_code,
                    body=response.text[:500],
                )
            self._remote = parse_cedict(response.text)
            logger.info(f"Loaded {len(self._remote)} CC-CEDICT entries")
            return self._remote

    async def lookup_remote(self, word: str) -> Optional[DictionaryEntry]:
        """Look a word up in the full remote CC-CEDICT."""
        if not word or not word.strip():
            return None
        entries = await self._load_remote()
        return entries.get(word.strip())

    async def find(self, word: str) -> Optional[DictionaryEntry]:
        """Local lookup first, then the remote dictionary."""
        return self.lookup(word) or await self.lookup_remote(word)
