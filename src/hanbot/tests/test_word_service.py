"""Tests for word service."""
from datetime import timedelta
from unittest.mock import AsyncMock, Mock

import pytest
from faker import Faker
from sqlalchemy.orm import Session

from hanbot.exceptions import InputValidationError
from hanbot.models.base import utcnow
from hanbot.models.models import UsageRecord, Word
from hanbot.services.dictionary_service import DictionaryEntry
from hanbot.services.word_service import WordService

fake = Faker()


@pytest.fixture
def word_service(db: Session) -> WordService:
    """Create a word service instance."""
    return WordService(db)


@pytest.fixture
def test_word(word_service: WordService) -> Word:
    """Create a test word."""
    return word_service.create_word("苹果", 120, pinyin="ping2 guo3", translation="apple")


def test_create_and_get_word(word_service: WordService, test_word: Word):
    assert test_word.id is not None
    assert word_service.get_word(test_word.id).text == "苹果"
    assert word_service.get_word_by_text("苹果").id == test_word.id
    assert word_service.get_word_by_text("香蕉") is None
    assert word_service.get_word(9999) is None


def test_get_all_words_by_frequency(word_service: WordService):
    for rank in (30, 10, 20):
        word_service.create_word(f"词{rank}", rank)
    assert [word.frequency for word in word_service.get_all_words()] == [10, 20, 30]
    assert word_service.get_word_count() == 3


def test_usage_history_newest_first(word_service: WordService, test_word: Word):
    now = utcnow()
    word_service.record_usage(test_word.id, True, timestamp=now - timedelta(days=2))
    word_service.record_usage(test_word.id, False, timestamp=now)
    word_service.record_usage(test_word.id, True, timestamp=now - timedelta(days=1))

    history = word_service.get_usage_history(test_word.id)
    assert [record.correct for record in history] == [False, True, True]


def test_words_with_usage(word_service: WordService, test_word: Word):
    other = word_service.create_word("茶", 50)
    word_service.record_usage(test_word.id, True)

    data = word_service.get_words_with_usage()
    assert [word.text for word, _ in data] == ["茶", "苹果"]
    assert dict((word.text, len(usage)) for word, usage in data) == {"茶": 0, "苹果": 1}
    assert other.id != test_word.id


def test_record_usage_for_by_text(word_service: WordService, test_word: Word):
    record = word_service.record_usage_for(False, text="苹果")
    assert record.word_id == test_word.id
    assert record.correct is False


def test_record_usage_for_prefers_id(word_service: WordService, test_word: Word):
    other = word_service.create_word("茶", 50)
    record = word_service.record_usage_for(True, word_id=other.id, text="苹果")
    assert record.word_id == other.id


@pytest.mark.parametrize("correct", [None, "yes", 1])
def test_record_usage_for_requires_boolean(word_service: WordService, test_word: Word, correct):
    with pytest.raises(InputValidationError) as exc_info:
        word_service.record_usage_for(correct, word_id=test_word.id)
    assert exc_info.value.message == "correct is required and must be boolean"


def test_record_usage_for_unknown_word(word_service: WordService):
    with pytest.raises(InputValidationError) as exc_info:
        word_service.record_usage_for(True, text="不存在")
    assert exc_info.value.message == "Word not found"
    assert exc_info.value.status_code == 400


def test_search_words(word_service: WordService, test_word: Word):
    word_service.create_word("茶", 50, pinyin="cha2", translation="tea")
    assert [word.text for word in word_service.search_words("apple")] == ["苹果"]
    assert [word.text for word in word_service.search_words("cha")] == ["茶"]
    assert [word.text for word in word_service.search_words("苹")] == ["苹果"]


def test_word_details(word_service: WordService, test_word: Word):
    word_service.record_usage(test_word.id, True)
    details = word_service.get_word_details(text="苹果")
    assert details["id"] == test_word.id
    assert details["english_translation"] == "apple"
    assert details["usage_history"][0]["correct"] is True
    assert word_service.get_word_details(word_id=9999) is None


def test_next_frequency_rank(word_service: WordService):
    assert word_service.next_frequency_rank(3000) == 1
    word_service.create_word("茶", 2999)
    assert word_service.next_frequency_rank(3000) == 3000
    word_service.create_word("喝", 3000)
    assert word_service.next_frequency_rank(3000) == 3000


@pytest.mark.asyncio
async def test_get_or_create_existing_word(word_service: WordService, test_word: Word):
    dictionary = Mock()
    dictionary.find = AsyncMock()
    assert (await word_service.get_or_create_word("苹果", dictionary)).id == test_word.id
    dictionary.find.assert_not_awaited()


@pytest.mark.asyncio
async def test_get_or_create_new_word(word_service: WordService):
    dictionary = Mock()
    dictionary.find = AsyncMock(return_value=DictionaryEntry(pinyin="cha2", english_translation="tea"))
    dictionary.lookup_frequency.return_value = 412

    word = await word_service.get_or_create_word(" 茶 ", dictionary)

    assert word.text == "茶"
    assert word.frequency == 412
    assert word.pinyin == "cha2"
    assert word_service.get_word_count() == 1


@pytest.mark.asyncio
async def test_get_or_create_without_frequency(word_service: WordService, test_word: Word):
    dictionary = Mock()
    dictionary.find = AsyncMock(return_value=DictionaryEntry(pinyin="ka1 fei1", english_translation="coffee"))
    dictionary.lookup_frequency.return_value = None

    word = await word_service.get_or_create_word("咖啡", dictionary)
    assert word.frequency == test_word.frequency + 1


@pytest.mark.asyncio
async def test_get_or_create_unknown_word(word_service: WordService):
    dictionary = Mock()
    dictionary.find = AsyncMock(return_value=None)
    assert await word_service.get_or_create_word("zzz", dictionary) is None
    assert await word_service.get_or_create_word("  ", dictionary) is None
    assert word_service.get_word_count() == 0


def test_seed_words(word_service: WordService, test_word: Word, db: Session):
    rows = [
        {"word": f"{fake.unique.word()}{rank}", "frequency": rank, "pinyin": "", "english_translation": fake.word()}
        for rank in range(5, 0, -1)
    ]

    assert word_service.seed_words(rows, usage_count=2) == (5, 2)

    assert word_service.get_word_by_text("苹果") is None
    used = {record.word.frequency for record in db.query(UsageRecord).all()}
    assert used == {1, 2}


def test_seed_words_requires_rows(word_service: WordService):
    with pytest.raises(ValueError):
        word_service.seed_words([])
