"""Tests for seeding the word store."""
import json

import pytest

from hanbot.models.base import create_db_engine, create_session_factory
from hanbot.models.models import Conversation, UsageRecord, Word
from hanbot.seed import load_seed_file, main, seed


@pytest.fixture
def seed_file(tmp_path):
    rows = [
        {"word": "的", "frequency": 1, "pinyin": "de5", "english_translation": "of"},
        {"word": "我", "frequency": 2, "pinyin": "wo3", "english_translation": "I; me"},
        {"word": "茶", "frequency": 3, "pinyin": "cha2", "english_translation": "tea"},
    ]
    path = tmp_path / "words-3000.json"
    path.write_text(json.dumps(rows, ensure_ascii=False), encoding="utf-8")
    return path


def test_seed_database(tmp_path, seed_file):
    url = f"sqlite:///{tmp_path / 'hanbot.db'}"
    assert seed(seed_file, url, usage_count=2) == (3, 2)

    # Seeding again replaces the previous data
    assert seed(seed_file, url, usage_count=2) == (3, 2)

    engine = create_db_engine(url)
    db = create_session_factory(engine)()
    try:
        assert db.query(Word).count() == 3
        assert db.query(UsageRecord).count() == 2
        assert db.query(Conversation).count() == 0
    finally:
        db.close()
        engine.dispose()


@pytest.mark.parametrize("content", ["[]", "{}", '[{"word": "茶"}]'])
def test_invalid_seed_file(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValueError):
        load_seed_file(path)


def test_main(tmp_path, seed_file, capsys, mocker):
    mocker.patch("hanbot.seed.setup_logging")
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    assert main([str(seed_file), "--database-url", url, "--usage-count", "1"]) == 0
    assert "Seeded 3 words and 1 initial usage records." in capsys.readouterr().out


def test_main_missing_file(tmp_path, mocker):
    mocker.patch("hanbot.seed.setup_logging")
    assert main([str(tmp_path / "missing.json")]) == 1
