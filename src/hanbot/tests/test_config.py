"""Tests for configuration settings."""
import pytest

from hanbot.config import (
    DATA_DIR,
    LLMSettings,
    Settings,
    VocabularySettings,
    ensure_directories,
    settings,
)


def test_data_directory_is_created():
    ensure_directories()
    assert DATA_DIR.exists()


def test_vocabulary_defaults():
    config = VocabularySettings()
    assert config.top_n == 250
    assert config.default_new_words == 10
    assert config.due_hours == 24
    assert config.score_base == 3001
    assert config.score_base > config.max_frequency_rank


@pytest.mark.parametrize("value, expected", [(None, 10), (0, 1), (-3, 1), (5, 5), (50, 50), (51, 50), (1000, 50)])
def test_clamp_new_words(value, expected):
    assert VocabularySettings().clamp_new_words(value) == expected


@pytest.mark.parametrize("kwargs", [
    {"top_n": 0},
    {"default_new_words": 0},
    {"default_new_words": 60},
    {"due_hours": 0},
    {"score_base": 3000},
])
def test_invalid_vocabulary_settings(kwargs):
    with pytest.raises(ValueError):
        VocabularySettings(**kwargs).validate()


def test_settings_validate():
    settings.validate()
    with pytest.raises(ValueError):
        Settings(llm=LLMSettings(max_tokens=0)).validate()
    with pytest.raises(ValueError):
        Settings(llm=LLMSettings(timeout=0)).validate()


def test_test_environment_is_loaded():
    assert settings.database.url == "sqlite://"
    assert settings.llm.api_key == "test-key"
