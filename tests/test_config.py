"""Tests for environment-based configuration."""

import re

import pytest

from lessonbot_app import config as config_module
from lessonbot_app.config import load_config

ENV_VARS = [
    'OLLAMA_URL', 'MODEL_NAME', 'EMBEDDING_MODEL', 'OLLAMA_USERNAME', 'OLLAMA_PASSWORD', 'VERIFY_SSL',
    'LLM_TIMEOUT', 'CONTEXT_LENGTH', 'CHROMA_URL', 'CHROMA_COLLECTION', 'SIMILARITY_THRESHOLD',
    'MEMORY_TOP_N', 'COMMAND_TIMEOUT', 'MAX_OUTPUT_SIZE', 'HISTORY_MAX_CHARS', 'SHOW_THINKING', 'LOGGING_LEVEL',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, 'load_dotenv', lambda: False)


def test_defaults():
    config = load_config()
    assert config.ollama_url == 'http://localhost:11434'
    assert config.embedding_model == 'nomic-embed-text'
    assert config.chroma_url == 'http://localhost:8000'
    assert config.collection_name == 'agent_lessons'
    assert config.memory_top_n == 2
    assert config.similarity_threshold == 0.0
    assert config.context_length is None
    assert config.verify_ssl is True
    assert config.show_thinking is False
    assert config.log_level_str == 'INFO'
    assert config.memory_enabled
    assert re.match(r"session_\d{8}_\d{6}_[0-9a-f]{8}$", config.session_id)


def test_overrides(monkeypatch):
    monkeypatch.setenv('MODEL_NAME', 'qwen2.5:7b')
    monkeypatch.setenv('CONTEXT_LENGTH', '8192')
    monkeypatch.setenv('SIMILARITY_THRESHOLD', '0.35')
    monkeypatch.setenv('VERIFY_SSL', 'false')
    monkeypatch.setenv('SHOW_THINKING', 'TRUE')
    monkeypatch.setenv('LOGGING_LEVEL', 'logging.debug')
    config = load_config()
    assert config.model_name == 'qwen2.5:7b'
    assert config.context_length == 8192
    assert config.similarity_threshold == 0.35
    assert config.verify_ssl is False
    assert config.show_thinking is True
    assert config.log_level_str == 'DEBUG'


def test_empty_chroma_url_disables_memory(monkeypatch):
    monkeypatch.setenv('CHROMA_URL', '')
    assert not load_config().memory_enabled


def test_invalid_numbers_fall_back(monkeypatch):
    monkeypatch.setenv('MEMORY_TOP_N', 'two')
    monkeypatch.setenv('SIMILARITY_THRESHOLD', 'close')
    config = load_config()
    assert config.memory_top_n == 2
    assert config.similarity_threshold == 0.0
