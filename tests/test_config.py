"""Tests for QuorumSettings."""

from __future__ import annotations

import os

import pytest
from pydantic import ValidationError

from quorum.config import QuorumSettings


def _settings(**kwargs) -> QuorumSettings:
    return QuorumSettings(_env_file=None, **kwargs)  # type: ignore[call-arg]


class TestDefaults:
    def test_defaults(self, monkeypatch):
        for name in list(os.environ):
            if name.startswith("QUORUM_"):
                monkeypatch.delenv(name)
        settings = _settings()
        assert settings.database_url == "sqlite+aiosqlite:///quorum.db"
        assert settings.provider == "ollama"
        assert settings.ollama_host == "http://localhost:11434"
        assert settings.embed_model == "mxbai-embed-large"
        assert settings.embedding_dim == 1024
        assert settings.batch_size == 50
        assert settings.poll_interval == 30.0
        assert settings.chunk_size == 500
        assert settings.chunk_overlap == 50
        assert settings.backlog_concurrency == 1
        assert settings.health_timeout == 5.0
        assert settings.log_level == "INFO"


class TestEnvironment:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("QUORUM_OLLAMA_HOST", "http://gpu-box:11434")
        monkeypatch.setenv("QUORUM_BATCH_SIZE", "20")
        settings = _settings()
        assert settings.ollama_host == "http://gpu-box:11434"
        assert settings.batch_size == 20

    def test_case_insensitive(self, monkeypatch):
        monkeypatch.setenv("quorum_embed_model", "nomic-embed-text")
        assert _settings().embed_model == "nomic-embed-text"

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("QUORUM_CHUNK_SIZE", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("QUORUM_CHUNK_SIZE=800\nUNRELATED=1\n")
        settings = QuorumSettings(_env_file=env_file)  # type: ignore[call-arg]
        assert settings.chunk_size == 800

    def test_kwargs_override_env(self, monkeypatch):
        monkeypatch.setenv("QUORUM_PROVIDER", "openai")
        assert _settings(provider="ollama").provider == "ollama"


class TestValidation:
    def test_overlap_must_be_below_chunk_size(self):
        with pytest.raises(ValidationError, match="chunk_overlap"):
            _settings(chunk_size=100, chunk_overlap=100)

    def test_unknown_provider(self):
        with pytest.raises(ValidationError):
            _settings(provider="cohere")

    @pytest.mark.parametrize(
        "field", ["batch_size", "chunk_size", "embedding_dim", "poll_interval", "health_timeout"]
    )
    def test_positive(self, field):
        with pytest.raises(ValidationError):
            _settings(**{field: 0})

    def test_log_level_upper_cased(self):
        assert _settings(log_level="debug").log_level == "DEBUG"
