"""Unit tests for src/config.py."""

import pytest

from src.config import Config, Settings


def test_settings_defaults(monkeypatch):
    for name in ("ROADBOARD_DB_PATH", "ROADBOARD_ROADMAP_BATCH_SIZE", "ROADBOARD_ISSUES_REPO"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.db_path == "data/roadboard.db"
    assert settings.roadmap_batch_size == 8
    assert settings.issues_batch_size == 5
    assert settings.snapshot_ttl_ms == 24 * 60 * 60 * 1000
    assert settings.failure_cooldown_ms == 60 * 1000
    assert settings.issues_owner == "Azure"
    assert settings.issues_name == "AKS"
    assert settings.background_enabled is False


def test_settings_reads_overrides(monkeypatch):
    monkeypatch.setenv("ROADBOARD_ROADMAP_BATCH_SIZE", "3")
    monkeypatch.setenv("ROADBOARD_ISSUES_REPO", "octo/widgets")
    monkeypatch.setenv("ROADBOARD_FAILURE_COOLDOWN_SECONDS", "0")

    settings = Settings.from_env()

    assert settings.roadmap_batch_size == 3
    assert settings.issues_name == "widgets"
    assert settings.failure_cooldown_ms == 0


def test_invalid_integer_raises(monkeypatch):
    monkeypatch.setenv("ROADBOARD_ROADMAP_BATCH_SIZE", "many")
    with pytest.raises(RuntimeError, match="ROADBOARD_ROADMAP_BATCH_SIZE"):
        Settings.from_env()


def test_batch_size_must_be_positive(monkeypatch):
    monkeypatch.setenv("ROADBOARD_ISSUES_BATCH_SIZE", "0")
    with pytest.raises(RuntimeError, match=">= 1"):
        Settings.from_env()


def test_gemini_api_key_legacy_fallback(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "legacy")
    assert Config.get_gemini_api_key() == "legacy"


def test_missing_github_token_raises(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    with pytest.raises(RuntimeError, match="GITHUB_TOKEN"):
        Config.get_github_token()
