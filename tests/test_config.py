"""Tests for settings parsing."""

import logging

from config import DEFAULT_SYSTEM_PROMPT, InterviewSettings, Settings


def test_interview_settings_from_store_values():
    settings = InterviewSettings.from_mapping(
        {
            "ai_provider": "anthropic",
            "ai_temperature": "0.2",
            "ai_max_tokens": "800",
            "min_messages_threshold": "12",
            "auto_evaluate": "false",
            "unrelated_key": "ignored",
        }
    )

    assert settings.ai_provider == "anthropic"
    assert settings.ai_temperature == 0.2
    assert settings.ai_max_tokens == 800
    assert settings.min_messages_threshold == 12
    assert settings.auto_evaluate is False
    assert settings.system_prompt == DEFAULT_SYSTEM_PROMPT


def test_invalid_values_fall_back_to_defaults(caplog):
    with caplog.at_level(logging.WARNING):
        settings = InterviewSettings.from_mapping(
            {"min_messages_threshold": "lots", "ai_temperature": "0.1"}
        )

    assert settings.min_messages_threshold == 20
    assert settings.ai_temperature == 0.1
    assert "min_messages_threshold" in caplog.text


def test_process_settings_from_environment(monkeypatch):
    monkeypatch.setenv("VETTING_INTERVIEW_MODE", "ai")
    monkeypatch.setenv("VETTING_ENRICHMENT_WORKERS", "0")

    settings = Settings()

    assert settings.interview_mode == "ai"
    assert settings.enrichment_workers == 0
    assert settings.enrichment_queue_size == 100
