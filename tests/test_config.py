from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from backend.app.config import Settings


def test_settings_defaults_without_environment() -> None:
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings.from_env()

    assert settings.setup_cost_loading == 1.2
    assert settings.log_level == "INFO"
    assert "http://localhost:3000" in settings.allowed_origins
    assert settings.calculation_rules().setup_cost_loading == 1.2


def test_settings_read_from_environment() -> None:
    with patch.dict(
        os.environ,
        {
            "APP_NAME": "Savings Calculator (staging)",
            "LOG_LEVEL": "debug",
            "ALLOWED_ORIGINS": "https://quote.example.com, https://www.example.com,",
            "SETUP_COST_LOADING": "1.35",
        },
        clear=False,
    ):
        settings = Settings.from_env()

    assert settings.app_name == "Savings Calculator (staging)"
    assert settings.log_level == "DEBUG"
    assert settings.allowed_origins == ["https://quote.example.com", "https://www.example.com"]
    assert settings.setup_cost_loading == 1.35
    assert settings.calculation_rules().setup_cost_loading == 1.35


def test_wildcard_allowed_origins() -> None:
    with patch.dict(os.environ, {"ALLOWED_ORIGINS": " * "}, clear=False):
        assert Settings.from_env().allowed_origins == ["*"]


def test_blank_setup_cost_loading_uses_default() -> None:
    with patch.dict(os.environ, {"SETUP_COST_LOADING": "  "}, clear=False):
        assert Settings.from_env().setup_cost_loading == 1.2


@pytest.mark.parametrize("raw", ["abc", "0", "-1.2"])
def test_invalid_setup_cost_loading_is_rejected(raw: str) -> None:
    with patch.dict(os.environ, {"SETUP_COST_LOADING": raw}, clear=False):
        with pytest.raises(ValueError) as exc:
            Settings.from_env()
    assert "SETUP_COST_LOADING" in str(exc.value)
