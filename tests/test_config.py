import logging

import pydantic
import pytest

from sweeper import config
from sweeper.config import ConfigurationError, Settings


def test_defaults():
    settings = Settings.from_env({})
    assert settings.GITHUB_TOKEN is None
    assert settings.DRY_RUN is False
    assert settings.CANCEL_ATTEMPTS == 5
    assert settings.CANCEL_RETRY_DELAY == 5.0
    assert settings.CHECK_SUITE_CREATION_DELAY == 0.0
    assert settings.CHECK_SUITE_APP_SLUG == "github-actions"
    assert settings.TARGET_REF is None
    assert settings.OVERRIDE_LOGGING == logging.INFO


def test_action_inputs_take_precedence():
    settings = Settings.from_env(
        {
            "INPUT_GITHUBTOKEN": "input-token",
            "GITHUB_TOKEN": "env-token",
            "INPUT_DRYRUN": "TRUE",
            "INPUT_REF": "abc123",
            "INPUT_PRNUMBER": "42",
        }
    )
    assert settings.GITHUB_TOKEN == "input-token"
    assert settings.DRY_RUN is True
    assert settings.TARGET_REF == "abc123"
    assert settings.TARGET_PR_NUMBER == 42


def test_empty_inputs_fall_through():
    settings = Settings.from_env({"INPUT_GITHUBTOKEN": "", "GITHUB_TOKEN": "tok"})
    assert settings.GITHUB_TOKEN == "tok"


def test_numeric_options():
    settings = Settings.from_env(
        {
            "CANCEL_ATTEMPTS": "3",
            "CANCEL_RETRY_DELAY": "0.5",
            "CHECK_SUITE_CREATION_DELAY": "2",
        }
    )
    assert settings.CANCEL_ATTEMPTS == 3
    assert settings.CANCEL_RETRY_DELAY == 0.5
    assert settings.CHECK_SUITE_CREATION_DELAY == 2.0

    with pytest.raises(ConfigurationError):
        Settings.from_env({"CANCEL_ATTEMPTS": "-1"})
    with pytest.raises(ConfigurationError):
        Settings.from_env({"CANCEL_RETRY_DELAY": "soon"})


def test_logging_level():
    assert Settings.from_env({"RUNNER_DEBUG": "1"}).OVERRIDE_LOGGING == logging.DEBUG
    assert (
        Settings.from_env({"OVERRIDE_LOGGING": "warning"}).OVERRIDE_LOGGING
        == logging.WARNING
    )
    with pytest.raises(ConfigurationError):
        Settings.from_env({"OVERRIDE_LOGGING": "LOUD"})


def test_settings_are_immutable():
    settings = Settings.from_env({})
    with pytest.raises(pydantic.ValidationError):
        settings.DRY_RUN = True


def test_require_token():
    with pytest.raises(ConfigurationError):
        Settings().require_token()
    assert Settings(GITHUB_TOKEN="tok").require_token() == "tok"


def test_settings_are_loaded_once(monkeypatch):
    monkeypatch.setattr(config, "SETTINGS", None)
    monkeypatch.setenv("CANCEL_ATTEMPTS", "7")

    settings = config.get_settings()

    assert settings.CANCEL_ATTEMPTS == 7
    assert config.get_settings() is settings


def test_invalid_environment_raises_configuration_error(monkeypatch):
    monkeypatch.setattr(config, "SETTINGS", None)
    monkeypatch.setenv("CANCEL_ATTEMPTS", "abc")

    with pytest.raises(ConfigurationError) as excinfo:
        config.get_settings()
    assert isinstance(excinfo.value.__cause__, pydantic.ValidationError)
