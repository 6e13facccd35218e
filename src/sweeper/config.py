import os
import logging
from typing import Mapping, Optional

import dotenv
import pydantic

dotenv.load_dotenv()


class ConfigurationError(Exception):
    pass


def _lookup(env: Mapping[str, str], *names: str) -> Optional[str]:
    # first non-empty wins, action inputs come before plain variables
    for name in names:
        value = env.get(name)
        if value is not None and value.strip() != "":
            return value.strip()
    return None


def _as_bool(value: Optional[str]) -> bool:
    return value is not None and value.lower() == "true"


class Settings(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(frozen=True)

    GITHUB_TOKEN: Optional[str] = None
    GITHUB_API_URL: str = "https://api.github.com"

    DRY_RUN: bool = False

    CANCEL_ATTEMPTS: int = pydantic.Field(5, ge=0)
    CANCEL_RETRY_DELAY: float = pydantic.Field(5.0, ge=0)
    CHECK_SUITE_CREATION_DELAY: float = pydantic.Field(0.0, ge=0)
    CHECK_SUITE_APP_SLUG: str = "github-actions"

    TARGET_REF: Optional[str] = None
    TARGET_PR_NUMBER: Optional[int] = None

    OVERRIDE_LOGGING: int = logging.INFO

    TELEGRAM_TOKEN: Optional[str] = None
    TELEGRAM_CHAT_ID: Optional[str] = None

    PUSH_GATEWAY: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        if env is None:
            env = os.environ

        values = {
            "GITHUB_TOKEN": _lookup(env, "INPUT_GITHUBTOKEN", "GITHUB_TOKEN"),
            "GITHUB_API_URL": _lookup(env, "GITHUB_API_URL"),
            "DRY_RUN": _as_bool(_lookup(env, "INPUT_DRYRUN", "DRY_RUN")),
            "CANCEL_ATTEMPTS": _lookup(env, "CANCEL_ATTEMPTS"),
            "CANCEL_RETRY_DELAY": _lookup(env, "CANCEL_RETRY_DELAY"),
            "CHECK_SUITE_CREATION_DELAY": _lookup(env, "CHECK_SUITE_CREATION_DELAY"),
            "CHECK_SUITE_APP_SLUG": _lookup(env, "CHECK_SUITE_APP_SLUG"),
            "TARGET_REF": _lookup(env, "INPUT_REF", "TARGET_REF"),
            "TARGET_PR_NUMBER": _lookup(env, "INPUT_PRNUMBER", "TARGET_PR_NUMBER"),
            "TELEGRAM_TOKEN": _lookup(env, "TELEGRAM_TOKEN"),
            "TELEGRAM_CHAT_ID": _lookup(env, "TELEGRAM_CHAT_ID"),
            "PUSH_GATEWAY": _lookup(env, "PUSH_GATEWAY"),
        }

        level = _lookup(env, "OVERRIDE_LOGGING")
        if level is not None:
            resolved = logging.getLevelName(level.upper())
            if not isinstance(resolved, int):
                raise ConfigurationError(f"Unknown log level {level}")
            values["OVERRIDE_LOGGING"] = resolved
        elif env.get("RUNNER_DEBUG") == "1":
            values["OVERRIDE_LOGGING"] = logging.DEBUG

        try:
            return cls(**{k: v for k, v in values.items() if v is not None})
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def require_token(self) -> str:
        if self.GITHUB_TOKEN is None:
            raise ConfigurationError(
                "No GitHub token configured, set the githubToken input or GITHUB_TOKEN"
            )
        return self.GITHUB_TOKEN


SETTINGS: Optional[Settings] = None


def get_settings() -> Settings:
    global SETTINGS
    if SETTINGS is None:
        SETTINGS = Settings.from_env()
    return SETTINGS
