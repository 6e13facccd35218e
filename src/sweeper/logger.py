import json
import logging
from typing import Any, List

import notifiers.logging
import pydantic

from sweeper.config import Settings

REDACTED_KEYS = frozenset(
    {
        "_links",
        "repository",
        "head_repository",
        "repo",
        "user",
        "owner",
        "organization",
        "sender",
        "actor",
        "triggering_actor",
        "body",
        "labels",
        "assignee",
        "assignees",
        "requested_reviewers",
        "events",
        "permissions",
    }
)


def escape_command_data(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class WorkflowCommandFormatter(logging.Formatter):
    """
    Render warnings and errors as GitHub workflow commands, so they show up as
    annotations on the job. Everything else is printed as-is.
    """

    commands = {
        logging.WARNING: "warning",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = self.commands.get(record.levelno)
        if command is None:
            return message
        return f"::{command}::{escape_command_data(message)}"


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        return {
            k: None if k in REDACTED_KEYS else _redact(v) for k, v in value.items()
        }
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


def dump(logger: logging.Logger, message: str, obj: Any = None) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return

    if obj is None:
        logger.debug(message)
        return

    if isinstance(obj, pydantic.BaseModel):
        obj = obj.model_dump(mode="json")

    text = json.dumps(_redact(obj), indent=2, default=str)
    logger.debug("::group::%s\n%s\n::endgroup::", message, text)


def setup_logging(logger: logging.Logger, settings: Settings) -> List[logging.Handler]:
    logger.setLevel(settings.OVERRIDE_LOGGING)
    logger.propagate = False
    logger.handlers = []

    handler = logging.StreamHandler()
    handler.setFormatter(WorkflowCommandFormatter("%(message)s"))
    logger.addHandler(handler)

    return [handler] + get_log_handlers(logger, settings)


def get_log_handlers(logger: logging.Logger, settings: Settings) -> List[logging.Handler]:
    if settings.TELEGRAM_TOKEN is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": settings.TELEGRAM_TOKEN,
            "chat_id": settings.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(logging.WARNING)
    logger.addHandler(handler)
    return [handler]
