import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from sweeper.config import ConfigurationError
from sweeper.model import EventKind, TriggerContext


def split_repository(full_name: Optional[str]) -> tuple:
    if full_name is None or full_name.count("/") != 1:
        raise ConfigurationError(f"Invalid repository '{full_name}', expected owner/name")
    owner, repo = full_name.split("/")
    if owner == "" or repo == "":
        raise ConfigurationError(f"Invalid repository '{full_name}', expected owner/name")
    return owner, repo


def load_event_payload(path: Optional[str]) -> Dict[str, Any]:
    if path is None or path == "":
        return {}
    try:
        with open(Path(path)) as fh:
            return json.load(fh)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Unable to read event payload {path}: {e}") from e


def context_from_payload(
    event_name: str,
    payload: Dict[str, Any],
    repository: str,
    sha: Optional[str] = None,
    run_id: Optional[int] = None,
) -> TriggerContext:
    owner, repo = split_repository(repository)

    pr_number = None
    pr_head_sha = None
    pull_request = payload.get("pull_request")
    if isinstance(pull_request, dict):
        pr_number = pull_request.get("number")
        pr_head_sha = (pull_request.get("head") or {}).get("sha")

    return TriggerContext(
        event=EventKind.from_name(event_name),
        event_name=event_name,
        owner=owner,
        repo=repo,
        run_id=run_id,
        sha=sha or None,
        pr_number=pr_number,
        pr_head_sha=pr_head_sha,
        payload=payload,
    )


def context_from_environ(env: Optional[Mapping[str, str]] = None) -> TriggerContext:
    """
    Build the trigger context from the variables GitHub Actions exports to
    every step.
    """
    if env is None:
        env = os.environ

    event_name = env.get("GITHUB_EVENT_NAME")
    if not event_name:
        raise ConfigurationError("GITHUB_EVENT_NAME is not set, not running in Actions?")

    run_id = env.get("GITHUB_RUN_ID")
    try:
        run_id = int(run_id) if run_id else None
    except ValueError as e:
        raise ConfigurationError(f"Invalid GITHUB_RUN_ID '{run_id}'") from e

    return context_from_payload(
        event_name,
        load_event_payload(env.get("GITHUB_EVENT_PATH")),
        repository=env.get("GITHUB_REPOSITORY"),
        sha=env.get("GITHUB_SHA"),
        run_id=run_id,
    )
