from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import pydantic


class EventKind(str, Enum):
    pull_request = "pull_request"
    push = "push"
    delete = "delete"
    other = "other"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "EventKind":
        try:
            return cls(name)
        except ValueError:
            return cls.other


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", frozen=True)


class TriggerContext(Model):
    event: EventKind
    event_name: str
    owner: str
    repo: str
    run_id: Optional[int] = None
    sha: Optional[str] = None
    pr_number: Optional[int] = None
    pr_head_sha: Optional[str] = None
    payload: Dict[str, Any] = pydantic.Field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class ResolvedTarget(Model):
    commit_sha: str
    pr_number: Optional[int] = None

    @property
    def is_pull_request(self) -> bool:
        return self.pr_number is not None

    @property
    def event(self) -> str:
        # workflow runs are listed by the event that triggered them
        return "pull_request" if self.is_pull_request else "push"

    def __str__(self) -> str:
        if self.pr_number is None:
            return f"commit {self.commit_sha}"
        return f"PR #{self.pr_number} at {self.commit_sha}"


class CancelOutcome(Enum):
    skipped_self = "skipped_self"
    skipped_inactive = "skipped_inactive"
    cancel_requested = "cancel_requested"
    force_cancelled = "force_cancelled"
    given_up = "given_up"


@dataclass
class InvocationSummary:
    target: Optional[ResolvedTarget] = None
    check_suites: int = 0
    check_suites_in_scope: int = 0
    workflow_runs: int = 0
    outcomes: Counter = field(default_factory=Counter)

    def count(self, outcome: CancelOutcome) -> int:
        return self.outcomes[outcome]

    def __str__(self) -> str:
        outcomes = ", ".join(
            f"{o.value}={n}"
            for o, n in sorted(self.outcomes.items(), key=lambda i: i[0].value)
        )
        return (
            f"{self.check_suites_in_scope}/{self.check_suites} check suites in scope, "
            f"{self.workflow_runs} workflow runs visited ({outcomes or 'none'})"
        )
