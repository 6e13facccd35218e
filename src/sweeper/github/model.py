from datetime import datetime
from typing import FrozenSet, List, Optional

import pydantic


ACTIVE_STATUSES: FrozenSet[str] = frozenset(
    {
        "action_required",
        "stale",
        "in_progress",
        "queued",
        "requested",
        "waiting",
        "pending",
    }
)


def is_active_status(status: Optional[str]) -> bool:
    return status in ACTIVE_STATUSES


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore")


class App(Model):
    id: Optional[int] = None
    slug: Optional[str] = None


class HeadCommit(Model):
    id: str


class PullRequestRef(Model):
    id: Optional[int] = None
    number: int
    url: Optional[str] = None


class CheckSuite(Model):
    id: int
    app: Optional[App] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    head_branch: Optional[str] = None
    head_sha: Optional[str] = None
    head_commit: Optional[HeadCommit] = None
    pull_requests: List[PullRequestRef] = pydantic.Field(default_factory=list)
    url: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def app_slug(self) -> Optional[str]:
        return self.app.slug if self.app is not None else None

    @property
    def head_commit_id(self) -> Optional[str]:
        if self.head_commit is not None:
            return self.head_commit.id
        return self.head_sha

    @property
    def pr_numbers(self) -> List[int]:
        return [pr.number for pr in self.pull_requests]

    def __hash__(self):
        return self.id

    def __str__(self) -> str:
        return f"CheckSuite({self.id}, {self.app_slug})"


class WorkflowRun(Model):
    id: int
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None
    event: Optional[str] = None
    head_sha: Optional[str] = None
    check_suite_id: Optional[int] = None
    run_attempt: Optional[int] = None
    url: str
    html_url: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return is_active_status(self.status)

    def __hash__(self):
        return self.id

    def __str__(self) -> str:
        return f"WorkflowRun({self.id}, {self.html_url or self.url})"
