from datetime import datetime, timezone

import pytest

from sweeper.config import Settings
from sweeper.github.model import CheckSuite, WorkflowRun
from sweeper.model import EventKind, TriggerContext


class RecordingAPI:
    """
    Stand-in for sweeper.github.api.API. ``refreshed`` maps a run id to the
    successive results of get_workflow_run, the last one repeats. Entries may
    be exceptions, which are raised. ``commits`` maps a ref to the sha it
    resolves to, unknown refs resolve to themselves.
    """

    def __init__(
        self, check_suites=(), workflow_runs=None, refreshed=None, commits=None
    ):
        self.commits = commits or {}
        self.check_suites = list(check_suites)
        self.workflow_runs = workflow_runs or {}
        self.refreshed = {k: list(v) for k, v in (refreshed or {}).items()}
        self.cancel_errors = {}
        self.list_error = None
        self.calls = []
        self.call_count = 0

    @property
    def mutations(self):
        return [c for c in self.calls if c[0] in ("cancel", "force_cancel")]

    def _run_by_id(self, run_id):
        for runs in self.workflow_runs.values():
            for run in runs:
                if run.id == run_id:
                    return run
        raise KeyError(run_id)

    async def get_commit_sha(self, ref):
        self.call_count += 1
        self.calls.append(("commit", ref))
        return self.commits.get(ref, ref)

    async def get_check_suites_for_ref(self, ref):
        self.call_count += 1
        self.calls.append(("check_suites", ref))
        if self.list_error is not None:
            raise self.list_error
        for cs in self.check_suites:
            yield cs

    async def get_workflow_runs(self, check_suite_id, event):
        self.call_count += 1
        self.calls.append(("workflow_runs", check_suite_id, event))
        for run in self.workflow_runs.get(check_suite_id, []):
            yield run

    async def get_workflow_run(self, run_id):
        self.call_count += 1
        self.calls.append(("get", run_id))
        states = self.refreshed.get(run_id)
        if not states:
            result = self._run_by_id(run_id)
        elif len(states) > 1:
            result = states.pop(0)
        else:
            result = states[0]
        if isinstance(result, Exception):
            raise result
        return result

    async def cancel_workflow_run(self, run_id):
        self.call_count += 1
        self.calls.append(("cancel", run_id))
        if run_id in self.cancel_errors:
            raise self.cancel_errors[run_id]

    async def force_cancel_workflow_run(self, run_id):
        self.call_count += 1
        self.calls.append(("force_cancel", run_id))
        if run_id in self.cancel_errors:
            raise self.cancel_errors[run_id]


def make_check_suite(
    id=1,
    slug="github-actions",
    prs=(),
    status="queued",
    head_sha="abc123",
    created_at=datetime(2020, 1, 1, 10, 0, tzinfo=timezone.utc),
):
    return CheckSuite.model_validate(
        {
            "id": id,
            "app": {"id": 15368, "slug": slug},
            "status": status,
            "head_sha": head_sha,
            "head_commit": {"id": head_sha},
            "pull_requests": [{"number": n} for n in prs],
            "url": f"https://api.github.com/repos/org/repo/check-suites/{id}",
            "created_at": created_at,
        }
    )


def make_workflow_run(id=100, status="in_progress", check_suite_id=1):
    return WorkflowRun.model_validate(
        {
            "id": id,
            "name": "CI",
            "status": status,
            "event": "pull_request",
            "check_suite_id": check_suite_id,
            "url": f"https://api.github.com/repos/org/repo/actions/runs/{id}",
            "html_url": f"https://github.com/org/repo/actions/runs/{id}",
        }
    )


def make_context(event=EventKind.pull_request, run_id=999, **kwargs):
    data = {
        "event": event,
        "event_name": event.value,
        "owner": "org",
        "repo": "repo",
        "run_id": run_id,
    }
    data.update(kwargs)
    return TriggerContext(**data)


@pytest.fixture
def settings():
    return Settings(CANCEL_RETRY_DELAY=0.0, CHECK_SUITE_CREATION_DELAY=0.0)


@pytest.fixture
def check_suite_factory():
    return make_check_suite


@pytest.fixture
def workflow_run_factory():
    return make_workflow_run


@pytest.fixture
def context_factory():
    return make_context


@pytest.fixture
def api_factory():
    return RecordingAPI
