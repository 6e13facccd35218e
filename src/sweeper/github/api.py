import logging
from typing import AsyncIterator

import gidgethub
from gidgethub.abc import GitHubAPI

from sweeper.github.model import CheckSuite, WorkflowRun
from sweeper.metric import record_api_call

logger = logging.getLogger("sweeper")


class API:
    gh: GitHubAPI
    owner: str
    repo: str

    call_count: int

    def __init__(self, gh: GitHubAPI, owner: str, repo: str):
        self.gh = gh
        self.owner = owner
        self.repo = repo
        self.call_count = 0

    @property
    def repo_url(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _count(self, endpoint: str) -> None:
        # once per operation, a paginated listing counts once for all its pages
        self.call_count += 1
        record_api_call(endpoint)

    async def get_commit_sha(self, ref: str) -> str:
        self._count("commit")
        url = f"{self.repo_url}/commits/{ref}"
        logger.debug("Resolve ref %s", url)
        commit = await self.gh.getitem(url)
        return commit["sha"]

    async def get_check_suites_for_ref(self, ref: str) -> AsyncIterator[CheckSuite]:
        self._count("check_suites")
        url = f"{self.repo_url}/commits/{ref}/check-suites"
        logger.debug("Get check suites for ref %s", url)
        async for item in self.gh.getiter(url, iterable_key="check_suites"):
            yield CheckSuite.model_validate(item)

    async def get_workflow_runs(
        self, check_suite_id: int, event: str
    ) -> AsyncIterator[WorkflowRun]:
        self._count("workflow_runs")
        url = f"{self.repo_url}/actions/runs{{?check_suite_id,event}}"
        logger.debug(
            "Get workflow runs for check suite %d (event %s)", check_suite_id, event
        )
        async for item in self.gh.getiter(
            url,
            {"check_suite_id": check_suite_id, "event": event},
            iterable_key="workflow_runs",
        ):
            yield WorkflowRun.model_validate(item)

    async def get_workflow_run(self, run_id: int) -> WorkflowRun:
        self._count("workflow_run")
        url = f"{self.repo_url}/actions/runs/{run_id}"
        logger.debug("Get workflow run %s", url)
        return WorkflowRun.model_validate(await self.gh.getitem(url))

    async def _post_accepted(self, url: str) -> None:
        try:
            await self.gh.post(url, data={})
        except gidgethub.HTTPException as e:
            # these endpoints answer 202 Accepted
            if e.status_code != 202:
                raise

    async def cancel_workflow_run(self, run_id: int) -> None:
        self._count("cancel")
        url = f"{self.repo_url}/actions/runs/{run_id}/cancel"
        logger.debug("Cancel workflow run %s", url)
        await self._post_accepted(url)

    async def force_cancel_workflow_run(self, run_id: int) -> None:
        self._count("force_cancel")
        url = f"{self.repo_url}/actions/runs/{run_id}/force-cancel"
        logger.debug("Force cancel workflow run %s", url)
        await self._post_accepted(url)
