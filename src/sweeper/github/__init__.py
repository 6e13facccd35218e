import asyncio
from datetime import datetime, timezone
import logging
from typing import List, Optional

from sweeper.config import Settings
from sweeper.github.api import API
from sweeper.github.model import CheckSuite, WorkflowRun, is_active_status
from sweeper.logger import dump
from sweeper.metric import record_cancel_error, record_cancel_request, record_skip
from sweeper.model import (
    CancelOutcome,
    EventKind,
    InvocationSummary,
    ResolvedTarget,
    TriggerContext,
)

logger = logging.getLogger("sweeper")


def resolve_target(context: TriggerContext) -> Optional[ResolvedTarget]:
    commit_sha = None
    pr_number = None

    if context.event == EventKind.pull_request:
        logger.debug("Pull request: #%s", context.pr_number)
        commit_sha = context.pr_head_sha
        pr_number = context.pr_number
    elif context.event in (EventKind.delete, EventKind.push):
        commit_sha = context.sha
    else:
        logger.info("Unsupported event: %s", context.event_name)
        return None

    if not commit_sha:
        logger.warning("Commit SHA couldn't be detected.")
        return None

    if context.event == EventKind.pull_request and pr_number is None:
        logger.warning("Pull request number couldn't be detected.")
        return None

    logger.info("Commit SHA: %s", commit_sha)
    return ResolvedTarget(commit_sha=commit_sha, pr_number=pr_number)


async def resolve_explicit_target(
    api: API, ref: Optional[str], pr_number: Optional[int] = None
) -> Optional[ResolvedTarget]:
    if not ref:
        logger.warning("No ref given.")
        return None
    # branch and tag names are pinned to the commit they point at right now
    commit_sha = await api.get_commit_sha(ref)
    logger.info("Explicit ref: %s -> %s (PR: %s)", ref, commit_sha, pr_number)
    return ResolvedTarget(commit_sha=commit_sha, pr_number=pr_number)


def _skip_check_suite(check_suite: CheckSuite, reason: str, message: str, *args) -> bool:
    logger.info("Skipping %s: " + message, check_suite.url or check_suite.id, *args)
    record_skip(reason)
    return False


def check_suite_in_scope(
    check_suite: CheckSuite, target: ResolvedTarget, settings: Settings
) -> bool:
    dump(logger, f"checkSuite: {check_suite.id}: {check_suite.app_slug}", check_suite)

    if check_suite.app_slug != settings.CHECK_SUITE_APP_SLUG:
        return _skip_check_suite(
            check_suite,
            "foreign_app",
            "not a %s check suite (%s)",
            settings.CHECK_SUITE_APP_SLUG,
            check_suite.app_slug,
        )

    pr_numbers = check_suite.pr_numbers

    if len(pr_numbers) > 1:
        return _skip_check_suite(
            check_suite,
            "ambiguous_pr",
            "associated with multiple pull requests %s",
            pr_numbers,
        )

    if target.pr_number is None:
        if len(pr_numbers) == 1:
            return _skip_check_suite(
                check_suite,
                "other_pr",
                "belongs to pull request #%d",
                pr_numbers[0],
            )
    else:
        if len(pr_numbers) == 0:
            return _skip_check_suite(
                check_suite, "branch_suite", "not associated with a pull request"
            )
        if pr_numbers[0] != target.pr_number:
            return _skip_check_suite(
                check_suite,
                "other_pr",
                "belongs to pull request #%d",
                pr_numbers[0],
            )

    if check_suite.head_commit_id != target.commit_sha:
        return _skip_check_suite(
            check_suite,
            "other_commit",
            "check suite for another commit %s",
            check_suite.head_commit_id,
        )

    if check_suite.status is not None and not is_active_status(check_suite.status):
        return _skip_check_suite(
            check_suite, "completed", "completed check suite: %s", check_suite.status
        )

    return True


async def wait_for_check_suite(
    check_suite: CheckSuite, now: datetime, settings: Settings
) -> float:
    if check_suite.created_at is None:
        return 0.0

    created_at = check_suite.created_at
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    # residual propagation window, shifted by the configured grace
    delay = (created_at - now).total_seconds() + settings.CHECK_SUITE_CREATION_DELAY
    if delay <= 0:
        return 0.0

    logger.debug("Waiting %.3fs for check suite %d to settle", delay, check_suite.id)
    await asyncio.sleep(delay)
    return delay


async def cancel_workflow_run(
    api: API,
    context: TriggerContext,
    workflow_run: WorkflowRun,
    settings: Settings,
) -> CancelOutcome:
    attempt = 1
    while True:
        if attempt > 1:
            try:
                workflow_run = await api.get_workflow_run(workflow_run.id)
            except Exception as e:
                logger.error(
                    "Unable to refresh workflow run %d (attempt %d): %s",
                    workflow_run.id,
                    attempt,
                    e,
                )
                if attempt > settings.CANCEL_ATTEMPTS:
                    return CancelOutcome.given_up
                await asyncio.sleep(settings.CANCEL_RETRY_DELAY)
                attempt += 1
                continue

        dump(logger, f"workflowRun: {workflow_run.id} (attempt {attempt})", workflow_run)

        if context.run_id is not None and workflow_run.id == context.run_id:
            logger.info("Skipping current workflow run: %s", workflow_run.url)
            record_skip("self")
            return CancelOutcome.skipped_self

        if not workflow_run.is_active:
            logger.info(
                "Skipping workflow run: %s: %s", workflow_run.url, workflow_run.status
            )
            record_skip("inactive")
            return CancelOutcome.skipped_inactive

        force = attempt > settings.CANCEL_ATTEMPTS
        kind = "force_cancel" if force else "cancel"

        if force:
            logger.warning(
                "Forcefully canceling workflow run: %s (attempt %d)",
                workflow_run.html_url or workflow_run.url,
                attempt,
            )
        else:
            logger.warning(
                "Canceling workflow run: %s (attempt %d)",
                workflow_run.html_url or workflow_run.url,
                attempt,
            )
        record_cancel_request(kind, settings.DRY_RUN)

        if settings.DRY_RUN:
            return (
                CancelOutcome.force_cancelled if force else CancelOutcome.cancel_requested
            )

        try:
            if force:
                await api.force_cancel_workflow_run(workflow_run.id)
            else:
                await api.cancel_workflow_run(workflow_run.id)
        except Exception as e:
            logger.error("Failed to %s workflow run %d: %s", kind, workflow_run.id, e)
            record_cancel_error(kind)

        if force:
            return CancelOutcome.force_cancelled

        await asyncio.sleep(settings.CANCEL_RETRY_DELAY)
        attempt += 1


async def process_check_suite(
    api: API,
    context: TriggerContext,
    target: ResolvedTarget,
    check_suite: CheckSuite,
    now: datetime,
    settings: Settings,
) -> Optional[List[CancelOutcome]]:
    if not check_suite_in_scope(check_suite, target, settings):
        return None

    await wait_for_check_suite(check_suite, now, settings)

    workflow_runs = [
        wr async for wr in api.get_workflow_runs(check_suite.id, event=target.event)
    ]
    logger.debug(
        "CheckSuite %d -> %d workflow runs", check_suite.id, len(workflow_runs)
    )

    return list(
        await asyncio.gather(
            *(cancel_workflow_run(api, context, wr, settings) for wr in workflow_runs)
        )
    )


async def cancel_superseded_runs(
    api: API,
    context: TriggerContext,
    settings: Settings,
    target: Optional[ResolvedTarget] = None,
    now: Optional[datetime] = None,
    ref: Optional[str] = None,
    pr_number: Optional[int] = None,
) -> InvocationSummary:
    if now is None:
        now = datetime.now(timezone.utc)

    dump(logger, "context", context.payload or context)

    if target is None:
        if ref is not None:
            target = await resolve_explicit_target(api, ref, pr_number)
        else:
            target = resolve_target(context)
    if target is None:
        return InvocationSummary()

    logger.info("Begin handling %s in %s", target, context.full_name)

    check_suites = [
        cs async for cs in api.get_check_suites_for_ref(target.commit_sha)
    ]
    logger.debug("Have %d check suites for %s", len(check_suites), target.commit_sha)

    results = await asyncio.gather(
        *(
            process_check_suite(api, context, target, cs, now, settings)
            for cs in check_suites
        )
    )

    summary = InvocationSummary(target=target, check_suites=len(check_suites))
    for outcomes in results:
        if outcomes is None:
            continue
        summary.check_suites_in_scope += 1
        summary.workflow_runs += len(outcomes)
        summary.outcomes.update(outcomes)

    logger.info(
        "Finished handling %s: %s, API calls: %d", target, summary, api.call_count
    )
    return summary
