import asyncio
from contextlib import asynccontextmanager
import logging
import os
from typing import Optional

import aiohttp
import cachetools
from gidgethub import aiohttp as gh_aiohttp
import typer

from sweeper import config
from sweeper.config import ConfigurationError, Settings
from sweeper.context import context_from_environ, context_from_payload
from sweeper.github import cancel_superseded_runs
from sweeper.github.api import API
from sweeper.logger import setup_logging
from sweeper.metric import push_metrics
from sweeper.model import InvocationSummary, TriggerContext

logger = logging.getLogger("sweeper")

app = typer.Typer()
httpcache = cachetools.LRUCache(maxsize=500)


@app.callback()
def init():
    try:
        settings = config.get_settings()
    except ConfigurationError as e:
        setup_logging(logger, Settings())
        logger.error("%s", e)
        raise typer.Exit(code=1)
    setup_logging(logger, settings)


@asynccontextmanager
async def github_client(settings: Settings):
    async with aiohttp.ClientSession() as session:
        gh = gh_aiohttp.GitHubAPI(
            session,
            "sweeper",
            oauth_token=settings.require_token(),
            cache=httpcache,
            base_url=settings.GITHUB_API_URL,
        )
        yield gh


async def handle(
    context: TriggerContext,
    settings: Settings,
    ref: Optional[str] = None,
    pr_number: Optional[int] = None,
) -> InvocationSummary:
    async with github_client(settings) as gh:
        api = API(gh, context.owner, context.repo)
        return await cancel_superseded_runs(
            api, context, settings, ref=ref, pr_number=pr_number
        )


def execute(
    context: TriggerContext,
    settings: Settings,
    ref: Optional[str] = None,
    pr_number: Optional[int] = None,
) -> InvocationSummary:
    if settings.DRY_RUN:
        logger.info("Dry run, no workflow run will be canceled")
    try:
        return asyncio.run(handle(context, settings, ref, pr_number))
    except (KeyboardInterrupt, asyncio.CancelledError):
        raise
    except Exception as e:
        logger.error("Canceling superseded workflow runs failed: %s", e)
        raise
    finally:
        if settings.PUSH_GATEWAY is not None:
            push_metrics(settings.PUSH_GATEWAY)


@app.command()
def run():
    """Cancel runs superseded by the event that triggered this workflow."""
    settings = config.get_settings()
    try:
        context = context_from_environ()
    except ConfigurationError as e:
        logger.error("%s", e)
        raise typer.Exit(code=1)

    execute(context, settings, settings.TARGET_REF, settings.TARGET_PR_NUMBER)


@app.command()
def ref(
    ref: str,
    pr: Optional[int] = typer.Option(None, help="Pull request the ref belongs to"),
    repo: Optional[str] = typer.Option(
        None, help="Repository as owner/name, defaults to GITHUB_REPOSITORY"
    ),
    dry_run: bool = typer.Option(False, "--dry-run"),
):
    """Cancel active runs for an explicit commit or ref."""
    settings = config.get_settings()
    if dry_run:
        settings = settings.model_copy(update={"DRY_RUN": True})

    run_id = os.environ.get("GITHUB_RUN_ID")
    try:
        context = context_from_payload(
            "pull_request" if pr is not None else "push",
            {},
            repository=repo or os.environ.get("GITHUB_REPOSITORY"),
            sha=ref,
            run_id=int(run_id) if run_id else None,
        )
    except (ConfigurationError, ValueError) as e:
        logger.error("%s", e)
        raise typer.Exit(code=1)

    execute(context, settings, ref, pr)
