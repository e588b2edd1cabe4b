"""Web application entrypoint."""

from __future__ import annotations

import asyncio
from contextlib import suppress

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.stdlib import BoundLogger

from vibtrix.config import Settings, get_settings
from vibtrix.constants import (
    ADMIN_PROCESS_QUALIFICATION_PATH,
    CRON_ENTRY_VISIBILITY_PATH,
    CRON_QUALIFICATION_PATH,
    SCHEDULER_ERROR_BACKOFF_SECONDS,
)
from vibtrix.db.session import create_engine_and_session_factory
from vibtrix.logging_setup import configure_logging, get_logger
from vibtrix.services.qualification_service import run_qualification_sweep
from vibtrix.services.visibility_service import sync_entry_visibility
from vibtrix.web.admin import process_qualification
from vibtrix.web.cron import process_round_qualifications, update_competition_entries
from vibtrix.web.health import healthz, readyz


async def run_scheduled_jobs(
    session_factory: async_sessionmaker[AsyncSession],
    interval_seconds: int,
    logger: BoundLogger,
) -> None:
    """Run the qualification sweep and visibility sync until cancelled."""

    while True:
        delay = interval_seconds
        try:
            report = await run_qualification_sweep(session_factory, logger)
            rounds = await sync_entry_visibility(session_factory, logger)
            logger.info("scheduled_jobs_completed", processed_rounds=len(report), visibility_rounds=len(rounds))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("scheduled_jobs_failed")
            delay = max(interval_seconds, SCHEDULER_ERROR_BACKOFF_SECONDS)

        await asyncio.sleep(delay)


def create_app(settings: Settings) -> web.Application:
    configure_logging(settings.log_level)
    logger = get_logger("vibtrix")

    engine, session_factory = create_engine_and_session_factory(settings.database_url)

    app = web.Application()
    app["settings"] = settings
    app["session_factory"] = session_factory
    app["app_logger"] = logger
    app["scheduler_task"] = None

    async def on_startup(application: web.Application) -> None:
        if not settings.scheduler_enabled:
            logger.info("in_process_scheduler_disabled")
            return

        application["scheduler_task"] = asyncio.create_task(
            run_scheduled_jobs(session_factory, settings.qualification_interval_seconds, logger)
        )
        logger.info("in_process_scheduler_started", interval_seconds=settings.qualification_interval_seconds)

    async def on_shutdown(application: web.Application) -> None:
        scheduler_task = application.get("scheduler_task")
        if scheduler_task is not None and not scheduler_task.done():
            scheduler_task.cancel()
            with suppress(asyncio.CancelledError):
                await scheduler_task
            logger.info("in_process_scheduler_stopped")

        await engine.dispose()

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_shutdown)

    app.router.add_get("/healthz", healthz)
    app.router.add_get("/readyz", readyz)
    app.router.add_get(CRON_QUALIFICATION_PATH, process_round_qualifications)
    app.router.add_get(CRON_ENTRY_VISIBILITY_PATH, update_competition_entries)
    app.router.add_post(ADMIN_PROCESS_QUALIFICATION_PATH, process_qualification)

    return app


def main() -> None:
    settings = get_settings()
    app = create_app(settings)
    web.run_app(app, host=settings.app_host, port=settings.app_port)


if __name__ == "__main__":
    main()
