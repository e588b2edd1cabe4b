"""Endpoints invoked by the external scheduler."""

from __future__ import annotations

import structlog
from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.stdlib import BoundLogger

from vibtrix.config import Settings
from vibtrix.services.qualification_service import run_qualification_sweep
from vibtrix.services.visibility_service import sync_entry_visibility
from vibtrix.web.auth import is_scheduler_request_allowed, unauthorized


def _error_response(message: str, exc: Exception) -> web.Response:
    return web.json_response(
        {"status": "error", "message": message, "error": str(exc)},
        status=500,
    )


async def process_round_qualifications(request: web.Request) -> web.Response:
    settings: Settings = request.app["settings"]
    session_factory: async_sessionmaker[AsyncSession] = request.app["session_factory"]
    logger: BoundLogger = request.app["app_logger"]

    if not is_scheduler_request_allowed(request.headers.get("Authorization"), settings.cron_secret):
        logger.warning("cron_request_rejected", path=request.path)
        return unauthorized()

    with structlog.contextvars.bound_contextvars(job="process_round_qualifications"):
        try:
            report = await run_qualification_sweep(session_factory, logger)
        except Exception as exc:
            logger.exception("qualification_sweep_crashed")
            return _error_response("Failed to process round qualifications", exc)

    return web.json_response(
        {
            "status": "success",
            "message": f"Processed {len(report)} competition rounds",
            "processedCompetitions": [item.as_payload() for item in report],
        }
    )


async def update_competition_entries(request: web.Request) -> web.Response:
    settings: Settings = request.app["settings"]
    session_factory: async_sessionmaker[AsyncSession] = request.app["session_factory"]
    logger: BoundLogger = request.app["app_logger"]

    if not is_scheduler_request_allowed(request.headers.get("Authorization"), settings.cron_secret):
        logger.warning("cron_request_rejected", path=request.path)
        return unauthorized()

    with structlog.contextvars.bound_contextvars(job="update_competition_entries"):
        try:
            rounds = await sync_entry_visibility(session_factory, logger)
        except Exception as exc:
            logger.exception("entry_visibility_sync_crashed")
            return _error_response("Failed to update competition entries", exc)

    if not rounds:
        return web.json_response(
            {
                "status": "success",
                "message": "No entries need updating. All entries for started rounds are already visible.",
                "rounds": [],
            }
        )

    return web.json_response(
        {
            "status": "success",
            "message": f"Updated visibility for entries in {len(rounds)} rounds",
            "rounds": [item.as_payload() for item in rounds],
        }
    )
