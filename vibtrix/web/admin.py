"""Operator endpoints."""

from __future__ import annotations

from aiohttp import web
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.stdlib import BoundLogger

from vibtrix.config import Settings
from vibtrix.errors import (
    CompetitionNotFoundError,
    CompetitionTerminatedError,
    RoundNotEndedError,
    RoundNotFoundError,
)
from vibtrix.services.qualification_service import process_round_on_demand
from vibtrix.web.auth import is_admin_request_allowed, unauthorized


def parse_identifier(raw_value: object) -> int | None:
    if isinstance(raw_value, bool):
        return None
    if isinstance(raw_value, int):
        return raw_value if raw_value > 0 else None
    if isinstance(raw_value, str):
        try:
            parsed = int(raw_value.strip())
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None


async def process_qualification(request: web.Request) -> web.Response:
    settings: Settings = request.app["settings"]
    session_factory: async_sessionmaker[AsyncSession] = request.app["session_factory"]
    logger: BoundLogger = request.app["app_logger"]

    if not is_admin_request_allowed(request.headers.get("Authorization"), settings.admin_api_token):
        return unauthorized()

    competition_id = parse_identifier(request.match_info.get("competition_id"))
    if competition_id is None:
        return web.json_response({"error": "Competition not found"}, status=404)

    try:
        body = await request.json()
    except ValueError:
        return web.json_response({"error": "Request body must be JSON"}, status=400)

    round_id = parse_identifier(body.get("roundId")) if isinstance(body, dict) else None
    if round_id is None:
        return web.json_response({"error": "Round ID is required"}, status=400)

    try:
        result = await process_round_on_demand(session_factory, competition_id, round_id, logger)
    except CompetitionNotFoundError:
        return web.json_response({"error": "Competition not found"}, status=404)
    except RoundNotFoundError:
        return web.json_response({"error": "Round not found"}, status=404)
    except CompetitionTerminatedError as exc:
        return web.json_response(
            {"error": "Competition already ended", "completionReason": exc.completion_reason},
            status=409,
        )
    except RoundNotEndedError as exc:
        return web.json_response({"error": str(exc)}, status=400)
    except Exception as exc:
        logger.exception("round_processing_request_failed", competition_id=competition_id, round_id=round_id)
        return web.json_response(
            {"error": "Failed to process qualification", "details": str(exc)},
            status=500,
        )

    return web.json_response(result.as_payload())
