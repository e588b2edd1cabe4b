"""Bearer-token checks for scheduler and operator endpoints."""

from __future__ import annotations

import hmac

from aiohttp import web

from vibtrix.constants import BEARER_PREFIX


def bearer_matches(authorization: str | None, secret: str) -> bool:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return False
    provided = authorization[len(BEARER_PREFIX) :]
    return hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8"))


def is_scheduler_request_allowed(authorization: str | None, cron_secret: str | None) -> bool:
    """Scheduler endpoints are open until a cron secret is configured."""

    if cron_secret is None:
        return True
    return bearer_matches(authorization, cron_secret)


def is_admin_request_allowed(authorization: str | None, admin_api_token: str | None) -> bool:
    if admin_api_token is None:
        return False
    return bearer_matches(authorization, admin_api_token)


def unauthorized() -> web.Response:
    return web.json_response({"error": "Unauthorized"}, status=401)
