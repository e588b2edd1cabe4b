#!/usr/bin/env python3
"""Manually trigger the round qualification job over HTTP."""

import asyncio
import json
import sys
from pathlib import Path

import aiohttp

sys.path.insert(0, str(Path(__file__).parent.parent))

from vibtrix.config import get_settings
from vibtrix.constants import CRON_QUALIFICATION_PATH
from vibtrix.logging_setup import configure_logging, get_logger


def parse_report(body: str) -> dict | None:
    """Decode the endpoint response; anything but a JSON object is unusable."""

    try:
        payload = json.loads(body)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


async def trigger_round_qualification() -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("trigger_round_qualification")

    url = settings.base_url.rstrip("/") + CRON_QUALIFICATION_PATH
    headers = {"Content-Type": "application/json"}
    if settings.cron_secret:
        headers["Authorization"] = f"Bearer {settings.cron_secret}"
    else:
        logger.warning("cron_secret_not_configured")

    logger.info("triggering_round_qualification", url=url)

    try:
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=300)) as session:
            async with session.get(url, headers=headers) as response:
                status = response.status
                body = await response.text()
    except aiohttp.ClientConnectorError:
        logger.error("server_unreachable", url=url)
        return 2

    payload = parse_report(body)
    if payload is None:
        logger.error("round_qualification_unreadable_response", status=status, body=body[:200])
        return 1

    if status != 200:
        logger.error(
            "round_qualification_failed",
            status=status,
            error=payload.get("error") or payload.get("message"),
        )
        return 1

    processed = payload.get("processedCompetitions", [])
    logger.info("round_qualification_completed", message=payload.get("message"))
    for item in processed:
        logger.info(
            "round_result",
            competition_id=item.get("competitionId"),
            competition_title=item.get("competitionTitle"),
            round_id=item.get("roundId"),
            round_name=item.get("roundName"),
            result=item.get("result"),
            completion_reason=item.get("completionReason"),
            error=item.get("error"),
        )

    if not processed:
        logger.info("no_rounds_needed_processing")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(trigger_round_qualification()))
