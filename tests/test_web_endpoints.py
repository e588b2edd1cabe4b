import json
from datetime import datetime, timedelta, timezone

import pytest
from aiohttp import test_utils, web
from aiohttp.test_utils import make_mocked_request

from conftest import ended_round
from vibtrix.config import Settings
from vibtrix.constants import ADMIN_PROCESS_QUALIFICATION_PATH
from vibtrix.main import create_app
from vibtrix.repositories.competitions import CompetitionsRepository
from vibtrix.web.admin import parse_identifier, process_qualification
from vibtrix.web.auth import bearer_matches, is_admin_request_allowed, is_scheduler_request_allowed
from vibtrix.web.cron import process_round_qualifications, update_competition_entries


def _build_app(session_factory, logger, **settings_overrides) -> web.Application:
    app = web.Application()
    app["settings"] = Settings(DATABASE_URL="sqlite+aiosqlite://", **settings_overrides)
    app["session_factory"] = session_factory
    app["app_logger"] = logger
    return app


def test_bearer_matches_exact_secret_only() -> None:
    assert bearer_matches("Bearer s3cret", "s3cret") is True
    assert bearer_matches("Bearer s3cre", "s3cret") is False
    assert bearer_matches("s3cret", "s3cret") is False
    assert bearer_matches(None, "s3cret") is False


def test_scheduler_endpoints_open_without_cron_secret() -> None:
    assert is_scheduler_request_allowed(None, None) is True
    assert is_scheduler_request_allowed("Bearer anything", None) is True
    assert is_scheduler_request_allowed(None, "s3cret") is False
    assert is_scheduler_request_allowed("Bearer s3cret", "s3cret") is True


def test_admin_endpoint_closed_without_token() -> None:
    assert is_admin_request_allowed("Bearer anything", None) is False
    assert is_admin_request_allowed("Bearer admin", "admin") is True


def test_parse_identifier_rejects_malformed_values() -> None:
    assert parse_identifier(None) is None
    assert parse_identifier("abc") is None
    assert parse_identifier(True) is None
    assert parse_identifier(0) is None
    assert parse_identifier(" 12 ") == 12
    assert parse_identifier(7) == 7


@pytest.mark.asyncio
async def test_sweep_endpoint_rejects_wrong_secret(session_factory, logger) -> None:
    app = _build_app(session_factory, logger, CRON_SECRET="s3cret")
    request = make_mocked_request(
        "GET",
        "/api/cron/process-round-qualifications",
        headers={"Authorization": "Bearer nope"},
        app=app,
    )

    response = await process_round_qualifications(request)

    assert response.status == 401
    assert json.loads(response.text) == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_sweep_endpoint_reports_processed_rounds(session_factory, seeder, logger) -> None:
    competition_id, (round_id,) = await seeder.competition([ended_round("Round 1", 3)])
    participant_id = await seeder.participant(competition_id, current_round_id=round_id)
    await seeder.entry(participant_id, round_id, likes=2)

    app = _build_app(session_factory, logger, CRON_SECRET="s3cret")
    request = make_mocked_request(
        "GET",
        "/api/cron/process-round-qualifications",
        headers={"Authorization": "Bearer s3cret"},
        app=app,
    )

    response = await process_round_qualifications(request)
    body = json.loads(response.text)

    assert response.status == 200
    assert body["status"] == "success"
    assert body["message"] == "Processed 1 competition rounds"
    assert body["processedCompetitions"] == [
        {
            "competitionId": competition_id,
            "competitionTitle": "Summer Vibes",
            "roundId": round_id,
            "roundName": "Round 1",
            "result": "Processed 1 entries for round Round 1",
        }
    ]


@pytest.mark.asyncio
async def test_sweep_endpoint_returns_500_when_sweep_crashes(session_factory, logger, monkeypatch) -> None:
    async def broken_sweep(*args, **kwargs):
        raise RuntimeError("connection refused")

    monkeypatch.setattr("vibtrix.web.cron.run_qualification_sweep", broken_sweep)
    app = _build_app(session_factory, logger)
    request = make_mocked_request("GET", "/api/cron/process-round-qualifications", app=app)

    response = await process_round_qualifications(request)
    body = json.loads(response.text)

    assert response.status == 500
    assert body == {
        "status": "error",
        "message": "Failed to process round qualifications",
        "error": "connection refused",
    }


@pytest.mark.asyncio
async def test_visibility_endpoint_with_nothing_to_update(session_factory, logger) -> None:
    app = _build_app(session_factory, logger)
    request = make_mocked_request("GET", "/api/cron/update-competition-entries", app=app)

    response = await update_competition_entries(request)
    body = json.loads(response.text)

    assert response.status == 200
    assert body["rounds"] == []


@pytest.mark.asyncio
async def test_admin_endpoint_requires_token(session_factory, logger) -> None:
    app = _build_app(session_factory, logger)
    request = make_mocked_request(
        "POST",
        "/api/competitions/1/process-qualification",
        headers={"Authorization": "Bearer guess"},
        match_info={"competition_id": "1"},
        app=app,
    )

    response = await process_qualification(request)

    assert response.status == 401


@pytest.mark.asyncio
async def test_admin_endpoint_rejects_malformed_competition_id(session_factory, logger) -> None:
    app = _build_app(session_factory, logger, ADMIN_API_TOKEN="admin")
    request = make_mocked_request(
        "POST",
        "/api/competitions/abc/process-qualification",
        headers={"Authorization": "Bearer admin"},
        match_info={"competition_id": "abc"},
        app=app,
    )

    response = await process_qualification(request)

    assert response.status == 404
    assert json.loads(response.text) == {"error": "Competition not found"}


def test_create_app_registers_routes(tmp_path) -> None:
    settings = Settings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}")
    app = create_app(settings)

    registered = {
        (route.method, route.resource.canonical)
        for route in app.router.routes()
        if route.method != "HEAD"
    }
    assert ("GET", "/healthz") in registered
    assert ("GET", "/readyz") in registered
    assert ("GET", "/api/cron/process-round-qualifications") in registered
    assert ("GET", "/api/cron/update-competition-entries") in registered
    assert ("POST", "/api/competitions/{competition_id}/process-qualification") in registered
    assert app["scheduler_task"] is None


FAR_FUTURE = datetime(2099, 1, 1, tzinfo=timezone.utc)
ADMIN_HEADERS = {"Authorization": "Bearer admin"}


def _admin_client(session_factory, logger) -> test_utils.TestClient:
    app = _build_app(session_factory, logger, ADMIN_API_TOKEN="admin")
    app.router.add_post(ADMIN_PROCESS_QUALIFICATION_PATH, process_qualification)
    return test_utils.TestClient(test_utils.TestServer(app))


def _admin_path(competition_id: int) -> str:
    return ADMIN_PROCESS_QUALIFICATION_PATH.format(competition_id=competition_id)


@pytest.mark.asyncio
async def test_admin_endpoint_processes_ended_round(session_factory, seeder, logger) -> None:
    competition_id, (round_id,) = await seeder.competition([ended_round("Round 1", 3)])
    participant_id = await seeder.participant(competition_id, current_round_id=round_id)
    await seeder.entry(participant_id, round_id, likes=2)

    async with _admin_client(session_factory, logger) as client:
        response = await client.post(_admin_path(competition_id), json={"roundId": round_id}, headers=ADMIN_HEADERS)
        body = await response.json()

    assert response.status == 200
    assert body == {
        "success": True,
        "message": "Processed 1 entries for round Round 1",
        "entriesProcessed": 1,
        "qualified": 1,
        "disqualified": 0,
    }


@pytest.mark.asyncio
async def test_admin_endpoint_reports_ended_competition(session_factory, seeder, logger) -> None:
    competition_id, (round_id,) = await seeder.competition([ended_round("Round 1", 3)])
    async with session_factory() as session:
        async with session.begin():
            await CompetitionsRepository.finalize(session, competition_id, "Closed early")

    async with _admin_client(session_factory, logger) as client:
        response = await client.post(_admin_path(competition_id), json={"roundId": round_id}, headers=ADMIN_HEADERS)
        body = await response.json()

    assert response.status == 409
    assert body == {"error": "Competition already ended", "completionReason": "Closed early"}


@pytest.mark.asyncio
async def test_admin_endpoint_refuses_round_still_running(session_factory, seeder, logger) -> None:
    competition_id, (round_id,) = await seeder.competition(
        [("Round 1", FAR_FUTURE, FAR_FUTURE + timedelta(days=1), 0)]
    )

    async with _admin_client(session_factory, logger) as client:
        response = await client.post(_admin_path(competition_id), json={"roundId": round_id}, headers=ADMIN_HEADERS)
        body = await response.json()

    assert response.status == 400
    assert body == {"error": "Cannot process qualification before the round has ended"}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [b"roundId=1", b"\xff\xfe{}"])
async def test_admin_endpoint_rejects_unreadable_body(session_factory, seeder, logger, payload) -> None:
    competition_id, _ = await seeder.competition([ended_round("Round 1", 3)])

    async with _admin_client(session_factory, logger) as client:
        response = await client.post(
            _admin_path(competition_id),
            data=payload,
            headers={**ADMIN_HEADERS, "Content-Type": "application/json"},
        )
        body = await response.json()

    assert response.status == 400
    assert body == {"error": "Request body must be JSON"}


@pytest.mark.asyncio
async def test_admin_endpoint_requires_round_id(session_factory, seeder, logger) -> None:
    competition_id, _ = await seeder.competition([ended_round("Round 1", 3)])

    async with _admin_client(session_factory, logger) as client:
        response = await client.post(_admin_path(competition_id), json={"roundId": "first"}, headers=ADMIN_HEADERS)
        body = await response.json()

    assert response.status == 400
    assert body == {"error": "Round ID is required"}
