"""Shared fixtures: a throwaway SQLite database and seeding helpers."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import BigInteger, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles

from vibtrix.db.base import Base
from vibtrix.db.enums import QualificationStatus
from vibtrix.db.models import (
    Competition,
    CompetitionParticipant,
    CompetitionRoundEntry,
    Like,
    Post,
    User,
)
from vibtrix.db.session import create_engine_and_session_factory
from vibtrix.logging_setup import get_logger
from vibtrix.repositories.competitions import CompetitionsRepository

NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@compiles(BigInteger, "sqlite")
def _compile_bigint_as_integer(type_, compiler, **kw):
    # INTEGER PRIMARY KEY is what gives SQLite rowid autoincrement.
    return "INTEGER"


def ended_round(name: str, days_ago: int, likes_to_pass: int | None = 0) -> tuple[str, datetime, datetime, int | None]:
    start = NOW - timedelta(days=days_ago)
    return name, start, start + timedelta(hours=23), likes_to_pass


def upcoming_round(name: str, days_ahead: int, likes_to_pass: int | None = 0) -> tuple[str, datetime, datetime, int | None]:
    start = NOW + timedelta(days=days_ahead)
    return name, start, start + timedelta(hours=23), likes_to_pass


class Seeder:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory
        self._sequence = itertools.count(1)

    async def _user(self, session: AsyncSession, prefix: str) -> User:
        user = User(username=f"{prefix}-{next(self._sequence)}")
        session.add(user)
        await session.flush()
        return user

    async def competition(
        self,
        rounds: list[tuple[str, datetime, datetime, int | None]],
        *,
        title: str = "Summer Vibes",
    ) -> tuple[int, list[int]]:
        async with self.session_factory() as session:
            async with session.begin():
                competition = Competition(title=title, is_active=True)
                session.add(competition)
                await session.flush()

                round_ids = []
                for name, start_date, end_date, likes_to_pass in rounds:
                    competition_round = await CompetitionsRepository.add_round(
                        session,
                        competition_id=competition.id,
                        name=name,
                        start_date=start_date,
                        end_date=end_date,
                        likes_to_pass=likes_to_pass,
                    )
                    round_ids.append(competition_round.id)

                return competition.id, round_ids

    async def participant(self, competition_id: int, current_round_id: int | None = None) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                user = await self._user(session, "member")
                participant = CompetitionParticipant(
                    user_id=user.id,
                    competition_id=competition_id,
                    current_round_id=current_round_id,
                )
                session.add(participant)
                await session.flush()
                return participant.id

    async def entry(
        self,
        participant_id: int,
        round_id: int,
        *,
        likes: int = 0,
        with_post: bool = True,
        status: QualificationStatus = QualificationStatus.UNPROCESSED,
        visible: bool = False,
    ) -> int:
        async with self.session_factory() as session:
            async with session.begin():
                post_id = None
                if with_post:
                    participant = await session.get(CompetitionParticipant, participant_id)
                    post = Post(user_id=participant.user_id, content="entry")
                    session.add(post)
                    await session.flush()
                    post_id = post.id
                    for _ in range(likes):
                        liker = await self._user(session, "liker")
                        session.add(Like(user_id=liker.id, post_id=post.id))

                entry = CompetitionRoundEntry(
                    participant_id=participant_id,
                    round_id=round_id,
                    post_id=post_id,
                    qualification_status=status,
                    visible_in_normal_feed=visible,
                    visible_in_competition_feed=visible,
                )
                session.add(entry)
                await session.flush()
                return entry.id

    async def get_competition(self, competition_id: int) -> Competition:
        async with self.session_factory() as session:
            return await session.get(Competition, competition_id)

    async def get_participant(self, participant_id: int) -> CompetitionParticipant:
        async with self.session_factory() as session:
            return await session.get(CompetitionParticipant, participant_id)

    async def get_entry(self, participant_id: int, round_id: int) -> CompetitionRoundEntry | None:
        async with self.session_factory() as session:
            stmt = select(CompetitionRoundEntry).where(
                CompetitionRoundEntry.participant_id == participant_id,
                CompetitionRoundEntry.round_id == round_id,
            )
            return await session.scalar(stmt)

    async def count_entries(self, participant_id: int, round_id: int) -> int:
        async with self.session_factory() as session:
            stmt = select(func.count(CompetitionRoundEntry.id)).where(
                CompetitionRoundEntry.participant_id == participant_id,
                CompetitionRoundEntry.round_id == round_id,
            )
            return int(await session.scalar(stmt) or 0)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine, factory = create_engine_and_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'vibtrix.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield factory
    await engine.dispose()


@pytest.fixture
def seeder(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def logger():
    return get_logger("tests")
