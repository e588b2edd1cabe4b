"""Competition and round repository helpers."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vibtrix.constants import DEFAULT_LIKES_TO_PASS
from vibtrix.db.models import Competition, CompetitionRound
from vibtrix.errors import CompetitionNotFoundError, RoundOrderError
from vibtrix.timeutils import as_utc


class CompetitionsRepository:
    @staticmethod
    async def list_open_with_rounds(session: AsyncSession) -> list[Competition]:
        stmt = (
            select(Competition)
            .where(
                Competition.is_active.is_(True),
                Competition.completion_reason.is_(None),
            )
            .options(selectinload(Competition.rounds))
            .order_by(Competition.id.asc())
        )
        rows = await session.scalars(stmt)
        return list(rows)

    @staticmethod
    async def get_with_rounds(
        session: AsyncSession,
        competition_id: int,
        *,
        for_update: bool = False,
    ) -> Competition | None:
        stmt = (
            select(Competition)
            .where(Competition.id == competition_id)
            .options(selectinload(Competition.rounds))
        )
        if for_update:
            stmt = stmt.with_for_update()
        return await session.scalar(stmt)

    @staticmethod
    async def finalize(session: AsyncSession, competition_id: int, completion_reason: str) -> bool:
        """Mark a competition terminal unless another run already did.

        Returns False when the competition was finalized earlier.
        """

        stmt = (
            update(Competition)
            .where(
                Competition.id == competition_id,
                Competition.completion_reason.is_(None),
            )
            .values(
                completion_reason=completion_reason,
                is_active=False,
            )
            .returning(Competition.id)
        )
        finalized_id = await session.scalar(stmt)
        return finalized_id is not None

    @staticmethod
    async def get_completion_reason(session: AsyncSession, competition_id: int) -> str | None:
        return await session.scalar(select(Competition.completion_reason).where(Competition.id == competition_id))

    @staticmethod
    async def latest_round_start(session: AsyncSession, competition_id: int) -> datetime | None:
        stmt = select(func.max(CompetitionRound.start_date)).where(
            CompetitionRound.competition_id == competition_id
        )
        return await session.scalar(stmt)

    @staticmethod
    async def add_round(
        session: AsyncSession,
        *,
        competition_id: int,
        name: str,
        start_date: datetime,
        end_date: datetime,
        likes_to_pass: int | None = DEFAULT_LIKES_TO_PASS,
    ) -> CompetitionRound:
        """Append a round, keeping rounds strictly ordered by start date."""

        competition = await session.get(Competition, competition_id, with_for_update=True)
        if competition is None:
            raise CompetitionNotFoundError(competition_id)

        if as_utc(end_date) <= as_utc(start_date):
            raise RoundOrderError(f"Round {name!r} must end after it starts")

        if likes_to_pass is not None and likes_to_pass < 0:
            raise ValueError("likes_to_pass must not be negative")

        latest_start = await CompetitionsRepository.latest_round_start(session, competition_id)
        if latest_start is not None and as_utc(start_date) <= as_utc(latest_start):
            raise RoundOrderError(
                f"Round {name!r} must start after {as_utc(latest_start).isoformat()}, "
                "the start of the latest round"
            )

        competition_round = CompetitionRound(
            competition_id=competition_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            likes_to_pass=likes_to_pass,
        )
        session.add(competition_round)
        await session.flush()
        return competition_round
