"""Competition participant repository helpers."""

from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vibtrix.db.models import CompetitionParticipant


class ParticipantsRepository:
    @staticmethod
    async def count_for_competition(session: AsyncSession, competition_id: int) -> int:
        stmt = select(func.count(CompetitionParticipant.id)).where(
            CompetitionParticipant.competition_id == competition_id
        )
        return int(await session.scalar(stmt) or 0)

    @staticmethod
    async def advance_to_round(session: AsyncSession, participant_id: int, round_id: int) -> None:
        stmt = (
            update(CompetitionParticipant)
            .where(CompetitionParticipant.id == participant_id)
            .values(current_round_id=round_id)
        )
        await session.execute(stmt)
