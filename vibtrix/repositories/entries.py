"""Competition round entry repository helpers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import exists, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from vibtrix.db.enums import QualificationStatus
from vibtrix.db.models import Competition, CompetitionRound, CompetitionRoundEntry, Like
from vibtrix.db.session import dialect_name


@dataclass(slots=True)
class RoundProgress:
    submitted: int
    evaluated: int

    @property
    def is_complete(self) -> bool:
        return self.submitted > 0 and self.evaluated == self.submitted


def _entry_insert(session: AsyncSession):
    if dialect_name(session) == "sqlite":
        return sqlite_insert(CompetitionRoundEntry)
    return postgresql_insert(CompetitionRoundEntry)


def _needs_visibility():
    return or_(
        CompetitionRoundEntry.visible_in_normal_feed.is_(False),
        CompetitionRoundEntry.visible_in_competition_feed.is_(False),
    )


class RoundEntriesRepository:
    @staticmethod
    async def fetch_round_progress(session: AsyncSession, round_id: int) -> RoundProgress:
        submitted_stmt = select(func.count(CompetitionRoundEntry.id)).where(
            CompetitionRoundEntry.round_id == round_id,
            CompetitionRoundEntry.post_id.is_not(None),
        )
        evaluated_stmt = submitted_stmt.where(
            CompetitionRoundEntry.qualification_status != QualificationStatus.UNPROCESSED
        )
        submitted = int(await session.scalar(submitted_stmt) or 0)
        evaluated = int(await session.scalar(evaluated_stmt) or 0)
        return RoundProgress(submitted=submitted, evaluated=evaluated)

    @staticmethod
    async def list_submitted_with_like_counts(
        session: AsyncSession,
        round_id: int,
        *,
        for_update: bool = False,
    ) -> list[tuple[CompetitionRoundEntry, int]]:
        like_count = (
            select(func.count(Like.id))
            .where(Like.post_id == CompetitionRoundEntry.post_id)
            .correlate(CompetitionRoundEntry)
            .scalar_subquery()
        )
        stmt = (
            select(CompetitionRoundEntry, like_count.label("like_count"))
            .where(
                CompetitionRoundEntry.round_id == round_id,
                CompetitionRoundEntry.post_id.is_not(None),
            )
            .order_by(CompetitionRoundEntry.id.asc())
        )
        if for_update:
            stmt = stmt.with_for_update(of=CompetitionRoundEntry)
        rows = await session.execute(stmt)
        return [(entry, int(count or 0)) for entry, count in rows.all()]

    @staticmethod
    async def hide_from_competition_feed(
        session: AsyncSession,
        participant_id: int,
        round_ids: Sequence[int],
    ) -> int:
        if not round_ids:
            return 0

        stmt = (
            update(CompetitionRoundEntry)
            .where(
                CompetitionRoundEntry.participant_id == participant_id,
                CompetitionRoundEntry.round_id.in_(list(round_ids)),
            )
            .values(visible_in_competition_feed=False)
        )
        result = await session.execute(stmt)
        return int(result.rowcount or 0)

    @staticmethod
    async def create_placeholder_entry(session: AsyncSession, participant_id: int, round_id: int) -> bool:
        """Create an empty entry for a qualified participant.

        An existing entry for the round is left untouched, including its post.
        """

        stmt = (
            _entry_insert(session)
            .values(
                participant_id=participant_id,
                round_id=round_id,
                post_id=None,
                qualification_status=QualificationStatus.UNPROCESSED,
                visible_in_normal_feed=True,
                visible_in_competition_feed=True,
            )
            .on_conflict_do_nothing(
                index_elements=[CompetitionRoundEntry.participant_id, CompetitionRoundEntry.round_id]
            )
            .returning(CompetitionRoundEntry.id)
        )
        inserted_id = await session.scalar(stmt)
        return inserted_id is not None

    @staticmethod
    async def list_started_rounds_needing_visibility(
        session: AsyncSession,
        now: datetime,
    ) -> list[tuple[CompetitionRound, str]]:
        hidden_entry = exists().where(
            CompetitionRoundEntry.round_id == CompetitionRound.id,
            CompetitionRoundEntry.post_id.is_not(None),
            _needs_visibility(),
        )
        stmt = (
            select(CompetitionRound, Competition.title)
            .join(Competition, Competition.id == CompetitionRound.competition_id)
            .where(CompetitionRound.start_date <= now, hidden_entry)
            .order_by(CompetitionRound.competition_id.asc(), CompetitionRound.start_date.asc())
        )
        rows = await session.execute(stmt)
        return [(competition_round, title) for competition_round, title in rows.all()]

    @staticmethod
    async def list_entries_needing_visibility(
        session: AsyncSession,
        round_id: int,
    ) -> list[CompetitionRoundEntry]:
        stmt = (
            select(CompetitionRoundEntry)
            .where(
                CompetitionRoundEntry.round_id == round_id,
                CompetitionRoundEntry.post_id.is_not(None),
                _needs_visibility(),
            )
            .order_by(CompetitionRoundEntry.id.asc())
            .with_for_update()
        )
        rows = await session.scalars(stmt)
        return list(rows)

    @staticmethod
    async def fetch_disqualified_participant_ids(
        session: AsyncSession,
        round_ids: Sequence[int],
        participant_ids: Sequence[int],
    ) -> set[int]:
        if not round_ids or not participant_ids:
            return set()

        stmt = select(CompetitionRoundEntry.participant_id).where(
            CompetitionRoundEntry.round_id.in_(list(round_ids)),
            CompetitionRoundEntry.participant_id.in_(list(participant_ids)),
            CompetitionRoundEntry.qualification_status == QualificationStatus.DISQUALIFIED,
        )
        rows = await session.scalars(stmt)
        return set(rows)
