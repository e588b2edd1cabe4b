"""Feed visibility of competition entries once their round starts."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.stdlib import BoundLogger

from vibtrix.repositories.competitions import CompetitionsRepository
from vibtrix.repositories.entries import RoundEntriesRepository
from vibtrix.services.qualification_service import locate_round
from vibtrix.timeutils import utc_now


@dataclass(slots=True)
class RoundVisibilityResult:
    round_id: int
    round_name: str
    competition_title: str
    entries_updated: int
    hidden_from_competition_feed: int

    def as_payload(self) -> dict[str, Any]:
        return {
            "roundId": self.round_id,
            "roundName": self.round_name,
            "competitionTitle": self.competition_title,
            "entriesUpdated": self.entries_updated,
            "hiddenFromCompetitionFeed": self.hidden_from_competition_feed,
        }


async def _sync_round(
    session: AsyncSession,
    competition_id: int,
    round_id: int,
) -> tuple[int, int]:
    entries = await RoundEntriesRepository.list_entries_needing_visibility(session, round_id)
    if not entries:
        return 0, 0

    disqualified: set[int] = set()
    competition = await CompetitionsRepository.get_with_rounds(session, competition_id)
    if competition is not None:
        position = locate_round(competition.rounds, round_id)
        if position is not None and position.index > 0:
            earlier_round_ids = [earlier.id for earlier in competition.rounds[: position.index]]
            disqualified = await RoundEntriesRepository.fetch_disqualified_participant_ids(
                session,
                earlier_round_ids,
                [entry.participant_id for entry in entries],
            )

    for entry in entries:
        entry.visible_in_normal_feed = True
        entry.visible_in_competition_feed = entry.participant_id not in disqualified

    hidden = sum(1 for entry in entries if entry.participant_id in disqualified)
    return len(entries), hidden


async def sync_entry_visibility(
    session_factory: async_sessionmaker[AsyncSession],
    logger: BoundLogger,
    *,
    now: datetime | None = None,
) -> list[RoundVisibilityResult]:
    """Expose submitted entries of started rounds.

    Entries always become visible in the normal feed. They stay out of the
    competition feed when the participant was disqualified in any earlier
    round.
    """

    now = now or utc_now()

    async with session_factory() as session:
        started_rounds = await RoundEntriesRepository.list_started_rounds_needing_visibility(session, now)

    results: list[RoundVisibilityResult] = []
    for competition_round, competition_title in started_rounds:
        try:
            async with session_factory() as session:
                async with session.begin():
                    updated, hidden = await _sync_round(
                        session,
                        competition_round.competition_id,
                        competition_round.id,
                    )
        except Exception:
            logger.exception("entry_visibility_sync_failed", round_id=competition_round.id)
            continue

        logger.info(
            "entry_visibility_synced",
            round_id=competition_round.id,
            entries_updated=updated,
            hidden_from_competition_feed=hidden,
        )
        results.append(
            RoundVisibilityResult(
                round_id=competition_round.id,
                round_name=competition_round.name,
                competition_title=competition_title,
                entries_updated=updated,
                hidden_from_competition_feed=hidden,
            )
        )

    return results
