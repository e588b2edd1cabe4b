"""Round qualification processing for multi-round competitions."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.stdlib import BoundLogger

from vibtrix.constants import DEFAULT_LIKES_TO_PASS
from vibtrix.db.enums import QualificationStatus
from vibtrix.db.models import Competition, CompetitionRound, CompetitionRoundEntry
from vibtrix.errors import (
    CompetitionNotFoundError,
    CompetitionTerminatedError,
    RoundNotEndedError,
    RoundNotFoundError,
)
from vibtrix.repositories.competitions import CompetitionsRepository
from vibtrix.repositories.entries import RoundEntriesRepository
from vibtrix.repositories.participants import ParticipantsRepository
from vibtrix.services.completion_reasons import CompletionTrigger, completion_reason
from vibtrix.timeutils import has_passed, utc_now

EntryWithLikes = tuple[CompetitionRoundEntry, int]


@dataclass(slots=True)
class RoundPosition:
    round: CompetitionRound
    index: int
    is_first_round: bool
    is_last_round: bool
    next_round: CompetitionRound | None
    later_round_ids: list[int] = field(default_factory=list)


@dataclass(slots=True)
class RoundProcessingResult:
    message: str
    entries_processed: int = 0
    qualified: int = 0
    disqualified: int = 0
    completion_reason: str | None = None
    skipped: bool = False

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": True,
            "message": self.message,
            "entriesProcessed": self.entries_processed,
            "qualified": self.qualified,
            "disqualified": self.disqualified,
        }
        if self.completion_reason is not None:
            payload["completionReason"] = self.completion_reason
        return payload


@dataclass(slots=True)
class SweepItem:
    competition_id: int
    competition_title: str
    round_id: int
    round_name: str
    result: str
    completion_reason: str | None = None
    error: str | None = None

    def as_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "competitionId": self.competition_id,
            "competitionTitle": self.competition_title,
            "roundId": self.round_id,
            "roundName": self.round_name,
            "result": self.result,
        }
        if self.completion_reason is not None:
            payload["completionReason"] = self.completion_reason
        if self.error is not None:
            payload["error"] = self.error
        return payload


def locate_round(rounds: Sequence[CompetitionRound], round_id: int) -> RoundPosition | None:
    """Resolve a round's place among rounds ordered by start date."""

    for index, competition_round in enumerate(rounds):
        if competition_round.id != round_id:
            continue

        is_last_round = index == len(rounds) - 1
        return RoundPosition(
            round=competition_round,
            index=index,
            is_first_round=index == 0,
            is_last_round=is_last_round,
            next_round=None if is_last_round else rounds[index + 1],
            later_round_ids=[
                later.id for later in rounds[index + 1 :] if later.start_date > competition_round.start_date
            ],
        )

    return None


def passes_threshold(like_count: int, likes_to_pass: int | None) -> bool:
    threshold = likes_to_pass if likes_to_pass is not None else DEFAULT_LIKES_TO_PASS
    return like_count >= threshold


def group_entries_by_participant(rows: Iterable[EntryWithLikes]) -> dict[int, list[EntryWithLikes]]:
    grouped: dict[int, list[EntryWithLikes]] = {}
    for entry, like_count in rows:
        grouped.setdefault(entry.participant_id, []).append((entry, like_count))
    return grouped


async def _finalize(
    session: AsyncSession,
    competition: Competition,
    position: RoundPosition,
    trigger: CompletionTrigger,
    logger: BoundLogger,
    **counts: int,
) -> RoundProcessingResult:
    reason = completion_reason(
        trigger,
        is_first_round=position.is_first_round,
        round_name=position.round.name,
    )
    finalized = await CompetitionsRepository.finalize(session, competition.id, reason)
    if finalized:
        logger.info(
            "competition_finalized",
            competition_id=competition.id,
            round_id=position.round.id,
            trigger=trigger.value,
        )
    else:
        logger.warning("competition_already_finalized", competition_id=competition.id)

    return RoundProcessingResult(message=reason, completion_reason=reason, **counts)


async def _process_round_in_session(
    session: AsyncSession,
    competition_id: int,
    round_id: int,
    logger: BoundLogger,
    now: datetime,
) -> RoundProcessingResult:
    competition = await CompetitionsRepository.get_with_rounds(session, competition_id, for_update=True)
    if competition is None:
        raise CompetitionNotFoundError(competition_id)

    position = locate_round(competition.rounds, round_id)
    if position is None:
        raise RoundNotFoundError(competition_id, round_id)

    if competition.is_terminal:
        raise CompetitionTerminatedError(competition_id, competition.completion_reason)

    competition_round = position.round

    # Also checked by the sweep; kept here for the on-demand path.
    if position.is_first_round and has_passed(competition_round.end_date, now):
        participant_count = await ParticipantsRepository.count_for_competition(session, competition_id)
        if participant_count < 1:
            return await _finalize(session, competition, position, CompletionTrigger.NO_PARTICIPANTS, logger)

    rows = await RoundEntriesRepository.list_submitted_with_like_counts(session, round_id, for_update=True)
    if not rows:
        return await _finalize(session, competition, position, CompletionTrigger.NO_SUBMISSIONS, logger)

    if all(entry.qualification_status.is_processed for entry, _ in rows):
        return RoundProcessingResult(message=f"Round {competition_round.name} already processed", skipped=True)

    next_round = position.next_round
    entries_processed = 0
    qualified_count = 0
    disqualified_count = 0

    for participant_id, participant_rows in group_entries_by_participant(rows).items():
        for entry, like_count in participant_rows:
            if entry.qualification_status.is_processed:
                if entry.qualification_status is QualificationStatus.QUALIFIED:
                    qualified_count += 1
                continue

            qualified = passes_threshold(like_count, competition_round.likes_to_pass)
            entry.qualification_status = QualificationStatus.from_outcome(qualified)
            entry.visible_in_normal_feed = True
            entry.visible_in_competition_feed = True
            entries_processed += 1

            if qualified:
                qualified_count += 1
                if next_round is not None:
                    created = await RoundEntriesRepository.create_placeholder_entry(
                        session,
                        participant_id=participant_id,
                        round_id=next_round.id,
                    )
                    await ParticipantsRepository.advance_to_round(session, participant_id, next_round.id)
                    logger.debug(
                        "participant_advanced",
                        participant_id=participant_id,
                        next_round_id=next_round.id,
                        placeholder_created=created,
                    )
            else:
                disqualified_count += 1
                if next_round is not None:
                    hidden = await RoundEntriesRepository.hide_from_competition_feed(
                        session,
                        participant_id,
                        position.later_round_ids,
                    )
                    logger.debug(
                        "participant_disqualified",
                        participant_id=participant_id,
                        like_count=like_count,
                        future_entries_hidden=hidden,
                    )

    counts = {
        "entries_processed": entries_processed,
        "qualified": qualified_count,
        "disqualified": disqualified_count,
    }

    if not position.is_last_round and qualified_count == 0:
        return await _finalize(session, competition, position, CompletionTrigger.NO_QUALIFIERS, logger, **counts)

    logger.info("round_processed", competition_id=competition_id, round_id=round_id, **counts)
    return RoundProcessingResult(
        message=f"Processed {entries_processed} entries for round {competition_round.name}",
        **counts,
    )


async def process_round(
    session_factory: async_sessionmaker[AsyncSession],
    competition_id: int,
    round_id: int,
    logger: BoundLogger,
    *,
    now: datetime | None = None,
) -> RoundProcessingResult:
    """Evaluate one ended round and advance or eliminate its participants.

    All writes for the round commit in a single transaction. Entries that
    were evaluated by an earlier run keep their outcome.
    """

    now = now or utc_now()

    async with session_factory() as session:
        async with session.begin():
            return await _process_round_in_session(session, competition_id, round_id, logger, now)


async def process_round_on_demand(
    session_factory: async_sessionmaker[AsyncSession],
    competition_id: int,
    round_id: int,
    logger: BoundLogger,
    *,
    now: datetime | None = None,
) -> RoundProcessingResult:
    now = now or utc_now()

    async with session_factory() as session:
        competition = await CompetitionsRepository.get_with_rounds(session, competition_id)

    if competition is None:
        raise CompetitionNotFoundError(competition_id)

    position = locate_round(competition.rounds, round_id)
    if position is None:
        raise RoundNotFoundError(competition_id, round_id)

    if competition.is_terminal:
        raise CompetitionTerminatedError(competition_id, competition.completion_reason)

    if not has_passed(position.round.end_date, now):
        raise RoundNotEndedError(round_id)

    logger.info("round_processing_requested", competition_id=competition_id, round_id=round_id)
    return await process_round(session_factory, competition_id, round_id, logger, now=now)


async def _finalize_if_abandoned(
    session_factory: async_sessionmaker[AsyncSession],
    competition: Competition,
    first_round: CompetitionRound,
    logger: BoundLogger,
) -> SweepItem | None:
    async with session_factory() as session:
        async with session.begin():
            participant_count = await ParticipantsRepository.count_for_competition(session, competition.id)
            if participant_count > 0:
                return None

            reason = completion_reason(CompletionTrigger.NO_PARTICIPANTS, is_first_round=True)
            finalized = await CompetitionsRepository.finalize(session, competition.id, reason)
            if not finalized:
                existing_reason = await CompetitionsRepository.get_completion_reason(session, competition.id)
                raise CompetitionTerminatedError(competition.id, existing_reason or reason)

    logger.info("competition_abandoned", competition_id=competition.id, round_id=first_round.id)
    return SweepItem(
        competition_id=competition.id,
        competition_title=competition.title,
        round_id=first_round.id,
        round_name=first_round.name,
        result=reason,
        completion_reason=reason,
    )


async def _sweep_competition(
    session_factory: async_sessionmaker[AsyncSession],
    competition: Competition,
    logger: BoundLogger,
    now: datetime,
) -> list[SweepItem]:
    rounds = competition.rounds
    if not rounds:
        return []

    first_round = rounds[0]
    if has_passed(first_round.end_date, now):
        try:
            abandoned = await _finalize_if_abandoned(session_factory, competition, first_round, logger)
        except CompetitionTerminatedError:
            logger.debug("competition_finalized_elsewhere", competition_id=competition.id)
            return []
        if abandoned is not None:
            return [abandoned]

    items: list[SweepItem] = []

    for competition_round in rounds:
        if not has_passed(competition_round.end_date, now):
            continue

        async with session_factory() as session:
            progress = await RoundEntriesRepository.fetch_round_progress(session, competition_round.id)

        if progress.is_complete:
            logger.debug(
                "round_already_processed",
                competition_id=competition.id,
                round_id=competition_round.id,
                evaluated=progress.evaluated,
            )
            continue

        try:
            result = await process_round(session_factory, competition.id, competition_round.id, logger, now=now)
        except CompetitionTerminatedError:
            logger.debug(
                "competition_finalized_elsewhere",
                competition_id=competition.id,
                round_id=competition_round.id,
            )
            break
        except Exception as exc:
            logger.exception(
                "round_processing_failed",
                competition_id=competition.id,
                round_id=competition_round.id,
            )
            items.append(
                SweepItem(
                    competition_id=competition.id,
                    competition_title=competition.title,
                    round_id=competition_round.id,
                    round_name=competition_round.name,
                    result="Failed to process round",
                    error=str(exc),
                )
            )
            break

        if result.skipped:
            continue

        items.append(
            SweepItem(
                competition_id=competition.id,
                competition_title=competition.title,
                round_id=competition_round.id,
                round_name=competition_round.name,
                result=result.message,
                completion_reason=result.completion_reason,
            )
        )

        if result.completion_reason is not None:
            break

    return items


async def run_qualification_sweep(
    session_factory: async_sessionmaker[AsyncSession],
    logger: BoundLogger,
    *,
    now: datetime | None = None,
) -> list[SweepItem]:
    """Process every ended, unprocessed round of every open competition.

    Safe to run repeatedly: rounds whose submitted entries are all evaluated
    are skipped, and finalized competitions are never selected again.
    """

    now = now or utc_now()
    sweep_logger = logger.bind(sweep_id=uuid4().hex)

    async with session_factory() as session:
        competitions = await CompetitionsRepository.list_open_with_rounds(session)

    sweep_logger.info("qualification_sweep_started", competitions=len(competitions))

    report: list[SweepItem] = []
    for competition in competitions:
        try:
            report.extend(await _sweep_competition(session_factory, competition, sweep_logger, now))
        except Exception:
            sweep_logger.exception("competition_sweep_failed", competition_id=competition.id)

    sweep_logger.info("qualification_sweep_finished", processed_rounds=len(report))
    return report
