"""Domain errors raised by the competition services."""

from __future__ import annotations


class VibtrixError(Exception):
    """Base exception for competition processing errors."""


class CompetitionNotFoundError(VibtrixError):
    def __init__(self, competition_id: int) -> None:
        super().__init__(f"Competition {competition_id} not found")
        self.competition_id = competition_id


class RoundNotFoundError(VibtrixError):
    def __init__(self, competition_id: int, round_id: int) -> None:
        super().__init__(f"Round {round_id} not found in competition {competition_id}")
        self.competition_id = competition_id
        self.round_id = round_id


class CompetitionTerminatedError(VibtrixError):
    """Raised when an operation targets a competition that already ended."""

    def __init__(self, competition_id: int, completion_reason: str) -> None:
        super().__init__(f"Competition {competition_id} already ended: {completion_reason}")
        self.competition_id = competition_id
        self.completion_reason = completion_reason


class RoundNotEndedError(VibtrixError):
    def __init__(self, round_id: int) -> None:
        super().__init__("Cannot process qualification before the round has ended")
        self.round_id = round_id


class RoundOrderError(VibtrixError):
    """Raised when a new round would break start-date ordering."""
