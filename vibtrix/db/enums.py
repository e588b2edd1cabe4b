"""Database enums."""

from enum import Enum


class QualificationStatus(str, Enum):
    UNPROCESSED = "unprocessed"
    QUALIFIED = "qualified"
    DISQUALIFIED = "disqualified"

    @classmethod
    def from_outcome(cls, qualified: bool) -> "QualificationStatus":
        return cls.QUALIFIED if qualified else cls.DISQUALIFIED

    @property
    def is_processed(self) -> bool:
        return self is not QualificationStatus.UNPROCESSED
