"""Database models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vibtrix.db.base import Base, TimestampMixin
from vibtrix.db.enums import QualificationStatus


class User(Base, TimestampMixin):
    __tablename__ = "users"
    __table_args__ = (UniqueConstraint("username", name="uq_users_username"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False)


class Post(Base, TimestampMixin):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")


class Like(Base):
    __tablename__ = "likes"
    __table_args__ = (UniqueConstraint("user_id", "post_id", name="uq_likes_user_id_post_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    post_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class Competition(Base, TimestampMixin):
    __tablename__ = "competitions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    completion_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    rounds: Mapped[list[CompetitionRound]] = relationship(
        back_populates="competition",
        order_by="CompetitionRound.start_date",
        cascade="all, delete-orphan",
    )

    @property
    def is_terminal(self) -> bool:
        return self.completion_reason is not None


class CompetitionRound(Base, TimestampMixin):
    __tablename__ = "competition_rounds"
    __table_args__ = (
        CheckConstraint("end_date > start_date", name="ck_competition_rounds_end_after_start"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    competition_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    likes_to_pass: Mapped[int | None] = mapped_column(Integer, nullable=True, default=0, server_default="0")

    competition: Mapped[Competition] = relationship(back_populates="rounds")


class CompetitionParticipant(Base, TimestampMixin):
    __tablename__ = "competition_participants"
    __table_args__ = (
        UniqueConstraint("user_id", "competition_id", name="uq_competition_participants_user_competition"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    competition_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    current_round_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("competition_rounds.id", ondelete="SET NULL"),
        nullable=True,
    )


class CompetitionRoundEntry(Base, TimestampMixin):
    __tablename__ = "competition_round_entries"
    __table_args__ = (
        UniqueConstraint("participant_id", "round_id", name="uq_competition_round_entries_participant_round"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    participant_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("competition_participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    round_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("competition_rounds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    post_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("posts.id", ondelete="SET NULL"),
        nullable=True,
    )
    qualification_status: Mapped[QualificationStatus] = mapped_column(
        Enum(
            QualificationStatus,
            name="qualification_status",
            native_enum=True,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
        default=QualificationStatus.UNPROCESSED,
        server_default=QualificationStatus.UNPROCESSED.value,
    )
    visible_in_normal_feed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )
    visible_in_competition_feed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    @property
    def qualified_for_next_round(self) -> bool | None:
        if self.qualification_status is QualificationStatus.UNPROCESSED:
            return None
        return self.qualification_status is QualificationStatus.QUALIFIED
