"""Booking model — a member's reservation of one time slot."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, UTCDateTime, UUIDPrimaryKeyMixin


class Booking(UUIDPrimaryKeyMixin, Base):
    """A time slot held by a user. Rows are never deleted, only cancelled."""

    __tablename__ = "bookings"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default="CONFIRMED",
        index=True,
    )  # CONFIRMED, CANCELLED, COMPLETED
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="bookings", lazy="noload")  # type: ignore[name-defined]  # noqa: F821

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_bookings_positive_duration"),
        Index("ix_bookings_user_start", "user_id", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user_id={self.user_id}, status={self.status})>"
