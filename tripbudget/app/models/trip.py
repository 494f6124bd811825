"""
models/trip.py — Trip and TripMember table definitions.

These tables belong to the trip service. The budget core reads the creator
and member roster, and writes only the two cached budget_summary_* columns
(see services/summary_sync.py). No business logic here.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tripbudget.app.extensions import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Trip(db.Model):
    __tablename__ = "trips"

    id: Mapped[int] = mapped_column(primary_key=True)

    created_by: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Denormalized budget summary in cents: total planned vs. total spent.
    budget_summary_total: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )
    budget_summary_spent: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    members: Mapped[list["TripMember"]] = relationship(
        "TripMember",
        back_populates="trip",
        order_by="TripMember.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Trip id={self.id} created_by={self.created_by}>"


class TripMember(db.Model):
    __tablename__ = "trip_members"

    __table_args__ = (
        UniqueConstraint("trip_id", "user_id", name="uq_trip_members_trip_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # 'creator' or 'member' as recorded by the trip service.
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="member")

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    trip: Mapped["Trip"] = relationship("Trip", back_populates="members")

    def __repr__(self) -> str:  # pragma: no cover
        return f"<TripMember trip_id={self.trip_id} user_id={self.user_id}>"
