"""
services/trip_service.py — Read-only lookups against the trip collaborator.

Trips and their rosters are owned by the trip service; the budget core only
needs to know who created a trip and who is on it.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from tripbudget.app.errors import ErrorCode, NotFound
from tripbudget.app.models.trip import Trip


def get_trip_or_404(trip_id: int, session: Session) -> Trip:
    trip = session.get(Trip, trip_id)
    if trip is None:
        raise NotFound(ErrorCode.TRIP_NOT_FOUND, f"Trip {trip_id} not found.")
    return trip


def is_trip_creator(trip: Trip, user_id: int) -> bool:
    return trip.created_by == user_id


def is_trip_member(trip: Trip, user_id: int) -> bool:
    """The creator counts as a member even if the roster omits them."""
    return is_trip_creator(trip, user_id) or user_id in trip_member_ids(trip)


def trip_member_ids(trip: Trip) -> list[int]:
    """Roster user ids in roster order, without duplicates."""
    seen: list[int] = []
    for member in trip.members:
        if member.user_id not in seen:
            seen.append(member.user_id)
    return seen
