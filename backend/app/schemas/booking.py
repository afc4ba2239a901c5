"""Pydantic v2 request/response schemas for booking endpoints.

Request models only check shape (types, offsets, lengths). Business rules
such as ranges, opening hours, overlap and quota belong to the engine.
"""

import uuid
from datetime import datetime

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from app.scheduling.types import BookingPatch, BookingRequest, BookingStatus, Role

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class BookingCreate(BaseModel):
    """Schema for creating a new booking.

    ``user_id`` lets an admin book on behalf of a member; members omit it.
    """

    start_time: AwareDatetime
    end_time: AwareDatetime
    notes: str | None = Field(None, max_length=500)
    user_id: uuid.UUID | None = None

    def to_request(self) -> BookingRequest:
        return BookingRequest(start_time=self.start_time, end_time=self.end_time, notes=self.notes)


class BookingUpdate(BaseModel):
    """Schema for partially updating a booking. All fields optional."""

    start_time: AwareDatetime | None = None
    end_time: AwareDatetime | None = None
    notes: str | None = Field(None, max_length=500)
    status: BookingStatus | None = None

    def to_patch(self) -> BookingPatch:
        data = self.model_dump(exclude_unset=True)
        return BookingPatch(**data)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BookingResponse(BaseModel):
    """Standard booking response returned from every booking operation."""

    id: uuid.UUID
    user_id: uuid.UUID
    start_time: datetime
    end_time: datetime
    status: BookingStatus
    notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int


class CancelledCountResponse(BaseModel):
    cancelled_count: int
    message: str


class CompletedCountResponse(BaseModel):
    completed_count: int
    message: str


class WeeklyCountResponse(BaseModel):
    """How many active bookings a user holds in one week, against their limit."""

    user_id: uuid.UUID
    count: int
    weekly_limit: int
    week_start: datetime
    week_end: datetime


class MemberResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    role: Role
    weekly_booking_limit: int

    model_config = ConfigDict(from_attributes=True)


class IncompleteMemberResponse(MemberResponse):
    booking_count: int
