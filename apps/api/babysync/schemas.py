"""Pydantic schemas shared across the API and the sync client."""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ActivityType(str, Enum):
    FEEDING = "feeding"
    SLEEP = "sleep"
    DIAPER = "diaper"


class FeedingData(BaseModel):
    model_config = ConfigDict(extra="allow")

    feedType: Literal["bottle", "breast", "solid"]
    amount: Optional[float] = Field(default=None, ge=0, description="Numeric amount when applicable (e.g., 4)")
    unit: Optional[Literal["oz", "ml"]] = None
    side: Optional[Literal["left", "right", "both"]] = None
    notes: Optional[str] = None


class SleepData(BaseModel):
    model_config = ConfigDict(extra="allow")

    location: Optional[str] = Field(default=None, description="crib | bassinet | stroller | car_seat | other")
    quality: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = None


class DiaperData(BaseModel):
    model_config = ConfigDict(extra="allow")

    diaperType: Literal["wet", "dirty", "both"]
    hasRash: Optional[bool] = None
    notes: Optional[str] = None


PAYLOAD_MODELS: Dict[ActivityType, Type[BaseModel]] = {
    ActivityType.FEEDING: FeedingData,
    ActivityType.SLEEP: SleepData,
    ActivityType.DIAPER: DiaperData,
}


def validate_activity_data(activity_type: ActivityType, data: Dict[str, Any]) -> Dict[str, Any]:
    """Check a category payload and return it with unset optional keys dropped.

    Raises ``pydantic.ValidationError`` when the payload does not fit the category.
    """
    model = PAYLOAD_MODELS[ActivityType(activity_type)]
    return model.model_validate(data).model_dump(exclude_none=True)


class Family(BaseModel):
    id: str
    code: str
    baby_name: str = "Baby"
    created_at: int


class Activity(BaseModel):
    """A logged event as stored, sent over HTTP and carried in envelopes.

    Timestamps are epoch milliseconds.
    """

    id: str
    family_id: str
    type: ActivityType
    data: Dict[str, Any] = Field(default_factory=dict)
    started_at: int
    ended_at: Optional[int] = None
    created_by: Optional[str] = None
    created_at: int

    @property
    def duration_ms(self) -> Optional[int]:
        if self.ended_at is None:
            return None
        return self.ended_at - self.started_at


class CreateFamilyPayload(BaseModel):
    baby_name: str = Field(default="Baby", alias="babyName", max_length=80)

    model_config = ConfigDict(populate_by_name=True)


class JoinFamilyPayload(BaseModel):
    code: str = Field(..., min_length=1)


class CreateActivityPayload(BaseModel):
    type: ActivityType
    data: Dict[str, Any] = Field(default_factory=dict)
    started_at: Optional[int] = Field(default=None, alias="startedAt")
    ended_at: Optional[int] = Field(default=None, alias="endedAt")
    created_by: Optional[str] = Field(default=None, alias="createdBy")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _ended_after_started(self) -> "CreateActivityPayload":
        if self.started_at is not None and self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError("endedAt must not be earlier than startedAt")
        return self


class UpdateActivityPayload(BaseModel):
    """Partial update; only fields present in the request body are applied."""

    data: Optional[Dict[str, Any]] = None
    ended_at: Optional[int] = Field(default=None, alias="endedAt")
    device_id: Optional[str] = Field(default=None, alias="deviceId")

    model_config = ConfigDict(populate_by_name=True)


class DailyStats(BaseModel):
    feeding_count: int = Field(default=0, alias="feedingCount")
    sleep_hours: float = Field(default=0.0, alias="sleepHours")
    diaper_count: int = Field(default=0, alias="diaperCount")

    model_config = ConfigDict(populate_by_name=True)
