# Pydantic schemas

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field
from typing import List, Optional

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class Event(BaseModel):
    """A single timestamped, user-scoped event with an opaque JSON payload"""

    model_config = ConfigDict(frozen=True)

    timestamp: AwareDatetime
    user_id: int = Field(..., ge=INT64_MIN, le=INT64_MAX)
    event_type: str = Field(..., min_length=1)
    # Raw JSON text, never parsed into a typed structure
    payload: str


class QueryFilters(BaseModel):
    """Optional constraints for a per-user query. Empty means unconstrained."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    event_type: str = ""
    from_time: Optional[AwareDatetime] = Field(default=None, alias="from")
    to_time: Optional[AwareDatetime] = Field(default=None, alias="to")

    @property
    def is_empty(self) -> bool:
        return not self.event_type and self.from_time is None and self.to_time is None


class EventTypeCount(BaseModel):
    """Event count for one event type"""
    event_type: str
    count: int


class StatsResponse(BaseModel):
    """Summary of the stored events"""
    total_events: int
    unique_users: int
    first_timestamp: Optional[str] = None
    last_timestamp: Optional[str] = None
    top_event_types: List[EventTypeCount] = Field(default_factory=list)
