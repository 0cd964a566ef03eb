"""Matched slot data models: internal engine output and external response shape."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class MatchedSlot:
    """A concrete candidate appointment. ``start``/``end`` are UTC instants."""

    record_id: int
    owner_id: int
    start: datetime
    end: datetime
    source_timezone: str
    location_id: Optional[int] = None

    def sort_key(self) -> tuple[datetime, int, int]:
        return (self.start, self.owner_id, self.record_id)

    def identity(self) -> tuple[int, datetime, datetime]:
        """Key used to collapse identical slots coming from overlapping records."""
        return (self.owner_id, self.start, self.end)


class FormattedSlot(BaseModel):
    """Matched slot rendered for the guardian's display timezone."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    availability_id: int = Field(alias="availabilityId")
    owner_id: int = Field(alias="ownerId")
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    timezone: str
    location_id: Optional[int] = Field(default=None, alias="locationId")
    source_timezone: str = Field(alias="sourceTimezone")
    formatted_date: str = Field(alias="formattedDate")
    formatted_time: str = Field(alias="formattedTime")
    timezone_name: str = Field(alias="timezoneName")
    display_text: str = Field(alias="displayText")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
