# crowdwatch/services/status.py
"""
Pure status derivation — no DB, no clock.
  area_status:  traffic-light state from (current_count, threshold, capacity)
  event_status: UPCOMING / LIVE / COMPLETED from (now, start_at, end_at)
AreaSnapshot is the immutable view of an Area that the scan path and alert rules work on.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from crowdwatch.models.enums import AreaStatus, EventStatus

DEFAULT_EVENT_DURATION = timedelta(hours=24)


def occupancy_pct(current_count: int, capacity: int) -> float:
    if not capacity:
        return 0.0
    return current_count / capacity * 100


def area_status(current_count: int, threshold: int, capacity: int) -> AreaStatus:
    if current_count >= capacity:
        return AreaStatus.RED
    if current_count >= threshold:
        return AreaStatus.YELLOW
    return AreaStatus.GREEN


def event_status(now: datetime, start_at: datetime, end_at: Optional[datetime] = None,
                 default_duration: timedelta = DEFAULT_EVENT_DURATION) -> EventStatus:
    """An event with no end time is considered over `default_duration` after it starts."""
    if now < start_at:
        return EventStatus.UPCOMING
    if end_at is not None and now > end_at:
        return EventStatus.COMPLETED
    if end_at is None and now > start_at + default_duration:
        return EventStatus.COMPLETED
    return EventStatus.LIVE


@dataclass(frozen=True)
class AreaSnapshot:
    id: int
    name: str
    owner_email: str
    event_id: Optional[int]
    capacity: int
    threshold: int
    current_count: int

    @classmethod
    def from_model(cls, area) -> "AreaSnapshot":
        return cls(
            id=area.id,
            name=area.name,
            owner_email=area.owner_email,
            event_id=area.event_id,
            capacity=area.capacity,
            threshold=area.threshold,
            current_count=area.current_count,
        )

    @property
    def status(self) -> AreaStatus:
        return area_status(self.current_count, self.threshold, self.capacity)

    @property
    def occupancy_pct(self) -> float:
        return occupancy_pct(self.current_count, self.capacity)
