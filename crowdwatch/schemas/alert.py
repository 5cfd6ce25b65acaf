from datetime import datetime
from typing import Optional

from crowdwatch.models.enums import AlertKind, AlertStatus
from crowdwatch.schemas.base import CamelModel


class AlertOut(CamelModel):
    id: int
    area_id: int
    area_name: Optional[str]
    event_name: Optional[str] = None
    kind: AlertKind
    kind_display: str
    status: AlertStatus
    severity: str
    critical: bool
    message: Optional[str]
    current_count: Optional[int]
    threshold: Optional[int]
    capacity: Optional[int]
    occupancy_pct: Optional[float]
    created_at: datetime
    resolved_at: Optional[datetime]


class UnreadCountOut(CamelModel):
    count: int


class MarkAllReadOut(CamelModel):
    message: str
    updated: int
