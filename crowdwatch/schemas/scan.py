from datetime import datetime

from crowdwatch.models.enums import ScanKind
from crowdwatch.schemas.base import CamelModel


class ScanIn(CamelModel):
    area_id: int
    kind: ScanKind


class ScanOut(CamelModel):
    id: int
    area_id: int
    area_name: str
    kind: ScanKind
    timestamp: datetime
    new_count: int


class HourlyTrendOut(CamelModel):
    hour: str          # "14:00"
    entries: int
    exits: int
    net: int
