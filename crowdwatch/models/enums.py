# crowdwatch/models/enums.py
"""String enums stored as plain VARCHAR columns (value == name)."""

import enum


class AuthProvider(str, enum.Enum):
    LOCAL = "LOCAL"
    EXTERNAL = "EXTERNAL"


class ScanKind(str, enum.Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


class AlertKind(str, enum.Enum):
    OVERCROWDING = "OVERCROWDING"
    THRESHOLD_BREACH = "THRESHOLD_BREACH"
    RAPID_INFLOW = "RAPID_INFLOW"


class AlertStatus(str, enum.Enum):
    UNREAD = "UNREAD"
    READ = "READ"
    RESOLVED = "RESOLVED"


class AreaStatus(str, enum.Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    RED = "RED"


class EventStatus(str, enum.Enum):
    UPCOMING = "UPCOMING"
    LIVE = "LIVE"
    COMPLETED = "COMPLETED"
