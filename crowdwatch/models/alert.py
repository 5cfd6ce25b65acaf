# crowdwatch/models/alert.py
"""
Alerts table — overcrowding, threshold breach and rapid inflow alerts.
Area name and owner are denormalised so alert queries need no join.
The counters are a snapshot taken when the alert was opened and are never rewritten.
At most one non-RESOLVED alert per (area_id, kind), backed by a partial unique index.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from crowdwatch.database import Base

CRITICAL_KINDS = {"OVERCROWDING", "RAPID_INFLOW"}

KIND_DISPLAY = {
    "OVERCROWDING": "Overcrowding",
    "THRESHOLD_BREACH": "Threshold Breach",
    "RAPID_INFLOW": "Rapid Inflow",
}


class Alert(Base):
    __tablename__ = "alerts"
    __table_args__ = (
        Index(
            "uq_alerts_open_area_kind", "area_id", "kind", unique=True,
            postgresql_where=text("status <> 'RESOLVED'"),
            sqlite_where=text("status <> 'RESOLVED'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    area_id = Column(Integer, ForeignKey("areas.id", ondelete="CASCADE"), nullable=False, index=True)
    area_name = Column(String(100))
    owner_email = Column(String(100), nullable=False, index=True)
    kind = Column(String(30), nullable=False, index=True)          # OVERCROWDING | THRESHOLD_BREACH | RAPID_INFLOW
    status = Column(String(20), nullable=False, default="UNREAD")  # UNREAD | READ | RESOLVED
    message = Column(String(500))
    current_count = Column(Integer)
    threshold = Column(Integer)
    capacity = Column(Integer)
    occupancy_pct = Column(Float)
    created_at = Column(DateTime, nullable=False, index=True)
    resolved_at = Column(DateTime)

    area = relationship("Area", back_populates="alerts")

    @property
    def critical(self) -> bool:
        return self.kind in CRITICAL_KINDS

    @property
    def severity(self) -> str:
        return "Critical" if self.critical else "Warning"

    @property
    def kind_display(self) -> str:
        return KIND_DISPLAY.get(self.kind, self.kind)

    @property
    def event_name(self):
        if self.area is not None and self.area.event is not None:
            return self.area.event.name
        return None

    def __repr__(self):
        return f"<Alert {self.id} kind={self.kind} status={self.status}>"
