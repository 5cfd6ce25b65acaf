# crowdwatch/models/area.py
"""
Areas table — a counted zone (room, gate, hall) with capacity and warning threshold.
current_count is only ever changed by the atomic UPDATE statements in services/store.py.
Overflow above capacity is legal and shows up as RED / OVERCROWDING.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from crowdwatch.database import Base


class Area(Base):
    __tablename__ = "areas"
    __table_args__ = (
        UniqueConstraint("name", "event_id", name="uq_areas_name_event"),
        CheckConstraint("capacity >= 1", name="ck_areas_capacity"),
        CheckConstraint("threshold >= 1", name="ck_areas_threshold"),
        CheckConstraint("current_count >= 0", name="ck_areas_count"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    owner_email = Column(String(100), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), index=True)
    capacity = Column(Integer, nullable=False)
    threshold = Column(Integer, nullable=False)
    current_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)

    event = relationship("Event", back_populates="areas")
    scan_logs = relationship("ScanLog", back_populates="area", cascade="all, delete-orphan",
                             passive_deletes=True)
    alerts = relationship("Alert", back_populates="area", cascade="all, delete-orphan",
                          passive_deletes=True)

    def __repr__(self):
        return f"<Area {self.id} {self.name!r} count={self.current_count}/{self.capacity}>"
