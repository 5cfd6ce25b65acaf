# crowdwatch/models/event.py
"""
Events table — a time-bounded container of Areas.
Status (UPCOMING / LIVE / COMPLETED) is derived from the clock, never stored.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from crowdwatch.database import Base


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (UniqueConstraint("name", "owner_email", name="uq_events_name_owner"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    owner_email = Column(String(100), nullable=False, index=True)
    start_at = Column(DateTime, nullable=False, index=True)
    end_at = Column(DateTime)
    venue = Column(String(300))
    description = Column(Text)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)

    areas = relationship("Area", back_populates="event", cascade="all, delete-orphan",
                         order_by="Area.name", passive_deletes=True)

    @property
    def total_capacity(self) -> int:
        return sum(a.capacity for a in self.areas)

    @property
    def total_current_count(self) -> int:
        return sum(a.current_count for a in self.areas)

    def __repr__(self):
        return f"<Event {self.id} name={self.name!r} owner={self.owner_email}>"
