# crowdwatch/models/scan_log.py
"""
Scan log table — append-only record of every ENTRY / EXIT scan.
Rows are removed only together with their Area.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from crowdwatch.database import Base


class ScanLog(Base):
    __tablename__ = "scan_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    area_id = Column(Integer, ForeignKey("areas.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(10), nullable=False)      # ENTRY | EXIT
    timestamp = Column(DateTime, nullable=False, index=True)

    area = relationship("Area", back_populates="scan_logs")

    def __repr__(self):
        return f"<ScanLog {self.id} area={self.area_id} kind={self.kind}>"
