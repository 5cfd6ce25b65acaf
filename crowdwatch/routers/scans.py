# crowdwatch/routers/scans.py
"""
Scan intake + scan log views. All anonymous — scanners carry no tenant identity.
POST /scans                  — run one ENTRY / EXIT scan
GET  /scans/recent           — latest scans, newest first
GET  /scans/today            — today's scans
GET  /scans/area/{id}        — scans for one area
GET  /scans/area/{id}/trend  — hourly entries / exits for today
"""

from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import case, extract, func
from sqlalchemy.orm import Session, joinedload

from crowdwatch.database import get_db
from crowdwatch.dependencies import get_scan_processor
from crowdwatch.errors import AreaNotFound
from crowdwatch.models.enums import ScanKind
from crowdwatch.models.scan_log import ScanLog
from crowdwatch.schemas.scan import HourlyTrendOut, ScanIn, ScanOut
from crowdwatch.services.area_service import get_area_public
from crowdwatch.services.scan_processor import ScanProcessor
from crowdwatch.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _log_out(log: ScanLog) -> ScanOut:
    # Listings report the area's current count, not the count at scan time
    return ScanOut(id=log.id, area_id=log.area_id, area_name=log.area.name, kind=log.kind,
                   timestamp=log.timestamp, new_count=log.area.current_count)


def _today_bounds():
    start = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


@router.post("/scans", response_model=ScanOut, summary="Register an ENTRY or EXIT scan")
async def process_scan(body: ScanIn, db: Session = Depends(get_db),
                       processor: ScanProcessor = Depends(get_scan_processor)):
    """Unknown areas are answered with 400, the way scanner clients expect."""
    try:
        result = await processor.process(db, body.area_id, body.kind)
    except AreaNotFound as e:
        logger.warning(f"[SCAN] rejected: {e.message}")
        return JSONResponse(status_code=400, content={"error": e.message})

    return ScanOut(id=result.scan_log_id, area_id=result.area.id, area_name=result.area.name,
                   kind=result.kind, timestamp=result.timestamp, new_count=result.new_count)


@router.get("/scans/recent", response_model=list[ScanOut])
def recent_scans(limit: int = 50, db: Session = Depends(get_db)):
    limit = max(1, min(limit, 500))
    logs = (db.query(ScanLog).options(joinedload(ScanLog.area))
            .order_by(ScanLog.timestamp.desc(), ScanLog.id.desc()).limit(limit).all())
    return [_log_out(log) for log in logs]


@router.get("/scans/today", response_model=list[ScanOut])
def today_scans(db: Session = Depends(get_db)):
    start, end = _today_bounds()
    logs = (db.query(ScanLog).options(joinedload(ScanLog.area))
            .filter(ScanLog.timestamp >= start, ScanLog.timestamp < end)
            .order_by(ScanLog.timestamp.desc(), ScanLog.id.desc()).all())
    return [_log_out(log) for log in logs]


@router.get("/scans/area/{area_id}", response_model=list[ScanOut])
def area_scans(area_id: int, limit: int = 200, db: Session = Depends(get_db)):
    get_area_public(db, area_id)
    logs = (db.query(ScanLog).options(joinedload(ScanLog.area))
            .filter(ScanLog.area_id == area_id)
            .order_by(ScanLog.timestamp.desc(), ScanLog.id.desc()).limit(limit).all())
    return [_log_out(log) for log in logs]


@router.get("/scans/area/{area_id}/trend", response_model=list[HourlyTrendOut],
            summary="Hourly entries / exits for today")
def hourly_trend(area_id: int, db: Session = Depends(get_db)):
    get_area_public(db, area_id)
    start, end = _today_bounds()
    hour = extract("hour", ScanLog.timestamp)
    rows = (
        db.query(
            hour.label("hour"),
            func.sum(case((ScanLog.kind == ScanKind.ENTRY.value, 1), else_=0)).label("entries"),
            func.sum(case((ScanLog.kind == ScanKind.EXIT.value, 1), else_=0)).label("exits"),
        )
        .filter(ScanLog.area_id == area_id, ScanLog.timestamp >= start, ScanLog.timestamp < end)
        .group_by(hour)
        .order_by(hour)
        .all()
    )
    return [
        HourlyTrendOut(hour=f"{int(r.hour)}:00", entries=int(r.entries or 0), exits=int(r.exits or 0),
                       net=int(r.entries or 0) - int(r.exits or 0))
        for r in rows
    ]
