# crowdwatch/routers/alerts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from crowdwatch.database import get_db
from crowdwatch.dependencies import get_owner_email
from crowdwatch.schemas.alert import AlertOut, MarkAllReadOut, UnreadCountOut
from crowdwatch.services import alert_service
from typing import Optional

router = APIRouter()


@router.get("/alerts", response_model=list[AlertOut], summary="Tenant alerts — filterable")
def get_all_alerts(
    status: Optional[str] = None,
    kind: Optional[str] = None,
    area_id: Optional[int] = Query(default=None, alias="areaId"),
    date_range: Optional[str] = Query(default=None, alias="range"),
    limit: int = 100,
    owner: str = Depends(get_owner_email),
    db: Session = Depends(get_db),
):
    """Filters combine. range is one of today, 24h, 7d, 30d. limit is clamped to 1..500."""
    return alert_service.list_alerts(db, owner, status=status, kind=kind, area_id=area_id,
                                     date_range=date_range, limit=limit)


@router.get("/alerts/active", response_model=list[AlertOut], summary="Alerts not yet resolved")
def get_active_alerts(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return alert_service.active_alerts(db, owner)


@router.get("/alerts/unread-count", response_model=UnreadCountOut)
def get_unread_count(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return UnreadCountOut(count=alert_service.unread_count(db, owner))


@router.put("/alerts/mark-all-read", response_model=MarkAllReadOut)
def mark_all_read(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    updated = alert_service.mark_all_read(db, owner)
    return MarkAllReadOut(message="All alerts marked as read", updated=updated)


@router.put("/alerts/{alert_id}/read", response_model=AlertOut)
def mark_alert_read(alert_id: int, owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return alert_service.mark_read(db, alert_id, owner)


@router.put("/alerts/{alert_id}/resolve", response_model=AlertOut)
def resolve_alert(alert_id: int, owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return alert_service.resolve(db, alert_id, owner)
