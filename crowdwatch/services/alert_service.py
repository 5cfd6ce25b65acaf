# crowdwatch/services/alert_service.py
"""
Alert lifecycle.
Scan path: apply_decision() opens / auto-resolves alerts decided by alert_rules.evaluate().
REST path: owner-scoped listing and the UNREAD → READ → RESOLVED transitions.
Broadcasting of newly opened alerts is left to the scan processor (after commit).
"""

from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from crowdwatch.errors import NotFound, ValidationError
from crowdwatch.models.alert import Alert
from crowdwatch.models.enums import AlertKind, AlertStatus
from crowdwatch.services import store
from crowdwatch.services.alert_rules import AlertDecision, build_message
from crowdwatch.services.status import AreaSnapshot
from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)

RANGES = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def open_alert(db: Session, snapshot: AreaSnapshot, kind: AlertKind, now: datetime,
               inflow_count: int = 10, inflow_seconds: float = 30) -> Optional[Alert]:
    """Create an alert unless one of this kind is already open for the area. Returns the new alert or None."""
    kind = AlertKind(kind)
    existing = store.find_open_alert(db, snapshot.id, kind)
    if existing is not None:
        logger.debug(f"[ALERT] {kind.value} already open for area {snapshot.id} (alert {existing.id}) — skipped")
        return None

    alert = Alert(
        area_id=snapshot.id,
        area_name=snapshot.name,
        owner_email=snapshot.owner_email,
        kind=kind.value,
        status=AlertStatus.UNREAD.value,
        message=build_message(kind, snapshot, inflow_count, inflow_seconds),
        current_count=snapshot.current_count,
        threshold=snapshot.threshold,
        capacity=snapshot.capacity,
        occupancy_pct=round(snapshot.occupancy_pct, 2),
        created_at=now,
    )
    store.upsert_alert(db, alert)
    logger.warning(f"[ALERT][{alert.kind}] {alert.message}")
    return alert


def resolve_open_alert(db: Session, area_id: int, kind: AlertKind, now: datetime) -> Optional[Alert]:
    alert = store.find_open_alert(db, area_id, kind)
    if alert is None:
        return None
    store.mark_alert(db, alert, AlertStatus.RESOLVED, resolved_at=now)
    logger.info(f"[ALERT][{alert.kind}] auto-resolved alert {alert.id} for area {area_id}")
    return alert


def apply_decision(db: Session, snapshot: AreaSnapshot, decision: AlertDecision, now: datetime,
                   inflow_count: int = 10, inflow_seconds: float = 30) -> List[Alert]:
    """Apply a rule decision inside the caller's transaction. Returns only the alerts opened now."""
    for kind in decision.resolve:
        resolve_open_alert(db, snapshot.id, kind, now)

    opened = []
    for kind in decision.open:
        alert = open_alert(db, snapshot, kind, now, inflow_count, inflow_seconds)
        if alert is not None:
            opened.append(alert)
    return opened


# ── REST-side queries and transitions ────────────────────────────────────────

def _parse_enum(enum_cls, value: Optional[str], label: str):
    if value is None or value == "" or value.lower() == "all":
        return None
    try:
        return enum_cls(value.upper())
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value}")


def range_start(range_name: str, now: datetime) -> datetime:
    range_name = range_name.lower()
    if range_name == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if range_name not in RANGES:
        raise ValidationError(f"Invalid range: {range_name}. Use today, 24h, 7d or 30d")
    return now - RANGES[range_name]


def list_alerts(db: Session, owner_email: str, status: Optional[str] = None, kind: Optional[str] = None,
                area_id: Optional[int] = None, date_range: Optional[str] = None, limit: int = 100,
                now: Optional[datetime] = None) -> List[Alert]:
    """Owner's alerts, newest first. All given filters are combined."""
    limit = max(1, min(limit, 500))
    status_filter = _parse_enum(AlertStatus, status, "status")
    kind_filter = _parse_enum(AlertKind, kind, "kind")

    q = db.query(Alert).filter(Alert.owner_email == owner_email)
    if status_filter:
        q = q.filter(Alert.status == status_filter.value)
    if kind_filter:
        q = q.filter(Alert.kind == kind_filter.value)
    if area_id is not None:
        q = q.filter(Alert.area_id == area_id)
    if date_range:
        q = q.filter(Alert.created_at >= range_start(date_range, now or datetime.utcnow()))
    return q.order_by(Alert.created_at.desc(), Alert.id.desc()).limit(limit).all()


def active_alerts(db: Session, owner_email: str) -> List[Alert]:
    return (
        db.query(Alert)
        .filter(Alert.owner_email == owner_email, Alert.status != AlertStatus.RESOLVED.value)
        .order_by(Alert.created_at.desc(), Alert.id.desc())
        .all()
    )


def unread_count(db: Session, owner_email: str) -> int:
    return db.query(func.count(Alert.id)).filter(
        Alert.owner_email == owner_email,
        Alert.status == AlertStatus.UNREAD.value,
    ).scalar() or 0


def _owned_alert(db: Session, alert_id: int, owner_email: str) -> Alert:
    alert = db.query(Alert).filter(Alert.id == alert_id, Alert.owner_email == owner_email).first()
    if not alert:
        raise NotFound(f"Alert not found with id: {alert_id}")
    return alert


def mark_read(db: Session, alert_id: int, owner_email: str) -> Alert:
    """UNREAD → READ. READ and RESOLVED alerts are returned unchanged."""
    alert = _owned_alert(db, alert_id, owner_email)
    if alert.status == AlertStatus.UNREAD.value:
        store.mark_alert(db, alert, AlertStatus.READ)
        db.commit()
    return alert


def resolve(db: Session, alert_id: int, owner_email: str) -> Alert:
    alert = _owned_alert(db, alert_id, owner_email)
    if alert.status != AlertStatus.RESOLVED.value:
        store.mark_alert(db, alert, AlertStatus.RESOLVED, resolved_at=datetime.utcnow())
        db.commit()
        logger.info(f"[ALERT][{alert.kind}] alert {alert.id} resolved by {owner_email}")
    return alert


def mark_all_read(db: Session, owner_email: str) -> int:
    updated = (
        db.query(Alert)
        .filter(Alert.owner_email == owner_email, Alert.status == AlertStatus.UNREAD.value)
        .update({Alert.status: AlertStatus.READ.value}, synchronize_session=False)
    )
    db.commit()
    return updated
