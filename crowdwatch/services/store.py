# crowdwatch/services/store.py
"""
Store — transactional access to Areas, ScanLogs and Alerts for the scan path.

Every function works inside the caller's session; the caller owns the transaction and commits.
Counter changes are single UPDATE statements so parallel scans on one Area never lose updates.
Driver failures are translated: statement / lock timeouts → StoreTimeout, anything else → StoreError.
"""

import functools
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, case
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.orm import Session

from crowdwatch.errors import AreaNotFound, StoreError, StoreTimeout
from crowdwatch.models.alert import Alert
from crowdwatch.models.area import Area
from crowdwatch.models.enums import AlertKind, AlertStatus, ScanKind
from crowdwatch.models.scan_log import ScanLog
from crowdwatch.services.status import AreaSnapshot
from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)

_TIMEOUT_MARKERS = ("statement timeout", "lock timeout", "canceling statement", "database is locked")


def _is_timeout(exc: OperationalError) -> bool:
    text = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in text for marker in _TIMEOUT_MARKERS)


def store_operation(func):
    """Translate SQLAlchemy failures into StoreTimeout / StoreError."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except OperationalError as e:
            if _is_timeout(e):
                logger.error(f"[STORE] {func.__name__} timed out: {e.orig}")
                raise StoreTimeout(f"Store operation '{func.__name__}' timed out") from e
            logger.error(f"[STORE] {func.__name__} failed: {e}")
            raise StoreError(f"Store operation '{func.__name__}' failed") from e
        except SQLAlchemyError as e:
            logger.error(f"[STORE] {func.__name__} failed: {e}")
            raise StoreError(f"Store operation '{func.__name__}' failed") from e
    return wrapper


# ── Areas ────────────────────────────────────────────────────────────────────

@store_operation
def get_area_by_id(db: Session, area_id: int, owner_email: str) -> Optional[Area]:
    """Owner-scoped read. An Area owned by someone else is reported as missing."""
    return db.execute(
        select(Area).where(Area.id == area_id, Area.owner_email == owner_email)
    ).scalar_one_or_none()


@store_operation
def get_area_by_id_public(db: Session, area_id: int) -> Optional[Area]:
    """Unscoped read for the anonymous scan endpoints."""
    return db.get(Area, area_id)


@store_operation
def lock_area(db: Session, area_id: int) -> AreaSnapshot:
    """Re-read an Area with a row lock held until the transaction ends."""
    area = db.execute(
        select(Area).where(Area.id == area_id).with_for_update().execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if area is None:
        raise AreaNotFound(area_id)
    return AreaSnapshot.from_model(area)


def _updated_count(db: Session, area_id: int, result) -> int:
    # No row matched: the Area was deleted after the caller looked it up
    if result.rowcount == 0:
        raise AreaNotFound(area_id)
    return db.execute(select(Area.current_count).where(Area.id == area_id)).scalar_one()


@store_operation
def increment_count(db: Session, area_id: int) -> int:
    result = db.execute(
        update(Area)
        .where(Area.id == area_id)
        .values(current_count=Area.current_count + 1, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    return _updated_count(db, area_id, result)


@store_operation
def decrement_count(db: Session, area_id: int) -> int:
    """Decrement, clamped at zero."""
    result = db.execute(
        update(Area)
        .where(Area.id == area_id)
        .values(
            current_count=case((Area.current_count > 0, Area.current_count - 1), else_=0),
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return _updated_count(db, area_id, result)


@store_operation
def reset_count(db: Session, area_id: int) -> int:
    result = db.execute(
        update(Area)
        .where(Area.id == area_id)
        .values(current_count=0, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise AreaNotFound(area_id)
    return 0


# ── Scan log ─────────────────────────────────────────────────────────────────

@store_operation
def append_scan_log(db: Session, area_id: int, kind: ScanKind, now: datetime) -> int:
    log = ScanLog(area_id=area_id, kind=ScanKind(kind).value, timestamp=now)
    db.add(log)
    db.flush()
    return log.id


# ── Alerts ───────────────────────────────────────────────────────────────────

@store_operation
def find_open_alert(db: Session, area_id: int, kind: AlertKind) -> Optional[Alert]:
    return db.execute(
        select(Alert)
        .where(
            Alert.area_id == area_id,
            Alert.kind == AlertKind(kind).value,
            Alert.status != AlertStatus.RESOLVED.value,
        )
        .order_by(Alert.created_at.desc())
        .limit(1)
    ).scalar_one_or_none()


@store_operation
def upsert_alert(db: Session, alert: Alert) -> Alert:
    db.add(alert)
    db.flush()
    return alert


@store_operation
def mark_alert(db: Session, alert: Alert, status: AlertStatus,
               resolved_at: Optional[datetime] = None) -> Alert:
    """Move an alert to `status`. resolved_at is kept set exactly when the alert is RESOLVED."""
    status = AlertStatus(status)
    alert.status = status.value
    if status == AlertStatus.RESOLVED:
        alert.resolved_at = resolved_at or datetime.utcnow()
    else:
        alert.resolved_at = None
    db.flush()
    return alert
