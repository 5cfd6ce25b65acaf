# crowdwatch/services/area_service.py
"""
Area management — owner-scoped CRUD, manual count reset, attention list.
Counter changes from scans go through scan_processor, never through here.
"""

from datetime import datetime
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crowdwatch.errors import Conflict, NotFound, ValidationError
from crowdwatch.models.area import Area
from crowdwatch.models.event import Event
from crowdwatch.schemas.area import AreaIn
from crowdwatch.services import store
from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)


def validate_limits(name: str, capacity: int, threshold: int):
    if not name or not name.strip():
        raise ValidationError("Area name is required")
    if capacity < 1 or threshold < 1:
        raise ValidationError("Capacity and threshold must be at least 1")
    if threshold > capacity:
        raise ValidationError(f"Threshold cannot exceed capacity for area: {name}")


def list_areas(db: Session, owner_email: str) -> List[Area]:
    return db.query(Area).filter(Area.owner_email == owner_email).order_by(Area.name).all()


def areas_needing_attention(db: Session, owner_email: str) -> List[Area]:
    """Areas at or above their warning threshold (YELLOW or RED)."""
    return (
        db.query(Area)
        .filter(Area.owner_email == owner_email, Area.current_count >= Area.threshold)
        .order_by(Area.name)
        .all()
    )


def get_area(db: Session, area_id: int, owner_email: str) -> Area:
    area = store.get_area_by_id(db, area_id, owner_email)
    if not area:
        raise NotFound(f"Area not found with id: {area_id}")
    return area


def get_area_public(db: Session, area_id: int) -> Area:
    area = store.get_area_by_id_public(db, area_id)
    if not area:
        raise NotFound(f"Area not found with id: {area_id}")
    return area


def _check_event(db: Session, event_id, owner_email: str):
    if event_id is None:
        return
    exists = db.query(Event.id).filter(Event.id == event_id, Event.owner_email == owner_email).first()
    if not exists:
        raise NotFound(f"Event not found with id: {event_id}")


def _check_name_free(db: Session, name: str, owner_email: str, event_id, exclude_id=None):
    # (name, event_id) is unique; standalone areas (no event) are unique per owner
    q = db.query(Area.id).filter(Area.name == name)
    if event_id is None:
        q = q.filter(Area.event_id.is_(None), Area.owner_email == owner_email)
    else:
        q = q.filter(Area.event_id == event_id)
    if exclude_id is not None:
        q = q.filter(Area.id != exclude_id)
    if q.first():
        raise Conflict(f"Area with name '{name}' already exists")


def _commit(db: Session, name: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Area with name '{name}' already exists")


def create_area(db: Session, body: AreaIn, owner_email: str) -> Area:
    validate_limits(body.name, body.capacity, body.threshold)
    _check_event(db, body.event_id, owner_email)
    _check_name_free(db, body.name, owner_email, body.event_id)

    now = datetime.utcnow()
    area = Area(name=body.name, owner_email=owner_email, event_id=body.event_id,
                capacity=body.capacity, threshold=body.threshold, current_count=0,
                created_at=now, updated_at=now)
    db.add(area)
    _commit(db, body.name)
    db.refresh(area)
    logger.info(f"[AREA] created {area.name!r} (id={area.id}) for {owner_email}")
    return area


def update_area(db: Session, area_id: int, body: AreaIn, owner_email: str) -> Area:
    """Update name / limits. The live count is preserved; a None event_id keeps the current event."""
    area = get_area(db, area_id, owner_email)
    validate_limits(body.name, body.capacity, body.threshold)
    event_id = body.event_id if body.event_id is not None else area.event_id
    _check_event(db, event_id, owner_email)
    _check_name_free(db, body.name, owner_email, event_id, exclude_id=area.id)

    area.name = body.name
    area.capacity = body.capacity
    area.threshold = body.threshold
    area.event_id = event_id
    area.updated_at = datetime.utcnow()
    _commit(db, body.name)
    db.refresh(area)
    return area


def delete_area(db: Session, area_id: int, owner_email: str):
    """Deletes the Area together with its alerts and scan logs."""
    area = get_area(db, area_id, owner_email)
    db.delete(area)
    db.commit()
    logger.info(f"[AREA] deleted area {area_id} for {owner_email}")


def reset_area(db: Session, area_id: int, owner_email: str) -> Area:
    area = get_area(db, area_id, owner_email)
    store.reset_count(db, area.id)
    db.commit()
    db.refresh(area)
    logger.info(f"[AREA] count reset for {area.name!r} (id={area.id})")
    return area
