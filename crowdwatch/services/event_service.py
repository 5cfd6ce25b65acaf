# crowdwatch/services/event_service.py
"""
Event management — owner-scoped CRUD with nested Areas, and status filtering.
Status (UPCOMING / LIVE / COMPLETED) is derived at read time from the clock.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from crowdwatch.config import settings
from crowdwatch.errors import Conflict, NotFound, ValidationError
from crowdwatch.models.area import Area
from crowdwatch.models.enums import EventStatus
from crowdwatch.models.event import Event
from crowdwatch.schemas.area import AreaOut
from crowdwatch.schemas.event import EventIn, EventOut
from crowdwatch.services.area_service import validate_limits
from crowdwatch.services.status import event_status, occupancy_pct
from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)


def default_duration() -> timedelta:
    return timedelta(hours=settings.DEFAULT_EVENT_DURATION_HOURS)


def status_of(event: Event, now: Optional[datetime] = None) -> EventStatus:
    return event_status(now or datetime.utcnow(), event.start_at, event.end_at, default_duration())


def to_out(event: Event, now: Optional[datetime] = None) -> EventOut:
    capacity = event.total_capacity
    current = event.total_current_count
    return EventOut(
        id=event.id,
        name=event.name,
        description=event.description,
        venue=event.venue,
        start_at=event.start_at,
        end_at=event.end_at,
        status=status_of(event, now),
        total_areas=len(event.areas),
        total_capacity=capacity,
        total_current_count=current,
        occupancy_pct=round(occupancy_pct(current, capacity), 1),
        areas=[AreaOut.from_area(a) for a in event.areas],
        created_at=event.created_at,
        updated_at=event.updated_at,
    )


def list_events(db: Session, owner_email: str) -> List[Event]:
    return (
        db.query(Event)
        .options(selectinload(Event.areas))
        .filter(Event.owner_email == owner_email)
        .order_by(Event.start_at.desc())
        .all()
    )


def events_with_status(db: Session, owner_email: str, status: EventStatus,
                       now: Optional[datetime] = None) -> List[Event]:
    now = now or datetime.utcnow()
    events = [e for e in list_events(db, owner_email) if status_of(e, now) == status]
    if status == EventStatus.UPCOMING:
        events.sort(key=lambda e: e.start_at)   # soonest first
    return events


def grouped_events(db: Session, owner_email: str, now: Optional[datetime] = None) -> Dict[str, List[Event]]:
    now = now or datetime.utcnow()
    grouped = {"live": [], "upcoming": [], "completed": []}
    for event in list_events(db, owner_email):
        grouped[status_of(event, now).value.lower()].append(event)
    grouped["upcoming"].sort(key=lambda e: e.start_at)
    return grouped


def get_event(db: Session, event_id: int, owner_email: str) -> Event:
    event = db.query(Event).filter(Event.id == event_id, Event.owner_email == owner_email).first()
    if not event:
        raise NotFound(f"Event not found with id: {event_id}")
    return event


def get_event_public(db: Session, event_id: int) -> Event:
    event = db.get(Event, event_id)
    if not event:
        raise NotFound(f"Event not found with id: {event_id}")
    return event


def _validate(db: Session, body: EventIn, owner_email: str, exclude_id: Optional[int] = None):
    if not body.name.strip():
        raise ValidationError("Event name is required")
    if body.end_at is not None and body.end_at < body.start_at:
        raise ValidationError("End date/time cannot be before start date/time")

    q = db.query(Event.id).filter(Event.name == body.name, Event.owner_email == owner_email)
    if exclude_id is not None:
        q = q.filter(Event.id != exclude_id)
    if q.first():
        raise Conflict(f"Event with name '{body.name}' already exists")

    seen = set()
    for area in body.areas:
        validate_limits(area.name, area.capacity, area.threshold)
        if area.name in seen:
            raise Conflict(f"Area with name '{area.name}' appears more than once")
        seen.add(area.name)


def _build_areas(event: Event, body: EventIn, owner_email: str, now: datetime):
    for area_in in body.areas:
        event.areas.append(Area(
            name=area_in.name,
            owner_email=owner_email,
            capacity=area_in.capacity,
            threshold=area_in.threshold,
            current_count=0,
            created_at=now,
            updated_at=now,
        ))


def _commit(db: Session, name: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Event with name '{name}' already exists")


def create_event(db: Session, body: EventIn, owner_email: str) -> Event:
    _validate(db, body, owner_email)
    now = datetime.utcnow()
    event = Event(name=body.name, owner_email=owner_email, description=body.description,
                  venue=body.venue, start_at=body.start_at, end_at=body.end_at,
                  created_at=now, updated_at=now)
    _build_areas(event, body, owner_email, now)
    db.add(event)
    _commit(db, body.name)
    db.refresh(event)
    logger.info(f"[EVENT] created {event.name!r} (id={event.id}) with {len(event.areas)} areas for {owner_email}")
    return event


def update_event(db: Session, event_id: int, body: EventIn, owner_email: str) -> Event:
    """
    Update event fields and replace its Areas with the ones in the request.
    Replaced Areas start again at count 0 and lose their alerts and scan history.
    """
    event = get_event(db, event_id, owner_email)
    _validate(db, body, owner_email, exclude_id=event.id)

    if event.areas and status_of(event) == EventStatus.LIVE:
        logger.warning(f"[EVENT] updating LIVE event {event.id} ({event.name!r}): "
                       f"{len(event.areas)} areas and their live counts will be recreated")

    now = datetime.utcnow()
    event.name = body.name
    event.description = body.description
    event.venue = body.venue
    event.start_at = body.start_at
    event.end_at = body.end_at
    event.updated_at = now

    event.areas.clear()
    db.flush()   # Delete old areas before inserting same-named replacements
    _build_areas(event, body, owner_email, now)
    _commit(db, body.name)
    db.refresh(event)
    return event


def delete_event(db: Session, event_id: int, owner_email: str):
    """Deletes the event, its Areas and their alerts and scan logs."""
    event = get_event(db, event_id, owner_email)
    db.delete(event)
    db.commit()
    logger.info(f"[EVENT] deleted event {event_id} for {owner_email}")


def area_ids(db: Session, event_id: int, owner_email: str) -> List[int]:
    return [row[0] for row in db.query(Area.id).filter(Area.event_id == event_id,
                                                       Area.owner_email == owner_email)]
