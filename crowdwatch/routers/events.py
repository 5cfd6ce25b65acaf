# crowdwatch/routers/events.py
"""
Event management — owner-scoped CRUD with nested areas.
GET /events/live | /upcoming | /completed | /grouped filter by the clock-derived status.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crowdwatch.database import get_db
from crowdwatch.dependencies import get_inflow_window, get_owner_email
from crowdwatch.models.enums import EventStatus
from crowdwatch.schemas.event import EventIn, EventOut, GroupedEventsOut
from crowdwatch.services import event_service
from crowdwatch.services.rapid_inflow import RapidInflowWindow

router = APIRouter()


@router.get("/events", response_model=list[EventOut])
def get_all_events(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return [event_service.to_out(e) for e in event_service.list_events(db, owner)]


@router.get("/events/grouped", response_model=GroupedEventsOut)
def get_events_grouped(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    grouped = event_service.grouped_events(db, owner)
    return GroupedEventsOut(**{k: [event_service.to_out(e) for e in v] for k, v in grouped.items()})


@router.get("/events/live", response_model=list[EventOut])
def get_live_events(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return [event_service.to_out(e) for e in event_service.events_with_status(db, owner, EventStatus.LIVE)]


@router.get("/events/upcoming", response_model=list[EventOut])
def get_upcoming_events(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return [event_service.to_out(e) for e in event_service.events_with_status(db, owner, EventStatus.UPCOMING)]


@router.get("/events/completed", response_model=list[EventOut])
def get_completed_events(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return [event_service.to_out(e) for e in event_service.events_with_status(db, owner, EventStatus.COMPLETED)]


@router.get("/events/public/{event_id}", response_model=EventOut, summary="Event read for scanner pages")
def get_event_public(event_id: int, db: Session = Depends(get_db)):
    return event_service.to_out(event_service.get_event_public(db, event_id))


@router.get("/events/{event_id}", response_model=EventOut)
def get_event(event_id: int, owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return event_service.to_out(event_service.get_event(db, event_id, owner))


@router.post("/events", response_model=EventOut)
def create_event(body: EventIn, owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return event_service.to_out(event_service.create_event(db, body, owner))


@router.put("/events/{event_id}", response_model=EventOut, summary="Update event (recreates its areas)")
def update_event(event_id: int, body: EventIn, owner: str = Depends(get_owner_email),
                 db: Session = Depends(get_db), inflow: RapidInflowWindow = Depends(get_inflow_window)):
    """Areas are replaced by the ones in the body and start again at count 0."""
    old_area_ids = event_service.area_ids(db, event_id, owner)
    event = event_service.update_event(db, event_id, body, owner)
    for area_id in old_area_ids:
        inflow.forget(area_id)
    return event_service.to_out(event)


@router.delete("/events/{event_id}")
def delete_event(event_id: int, owner: str = Depends(get_owner_email), db: Session = Depends(get_db),
                 inflow: RapidInflowWindow = Depends(get_inflow_window)):
    old_area_ids = event_service.area_ids(db, event_id, owner)
    event_service.delete_event(db, event_id, owner)
    for area_id in old_area_ids:
        inflow.forget(area_id)
    return {"success": True, "message": "Event deleted successfully"}
