# crowdwatch/routers/areas.py
"""Area management — owner-scoped CRUD, count reset, attention list, public read for scanners."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from crowdwatch.database import get_db
from crowdwatch.dependencies import get_broadcaster, get_inflow_window, get_owner_email
from crowdwatch.schemas.area import AreaIn, AreaOut
from crowdwatch.services import area_service
from crowdwatch.services.broadcaster import Broadcaster
from crowdwatch.services.rapid_inflow import RapidInflowWindow
from crowdwatch.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/areas", response_model=list[AreaOut])
def get_all_areas(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    """Current count and traffic-light status for all of the tenant's areas."""
    return [AreaOut.from_area(a) for a in area_service.list_areas(db, owner)]


@router.get("/areas/attention", response_model=list[AreaOut], summary="Areas at or above threshold")
def get_areas_needing_attention(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return [AreaOut.from_area(a) for a in area_service.areas_needing_attention(db, owner)]


@router.get("/areas/public/{area_id}", response_model=AreaOut, summary="Area read for scanner pages")
def get_area_public(area_id: int, db: Session = Depends(get_db)):
    return AreaOut.from_area(area_service.get_area_public(db, area_id))


@router.get("/areas/{area_id}", response_model=AreaOut)
def get_area(area_id: int, owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return AreaOut.from_area(area_service.get_area(db, area_id, owner))


@router.post("/areas", response_model=AreaOut, status_code=status.HTTP_201_CREATED)
def create_area(body: AreaIn, owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return AreaOut.from_area(area_service.create_area(db, body, owner))


@router.put("/areas/{area_id}", response_model=AreaOut)
def update_area(area_id: int, body: AreaIn, owner: str = Depends(get_owner_email),
                db: Session = Depends(get_db)):
    return AreaOut.from_area(area_service.update_area(db, area_id, body, owner))


@router.delete("/areas/{area_id}")
def delete_area(area_id: int, owner: str = Depends(get_owner_email), db: Session = Depends(get_db),
                inflow: RapidInflowWindow = Depends(get_inflow_window)):
    area_service.delete_area(db, area_id, owner)
    inflow.forget(area_id)
    return {"message": "Area deleted successfully"}


@router.post("/areas/{area_id}/reset", response_model=AreaOut, summary="Reset area count to zero")
async def reset_area_count(area_id: int, owner: str = Depends(get_owner_email),
                           db: Session = Depends(get_db),
                           broadcaster: Broadcaster = Depends(get_broadcaster),
                           inflow: RapidInflowWindow = Depends(get_inflow_window)):
    """Manually reset the live count. Use after miscounts or between sessions."""
    area = AreaOut.from_area(area_service.reset_area(db, area_id, owner))
    inflow.forget(area_id)
    try:
        broadcaster.publish_area_update(area.model_dump(by_alias=True, mode="json"))
    except Exception as e:
        logger.error(f"[AREA] broadcast after reset failed for area {area_id}: {e}", exc_info=True)
    return area
