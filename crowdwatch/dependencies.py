# crowdwatch/dependencies.py
"""
Process-wide singletons and FastAPI dependencies.
The broadcaster, rapid-inflow windows and scan processor are built once here;
tests swap them through app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from crowdwatch.config import settings
from crowdwatch.database import get_db
from crowdwatch.errors import Unauthorized
from crowdwatch.services.broadcaster import Broadcaster
from crowdwatch.services.rapid_inflow import RapidInflowWindow
from crowdwatch.services.scan_processor import ScanProcessor
from crowdwatch.services.tenant_service import ensure_tenant, normalize_email

broadcaster = Broadcaster(queue_size=settings.WS_SUBSCRIBER_QUEUE_SIZE)
inflow_window = RapidInflowWindow(count=settings.RAPID_INFLOW_COUNT, seconds=settings.RAPID_INFLOW_SECONDS)
scan_processor = ScanProcessor(broadcaster, inflow_window)


def get_broadcaster() -> Broadcaster:
    return broadcaster


def get_inflow_window() -> RapidInflowWindow:
    return inflow_window


def get_scan_processor() -> ScanProcessor:
    return scan_processor


def get_owner_email(
    x_user_email: Optional[str] = Header(default=None, alias="X-User-Email"),
    db: Session = Depends(get_db),
) -> str:
    """Tenant identity for owner-scoped endpoints. Registers the tenant on first sight."""
    if not x_user_email or not x_user_email.strip():
        raise Unauthorized("Missing X-User-Email header")
    email = normalize_email(x_user_email)
    ensure_tenant(db, email)
    return email
