# crowdwatch/services/tenant_service.py
"""
Tenant registry and startup seeding.
The caller-supplied email is trusted as-is; sign-in itself happens outside this service.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crowdwatch.models.area import Area
from crowdwatch.models.enums import AuthProvider
from crowdwatch.models.tenant import Tenant
from crowdwatch.utils.logger import get_logger

logger = get_logger(__name__)

SAMPLE_AREAS = [
    ("Main Entrance", 500, 400),
    ("Food Court", 200, 160),
    ("Conference Hall A", 100, 80),
    ("Conference Hall B", 100, 80),
    ("Exhibition Area", 300, 240),
    ("Parking Lot", 150, 120),
]


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_tenant(db: Session, email: str) -> Optional[Tenant]:
    return db.query(Tenant).filter(Tenant.email == normalize_email(email)).first()


def ensure_tenant(db: Session, email: str, display_name: Optional[str] = None,
                  provider: AuthProvider = AuthProvider.EXTERNAL) -> Tenant:
    """Return the tenant for `email`, registering it on first sight."""
    tenant = get_tenant(db, email)
    if tenant:
        return tenant
    tenant = Tenant(email=normalize_email(email), display_name=display_name or email.split("@")[0],
                    auth_provider=provider.value, created_at=datetime.utcnow())
    db.add(tenant)
    try:
        db.commit()
    except IntegrityError:
        # Registered concurrently by another request
        db.rollback()
        return get_tenant(db, email)
    logger.info(f"[TENANT] registered {tenant.email} ({tenant.auth_provider})")
    return tenant


def sign_in(db: Session, email: str, display_name: Optional[str] = None) -> Tenant:
    tenant = ensure_tenant(db, email, display_name)
    if display_name:
        tenant.display_name = display_name
    tenant.last_login_at = datetime.utcnow()
    db.commit()
    return tenant


def seed_defaults(db: Session, email: Optional[str], display_name: str, sample_areas: bool = False):
    """Create the default LOCAL tenant and, optionally, a set of sample areas for it."""
    if not email:
        return
    tenant = ensure_tenant(db, email, display_name, provider=AuthProvider.LOCAL)
    logger.info(f"✅ Default tenant ready: {tenant.email}")

    if not sample_areas:
        return
    if db.query(Area.id).filter(Area.owner_email == tenant.email).first():
        return
    now = datetime.utcnow()
    for name, capacity, threshold in SAMPLE_AREAS:
        db.add(Area(name=name, owner_email=tenant.email, capacity=capacity, threshold=threshold,
                    current_count=0, created_at=now, updated_at=now))
    db.commit()
    logger.info(f"✅ {len(SAMPLE_AREAS)} sample areas created for {tenant.email}")
