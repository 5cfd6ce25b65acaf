# crowdwatch/routers/tenants.py
"""Tenant record for the current X-User-Email. Sign-in itself happens upstream."""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from crowdwatch.database import get_db
from crowdwatch.dependencies import get_owner_email
from crowdwatch.schemas.tenant import SignInIn, TenantOut
from crowdwatch.services import tenant_service

router = APIRouter()


@router.get("/tenants/me", response_model=TenantOut)
def get_current_tenant(owner: str = Depends(get_owner_email), db: Session = Depends(get_db)):
    return tenant_service.get_tenant(db, owner)


@router.post("/tenants/me/sign-in", response_model=TenantOut, summary="Record a sign-in")
def sign_in(body: Optional[SignInIn] = None, owner: str = Depends(get_owner_email),
            db: Session = Depends(get_db)):
    return tenant_service.sign_in(db, owner, body.display_name if body else None)
