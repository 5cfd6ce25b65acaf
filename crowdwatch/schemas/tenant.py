from datetime import datetime
from typing import Optional

from pydantic import Field

from crowdwatch.schemas.base import CamelModel


class TenantOut(CamelModel):
    email: str
    display_name: Optional[str]
    auth_provider: str
    created_at: datetime
    last_login_at: Optional[datetime]


class SignInIn(CamelModel):
    display_name: Optional[str] = Field(default=None, max_length=100)
