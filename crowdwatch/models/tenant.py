# crowdwatch/models/tenant.py
"""
Tenants table — one row per owner namespace.
The email is the tenant identity used by every owner-scoped table.
"""

from sqlalchemy import Column, Integer, String, DateTime
from crowdwatch.database import Base


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(100))
    auth_provider = Column(String(20), nullable=False, default="EXTERNAL")   # LOCAL | EXTERNAL
    created_at = Column(DateTime, nullable=False)
    last_login_at = Column(DateTime)

    def __repr__(self):
        return f"<Tenant {self.email} provider={self.auth_provider}>"
