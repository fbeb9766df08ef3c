from fastapi import Depends, Header
from sqlalchemy.orm import Session

from deals_pipeline.db import get_db
from deals_pipeline.errors import MissingTenantContext
from deals_pipeline.scheduler import BookingScheduler


def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str:
    """Tenant resolved upstream and forwarded as X-Tenant-Id; fail closed without it."""
    if not x_tenant_id or not x_tenant_id.strip():
        raise MissingTenantContext()
    return x_tenant_id.strip()


def get_scheduler(db: Session = Depends(get_db)) -> BookingScheduler:
    return BookingScheduler(db)
