"""Audit API router."""

from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from iis_manager.core.config import settings
from iis_manager.db.session import get_db
from iis_manager.schemas.schemas import AuditLogOut, ErrorResponse
from iis_manager.services.query_service import query_service

router = APIRouter(tags=["audit"])


@router.get(
    "/audit",
    response_model=List[AuditLogOut],
    responses={500: {"model": ErrorResponse}},
    summary="List executed restarts and recycles",
)
def get_audit_logs(
    action: Optional[str] = Query(None, description="Partial match on action, e.g. RestartSite"),
    target: Optional[str] = Query(None, description="Partial match on site or pool name"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom", description="Inclusive lower bound (UTC)"),
    date_to: Optional[datetime] = Query(None, alias="dateTo", description="Inclusive upper bound (UTC)"),
    limit: int = Query(settings.AUDIT_DEFAULT_LIMIT, ge=1, description="Maximum rows returned"),
    db: Session = Depends(get_db),
):
    """Audit trail, newest first."""
    return query_service.get_audit_logs(db, action, target, date_from, date_to, limit)
