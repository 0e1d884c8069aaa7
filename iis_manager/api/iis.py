"""IIS API router: topology, app pools, restart and recycle.

Handlers are plain ``def`` because every gateway call blocks (appcmd runs as
a subprocess); FastAPI runs them in its threadpool.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from iis_manager.db.session import get_db
from iis_manager.gateways import get_gateway
from iis_manager.gateways.base import ManagementGateway
from iis_manager.schemas.schemas import AppPoolOut, ErrorResponse, MessageResponse, SiteOut
from iis_manager.services.audit_service import client_ip_of
from iis_manager.services.command_service import command_service
from iis_manager.services.query_service import query_service

router = APIRouter(tags=["iis"])

_COMMAND_ERRORS = {
    404: {"model": ErrorResponse, "description": "Site or pool not found"},
    409: {"model": ErrorResponse, "description": "Same command already running on this target"},
    500: {"model": ErrorResponse, "description": "Command or audit write failed"},
}


@router.get(
    "/iis",
    response_model=List[SiteOut],
    responses={500: {"model": ErrorResponse}},
    summary="List IIS topology",
)
def get_topology(
    filter: Optional[str] = Query(None, description="Partial, case-insensitive match on site name or application path"),
    gateway: ManagementGateway = Depends(get_gateway),
):
    """Sites with their applications, optionally filtered."""
    return query_service.get_topology(gateway, filter)


@router.get(
    "/pools",
    response_model=List[AppPoolOut],
    responses={500: {"model": ErrorResponse}},
    summary="List application pools",
)
def get_app_pools(
    filter: Optional[str] = Query(None, description="Partial, case-insensitive match on pool name"),
    gateway: ManagementGateway = Depends(get_gateway),
):
    """All application pools with state, configuration and application count."""
    return query_service.get_pools(gateway, filter)


@router.post(
    "/sites/{name}/restart",
    response_model=MessageResponse,
    responses=_COMMAND_ERRORS,
    summary="Restart a web site",
)
def restart_site(
    name: str,
    request: Request,
    db: Session = Depends(get_db),
    gateway: ManagementGateway = Depends(get_gateway),
):
    """Stop/Start a site by its exact (case-insensitive) name."""
    message = command_service.restart_site(db, gateway, name, client_ip_of(request))
    return MessageResponse(message=message)


@router.post(
    "/pools/{name}/recycle",
    response_model=MessageResponse,
    responses=_COMMAND_ERRORS,
    summary="Recycle an application pool",
)
def recycle_app_pool(
    name: str,
    request: Request,
    db: Session = Depends(get_db),
    gateway: ManagementGateway = Depends(get_gateway),
):
    """Recycle a single application pool by its exact (case-insensitive) name."""
    message = command_service.recycle_app_pool(db, gateway, name, client_ip_of(request))
    return MessageResponse(message=message)
