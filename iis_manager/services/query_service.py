"""Query service: live topology, app pools, and the audit trail."""

from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from iis_manager.core.config import settings
from iis_manager.core.exceptions import GatewayError, IISManagerError
from iis_manager.gateways.base import AppPool, IDENTITY_SPECIFIC_USER, ManagementGateway, Site
from iis_manager.models.audit_log import AuditLog
from iis_manager.services.audit_service import audit_service


@dataclass
class PoolSummary:
    name: str
    state: str
    managed_runtime_version: str
    pipeline_mode: str
    identity: str
    application_count: int


def normalize_filter(value: Optional[str]) -> Optional[str]:
    """Trim and lowercase a filter; blank means no filter."""
    if value is None:
        return None
    value = value.strip()
    return value.lower() or None


def resolve_identity(pool: AppPool) -> str:
    """Configured account name for SpecificUser pools, else the identity type label."""
    if pool.identity_type == IDENTITY_SPECIFIC_USER:
        return pool.user_name or ""
    return pool.identity_type


@contextmanager
def gateway_faults():
    """Report anything unexpected from a gateway read as a gateway fault."""
    try:
        yield
    except IISManagerError:
        raise
    except Exception as e:
        raise GatewayError(f"Gateway read failed: {e}") from e


class QueryService:
    """Read-only views over the gateway and the audit store."""

    @staticmethod
    def get_topology(gateway: ManagementGateway, filter: Optional[str] = None) -> List[Site]:
        """List sites whose name or any application path contains ``filter``.

        Matching sites keep their full application list.
        """
        with gateway_faults():
            sites = gateway.list_sites()
        needle = normalize_filter(filter)
        if needle is None:
            return sites
        return [
            s for s in sites
            if needle in s.name.lower()
            or any(needle in a.path.lower() for a in s.applications)
        ]

    @staticmethod
    def get_pools(gateway: ManagementGateway, filter: Optional[str] = None) -> List[PoolSummary]:
        """List pools whose name contains ``filter``, with application counts.

        Counts cover every application on every site, whatever the filter.
        """
        with gateway_faults():
            pools = gateway.list_pools()
            sites = gateway.list_sites()
        needle = normalize_filter(filter)
        if needle is not None:
            pools = [p for p in pools if needle in p.name.lower()]

        app_counts = Counter(
            app.pool_name.lower()
            for site in sites
            for app in site.applications
        )

        return [
            PoolSummary(
                name=p.name,
                state=p.state,
                managed_runtime_version=p.managed_runtime_version,
                pipeline_mode=p.pipeline_mode,
                identity=resolve_identity(p),
                application_count=app_counts.get(p.name.lower(), 0),
            )
            for p in pools
        ]

    @staticmethod
    def get_audit_logs(
        db: Session,
        action: Optional[str] = None,
        target: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[AuditLog]:
        """Filtered audit trail, newest first, capped at AUDIT_MAX_LIMIT rows."""
        if limit is None:
            limit = settings.AUDIT_DEFAULT_LIMIT
        limit = min(limit, settings.AUDIT_MAX_LIMIT)
        return audit_service.query_logs(
            db,
            action=(action or "").strip() or None,
            target=(target or "").strip() or None,
            date_from=date_from,
            date_to=date_to,
            limit=limit,
        )


query_service = QueryService()
