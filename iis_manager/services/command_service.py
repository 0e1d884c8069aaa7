"""Command service: restart sites and recycle app pools, then audit them.

Each command runs Validating -> Executing -> Logging. The audit record is
written only after the gateway reports success, and a failed audit write is
reported separately from a failed command because the server state already
changed by then.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from iis_manager.core.exceptions import ExecutionError, PersistenceError, ResourceNotFoundError
from iis_manager.core.locks import TargetLockRegistry, command_locks
from iis_manager.gateways.base import AppPool, ManagementGateway, Site, STATE_STOPPED
from iis_manager.services.audit_service import audit_service

logger = logging.getLogger("iis_manager")

ACTION_RESTART_SITE = "RestartSite"
ACTION_RECYCLE_APP_POOL = "RecycleAppPool"


def _find_site(gateway: ManagementGateway, name: str) -> Site:
    for site in gateway.list_sites():
        if site.name.lower() == name.lower():
            return site
    raise ResourceNotFoundError(f"Site '{name}' not found.")


def _find_pool(gateway: ManagementGateway, name: str) -> AppPool:
    for pool in gateway.list_pools():
        if pool.name.lower() == name.lower():
            return pool
    raise ResourceNotFoundError(f"Application Pool '{name}' not found.")


class CommandService:
    """Executes mutating commands against the management gateway."""

    def __init__(self, locks: Optional[TargetLockRegistry] = None):
        self.locks = locks or command_locks

    def restart_site(
        self,
        db: Session,
        gateway: ManagementGateway,
        name: str,
        client_ip: Optional[str] = None,
    ) -> str:
        """Stop (unless already stopped) then start a site.

        The two phases are not atomic: if Start fails after Stop, the site
        stays stopped and nothing is audited.
        """
        with self.locks.hold(ACTION_RESTART_SITE, name):
            logger.info("Restarting site %r", name)
            try:
                site = _find_site(gateway, name)
                if site.state != STATE_STOPPED:
                    gateway.stop_site(site.name)
                gateway.start_site(site.name)
            except ResourceNotFoundError:
                logger.warning("Restart rejected, site %r not found", name)
                raise
            except Exception as e:
                logger.error("Restart of site %r failed: %s", name, e)
                raise ExecutionError(f"Failed to restart site '{name}': {e}") from e

            self._record(
                db, ACTION_RESTART_SITE, name, "Site restarted successfully", client_ip,
                completed=f"Site '{name}' was restarted",
            )
        return f"Site '{name}' restarted successfully."

    def recycle_app_pool(
        self,
        db: Session,
        gateway: ManagementGateway,
        name: str,
        client_ip: Optional[str] = None,
    ) -> str:
        """Recycle an application pool's worker processes."""
        with self.locks.hold(ACTION_RECYCLE_APP_POOL, name):
            logger.info("Recycling app pool %r", name)
            try:
                pool = _find_pool(gateway, name)
                gateway.recycle_pool(pool.name)
            except ResourceNotFoundError:
                logger.warning("Recycle rejected, app pool %r not found", name)
                raise
            except Exception as e:
                logger.error("Recycle of app pool %r failed: %s", name, e)
                raise ExecutionError(f"Failed to recycle application pool '{name}': {e}") from e

            self._record(
                db, ACTION_RECYCLE_APP_POOL, name, "App Pool recycled successfully", client_ip,
                completed=f"Application Pool '{name}' was recycled",
            )
        return f"Application Pool '{name}' recycled successfully."

    @staticmethod
    def _record(
        db: Session,
        action: str,
        target: str,
        details: str,
        client_ip: Optional[str],
        completed: str,
    ) -> None:
        try:
            audit_service.log(
                db,
                action=action,
                target=target,
                details=details,
                client_ip=client_ip,
                timestamp=datetime.now(timezone.utc),
            )
        except PersistenceError as e:
            raise PersistenceError(
                f"{completed} but the audit record could not be written: {e.message}",
                action_completed=True,
            ) from e
        logger.info("%s %r succeeded (client %s)", action, target, client_ip or "unknown")


command_service = CommandService()
