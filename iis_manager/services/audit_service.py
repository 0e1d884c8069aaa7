"""Audit service: append-only audit trail of executed commands."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from iis_manager.core.exceptions import PersistenceError
from iis_manager.models.audit_log import AuditLog

logger = logging.getLogger("iis_manager")


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a datetime to the naive-UTC form the table stores.

    Naive input is taken to already be UTC.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class AuditService:
    """Records immutable audit log entries for restart/recycle commands."""

    @staticmethod
    def log(
        db: Session,
        action: str,
        target: str,
        details: Optional[str] = None,
        client_ip: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> AuditLog:
        """Write a single audit log record.

        Args:
            action: "RestartSite" or "RecycleAppPool"
            target: the site or pool name the command ran against

        This method commits immediately to ensure audit is never lost; a
        failed commit is rolled back and raised as PersistenceError.
        """
        entry = AuditLog(
            timestamp=to_naive_utc(timestamp or datetime.now(timezone.utc)),
            action=action,
            target=target,
            details=details,
            client_ip=client_ip,
        )
        try:
            db.add(entry)
            db.commit()
            db.refresh(entry)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Audit append failed for %s %r: %s", action, target, e)
            raise PersistenceError(f"Audit record could not be written: {e}") from e
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        action: Optional[str] = None,
        target: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: int = 50,
    ) -> List[AuditLog]:
        """Query audit logs with filters, newest first, at most ``limit`` rows."""
        query = db.query(AuditLog)

        if action:
            query = query.filter(func.lower(AuditLog.action).contains(action.lower(), autoescape=True))
        if target:
            query = query.filter(func.lower(AuditLog.target).contains(target.lower(), autoescape=True))
        if date_from is not None:
            query = query.filter(AuditLog.timestamp >= to_naive_utc(date_from))
        if date_to is not None:
            query = query.filter(AuditLog.timestamp <= to_naive_utc(date_to))

        try:
            return (
                query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error("Audit query failed: %s", e)
            raise PersistenceError(f"Audit log could not be read: {e}") from e


def client_ip_of(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


audit_service = AuditService()
