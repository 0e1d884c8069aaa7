"""Audit log model: append-only."""

from sqlalchemy import Column, Integer, String, Text, DateTime
from iis_manager.db.base import Base


class AuditLog(Base):
    """Immutable audit trail of executed restart/recycle commands.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level). ``timestamp`` is
    stored as naive UTC.
    """
    __tablename__ = "audit_logs"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime, nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)  # e.g. "RestartSite"
    target = Column(String(255), nullable=False, index=True)  # site or app pool name
    details = Column(Text, nullable=True)
    client_ip = Column(String(45), nullable=True)

    def __repr__(self) -> str:
        return f"<AuditLog {self.id} {self.action} {self.target!r} @ {self.timestamp}>"
