"""Models package: import all models so create_all can discover them."""

from iis_manager.models.audit_log import AuditLog

__all__ = ["AuditLog"]
