"""Pydantic schemas for API request/response serialization.

Field names are snake_case in Python and camelCase on the wire.
"""

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from datetime import datetime, timezone


class CamelModel(BaseModel):
    class Config:
        from_attributes = True
        populate_by_name = True
        alias_generator = to_camel


# ---- Topology ----
class ApplicationOut(CamelModel):
    path: str
    pool_name: str

class SiteOut(CamelModel):
    id: int
    name: str
    state: str
    applications: List[ApplicationOut] = []


# ---- App Pools ----
class AppPoolOut(CamelModel):
    name: str
    state: str
    managed_runtime_version: str = ""
    pipeline_mode: str = ""
    identity: str = ""
    application_count: int = 0


# ---- Audit ----
class AuditLogOut(CamelModel):
    id: int
    timestamp: datetime
    action: str
    target: str
    details: Optional[str] = None
    client_ip: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        # stored naive, always UTC
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str

class ErrorResponse(BaseModel):
    detail: str
    action_completed: Optional[bool] = None

    class Config:
        populate_by_name = True
        alias_generator = to_camel
