"""Abstract base class for management gateways and the records they return."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

STATE_STARTED = "Started"
STATE_STOPPED = "Stopped"
STATE_UNKNOWN = "Unknown"

IDENTITY_SPECIFIC_USER = "SpecificUser"


@dataclass
class Application:
    path: str
    pool_name: str


@dataclass
class Site:
    id: int
    name: str
    state: str = STATE_UNKNOWN
    applications: List[Application] = field(default_factory=list)


@dataclass
class AppPool:
    """Application pool as the host reports it.

    ``identity_type`` is the raw process-model identity (``ApplicationPoolIdentity``,
    ``NetworkService``, ``SpecificUser``...); ``user_name`` only means something
    for ``SpecificUser``.
    """
    name: str
    state: str = STATE_UNKNOWN
    managed_runtime_version: str = ""
    pipeline_mode: str = "Integrated"
    identity_type: str = "ApplicationPoolIdentity"
    user_name: Optional[str] = None


class ManagementGateway(ABC):
    """Capability interface over the host's native site/pool control surface.

    One instance is opened per request and closed when the request ends.
    Name lookups are exact and case-insensitive. Implementations raise
    ResourceNotFoundError for a missing target and GatewayError for
    anything else.
    """

    backend: str = ""

    @abstractmethod
    def list_sites(self) -> List[Site]:
        """Return every site with its applications."""
        ...

    @abstractmethod
    def list_pools(self) -> List[AppPool]:
        """Return every application pool."""
        ...

    @abstractmethod
    def stop_site(self, name: str) -> None:
        """Stop a site. No-op when it is already stopped."""
        ...

    @abstractmethod
    def start_site(self, name: str) -> None:
        """Start a site. No-op when it is already started."""
        ...

    @abstractmethod
    def recycle_pool(self, name: str) -> None:
        """Replace the pool's worker processes."""
        ...

    def close(self) -> None:
        """Release whatever the gateway acquired for this call."""
        return None
