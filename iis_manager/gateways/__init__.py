"""Management gateway backends and the per-request gateway dependency."""

from typing import Dict, Generator, Optional, Type

from iis_manager.core.config import settings
from iis_manager.gateways.appcmd import AppCmdGateway
from iis_manager.gateways.base import ManagementGateway
from iis_manager.gateways.inventory import InventoryGateway

GATEWAY_REGISTRY: Dict[str, Type[ManagementGateway]] = {
    AppCmdGateway.backend: AppCmdGateway,
    InventoryGateway.backend: InventoryGateway,
}


def get_gateway_class(backend: Optional[str] = None) -> Type[ManagementGateway]:
    """Get a gateway class by backend name."""
    name = backend or settings.GATEWAY_BACKEND
    cls = GATEWAY_REGISTRY.get(name)
    if not cls:
        raise ValueError(f"Unknown gateway backend: {name}")
    return cls


def get_gateway() -> Generator[ManagementGateway, None, None]:
    """FastAPI dependency that opens a gateway per request and always closes it."""
    gateway = get_gateway_class()()
    try:
        yield gateway
    finally:
        gateway.close()


__all__ = [
    "GATEWAY_REGISTRY", "ManagementGateway", "AppCmdGateway", "InventoryGateway",
    "get_gateway", "get_gateway_class",
]
