"""JSON-file inventory gateway for development hosts without IIS.

The file is re-read on every call, and state changes (stop/start/recycle)
are written back, so it behaves like a small live server that survives
restarts of the API.
"""

import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from iis_manager.core.config import settings
from iis_manager.core.exceptions import GatewayError, ResourceNotFoundError
from iis_manager.gateways.base import (
    AppPool,
    Application,
    ManagementGateway,
    Site,
    STATE_STARTED,
    STATE_STOPPED,
    STATE_UNKNOWN,
)

# Serialises read-modify-write cycles on the inventory file within the process.
_FILE_LOCK = threading.Lock()

SAMPLE_INVENTORY: Dict[str, Any] = {
    "sites": [
        {
            "id": 1,
            "name": "Default Web Site",
            "state": STATE_STARTED,
            "applications": [
                {"path": "/", "poolName": "DefaultAppPool"},
            ],
        },
        {
            "id": 2,
            "name": "Intranet",
            "state": STATE_STARTED,
            "applications": [
                {"path": "/", "poolName": "IntranetPool"},
                {"path": "/api", "poolName": "IntranetApiPool"},
                {"path": "/reports", "poolName": "IntranetPool"},
            ],
        },
        {
            "id": 3,
            "name": "Legacy",
            "state": STATE_STOPPED,
            "applications": [
                {"path": "/", "poolName": "LegacyPool"},
            ],
        },
    ],
    "pools": [
        {"name": "DefaultAppPool", "state": STATE_STARTED, "managedRuntimeVersion": "v4.0",
         "pipelineMode": "Integrated", "identityType": "ApplicationPoolIdentity"},
        {"name": "IntranetPool", "state": STATE_STARTED, "managedRuntimeVersion": "v4.0",
         "pipelineMode": "Integrated", "identityType": "SpecificUser", "userName": "CORP\\svc-intranet"},
        {"name": "IntranetApiPool", "state": STATE_STARTED, "managedRuntimeVersion": "",
         "pipelineMode": "Integrated", "identityType": "NetworkService"},
        {"name": "LegacyPool", "state": STATE_STOPPED, "managedRuntimeVersion": "v2.0",
         "pipelineMode": "Classic", "identityType": "LocalSystem"},
    ],
}


def write_sample_inventory(path: str, overwrite: bool = False) -> bool:
    """Write the sample inventory to ``path``. Returns False if it already exists."""
    if os.path.exists(path) and not overwrite:
        return False
    with open(path, "w", encoding="utf-8") as f:
        json.dump(SAMPLE_INVENTORY, f, indent=2)
    return True


class InventoryGateway(ManagementGateway):
    """Gateway over a JSON description of sites and pools."""

    backend = "inventory"

    def __init__(self, path: Optional[str] = None):
        self._path = path or settings.INVENTORY_FILE

    # ---- File plumbing ----

    def _load(self) -> Dict[str, Any]:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise GatewayError(f"Inventory file not found: {self._path}")
        except (OSError, ValueError) as e:
            raise GatewayError(f"Inventory file unreadable: {e}")
        if not isinstance(data, dict):
            raise GatewayError("Inventory file unreadable: expected an object at the top level")
        data.setdefault("sites", [])
        data.setdefault("pools", [])
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        directory = os.path.dirname(os.path.abspath(self._path))
        try:
            fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
        except OSError as e:
            raise GatewayError(f"Inventory file not writable: {e}")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, self._path)
        except (OSError, TypeError, ValueError) as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise GatewayError(f"Inventory file not writable: {e}")

    @staticmethod
    def _find(entries: List[Dict[str, Any]], name: str, kind: str) -> Dict[str, Any]:
        for entry in entries:
            if entry.get("name", "").lower() == name.lower():
                return entry
        raise ResourceNotFoundError(f"{kind} '{name}' not found.")

    # ---- Queries ----

    def list_sites(self) -> List[Site]:
        data = self._load()
        return [
            Site(
                id=int(s.get("id", 0)),
                name=s["name"],
                state=s.get("state") or STATE_UNKNOWN,
                applications=[
                    Application(path=a.get("path", "/"), pool_name=a.get("poolName", ""))
                    for a in s.get("applications", [])
                ],
            )
            for s in data["sites"]
        ]

    def list_pools(self) -> List[AppPool]:
        data = self._load()
        return [
            AppPool(
                name=p["name"],
                state=p.get("state") or STATE_UNKNOWN,
                managed_runtime_version=p.get("managedRuntimeVersion", ""),
                pipeline_mode=p.get("pipelineMode", "Integrated"),
                identity_type=p.get("identityType", "ApplicationPoolIdentity"),
                user_name=p.get("userName"),
            )
            for p in data["pools"]
        ]

    # ---- Actions ----

    def _set_site_state(self, name: str, state: str) -> None:
        with _FILE_LOCK:
            data = self._load()
            site = self._find(data["sites"], name, "Site")
            if site.get("state") == state:
                return
            site["state"] = state
            self._save(data)

    def stop_site(self, name: str) -> None:
        self._set_site_state(name, STATE_STOPPED)

    def start_site(self, name: str) -> None:
        self._set_site_state(name, STATE_STARTED)

    def recycle_pool(self, name: str) -> None:
        with _FILE_LOCK:
            data = self._load()
            pool = self._find(data["pools"], name, "Application Pool")
            if pool.get("state") != STATE_STARTED:
                raise GatewayError(
                    f"Application Pool '{pool['name']}' is {pool.get('state', STATE_UNKNOWN)} and cannot be recycled."
                )
            pool["recycleCount"] = int(pool.get("recycleCount", 0)) + 1
            pool["lastRecycled"] = datetime.now(timezone.utc).isoformat()
            self._save(data)
