"""IIS gateway backed by appcmd.exe.

appcmd is invoked once per operation; nothing is held between calls, so the
per-request scope of this gateway costs nothing to open or close.
"""

import logging
import subprocess
import xml.etree.ElementTree as ET
from typing import List, Optional

from iis_manager.core.config import settings
from iis_manager.core.exceptions import GatewayError, IISManagerError, ResourceNotFoundError
from iis_manager.gateways.base import (
    AppPool,
    Application,
    ManagementGateway,
    Site,
    STATE_UNKNOWN,
)

logger = logging.getLogger("iis_manager")


class AppCmdGateway(ManagementGateway):
    """Drives the local IIS instance through ``appcmd.exe``."""

    backend = "appcmd"

    def __init__(self, appcmd_path: Optional[str] = None, timeout: Optional[float] = None):
        self._path = appcmd_path or settings.APPCMD_PATH
        self._timeout = timeout if timeout is not None else settings.APPCMD_TIMEOUT_SECONDS

    # ---- Process plumbing ----

    def _run(self, *args: str) -> str:
        cmd = [self._path, *args]
        logger.debug("appcmd %s", " ".join(args))
        try:
            r = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            raise GatewayError(f"appcmd timed out after {self._timeout}s: {' '.join(args)}")
        except OSError as e:
            raise GatewayError(f"appcmd is not available at {self._path}: {e}")

        out = r.stdout.decode("utf-8", "ignore")
        if r.returncode != 0:
            err = (out + r.stderr.decode("utf-8", "ignore")).strip()
            raise _classify_error(err or f"rc={r.returncode}")
        return out

    def _run_action(self, *args: str) -> None:
        try:
            self._run(*args)
        except GatewayError as e:
            # appcmd refuses to stop a stopped site or start a started one
            if "already" in e.message.lower():
                logger.debug("appcmd %s: %s", " ".join(args), e.message)
                return
            raise

    def _list_xml(self, *args: str) -> ET.Element:
        out = self._run("list", *args, "/xml")
        try:
            return ET.fromstring(out)
        except ET.ParseError as e:
            raise GatewayError(f"Unreadable appcmd output: {e}")

    # ---- Queries ----

    def list_sites(self) -> List[Site]:
        sites = []
        for el in self._list_xml("site").iter("SITE"):
            sites.append(Site(
                id=int(el.get("SITE.ID", "0")),
                name=el.get("SITE.NAME", ""),
                state=el.get("state") or STATE_UNKNOWN,
            ))

        by_name = {s.name.lower(): s for s in sites}
        for el in self._list_xml("app").iter("APP"):
            site_name = el.get("SITE.NAME", "")
            site = by_name.get(site_name.lower())
            if site is None:
                continue
            app_name = el.get("APP.NAME", "")
            path = el.get("path") or app_name[len(site_name):] or "/"
            site.applications.append(Application(path=path, pool_name=el.get("APPPOOL.NAME", "")))
        return sites

    def list_pools(self) -> List[AppPool]:
        pools = []
        for el in self._list_xml("apppool", "/config:*").iter("APPPOOL"):
            add = el.find("add")
            process_model = el.find(".//processModel")
            runtime = el.get("RuntimeVersion")
            if runtime is None and add is not None:
                runtime = add.get("managedRuntimeVersion")
            pools.append(AppPool(
                name=el.get("APPPOOL.NAME", ""),
                state=el.get("state") or STATE_UNKNOWN,
                managed_runtime_version=runtime or "",
                pipeline_mode=el.get("PipelineMode") or "Integrated",
                identity_type=(
                    process_model.get("identityType", "ApplicationPoolIdentity")
                    if process_model is not None else "ApplicationPoolIdentity"
                ),
                user_name=process_model.get("userName") if process_model is not None else None,
            ))
        return pools

    # ---- Actions ----

    def stop_site(self, name: str) -> None:
        self._run_action("stop", "site", f"/site.name:{name}")

    def start_site(self, name: str) -> None:
        self._run_action("start", "site", f"/site.name:{name}")

    def recycle_pool(self, name: str) -> None:
        self._run("recycle", "apppool", f"/apppool.name:{name}")


def _classify_error(message: str) -> IISManagerError:
    """Map appcmd's error text onto the gateway error taxonomy."""
    # e.g. ERROR ( message:Cannot find SITE object with identifier "Foo". )
    if "cannot find" in message.lower():
        return ResourceNotFoundError(message)
    return GatewayError(message)
