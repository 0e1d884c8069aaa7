"""IIS Manager CLI tool (iis-manager)."""

from datetime import datetime
from typing import Any, Dict, Optional

import httpx
import typer

from iis_manager.core.config import settings

app = typer.Typer(name="iis-manager", help="IIS Manager CLI")
db_app = typer.Typer(help="Audit database commands")
inventory_app = typer.Typer(help="Development inventory commands")
app.add_typer(db_app, name="db")
app.add_typer(inventory_app, name="inventory")


def _request(method: str, path: str, **kwargs) -> Any:
    """Call the API and return its JSON body, exiting with the server's detail on error."""
    url = f"{settings.API_URL.rstrip('/')}/{path.lstrip('/')}"
    try:
        resp = httpx.request(method, url, timeout=settings.API_TIMEOUT_SECONDS, **kwargs)
    except httpx.HTTPError as e:
        typer.echo(f"Cannot reach {url}: {e}", err=True)
        raise typer.Exit(code=2)

    if resp.is_error:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        typer.echo(f"Error {resp.status_code}: {detail}", err=True)
        raise typer.Exit(code=1)
    return resp.json()


@db_app.command("create")
def db_create():
    """Create the audit table if it doesn't exist."""
    from iis_manager.db.session import init_db

    init_db()
    typer.echo(f"Audit database ready at {settings.DATABASE_URL}")


@inventory_app.command("init")
def inventory_init(
    path: str = typer.Option(None, help="Inventory file (defaults to INVENTORY_FILE)"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Write a sample inventory for the 'inventory' gateway backend."""
    from iis_manager.gateways.inventory import write_sample_inventory

    target = path or settings.INVENTORY_FILE
    if write_sample_inventory(target, overwrite=force):
        typer.echo(f"Sample inventory written to {target}")
    else:
        typer.echo(f"{target} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(code=1)


@app.command("topology")
def topology(filter: Optional[str] = typer.Option(None, "--filter", "-f", help="Site name or application path")):
    """List sites and their applications."""
    for site in _request("GET", "/iis", params={"filter": filter} if filter else {}):
        typer.echo(f"[{site['id']}] {site['name']} ({site['state']})")
        for application in site["applications"]:
            typer.echo(f"    {application['path']}  -> {application['poolName']}")


@app.command("pools")
def pools(filter: Optional[str] = typer.Option(None, "--filter", "-f", help="Pool name")):
    """List application pools."""
    for pool in _request("GET", "/pools", params={"filter": filter} if filter else {}):
        typer.echo(
            f"{pool['name']} ({pool['state']}) runtime={pool['managedRuntimeVersion'] or '-'} "
            f"pipeline={pool['pipelineMode']} identity={pool['identity']} apps={pool['applicationCount']}"
        )


@app.command("restart")
def restart(name: str = typer.Argument(..., help="Exact site name")):
    """Restart a site."""
    typer.echo(_request("POST", f"/sites/{name}/restart")["message"])


@app.command("recycle")
def recycle(name: str = typer.Argument(..., help="Exact application pool name")):
    """Recycle an application pool."""
    typer.echo(_request("POST", f"/pools/{name}/recycle")["message"])


@app.command("audit")
def audit(
    action: Optional[str] = typer.Option(None, help="Partial action match"),
    target: Optional[str] = typer.Option(None, help="Partial site/pool match"),
    date_from: Optional[datetime] = typer.Option(None, "--date-from", help="UTC lower bound"),
    date_to: Optional[datetime] = typer.Option(None, "--date-to", help="UTC upper bound"),
    limit: int = typer.Option(50, min=1, help="Maximum rows"),
):
    """Show the audit trail, newest first."""
    params: Dict[str, Any] = {"limit": limit}
    if action:
        params["action"] = action
    if target:
        params["target"] = target
    if date_from:
        params["dateFrom"] = date_from.isoformat()
    if date_to:
        params["dateTo"] = date_to.isoformat()

    for log in _request("GET", "/audit", params=params):
        typer.echo(f"  [{log['id']}] {log['timestamp']} {log['action']} {log['target']} ({log['clientIp'] or '-'})")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the API server."""
    import uvicorn
    uvicorn.run("iis_manager.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
