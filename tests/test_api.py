import logging
from datetime import datetime, timedelta, timezone

from iis_manager.core.exceptions import GatewayError, PersistenceError
from iis_manager.services import command_service as command_module


def _parse_ts(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_root_and_health(client):
    assert client.get("/").json()["docs"] == "/docs"
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["database"] == "ok"


def test_topology_uses_camel_case(client, gateway):
    r = client.get("/api/iis")
    assert r.status_code == 200
    sites = r.json()
    assert [s["name"] for s in sites] == ["Default Web Site", "Intranet", "Shop"]
    assert sites[1] == {
        "id": 2,
        "name": "Intranet",
        "state": "Started",
        "applications": [
            {"path": "/", "poolName": "IntranetPool"},
            {"path": "/api", "poolName": "INTRANETPOOL"},
            {"path": "/Reports", "poolName": "ReportsPool"},
        ],
    }
    assert gateway.closed


def test_topology_filter(client):
    r = client.get("/api/iis", params={"filter": "checkout"})
    assert [s["name"] for s in r.json()] == ["Shop"]


def test_topology_gateway_fault_is_500(client, gateway):
    gateway.fail_on["list_sites"] = GatewayError("appcmd is not available")
    r = client.get("/api/iis")
    assert r.status_code == 500
    assert r.json() == {"detail": "appcmd is not available", "requestId": r.headers["X-Request-Id"]}
    assert gateway.closed


def test_unexpected_topology_fault_is_500_with_detail(client, gateway):
    gateway.fail_on["list_sites"] = RuntimeError("COM object released")
    r = client.get("/api/iis")
    assert r.status_code == 500
    assert r.json()["detail"] == "Gateway read failed: COM object released"
    assert gateway.closed


def test_unexpected_pool_fault_is_500_with_detail(client, gateway):
    gateway.fail_on["list_pools"] = KeyError("name")
    r = client.get("/api/pools")
    assert r.status_code == 500
    assert r.json()["detail"].startswith("Gateway read failed:")
    assert gateway.closed


def test_pools(client):
    r = client.get("/api/pools", params={"filter": "intranet"})
    assert r.status_code == 200
    assert r.json() == [{
        "name": "IntranetPool",
        "state": "Started",
        "managedRuntimeVersion": "v4.0",
        "pipelineMode": "Integrated",
        "identity": "CORP\\svc-intranet",
        "applicationCount": 2,
    }]


def test_restart_then_audit(client):
    r = client.post("/api/sites/Intranet/restart")
    assert r.status_code == 200
    assert r.json() == {"message": "Site 'Intranet' restarted successfully."}

    logs = client.get("/api/audit").json()
    assert len(logs) == 1
    log = logs[0]
    assert log["action"] == "RestartSite"
    assert log["target"] == "Intranet"
    assert log["details"] == "Site restarted successfully"
    assert log["clientIp"] == "testclient"
    ts = _parse_ts(log["timestamp"])
    assert ts.utcoffset() == timedelta(0)
    assert datetime.now(timezone.utc) - ts < timedelta(minutes=1)


def test_restart_missing_site_is_404(client, gateway):
    r = client.post("/api/sites/Nope/restart")
    assert r.status_code == 404
    assert r.json() == {"detail": "Site 'Nope' not found."}
    assert gateway.action_calls() == []
    assert client.get("/api/audit").json() == []


def test_recycle_missing_pool_is_404(client):
    r = client.post("/api/pools/Foo/recycle")
    assert r.status_code == 404
    assert client.get("/api/audit").json() == []


def test_recycle_failure_is_500_without_audit(client, gateway):
    gateway.fail_on["recycle_pool"] = GatewayError("pool is stopped")
    r = client.post("/api/pools/ReportsPool/recycle")
    assert r.status_code == 500
    assert "pool is stopped" in r.json()["detail"]
    assert client.get("/api/audit").json() == []


def test_audit_write_failure_reports_completed_action(client, gateway, monkeypatch):
    def broken_log(*args, **kwargs):
        raise PersistenceError("Audit record could not be written: readonly database")

    monkeypatch.setattr(command_module.audit_service, "log", broken_log)
    r = client.post("/api/pools/ShopPool/recycle")
    assert r.status_code == 500
    body = r.json()
    assert body["actionCompleted"] is True
    assert "was recycled" in body["detail"]
    assert gateway.action_calls() == [("recycle_pool", "ShopPool")]


def test_concurrent_duplicate_is_409(client, gateway):
    with command_module.command_service.locks.hold("RecycleAppPool", "shoppool"):
        r = client.post("/api/pools/ShopPool/recycle")
    assert r.status_code == 409
    assert gateway.action_calls() == []


def test_audit_filters_and_order(client):
    for _ in range(3):
        assert client.post("/api/pools/IntranetPool/recycle").status_code == 200
    for _ in range(2):
        assert client.post("/api/sites/Shop/restart").status_code == 200

    logs = client.get("/api/audit", params={"action": "recycle"}).json()
    assert len(logs) == 3
    assert all(l["action"] == "RecycleAppPool" for l in logs)
    ids = [l["id"] for l in logs]
    assert ids == sorted(ids, reverse=True)

    assert len(client.get("/api/audit", params={"target": "shop"}).json()) == 2
    assert len(client.get("/api/audit", params={"limit": 4}).json()) == 4


def test_audit_date_range(client):
    client.post("/api/sites/Shop/restart")
    now = datetime.now(timezone.utc)

    past = {"dateFrom": (now - timedelta(hours=2)).isoformat(), "dateTo": (now - timedelta(hours=1)).isoformat()}
    assert client.get("/api/audit", params=past).json() == []

    around = {"dateFrom": (now - timedelta(hours=1)).isoformat(), "dateTo": (now + timedelta(hours=1)).isoformat()}
    assert len(client.get("/api/audit", params=around).json()) == 1


def test_audit_rejects_bad_params(client):
    assert client.get("/api/audit", params={"limit": 0}).status_code == 422
    assert client.get("/api/audit", params={"dateFrom": "yesterday"}).status_code == 422


def test_responses_carry_request_id(client):
    r = client.get("/api/pools")
    assert r.headers["X-Request-Id"]
    assert "X-Response-Time-Ms" in r.headers


def test_failed_command_body_and_log_share_the_request_id(client, gateway, caplog):
    gateway.fail_on["recycle_pool"] = GatewayError("worker process did not shut down")
    with caplog.at_level(logging.ERROR, logger="iis_manager"):
        r = client.post("/api/pools/ShopPool/recycle")
    assert r.status_code == 500
    request_id = r.json()["requestId"]
    assert request_id == r.headers["X-Request-Id"]
    failures = [rec.getMessage() for rec in caplog.records if rec.levelno == logging.ERROR]
    assert any(request_id in line and "/api/pools/ShopPool/recycle" in line for line in failures)


def test_caller_supplied_request_id_is_kept(client, gateway):
    gateway.fail_on["start_site"] = GatewayError("The service did not respond")
    r = client.post("/api/sites/Intranet/restart", headers={"X-Request-Id": "dash-42.a"})
    assert r.status_code == 500
    assert r.headers["X-Request-Id"] == "dash-42.a"
    assert r.json()["requestId"] == "dash-42.a"


def test_unusable_request_id_is_replaced(client):
    r = client.get("/api/pools", headers={"X-Request-Id": "not a valid id!"})
    assert r.headers["X-Request-Id"] != "not a valid id!"
    assert len(r.headers["X-Request-Id"]) == 32


def test_client_errors_have_no_request_id_in_body(client):
    r = client.post("/api/sites/Nope/restart")
    assert r.status_code == 404
    assert "requestId" not in r.json()
