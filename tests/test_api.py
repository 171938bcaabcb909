from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from walletsync.core.errors import NetworkUnavailableError
from walletsync.main import create_app

from fakes import ETH_ADDRESS, ETH_ADDRESS_2, FakeAdapter, FakeOracle, eth


@pytest.fixture
def adapter():
    return FakeAdapter("ethereum", {ETH_ADDRESS: [eth("2.0")]})


@pytest.fixture
def client(make_core, adapter):
    core = make_core([adapter], FakeOracle({"ETH": "3000"}), max_wallets=2)
    with TestClient(create_app(core, start_scheduler=False)) as test_client:
        yield test_client


def test_add_and_list_wallets(client):
    resp = client.post("/wallets", json={"address": ETH_ADDRESS, "network": "ethereum", "display_name": "Main"})
    assert resp.status_code == 201, resp.json()
    wallet = resp.json()
    assert "address" not in wallet
    assert Decimal(wallet["total_value_usd"]) == Decimal("6000")
    assert wallet["tokens"][0]["symbol"] == "ETH"
    assert wallet["is_stale"] is False

    listed = client.get("/wallets").json()
    assert [w["id"] for w in listed] == [wallet["id"]]
    assert ETH_ADDRESS not in client.get("/wallets").text


def test_add_wallet_error_mapping(client):
    assert client.post("/wallets", json={"address": ETH_ADDRESS, "network": "bitcoin"}).status_code == 400
    assert client.post("/wallets", json={"address": "0x12", "network": "ethereum"}).status_code == 400

    assert client.post("/wallets", json={"address": ETH_ADDRESS}).status_code == 201
    duplicate = client.post("/wallets", json={"address": ETH_ADDRESS})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["category"] == "conflict"

    assert client.post("/wallets", json={"address": ETH_ADDRESS_2}).status_code == 201
    full = client.post("/wallets", json={"address": "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"})
    assert full.status_code == 409
    assert full.json()["detail"]["category"] == "capacity"


def test_add_wallet_with_failed_refresh_is_accepted(client, adapter):
    adapter.outcomes[ETH_ADDRESS_2] = NetworkUnavailableError("rpc down", network="ethereum")

    resp = client.post("/wallets", json={"address": ETH_ADDRESS_2})

    assert resp.status_code == 202
    body = resp.json()
    assert body["wallet"]["is_stale"] is True
    assert body["error"] == {"category": "network", "message": "rpc down", "recoverable": True}
    assert client.get(f"/wallets/{ETH_ADDRESS_2}").status_code == 200


def test_get_rename_and_remove(client):
    assert client.get(f"/wallets/{ETH_ADDRESS}").status_code == 404
    assert client.patch(f"/wallets/{ETH_ADDRESS}", json={"display_name": "X"}).status_code == 404

    client.post("/wallets", json={"address": ETH_ADDRESS})
    renamed = client.patch(f"/wallets/{ETH_ADDRESS}", json={"display_name": "Savings"})
    assert renamed.status_code == 200
    assert renamed.json()["display_name"] == "Savings"

    assert client.delete(f"/wallets/{ETH_ADDRESS}").json() == {"removed": True}
    assert client.delete(f"/wallets/{ETH_ADDRESS}").json() == {"removed": False}
    assert client.get("/wallets").json() == []


def test_refresh_endpoints(client, adapter):
    client.post("/wallets", json={"address": ETH_ADDRESS})
    adapter.outcomes[ETH_ADDRESS] = [eth("3.0")]

    one = client.post(f"/wallets/{ETH_ADDRESS}/refresh")
    assert one.status_code == 200
    assert Decimal(one.json()["total_value_usd"]) == Decimal("9000")

    adapter.outcomes[ETH_ADDRESS] = NetworkUnavailableError("rpc down", network="ethereum")
    failed = client.post(f"/wallets/{ETH_ADDRESS}/refresh")
    assert failed.status_code == 502

    report = client.post("/wallets/refresh").json()
    assert report["refreshed"] == 0
    assert report["failed"] == 1
    assert report["failures"][0]["category"] == "network"

    assert client.post(f"/wallets/{ETH_ADDRESS_2}/refresh").status_code == 404


def test_portfolio_summary_and_scheduler(client):
    client.post("/wallets", json={"address": ETH_ADDRESS})

    summary = client.get("/portfolio/summary").json()
    assert Decimal(summary["total_value_usd"]) == Decimal("6000")
    assert summary["wallet_count"] == 1
    assert summary["stale_count"] == 0

    scheduler = client.get("/scheduler").json()
    assert scheduler["state"] == "idle"


def test_health_endpoint(client):
    data = client.get("/healthz").json()

    assert data["status"] == "healthy"
    assert set(data["providers"]) == {"ethereum", "fake-oracle"}
    assert data["available_providers"] == 2
