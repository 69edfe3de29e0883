"""Integration tests for API endpoints"""

import uuid

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def session_id(client: TestClient) -> str:
    """Session with two finished players: Ann won 500, Ben lost 500 and deposited 300"""
    response = client.post("/v1/sessions", json={"title": "Friday game", "small_blind": 5, "big_blind": 10})
    assert response.status_code == 201
    sid = response.json()["id"]

    ann = client.post(f"/v1/sessions/{sid}/players", json={"name": "Ann", "buy_in": 1000}).json()["players"][0]["id"]
    ben = client.post(f"/v1/sessions/{sid}/players", json={"name": "Ben", "buy_in": 1000}).json()["players"][1]["id"]
    client.post(f"/v1/sessions/{sid}/bank/deposits", json={"player_id": ben, "amount": 300})
    client.post(f"/v1/sessions/{sid}/players/{ann}/cash-out", json={"amount": 1500})
    client.post(f"/v1/sessions/{sid}/players/{ben}/cash-out", json={"amount": 500})
    return sid


def _player_id(client: TestClient, sid: str, name: str) -> str:
    players = client.get(f"/v1/sessions/{sid}").json()["players"]
    return next(p["id"] for p in players if p["name"] == name)


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient, session_id: str):
    """Test Prometheus metrics endpoint"""
    client.get(f"/v1/sessions/{session_id}/settlement")

    response = client.get("/metrics")
    assert response.status_code == 200
    assert "poker_ledger_settlement_total" in response.text
    assert "poker_ledger_command_total" in response.text


def test_request_id_header(client: TestClient):
    """Test caller request id is echoed back"""
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"


def test_session_state(client: TestClient, session_id: str):
    """Test GET /v1/sessions/{id} returns ledger view with results"""
    response = client.get(f"/v1/sessions/{session_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "awaitingSettlement"
    assert data["chips_in_game"] == 0
    assert data["bank"]["net_balance"] == 300
    assert data["bank"]["expected_total"] == 500
    results = {p["name"]: p["financial_result"] for p in data["players"]}
    assert results == {"Ann": 500, "Ben": -200}
    assert response.headers["ETag"] == str(data["version"])


def test_get_settlement(client: TestClient, session_id: str):
    """Test settlement plan uses the bank first"""
    response = client.get(f"/v1/sessions/{session_id}/settlement")

    assert response.status_code == 200
    data = response.json()
    assert data["is_final"] is True
    assert [(t["transfer_type"], t["amount"]) for t in data["transfers"]] == [
        ("bankToPlayer", 300),
        ("playerToPlayer", 200),
    ]
    assert data["session_version"] == client.get(f"/v1/sessions/{session_id}").json()["version"]


def test_persist_and_complete_transfers(client: TestClient, session_id: str):
    """Test storing a plan and toggling completion"""
    version = client.get(f"/v1/sessions/{session_id}/settlement").json()["session_version"]

    response = client.post(f"/v1/sessions/{session_id}/settlement/transfers", json={"expected_version": version})
    assert response.status_code == 201
    transfers = response.json()["transfers"]
    assert len(transfers) == 2
    assert transfers[0]["from_player_id"] is None

    patched = client.patch(f"/v1/settlement-transfers/{transfers[0]['id']}", json={"is_completed": True})
    assert patched.status_code == 200
    assert patched.json()["is_completed"] is True
    assert patched.json()["completed_at"] is not None

    toggled = client.patch(f"/v1/settlement-transfers/{transfers[0]['id']}", json={})
    assert toggled.json()["is_completed"] is False

    listed = client.get(f"/v1/sessions/{session_id}/settlement/transfers").json()["transfers"]
    assert [t["amount"] for t in listed] == [300, 200]

    # Completing transfers never changes the ledger
    assert client.get(f"/v1/sessions/{session_id}").json()["version"] == version


def test_persist_stale_plan_rejected(client: TestClient, session_id: str):
    """Test plan computed from an older version is rejected"""
    version = client.get(f"/v1/sessions/{session_id}/settlement").json()["session_version"]
    client.put(f"/v1/sessions/{session_id}/blinds", json={"small_blind": 10, "big_blind": 20})

    response = client.post(f"/v1/sessions/{session_id}/settlement/transfers", json={"expected_version": version})

    assert response.status_code == 409
    assert response.json()["error"] == "StaleSessionError"


def test_if_match_precondition(client: TestClient, session_id: str):
    """Test mutation with an outdated If-Match is rejected and not applied"""
    response = client.put(
        f"/v1/sessions/{session_id}/blinds",
        json={"small_blind": 10, "big_blind": 20},
        headers={"If-Match": "1"},
    )

    assert response.status_code == 409
    assert client.get(f"/v1/sessions/{session_id}").json()["big_blind"] == 10


def test_validation_error_maps_to_422(client: TestClient, session_id: str):
    """Test domain validation errors are unprocessable"""
    response = client.put(f"/v1/sessions/{session_id}/blinds", json={"small_blind": 20, "big_blind": 10})

    assert response.status_code == 422
    assert response.json()["error"] == "InvalidBlindsError"


def test_state_error_maps_to_409(client: TestClient, session_id: str):
    """Test withdrawing more than the bank holds conflicts with state"""
    ann = _player_id(client, session_id, "Ann")

    response = client.post(f"/v1/sessions/{session_id}/bank/withdrawals", json={"player_id": ann, "amount": 301})

    assert response.status_code == 409
    assert response.json()["error"] == "InsufficientBankFundsError"


def test_not_found_errors(client: TestClient, session_id: str):
    """Test unknown sessions and players are 404"""
    assert client.get(f"/v1/sessions/{uuid.uuid4()}").status_code == 404
    response = client.post(f"/v1/sessions/{session_id}/players/{uuid.uuid4()}/add-on", json={"amount": 100})
    assert response.status_code == 404
    assert client.patch(f"/v1/settlement-transfers/{uuid.uuid4()}", json={}).status_code == 404


def test_expense_flow(client: TestClient, session_id: str):
    """Test expense creation, distribution and bank payment"""
    ann = _player_id(client, session_id, "Ann")
    ben = _player_id(client, session_id, "Ben")

    created = client.post(f"/v1/sessions/{session_id}/expenses", json={"note": "Pizza", "amount": 101})
    assert created.status_code == 201
    expense_id = created.json()["expenses"][0]["id"]

    distributed = client.put(
        f"/v1/sessions/{session_id}/expenses/{expense_id}/distribution/equal",
        json={"player_ids": [ann, ben]},
    )
    assert [d["amount"] for d in distributed.json()["expenses"][0]["distributions"]] == [51, 50]

    paid = client.post(f"/v1/sessions/{session_id}/bank/expense-payments", json={"expense_id": expense_id, "amount": 101})
    assert paid.status_code == 201
    assert paid.json()["bank"]["net_balance"] == 199

    settlement = client.get(f"/v1/sessions/{session_id}/settlement").json()
    results = {b["name"]: b["financial_result"] for b in settlement["balances"]}
    assert results == {"Ann": 449, "Ben": -250}


def test_export_import_round_trip(client: TestClient, session_id: str):
    """Test exported file imports as an independent session"""
    exported = client.get(f"/v1/sessions/{session_id}/export")
    assert exported.status_code == 200
    assert "Friday_game.pokersession" in exported.headers["content-disposition"]

    imported = client.post("/v1/sessions/import", content=exported.content)
    assert imported.status_code == 201
    data = imported.json()
    assert data["id"] != session_id
    assert data["version"] == 1
    assert {p["name"]: p["financial_result"] for p in data["players"]} == {"Ann": 500, "Ben": -200}

    assert len(client.get("/v1/sessions").json()) == 2


def test_import_rejects_bad_files(client: TestClient):
    """Test import failures map to 400 and store nothing"""
    assert client.post("/v1/sessions/import", content=b"{broken").status_code == 400
    response = client.post(
        "/v1/sessions/import",
        content=b'{"metadata": {"formatVersion": "9.9"}}',
    )
    assert response.status_code == 400
    assert response.json()["error"] == "UnsupportedFormatVersionError"
    assert client.get("/v1/sessions").json() == []


def test_delete_session(client: TestClient, session_id: str):
    """Test deleted sessions are gone"""
    assert client.delete(f"/v1/sessions/{session_id}").status_code == 204
    assert client.get(f"/v1/sessions/{session_id}").status_code == 404


def test_unsplit_fronted_expense_conflicts(client: TestClient, session_id: str):
    """Test settling and finishing wait until a fronted expense is split"""
    ann = _player_id(client, session_id, "Ann")
    ben = _player_id(client, session_id, "Ben")
    created = client.post(f"/v1/sessions/{session_id}/expenses", json={"note": "Pizza", "amount": 100, "payer_id": ann})
    expense_id = created.json()["expenses"][0]["id"]

    response = client.get(f"/v1/sessions/{session_id}/settlement")
    assert response.status_code == 409
    assert response.json()["error"] == "ExpenseNotDistributedError"
    assert client.post(f"/v1/sessions/{session_id}/finish").status_code == 409

    client.put(
        f"/v1/sessions/{session_id}/expenses/{expense_id}/distribution/equal",
        json={"player_ids": [ann, ben]},
    )
    finished = client.post(f"/v1/sessions/{session_id}/finish")
    assert finished.status_code == 200
    assert finished.json()["status"] == "finished"
    assert client.get(f"/v1/sessions/{session_id}/settlement").status_code == 200


def test_manual_distribution_rejects_bad_shares(client: TestClient, session_id: str):
    """Test negative and repeated shares are rejected before reaching the ledger"""
    ann = _player_id(client, session_id, "Ann")
    ben = _player_id(client, session_id, "Ben")
    created = client.post(f"/v1/sessions/{session_id}/expenses", json={"note": "Pizza", "amount": 300})
    url = f"/v1/sessions/{session_id}/expenses/{created.json()['expenses'][0]['id']}/distribution/manual"

    repeated = client.put(url, json={"shares": [{"player_id": ann, "amount": 500}, {"player_id": ann, "amount": -200}]})
    assert repeated.status_code == 422
    negative = client.put(url, json={"shares": [{"player_id": ann, "amount": 500}, {"player_id": ben, "amount": -200}]})
    assert negative.status_code == 422

    applied = client.put(url, json={"shares": [{"player_id": ann, "amount": 100}, {"player_id": ben, "amount": 200}]})
    assert applied.status_code == 200
    assert [d["amount"] for d in applied.json()["expenses"][0]["distributions"]] == [100, 200]
