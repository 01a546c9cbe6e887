"""
End-to-end tests through the HTTP layer: wallet sign-in, batch minting and
the error envelope.
"""
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient

from app.core.dependencies import get_current_address, get_ledger_client
from app.main import app

from tests.conftest import MANUFACTURER


@pytest.fixture
def client(session, ledger):
    app.dependency_overrides[get_current_address] = lambda: MANUFACTURER
    app.dependency_overrides[get_ledger_client] = lambda: ledger
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(session):
    with TestClient(app) as test_client:
        yield test_client


def _batch_payload(plant, template, number="1001", quantity=100):
    return {
        "batch_number": number,
        "template_id": str(template.id),
        "plant_id": str(plant.id),
        "quantity": quantity,
        "production_date": "2025-03-01",
    }


# ---------------------------------------------------------------------------
# Wallet sign-in
# ---------------------------------------------------------------------------

class TestWalletSignIn:

    def test_signed_challenge_yields_working_token(self, anonymous_client):
        wallet = Account.create()

        response = anonymous_client.post(
            "/api/v1/auth/nonce", json={"wallet_address": wallet.address})
        assert response.status_code == 201
        message = response.json()["message"]
        assert f"Wallet: {wallet.address.lower()}" in message

        signed = wallet.sign_message(encode_defunct(text=message))
        body = {
            "wallet_address": wallet.address,
            "message": message,
            "signature": "0x" + bytes(signed.signature).hex().removeprefix("0x"),
        }
        response = anonymous_client.post("/api/v1/auth/verify", json=body)
        assert response.status_code == 200
        token = response.json()["access_token"]

        # The nonce is single use
        assert anonymous_client.post("/api/v1/auth/verify", json=body).status_code == 401

        response = anonymous_client.post(
            "/api/v1/companies/",
            json={"company_name": "Wallet Co", "company_type": "retailer"},
            headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 201
        assert response.json()["wallet_address"] == wallet.address.lower()

    def test_signature_from_other_wallet_is_rejected(self, anonymous_client):
        wallet, impostor = Account.create(), Account.create()
        message = anonymous_client.post(
            "/api/v1/auth/nonce", json={"wallet_address": wallet.address}).json()["message"]

        signed = impostor.sign_message(encode_defunct(text=message))
        response = anonymous_client.post("/api/v1/auth/verify", json={
            "wallet_address": wallet.address,
            "message": message,
            "signature": "0x" + bytes(signed.signature).hex().removeprefix("0x"),
        })
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "unauthorized"

    def test_protected_route_needs_token(self, anonymous_client):
        assert anonymous_client.get("/api/v1/batches/").status_code == 401


# ---------------------------------------------------------------------------
# Batches and minting
# ---------------------------------------------------------------------------

class TestBatchEndpoints:

    def test_create_then_duplicate_is_409(self, client, plant, template):
        response = client.post("/api/v1/batches/", json=_batch_payload(plant, template))
        assert response.status_code == 201
        assert response.json()["carbon_footprint"] == 250.0

        response = client.post("/api/v1/batches/", json=_batch_payload(plant, template))
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "conflict"

    def test_mint_reconcile_and_tree(self, client, ledger, plant, template):
        ledger.next_token_id = 7
        batch_id = client.post(
            "/api/v1/batches/", json=_batch_payload(plant, template)).json()["id"]

        response = client.post(f"/api/v1/batches/{batch_id}/mint")
        assert response.status_code == 200
        assert response.json()["token_id"] == 7
        assert response.json()["mint_status"] == "anchored"

        response = client.post(f"/api/v1/batches/{batch_id}/mint")
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "already_anchored"

        response = client.post(f"/api/v1/batches/{batch_id}/reconcile")
        assert response.json()["action"] == "already_anchored"

        tree = client.get("/api/v1/tokens/7/tree").json()
        assert tree["root"]["token_id"] == 7
        assert tree["root"]["subtree_carbon_footprint"] == 250.0

    def test_unconfirmed_mint_answers_202(self, client, ledger, plant, template):
        ledger.confirm = False
        batch_id = client.post(
            "/api/v1/batches/", json=_batch_payload(plant, template)).json()["id"]

        response = client.post(f"/api/v1/batches/{batch_id}/mint",
                               json={"wait_timeout_seconds": 1})
        assert response.status_code == 202
        assert response.json()["detail"]["code"] == "pending_confirmation"

    def test_anchored_batch_delete_is_400(self, client, plant, template):
        batch_id = client.post(
            "/api/v1/batches/", json=_batch_payload(plant, template)).json()["id"]
        client.post(f"/api/v1/batches/{batch_id}/anchor",
                    json={"token_id": 7, "tx_hash": "0xabc", "block_number": 12345})

        response = client.delete(f"/api/v1/batches/{batch_id}")
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "invalid_operation"

    def test_unknown_tree_is_404(self, client):
        assert client.get("/api/v1/tokens/99/tree").status_code == 404

    def test_balance_is_public(self, client, ledger, plant, template):
        batch_id = client.post(
            "/api/v1/batches/", json=_batch_payload(plant, template)).json()["id"]
        client.post(f"/api/v1/batches/{batch_id}/mint")

        response = client.get(f"/api/v1/tokens/1/balance/{MANUFACTURER}")
        assert response.json()["balance"] == 100


# ---------------------------------------------------------------------------
# Transportation
# ---------------------------------------------------------------------------

class TestTransportationEndpoints:

    def test_logged_leg_is_listed(self, client, company):
        response = client.post("/api/v1/transportation/", json={
            "vehicle_type": "truck", "fuel_type": "diesel",
            "distance": 400, "fuel_consumption": 30,
            "product_ids": ["1001"],
        })
        assert response.status_code == 201
        assert response.json()["carbon_footprint"] == pytest.approx(321.6)

        listed = client.get("/api/v1/transportation/",
                            params={"companyAddress": MANUFACTURER}).json()
        assert [leg["product_ids"] for leg in listed] == [["1001"]]

    def test_unknown_fuel_is_422(self, client, company):
        response = client.post("/api/v1/transportation/", json={
            "vehicle_type": "truck", "fuel_type": "coal",
            "distance": 400, "fuel_consumption": 30,
        })
        assert response.status_code == 422
