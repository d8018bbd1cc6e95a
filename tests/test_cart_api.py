"""
Component tests for the /api/v1/cart endpoints.
"""
import asyncio
import logging
import uuid

import pytest
from fastapi import WebSocketDisconnect

from app.routers.cart import _finish_disconnect_watch
from tests.conftest import make_token

CART_URL = "/api/v1/cart"
CHANGES_URL = f"{CART_URL}/changes"


class TestGuestCart:
    def test_guest_reads_empty_cart(self, client):
        response = client.get(CART_URL)

        assert response.status_code == 200
        body = response.json()
        assert body["items"] == []
        assert body["item_count"] == 0
        assert body["total_display"] == "₹0"

    def test_guest_add_requires_sign_in(self, client, paracetamol):
        response = client.post(CART_URL, json={"medicine_id": str(paracetamol.id)})

        assert response.status_code == 401
        assert response.json()["detail"] == "Please sign in to add items to cart"

    def test_guest_clear_requires_sign_in(self, client):
        response = client.delete(CART_URL)

        assert response.status_code == 401

    def test_invalid_token_is_rejected(self, client):
        response = client.get(CART_URL, headers={"Authorization": "Bearer not-a-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"


class TestCartFlow:
    def test_add_and_read_back(self, client, auth_headers, paracetamol, cetirizine):
        client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id)},
            headers=auth_headers,
        )
        response = client.post(
            CART_URL,
            json={"medicine_id": str(cetirizine.id), "quantity": 2},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 200
        assert body["total_display"] == "₹200"
        assert body["item_count"] == 3
        assert body["notices"] == [{"level": "success", "message": "Item added to cart"}]

        cart = client.get(CART_URL, headers=auth_headers).json()
        assert [item["medicine"]["name"] for item in cart["items"]] == [
            "Paracetamol 500mg",
            "Cetirizine 10mg",
        ]
        assert cart["notices"] == []

    def test_adding_same_medicine_merges_lines(self, client, auth_headers, paracetamol):
        payload = {"medicine_id": str(paracetamol.id)}

        client.post(CART_URL, json=payload, headers=auth_headers)
        body = client.post(CART_URL, json=payload, headers=auth_headers).json()

        assert len(body["items"]) == 1
        assert body["items"][0]["quantity"] == 2

    def test_patch_sets_quantity(self, client, auth_headers, paracetamol):
        added = client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id)},
            headers=auth_headers,
        ).json()
        line_id = added["items"][0]["id"]

        response = client.patch(
            f"{CART_URL}/{line_id}", json={"quantity": 4}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["items"][0]["quantity"] == 4
        assert response.json()["total"] == 400

    def test_patch_zero_removes_line(self, client, auth_headers, paracetamol):
        added = client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id)},
            headers=auth_headers,
        ).json()
        line_id = added["items"][0]["id"]

        response = client.patch(
            f"{CART_URL}/{line_id}", json={"quantity": 0}, headers=auth_headers
        )

        assert response.status_code == 200
        assert response.json()["items"] == []

    def test_patch_fractional_quantity_is_422(self, client, auth_headers, paracetamol):
        added = client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id)},
            headers=auth_headers,
        ).json()
        line_id = added["items"][0]["id"]

        response = client.patch(
            f"{CART_URL}/{line_id}", json={"quantity": 1.5}, headers=auth_headers
        )

        assert response.status_code == 422

    def test_post_zero_quantity_is_422(self, client, auth_headers, paracetamol):
        response = client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id), "quantity": 0},
            headers=auth_headers,
        )

        assert response.status_code == 422

    def test_delete_line_twice_succeeds(self, client, auth_headers, paracetamol):
        added = client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id)},
            headers=auth_headers,
        ).json()
        line_id = added["items"][0]["id"]

        first = client.delete(f"{CART_URL}/{line_id}", headers=auth_headers)
        second = client.delete(f"{CART_URL}/{line_id}", headers=auth_headers)

        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["items"] == []

    def test_delete_unknown_line_is_noop(self, client, auth_headers, paracetamol):
        client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id)},
            headers=auth_headers,
        )

        response = client.delete(f"{CART_URL}/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 200
        assert len(response.json()["items"]) == 1

    def test_clear_cart(self, client, auth_headers, paracetamol, cetirizine):
        for medicine in (paracetamol, cetirizine):
            client.post(
                CART_URL,
                json={"medicine_id": str(medicine.id)},
                headers=auth_headers,
            )

        response = client.delete(CART_URL, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["items"] == []
        assert client.get(CART_URL, headers=auth_headers).json()["items"] == []

    def test_unknown_medicine_returns_notice(self, client, auth_headers):
        response = client.post(
            CART_URL,
            json={"medicine_id": str(uuid.uuid4())},
            headers=auth_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["items"] == []
        assert body["notices"] == [{"level": "error", "message": "Product not found"}]

    def test_out_of_stock_returns_warning(self, client, auth_headers, make_medicine):
        syrup = make_medicine("Cough Syrup", 120, in_stock=False)

        body = client.post(
            CART_URL,
            json={"medicine_id": str(syrup.id)},
            headers=auth_headers,
        ).json()

        assert body["items"] == []
        assert body["notices"][0]["level"] == "warning"

    def test_carts_are_per_user(self, client, auth_headers, admin_headers, paracetamol):
        client.post(
            CART_URL,
            json={"medicine_id": str(paracetamol.id)},
            headers=auth_headers,
        )

        response = client.get(CART_URL, headers=admin_headers)

        assert response.json()["items"] == []


class HandshakeSession:
    """Hands out the test session and remembers whether it was released."""

    def __init__(self, session):
        self.session = session
        self.released = False

    def __enter__(self):
        return self.session

    def __exit__(self, *exc_info):
        self.released = True


class TestCartChangesSocket:
    def test_missing_token_closes_with_policy_violation(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(CHANGES_URL):
                pass

        assert exc_info.value.code == 1008

    def test_bad_token_closes_with_policy_violation(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"{CHANGES_URL}?token=not-a-jwt"):
                pass

        assert exc_info.value.code == 1008

    def test_pushes_own_cart_changes(self, client, customer, auth_headers, paracetamol):
        token = make_token(customer.id, customer.email)

        with client.websocket_connect(f"{CHANGES_URL}?token={token}") as socket:
            added = client.post(
                CART_URL,
                json={"medicine_id": str(paracetamol.id)},
                headers=auth_headers,
            ).json()
            message = socket.receive_json()

        assert message == {
            "event": "INSERT",
            "user_id": str(customer.id),
            "line_id": added["items"][0]["id"],
        }

    def test_handshake_session_released_before_streaming(
        self, client, session, customer, monkeypatch
    ):
        handshake = HandshakeSession(session)
        monkeypatch.setattr("app.routers.cart.open_session", lambda: handshake)
        token = make_token(customer.id, customer.email)

        with client.websocket_connect(f"{CHANGES_URL}?token={token}"):
            released_while_open = handshake.released

        assert released_while_open is True

    def test_failed_disconnect_watch_is_logged(self, caplog):
        async def scenario():
            async def broken_receive():
                raise RuntimeError("receive failed")

            task = asyncio.create_task(broken_receive())
            await asyncio.wait({task})
            _finish_disconnect_watch(task)

        with caplog.at_level(logging.WARNING, logger="app.routers.cart"):
            asyncio.run(scenario())

        assert "closed with an error" in caplog.text

    def test_pending_disconnect_watch_is_cancelled(self):
        async def scenario():
            task = asyncio.create_task(asyncio.sleep(60))
            _finish_disconnect_watch(task)
            await asyncio.sleep(0)
            return task

        task = asyncio.run(scenario())

        assert task.cancelled()
