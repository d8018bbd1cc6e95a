"""
Component tests for checkout, order history and admin order management.
"""
import uuid

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from app.models.cart import CartItem
from app.routers.cart import cart_repo
from tests.conftest import make_token

CART_URL = "/api/v1/cart"
ORDERS_URL = "/api/v1/orders"

CUSTOMER_INFO = {
    "first_name": "Asha",
    "last_name": "Rao",
    "email": "asha@example.com",
    "phone": "+91 98450 12345",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "zip_code": "560001",
}


def add_to_cart(client, headers, medicine, quantity=1):
    return client.post(
        CART_URL,
        json={"medicine_id": str(medicine.id), "quantity": quantity},
        headers=headers,
    )


def checkout(client, headers, customer_info=CUSTOMER_INFO):
    return client.post(
        f"{ORDERS_URL}/checkout",
        json={"customer_info": customer_info},
        headers=headers,
    )


@pytest.fixture
def placed_order(client, auth_headers, paracetamol, cetirizine):
    add_to_cart(client, auth_headers, paracetamol)
    add_to_cart(client, auth_headers, cetirizine, 2)
    response = checkout(client, auth_headers)
    assert response.status_code == 201
    return response.json()


class TestCheckout:
    def test_empty_cart_is_rejected(self, client, auth_headers):
        response = checkout(client, auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Cart is empty"

    def test_unreadable_cart_is_503(
        self, client, session, auth_headers, customer, paracetamol, monkeypatch
    ):
        add_to_cart(client, auth_headers, paracetamol)

        def unreachable_store(session, user_id):
            raise OperationalError("SELECT cart_items", {}, Exception("connection lost"))

        monkeypatch.setattr(cart_repo, "list_with_medicines", unreachable_store)

        response = checkout(client, auth_headers)

        assert response.status_code == 503
        assert response.json()["detail"] == "Failed to load cart. Please try again."
        rows = session.exec(select(CartItem).where(CartItem.user_id == customer.id)).all()
        assert len(rows) == 1

    def test_guest_cannot_checkout(self, client):
        response = checkout(client, {})

        assert response.status_code == 401

    def test_staff_cannot_checkout(self, client, admin_headers):
        response = checkout(client, admin_headers)

        assert response.status_code == 403

    def test_order_freezes_cart(self, placed_order, paracetamol, cetirizine):
        assert placed_order["status"] == "pending"
        assert placed_order["total_amount"] == 200
        assert placed_order["total_display"] == "₹200"
        assert placed_order["customer_info"]["city"] == "Bengaluru"
        assert placed_order["requires_prescription"] is False

        items = {item["medicine_id"]: item for item in placed_order["items"]}
        assert items[str(paracetamol.id)]["price"] == 100
        assert items[str(paracetamol.id)]["medicine_name"] == "Paracetamol 500mg"
        assert items[str(cetirizine.id)]["quantity"] == 2
        assert items[str(cetirizine.id)]["line_total"] == 100

    def test_cart_is_cleared(self, client, auth_headers, placed_order):
        cart = client.get(CART_URL, headers=auth_headers).json()

        assert cart["items"] == []

    def test_later_price_change_does_not_touch_order(
        self, client, session, auth_headers, placed_order, paracetamol
    ):
        paracetamol.price = 150
        session.add(paracetamol)
        session.commit()

        order = client.get(
            f"{ORDERS_URL}/me/{placed_order['id']}", headers=auth_headers
        ).json()

        assert order["total_amount"] == 200
        prices = sorted(item["price"] for item in order["items"])
        assert prices == [50, 100]

    def test_out_of_stock_line_blocks_checkout(
        self, client, session, auth_headers, paracetamol
    ):
        add_to_cart(client, auth_headers, paracetamol)
        paracetamol.in_stock = False
        session.add(paracetamol)
        session.commit()

        response = checkout(client, auth_headers)

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["message"] == "Cart validation failed"
        assert detail["items"][0]["medicine_id"] == str(paracetamol.id)
        # cart is kept so the user can fix it
        assert len(client.get(CART_URL, headers=auth_headers).json()["items"]) == 1

    def test_prescription_flag(self, client, auth_headers, amoxicillin):
        add_to_cart(client, auth_headers, amoxicillin)

        order = checkout(client, auth_headers).json()

        assert order["requires_prescription"] is True

    @pytest.mark.parametrize(
        "field, value",
        [("email", "not-an-email"), ("city", "   "), ("zip_code", "")],
    )
    def test_invalid_customer_info(self, client, auth_headers, paracetamol, field, value):
        add_to_cart(client, auth_headers, paracetamol)

        response = checkout(client, auth_headers, {**CUSTOMER_INFO, field: value})

        assert response.status_code == 422

    def test_missing_customer_field(self, client, auth_headers, paracetamol):
        add_to_cart(client, auth_headers, paracetamol)
        info = {k: v for k, v in CUSTOMER_INFO.items() if k != "phone"}

        response = checkout(client, auth_headers, info)

        assert response.status_code == 422


class TestOrderHistory:
    def test_lists_own_orders(self, client, auth_headers, placed_order):
        response = client.get(f"{ORDERS_URL}/me", headers=auth_headers)

        assert response.status_code == 200
        assert [order["id"] for order in response.json()] == [placed_order["id"]]

    def test_other_users_order_is_404(self, client, placed_order):
        stranger = uuid.uuid4()
        headers = {"Authorization": f"Bearer {make_token(stranger, 'ravi@example.com')}"}

        response = client.get(f"{ORDERS_URL}/me/{placed_order['id']}", headers=headers)

        assert response.status_code == 404

    def test_unknown_order_is_404(self, client, auth_headers):
        response = client.get(f"{ORDERS_URL}/me/{uuid.uuid4()}", headers=auth_headers)

        assert response.status_code == 404


class TestPrescriptionUpload:
    def test_upload_sets_url(self, client, auth_headers, placed_order, customer, monkeypatch):
        uploaded = {}

        def fake_upload(path, file_bytes, content_type):
            uploaded["path"] = path
            uploaded["content_type"] = content_type
            return f"https://test-project.supabase.co/storage/v1/object/public/assets/{path}"

        monkeypatch.setattr("app.services.order_service.upload_to_storage", fake_upload)

        response = client.post(
            f"{ORDERS_URL}/me/{placed_order['id']}/prescription",
            files={"file": ("rx.pdf", b"%PDF-1.4 test", "application/pdf")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert uploaded["path"] == f"prescriptions/{customer.id}/{placed_order['id']}.pdf"
        assert response.json()["prescription_file_url"].endswith(".pdf")

    def test_rejects_unsupported_type(self, client, auth_headers, placed_order):
        response = client.post(
            f"{ORDERS_URL}/me/{placed_order['id']}/prescription",
            files={"file": ("rx.txt", b"take twice daily", "text/plain")},
            headers=auth_headers,
        )

        assert response.status_code == 400


class TestAdminOrders:
    def test_customer_cannot_list_all(self, client, auth_headers):
        response = client.get(ORDERS_URL, headers=auth_headers)

        assert response.status_code == 403

    def test_admin_lists_and_filters(self, client, admin_headers, placed_order):
        all_orders = client.get(ORDERS_URL, headers=admin_headers).json()
        pending = client.get(
            ORDERS_URL, params={"status": "pending"}, headers=admin_headers
        ).json()
        completed = client.get(
            ORDERS_URL, params={"status": "completed"}, headers=admin_headers
        ).json()

        assert [o["id"] for o in all_orders] == [placed_order["id"]]
        assert len(pending) == 1
        assert completed == []

    def test_admin_reads_any_order(self, client, admin_headers, placed_order):
        response = client.get(f"{ORDERS_URL}/{placed_order['id']}", headers=admin_headers)

        assert response.status_code == 200
        assert len(response.json()["items"]) == 2

    def test_valid_transitions(self, client, admin_headers, placed_order):
        url = f"{ORDERS_URL}/{placed_order['id']}/status"

        processing = client.patch(url, json={"status": "processing"}, headers=admin_headers)
        completed = client.patch(url, json={"status": "completed"}, headers=admin_headers)

        assert processing.json()["status"] == "processing"
        assert completed.status_code == 200
        assert completed.json()["status"] == "completed"

    def test_terminal_status_cannot_change(self, client, admin_headers, placed_order):
        url = f"{ORDERS_URL}/{placed_order['id']}/status"
        client.patch(url, json={"status": "cancelled"}, headers=admin_headers)

        response = client.patch(url, json={"status": "processing"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid status transition: cancelled -> processing"

    def test_skipping_processing_is_rejected(self, client, admin_headers, placed_order):
        response = client.patch(
            f"{ORDERS_URL}/{placed_order['id']}/status",
            json={"status": "completed"},
            headers=admin_headers,
        )

        assert response.status_code == 400

    def test_same_status_is_noop(self, client, admin_headers, placed_order):
        response = client.patch(
            f"{ORDERS_URL}/{placed_order['id']}/status",
            json={"status": "pending"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    def test_unknown_status_is_422(self, client, admin_headers, placed_order):
        response = client.patch(
            f"{ORDERS_URL}/{placed_order['id']}/status",
            json={"status": "shipped"},
            headers=admin_headers,
        )

        assert response.status_code == 422

    def test_prescription_blocked_after_completion(
        self, client, auth_headers, admin_headers, placed_order
    ):
        url = f"{ORDERS_URL}/{placed_order['id']}/status"
        client.patch(url, json={"status": "processing"}, headers=admin_headers)
        client.patch(url, json={"status": "completed"}, headers=admin_headers)

        response = client.post(
            f"{ORDERS_URL}/me/{placed_order['id']}/prescription",
            files={"file": ("rx.png", b"\x89PNG", "image/png")},
            headers=auth_headers,
        )

        assert response.status_code == 400
