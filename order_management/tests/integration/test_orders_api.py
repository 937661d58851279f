"""
Integration tests for the order endpoints through the full application.
"""

from datetime import datetime

import pytest
from starlette.datastructures import UploadFile

from order_management.app.models.order import OrderStatus

ORDER_FORM = {
    "name": "Birthday cake",
    "address": "1 Main St",
    "price": "25.50",
    "phoneNumber": "555-0100",
    "details": "Chocolate, two layers",
    "paymentMethod": "cash",
}

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


def error_message(response) -> str:
    return response.json()["error"]["message"]


def png(name: str = "cake.png"):
    return ("images", (name, PNG, "image/png"))


@pytest.fixture
def read_calls(monkeypatch):
    """Record every uploaded file whose body is read."""
    calls = []
    original_read = UploadFile.read

    async def counting_read(self, size: int = -1) -> bytes:
        calls.append(self.filename)
        return await original_read(self, size)

    monkeypatch.setattr(UploadFile, "read", counting_read)
    return calls


class TestCreateOrder:
    def test_create_with_images(self, client, regular_user, auth_headers):
        response = client.post(
            "/api/orders/",
            data=ORDER_FORM,
            files=[png("front.png"), png("side.png")],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Order created successfully"
        order = body["order"]
        assert order["user_id"] == regular_user.id
        assert order["status"] == "pending"
        assert order["price"] == 25.5
        assert order["phone_number"] == "555-0100"
        assert order["payment_method"] == "cash"
        assert order["invoice_no"] == "1"
        assert len(order["images"]) == 2
        assert all(url.startswith("/uploads/") for url in order["images"])

        image = client.get(order["images"][0])
        assert image.status_code == 200
        assert image.content == PNG

    def test_invoice_numbers_increase(self, client, regular_user, auth_headers):
        invoices = []
        for _ in range(2):
            response = client.post(
                "/api/orders/",
                data=ORDER_FORM,
                files=[png()],
                headers=auth_headers(regular_user),
            )
            invoices.append(response.json()["order"]["invoice_no"])

        assert invoices == ["1", "2"]

    def test_zero_images(self, client, regular_user, admin, auth_headers):
        response = client.post(
            "/api/orders/", data=ORDER_FORM, headers=auth_headers(regular_user)
        )

        assert response.status_code == 400
        assert error_message(response) == "At least one image is required"

        listing = client.get("/api/orders/all", headers=auth_headers(admin))
        assert listing.json()["pagination"]["items"] == 0

    def test_too_many_images(self, client, regular_user, auth_headers):
        response = client.post(
            "/api/orders/",
            data=ORDER_FORM,
            files=[png(f"{i}.png") for i in range(6)],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 400
        assert error_message(response) == "At most 5 images are allowed"

    def test_too_many_images_are_rejected_unread(
        self, client, regular_user, auth_headers, read_calls
    ):
        response = client.post(
            "/api/orders/",
            data=ORDER_FORM,
            files=[png(f"{i}.png") for i in range(50)],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 400
        assert read_calls == []

    def test_non_image_is_rejected_unread(
        self, client, regular_user, auth_headers, read_calls
    ):
        response = client.post(
            "/api/orders/",
            data=ORDER_FORM,
            files=[png(), ("images", ("notes.txt", b"hello", "text/plain"))],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 400
        assert read_calls == []

    def test_accepted_images_are_read_once(
        self, client, regular_user, auth_headers, read_calls
    ):
        response = client.post(
            "/api/orders/",
            data=ORDER_FORM,
            files=[png("front.png"), png("side.png")],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 201
        assert sorted(read_calls) == ["front.png", "side.png"]

    def test_non_image_file(self, client, regular_user, auth_headers):
        response = client.post(
            "/api/orders/",
            data=ORDER_FORM,
            files=[("images", ("notes.txt", b"hello", "text/plain"))],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 400
        assert error_message(response) == "Only image files are allowed"

    def test_invalid_price(self, client, regular_user, auth_headers):
        response = client.post(
            "/api/orders/",
            data={**ORDER_FORM, "price": "cheap"},
            files=[png()],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 400

    def test_missing_field(self, client, regular_user, auth_headers):
        form = {key: value for key, value in ORDER_FORM.items() if key != "address"}

        response = client.post(
            "/api/orders/",
            data=form,
            files=[png()],
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 400


class TestReadOrders:
    def test_my_orders_only_returns_own(
        self, client, regular_user, create_user, create_order, auth_headers
    ):
        other = create_user(email="other@example.com", name="Other")
        mine = create_order(regular_user, name="Mine")
        create_order(other, name="Theirs")

        response = client.get(
            "/api/orders/my-orders",
            params={"userId": str(other.id)},
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 200
        body = response.json()
        assert [order["id"] for order in body["data"]] == [mine.id]
        assert body["pagination"]["items"] == 1

    def test_get_order_owner_admin_and_other(
        self, client, regular_user, admin, create_user, create_order, auth_headers
    ):
        order = create_order(regular_user)
        other = create_user(email="other@example.com", name="Other")

        own = client.get(f"/api/orders/{order.id}", headers=auth_headers(regular_user))
        assert own.status_code == 200
        assert own.json()["order"]["user"]["email"] == "alice@example.com"

        as_admin = client.get(f"/api/orders/{order.id}", headers=auth_headers(admin))
        assert as_admin.status_code == 200

        as_other = client.get(f"/api/orders/{order.id}", headers=auth_headers(other))
        assert as_other.status_code == 403
        assert error_message(as_other) == "Access denied"

    def test_get_missing_order(self, client, regular_user, auth_headers):
        response = client.get("/api/orders/9999", headers=auth_headers(regular_user))

        assert response.status_code == 404
        assert error_message(response) == "Order not found"

    def test_get_order_invalid_id(self, client, regular_user, auth_headers):
        response = client.get("/api/orders/abc", headers=auth_headers(regular_user))

        assert response.status_code == 400
        assert error_message(response) == "Invalid order ID format"


class TestAdminListing:
    def test_regular_user_is_forbidden(self, client, regular_user, auth_headers):
        response = client.get("/api/orders/all", headers=auth_headers(regular_user))

        assert response.status_code == 403
        assert error_message(response) == "Admin access required"

    def test_newest_first_with_pagination(
        self, client, admin, regular_user, create_order, auth_headers
    ):
        orders = [
            create_order(regular_user, created_at=datetime(2024, 1, day))
            for day in range(1, 6)
        ]

        response = client.get(
            "/api/orders/all",
            params={"page": "1", "limit": "2"},
            headers=auth_headers(admin),
        )

        body = response.json()
        assert [order["id"] for order in body["data"]] == [orders[4].id, orders[3].id]
        assert body["pagination"] == {
            "current": 1,
            "limit": 2,
            "items": 5,
            "pages": 3,
            "prev": None,
            "next": 2,
        }

        beyond = client.get(
            "/api/orders/all", params={"page": "9"}, headers=auth_headers(admin)
        )
        assert beyond.status_code == 200
        assert beyond.json()["data"] == []

    def test_end_date_is_inclusive(
        self, client, admin, regular_user, create_order, auth_headers
    ):
        inside = create_order(regular_user, created_at=datetime(2024, 1, 5, 23, 59, 59))
        create_order(regular_user, created_at=datetime(2024, 1, 6, 0, 0, 1))
        create_order(regular_user, created_at=datetime(2023, 12, 31, 12, 0, 0))

        response = client.get(
            "/api/orders/all",
            params={"startDate": "2024-01-01", "endDate": "2024-01-05"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert [order["id"] for order in response.json()["data"]] == [inside.id]

    def test_malformed_user_id_is_dropped(
        self, client, admin, regular_user, create_order, auth_headers
    ):
        create_order(regular_user)
        create_order(admin)

        response = client.get(
            "/api/orders/all",
            params={"userId": "not-a-valid-id"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        assert response.json()["pagination"]["items"] == 2

    def test_user_id_filter(self, client, admin, regular_user, create_order, auth_headers):
        mine = create_order(regular_user)
        create_order(admin)

        response = client.get(
            "/api/orders/all",
            params={"userId": str(regular_user.id)},
            headers=auth_headers(admin),
        )

        assert [order["id"] for order in response.json()["data"]] == [mine.id]

    def test_status_and_method_filters(
        self, client, admin, regular_user, create_order, auth_headers
    ):
        match = create_order(
            regular_user, status=OrderStatus.COMPLETED, payment_method="card"
        )
        create_order(regular_user, status=OrderStatus.COMPLETED, payment_method="cash")
        create_order(regular_user, status=OrderStatus.PENDING, payment_method="card")

        response = client.get(
            "/api/orders/all",
            params={"status": "completed", "method": "card"},
            headers=auth_headers(admin),
        )

        assert [order["id"] for order in response.json()["data"]] == [match.id]

    def test_search_by_owner(
        self, client, admin, regular_user, create_user, create_order, auth_headers
    ):
        bob = create_user(email="bob@example.com", name="Bob Builder")
        create_order(regular_user)
        bobs = create_order(bob)

        by_name = client.get(
            "/api/orders/all", params={"search": "builder"}, headers=auth_headers(admin)
        )
        by_email = client.get(
            "/api/orders/all", params={"search": "BOB@"}, headers=auth_headers(admin)
        )

        assert [order["id"] for order in by_name.json()["data"]] == [bobs.id]
        assert [order["id"] for order in by_email.json()["data"]] == [bobs.id]
        assert by_name.json()["data"][0]["user"]["name"] == "Bob Builder"

    @pytest.mark.parametrize(
        "params",
        [{"status": "shipped"}, {"startDate": "yesterday"}, {"endDate": "2024-13-01"}],
    )
    def test_invalid_filters(self, client, admin, auth_headers, params):
        response = client.get(
            "/api/orders/all", params=params, headers=auth_headers(admin)
        )

        assert response.status_code == 400


class TestAdminUpdates:
    def test_update_status(self, client, admin, regular_user, create_order, auth_headers):
        order = create_order(regular_user)

        response = client.patch(
            f"/api/orders/{order.id}/status",
            json={"status": "processing"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Order status updated"
        assert body["order"]["status"] == "processing"
        assert body["order"]["user"]["id"] == regular_user.id

    def test_update_status_invalid(
        self, client, admin, regular_user, create_order, auth_headers
    ):
        order = create_order(regular_user)

        response = client.patch(
            f"/api/orders/{order.id}/status",
            json={"status": "shipped"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400

    def test_update_status_requires_admin(
        self, client, regular_user, create_order, auth_headers
    ):
        order = create_order(regular_user)

        response = client.patch(
            f"/api/orders/{order.id}/status",
            json={"status": "completed"},
            headers=auth_headers(regular_user),
        )

        assert response.status_code == 403

    def test_update_fields(self, client, admin, regular_user, create_order, auth_headers):
        order = create_order(regular_user)

        response = client.patch(
            f"/api/orders/{order.id}",
            json={"address": "2 Side St", "price": "99.99", "unknown": "ignored"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Order updated"
        assert body["order"]["address"] == "2 Side St"
        assert body["order"]["price"] == 99.99
        assert body["order"]["invoice_no"] == order.invoice_no

    @pytest.mark.parametrize("field", ["images", "invoiceNo", "userId"])
    def test_update_protected_field(
        self, client, admin, regular_user, create_order, auth_headers, field
    ):
        order = create_order(regular_user)

        response = client.patch(
            f"/api/orders/{order.id}",
            json={field: "changed"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 400
        assert error_message(response) == f"Field '{field}' cannot be modified"

    def test_update_missing_order(self, client, admin, auth_headers):
        response = client.patch(
            "/api/orders/9999", json={"name": "x"}, headers=auth_headers(admin)
        )

        assert response.status_code == 404

    def test_delete_order(self, client, admin, regular_user, create_order, auth_headers):
        order = create_order(regular_user)

        response = client.delete(f"/api/orders/{order.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json() == {"message": "Order deleted successfully"}

        gone = client.get(f"/api/orders/{order.id}", headers=auth_headers(admin))
        assert gone.status_code == 404

    def test_delete_requires_admin(
        self, client, regular_user, create_order, auth_headers
    ):
        order = create_order(regular_user)

        response = client.delete(
            f"/api/orders/{order.id}", headers=auth_headers(regular_user)
        )

        assert response.status_code == 403
