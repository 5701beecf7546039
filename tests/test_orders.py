from decimal import Decimal

from fastapi import status

from storefront.models import NotificationQueueItem, Order
from storefront.schemas.orders import OrderStatus, PaymentStatus


def test_create_custom_order_as_guest(client, test_product, db):
    """Test guest order creation awaiting admin review."""
    response = client.post(
        "/api/orders/create-order",
        json={"cartItems": [{"id": test_product.id, "quantity": 1}]},
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "pending_admin_review"
    assert data["orderNumber"].startswith("ORD-")

    order = db.query(Order).filter(Order.id == data["localOrderId"]).first()
    assert order.user_id is None
    assert order.payment_status == "pending"
    assert order.payment_method == "custom_external"
    assert order.total_amount == Decimal("42.47")


def test_create_custom_order_links_authenticated_user(client, test_user, test_product, auth_headers, db):
    response = client.post(
        "/api/orders/create-order",
        json={"cartItems": [{"id": test_product.id, "quantity": 3}]},
        headers=auth_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    order = db.query(Order).filter(Order.id == response.json()["localOrderId"]).first()
    assert order.user_id == test_user.id
    assert order.subtotal == Decimal("90.00")
    assert order.shipping_amount == Decimal("0.00")


def test_create_custom_order_rejects_zero_quantity(client, test_product):
    response = client.post(
        "/api/orders/create-order",
        json={"cartItems": [{"id": test_product.id, "quantity": 0}]},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Invalid request"


def test_my_orders(client, test_user, test_user2, make_order, auth_headers):
    """Test that the order list only shows the caller's orders."""
    mine = make_order(user=test_user)
    make_order(user=test_user2)

    response = client.get("/api/orders/me", headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert [order["id"] for order in data] == [mine.id]
    assert data[0]["total_amount"] == "42.47"
    assert data[0]["items"][0]["unit_price"] == "30.00"


def test_my_orders_requires_auth(client):
    response = client.get("/api/orders/me")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "Authentication required"


def test_order_status_for_owner(client, test_user, make_order, auth_headers):
    order = make_order(user=test_user, status=OrderStatus.INVOICE_ACCEPTED)

    response = client.get(f"/api/orders/status?orderId={order.id}", headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["currentStatus"] == "invoice_accepted"
    assert data["paymentStatus"] == "pending"
    assert [entry["status"] for entry in data["statusHistory"]] == [
        "pending_admin_review",
        "invoice_sent",
        "invoice_accepted",
    ]
    assert data["statusHistory"][0]["description"] == "Order placed and awaiting admin review"
    assert data["allowedNextStatuses"] == ["paypal_shared", "cancelled"]
    assert data["order"]["id"] == order.id
    assert data["order"]["order_number"] == order.order_number


def test_order_status_for_admin(client, test_user, make_order, admin_headers):
    order = make_order(user=test_user)
    response = client.get(f"/api/orders/status?orderId={order.id}", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK


def test_order_status_other_user_forbidden(client, test_user, make_order, auth_headers_user2):
    order = make_order(user=test_user)
    response = client.get(f"/api/orders/status?orderId={order.id}", headers=auth_headers_user2)
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_order_status_not_found(client, auth_headers):
    response = client.get("/api/orders/status?orderId=9999", headers=auth_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "Order not found: 9999"


def test_order_status_requires_order_id(client, auth_headers):
    response = client.get("/api/orders/status", headers=auth_headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_order_status_requires_auth(client, make_order):
    order = make_order()
    response = client.get(f"/api/orders/status?orderId={order.id}")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_update_status_success(client, test_user, make_order, admin_headers, db):
    """Test admin status update with side effects and customer notification."""
    order = make_order(user=test_user, status=OrderStatus.CONFIRMED, payment_status=PaymentStatus.COMPLETED)

    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "shipped", "notes": "UPS 1Z999"},
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["message"] == "Order status updated successfully"
    assert data["order"]["status"] == "shipped"
    assert data["order"]["shipped_at"] is not None
    assert data["order"]["delivered_at"] is None
    assert data["order"]["notes"] == "UPS 1Z999"

    queued = db.query(NotificationQueueItem).all()
    assert len(queued) == 1
    assert queued[0].kind == "order_status"
    assert queued[0].payload["email"] == "test@example.com"
    assert queued[0].payload["status"] == "shipped"


def test_update_status_guest_order_queues_nothing(client, make_order, admin_headers, db):
    order = make_order()
    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "cancelled"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["order"]["payment_status"] == "failed"
    assert db.query(NotificationQueueItem).count() == 0


def test_update_status_payment_verified_forces_payment_status(client, make_order, admin_headers):
    order = make_order(status=OrderStatus.PAYMENT_SUBMITTED, payment_status=PaymentStatus.SUBMITTED)
    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "payment_verified"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["order"]["payment_status"] == "verified"


def test_update_status_disallowed_transition(client, make_order, admin_headers, db):
    order = make_order()
    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "shipped"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["error_type"] == "TransitionNotAllowedError"
    db.refresh(order)
    assert order.status == "pending_admin_review"


def test_update_status_lenient_mode(client, make_order, admin_headers, monkeypatch):
    monkeypatch.setenv("STRICT_STATUS_TRANSITIONS", "false")
    order = make_order()
    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "shipped"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["order"]["status"] == "shipped"


def test_update_status_invalid_status(client, make_order, admin_headers):
    order = make_order()
    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "processing"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_update_status_not_found(client, admin_headers):
    response = client.patch(
        "/api/orders/update-status?orderId=9999",
        json={"status": "cancelled"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_update_status_requires_admin(client, test_user, make_order, auth_headers):
    order = make_order(user=test_user)
    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "invoice_sent"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["message"] == "Admin access required"


def test_update_status_requires_auth(client, make_order):
    order = make_order()
    response = client.patch(
        f"/api/orders/update-status?orderId={order.id}",
        json={"status": "invoice_sent"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_send_invoice(client, test_user, make_order, admin_headers, db):
    order = make_order(user=test_user)
    response = client.post(
        f"/api/orders/{order.id}/invoice",
        json={"shippingAmount": "15.00", "taxAmount": "2.48", "notes": "Freight quote"},
        headers=admin_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "invoice_sent"
    assert data["shipping_amount"] == "15.00"
    assert data["total_amount"] == "47.48"
    assert db.query(NotificationQueueItem).count() == 1


def test_send_invoice_twice_conflicts(client, make_order, admin_headers):
    order = make_order(status=OrderStatus.INVOICE_SENT)
    response = client.post(f"/api/orders/{order.id}/invoice", json={}, headers=admin_headers)
    assert response.status_code == status.HTTP_409_CONFLICT


def test_send_invoice_rejects_negative_amount(client, make_order, admin_headers):
    order = make_order()
    response = client.post(
        f"/api/orders/{order.id}/invoice",
        json={"shippingAmount": "-1"},
        headers=admin_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_accept_invoice(client, test_user, make_order, auth_headers):
    order = make_order(user=test_user, status=OrderStatus.INVOICE_SENT)
    response = client.post(
        f"/api/orders/{order.id}/invoice/response",
        json={"decision": "accept"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "invoice_accepted"


def test_decline_invoice(client, test_user, make_order, auth_headers):
    order = make_order(user=test_user, status=OrderStatus.INVOICE_SENT)
    response = client.post(
        f"/api/orders/{order.id}/invoice/response",
        json={"decision": "decline"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "invoice_declined"
    assert response.json()["payment_status"] == "failed"


def test_invoice_response_other_user_forbidden(client, test_user, make_order, auth_headers_user2):
    order = make_order(user=test_user, status=OrderStatus.INVOICE_SENT)
    response = client.post(
        f"/api/orders/{order.id}/invoice/response",
        json={"decision": "accept"},
        headers=auth_headers_user2,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_invoice_response_before_invoice_conflicts(client, test_user, make_order, auth_headers):
    order = make_order(user=test_user)
    response = client.post(
        f"/api/orders/{order.id}/invoice/response",
        json={"decision": "accept"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_submit_payment(client, test_user, make_order, auth_headers):
    order = make_order(user=test_user, status=OrderStatus.PAYMENT_PENDING)
    response = client.post(
        f"/api/orders/{order.id}/payment-submission",
        json={"transactionId": "5TY05013RG002845M", "paymentAmount": "42.47"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["status"] == "payment_submitted"
    assert data["payment_status"] == "submitted"
    assert "5TY05013RG002845M" in data["notes"]


def test_submit_payment_requires_positive_amount(client, test_user, make_order, auth_headers):
    order = make_order(user=test_user, status=OrderStatus.PAYMENT_PENDING)
    response = client.post(
        f"/api/orders/{order.id}/payment-submission",
        json={"transactionId": "TX", "paymentAmount": "0"},
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
