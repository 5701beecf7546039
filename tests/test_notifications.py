from unittest.mock import MagicMock, patch

import pytest
from fastapi import status
from pydantic import ValidationError

from storefront.models import NotificationQueueItem
from storefront.schemas.notifications import NewProductNotification, OrderStatusNotification
from storefront.services import email_service
from storefront.services.notification_queue import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    enqueue_notification,
    parse_payload,
    process_pending,
)


def _status_notification(order_id=1, email="test@example.com") -> OrderStatusNotification:
    return OrderStatusNotification(
        order_id=order_id,
        order_number=f"ORD-TEST-{order_id:05d}",
        email=email,
        status="shipped",
        description="Order has been shipped",
    )


def _enqueue(db, payload):
    item = enqueue_notification(db, payload)
    db.commit()
    return item


def test_enqueue_and_parse_payload(db):
    item = _enqueue(db, _status_notification())
    assert item.status == "pending"
    assert item.retry_count == 0
    assert item.kind == "order_status"

    payload = parse_payload(item)
    assert isinstance(payload, OrderStatusNotification)
    assert payload.order_number == "ORD-TEST-00001"


def test_parse_new_product_payload(db):
    item = _enqueue(
        db,
        NewProductNotification(product_id=3, product_name="Turbo Kit", email="a@example.com"),
    )
    assert isinstance(parse_payload(item), NewProductNotification)


def test_new_product_notification_requires_valid_email():
    with pytest.raises(ValidationError):
        NewProductNotification(product_id=3, product_name="Turbo Kit", email="not-an-email")


def test_process_pending_marks_completed(db):
    first = _enqueue(db, _status_notification(1))
    second = _enqueue(db, _status_notification(2))
    sender = MagicMock()

    result = process_pending(db, sender=sender)

    assert (result.processed, result.failed, result.total) == (2, 0, 2)
    assert [call.args[0].order_id for call in sender.call_args_list] == [1, 2]
    db.refresh(first)
    db.refresh(second)
    assert first.status == STATUS_COMPLETED
    assert first.processed_at is not None
    assert second.status == STATUS_COMPLETED


def test_process_pending_failure_does_not_stop_batch(db):
    failing = _enqueue(db, _status_notification(1))
    ok = _enqueue(db, _status_notification(2))

    def sender(payload):
        if payload.order_id == 1:
            raise RuntimeError("SMTP connection refused")

    result = process_pending(db, sender=sender)

    assert (result.processed, result.failed, result.total) == (1, 1, 2)
    db.refresh(failing)
    db.refresh(ok)
    assert failing.status == STATUS_FAILED
    assert failing.retry_count == 1
    assert failing.error_message == "SMTP connection refused"
    assert ok.status == STATUS_COMPLETED


def test_process_pending_retries_until_limit(db):
    item = _enqueue(db, _status_notification())
    sender = MagicMock(side_effect=RuntimeError("boom"))

    for _ in range(3):
        process_pending(db, sender=sender, max_retries=3)

    db.refresh(item)
    assert item.retry_count == 3
    assert item.status == STATUS_FAILED

    result = process_pending(db, sender=sender, max_retries=3)
    assert result.total == 0
    assert sender.call_count == 3


def test_process_pending_failed_item_can_succeed_later(db):
    item = _enqueue(db, _status_notification())
    sender = MagicMock(side_effect=[RuntimeError("temporary"), None])

    process_pending(db, sender=sender)
    process_pending(db, sender=sender)

    db.refresh(item)
    assert item.status == STATUS_COMPLETED
    assert item.retry_count == 1
    assert item.error_message is None


def test_process_pending_retry_resends_only_failed_recipient(db):
    for email in ("a@example.com", "b@example.com"):
        _enqueue(db, NewProductNotification(product_id=3, product_name="Turbo Kit", email=email))
    sent = []

    def sender(payload):
        if payload.email == "b@example.com" and "b@example.com" not in sent:
            sent.append(payload.email)
            raise RuntimeError("mailbox unavailable")
        sent.append(payload.email)

    process_pending(db, sender=sender)
    result = process_pending(db, sender=sender)

    assert (result.processed, result.failed, result.total) == (1, 0, 1)
    assert sent == ["a@example.com", "b@example.com", "b@example.com"]


def test_process_pending_respects_batch_size(db):
    for order_id in range(1, 5):
        _enqueue(db, _status_notification(order_id))

    result = process_pending(db, sender=MagicMock(), batch_size=3)

    assert result.total == 3
    assert db.query(NotificationQueueItem).filter(NotificationQueueItem.status == "pending").count() == 1


def test_process_pending_skips_completed(db):
    item = _enqueue(db, _status_notification())
    item.status = STATUS_COMPLETED
    db.commit()

    result = process_pending(db, sender=MagicMock())
    assert result.total == 0


def test_send_notification_dispatches_order_status():
    with patch("storefront.services.email_service.send_order_status_email") as send_mock:
        email_service.send_notification(_status_notification())
    send_mock.assert_called_once_with(
        to_email="test@example.com",
        order_number="ORD-TEST-00001",
        status="shipped",
        description="Order has been shipped",
    )


def test_send_notification_dispatches_new_product():
    payload = NewProductNotification(product_id=5, product_name="Coilovers", email="a@example.com")
    with patch("storefront.services.email_service.send_new_product_email") as send_mock:
        email_service.send_notification(payload)
    send_mock.assert_called_once_with("a@example.com", "Coilovers", 5)


def test_send_email_requires_smtp_config(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    monkeypatch.delenv("SMTP_FROM_EMAIL", raising=False)
    with pytest.raises(RuntimeError, match="SMTP is not configured"):
        email_service.send_order_status_email("a@example.com", "ORD-1-ABCDE", "shipped", "Order has been shipped")


def test_send_order_status_email_builds_tracking_link(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_FROM_EMAIL", "shop@example.com")
    monkeypatch.setenv("SMTP_USER", "")
    monkeypatch.setenv("FRONTEND_URL", "https://shop.example.com/")

    with patch("storefront.services.email_service.smtplib.SMTP") as smtp_cls:
        email_service.send_order_status_email(
            "a@example.com", "ORD-1-ABCDE", "payment_verified", "Payment verified by admin"
        )

    smtp = smtp_cls.return_value.__enter__.return_value
    smtp.starttls.assert_called_once()
    smtp.login.assert_not_called()
    message = smtp.send_message.call_args.args[0]
    assert message["To"] == "a@example.com"
    assert message["Subject"] == "Order ORD-1-ABCDE: payment verified"
    assert "https://shop.example.com/track-order?order=ORD-1-ABCDE" in message.get_body(("plain",)).get_content()


def test_process_queue_endpoint(client, admin_headers, db):
    _enqueue(db, _status_notification())

    with patch("storefront.services.email_service.send_order_status_email") as send_mock:
        response = client.post("/api/notifications/process-queue", headers=admin_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "message": "Queue processing completed",
        "processed": 1,
        "failed": 0,
        "total": 1,
    }
    send_mock.assert_called_once()


def test_process_queue_endpoint_empty(client, admin_headers):
    response = client.post("/api/notifications/process-queue", headers=admin_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["message"] == "No pending notifications"


def test_process_queue_endpoint_requires_admin(client, auth_headers):
    response = client.post("/api/notifications/process-queue", headers=auth_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
