import smtplib
from email.message import EmailMessage
from urllib.parse import urlencode

from storefront.config import settings
from storefront.schemas.notifications import (
    NewProductNotification,
    NotificationPayload,
    OrderStatusNotification,
)


def _build_frontend_link(path: str, **params) -> str:
    base = f"{settings.FRONTEND_URL.rstrip('/')}/{path.lstrip('/')}"
    if not params:
        return base
    return f"{base}?{urlencode(params)}"


def _send_email(to_email: str, subject: str, text_body: str, html_body: str | None = None) -> None:
    if not settings.SMTP_HOST or not settings.SMTP_FROM_EMAIL:
        raise RuntimeError("SMTP is not configured (SMTP_HOST and SMTP_FROM_EMAIL are required).")

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = f"{settings.SMTP_FROM_NAME} <{settings.SMTP_FROM_EMAIL}>"
    message["To"] = to_email
    message.set_content(text_body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as smtp:
        smtp.ehlo()
        if settings.SMTP_USE_TLS:
            smtp.starttls()
            smtp.ehlo()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(message)


def send_order_status_email(to_email: str, order_number: str, status: str, description: str) -> None:
    link = _build_frontend_link("track-order", order=order_number)
    label = status.replace("_", " ")
    text = (
        f"Your order {order_number} has a new status: {label}.\n\n"
        f"{description}.\n\n"
        f"Track your order here: {link}"
    )
    html = (
        f"<p>Your order <strong>{order_number}</strong> has a new status: {label}.</p>"
        f"<p>{description}.</p>"
        f"<p><a href=\"{link}\">Track your order</a></p>"
    )
    _send_email(
        to_email=to_email,
        subject=f"Order {order_number}: {label}",
        text_body=text,
        html_body=html,
    )


def send_new_product_email(to_email: str, product_name: str, product_id: int) -> None:
    link = _build_frontend_link(f"product/{product_id}")
    text = (
        f"A new item just landed in the shop: {product_name}.\n\n"
        f"Take a look: {link}\n\n"
        "You are receiving this because you subscribed to new arrivals."
    )
    html = (
        f"<p>A new item just landed in the shop: <strong>{product_name}</strong>.</p>"
        f"<p><a href=\"{link}\">View product</a></p>"
        "<p>You are receiving this because you subscribed to new arrivals.</p>"
    )
    _send_email(to_email=to_email, subject=f"New arrival: {product_name}", text_body=text, html_body=html)


def send_notification(payload: NotificationPayload) -> None:
    if isinstance(payload, OrderStatusNotification):
        send_order_status_email(
            to_email=payload.email,
            order_number=payload.order_number,
            status=payload.status,
            description=payload.description,
        )
    elif isinstance(payload, NewProductNotification):
        send_new_product_email(payload.email, payload.product_name, payload.product_id)
    else:
        raise ValueError(f"Unsupported notification kind: {getattr(payload, 'kind', None)}")
