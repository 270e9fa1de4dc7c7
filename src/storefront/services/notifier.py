"""Order notifications: customer confirmation and operator alert.

Channels implement ``Notifier``; ``NotificationDispatcher`` tries them in
order until one succeeds. Amazon SES is the primary channel. The
client-side channel never sends anything and only records that the
confirmation is left to the browser after the checkout redirect.
"""

import html
import os
from abc import ABC, abstractmethod
from decimal import Decimal
from email.utils import formataddr
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from storefront.models.enums import NotificationTemplate
from storefront.models.notification import NotificationResult
from storefront.models.order import Order
from storefront.utils.logging import get_logger

from .aws_config import get_client_config

logger = get_logger(__name__)

DEFAULT_FROM_NAME = "Storefront"


def customer_name_for(order: Order) -> str:
    """Best display name for the customer of an order.

    Uses firstName/lastName from the order metadata, else the local part
    of the email address.
    """
    first = order.metadata.get("firstName", "").strip()
    last = order.metadata.get("lastName", "").strip()
    full = f"{first} {last}".strip()
    if full:
        return full
    local_part = order.user_email.split("@")[0] if order.user_email else ""
    return local_part or "Customer"


def order_template_data(order: Order) -> dict[str, Any]:
    """Template variables shared by all order notifications."""
    return {
        "order_id": order.id,
        "order_date": order.created_at.strftime("%Y-%m-%d %H:%M UTC"),
        "customer_name": customer_name_for(order),
        "customer_email": order.user_email,
        "currency": order.currency.upper(),
        "total_amount": order.total_amount,
        "items": [
            {"name": item.name, "quantity": item.quantity, "price": item.price}
            for item in order.items
        ],
    }


def _money(amount: Decimal, currency: str) -> str:
    return f"{Decimal(amount):.2f} {currency}"


def render_template(
    template: NotificationTemplate, data: dict[str, Any]
) -> tuple[str, str, str]:
    """Render a template to (subject, html_body, text_body)."""
    currency = data["currency"]
    order_id = data["order_id"]

    if template == NotificationTemplate.ORDER_CONFIRMATION:
        subject = f"Your order #{order_id} is confirmed"
        rows = "".join(
            "<tr>"
            f"<td style=\"padding: 8px;\">{html.escape(item['name'])}</td>"
            f"<td style=\"padding: 8px; text-align: center;\">{item['quantity']}</td>"
            f"<td style=\"padding: 8px; text-align: right;\">{_money(item['price'], currency)}</td>"
            f"<td style=\"padding: 8px; text-align: right;\">"
            f"{_money(item['price'] * item['quantity'], currency)}</td>"
            "</tr>"
            for item in data["items"]
        )
        html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">Order confirmation</h2>
        <p>Hello {html.escape(data['customer_name'])},</p>
        <p>We received your order #{order_id} on <strong>{data['order_date']}</strong>.
        Your payment has been processed.</p>
        <table style="width: 100%; border-collapse: collapse;">
            <tr><th>Product</th><th>Quantity</th><th>Unit price</th><th>Total</th></tr>
            {rows}
        </table>
        <p style="font-size: 18px; font-weight: bold;">Total: {_money(data['total_amount'], currency)}</p>
        <p style="color: #666;">You will receive a shipping confirmation with a tracking number soon.</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
        <p style="color: #999; font-size: 12px;">This email was sent to {html.escape(data['customer_email'])}</p>
    </body>
    </html>
    """
        text_body = f"""
Order confirmation #{order_id}

Hello {data['customer_name']},

Your order was received and paid.

Total: {_money(data['total_amount'], currency)}

Thank you for your purchase!
"""
        return subject, html_body, text_body

    if template == NotificationTemplate.OPERATOR_ALERT:
        subject = f"[ADMIN] New order #{order_id}"
        lines = "\n".join(
            f"- {item['name']} x{item['quantity']} = "
            f"{_money(item['price'] * item['quantity'], currency)}"
            for item in data["items"]
        )
        text_body = f"""
New order received!

Order #{order_id}
Customer: {data['customer_name']} ({data['customer_email']})
Amount: {_money(data['total_amount'], currency)}

Products:
{lines}
"""
        return subject, f"<pre>{html.escape(text_body)}</pre>", text_body

    raise ValueError(f"Unknown notification template: {template}")


class Notifier(ABC):
    """A notification channel."""

    channel: str = "unknown"

    @abstractmethod
    def is_configured(self) -> bool: ...

    @abstractmethod
    def send(
        self,
        template: NotificationTemplate,
        recipient: str,
        data: dict[str, Any],
    ) -> NotificationResult: ...


class SesEmailNotifier(Notifier):
    """Sends notification emails via Amazon SES.

    Configured by SES_FROM_EMAIL, SES_FROM_NAME and SES_REGION.
    """

    channel = "ses"

    def __init__(
        self,
        from_email: str | None = None,
        from_name: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.from_email = from_email or os.environ.get("SES_FROM_EMAIL", "")
        self.from_name = from_name or os.environ.get("SES_FROM_NAME", DEFAULT_FROM_NAME)
        self._client = client

        if not self.from_email:
            logger.warning("SES_FROM_EMAIL is not set, email notifications are disabled")

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "ses",
                region_name=os.environ.get("SES_REGION"),
                config=get_client_config(),
            )
        return self._client

    def is_configured(self) -> bool:
        return bool(self.from_email)

    def send(
        self,
        template: NotificationTemplate,
        recipient: str,
        data: dict[str, Any],
    ) -> NotificationResult:
        if not self.is_configured():
            return NotificationResult(
                success=False,
                error="SES sender is not configured",
                channel=self.channel,
            )

        subject, html_body, text_body = render_template(template, data)

        try:
            response = self._get_client().send_email(
                Source=formataddr((self.from_name, self.from_email)),
                Destination={"ToAddresses": [recipient]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": text_body, "Charset": "UTF-8"},
                        "Html": {"Data": html_body, "Charset": "UTF-8"},
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Failed to send %s email to %s: %s", template.value, recipient, e)
            return NotificationResult(success=False, error=str(e), channel=self.channel)

        message_id = response.get("MessageId")
        logger.info("Sent %s email to %s (id: %s)", template.value, recipient, message_id)
        return NotificationResult(success=True, message_id=message_id, channel=self.channel)


class ClientSideNotifier(Notifier):
    """Leaves the customer confirmation to the browser after redirect.

    Sends nothing. Operator alerts cannot be deferred this way.
    """

    channel = "client"

    def is_configured(self) -> bool:
        return True

    def send(
        self,
        template: NotificationTemplate,
        recipient: str,
        data: dict[str, Any],
    ) -> NotificationResult:
        if template != NotificationTemplate.ORDER_CONFIRMATION:
            return NotificationResult(
                success=False,
                error=f"{template.value} cannot be sent client-side",
                channel=self.channel,
            )
        logger.info("Confirmation for order %s deferred to the client", data.get("order_id"))
        return NotificationResult(
            success=False,
            error="Confirmation deferred to client after redirect",
            channel=self.channel,
            deferred=True,
        )


class NotificationDispatcher:
    """Sends order notifications through the first channel that succeeds."""

    def __init__(self, notifiers: list[Notifier], operator_email: str | None = None) -> None:
        self.notifiers = notifiers
        self.operator_email = (
            operator_email
            or os.environ.get("OPERATOR_EMAIL")
            or os.environ.get("SES_FROM_EMAIL")
        )

    def is_configured(self) -> bool:
        return any(notifier.is_configured() for notifier in self.notifiers)

    def dispatch(
        self,
        template: NotificationTemplate,
        recipient: str,
        data: dict[str, Any],
    ) -> NotificationResult:
        """Try each configured notifier in order. Never raises.

        Returns:
            The first successful result, else the last failure.
        """
        last: NotificationResult | None = None
        for notifier in self.notifiers:
            if not notifier.is_configured():
                continue
            try:
                result = notifier.send(template, recipient, data)
            except Exception as e:
                logger.exception("Notifier %s raised while sending %s", notifier.channel, template.value)
                result = NotificationResult(success=False, error=str(e), channel=notifier.channel)
            if result.success:
                return result
            last = result

        if last is None:
            logger.warning("No notification channel configured for %s", template.value)
            return NotificationResult(success=False, error="No notification channel configured")
        return last

    def send_order_confirmation(self, order: Order) -> NotificationResult:
        """Send the order confirmation to the customer."""
        if not order.user_email:
            return NotificationResult(success=False, error="Order has no customer email")
        return self.dispatch(
            NotificationTemplate.ORDER_CONFIRMATION,
            order.user_email,
            order_template_data(order),
        )

    def send_operator_alert(self, order: Order) -> NotificationResult:
        """Alert the shop operator about a new order."""
        if not self.operator_email:
            logger.warning("No operator email configured, skipping alert for %s", order.id)
            return NotificationResult(success=False, error="No operator email configured")
        return self.dispatch(
            NotificationTemplate.OPERATOR_ALERT,
            self.operator_email,
            order_template_data(order),
        )
