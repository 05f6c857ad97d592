"""Transactional email through Resend.

Sends are best-effort: failures are logged and never reach the caller.
"""
import logging
from typing import Any, Dict

import resend

import config

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, text: str, html: str | None = None) -> bool:
    if not config.RESEND_API_KEY:
        logger.info("RESEND_API_KEY not set, skipping email '%s' to %s", subject, to)
        return False
    resend.api_key = config.RESEND_API_KEY
    payload: Dict[str, Any] = {
        "from": config.MAIL_FROM,
        "to": [to],
        "subject": subject,
        "text": text,
    }
    if html:
        payload["html"] = html
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.warning("Email '%s' to %s failed: %s", subject, to, exc)
        return False
    if not isinstance(response, dict) or not response.get("id"):
        logger.warning("Email '%s' to %s was not accepted: %s", subject, to, response)
        return False
    return True


def send_order_confirmation(order: Dict[str, Any], plant_name: str):
    customer = order.get("customer") or {}
    text = (
        f"Hi {customer.get('name') or 'there'},\n\n"
        f"Your order for {order['quantity']} x {plant_name} (${order['price']:.2f}) is confirmed.\n"
        f"Transaction: {order.get('transactionId')}\n"
        f"It will ship to: {order.get('address')}\n\n"
        "plantNet"
    )
    return send_email(customer.get("email"), "Your plantNet order is confirmed", text)


def send_seller_alert(order: Dict[str, Any], plant_name: str):
    customer = order.get("customer") or {}
    text = (
        f"You have a new order: {order['quantity']} x {plant_name} "
        f"for {customer.get('name') or customer.get('email')}.\n"
        f"Ship to: {order.get('address')}\n\n"
        "Update the status from your dashboard once it is on its way."
    )
    return send_email(order["seller"], "New plantNet order to fulfil", text)
