"""
Deliver triggered notifications by email (SMTP) or SMS (HTTP webhook).

``ContactDispatcher`` routes by the contact details on the subscription:
email when an address is present, otherwise SMS to the phone number.
Delivery problems raise ``DispatchError`` for the caller to report.
"""
from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

import httpx

from .store import NotificationSubscription

logger = logging.getLogger("alert_dispatch")


class DispatchError(RuntimeError):
    pass


class Dispatcher(Protocol):
    async def send(self, subscription: NotificationSubscription, reading: float) -> None:
        ...


def render_message(subscription: NotificationSubscription, reading: float) -> tuple[str, str]:
    symbol = subscription.stock_symbol.upper()
    direction = subscription.condition.lower()
    subject = f"{symbol} {subscription.indicator} {direction} {subscription.threshold:g}"
    body = (
        f"The {subscription.indicator} of {symbol} is now {reading:.2f}, "
        f"{direction} your threshold of {subscription.threshold:g}."
    )
    return subject, body


class SmtpEmailDispatcher:
    def __init__(self, host: str, port: int, sender: str) -> None:
        self._host = host
        self._port = port
        self._sender = sender

    def _send_sync(self, to_email: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = to_email
        msg["Subject"] = subject
        msg.set_content(body)
        with smtplib.SMTP(host=self._host, port=self._port, timeout=30) as smtp:
            smtp.send_message(msg)

    async def send(self, subscription: NotificationSubscription, reading: float) -> None:
        if not subscription.email:
            raise DispatchError(f"subscription {subscription.id} has no email address")
        subject, body = render_message(subscription, reading)
        try:
            await asyncio.to_thread(self._send_sync, subscription.email, subject, body)
        except (OSError, ValueError, smtplib.SMTPException) as e:
            raise DispatchError(f"SMTP delivery to {subscription.email} failed: {e}") from e
        logger.info("Sent email to %s: %s", subscription.email, subject)


class WebhookSmsDispatcher:
    """POST ``{"to": phone, "message": text}`` to an SMS gateway."""

    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def send(self, subscription: NotificationSubscription, reading: float) -> None:
        if not subscription.phone_number:
            raise DispatchError(f"subscription {subscription.id} has no phone number")
        _, body = render_message(subscription, reading)
        try:
            resp = await self._client.post(
                self._url, json={"to": subscription.phone_number, "message": body}
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise DispatchError(f"SMS delivery to {subscription.phone_number} failed: {e}") from e
        logger.info("Sent SMS to %s", subscription.phone_number)


class ContactDispatcher:
    def __init__(
        self,
        email: Optional[Dispatcher] = None,
        sms: Optional[Dispatcher] = None,
    ) -> None:
        self._email = email
        self._sms = sms

    async def send(self, subscription: NotificationSubscription, reading: float) -> None:
        if subscription.email and self._email is not None:
            await self._email.send(subscription, reading)
        elif subscription.phone_number and self._sms is not None:
            await self._sms.send(subscription, reading)
        else:
            raise DispatchError(f"no delivery channel configured for {subscription.contact_key}")
