"""
Outbound transactional mail (contract signature requests, inquiry responses).

One MailService is built per app in create_app and kept in
app.extensions["mail"]. The SMTP transport behind it is created on the first
send and reused; SMTP_HOST, SMTP_USER and SMTP_PASS must be configured by then.
"""
from __future__ import annotations

import html
import logging
import smtplib
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Protocol

from flask import current_app

from app.insign.errors import MailConfigurationError, MailDeliveryError

logger = logging.getLogger(__name__)

BRAND = "insign"
SUBJECT_PREFIX = f"[{BRAND}]"
BUTTON_STYLE = (
    "display:inline-block;padding:12px 20px;background:#4F46E5;color:#fff;"
    "border-radius:8px;text-decoration:none;"
)


class Transport(Protocol):
    def send(self, message: EmailMessage) -> None: ...


@dataclass(frozen=True)
class SmtpSettings:
    host: str
    port: int
    user: str
    password: str

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SmtpSettings":
        host = (config.get("SMTP_HOST") or "").strip()
        user = (config.get("SMTP_USER") or "").strip()
        password = config.get("SMTP_PASS") or ""
        missing = [name for name, value in (("SMTP_HOST", host), ("SMTP_USER", user), ("SMTP_PASS", password)) if not value]
        if missing:
            logger.error("SMTP configuration incomplete; missing: %s", ", ".join(missing))
            raise MailConfigurationError()
        return cls(host=host, port=int(config.get("SMTP_PORT") or 465), user=user, password=password)


class SmtpTransport:
    """smtplib delivery. Port 465 uses implicit TLS, anything else STARTTLS."""

    def __init__(self, settings: SmtpSettings, *, timeout: float = 30.0) -> None:
        self.settings = settings
        self.timeout = timeout

    def send(self, message: EmailMessage) -> None:
        st = self.settings
        if st.port == 465:
            with smtplib.SMTP_SSL(st.host, st.port, timeout=self.timeout) as s:
                s.login(st.user, st.password)
                s.send_message(message)
        else:
            with smtplib.SMTP(st.host, st.port, timeout=self.timeout) as s:
                s.starttls()
                s.login(st.user, st.password)
                s.send_message(message)


class MailService:
    def __init__(self, config: Mapping[str, Any], transport: Transport | None = None) -> None:
        self._config = {
            key: config.get(key)
            for key in ("SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASS", "SMTP_FROM")
        }
        self._transport = transport
        self._lock = threading.Lock()

    @property
    def from_address(self) -> str:
        return (self._config.get("SMTP_FROM") or self._config.get("SMTP_USER") or "").strip()

    def _get_transport(self) -> Transport:
        if self._transport is not None:
            return self._transport
        with self._lock:
            if self._transport is None:
                self._transport = SmtpTransport(SmtpSettings.from_config(self._config))
        return self._transport

    def _deliver(self, *, to: str, subject: str, html_body: str, text_body: str, sender: str, context: str) -> None:
        transport = self._get_transport()

        msg = EmailMessage()
        msg["From"] = sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(text_body)
        msg.add_alternative(html_body, subtype="html")

        logger.debug("Sending %s mail to=%s", context, to)
        try:
            transport.send(msg)
        except Exception:
            logger.exception("Mail delivery failed (%s to=%s)", context, to)
            raise MailDeliveryError() from None
        logger.info("Mail sent (%s to=%s)", context, to)

    def send_contract_signature_mail(
        self,
        *,
        to: str,
        contract_name: str,
        link: str,
        sender_name: str | None = None,
    ) -> None:
        from_addr = self.from_address
        display = f"{sender_name}({BRAND})" if sender_name else BRAND
        name = html.escape(contract_name)
        href = html.escape(link, quote=True)

        html_body = f"""
<p>Hello,</p>
<p>You have received a signature request for the contract <strong>{name}</strong>.</p>
<p>Press the button below to review the contract and sign it.</p>
<p><a href="{href}" style="{BUTTON_STYLE}">Review contract</a></p>
<p>If the button does not work, copy this address into your browser:<br />{href}</p>
"""
        text_body = (
            f"You have received a signature request for the contract {contract_name}.\n\n"
            f"Review and sign it here: {link}\n"
        )
        self._deliver(
            to=to,
            subject=f"{SUBJECT_PREFIX} {contract_name} signature request",
            html_body=html_body,
            text_body=text_body,
            sender=formataddr((display, from_addr)),
            context="contract-signature",
        )

    def send_inquiry_response_mail(
        self,
        *,
        to: str,
        inquiry_subject: str,
        inquiry_content: str,
        response_message: str,
    ) -> None:
        subject = html.escape(inquiry_subject)
        content = html.escape(inquiry_content).replace("\n", "<br />")
        response = html.escape(response_message).replace("\n", "<br />")

        html_body = f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h2 style="color: #4F46E5;">{BRAND} support</h2>
  <p>Hello,</p>
  <p>Thank you for contacting us. Our answer to your inquiry is below.</p>
  <div style="background-color: #f5f5f5; padding: 15px; border-left: 4px solid #999; margin: 20px 0;">
    <p style="margin: 0 0 8px 0;"><strong>{subject}</strong></p>
    <p style="margin: 0; color: #555;">{content}</p>
  </div>
  <div style="background-color: #eef2ff; padding: 15px; border-left: 4px solid #4F46E5; margin: 20px 0;">
    <p style="margin: 0;">{response}</p>
  </div>
  <p style="color: #999; font-size: 12px; margin-top: 30px; border-top: 1px solid #eee; padding-top: 20px;">
    This message was sent in reply to an inquiry submitted through {BRAND}.
  </p>
</div>
"""
        text_body = (
            f"Your inquiry: {inquiry_subject}\n\n{inquiry_content}\n\n"
            f"Our answer:\n{response_message}\n"
        )
        self._deliver(
            to=to,
            subject=f"{SUBJECT_PREFIX} Re: {inquiry_subject}",
            html_body=html_body,
            text_body=text_body,
            sender=formataddr((BRAND, self.from_address)),
            context="inquiry-response",
        )


def get_mail_service() -> MailService:
    return current_app.extensions["mail"]
