"""Notification dispatcher: renders workflow emails and sends them over SMTP.

``EmailDispatcher.send`` never raises. Callers fan out to many people and
must keep going when one address fails, so every outcome comes back as a
``DispatchResult``.
"""

import logging
import smtplib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import TypeVar

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.metrics import EMAILS_SENT
from app.services.workflow_config import EmailConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    attachments: list[EmailAttachment] = field(default_factory=list)


@dataclass
class DispatchResult:
    to: str
    success: bool
    error: str | None = None


def render_signature_request(
    recipient_name: str,
    recipient_email: str,
    document_title: str,
    sender_name: str,
    signing_url: str,
) -> EmailMessage:
    html = _env.get_template("signature_request.html").render(
        recipient_name=recipient_name,
        document_title=document_title,
        sender_name=sender_name,
        signing_url=signing_url,
    )
    return EmailMessage(
        to=recipient_email,
        subject=f'{sender_name} has requested your signature on "{document_title}"',
        html=html,
    )


def render_reminder(
    recipient_name: str,
    recipient_email: str,
    document_title: str,
    sender_name: str,
    signing_url: str,
) -> EmailMessage:
    html = _env.get_template("reminder.html").render(
        recipient_name=recipient_name,
        document_title=document_title,
        sender_name=sender_name,
        signing_url=signing_url,
    )
    return EmailMessage(
        to=recipient_email,
        subject=f'Reminder: "{document_title}" is waiting for your signature',
        html=html,
    )


def render_completion(
    recipient_name: str,
    recipient_email: str,
    document_title: str,
    download_url: str | None,
    attachment: EmailAttachment | None = None,
    too_large: bool = False,
) -> EmailMessage:
    html = _env.get_template("completion.html").render(
        recipient_name=recipient_name,
        document_title=document_title,
        download_url=download_url,
        attached=attachment is not None,
        too_large=too_large,
    )
    return EmailMessage(
        to=recipient_email,
        subject=f'"{document_title}" has been completed',
        html=html,
        attachments=[attachment] if attachment else [],
    )


def _create_smtp_client(host: str, port: int, use_ssl: bool, timeout: int | None = None):
    if use_ssl:
        if timeout is None:
            return smtplib.SMTP_SSL(host, port)
        return smtplib.SMTP_SSL(host, port, timeout=timeout)
    if timeout is None:
        return smtplib.SMTP(host, port)
    return smtplib.SMTP(host, port, timeout=timeout)


class EmailDispatcher:
    def __init__(self, config: EmailConfig):
        self.config = config

    def _build(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("mixed")
        msg["Subject"] = message.subject
        msg["From"] = f"{self.config.from_name} <{self.config.from_email}>"
        msg["To"] = message.to

        body = MIMEMultipart("alternative")
        body.attach(MIMEText(message.html, "html"))
        msg.attach(body)

        for attachment in message.attachments:
            _, _, subtype = attachment.content_type.partition("/")
            part = MIMEApplication(attachment.content, _subtype=subtype or "octet-stream")
            part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
            msg.attach(part)
        return msg

    def send(self, message: EmailMessage, kind: str = "generic") -> DispatchResult:
        """Send one message. Failures are logged and reported, never raised."""
        if not self.config.host:
            logger.info(
                "SMTP_HOST not configured. Email would be sent to %s: %s (%d attachments)",
                message.to,
                message.subject,
                len(message.attachments),
            )
            EMAILS_SENT.labels(kind=kind, outcome="skipped").inc()
            return DispatchResult(to=message.to, success=True)

        msg = self._build(message)
        try:
            server = _create_smtp_client(
                self.config.host,
                self.config.port,
                self.config.use_ssl,
                timeout=self.config.timeout,
            )
            if self.config.use_tls and not self.config.use_ssl:
                server.starttls()
            if self.config.username and self.config.password:
                server.login(self.config.username, self.config.password)
            server.sendmail(self.config.from_email, [message.to], msg.as_string())
            server.quit()
        except smtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed for %s: %s", message.to, exc)
            EMAILS_SENT.labels(kind=kind, outcome="failed").inc()
            return DispatchResult(to=message.to, success=False, error="SMTP authentication failed")
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", message.to, exc)
            EMAILS_SENT.labels(kind=kind, outcome="failed").inc()
            return DispatchResult(to=message.to, success=False, error=str(exc) or type(exc).__name__)

        logger.info("Email sent successfully to %s", message.to)
        EMAILS_SENT.labels(kind=kind, outcome="sent").inc()
        return DispatchResult(to=message.to, success=True)


def deliver_each(
    items: Iterable[T],
    attempt: Callable[[T], DispatchResult],
    address: Callable[[T], str] = str,
) -> list[DispatchResult]:
    """Run ``attempt`` for every item and collect the results.

    Each attempt is its own failure boundary. A failed result, or an error
    raised while rendering, sending or auditing one item, is logged and
    recorded as a failed ``DispatchResult``; the loop moves on to the next
    item. ``address`` names the item in that result.
    """
    results: list[DispatchResult] = []
    for item in items:
        try:
            result = attempt(item)
        except Exception as exc:
            logger.exception("Delivery to %s aborted", address(item))
            results.append(
                DispatchResult(
                    to=address(item), success=False, error=str(exc) or type(exc).__name__
                )
            )
            continue
        if not result.success:
            logger.warning("Delivery to %s failed: %s", result.to, result.error)
        results.append(result)
    return results
