"""SMTP delivery. Returns False instead of raising so callers stay best-effort."""
from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email import encoders
from email.utils import formataddr
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


def is_configured() -> bool:
    return bool(settings.smtp_enabled and settings.smtp_host and settings.smtp_port and settings.smtp_user)


def build_message(
    to: str,
    subject: str,
    text: str,
    html: str | None = None,
    attachments: Optional[list[dict]] = None,
    from_name: str | None = None,
) -> MIMEMultipart:
    """
    attachments: [{"filename": "x.ics", "content": "...", "content_type": "text/calendar"}]
    """
    from_email = settings.smtp_from_email or settings.smtp_user or ""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = formataddr((from_name or settings.smtp_from_name or settings.site_title, from_email))
    msg["To"] = to

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(text, "plain", "utf-8"))
    if html:
        body.attach(MIMEText(html, "html", "utf-8"))
    msg.attach(body)

    for attachment in attachments or []:
        maintype, _, subtype = attachment.get("content_type", "application/octet-stream").partition("/")
        part = MIMEBase(maintype, subtype or "octet-stream")
        content = attachment["content"]
        part.set_payload(content.encode("utf-8") if isinstance(content, str) else content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", f'attachment; filename="{attachment["filename"]}"')
        msg.attach(part)
    return msg


def send_email(
    to: str,
    subject: str,
    text: str,
    html: str | None = None,
    attachments: Optional[list[dict]] = None,
    from_name: str | None = None,
) -> bool:
    if not is_configured():
        logger.info("SMTP is not configured or disabled, skipping email to %s", to)
        return False

    msg = build_message(to, subject, text, html=html, attachments=attachments, from_name=from_name)
    host = settings.smtp_host
    port = settings.smtp_port
    timeout = settings.smtp_timeout_seconds
    try:
        if port == 465:
            server = smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=timeout)
        else:
            server = smtplib.SMTP(host, port, timeout=timeout)
        with server:
            if port != 465:
                server.starttls(context=ssl.create_default_context())
            server.login(settings.smtp_user, settings.smtp_password or "")
            server.sendmail(msg["From"], [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Email to %s failed (%s): %s", to, subject, exc)
        return False

    logger.info("Email sent to %s: %s", to, subject)
    return True
