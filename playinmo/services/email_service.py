"""
playinmo.services.email_service — Outbound Mail via SendGrid
==============================================================

Sends through the SendGrid v3 REST API with httpx.  Every attempt is
recorded in ``email_logs``:

* ``sent``    — SendGrid accepted the message (2xx).
* ``failed``  — transport error or non-2xx response.
* ``skipped`` — ``SENDGRID_API_KEY`` is not configured.

Delivery failures never raise; callers read the returned status.
"""

from __future__ import annotations

import logging
import os

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from playinmo.constants import isoformat
from playinmo.database.engine import get_session
from playinmo.database.models import EmailLog, EmailStatus

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"

_OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #6d28d9; text-align: center;">{site_name} CMS</h1>
  <div style="padding: 20px; border: 1px solid #e5e7eb; border-radius: 8px;">
    <h2>Your Login Verification Code</h2>
    <p>Please use the following code to log in to the {site_name} CMS:</p>
    <div style="background-color: #f3f4f6; padding: 15px; text-align: center;
                font-size: 24px; letter-spacing: 5px; font-weight: bold;">{code}</div>
    <p>This code will expire in {ttl} minutes.</p>
    <p style="color: #6b7280; font-size: 14px;">
      If you didn't request this code, please ignore this email.
    </p>
  </div>
</div>
"""


def _log_attempt(
    engine, *, recipient: str, subject: str, email_type: str, status: str,
    error: str | None = None,
) -> None:
    with get_session(engine) as session:
        session.add(EmailLog(
            recipient=recipient,
            subject=subject,
            email_type=email_type,
            status=status,
            error=error,
        ))


def send_email(
    engine,
    *,
    to: str,
    subject: str,
    text: str,
    html: str,
    email_type: str,
    sender: str,
    transport: httpx.BaseTransport | None = None,
) -> str:
    """Send one message and return its :class:`EmailStatus` value."""
    api_key = os.getenv("SENDGRID_API_KEY", "").strip()
    if not api_key:
        logger.warning("SENDGRID_API_KEY not set; skipping %s email to %s", email_type, to)
        _log_attempt(engine, recipient=to, subject=subject, email_type=email_type,
                     status=EmailStatus.SKIPPED.value, error="SENDGRID_API_KEY not configured")
        return EmailStatus.SKIPPED.value

    payload = {
        "personalizations": [{"to": [{"email": to}]}],
        "from": {"email": sender},
        "subject": subject,
        "content": [
            {"type": "text/plain", "value": text},
            {"type": "text/html", "value": html},
        ],
    }
    error: str | None = None
    try:
        with httpx.Client(timeout=10, transport=transport) as client:
            resp = client.post(
                SENDGRID_URL,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        if resp.status_code >= 300:
            error = f"SendGrid returned {resp.status_code}: {resp.text[:500]}"
    except httpx.HTTPError as exc:
        error = f"{type(exc).__name__}: {exc}"

    status = EmailStatus.FAILED.value if error else EmailStatus.SENT.value
    if error:
        logger.error("Failed to send %s email to %s: %s", email_type, to, error)
    else:
        logger.info("Sent %s email to %s", email_type, to)
    _log_attempt(engine, recipient=to, subject=subject, email_type=email_type,
                 status=status, error=error)
    return status


def send_otp_email(
    engine,
    *,
    to: str,
    code: str,
    site_name: str,
    sender: str,
    ttl_minutes: int,
    transport: httpx.BaseTransport | None = None,
) -> str:
    return send_email(
        engine,
        to=to,
        subject=f"Your {site_name} CMS Login Code",
        text=f"Your verification code is: {code}. It will expire in {ttl_minutes} minutes.",
        html=_OTP_HTML.format(site_name=site_name, code=code, ttl=ttl_minutes),
        email_type="otp",
        sender=sender,
        transport=transport,
    )


def list_email_logs(session: Session, limit: int = 100) -> list[dict]:
    rows = session.scalars(
        select(EmailLog).order_by(EmailLog.created_at.desc(), EmailLog.id.desc()).limit(limit)
    )
    return [
        {
            "id": e.id,
            "recipient": e.recipient,
            "subject": e.subject,
            "email_type": e.email_type,
            "status": e.status,
            "error": e.error,
            "created_at": isoformat(e.created_at),
        }
        for e in rows
    ]
