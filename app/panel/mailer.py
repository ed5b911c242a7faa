from __future__ import annotations

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app
from markupsafe import escape

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, body: str, *, html: str | None = None) -> bool:
    """
    Send one message through the configured SMTP server.

    Returns False (and logs) when SMTP is not configured or delivery fails;
    callers treat mail as best effort and never fail the request on it.
    """
    cfg = current_app.config
    smtp_server = (cfg.get("SMTP_SERVER") or "").strip()
    smtp_port = (cfg.get("SMTP_PORT") or "").strip()
    smtp_username = (cfg.get("SMTP_USERNAME") or "").strip()
    smtp_password = (cfg.get("SMTP_PASSWORD") or "").strip()
    email_from = (cfg.get("EMAIL_FROM") or smtp_username).strip()

    if not smtp_server:
        logger.warning("SMTP_SERVER not configured; skipping email to %s (%s)", to, subject)
        return False
    if not email_from:
        logger.warning("EMAIL_FROM not configured; skipping email to %s (%s)", to, subject)
        return False

    if html:
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(html, "html"))
    else:
        msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = email_from
    msg["To"] = to

    timeout = int(cfg.get("SMTP_TIMEOUT_SECONDS") or 30)
    try:
        port = int(smtp_port) if smtp_port else 0
        if port == 465:
            # implicit TLS; STARTTLS does not apply
            server = smtplib.SMTP_SSL(smtp_server, port, timeout=timeout, context=ssl.create_default_context())
        else:
            server = smtplib.SMTP(smtp_server, port, timeout=timeout)
        try:
            if port != 465 and cfg.get("SMTP_USE_TLS", True):
                server.starttls(context=ssl.create_default_context())
            if smtp_username and smtp_password:
                server.login(smtp_username, smtp_password)
            server.send_message(msg)
        finally:
            server.quit()
    except smtplib.SMTPAuthenticationError as e:
        logger.error("SMTP authentication failed sending to %s: %s", to, e)
        return False
    except (smtplib.SMTPException, OSError, ValueError) as e:
        logger.exception("Email send failed to %s: %s", to, e)
        return False

    logger.info("Sent email to %s subject=%r", to, subject)
    return True


def send_otp_email(to: str, name: str, otp: str, *, resend: bool = False) -> bool:
    minutes = max(1, int(current_app.config.get("OTP_EXPIRE_SECONDS") or 300) // 60)
    subject = "Your new password reset code" if resend else "Password reset code"
    body = (
        f"Hello {name},\n\n"
        f"Your one-time password is {otp}. It expires in {minutes} minutes.\n\n"
        "If you did not request a password reset, you can ignore this email.\n"
    )
    html = (
        f"<p>Hello <strong>{escape(name)}</strong>,</p>"
        f"<p>Your one-time password is:</p>"
        f"<p style=\"font-size:24px;letter-spacing:4px;font-weight:bold\">{otp}</p>"
        f"<p>It expires in {minutes} minutes.</p>"
        "<p>If you did not request a password reset, you can ignore this email.</p>"
    )
    return send_email(to, subject, body, html=html)


def send_welcome_email(to: str, name: str, temp_password: str | None = None) -> bool:
    lines = [
        f"Dear {name},",
        "",
        "Your admin panel account has been created.",
        f"You can now log in with your registered email: {to}",
    ]
    if temp_password:
        lines += ["", f"Temporary password: {temp_password}", "Please change your password after your first login."]
    lines += ["", "This is an automated email. Please do not reply to this message."]
    return send_email(to, f"Welcome to the team, {name}!", "\n".join(lines))
