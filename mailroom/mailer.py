import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from functools import partial

from flask import current_app

logger = logging.getLogger(__name__)


def parse_bool(value):
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_smtp_config(settings):
    return {
        "host": settings.get("SMTP_HOST", ""),
        "port": int(settings.get("SMTP_PORT") or 587),
        "user": settings.get("SMTP_USER", ""),
        "password": settings.get("SMTP_PASS", ""),
        "use_tls": parse_bool(settings.get("SMTP_USE_TLS", "true")),
        "sender": settings.get("SMTP_FROM") or settings.get("SMTP_USER", ""),
        "sender_name": settings.get("SMTP_FROM_NAME", ""),
    }


def build_message(
    config, to, subject, html, attachments=(), from_name=None, reply_to=None
):
    recipients = [to] if isinstance(to, str) else list(to)

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = formataddr((from_name or config["sender_name"], config["sender"]))
    msg["To"] = ", ".join(recipients)
    if reply_to:
        msg["Reply-To"] = reply_to
    msg.set_content(html, subtype="html")

    for attachment in attachments:
        maintype, _, subtype = attachment.content_type.partition("/")
        msg.add_attachment(
            attachment.content,
            maintype=maintype or "application",
            subtype=subtype or "octet-stream",
            filename=attachment.filename,
        )
    return msg


def send_email(
    config, to, subject, html, attachments=(), from_name=None, reply_to=None
):
    if not config["host"]:
        raise RuntimeError("SMTP_HOST is not set")
    if not config["sender"]:
        raise RuntimeError("SMTP_FROM is not set")

    msg = build_message(
        config,
        to,
        subject,
        html,
        attachments=attachments,
        from_name=from_name,
        reply_to=reply_to,
    )

    with smtplib.SMTP(config["host"], config["port"]) as server:
        if config["use_tls"]:
            server.starttls()
        if config["user"]:
            server.login(config["user"], config["password"])
        server.send_message(msg)
    logger.debug("Mail sent to %s", msg["To"])


def get_transport():
    transport = current_app.config.get("MAIL_TRANSPORT")
    if transport is not None:
        return transport
    return partial(send_email, load_smtp_config(current_app.config))
