"""Bulk and test send orchestration.

A send request arrives either as a JSON body or as multipart form data with
the same fields packed into a ``json`` part next to ``attachments`` file
parts. Both shapes are normalized into a :class:`SendRequest` before any
mail is sent.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .email_templates import current_template
from .errors import BadRequest
from .extensions import db
from .mailer import parse_bool
from .models import LOG_STATUS_FAILED, LOG_STATUS_SENT, Authority, EmailLog
from .recipients import normalize_email
from .storage import MailAttachment, guess_content_type, load_template_attachments
from .templating import recipient_variables, render_placeholders, wrap_rtl

logger = logging.getLogger(__name__)

MAX_ERROR_LENGTH = 1000


@dataclass
class SendRequest:
    to: List[dict]
    subject: str
    body: str
    from_name: Optional[str] = None
    reply_to: Optional[str] = None
    include_attachments: bool = True
    attachments: List[MailAttachment] = field(default_factory=list)


def parse_send_request(request):
    if request.mimetype == "multipart/form-data":
        raw = request.form.get("json") or "{}"
        try:
            payload = json.loads(raw)
        except ValueError:
            raise BadRequest("json: malformed JSON payload") from None
        files = [
            MailAttachment(
                filename=upload.filename,
                content=upload.read(),
                content_type=upload.mimetype or guess_content_type(upload.filename),
            )
            for upload in request.files.getlist("attachments")
            if upload and upload.filename
        ]
        return build_send_request(payload, files)

    return build_send_request(request.get_json(silent=True))


def _normalize_recipients(to):
    if not isinstance(to, list) or not to:
        raise BadRequest("to: at least one recipient is required")

    recipients = []
    for index, item in enumerate(to):
        if isinstance(item, str):
            item = {"email": item, "name": ""}
        if not isinstance(item, dict):
            raise BadRequest(f"to[{index}]: expected an object with email and name")
        email = item.get("email")
        if not isinstance(email, str) or not email.strip():
            raise BadRequest(f"to[{index}].email: must be a non-empty string")
        name = item.get("name")
        recipients.append({"email": email.strip(), "name": str(name or "").strip()})
    return recipients


def _require_text(payload, key):
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"{key}: must be a non-empty string")
    return value


def _optional_text(payload, key):
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise BadRequest(f"{key}: must be a string")
    return value.strip() or None


def build_send_request(payload, attachments=()):
    if not isinstance(payload, dict):
        raise BadRequest("request: expected a JSON object")

    include = payload.get("include_attachments")
    return SendRequest(
        to=_normalize_recipients(payload.get("to")),
        subject=_require_text(payload, "subject"),
        body=_require_text(payload, "body"),
        from_name=_optional_text(payload, "from_name"),
        reply_to=_optional_text(payload, "reply_to"),
        include_attachments=True if include is None else parse_bool(include),
        attachments=list(attachments),
    )


def _authority_ids_by_email(recipients):
    emails = {normalize_email(recipient["email"]) for recipient in recipients}
    rows = (
        db.session.query(Authority.id, Authority.email)
        .filter(Authority.email.in_(emails))
        .all()
    )
    return {email: authority_id for authority_id, email in rows}


def resolve_attachments(send_request, template):
    if send_request.attachments:
        return list(send_request.attachments)
    if not send_request.include_attachments or template is None:
        return []
    return load_template_attachments(template.attachments)


def _log_attempt(recipient, authority_id, template_id, error=None):
    db.session.add(
        EmailLog(
            authority_id=authority_id,
            email=recipient["email"],
            template_id=template_id,
            status=LOG_STATUS_FAILED if error else LOG_STATUS_SENT,
            error=error[:MAX_ERROR_LENGTH] if error else None,
        )
    )
    db.session.commit()


def send_bulk(send_request, transport):
    template = current_template()
    template_id = template.id if template else None
    authority_ids = _authority_ids_by_email(send_request.to)
    attachments = resolve_attachments(send_request, template)

    results = []
    for recipient in send_request.to:
        variables = recipient_variables(recipient)
        subject = render_placeholders(send_request.subject, variables)
        html = wrap_rtl(render_placeholders(send_request.body, variables))
        authority_id = authority_ids.get(normalize_email(recipient["email"]))

        try:
            transport(
                recipient["email"],
                subject,
                html,
                attachments=attachments,
                from_name=send_request.from_name,
                reply_to=send_request.reply_to,
            )
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.error("Failed to send to %s: %s", recipient["email"], message)
            _log_attempt(recipient, authority_id, template_id, error=message)
            results.append(
                {"to": recipient["email"], "success": False, "error": message}
            )
            continue

        _log_attempt(recipient, authority_id, template_id)
        results.append({"to": recipient["email"], "success": True})

    failed = sum(1 for result in results if not result["success"])
    logger.info(
        "Bulk send finished: %d sent, %d failed", len(results) - failed, failed
    )
    return {"success": True, "results": results}


def send_test(send_request, transport):
    template = current_template()
    attachments = load_template_attachments(template.attachments) if template else []

    transport(
        [recipient["email"] for recipient in send_request.to],
        send_request.subject,
        wrap_rtl(send_request.body),
        attachments=attachments,
        from_name=send_request.from_name,
        reply_to=send_request.reply_to,
    )
    logger.info("Test mail sent to %d address(es)", len(send_request.to))
    return {"success": True, "sent": True}
