import logging

from .errors import BadRequest, NotFound
from .extensions import db
from .models import Attachment, EmailTemplate
from .storage import delete_file, file_exists

logger = logging.getLogger(__name__)

EMPTY_TEMPLATE = {
    "id": None,
    "title": "",
    "subject": "",
    "body_html": "",
    "attachments": [],
}


def current_template():
    """The single template in use: the row with the lowest id, or None."""
    return EmailTemplate.query.order_by(EmailTemplate.id.asc()).first()


def get_template_payload():
    template = current_template()
    if template is None:
        return dict(EMPTY_TEMPLATE, attachments=[])
    return template.to_dict(with_attachments=True)


def _as_id(value, field):
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{field} must be an integer") from None


def _require_text(data, field):
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise BadRequest(f"{field} must be a non-empty string")
    return value


def save_template(data, template_id=None):
    template_id = template_id or data.get("id")
    subject = _require_text(data, "subject")
    body_html = _require_text(data, "body_html")
    title = data.get("title")
    if title is not None and not isinstance(title, str):
        raise BadRequest("title must be a string")

    if template_id:
        template = db.session.get(EmailTemplate, _as_id(template_id, "id"))
        if template is None:
            raise NotFound("Template not found")
        template.subject = subject
        template.body_html = body_html
        if title is not None:
            template.title = title
    else:
        template = EmailTemplate(title=title or "", subject=subject, body_html=body_html)
        db.session.add(template)

    db.session.commit()
    return template


def delete_template(template_id):
    template = db.session.get(EmailTemplate, template_id)
    if template is None:
        raise NotFound("Template not found")
    db.session.delete(template)
    db.session.commit()


def add_attachment(data):
    template_id = data.get("template_id")
    file_name = (data.get("file_name") or "").strip()
    file_url = (data.get("file_url") or "").strip()
    if not template_id or not file_name or not file_url:
        raise BadRequest("template_id, file_name, file_url are required")

    template_id = _as_id(template_id, "template_id")
    if db.session.get(EmailTemplate, template_id) is None:
        raise NotFound("Template not found")
    if not file_exists(file_url):
        raise BadRequest("File does not exist on server. Upload first.")

    attachment = Attachment(
        template_id=template_id, file_name=file_name, file_url=file_url
    )
    db.session.add(attachment)
    db.session.commit()
    return attachment


def delete_attachment(attachment_id, also_delete_file=False):
    if not attachment_id:
        raise BadRequest("id is required")
    attachment = db.session.get(Attachment, _as_id(attachment_id, "id"))
    if attachment is None:
        raise NotFound("Attachment not found")

    file_url = attachment.file_url
    db.session.delete(attachment)
    db.session.commit()

    file_deleted = False
    if also_delete_file and file_url:
        remaining = Attachment.query.filter_by(file_url=file_url).count()
        if remaining == 0:
            file_deleted = delete_file(file_url)
        else:
            logger.info("Keeping %s, still referenced by %d rows", file_url, remaining)
    return file_deleted
