import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from .errors import BadRequest, Conflict, NotFound
from .extensions import db
from .models import LOG_STATUS_SENT, Authority, EmailLog

logger = logging.getLogger(__name__)

INACTIVE_VALUES = {"0", "false", "no", "off", "inactive", "disabled"}


def parse_active(value, default=True):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in INACTIVE_VALUES


def _clean_text(value):
    if value is None:
        return None
    return str(value).strip()


def normalize_email(value):
    email = _clean_text(value)
    return email.lower() if email else email


def list_recipients(model, active_only=False):
    query = model.query
    if active_only:
        query = query.filter(model.active.is_(True))
    return query.order_by(model.name.asc()).all()


def list_authorities_with_last_sent(active_only=False):
    last_sent = (
        db.session.query(
            EmailLog.authority_id.label("authority_id"),
            func.max(EmailLog.created_at).label("last_sent_at"),
        )
        .filter(EmailLog.status == LOG_STATUS_SENT)
        .group_by(EmailLog.authority_id)
        .subquery()
    )
    query = db.session.query(Authority, last_sent.c.last_sent_at).outerjoin(
        last_sent, last_sent.c.authority_id == Authority.id
    )
    if active_only:
        query = query.filter(Authority.active.is_(True))

    rows = []
    for authority, last_sent_at in query.order_by(Authority.name.asc()).all():
        data = authority.to_dict()
        data["last_email_sent"] = last_sent_at.isoformat() if last_sent_at else None
        rows.append(data)
    return rows


def _commit_or_conflict():
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict("Email already exists") from None


def create_recipient(model, data, extra_fields=()):
    name = _clean_text(data.get("name"))
    email = normalize_email(data.get("email"))
    if not name or not email:
        raise BadRequest("name and email are required")

    recipient = model(name=name, email=email, active=parse_active(data.get("active")))
    for field in extra_fields:
        if field in data:
            setattr(recipient, field, _clean_text(data[field]) or None)

    db.session.add(recipient)
    _commit_or_conflict()
    logger.info("Created %s %s <%s>", model.__name__, recipient.id, email)
    return recipient


def get_recipient(model, recipient_id):
    recipient = db.session.get(model, recipient_id)
    if recipient is None:
        raise NotFound("Not found")
    return recipient


def update_recipient(model, recipient_id, data, extra_fields=()):
    recipient = get_recipient(model, recipient_id)

    cleaners = {"name": _clean_text, "email": normalize_email}
    for field, clean in cleaners.items():
        if data.get(field) is None:
            continue
        value = clean(data[field])
        if not value:
            raise BadRequest(f"{field} must not be empty")
        setattr(recipient, field, value)
    if data.get("active") is not None:
        recipient.active = parse_active(data["active"])
    for field in extra_fields:
        if field in data:
            setattr(recipient, field, _clean_text(data[field]) or None)

    _commit_or_conflict()
    return recipient


def delete_recipient(model, recipient_id):
    recipient = get_recipient(model, recipient_id)
    db.session.delete(recipient)
    db.session.commit()
    logger.info("Deleted %s %s", model.__name__, recipient_id)


def bulk_create(model, entries):
    """Insert the entries whose email is not stored yet; return the new rows."""
    if not isinstance(entries, list):
        raise BadRequest("authorities must be a list")

    candidates = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        name = _clean_text(entry.get("name"))
        email = normalize_email(entry.get("email"))
        if not name or not email:
            continue
        candidates.append((name, email, entry))

    emails = {email for _, email, _ in candidates}
    seen = set()
    if emails:
        existing = model.query.filter(model.email.in_(emails)).all()
        seen = {row.email for row in existing}

    created = []
    for name, email, entry in candidates:
        if email in seen:
            continue
        seen.add(email)
        active = entry.get("active")
        if active is None:
            active = entry.get("status")
        recipient = model(name=name, email=email, active=parse_active(active))
        db.session.add(recipient)
        created.append(recipient)

    db.session.commit()
    logger.info(
        "Bulk create: %d of %d %s rows inserted",
        len(created),
        len(entries),
        model.__name__,
    )
    return created
