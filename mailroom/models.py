from datetime import datetime

from .extensions import db

LOG_STATUS_SENT = "sent"
LOG_STATUS_FAILED = "failed"


class Authority(db.Model):
    __tablename__ = "authorities"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(320), unique=True, nullable=False)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "active": self.active,
            "created_at": _isoformat(self.created_at),
        }


class Customer(db.Model):
    __tablename__ = "customers"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(320), unique=True, nullable=False)
    phone = db.Column(db.String(50), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "notes": self.notes,
            "active": self.active,
            "created_at": _isoformat(self.created_at),
        }


class EmailTemplate(db.Model):
    __tablename__ = "email_templates"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, default="")
    subject = db.Column(db.Text, nullable=False)
    body_html = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(
        db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    attachments = db.relationship(
        "Attachment",
        backref="template",
        cascade="all, delete-orphan",
        order_by="Attachment.id",
        lazy=True,
    )

    def to_dict(self, with_attachments=False):
        data = {
            "id": self.id,
            "title": self.title,
            "subject": self.subject,
            "body_html": self.body_html,
        }
        if with_attachments:
            data["attachments"] = [att.to_dict() for att in self.attachments]
        return data


class Attachment(db.Model):
    __tablename__ = "attachments"

    id = db.Column(db.Integer, primary_key=True)
    template_id = db.Column(
        db.Integer,
        db.ForeignKey("email_templates.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_name = db.Column(db.String(500), nullable=False)
    file_url = db.Column(db.String(500), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_url": self.file_url,
            "created_at": _isoformat(self.created_at),
        }


class EmailLog(db.Model):
    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    authority_id = db.Column(
        db.Integer,
        db.ForeignKey("authorities.id", ondelete="SET NULL"),
        nullable=True,
    )
    email = db.Column(db.String(320), nullable=False)
    template_id = db.Column(
        db.Integer,
        db.ForeignKey("email_templates.id", ondelete="SET NULL"),
        nullable=True,
    )
    status = db.Column(db.String(20), nullable=False)
    error = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    authority = db.relationship("Authority", lazy=True)

    __table_args__ = (
        db.CheckConstraint(
            f"status IN ('{LOG_STATUS_SENT}', '{LOG_STATUS_FAILED}')",
            name="email_logs_status_check",
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "authority_id": self.authority_id,
            "authority_name": self.authority.name if self.authority else None,
            "email": self.email,
            "template_id": self.template_id,
            "status": self.status,
            "error": self.error,
            "created_at": _isoformat(self.created_at),
        }


class LoginSession(db.Model):
    __tablename__ = "login_sessions"

    token = db.Column(db.String(64), primary_key=True)
    email = db.Column(db.String(320), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


def _isoformat(value):
    return value.isoformat() if value else None


__all__ = [
    "Authority",
    "Customer",
    "EmailTemplate",
    "Attachment",
    "EmailLog",
    "LoginSession",
    "LOG_STATUS_SENT",
    "LOG_STATUS_FAILED",
]
