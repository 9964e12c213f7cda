import logging
import mimetypes
import os
import secrets
import time
from dataclasses import dataclass

from flask import current_app
from werkzeug.utils import safe_join

logger = logging.getLogger(__name__)

ALLOWED_ATTACHMENT_EXTENSIONS = {".pdf"}
ATTACHMENTS_URL_PREFIX = "/attachments/"


@dataclass(frozen=True)
class MailAttachment:
    filename: str
    content: bytes
    content_type: str


def attachments_folder():
    return current_app.config["ATTACHMENTS_FOLDER"]


def allowed_attachment(filename):
    return os.path.splitext((filename or "").lower())[1] in ALLOWED_ATTACHMENT_EXTENSIONS


def generate_safe_filename(original_name):
    ext = os.path.splitext(original_name or "")[1].lower()
    if not ext.isascii():
        ext = ""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"


def save_upload(file_storage):
    folder = attachments_folder()
    os.makedirs(folder, exist_ok=True)

    saved_name = generate_safe_filename(file_storage.filename)
    file_storage.save(os.path.join(folder, saved_name))
    logger.info("Stored upload %r as %s", file_storage.filename, saved_name)
    return saved_name


def file_url_for(saved_name):
    return f"{ATTACHMENTS_URL_PREFIX}{saved_name}"


def resolve_disk_path(file_url):
    relative = str(file_url or "").lstrip("/")
    prefix = ATTACHMENTS_URL_PREFIX.lstrip("/")
    if relative.startswith(prefix):
        relative = relative[len(prefix):]
    if not relative:
        return None
    return safe_join(attachments_folder(), relative)


def file_exists(file_url):
    path = resolve_disk_path(file_url)
    return bool(path) and os.path.isfile(path)


def delete_file(file_url):
    path = resolve_disk_path(file_url)
    if not path:
        return False
    try:
        os.remove(path)
    except OSError:
        logger.warning("Could not delete attachment file (may not exist): %s", path)
        return False
    logger.info("Deleted attachment file %s", path)
    return True


def guess_content_type(filename):
    return mimetypes.guess_type(filename or "")[0] or "application/octet-stream"


def load_template_attachments(attachment_rows):
    """Read the files behind attachment metadata rows.

    Rows whose file is missing on disk are skipped with a warning.
    """
    loaded = []
    for row in attachment_rows:
        path = resolve_disk_path(row.file_url)
        if not path or not os.path.isfile(path):
            logger.warning(
                "Attachment %s (%s) is missing on disk, skipping", row.id, row.file_url
            )
            continue
        with open(path, "rb") as handle:
            content = handle.read()
        loaded.append(
            MailAttachment(
                filename=row.file_name,
                content=content,
                content_type=guess_content_type(path),
            )
        )

    if attachment_rows and not loaded:
        logger.warning(
            "All %d template attachments are missing, sending without attachments",
            len(attachment_rows),
        )
    return loaded
