from flask import Blueprint, jsonify, request
from flask_login import current_user

from ..auth import require_api_token
from ..email_templates import (
    add_attachment,
    delete_attachment,
    delete_template,
    get_template_payload,
    save_template,
)
from ..errors import BadRequest
from ..extensions import login_manager
from ..mailer import get_transport, parse_bool
from ..models import EmailLog
from ..sender import build_send_request, parse_send_request, send_bulk, send_test
from ..storage import allowed_attachment, file_url_for, save_upload

bp = Blueprint("email", __name__, url_prefix="/api/email")

DEFAULT_LOG_LIMIT = 200
TOKEN_ENDPOINTS = {"email.send_all_token"}


@bp.before_request
def require_login():
    if request.method == "OPTIONS" or request.endpoint in TOKEN_ENDPOINTS:
        return None
    if not current_user.is_authenticated:
        return login_manager.unauthorized()
    return None


@bp.route("/template", methods=["GET"])
def get_template():
    return jsonify(get_template_payload())


@bp.route("/template", methods=["POST"])
def create_or_update_template():
    template = save_template(request.get_json(silent=True) or {})
    return jsonify(template.to_dict())


@bp.route("/template/<int:template_id>", methods=["PUT"])
def update_template(template_id):
    template = save_template(request.get_json(silent=True) or {}, template_id)
    return jsonify(template.to_dict())


@bp.route("/template/<int:template_id>", methods=["DELETE"])
def remove_template(template_id):
    delete_template(template_id)
    return jsonify({"success": True, "deleted": template_id})


@bp.route("/upload-attachment", methods=["POST"])
def upload_attachment():
    file = request.files.get("file")
    if not file or not file.filename:
        raise BadRequest("No file uploaded")
    if not allowed_attachment(file.filename):
        raise BadRequest("Only PDF files allowed")

    saved_name = save_upload(file)
    return jsonify(
        {
            "success": True,
            "savedFilename": saved_name,
            "originalFilename": file.filename,
            "fileUrl": file_url_for(saved_name),
        }
    )


@bp.route("/attachments", methods=["POST"])
def create_attachment():
    attachment = add_attachment(request.get_json(silent=True) or {})
    return jsonify(attachment.to_dict())


@bp.route("/attachments/delete", methods=["POST"])
def remove_attachment():
    payload = request.get_json(silent=True) or {}
    attachment_id = payload.get("id")
    file_deleted = delete_attachment(
        attachment_id, also_delete_file=parse_bool(payload.get("also_delete_file"))
    )
    return jsonify({"ok": True, "deleted": attachment_id, "file_deleted": file_deleted})


@bp.route("/send-all", methods=["POST"])
def send_all():
    return jsonify(send_bulk(parse_send_request(request), get_transport()))


@bp.route("/send-all-token", methods=["POST"])
@require_api_token
def send_all_token():
    return jsonify(send_bulk(parse_send_request(request), get_transport()))


@bp.route("/test-send", methods=["POST"])
def test_send():
    send_request = build_send_request(request.get_json(silent=True))
    return jsonify(send_test(send_request, get_transport()))


@bp.route("/logs", methods=["GET"])
def list_logs():
    limit = request.args.get("limit", DEFAULT_LOG_LIMIT, type=int)
    query = EmailLog.query
    status = request.args.get("status")
    if status:
        query = query.filter(EmailLog.status == status)
    logs = (
        query.order_by(EmailLog.created_at.desc(), EmailLog.id.desc())
        .limit(max(1, min(limit, 1000)))
        .all()
    )
    return jsonify([log.to_dict() for log in logs])
