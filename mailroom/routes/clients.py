import io
import os

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..errors import BadRequest
from ..excel import read_recipients
from ..models import Authority
from ..recipients import (
    bulk_create,
    create_recipient,
    delete_recipient,
    list_authorities_with_last_sent,
    parse_active,
    update_recipient,
)

bp = Blueprint("clients", __name__, url_prefix="/api/clients")

ALLOWED_IMPORT_EXTENSIONS = {".xlsx"}


@bp.before_request
@login_required
def require_login():
    pass


@bp.route("", methods=["GET"])
def list_authorities():
    active_only = parse_active(request.args.get("active"), default=False)
    return jsonify(list_authorities_with_last_sent(active_only=active_only))


@bp.route("", methods=["POST"])
def create_authority():
    authority = create_recipient(Authority, request.get_json(silent=True) or {})
    return jsonify(authority.to_dict()), 201


@bp.route("/<int:authority_id>", methods=["PUT"])
def update_authority(authority_id):
    authority = update_recipient(
        Authority, authority_id, request.get_json(silent=True) or {}
    )
    return jsonify(authority.to_dict())


@bp.route("/<int:authority_id>", methods=["DELETE"])
def delete_authority(authority_id):
    delete_recipient(Authority, authority_id)
    return jsonify({"success": True})


@bp.route("/bulk-create", methods=["POST"])
def bulk_create_authorities():
    payload = request.get_json(silent=True) or {}
    created = bulk_create(Authority, payload.get("authorities"))
    return jsonify({"success": True, "created": [a.to_dict() for a in created]})


@bp.route("/import", methods=["POST"])
def import_authorities():
    file = request.files.get("file")
    if not file or not file.filename:
        raise BadRequest("No file uploaded")
    if os.path.splitext(file.filename.lower())[1] not in ALLOWED_IMPORT_EXTENSIONS:
        raise BadRequest("Only .xlsx files are allowed")

    try:
        records = read_recipients(io.BytesIO(file.read()))
    except ValueError as exc:
        raise BadRequest(str(exc)) from exc

    created = bulk_create(Authority, records)
    return jsonify(
        {
            "success": True,
            "total": len(records),
            "created": [a.to_dict() for a in created],
        }
    )
