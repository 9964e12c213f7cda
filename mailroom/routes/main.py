from flask import Blueprint, current_app, jsonify, send_from_directory

bp = Blueprint("main", __name__)


@bp.route("/attachments/<path:filename>")
def download_attachment(filename):
    return send_from_directory(current_app.config["ATTACHMENTS_FOLDER"], filename)


@bp.route("/api/health")
def health():
    return jsonify({"status": "ok", "version": current_app.config["APP_VERSION"]})
