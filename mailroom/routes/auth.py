import logging

from flask import Blueprint, jsonify, request, session
from flask_login import current_user, login_user, logout_user

from ..auth import authenticate, end_session, start_session

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/api")


@bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or request.form
    email = authenticate(payload.get("email"), payload.get("password"))
    user = start_session(email)
    login_user(user)
    logger.info("User %s logged in", user.email)
    return jsonify({"success": True, "email": user.email})


@bp.route("/logout", methods=["POST"])
def logout():
    if current_user.is_authenticated:
        end_session(current_user.get_id())
        logger.info("User %s logged out", current_user.email)
    logout_user()
    session.clear()
    return jsonify({"success": True})


@bp.route("/check-auth", methods=["GET"])
def check_auth():
    if current_user.is_authenticated:
        return jsonify({"authenticated": True, "user": current_user.to_dict()})
    return jsonify({"authenticated": False}), 401
