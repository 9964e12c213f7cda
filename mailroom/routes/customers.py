from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..models import Customer
from ..recipients import (
    create_recipient,
    delete_recipient,
    list_recipients,
    parse_active,
    update_recipient,
)

bp = Blueprint("customers", __name__, url_prefix="/api/customers")

EXTRA_FIELDS = ("phone", "notes")


@bp.before_request
@login_required
def require_login():
    pass


@bp.route("", methods=["GET"])
def list_customers():
    show_all = parse_active(request.args.get("all"), default=False)
    customers = list_recipients(Customer, active_only=not show_all)
    return jsonify([customer.to_dict() for customer in customers])


@bp.route("", methods=["POST"])
def create_customer():
    customer = create_recipient(
        Customer, request.get_json(silent=True) or {}, extra_fields=EXTRA_FIELDS
    )
    return jsonify(customer.to_dict()), 201


@bp.route("/<int:customer_id>", methods=["PUT"])
def update_customer(customer_id):
    customer = update_recipient(
        Customer,
        customer_id,
        request.get_json(silent=True) or {},
        extra_fields=EXTRA_FIELDS,
    )
    return jsonify(customer.to_dict())


@bp.route("/<int:customer_id>", methods=["DELETE"])
def delete_customer(customer_id):
    delete_recipient(Customer, customer_id)
    return jsonify({"success": True})
