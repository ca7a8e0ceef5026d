from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.salon.db import db_session
from app.salon.modules.customers.service import (
    create_customer,
    customer_detail,
    customer_summary,
    delete_customer,
    get_customer_by_id,
    list_customers_with_summary,
    update_customer,
    validate_customer_payload,
)
from app.salon.modules.service_records.service import list_customer_services, purge_blobs, service_to_dict
from app.salon.responses import json_payload, no_content, not_found, validation_failed
from app.salon.storage import storage_from_config

bp = Blueprint("customers", __name__)


@bp.get("/customers")
def customers_list():
    s = db_session()
    return jsonify(list_customers_with_summary(s, q=request.args.get("q")))


@bp.post("/customers")
def customers_create():
    s = db_session()
    payload = json_payload()
    errors = validate_customer_payload(payload)
    if errors:
        return validation_failed(errors)
    c = create_customer(s, payload)
    s.commit()
    return jsonify(customer_detail(s, c)), 201


@bp.get("/customers/<int:customer_id>")
def customer_get(customer_id: int):
    s = db_session()
    c = get_customer_by_id(s, customer_id)
    if not c:
        return not_found("Customer")
    return jsonify(customer_detail(s, c))


@bp.put("/customers/<int:customer_id>")
def customer_update(customer_id: int):
    s = db_session()
    c = get_customer_by_id(s, customer_id)
    if not c:
        return not_found("Customer")
    payload = json_payload()
    errors = validate_customer_payload(payload)
    if errors:
        return validation_failed(errors)
    update_customer(s, c, payload)
    s.commit()
    return jsonify(customer_detail(s, c))


@bp.delete("/customers/<int:customer_id>")
def customer_delete(customer_id: int):
    s = db_session()
    c = get_customer_by_id(s, customer_id)
    if not c:
        return not_found("Customer")
    keys = delete_customer(s, c)
    s.commit()
    if keys:
        purge_blobs(storage_from_config(current_app.config), keys)
    current_app.logger.info("Deleted customer id=%s (blobs purged=%s)", customer_id, len(keys))
    return no_content()


@bp.get("/customers/<int:customer_id>/summary")
def customer_summary_get(customer_id: int):
    s = db_session()
    if not get_customer_by_id(s, customer_id):
        return not_found("Customer")
    return jsonify(customer_summary(s, customer_id))


@bp.get("/customers/<int:customer_id>/services")
def customer_services(customer_id: int):
    s = db_session()
    if not get_customer_by_id(s, customer_id):
        return not_found("Customer")
    return jsonify([service_to_dict(r) for r in list_customer_services(s, customer_id)])
