from __future__ import annotations

from flask import Blueprint, jsonify

from app.salon.db import db_session
from app.salon.modules.catalog.models import ServiceCategory, ServiceType
from app.salon.modules.catalog.service import (
    category_to_dict,
    create_category,
    create_service_type,
    delete_category,
    delete_service_type,
    list_categories,
    list_service_types,
    service_type_to_dict,
    update_category,
    update_service_type,
    validate_category_payload,
    validate_service_type_payload,
)
from app.salon.responses import error, int_arg, json_payload, no_content, not_found, validation_failed

bp = Blueprint("catalog", __name__)


# ---------- Categories ----------
@bp.get("/service-categories")
def categories_list():
    s = db_session()
    return jsonify([category_to_dict(c) for c in list_categories(s)])


@bp.post("/service-categories")
def categories_create():
    s = db_session()
    payload = json_payload()
    errors = validate_category_payload(s, payload)
    if errors:
        return validation_failed(errors)
    c = create_category(s, payload)
    s.commit()
    return jsonify(category_to_dict(c)), 201


@bp.get("/service-categories/<int:category_id>")
def category_get(category_id: int):
    s = db_session()
    c = s.get(ServiceCategory, category_id)
    if not c:
        return not_found("Service category")
    return jsonify(category_to_dict(c))


@bp.put("/service-categories/<int:category_id>")
def category_update(category_id: int):
    s = db_session()
    c = s.get(ServiceCategory, category_id)
    if not c:
        return not_found("Service category")
    payload = json_payload()
    errors = validate_category_payload(s, payload, existing=c)
    if errors:
        return validation_failed(errors)
    update_category(s, c, payload)
    s.commit()
    return jsonify(category_to_dict(c))


@bp.delete("/service-categories/<int:category_id>")
def category_delete(category_id: int):
    s = db_session()
    c = s.get(ServiceCategory, category_id)
    if not c:
        return not_found("Service category")
    try:
        delete_category(s, c)
    except ValueError as e:
        s.rollback()
        return error(str(e))
    s.commit()
    return no_content()


# ---------- Service types ----------
@bp.get("/service-types")
def service_types_list():
    s = db_session()
    try:
        category_id = int_arg("categoryId")
    except ValueError:
        return error("categoryId must be a number")
    return jsonify([service_type_to_dict(t) for t in list_service_types(s, category_id=category_id)])


@bp.post("/service-types")
def service_types_create():
    s = db_session()
    payload = json_payload()
    errors = validate_service_type_payload(s, payload)
    if errors:
        return validation_failed(errors)
    t = create_service_type(s, payload)
    s.commit()
    return jsonify(service_type_to_dict(t)), 201


@bp.get("/service-types/<int:service_type_id>")
def service_type_get(service_type_id: int):
    s = db_session()
    t = s.get(ServiceType, service_type_id)
    if not t:
        return not_found("Service type")
    return jsonify(service_type_to_dict(t))


@bp.put("/service-types/<int:service_type_id>")
def service_type_update(service_type_id: int):
    s = db_session()
    t = s.get(ServiceType, service_type_id)
    if not t:
        return not_found("Service type")
    payload = json_payload()
    errors = validate_service_type_payload(s, payload)
    if errors:
        return validation_failed(errors)
    update_service_type(s, t, payload)
    s.commit()
    return jsonify(service_type_to_dict(t))


@bp.delete("/service-types/<int:service_type_id>")
def service_type_delete(service_type_id: int):
    s = db_session()
    t = s.get(ServiceType, service_type_id)
    if not t:
        return not_found("Service type")
    try:
        delete_service_type(s, t)
    except ValueError as e:
        s.rollback()
        return error(str(e))
    s.commit()
    return no_content()
