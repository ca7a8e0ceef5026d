from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.salon.db import db_session
from app.salon.modules.catalog.models import ServiceType
from app.salon.modules.staff.models import StaffMember, StaffServiceAssignment
from app.salon.modules.staff.service import (
    AlreadyAssignedError,
    assign_service,
    assignment_to_dict,
    create_staff,
    delete_staff,
    list_staff,
    remove_assignment,
    staff_to_dict,
    update_staff,
    validate_staff_payload,
)
from app.salon.responses import error, json_payload, no_content, not_found, validation_failed

bp = Blueprint("staff", __name__)


@bp.get("/staff")
def staff_list():
    s = db_session()
    return jsonify([staff_to_dict(m) for m in list_staff(s, q=request.args.get("q"))])


@bp.post("/staff")
def staff_create():
    s = db_session()
    payload = json_payload()
    errors = validate_staff_payload(payload)
    if errors:
        return validation_failed(errors)
    m = create_staff(s, payload)
    s.commit()
    return jsonify(staff_to_dict(m)), 201


@bp.get("/staff/<int:staff_id>")
def staff_get(staff_id: int):
    s = db_session()
    m = s.get(StaffMember, staff_id)
    if not m:
        return not_found("Staff member")
    return jsonify(staff_to_dict(m))


@bp.put("/staff/<int:staff_id>")
def staff_update(staff_id: int):
    s = db_session()
    m = s.get(StaffMember, staff_id)
    if not m:
        return not_found("Staff member")
    payload = json_payload()
    errors = validate_staff_payload(payload)
    if errors:
        return validation_failed(errors)
    update_staff(s, m, payload)
    s.commit()
    return jsonify(staff_to_dict(m))


@bp.delete("/staff/<int:staff_id>")
def staff_delete(staff_id: int):
    s = db_session()
    m = s.get(StaffMember, staff_id)
    if not m:
        return not_found("Staff member")
    delete_staff(s, m)
    s.commit()
    return no_content()


@bp.post("/staff/<int:staff_id>/services/<int:service_type_id>")
def staff_assign_service(staff_id: int, service_type_id: int):
    s = db_session()
    m = s.get(StaffMember, staff_id)
    if not m:
        return not_found("Staff member")
    t = s.get(ServiceType, service_type_id)
    if not t:
        return not_found("Service type")
    try:
        a = assign_service(s, m, t)
    except AlreadyAssignedError as e:
        s.rollback()
        return error(str(e), 409)
    s.commit()
    return jsonify(assignment_to_dict(a)), 201


@bp.delete("/staff/assignments/<int:assignment_id>")
def staff_remove_assignment(assignment_id: int):
    s = db_session()
    a = s.get(StaffServiceAssignment, assignment_id)
    if not a:
        return not_found("Assignment")
    remove_assignment(s, a)
    s.commit()
    return no_content()
