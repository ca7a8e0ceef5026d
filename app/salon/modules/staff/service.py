from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from app.salon.audit import record_event
from app.salon.modules.catalog.models import ServiceType
from app.salon.modules.catalog.service import service_type_to_dict
from app.salon.modules.staff.models import StaffMember, StaffServiceAssignment
from app.salon.utils import ValidationError, check_min_length, clean_str, iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class AlreadyAssignedError(ValueError):
    pass


def assignment_to_dict(a: StaffServiceAssignment) -> dict[str, Any]:
    return {
        "id": a.id,
        "staffId": a.staff_id,
        "serviceTypeId": a.service_type_id,
        "createdAt": iso(a.created_at),
        "serviceType": service_type_to_dict(a.service_type) if a.service_type else None,
    }


def staff_to_dict(m: StaffMember) -> dict[str, Any]:
    return {
        "id": m.id,
        "name": m.name,
        "role": m.role,
        "phone": m.phone,
        "email": m.email,
        "photoUrl": m.photo_url,
        "notes": m.notes,
        "createdAt": iso(m.created_at),
        "serviceAssignments": [assignment_to_dict(a) for a in m.service_assignments],
    }


def list_staff(s: "Session", *, q: str | None = None) -> list[StaffMember]:
    query = s.query(StaffMember)
    q = (q or "").strip()
    if q:
        query = query.filter(
            or_(StaffMember.name.icontains(q, autoescape=True), StaffMember.role.icontains(q, autoescape=True))
        )
    return query.order_by(StaffMember.name.asc(), StaffMember.id.asc()).all()


def validate_staff_payload(payload: dict[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []
    check_min_length(errs, payload, "name", "Name", 2)
    if not clean_str(payload.get("role")):
        errs.append(ValidationError("role", "Role is required."))
    email = clean_str(payload.get("email"))
    if email and "@" not in email:
        errs.append(ValidationError("email", "Email address is invalid."))
    return errs


def _apply_fields(m: StaffMember, payload: dict[str, Any]) -> None:
    m.name = clean_str(payload.get("name")) or ""
    m.role = clean_str(payload.get("role")) or ""
    m.phone = clean_str(payload.get("phone"))
    m.email = clean_str(payload.get("email"))
    m.photo_url = clean_str(payload.get("photoUrl"))
    m.notes = clean_str(payload.get("notes"))


def create_staff(s: "Session", payload: dict[str, Any]) -> StaffMember:
    m = StaffMember(created_at=datetime.utcnow())
    _apply_fields(m, payload)
    s.add(m)
    s.flush()
    record_event(s, action="staff.create", entity_type="StaffMember", entity_id=str(m.id), metadata={"name": m.name, "role": m.role})
    return m


def update_staff(s: "Session", m: StaffMember, payload: dict[str, Any]) -> StaffMember:
    keys = ("name", "role", "phone", "email", "photo_url", "notes")
    before = {k: getattr(m, k) for k in keys}
    _apply_fields(m, payload)
    after = {k: getattr(m, k) for k in keys}
    record_event(
        s,
        action="staff.update",
        entity_type="StaffMember",
        entity_id=str(m.id),
        metadata={"before": before, "after": after, "fields_changed": [k for k in keys if before[k] != after[k]]},
    )
    return m


def delete_staff(s: "Session", m: StaffMember) -> None:
    """Assignments go with the staff member; past service records keep their staff_name text."""
    record_event(
        s,
        action="staff.delete",
        entity_type="StaffMember",
        entity_id=str(m.id),
        metadata={"name": m.name, "assignments_removed": len(m.service_assignments)},
    )
    s.delete(m)


def assign_service(s: "Session", m: StaffMember, t: ServiceType) -> StaffServiceAssignment:
    existing = (
        s.query(StaffServiceAssignment)
        .filter(StaffServiceAssignment.staff_id == m.id, StaffServiceAssignment.service_type_id == t.id)
        .one_or_none()
    )
    if existing is not None:
        raise AlreadyAssignedError(f"{m.name} is already assigned to '{t.name}'.")

    a = StaffServiceAssignment(staff_id=m.id, service_type_id=t.id, created_at=datetime.utcnow())
    s.add(a)
    try:
        s.flush()
    except IntegrityError as e:
        # Concurrent request inserted the same pair between lookup and insert; caller rolls back.
        raise AlreadyAssignedError(f"{m.name} is already assigned to '{t.name}'.") from e

    s.refresh(a, ["service_type"])
    record_event(
        s,
        action="staff.assign_service",
        entity_type="StaffServiceAssignment",
        entity_id=str(a.id),
        metadata={"staff_id": m.id, "service_type_id": t.id, "service_type": t.name},
    )
    return a


def remove_assignment(s: "Session", a: StaffServiceAssignment) -> None:
    record_event(
        s,
        action="staff.remove_service",
        entity_type="StaffServiceAssignment",
        entity_id=str(a.id),
        metadata={"staff_id": a.staff_id, "service_type_id": a.service_type_id},
    )
    s.delete(a)
