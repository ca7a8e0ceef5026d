from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.salon.audit import record_event
from app.salon.modules.catalog.models import ServiceCategory, ServiceType
from app.salon.utils import ValidationError, clean_str, iso, money_str, parse_int, parse_money

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


DEFAULT_DURATION_MINUTES = 30


# ---------- Serialization ----------
def category_to_dict(c: ServiceCategory) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "description": c.description,
        "createdAt": iso(c.created_at),
    }


def service_type_to_dict(t: ServiceType) -> dict[str, Any]:
    return {
        "id": t.id,
        "categoryId": t.category_id,
        "name": t.name,
        "description": t.description,
        "price": money_str(t.price),
        "durationMinutes": t.duration_minutes,
        "createdAt": iso(t.created_at),
        "category": category_to_dict(t.category) if t.category else None,
    }


# ---------- Categories ----------
def list_categories(s: "Session") -> list[ServiceCategory]:
    return s.query(ServiceCategory).order_by(ServiceCategory.name.asc(), ServiceCategory.id.asc()).all()


def validate_category_payload(s: "Session", payload: dict, *, existing: ServiceCategory | None = None) -> list[ValidationError]:
    errs: list[ValidationError] = []
    name = clean_str(payload.get("name"))
    if not name:
        errs.append(ValidationError("name", "Category name is required."))
        return errs
    clash = (
        s.query(ServiceCategory)
        .filter(func.lower(ServiceCategory.name) == name.lower())
        .one_or_none()
    )
    if clash is not None and (existing is None or clash.id != existing.id):
        errs.append(ValidationError("name", "A category with this name already exists."))
    return errs


def create_category(s: "Session", payload: dict) -> ServiceCategory:
    c = ServiceCategory(
        name=clean_str(payload.get("name")) or "",
        description=clean_str(payload.get("description")),
        created_at=datetime.utcnow(),
    )
    s.add(c)
    s.flush()
    record_event(s, action="service_category.create", entity_type="ServiceCategory", entity_id=str(c.id), metadata={"name": c.name})
    return c


def update_category(s: "Session", c: ServiceCategory, payload: dict) -> ServiceCategory:
    before = {"name": c.name, "description": c.description}
    c.name = clean_str(payload.get("name")) or c.name
    c.description = clean_str(payload.get("description"))
    after = {"name": c.name, "description": c.description}
    record_event(
        s,
        action="service_category.update",
        entity_type="ServiceCategory",
        entity_id=str(c.id),
        metadata={"before": before, "after": after},
    )
    return c


def delete_category(s: "Session", c: ServiceCategory) -> None:
    """Categories in use are kept; the caller must move or delete their service types first."""
    in_use = s.query(func.count(ServiceType.id)).filter(ServiceType.category_id == c.id).scalar() or 0
    if in_use:
        raise ValueError(f"Cannot delete category '{c.name}': {in_use} service type(s) still belong to it.")
    record_event(s, action="service_category.delete", entity_type="ServiceCategory", entity_id=str(c.id), metadata={"name": c.name})
    s.delete(c)


# ---------- Service types ----------
def list_service_types(s: "Session", *, category_id: int | None = None) -> list[ServiceType]:
    q = s.query(ServiceType)
    if category_id is not None:
        q = q.filter(ServiceType.category_id == category_id)
    return q.order_by(ServiceType.name.asc(), ServiceType.id.asc()).all()


def validate_service_type_payload(s: "Session", payload: dict) -> list[ValidationError]:
    errs: list[ValidationError] = []
    if not clean_str(payload.get("name")):
        errs.append(ValidationError("name", "Service name is required."))

    try:
        price = parse_money(payload.get("price"))
    except ValueError:
        errs.append(ValidationError("price", "Price must be a number."))
    else:
        if price is None:
            errs.append(ValidationError("price", "Price is required."))
        elif price < 0:
            errs.append(ValidationError("price", "Price cannot be negative."))

    try:
        duration = parse_int(payload.get("durationMinutes"))
    except ValueError:
        errs.append(ValidationError("durationMinutes", "Duration must be a whole number of minutes."))
    else:
        if duration is not None and duration <= 0:
            errs.append(ValidationError("durationMinutes", "Duration must be greater than zero."))

    try:
        category_id = parse_int(payload.get("categoryId"))
    except ValueError:
        errs.append(ValidationError("categoryId", "Category id must be a number."))
    else:
        if category_id is not None and s.get(ServiceCategory, category_id) is None:
            errs.append(ValidationError("categoryId", "Category not found."))
    return errs


def _apply_service_type_fields(t: ServiceType, payload: dict) -> None:
    t.name = clean_str(payload.get("name")) or ""
    t.description = clean_str(payload.get("description"))
    t.price = parse_money(payload.get("price")) or Decimal("0.00")
    t.duration_minutes = parse_int(payload.get("durationMinutes")) or DEFAULT_DURATION_MINUTES
    t.category_id = parse_int(payload.get("categoryId"))


def create_service_type(s: "Session", payload: dict) -> ServiceType:
    t = ServiceType(created_at=datetime.utcnow())
    _apply_service_type_fields(t, payload)
    s.add(t)
    s.flush()
    s.refresh(t, ["category"])
    record_event(
        s,
        action="service_type.create",
        entity_type="ServiceType",
        entity_id=str(t.id),
        metadata={"name": t.name, "price": money_str(t.price), "category_id": t.category_id},
    )
    return t


def update_service_type(s: "Session", t: ServiceType, payload: dict) -> ServiceType:
    before = {"name": t.name, "price": money_str(t.price), "duration_minutes": t.duration_minutes, "category_id": t.category_id}
    _apply_service_type_fields(t, payload)
    s.flush()
    s.refresh(t, ["category"])
    after = {"name": t.name, "price": money_str(t.price), "duration_minutes": t.duration_minutes, "category_id": t.category_id}
    record_event(
        s,
        action="service_type.update",
        entity_type="ServiceType",
        entity_id=str(t.id),
        metadata={"before": before, "after": after, "fields_changed": [k for k in before if before[k] != after[k]]},
    )
    return t


def delete_service_type(s: "Session", t: ServiceType) -> None:
    """
    Service history is never rewritten: a type referenced by any service record
    cannot be deleted. Staff assignments for the type are dropped with it.
    """
    from app.salon.modules.service_records.models import ServiceRecord
    from app.salon.modules.staff.models import StaffServiceAssignment

    used = s.query(func.count(ServiceRecord.id)).filter(ServiceRecord.service_type_id == t.id).scalar() or 0
    if used:
        raise ValueError(f"Cannot delete service type '{t.name}': it is used by {used} service record(s).")

    removed = (
        s.query(StaffServiceAssignment)
        .filter(StaffServiceAssignment.service_type_id == t.id)
        .delete(synchronize_session=False)
    )
    record_event(
        s,
        action="service_type.delete",
        entity_type="ServiceType",
        entity_id=str(t.id),
        metadata={"name": t.name, "assignments_removed": removed},
    )
    s.delete(t)
