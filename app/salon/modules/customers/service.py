"""
CUSTOMER PROFILES & VISIT SUMMARIES
===================================

A "visit" is one row in `services`. Every summary figure shown next to a
customer is derived from that table at read time; nothing is denormalized
onto `customers`.

Summary field    | Source
-----------------|--------------------------------------------------------
visitCount       | COUNT(services) for the customer
firstVisit       | MIN(service_date)
lastVisit        | MAX(service_date)
lastService      | the service row with the latest service_date (ties: highest id)
favoriteService  | most frequent service_name (ties: most recent visit, then name)
totalSpent       | SUM(price)

The list view is built from two grouped queries (aggregates + a windowed
"latest row per customer") so its cost does not grow with one query per
customer.

DELETE CASCADE:
  customer -> services -> service_images (+ stored blobs)
Rows go in one transaction. Blob keys are returned to the caller and removed
from storage only after the commit succeeds.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_

from app.salon.audit import record_event
from app.salon.modules.customers.models import Customer
from app.salon.modules.service_records.models import ServiceImage, ServiceRecord
from app.salon.utils import ValidationError, check_min_length, clean_str, iso, money_str, parse_date

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


NAME_MIN_LENGTH = 2
PHONE_MIN_LENGTH = 7


def customer_to_dict(c: Customer) -> dict[str, Any]:
    return {
        "id": c.id,
        "name": c.name,
        "phone": c.phone,
        "birthdate": iso(c.birthdate),
        "address": c.address,
        "notes": c.notes,
        "createdAt": iso(c.created_at),
    }


def get_customer_by_id(s: "Session", customer_id: int) -> Customer | None:
    return s.query(Customer).filter(Customer.id == customer_id).one_or_none()


def count_visits(s: "Session", customer_id: int) -> int:
    return int(s.query(func.count(ServiceRecord.id)).filter(ServiceRecord.customer_id == customer_id).scalar() or 0)


def list_customers_with_summary(s: "Session", *, q: str | None = None) -> list[dict[str, Any]]:
    from app.salon.modules.service_records.service import service_to_dict

    query = s.query(Customer)
    q = (q or "").strip()
    if q:
        query = query.filter(
            or_(Customer.name.icontains(q, autoescape=True), Customer.phone.icontains(q, autoescape=True))
        )
    customers = query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()
    if not customers:
        return []
    ids = [c.id for c in customers]

    visit_counts: dict[int, int] = {}
    last_visits: dict[int, datetime] = {}
    for customer_id, cnt, last_visit in (
        s.query(ServiceRecord.customer_id, func.count(ServiceRecord.id), func.max(ServiceRecord.service_date))
        .filter(ServiceRecord.customer_id.in_(ids))
        .group_by(ServiceRecord.customer_id)
        .all()
    ):
        visit_counts[int(customer_id)] = int(cnt or 0)
        last_visits[int(customer_id)] = last_visit

    ranked = (
        s.query(
            ServiceRecord.id.label("service_id"),
            func.row_number()
            .over(
                partition_by=ServiceRecord.customer_id,
                order_by=(ServiceRecord.service_date.desc(), ServiceRecord.id.desc()),
            )
            .label("rn"),
        )
        .filter(ServiceRecord.customer_id.in_(ids))
        .subquery()
    )
    last_services: dict[int, ServiceRecord] = {
        r.customer_id: r
        for r in s.query(ServiceRecord)
        .join(ranked, ranked.c.service_id == ServiceRecord.id)
        .filter(ranked.c.rn == 1)
        .all()
    }

    out: list[dict[str, Any]] = []
    for c in customers:
        row = customer_to_dict(c)
        last = last_services.get(c.id)
        row["visitCount"] = visit_counts.get(c.id, 0)
        row["lastVisit"] = iso(last_visits.get(c.id))
        row["lastService"] = service_to_dict(last) if last else None
        out.append(row)
    return out


def customer_detail(s: "Session", c: Customer) -> dict[str, Any]:
    row = customer_to_dict(c)
    row["visitCount"] = count_visits(s, c.id)
    return row


def favorite_service_name(s: "Session", customer_id: int) -> str | None:
    cnt = func.count(ServiceRecord.id)
    row = (
        s.query(ServiceRecord.service_name, cnt.label("cnt"))
        .filter(ServiceRecord.customer_id == customer_id)
        .group_by(ServiceRecord.service_name)
        .order_by(cnt.desc(), func.max(ServiceRecord.service_date).desc(), ServiceRecord.service_name.asc())
        .first()
    )
    return row[0] if row else None


def customer_summary(s: "Session", customer_id: int) -> dict[str, Any]:
    visit_count, first_visit, last_visit, total = (
        s.query(
            func.count(ServiceRecord.id),
            func.min(ServiceRecord.service_date),
            func.max(ServiceRecord.service_date),
            func.coalesce(func.sum(ServiceRecord.price), 0),
        )
        .filter(ServiceRecord.customer_id == customer_id)
        .one()
    )
    return {
        "customerId": customer_id,
        "visitCount": int(visit_count or 0),
        "firstVisit": iso(first_visit),
        "lastVisit": iso(last_visit),
        "favoriteService": favorite_service_name(s, customer_id) if visit_count else None,
        "totalSpent": money_str(Decimal(str(total or 0))),
    }


def validate_customer_payload(payload: dict[str, Any]) -> list[ValidationError]:
    errs: list[ValidationError] = []
    check_min_length(errs, payload, "name", "Name", NAME_MIN_LENGTH)
    check_min_length(errs, payload, "phone", "Phone number", PHONE_MIN_LENGTH)
    try:
        parse_date(payload.get("birthdate"))
    except ValueError:
        errs.append(ValidationError("birthdate", "Birthdate must be a date (YYYY-MM-DD)."))
    return errs


def _fields(payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "name": clean_str(payload.get("name")) or "",
        "phone": clean_str(payload.get("phone")) or "",
        "birthdate": parse_date(payload.get("birthdate")),
        "address": clean_str(payload.get("address")),
        "notes": clean_str(payload.get("notes")),
    }


def create_customer(s: "Session", payload: dict[str, Any]) -> Customer:
    c = Customer(created_at=datetime.utcnow(), **_fields(payload))
    s.add(c)
    s.flush()
    record_event(
        s,
        action="customer.create",
        entity_type="Customer",
        entity_id=str(c.id),
        metadata={"name": c.name, "phone": c.phone},
    )
    return c


def update_customer(s: "Session", c: Customer, payload: dict[str, Any]) -> Customer:
    before = {k: getattr(c, k) for k in ("name", "phone", "birthdate", "address", "notes")}
    for k, v in _fields(payload).items():
        setattr(c, k, v)
    after = {k: getattr(c, k) for k in before}
    fields_changed = [k for k in before if before[k] != after[k]]
    record_event(
        s,
        action="customer.update",
        entity_type="Customer",
        entity_id=str(c.id),
        metadata={"before": before, "after": after, "fields_changed": fields_changed},
    )
    return c


def delete_customer(s: "Session", c: Customer) -> list[str]:
    """
    Delete a customer with its whole service history.
    Returns storage keys of uploaded images; purge them after commit.
    """
    service_ids = [sid for (sid,) in s.query(ServiceRecord.id).filter(ServiceRecord.customer_id == c.id).all()]
    storage_keys: list[str] = []
    images_deleted = 0
    if service_ids:
        storage_keys = [
            k
            for (k,) in s.query(ServiceImage.storage_key)
            .filter(ServiceImage.service_id.in_(service_ids), ServiceImage.storage_key.isnot(None))
            .all()
        ]
        images_deleted = (
            s.query(ServiceImage)
            .filter(ServiceImage.service_id.in_(service_ids))
            .delete(synchronize_session=False)
        )
        s.query(ServiceRecord).filter(ServiceRecord.id.in_(service_ids)).delete(synchronize_session=False)

    record_event(
        s,
        action="customer.delete",
        entity_type="Customer",
        entity_id=str(c.id),
        metadata={
            "name": c.name,
            "services_deleted": len(service_ids),
            "images_deleted": images_deleted,
        },
    )
    s.delete(c)
    return storage_keys
