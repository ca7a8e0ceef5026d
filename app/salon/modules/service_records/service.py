from __future__ import annotations

import hashlib
import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, BinaryIO

from werkzeug.utils import secure_filename

from app.salon.audit import record_event
from app.salon.constants import ALLOWED_IMAGE_TYPES, MAX_IMAGE_BYTES
from app.salon.modules.catalog.models import ServiceType
from app.salon.modules.customers.models import Customer
from app.salon.modules.service_records.models import ServiceImage, ServiceRecord
from app.salon.utils import (
    ValidationError,
    clean_str,
    iso,
    money_str,
    parse_datetime,
    parse_int,
    parse_money,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.salon.storage import Storage

logger = logging.getLogger(__name__)

SERVICE_NAME_MIN_LENGTH = 2


# ---------- Serialization ----------
def service_to_dict(r: ServiceRecord, *, include_images: bool = False) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": r.id,
        "customerId": r.customer_id,
        "serviceTypeId": r.service_type_id,
        "serviceName": r.service_name,
        "staffName": r.staff_name,
        "notes": r.notes,
        "price": money_str(r.price),
        "serviceDate": iso(r.service_date),
        "createdAt": iso(r.created_at),
    }
    if include_images:
        d["images"] = [image_to_dict(i) for i in r.images]
    return d


def image_to_dict(i: ServiceImage) -> dict[str, Any]:
    return {
        "id": i.id,
        "serviceId": i.service_id,
        "imageUrl": i.image_url,
        "contentType": i.content_type,
        "createdAt": iso(i.created_at),
    }


# ---------- Queries ----------
def get_service_by_id(s: "Session", service_id: int) -> ServiceRecord | None:
    return s.get(ServiceRecord, service_id)


def list_services(s: "Session", *, start: date | None = None, end: date | None = None) -> list[ServiceRecord]:
    """All service records, newest first. `end` is inclusive (whole day)."""
    q = s.query(ServiceRecord)
    if start:
        q = q.filter(ServiceRecord.service_date >= datetime.combine(start, time.min))
    if end:
        q = q.filter(ServiceRecord.service_date < datetime.combine(end + timedelta(days=1), time.min))
    return q.order_by(ServiceRecord.service_date.desc(), ServiceRecord.id.desc()).all()


def list_customer_services(s: "Session", customer_id: int) -> list[ServiceRecord]:
    return (
        s.query(ServiceRecord)
        .filter(ServiceRecord.customer_id == customer_id)
        .order_by(ServiceRecord.service_date.desc(), ServiceRecord.id.desc())
        .all()
    )


# ---------- Validation ----------
def validate_service_payload(s: "Session", payload: dict[str, Any], *, partial_customer: bool = False) -> list[ValidationError]:
    """
    Validate a service create/update payload.
    When serviceTypeId is given, serviceName and price may be omitted and are taken from the type.
    """
    errs: list[ValidationError] = []

    if not partial_customer or payload.get("customerId") is not None:
        try:
            customer_id = parse_int(payload.get("customerId"))
        except ValueError:
            errs.append(ValidationError("customerId", "Customer id must be a number."))
        else:
            if customer_id is None:
                errs.append(ValidationError("customerId", "Customer is required."))
            elif s.get(Customer, customer_id) is None:
                errs.append(ValidationError("customerId", "Customer not found."))

    service_type: ServiceType | None = None
    try:
        type_id = parse_int(payload.get("serviceTypeId"))
    except ValueError:
        errs.append(ValidationError("serviceTypeId", "Service type id must be a number."))
    else:
        if type_id is not None:
            service_type = s.get(ServiceType, type_id)
            if service_type is None:
                errs.append(ValidationError("serviceTypeId", "Service type not found."))

    name = clean_str(payload.get("serviceName"))
    if not name and service_type is None:
        errs.append(ValidationError("serviceName", "Service name is required."))
    elif name and len(name) < SERVICE_NAME_MIN_LENGTH:
        errs.append(ValidationError("serviceName", f"Service name must be at least {SERVICE_NAME_MIN_LENGTH} characters."))

    try:
        price = parse_money(payload.get("price"))
    except ValueError:
        errs.append(ValidationError("price", "Price must be a number."))
    else:
        if price is not None and price < 0:
            errs.append(ValidationError("price", "Price cannot be negative."))

    try:
        parse_datetime(payload.get("serviceDate"))
    except ValueError:
        errs.append(ValidationError("serviceDate", "Service date must be an ISO date or timestamp."))
    return errs


def _apply_fields(s: "Session", r: ServiceRecord, payload: dict[str, Any]) -> None:
    type_id = parse_int(payload.get("serviceTypeId"))
    service_type = s.get(ServiceType, type_id) if type_id is not None else None

    r.service_type_id = type_id
    r.service_name = clean_str(payload.get("serviceName")) or (service_type.name if service_type else "")
    r.staff_name = clean_str(payload.get("staffName"))
    r.notes = clean_str(payload.get("notes"))
    price = parse_money(payload.get("price"))
    if price is None:
        price = service_type.price if service_type else Decimal("0.00")
    r.price = price
    r.service_date = parse_datetime(payload.get("serviceDate")) or datetime.utcnow()


# ---------- Mutations ----------
def create_service(s: "Session", payload: dict[str, Any]) -> ServiceRecord:
    r = ServiceRecord(customer_id=parse_int(payload.get("customerId")), created_at=datetime.utcnow())
    _apply_fields(s, r, payload)
    s.add(r)
    s.flush()
    record_event(
        s,
        action="service.create",
        entity_type="ServiceRecord",
        entity_id=str(r.id),
        metadata={"customer_id": r.customer_id, "service_name": r.service_name, "price": money_str(r.price)},
    )
    return r


def update_service(s: "Session", r: ServiceRecord, payload: dict[str, Any]) -> ServiceRecord:
    """Full replacement of the editable fields. customerId may be given to move the visit to another customer."""
    keys = ("customer_id", "service_type_id", "service_name", "staff_name", "notes", "price", "service_date")
    before = {k: getattr(r, k) for k in keys}
    new_customer_id = parse_int(payload.get("customerId"))
    if new_customer_id is not None:
        r.customer_id = new_customer_id
    _apply_fields(s, r, payload)
    after = {k: getattr(r, k) for k in keys}
    record_event(
        s,
        action="service.update",
        entity_type="ServiceRecord",
        entity_id=str(r.id),
        metadata={"before": before, "after": after, "fields_changed": [k for k in keys if before[k] != after[k]]},
    )
    return r


def delete_service(s: "Session", r: ServiceRecord) -> list[str]:
    """Delete a service and its images. Returns storage keys to purge after commit."""
    storage_keys = [
        k
        for (k,) in s.query(ServiceImage.storage_key)
        .filter(ServiceImage.service_id == r.id, ServiceImage.storage_key.isnot(None))
        .all()
    ]
    images_deleted = s.query(ServiceImage).filter(ServiceImage.service_id == r.id).delete(synchronize_session=False)
    record_event(
        s,
        action="service.delete",
        entity_type="ServiceRecord",
        entity_id=str(r.id),
        metadata={"customer_id": r.customer_id, "service_name": r.service_name, "images_deleted": images_deleted},
    )
    s.delete(r)
    return storage_keys


# ---------- Images ----------
def list_service_images(s: "Session", service_id: int) -> list[ServiceImage]:
    return s.query(ServiceImage).filter(ServiceImage.service_id == service_id).order_by(ServiceImage.id.asc()).all()


def add_service_image_url(s: "Session", r: ServiceRecord, image_url: str) -> ServiceImage:
    url = clean_str(image_url)
    if not url:
        raise ValueError("Image URL is required.")
    img = ServiceImage(service_id=r.id, image_url=url, created_at=datetime.utcnow())
    s.add(img)
    s.flush()
    record_event(
        s,
        action="service_image.create",
        entity_type="ServiceImage",
        entity_id=str(img.id),
        metadata={"service_id": r.id, "image_url": url},
    )
    return img


def build_image_storage_key(service_id: int, filename: str, sha256: str, upload_date: date | None = None) -> str:
    """Deterministic storage key for an uploaded service image."""
    if upload_date is None:
        upload_date = datetime.utcnow().date()
    safe_filename = secure_filename(filename) or "image.bin"
    return f"service-images/{service_id}/{upload_date.isoformat()}/{sha256[:12]}-{safe_filename}"


def upload_service_image(
    s: "Session",
    r: ServiceRecord,
    *,
    file_bytes: bytes,
    filename: str,
    content_type: str | None,
    storage: "Storage",
    url_for_image,
) -> ServiceImage:
    """
    Store an uploaded image blob and record it.
    `url_for_image(image_id)` builds the public URL once the row has an id.
    """
    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype not in ALLOWED_IMAGE_TYPES:
        raise ValueError(f"Unsupported image type '{ctype or 'unknown'}'.")
    if not file_bytes:
        raise ValueError("Uploaded image is empty.")
    if len(file_bytes) > MAX_IMAGE_BYTES:
        raise ValueError(f"Image too large. Maximum size is {MAX_IMAGE_BYTES // (1024 * 1024)}MB.")

    sha256 = hashlib.sha256(file_bytes).hexdigest()
    key = build_image_storage_key(r.id, filename, sha256)
    storage.put_bytes(key, file_bytes, content_type=ctype)
    logger.info("Stored service image service_id=%s key=%s size=%s", r.id, key, len(file_bytes))

    img = ServiceImage(service_id=r.id, image_url="", storage_key=key, content_type=ctype, created_at=datetime.utcnow())
    s.add(img)
    s.flush()
    img.image_url = url_for_image(img.id)
    record_event(
        s,
        action="service_image.upload",
        entity_type="ServiceImage",
        entity_id=str(img.id),
        metadata={"service_id": r.id, "storage_key": key, "sha256": sha256, "size_bytes": len(file_bytes)},
    )
    return img


def delete_service_image(s: "Session", img: ServiceImage) -> list[str]:
    record_event(
        s,
        action="service_image.delete",
        entity_type="ServiceImage",
        entity_id=str(img.id),
        metadata={"service_id": img.service_id, "image_url": img.image_url},
    )
    keys = [img.storage_key] if img.storage_key else []
    s.delete(img)
    return keys


def open_service_image(img: ServiceImage, storage: "Storage") -> BinaryIO:
    if not img.storage_key:
        raise ValueError("Image is an external URL and has no stored file.")
    return storage.open(img.storage_key)


def purge_blobs(storage: "Storage", keys: list[str]) -> None:
    """Best-effort blob removal after the owning rows are committed away."""
    for key in keys:
        try:
            storage.delete(key)
        except Exception as e:
            logger.warning("Failed to purge image blob key=%s: %s", key, e)
