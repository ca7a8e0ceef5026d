from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, send_file, url_for

from app.salon.db import db_session
from app.salon.modules.service_records.models import ServiceImage
from app.salon.modules.service_records.service import (
    add_service_image_url,
    create_service,
    delete_service,
    delete_service_image,
    get_service_by_id,
    image_to_dict,
    list_service_images,
    list_services,
    open_service_image,
    purge_blobs,
    service_to_dict,
    update_service,
    upload_service_image,
    validate_service_payload,
)
from app.salon.responses import error, json_payload, no_content, not_found, validation_failed
from app.salon.storage import StorageError, storage_from_config
from app.salon.utils import parse_date

bp = Blueprint("service_records", __name__)


@bp.get("/services")
def services_list():
    s = db_session()
    try:
        start = parse_date(request.args.get("start"))
        end = parse_date(request.args.get("end"))
    except ValueError:
        return error("start/end must be dates (YYYY-MM-DD)")
    return jsonify([service_to_dict(r) for r in list_services(s, start=start, end=end)])


@bp.post("/services")
def services_create():
    s = db_session()
    payload = json_payload()
    errors = validate_service_payload(s, payload)
    if errors:
        return validation_failed(errors)
    r = create_service(s, payload)
    s.commit()
    return jsonify(service_to_dict(r)), 201


@bp.get("/services/<int:service_id>")
def service_get(service_id: int):
    s = db_session()
    r = get_service_by_id(s, service_id)
    if not r:
        return not_found("Service")
    return jsonify(service_to_dict(r, include_images=True))


@bp.put("/services/<int:service_id>")
def service_update(service_id: int):
    s = db_session()
    r = get_service_by_id(s, service_id)
    if not r:
        return not_found("Service")
    payload = json_payload()
    errors = validate_service_payload(s, payload, partial_customer=True)
    if errors:
        return validation_failed(errors)
    update_service(s, r, payload)
    s.commit()
    return jsonify(service_to_dict(r))


@bp.delete("/services/<int:service_id>")
def service_delete(service_id: int):
    s = db_session()
    r = get_service_by_id(s, service_id)
    if not r:
        return not_found("Service")
    keys = delete_service(s, r)
    s.commit()
    if keys:
        purge_blobs(storage_from_config(current_app.config), keys)
    return no_content()


# ---------- Images ----------
@bp.get("/services/<int:service_id>/images")
def service_images_list(service_id: int):
    s = db_session()
    if not get_service_by_id(s, service_id):
        return not_found("Service")
    return jsonify([image_to_dict(i) for i in list_service_images(s, service_id)])


@bp.post("/services/<int:service_id>/images")
def service_images_add(service_id: int):
    """Attach an image: JSON {"imageUrl": ...} for an external URL, or a multipart upload in field "file"."""
    s = db_session()
    r = get_service_by_id(s, service_id)
    if not r:
        return not_found("Service")

    f = request.files.get("file")
    try:
        if f is not None:
            img = upload_service_image(
                s,
                r,
                file_bytes=f.read(),
                filename=f.filename or "image.bin",
                content_type=f.mimetype,
                storage=storage_from_config(current_app.config),
                url_for_image=lambda image_id: url_for("service_records.service_image_file", image_id=image_id),
            )
        else:
            img = add_service_image_url(s, r, json_payload().get("imageUrl") or "")
    except ValueError as e:
        s.rollback()
        return error(str(e))
    s.commit()
    return jsonify(image_to_dict(img)), 201


@bp.delete("/services/images/<int:image_id>")
def service_image_delete(image_id: int):
    s = db_session()
    img = s.get(ServiceImage, image_id)
    if not img:
        return not_found("Image")
    keys = delete_service_image(s, img)
    s.commit()
    if keys:
        purge_blobs(storage_from_config(current_app.config), keys)
    return no_content()


@bp.get("/services/images/<int:image_id>/file")
def service_image_file(image_id: int):
    s = db_session()
    img = s.get(ServiceImage, image_id)
    if not img:
        return not_found("Image")
    try:
        fh = open_service_image(img, storage_from_config(current_app.config))
    except ValueError as e:
        return error(str(e), 404)
    except StorageError as e:
        current_app.logger.error("Image blob missing image_id=%s: %s", image_id, e)
        return not_found("Image file")
    return send_file(fh, mimetype=img.content_type or "application/octet-stream", max_age=3600)
