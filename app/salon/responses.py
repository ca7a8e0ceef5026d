from __future__ import annotations

from typing import Any

from flask import jsonify, request
from werkzeug.routing import IntegerConverter

from app.salon.constants import MAX_DB_ID
from app.salon.utils import ValidationError, parse_int


class IdConverter(IntegerConverter):
    """`<int:...>` that stops matching past the INTEGER range, so oversized ids fall through to 404."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("max", MAX_DB_ID)
        super().__init__(map, *args, **kwargs)


def json_payload() -> dict[str, Any]:
    """Request body as a dict; form posts are accepted for non-JSON clients."""
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        return payload
    return request.form.to_dict()


def error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def not_found(entity: str):
    return error(f"{entity} not found", 404)


def validation_failed(errors: list[ValidationError]):
    return jsonify({"errors": [e.as_dict() for e in errors]}), 400


def no_content():
    return "", 204


def int_arg(name: str) -> int | None:
    return parse_int(request.args.get(name))
