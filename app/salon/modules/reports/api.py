from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.salon.db import db_session
from app.salon.modules.reports.service import revenue_report, top_customers
from app.salon.responses import error, int_arg

bp = Blueprint("reports", __name__)

MAX_TOP_CUSTOMERS = 100


@bp.get("/reports/revenue")
def reports_revenue():
    s = db_session()
    try:
        category_id = int_arg("categoryId")
    except ValueError:
        return error("categoryId must be a number")
    try:
        report = revenue_report(s, period=request.args.get("period"), category_id=category_id)
    except ValueError as e:
        return error(str(e))
    return jsonify(report)


@bp.get("/reports/top-customers")
def reports_top_customers():
    s = db_session()
    try:
        limit = int_arg("limit") or 10
    except ValueError:
        return error("limit must be a number")
    limit = max(1, min(limit, MAX_TOP_CUSTOMERS))
    return jsonify(top_customers(s, limit=limit))
