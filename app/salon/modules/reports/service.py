"""
Revenue reporting over service records.

Windows are counted back from `today` (inclusive), which defaults to the UTC
date because service_date values are stored in UTC: week=7 days, month=30,
quarter=90, year=365, all=no lower bound. Rows are pulled once for the window
and bucketed in Python so day grouping behaves the same on SQLite and Postgres.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.salon.constants import DEFAULT_REPORT_PERIOD, REPORT_PERIODS, UNTYPED_SERVICE_LABEL
from app.salon.modules.catalog.models import ServiceType
from app.salon.modules.customers.models import Customer
from app.salon.modules.service_records.models import ServiceRecord
from app.salon.utils import iso, money_str

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


@dataclass(frozen=True)
class ReportWindow:
    period: str
    start: date | None
    end: date


def resolve_window(period: str | None, *, today: date | None = None) -> ReportWindow:
    p = (period or "").strip().lower() or DEFAULT_REPORT_PERIOD
    if p not in REPORT_PERIODS:
        raise ValueError(f"Unknown period '{period}'. Use one of: {', '.join(REPORT_PERIODS)}.")
    end = today or datetime.utcnow().date()
    days = REPORT_PERIODS[p]
    start = end - timedelta(days=days - 1) if days else None
    return ReportWindow(period=p, start=start, end=end)


def _window_rows(s: "Session", window: ReportWindow, *, category_id: int | None) -> list[tuple]:
    q = s.query(
        ServiceRecord.service_date,
        ServiceRecord.price,
        ServiceRecord.service_type_id,
        ServiceType.name,
        ServiceRecord.staff_name,
    ).outerjoin(ServiceType, ServiceType.id == ServiceRecord.service_type_id)
    if window.start is not None:
        q = q.filter(ServiceRecord.service_date >= datetime.combine(window.start, time.min))
    q = q.filter(ServiceRecord.service_date < datetime.combine(window.end + timedelta(days=1), time.min))
    if category_id is not None:
        q = q.filter(ServiceType.category_id == category_id)
    return q.order_by(ServiceRecord.service_date.asc(), ServiceRecord.id.asc()).all()


def revenue_report(
    s: "Session",
    *,
    period: str | None = None,
    category_id: int | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    window = resolve_window(period, today=today)
    rows = _window_rows(s, window, category_id=category_id)

    total = Decimal("0")
    by_date: "OrderedDict[str, dict[str, Any]]" = OrderedDict()
    by_type: dict[int | None, dict[str, Any]] = {}
    by_staff: dict[str, dict[str, Any]] = {}

    for service_date, price, type_id, type_name, staff_name in rows:
        amount = Decimal(str(price or 0))
        total += amount

        day = service_date.date().isoformat()
        bucket = by_date.setdefault(day, {"date": day, "revenue": Decimal("0"), "count": 0})
        bucket["revenue"] += amount
        bucket["count"] += 1

        tb = by_type.setdefault(
            type_id,
            {"serviceTypeId": type_id, "name": type_name or UNTYPED_SERVICE_LABEL, "revenue": Decimal("0"), "count": 0},
        )
        tb["revenue"] += amount
        tb["count"] += 1

        staff_key = (staff_name or "").strip() or "Unassigned"
        sb = by_staff.setdefault(staff_key, {"staffName": staff_key, "revenue": Decimal("0"), "count": 0})
        sb["revenue"] += amount
        sb["count"] += 1

    count = len(rows)
    average = (total / count) if count else Decimal("0")

    def _money(rows_: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [{**r, "revenue": money_str(r["revenue"])} for r in rows_]

    types_sorted = sorted(by_type.values(), key=lambda r: (-r["count"], -r["revenue"], r["name"]))
    staff_sorted = sorted(by_staff.values(), key=lambda r: (-r["revenue"], r["staffName"]))

    return {
        "period": window.period,
        "start": iso(window.start),
        "end": iso(window.end),
        "categoryId": category_id,
        "totalRevenue": money_str(total),
        "totalServices": count,
        "averageServicePrice": money_str(average),
        "revenueByDate": _money(list(by_date.values())),
        "servicesByType": _money(types_sorted),
        "revenueByStaff": _money(staff_sorted),
    }


def top_customers(s: "Session", *, limit: int = 10) -> list[dict[str, Any]]:
    """Customers ranked by lifetime spend, then by visit count."""
    spent = func.coalesce(func.sum(ServiceRecord.price), 0)
    visits = func.count(ServiceRecord.id)
    rows = (
        s.query(
            Customer.id,
            Customer.name,
            Customer.phone,
            visits.label("visits"),
            spent.label("spent"),
            func.max(ServiceRecord.service_date).label("last_visit"),
        )
        .join(ServiceRecord, ServiceRecord.customer_id == Customer.id)
        .group_by(Customer.id, Customer.name, Customer.phone)
        .order_by(spent.desc(), visits.desc(), Customer.name.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "customerId": r.id,
            "name": r.name,
            "phone": r.phone,
            "visitCount": int(r.visits or 0),
            "totalSpent": money_str(Decimal(str(r.spent or 0))),
            "lastVisit": iso(r.last_visit),
        }
        for r in rows
    ]
