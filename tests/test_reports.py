"""Tests for revenue reporting."""
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from app.salon import create_app
from app.salon.db import session_scope
from app.salon.models import Base, Customer, ServiceCategory, ServiceRecord, ServiceType
from app.salon.modules.reports.service import resolve_window, revenue_report, top_customers

TODAY = date(2024, 3, 31)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        hair = ServiceCategory(name="Hair", created_at=datetime.utcnow())
        body = ServiceCategory(name="Body", created_at=datetime.utcnow())
        s.add_all([hair, body])
        s.flush()
        cut = ServiceType(category_id=hair.id, name="Haircut", price=Decimal("45.00"), created_at=datetime.utcnow())
        massage = ServiceType(category_id=body.id, name="Massage Therapy", price=Decimal("95.00"), created_at=datetime.utcnow())
        sarah = Customer(name="Sarah Johnson", phone="(555) 123-4567", created_at=datetime.utcnow())
        james = Customer(name="James Wilson", phone="(555) 345-6789", created_at=datetime.utcnow())
        s.add_all([cut, massage, sarah, james])
        s.flush()

        def visit(customer, stype, name, price, when, staff):
            s.add(
                ServiceRecord(
                    customer_id=customer.id,
                    service_type_id=stype.id if stype else None,
                    service_name=name,
                    staff_name=staff,
                    price=Decimal(price),
                    service_date=when,
                    created_at=datetime.utcnow(),
                )
            )

        visit(sarah, cut, "Haircut", "45.00", datetime(2024, 3, 30, 10), "Michael (Stylist)")
        visit(sarah, cut, "Haircut", "45.00", datetime(2024, 3, 31, 18), "Michael (Stylist)")
        visit(james, massage, "Massage Therapy", "95.00", datetime(2024, 3, 30, 12), "David (Massage Therapist)")
        visit(james, None, "Beard Trim", "20.00", datetime(2024, 3, 10, 9), None)
        visit(sarah, massage, "Massage Therapy", "95.00", datetime(2023, 12, 1, 9), "David (Massage Therapist)")

    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def test_resolve_window():
    w = resolve_window("week", today=TODAY)
    assert (w.start, w.end) == (date(2024, 3, 25), TODAY)
    assert resolve_window(None, today=TODAY).period == "month"
    assert resolve_window("all", today=TODAY).start is None
    with pytest.raises(ValueError):
        resolve_window("decade", today=TODAY)


def test_resolve_window_defaults_to_utc_date():
    assert resolve_window("week").end == datetime.utcnow().date()


def test_weekly_revenue(app):
    with session_scope(app) as s:
        report = revenue_report(s, period="week", today=TODAY)

    assert report["totalRevenue"] == "185.00"
    assert report["totalServices"] == 3
    assert report["averageServicePrice"] == "61.67"
    assert report["revenueByDate"] == [
        {"date": "2024-03-30", "revenue": "140.00", "count": 2},
        {"date": "2024-03-31", "revenue": "45.00", "count": 1},
    ]
    assert [(t["name"], t["count"], t["revenue"]) for t in report["servicesByType"]] == [
        ("Haircut", 2, "90.00"),
        ("Massage Therapy", 1, "95.00"),
    ]
    assert [(r["staffName"], r["revenue"]) for r in report["revenueByStaff"]] == [
        ("David (Massage Therapist)", "95.00"),
        ("Michael (Stylist)", "90.00"),
    ]


def test_monthly_revenue_includes_untyped_services(app):
    with session_scope(app) as s:
        report = revenue_report(s, period="month", today=TODAY)

    assert report["start"] == "2024-03-02"
    assert report["totalServices"] == 4
    assert report["totalRevenue"] == "205.00"
    other = [t for t in report["servicesByType"] if t["serviceTypeId"] is None]
    assert other == [{"serviceTypeId": None, "name": "Other", "revenue": "20.00", "count": 1}]
    assert {"staffName": "Unassigned", "revenue": "20.00", "count": 1} in report["revenueByStaff"]


def test_revenue_by_category(app):
    with session_scope(app) as s:
        body_id = s.query(ServiceCategory.id).filter(ServiceCategory.name == "Body").scalar()
        report = revenue_report(s, period="all", category_id=body_id, today=TODAY)

    assert report["categoryId"] == body_id
    assert report["start"] is None
    assert report["totalServices"] == 2
    assert report["totalRevenue"] == "190.00"


def test_empty_window(app):
    with session_scope(app) as s:
        report = revenue_report(s, period="week", today=date(2020, 1, 1))
    assert report["totalRevenue"] == "0.00"
    assert report["averageServicePrice"] == "0.00"
    assert report["revenueByDate"] == []


def test_top_customers(app):
    with session_scope(app) as s:
        rows = top_customers(s, limit=5)
    assert [(r["name"], r["visitCount"], r["totalSpent"]) for r in rows] == [
        ("Sarah Johnson", 3, "185.00"),
        ("James Wilson", 2, "115.00"),
    ]
    assert rows[0]["lastVisit"] == "2024-03-31T18:00:00"


def test_revenue_endpoint(client):
    app = client.application
    with session_scope(app) as s:
        c = s.query(Customer).filter(Customer.name == "James Wilson").one()
        s.add(
            ServiceRecord(
                customer_id=c.id,
                service_name="Facial",
                price=Decimal("85.00"),
                service_date=datetime.combine(datetime.utcnow().date(), datetime.min.time()) + timedelta(hours=9),
                created_at=datetime.utcnow(),
            )
        )

    r = client.get("/api/reports/revenue?period=week")
    assert r.status_code == 200
    assert r.json["period"] == "week"
    assert r.json["end"] == datetime.utcnow().date().isoformat()
    assert r.json["totalServices"] >= 1
    assert any(t["name"] == "Other" for t in r.json["servicesByType"])


def test_revenue_endpoint_bad_params(client):
    r = client.get("/api/reports/revenue?period=fortnight")
    assert r.status_code == 400
    assert "Unknown period" in r.json["error"]
    assert client.get("/api/reports/revenue?categoryId=x").status_code == 400


def test_top_customers_endpoint(client):
    r = client.get("/api/reports/top-customers?limit=1")
    assert r.status_code == 200
    assert [row["name"] for row in r.json] == ["Sarah Johnson"]
