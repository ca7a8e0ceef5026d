"""Tests for customer profiles and visit summaries."""
import io
import json
from pathlib import Path
from datetime import datetime
from decimal import Decimal

import pytest

from app.salon import create_app
from app.salon.db import session_scope
from app.salon.models import AuditEvent, Base, Customer, ServiceImage, ServiceRecord


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_ROOT", str(tmp_path / "storage"))
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)
    return app.test_client()


def _seed_customer(app, name="Sarah Johnson", phone="(555) 123-4567", visits=()):
    """visits: iterable of (service_name, price, datetime)."""
    with session_scope(app) as s:
        c = Customer(name=name, phone=phone, created_at=datetime.utcnow())
        s.add(c)
        s.flush()
        for service_name, price, when in visits:
            s.add(
                ServiceRecord(
                    customer_id=c.id,
                    service_name=service_name,
                    price=Decimal(price),
                    service_date=when,
                    created_at=datetime.utcnow(),
                )
            )
        return c.id


def test_create_customer(client):
    r = client.post(
        "/api/customers",
        json={"name": "Emily Rodriguez", "phone": "(555) 234-5678", "birthdate": "1982-09-03", "notes": "Prefers female stylists only."},
    )
    assert r.status_code == 201
    body = r.json
    assert body["id"]
    assert body["name"] == "Emily Rodriguez"
    assert body["birthdate"] == "1982-09-03"
    assert body["visitCount"] == 0

    r = client.get(f"/api/customers/{body['id']}")
    assert r.status_code == 200
    assert r.json["notes"] == "Prefers female stylists only."


def test_create_customer_validation(client):
    r = client.post("/api/customers", json={"name": "A", "phone": "123", "birthdate": "not-a-date"})
    assert r.status_code == 400
    fields = {e["field"] for e in r.json["errors"]}
    assert fields == {"name", "phone", "birthdate"}


def test_create_customer_requires_fields(client):
    r = client.post("/api/customers", json={})
    assert r.status_code == 400
    messages = {e["field"]: e["message"] for e in r.json["errors"]}
    assert messages["name"] == "Name is required."
    assert messages["phone"] == "Phone number is required."


def test_customer_not_found(client):
    r = client.get("/api/customers/999")
    assert r.status_code == 404
    assert r.json == {"error": "Customer not found"}

    assert client.put("/api/customers/999", json={"name": "Xx", "phone": "1234567"}).status_code == 404
    assert client.delete("/api/customers/999").status_code == 404
    assert client.get("/api/customers/999/summary").status_code == 404


def test_update_customer_records_audit(client):
    app = client.application
    cid = _seed_customer(app)
    r = client.put(f"/api/customers/{cid}", json={"name": "Sarah J. Johnson", "phone": "(555) 123-4567"})
    assert r.status_code == 200
    assert r.json["name"] == "Sarah J. Johnson"

    with session_scope(app) as s:
        ev = s.query(AuditEvent).filter(AuditEvent.action == "customer.update").one()
        meta = json.loads(ev.metadata_json)
        assert meta["fields_changed"] == ["name"]
        assert ev.entity_id == str(cid)
        assert ev.request_id


def test_list_customers_with_summary(client):
    app = client.application
    sarah = _seed_customer(
        app,
        visits=[
            ("Haircut & Styling", "65.00", datetime(2023, 5, 2, 10, 0)),
            ("Hair Coloring", "120.00", datetime(2023, 6, 15, 14, 0)),
            ("Deep Conditioning Treatment", "40.00", datetime(2023, 3, 18, 9, 0)),
        ],
    )
    newbie = _seed_customer(app, name="Sophia Martinez", phone="(555) 456-7890")

    r = client.get("/api/customers")
    assert r.status_code == 200
    rows = {row["id"]: row for row in r.json}
    assert rows[sarah]["visitCount"] == 3
    assert rows[sarah]["lastVisit"] == "2023-06-15T14:00:00"
    assert rows[sarah]["lastService"]["serviceName"] == "Hair Coloring"
    assert rows[newbie]["visitCount"] == 0
    assert rows[newbie]["lastVisit"] is None
    assert rows[newbie]["lastService"] is None

    # newest customer first
    assert r.json[0]["id"] == newbie


def test_list_customers_search(client):
    app = client.application
    _seed_customer(app, name="Sarah Johnson", phone="(555) 123-4567")
    _seed_customer(app, name="James Wilson", phone="(555) 345-6789")

    r = client.get("/api/customers?q=wilson")
    assert [row["name"] for row in r.json] == ["James Wilson"]

    r = client.get("/api/customers?q=123-45")
    assert [row["name"] for row in r.json] == ["Sarah Johnson"]


def test_list_customers_search_wildcards_are_literal(client):
    app = client.application
    _seed_customer(app, name="Bob_Jones", phone="(555) 111-2222")
    _seed_customer(app, name="Anna Smith", phone="(555) 333-4444")

    r = client.get("/api/customers?q=_")
    assert [row["name"] for row in r.json] == ["Bob_Jones"]

    r = client.get("/api/customers?q=%25")
    assert r.json == []


def test_customer_summary(client):
    app = client.application
    cid = _seed_customer(
        app,
        visits=[
            ("Haircut", "45.00", datetime(2023, 2, 5)),
            ("Facial", "85.00", datetime(2023, 4, 22)),
            ("Haircut", "45.00", datetime(2023, 7, 18)),
        ],
    )
    r = client.get(f"/api/customers/{cid}/summary")
    assert r.status_code == 200
    assert r.json == {
        "customerId": cid,
        "visitCount": 3,
        "firstVisit": "2023-02-05T00:00:00",
        "lastVisit": "2023-07-18T00:00:00",
        "favoriteService": "Haircut",
        "totalSpent": "175.00",
    }


def test_customer_summary_favorite_tie_goes_to_most_recent(client):
    app = client.application
    cid = _seed_customer(
        app,
        visits=[
            ("Manicure", "30.00", datetime(2023, 1, 1)),
            ("Massage Therapy", "95.00", datetime(2023, 3, 1)),
        ],
    )
    r = client.get(f"/api/customers/{cid}/summary")
    assert r.json["favoriteService"] == "Massage Therapy"


def test_customer_summary_without_visits(client):
    cid = _seed_customer(client.application)
    r = client.get(f"/api/customers/{cid}/summary")
    assert r.json["visitCount"] == 0
    assert r.json["favoriteService"] is None
    assert r.json["firstVisit"] is None
    assert r.json["totalSpent"] == "0.00"


def test_customer_services_newest_first(client):
    app = client.application
    cid = _seed_customer(
        app,
        visits=[
            ("Haircut", "45.00", datetime(2023, 2, 5)),
            ("Facial", "85.00", datetime(2023, 4, 22)),
        ],
    )
    r = client.get(f"/api/customers/{cid}/services")
    assert r.status_code == 200
    assert [row["serviceName"] for row in r.json] == ["Facial", "Haircut"]
    assert r.json[0]["price"] == "85.00"


def test_delete_customer_cascades_services_images_and_blobs(client):
    app = client.application
    cid = _seed_customer(app, visits=[("Hair Coloring", "120.00", datetime(2023, 6, 15))])
    with session_scope(app) as s:
        service_id = s.query(ServiceRecord.id).filter(ServiceRecord.customer_id == cid).scalar()

    r = client.post(
        f"/api/services/{service_id}/images",
        data={"file": (io.BytesIO(b"\x89PNG fake"), "after.png", "image/png")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    r = client.post(f"/api/services/{service_id}/images", json={"imageUrl": "https://example.com/before.jpg"})
    assert r.status_code == 201

    with session_scope(app) as s:
        key = s.query(ServiceImage.storage_key).filter(ServiceImage.storage_key.isnot(None)).scalar()
    storage_root = app.config["STORAGE_ROOT"]
    blob = Path(storage_root) / key
    assert blob.exists()

    r = client.delete(f"/api/customers/{cid}")
    assert r.status_code == 204

    assert client.get(f"/api/customers/{cid}").status_code == 404
    assert client.get(f"/api/services/{service_id}").status_code == 404
    with session_scope(app) as s:
        assert s.query(ServiceRecord).count() == 0
        assert s.query(ServiceImage).count() == 0
        ev = s.query(AuditEvent).filter(AuditEvent.action == "customer.delete").one()
        meta = json.loads(ev.metadata_json)
        assert meta["services_deleted"] == 1
        assert meta["images_deleted"] == 2
    assert not blob.exists()
