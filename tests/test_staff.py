"""Tests for staff members and their service assignments."""
from datetime import datetime
from decimal import Decimal

import pytest

from app.salon import create_app
from app.salon.db import session_scope
from app.salon.models import AuditEvent, Base, ServiceType, StaffMember, StaffServiceAssignment
from app.salon.modules.staff.service import AlreadyAssignedError, assign_service


@pytest.fixture()
def client(tmp_path, monkeypatch):
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
        s.add_all(
            [
                ServiceType(name="Hair Coloring", price=Decimal("120.00"), duration_minutes=120, created_at=datetime.utcnow()),
                ServiceType(name="Massage Therapy", price=Decimal("95.00"), duration_minutes=60, created_at=datetime.utcnow()),
            ]
        )

    return app.test_client()


def _type_id(app, name):
    with session_scope(app) as s:
        return s.query(ServiceType.id).filter(ServiceType.name == name).scalar()


def _create_staff(client, name="Ashley", role="Colorist", **extra):
    r = client.post("/api/staff", json={"name": name, "role": role, **extra})
    assert r.status_code == 201
    return r.json["id"]


def test_create_and_list_staff(client):
    _create_staff(client, name="Maria", role="Esthetician", email="maria@example.com")
    _create_staff(client, name="David", role="Massage Therapist")

    r = client.get("/api/staff")
    assert r.status_code == 200
    assert [m["name"] for m in r.json] == ["David", "Maria"]
    assert r.json[1]["email"] == "maria@example.com"
    assert r.json[0]["serviceAssignments"] == []

    r = client.get("/api/staff?q=therap")
    assert [m["name"] for m in r.json] == ["David"]


def test_create_staff_validation(client):
    r = client.post("/api/staff", json={"name": "J", "email": "not-an-email"})
    assert r.status_code == 400
    fields = {e["field"] for e in r.json["errors"]}
    assert fields == {"name", "role", "email"}


def test_update_and_delete_staff(client):
    sid = _create_staff(client)
    r = client.put(f"/api/staff/{sid}", json={"name": "Ashley", "role": "Senior Colorist", "phone": "(555) 000-1111"})
    assert r.status_code == 200
    assert r.json["role"] == "Senior Colorist"
    assert r.json["phone"] == "(555) 000-1111"

    assert client.delete(f"/api/staff/{sid}").status_code == 204
    assert client.get(f"/api/staff/{sid}").status_code == 404
    assert client.delete(f"/api/staff/{sid}").status_code == 404


def test_staff_not_found(client):
    r = client.get("/api/staff/999")
    assert r.status_code == 404
    assert r.json == {"error": "Staff member not found"}


def test_assign_service(client):
    app = client.application
    sid = _create_staff(client)
    tid = _type_id(app, "Hair Coloring")

    r = client.post(f"/api/staff/{sid}/services/{tid}")
    assert r.status_code == 201
    assert r.json["staffId"] == sid
    assert r.json["serviceType"]["name"] == "Hair Coloring"
    assert r.json["serviceType"]["price"] == "120.00"

    r = client.get(f"/api/staff/{sid}")
    assigned = r.json["serviceAssignments"]
    assert [a["serviceTypeId"] for a in assigned] == [tid]


def test_assign_service_twice_conflicts(client):
    app = client.application
    sid = _create_staff(client)
    tid = _type_id(app, "Hair Coloring")

    assert client.post(f"/api/staff/{sid}/services/{tid}").status_code == 201
    r = client.post(f"/api/staff/{sid}/services/{tid}")
    assert r.status_code == 409
    assert "already assigned" in r.json["error"]

    with session_scope(app) as s:
        assert s.query(StaffServiceAssignment).count() == 1


def test_assign_service_unknown_ids(client):
    app = client.application
    sid = _create_staff(client)
    tid = _type_id(app, "Hair Coloring")

    r = client.post(f"/api/staff/999/services/{tid}")
    assert r.status_code == 404
    assert r.json == {"error": "Staff member not found"}

    r = client.post(f"/api/staff/{sid}/services/999")
    assert r.status_code == 404
    assert r.json == {"error": "Service type not found"}


def test_remove_assignment(client):
    app = client.application
    sid = _create_staff(client)
    aid = client.post(f"/api/staff/{sid}/services/{_type_id(app, 'Massage Therapy')}").json["id"]

    assert client.delete(f"/api/staff/assignments/{aid}").status_code == 204
    assert client.get(f"/api/staff/{sid}").json["serviceAssignments"] == []
    assert client.delete(f"/api/staff/assignments/{aid}").status_code == 404


def test_delete_staff_removes_assignments(client):
    app = client.application
    sid = _create_staff(client)
    client.post(f"/api/staff/{sid}/services/{_type_id(app, 'Hair Coloring')}")
    client.post(f"/api/staff/{sid}/services/{_type_id(app, 'Massage Therapy')}")

    assert client.delete(f"/api/staff/{sid}").status_code == 204
    with session_scope(app) as s:
        assert s.query(StaffMember).count() == 0
        assert s.query(StaffServiceAssignment).count() == 0
        # catalog is untouched
        assert s.query(ServiceType).count() == 2


def test_staff_search_wildcards_are_literal(client):
    _create_staff(client, name="Jo_Ann", role="Stylist")
    _create_staff(client, name="Maria", role="Esthetician")

    r = client.get("/api/staff?q=_")
    assert [m["name"] for m in r.json] == ["Jo_Ann"]


def test_assign_service_stays_in_caller_transaction(client):
    app = client.application
    sid = _create_staff(client)
    tid = _type_id(app, "Hair Coloring")

    s = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        assign_service(s, s.get(StaffMember, sid), s.get(ServiceType, tid))
        s.rollback()
    finally:
        s.close()

    with session_scope(app) as s:
        assert s.query(StaffServiceAssignment).count() == 0
        assert s.query(AuditEvent).filter(AuditEvent.action == "staff.assign_service").count() == 0


def test_assign_service_unique_violation_is_already_assigned(client):
    app = client.application
    sid = _create_staff(client)
    tid = _type_id(app, "Hair Coloring")

    s = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        # pending, unflushed duplicate: invisible to the lookup, collides on insert
        s.add(StaffServiceAssignment(staff_id=sid, service_type_id=tid, created_at=datetime.utcnow()))
        with pytest.raises(AlreadyAssignedError):
            assign_service(s, s.get(StaffMember, sid), s.get(ServiceType, tid))
        s.rollback()
    finally:
        s.close()

    with session_scope(app) as s:
        assert s.query(StaffServiceAssignment).count() == 0
