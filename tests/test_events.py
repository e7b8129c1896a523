"""Tests for the events module."""
from datetime import date, datetime, timedelta

import pytest

from app.insign.db import session_scope
from app.insign.errors import NotFoundError
from app.insign.models import AuditEvent
from app.insign.modules.events.models import Event
from app.insign.modules.events.service import (
    EventPatch,
    create_event,
    delete_event,
    list_active_events,
    list_events,
    update_event,
    validate_event_payload,
)


def _seed_events(app):
    base = datetime(2026, 1, 1, 12, 0, 0)
    with session_scope(app) as s:
        s.add_all(
            [
                Event(title="Old active", content="a", is_active=True, created_at=base, updated_at=base),
                Event(
                    title="Inactive",
                    content="b",
                    is_active=False,
                    created_at=base + timedelta(hours=1),
                    updated_at=base + timedelta(hours=1),
                ),
                Event(
                    title="New active",
                    content="c",
                    is_active=True,
                    start_date=date(2026, 2, 1),
                    end_date=date(2026, 2, 28),
                    created_at=base + timedelta(hours=2),
                    updated_at=base + timedelta(hours=2),
                ),
            ]
        )


def test_list_active_events_newest_first(app):
    _seed_events(app)
    with session_scope(app) as s:
        assert [e.title for e in list_active_events(s)] == ["New active", "Old active"]
        assert [e.title for e in list_events(s)] == ["New active", "Inactive", "Old active"]


def test_create_event_defaults_to_active(app):
    with session_scope(app) as s:
        event = create_event(s, {"title": "  Launch  ", "content": "Body"})
        assert event.title == "Launch"
        assert event.is_active is True
        assert event.created_at == event.updated_at
        assert s.query(AuditEvent).filter(AuditEvent.action == "event.create").count() == 1


def test_update_event_partial(app):
    with session_scope(app) as s:
        event = create_event(s, {"title": "T", "content": "C", "start_date": "2026-03-01"})
        event_id = event.id

    with session_scope(app) as s:
        updated = update_event(s, event_id, EventPatch.from_payload({"is_active": False}))
        assert updated.is_active is False
        assert updated.title == "T"
        assert updated.start_date == date(2026, 3, 1)

    with session_scope(app) as s:
        # None clears the date
        updated = update_event(s, event_id, EventPatch.from_payload({"start_date": None}))
        assert updated.start_date is None


def test_empty_patch_still_bumps_updated_at(app):
    past = datetime(2020, 1, 1)
    with session_scope(app) as s:
        event = Event(title="T", content="C", is_active=True, created_at=past, updated_at=past)
        s.add(event)
        s.flush()
        event_id = event.id

    with session_scope(app) as s:
        updated = update_event(s, event_id, EventPatch())
        assert updated.updated_at > past
        assert updated.title == "T"


def test_update_missing_event_raises(app):
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            update_event(s, 999, EventPatch(title="x"))


def test_delete_missing_event_is_noop(app):
    with session_scope(app) as s:
        delete_event(s, 12345)
        assert s.query(Event).count() == 0


def test_validate_event_payload():
    assert validate_event_payload({"title": "T", "content": "C"}) == []
    errors = validate_event_payload({"title": " ", "content": ""})
    assert "Title is required." in errors
    assert "Content is required." in errors
    assert validate_event_payload({"title": "x" * 256, "content": "C"})
    assert validate_event_payload({"title": "T", "content": "C", "start_date": "not-a-date"})
    assert validate_event_payload(
        {"title": "T", "content": "C", "start_date": "2026-05-02", "end_date": "2026-05-01"}
    ) == ["End date must not be before start date."]
    # Partial payloads only check the fields that are present.
    assert validate_event_payload({"is_active": "false"}, partial=True) == []


def test_events_api_returns_only_active(app, client):
    _seed_events(app)
    r = client.get("/api/events")
    assert r.status_code == 200
    data = r.json
    assert [e["title"] for e in data] == ["New active", "Old active"]
    first = data[0]
    assert first["startDate"] == "2026-02-01"
    assert first["endDate"] == "2026-02-28"
    assert first["isActive"] is True
    assert set(first) == {"id", "title", "content", "startDate", "endDate", "isActive", "createdAt", "updatedAt"}


def test_admin_event_crud(app, admin_client, csrf):
    r = admin_client.post(
        "/adm/events/new",
        data={"csrf_token": csrf, "title": "Spring promo", "content": "Details", "start_date": "2026-04-01", "is_active": "on"},
    )
    assert r.status_code == 302
    assert "message=" in r.headers["Location"]

    r = admin_client.get("/adm/events")
    assert r.status_code == 200
    assert b"Spring promo" in r.data

    with session_scope(app) as s:
        event = s.query(Event).one()
        event_id = event.id
        assert event.start_date == date(2026, 4, 1)

    # Unchecked checkbox deactivates
    r = admin_client.post(
        f"/adm/events/{event_id}/edit",
        data={"csrf_token": csrf, "title": "Spring promo", "content": "Details v2"},
    )
    assert r.status_code == 302
    with session_scope(app) as s:
        event = s.get(Event, event_id)
        assert event.is_active is False
        assert event.content == "Details v2"

    r = admin_client.post(f"/adm/events/{event_id}/delete", data={"csrf_token": csrf})
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.get(Event, event_id) is None


def test_admin_event_create_validation_error_redirects(app, admin_client, csrf):
    r = admin_client.post("/adm/events/new", data={"csrf_token": csrf, "title": "", "content": "x"})
    assert r.status_code == 302
    assert "/adm/events/new" in r.headers["Location"]
    assert "error=" in r.headers["Location"]

    r = admin_client.get(r.headers["Location"])
    assert b"Title is required." in r.data
    with session_scope(app) as s:
        assert s.query(Event).count() == 0


def test_admin_edit_missing_event_404(admin_client):
    assert admin_client.get("/adm/events/999/edit").status_code == 404
