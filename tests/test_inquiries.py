"""Tests for inquiries: user submissions, admin workflow and mailed responses."""
from datetime import datetime, timedelta

import pytest

from app.insign.db import session_scope
from app.insign.errors import BadRequestError, MailConfigurationError, MailDeliveryError, NotFoundError
from app.insign.mail import MailService
from app.insign.models import AuditEvent
from app.insign.modules.inquiries.models import Inquiry, InquiryCategory, InquiryStatus
from app.insign.modules.inquiries.service import (
    InquiryStatusPatch,
    create_inquiry,
    delete_inquiry,
    list_inquiries,
    list_user_inquiries,
    send_inquiry_response,
    update_inquiry_status,
    validate_inquiry_payload,
)


def _payload(**overrides):
    payload = {
        "category": InquiryCategory.PAYMENT,
        "subject": "Points not credited",
        "content": "I bought 100 points yesterday.",
    }
    payload.update(overrides)
    return payload


def _create(app, user_id, **overrides) -> int:
    with session_scope(app) as s:
        return create_inquiry(s, user_id, _payload(**overrides)).id


def test_create_then_list_by_user(app, make_user):
    uid = make_user()
    other = make_user(email="other@example.com")
    _create(app, uid)
    _create(app, other, subject="Someone else")

    with session_scope(app) as s:
        mine = list_user_inquiries(s, uid)
        assert len(mine) == 1
        assert mine[0].status == InquiryStatus.PENDING
        assert mine[0].answered_at is None
        assert mine[0].attachment_urls is None


def test_create_keeps_empty_attachment_list(app, make_user):
    uid = make_user()
    iid = _create(app, uid, attachment_urls=[])
    with session_scope(app) as s:
        assert s.get(Inquiry, iid).attachment_urls == []


def test_list_inquiries_pagination(app, make_user):
    uid = make_user()
    base = datetime(2026, 1, 1)
    with session_scope(app) as s:
        for i in range(45):
            ts = base + timedelta(minutes=i)
            s.add(
                Inquiry(
                    user_id=uid,
                    category=InquiryCategory.OTHER,
                    subject=f"q{i}",
                    content="c",
                    status=InquiryStatus.PENDING,
                    created_at=ts,
                    updated_at=ts,
                )
            )

    with session_scope(app) as s:
        items, total = list_inquiries(s, page=2, limit=20)
        assert total == 45
        # Newest first: page 2 holds the 21st..40th newest.
        assert [i.subject for i in items] == [f"q{n}" for n in range(24, 4, -1)]
        assert items[0].user is not None

        items, total = list_inquiries(s, page=3, limit=20)
        assert [i.subject for i in items] == ["q4", "q3", "q2", "q1", "q0"]

        items, _ = list_inquiries(s, page=0, limit=1000)
        assert len(items) == 45


def test_list_inquiries_limit_is_not_capped(app, make_user):
    uid = make_user()
    with session_scope(app) as s:
        for i in range(150):
            s.add(Inquiry(user_id=uid, category=InquiryCategory.OTHER, subject=f"q{i}", content="c"))

    with session_scope(app) as s:
        items, total = list_inquiries(s, page=1, limit=150)
        assert total == 150
        assert len(items) == 150


def test_status_audit_row_visible_in_same_session(app, make_user):
    iid = _create(app, make_user())
    with session_scope(app) as s:
        update_inquiry_status(s, iid, InquiryStatusPatch(status=InquiryStatus.CLOSED))
        assert s.query(AuditEvent).filter(AuditEvent.action == "inquiry.status").count() == 1


def test_update_status_stamps_answered_at(app, make_user):
    iid = _create(app, make_user())
    with session_scope(app) as s:
        inquiry = update_inquiry_status(s, iid, InquiryStatusPatch(status=InquiryStatus.IN_PROGRESS))
        assert inquiry.answered_at is None
        inquiry = update_inquiry_status(s, iid, InquiryStatusPatch(admin_note="called the user"))
        assert inquiry.status == InquiryStatus.IN_PROGRESS
        assert inquiry.admin_note == "called the user"
        inquiry = update_inquiry_status(s, iid, InquiryStatusPatch(status=InquiryStatus.ANSWERED))
        assert inquiry.answered_at is not None


def test_update_missing_inquiry_raises(app):
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            update_inquiry_status(s, 999, InquiryStatusPatch(status=InquiryStatus.CLOSED))


def test_send_response_requires_owner_email(app, make_user, outbox):
    iid = _create(app, make_user(email=None))
    with session_scope(app) as s:
        with pytest.raises(BadRequestError):
            send_inquiry_response(s, iid, "Hello", app.extensions["mail"])
    assert outbox.sent == []
    with session_scope(app) as s:
        assert s.get(Inquiry, iid).status == InquiryStatus.PENDING


def test_send_response_mails_and_marks_answered(app, make_user, outbox):
    iid = _create(app, make_user(email="buyer@example.com"))
    with session_scope(app) as s:
        send_inquiry_response(s, iid, "We credited 100 points.", app.extensions["mail"])

    assert len(outbox.sent) == 1
    msg = outbox.sent[0]
    assert msg["To"] == "buyer@example.com"
    assert msg["Subject"] == "[insign] Re: Points not credited"
    text = msg.get_body(preferencelist=("plain",)).get_content()
    assert "Points not credited" in text
    assert "We credited 100 points." in text

    with session_scope(app) as s:
        inquiry = s.get(Inquiry, iid)
        assert inquiry.status == InquiryStatus.ANSWERED
        assert inquiry.answered_at is not None
        assert s.query(AuditEvent).filter(AuditEvent.action == "inquiry.respond").count() == 1


def test_send_response_mail_failure_leaves_status(app, make_user, failing_outbox):
    iid = _create(app, make_user())
    with pytest.raises(MailDeliveryError) as exc:
        with session_scope(app) as s:
            send_inquiry_response(s, iid, "Answer", app.extensions["mail"])
    assert "s3cret" not in exc.value.message

    with session_scope(app) as s:
        inquiry = s.get(Inquiry, iid)
        assert inquiry.status == InquiryStatus.PENDING
        assert inquiry.answered_at is None


def test_send_response_without_smtp_config(app, make_user):
    iid = _create(app, make_user())
    app.extensions["mail"] = MailService(app.config)
    with session_scope(app) as s:
        with pytest.raises(MailConfigurationError):
            send_inquiry_response(s, iid, "Answer", app.extensions["mail"])
    with session_scope(app) as s:
        assert s.get(Inquiry, iid).status == InquiryStatus.PENDING


def test_delete_inquiry(app, make_user):
    iid = _create(app, make_user())
    with session_scope(app) as s:
        delete_inquiry(s, iid)
    with session_scope(app) as s:
        assert s.get(Inquiry, iid) is None
        with pytest.raises(NotFoundError):
            delete_inquiry(s, iid)


def test_validate_inquiry_payload():
    assert validate_inquiry_payload(_payload()) == []
    assert validate_inquiry_payload(_payload(category="refund"))
    assert validate_inquiry_payload(_payload(subject="x" * 201))
    assert validate_inquiry_payload(_payload(content="   "))
    assert validate_inquiry_payload(_payload(attachment_urls="https://a"))
    assert validate_inquiry_payload(_payload(attachment_urls=["https://a", 3]))


# ---------- JSON API ----------


def test_api_requires_bearer_token(client):
    r = client.get("/api/inquiries/my")
    assert r.status_code == 401
    assert r.json["error"] == "unauthorized"
    assert r.headers["WWW-Authenticate"] == "Bearer"

    r = client.get("/api/inquiries/my", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    r = client.post("/api/inquiries", json=_payload(), headers={"Authorization": "Token abc"})
    assert r.status_code == 401


def test_api_create_and_list_mine(app, client, make_user, bearer):
    uid = make_user()
    headers = bearer(uid)

    r = client.post(
        "/api/inquiries",
        json={**_payload(), "attachmentUrls": ["https://cdn.example.com/receipt.png"]},
        headers=headers,
    )
    assert r.status_code == 201
    body = r.json
    assert body["userId"] == uid
    assert body["status"] == InquiryStatus.PENDING
    assert body["answeredAt"] is None
    assert body["attachmentUrls"] == ["https://cdn.example.com/receipt.png"]

    r = client.get("/api/inquiries/my", headers=headers)
    assert r.status_code == 200
    assert [i["id"] for i in r.json] == [body["id"]]

    r = client.get(f"/api/inquiries/{body['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json["subject"] == "Points not credited"


def test_api_create_validation_error(client, make_user, bearer):
    headers = bearer(make_user())
    r = client.post("/api/inquiries", json={"category": "nope", "subject": "", "content": ""}, headers=headers)
    assert r.status_code == 400
    assert r.json["error"] == "validation_error"
    assert len(r.json["errors"]) == 3

    r = client.post("/api/inquiries", data="not json", content_type="text/plain", headers=headers)
    assert r.status_code == 400


def test_api_create_for_unknown_user_is_401(client, bearer):
    r = client.post("/api/inquiries", json=_payload(), headers=bearer(4242))
    assert r.status_code == 401


def test_api_detail_is_owner_only(app, client, make_user, bearer):
    owner = make_user()
    intruder = make_user(email="intruder@example.com")
    iid = _create(app, owner)

    r = client.get(f"/api/inquiries/{iid}", headers=bearer(intruder))
    assert r.status_code == 404
    assert r.json["error"] == "not_found"

    r = client.get("/api/inquiries/99999", headers=bearer(owner))
    assert r.status_code == 404


# ---------- Admin ----------


def test_admin_inquiry_pages(app, admin_client, make_user):
    iid = _create(app, make_user(name="Kim"))
    r = admin_client.get("/adm/inquiries")
    assert r.status_code == 200
    assert b"Points not credited" in r.data

    r = admin_client.get("/adm/inquiries?page=abc")
    assert r.status_code == 200

    r = admin_client.get(f"/adm/inquiries/{iid}")
    assert r.status_code == 200
    assert b"I bought 100 points yesterday." in r.data

    assert admin_client.get("/adm/inquiries/99999").status_code == 404


def test_admin_status_update(app, admin_client, csrf, make_user):
    iid = _create(app, make_user())
    r = admin_client.post(
        f"/adm/inquiries/{iid}/status",
        data={"csrf_token": csrf, "status": InquiryStatus.CLOSED, "admin_note": "duplicate"},
    )
    assert r.status_code == 302
    with session_scope(app) as s:
        inquiry = s.get(Inquiry, iid)
        assert inquiry.status == InquiryStatus.CLOSED
        assert inquiry.admin_note == "duplicate"

    r = admin_client.post(f"/adm/inquiries/{iid}/status", data={"csrf_token": csrf, "status": "lost"})
    assert "error=" in r.headers["Location"]


def test_admin_respond_success(app, admin_client, csrf, make_user, outbox):
    iid = _create(app, make_user())
    r = admin_client.post(f"/adm/inquiries/{iid}/respond", data={"csrf_token": csrf, "message": "Done."})
    assert r.status_code == 302
    assert "message=" in r.headers["Location"]
    assert len(outbox.sent) == 1
    with session_scope(app) as s:
        assert s.get(Inquiry, iid).status == InquiryStatus.ANSWERED


def test_admin_respond_mail_failure(app, admin_client, csrf, make_user, failing_outbox):
    iid = _create(app, make_user())
    r = admin_client.post(f"/adm/inquiries/{iid}/respond", data={"csrf_token": csrf, "message": "Done."})
    assert r.status_code == 302
    assert "error=" in r.headers["Location"]
    with session_scope(app) as s:
        assert s.get(Inquiry, iid).status == InquiryStatus.PENDING


def test_admin_respond_requires_message(app, admin_client, csrf, make_user, outbox):
    iid = _create(app, make_user())
    r = admin_client.post(f"/adm/inquiries/{iid}/respond", data={"csrf_token": csrf, "message": "  "})
    assert "error=" in r.headers["Location"]
    assert outbox.sent == []


def test_admin_delete(app, admin_client, csrf, make_user):
    iid = _create(app, make_user())
    r = admin_client.post(f"/adm/inquiries/{iid}/delete", data={"csrf_token": csrf})
    assert r.status_code == 302
    with session_scope(app) as s:
        assert s.get(Inquiry, iid) is None
