"""Tests for admin account management and the end-user list."""
import pytest
from werkzeug.security import check_password_hash

from app.insign.db import session_scope
from app.insign.errors import BadRequestError, ConflictError, NotFoundError, ValidationError
from app.insign.models import Admin, AuditEvent, Role
from app.insign.modules.accounts.service import (
    create_admin,
    delete_admin,
    list_users,
    set_admin_active,
    update_admin,
    validate_admin_payload,
)
from app.insign.modules.inquiries.models import Inquiry


def _payload(**overrides) -> dict:
    payload = {
        "email": "ops@example.com",
        "name": "Ops",
        "password": "longpassword",
        "password_confirm": "longpassword",
        "role_ids": [],
    }
    payload.update(overrides)
    return payload


def _admin_id(app, email="admin@example.com") -> int:
    with session_scope(app) as s:
        return s.query(Admin).filter(Admin.email == email).one().id


def _role_id(app) -> int:
    with session_scope(app) as s:
        return s.query(Role).filter(Role.key == "admin").one().id


def _login(app, email, password):
    c = app.test_client()
    c.post("/adm/login", data={"email": email, "password": password})
    return c


def test_validate_admin_payload():
    assert validate_admin_payload(_payload(), creating=True) == []
    assert validate_admin_payload(_payload(email=""), creating=True) == ["Email is required."]
    assert validate_admin_payload(_payload(email="nope"), creating=True) == ["Invalid email format."]
    assert validate_admin_payload(_payload(password="short", password_confirm="short"), creating=True) == [
        "Password must be at least 8 characters."
    ]
    assert validate_admin_payload(_payload(password_confirm="different1"), creating=True) == ["Passwords do not match."]
    # Password is optional on update.
    assert validate_admin_payload({"password": "", "password_confirm": ""}, creating=False) == []


def test_create_admin_normalizes_email_and_rejects_duplicates(app):
    with session_scope(app) as s:
        admin = create_admin(s, _payload(email="  Ops@Example.COM "))
        assert admin.email == "ops@example.com"
        assert admin.is_active is True
        assert check_password_hash(admin.password_hash, "longpassword")
        assert s.query(AuditEvent).filter(AuditEvent.action == "admin.create").count() == 1

    with session_scope(app) as s:
        with pytest.raises(ConflictError):
            create_admin(s, _payload(email="ops@example.com"))
        with pytest.raises(ValidationError) as exc:
            create_admin(s, _payload(email="x@example.com", password="short", password_confirm="short"))
        assert exc.value.errors == ["Password must be at least 8 characters."]


def test_update_admin_password_and_roles(app):
    role_id = _role_id(app)
    with session_scope(app) as s:
        target_id = create_admin(s, _payload()).id

    with session_scope(app) as s:
        update_admin(
            s,
            target_id,
            {"name": "Operations", "password": "newpassword", "password_confirm": "newpassword", "role_ids": [str(role_id)]},
        )

    with session_scope(app) as s:
        admin = s.get(Admin, target_id)
        assert admin.name == "Operations"
        assert check_password_hash(admin.password_hash, "newpassword")
        assert [r.key for r in admin.roles] == ["admin"]

    # Blank password keeps the old one.
    with session_scope(app) as s:
        update_admin(s, target_id, {"name": "Ops", "password": "", "password_confirm": ""})
    with session_scope(app) as s:
        assert check_password_hash(s.get(Admin, target_id).password_hash, "newpassword")


def test_admin_cannot_change_own_roles_disable_or_delete_self(app):
    me_id = _admin_id(app)
    with session_scope(app) as s:
        me = s.get(Admin, me_id)
        with pytest.raises(BadRequestError):
            update_admin(s, me_id, {"role_ids": []}, actor=me)
        with pytest.raises(BadRequestError):
            set_admin_active(s, me_id, False, actor=me)
        with pytest.raises(BadRequestError):
            delete_admin(s, me_id, actor=me)
        # Own password and name are fine.
        update_admin(s, me_id, {"name": "Me", "password": "", "password_confirm": ""}, actor=me)

    with session_scope(app) as s:
        me = s.get(Admin, me_id)
        assert me.is_active is True
        assert me.name == "Me"
        assert len(me.roles) == 1


def test_missing_admin_raises(app):
    with session_scope(app) as s:
        with pytest.raises(NotFoundError):
            set_admin_active(s, 999, True)
        with pytest.raises(NotFoundError):
            delete_admin(s, 999)


def test_disabled_admin_cannot_log_in(app):
    role_id = _role_id(app)
    with session_scope(app) as s:
        target_id = create_admin(s, _payload(role_ids=[str(role_id)])).id

    c = _login(app, "ops@example.com", "longpassword")
    assert c.get("/adm/").status_code == 200

    with session_scope(app) as s:
        set_admin_active(s, target_id, False)

    # The live session is dropped and a fresh login is refused.
    assert c.get("/adm/").status_code == 302
    c = _login(app, "ops@example.com", "longpassword")
    assert c.get("/adm/").status_code == 302

    with session_scope(app) as s:
        set_admin_active(s, target_id, True)
        assert s.query(AuditEvent).filter(AuditEvent.action.in_(["admin.disable", "admin.enable"])).count() == 2
    c = _login(app, "ops@example.com", "longpassword")
    assert c.get("/adm/").status_code == 200


def test_admin_account_pages(app, admin_client, csrf):
    role_id = _role_id(app)
    r = admin_client.get("/adm/admins")
    assert r.status_code == 200
    assert b"admin@example.com" in r.data
    assert admin_client.get("/adm/admins/new").status_code == 200

    r = admin_client.post(
        "/adm/admins/new",
        data={
            "csrf_token": csrf,
            "email": "ops@example.com",
            "name": "Ops",
            "password": "longpassword",
            "password_confirm": "longpassword",
            "role_ids": [str(role_id)],
        },
    )
    assert r.status_code == 302
    assert "message=" in r.headers["Location"]
    target_id = _admin_id(app, "ops@example.com")

    assert admin_client.get(f"/adm/admins/{target_id}/edit").status_code == 200
    r = admin_client.post(
        f"/adm/admins/{target_id}/edit",
        data={"csrf_token": csrf, "name": "Ops team", "password": "", "password_confirm": "", "role_ids": [str(role_id)]},
    )
    assert r.status_code == 302

    r = admin_client.post(f"/adm/admins/{target_id}/toggle", data={"csrf_token": csrf, "is_active": "false"})
    assert r.status_code == 302
    with session_scope(app) as s:
        admin = s.get(Admin, target_id)
        assert admin.name == "Ops team"
        assert admin.is_active is False

    r = admin_client.post(f"/adm/admins/{target_id}/delete", data={"csrf_token": csrf})
    assert r.status_code == 302
    assert "message=" in r.headers["Location"]
    with session_scope(app) as s:
        assert s.get(Admin, target_id) is None


def test_admin_create_form_error_redirects(app, admin_client, csrf):
    r = admin_client.post(
        "/adm/admins/new",
        data={"csrf_token": csrf, "email": "ops@example.com", "password": "short", "password_confirm": "short"},
    )
    assert r.status_code == 302
    assert "/adm/admins/new" in r.headers["Location"]
    assert "error=" in r.headers["Location"]
    with session_scope(app) as s:
        assert s.query(Admin).filter(Admin.email == "ops@example.com").count() == 0


def test_admin_cannot_delete_self_via_page(app, admin_client, csrf):
    me_id = _admin_id(app)
    r = admin_client.post(f"/adm/admins/{me_id}/delete", data={"csrf_token": csrf})
    assert r.status_code == 302
    assert "error=" in r.headers["Location"]
    r = admin_client.post(f"/adm/admins/{me_id}/toggle", data={"csrf_token": csrf, "is_active": "false"})
    assert "error=" in r.headers["Location"]
    with session_scope(app) as s:
        assert s.get(Admin, me_id).is_active is True


def test_admin_edit_missing_is_404(admin_client):
    assert admin_client.get("/adm/admins/999/edit").status_code == 404


def test_list_users_with_inquiry_counts(app, make_user):
    quiet = make_user(email="quiet@example.com", name="Quiet")
    busy = make_user(email="busy@example.com", name="Busy")
    with session_scope(app) as s:
        for i in range(2):
            s.add(Inquiry(user_id=busy, subject=f"q{i}", content="c"))

    with session_scope(app) as s:
        counts = {user.id: n for user, n in list_users(s)}
    assert counts == {quiet: 0, busy: 2}


def test_users_page(app, admin_client, make_user):
    make_user(email="buyer@example.com", name="Buyer")
    r = admin_client.get("/adm/users")
    assert r.status_code == 200
    assert b"buyer@example.com" in r.data


def test_account_pages_require_permission(app):
    with session_scope(app) as s:
        create_admin(s, _payload(email="viewer@example.com"))

    c = _login(app, "viewer@example.com", "longpassword")
    assert c.get("/adm/admins").status_code == 403
    assert c.get("/adm/users").status_code == 403
