from __future__ import annotations

from flask import Blueprint, abort, current_app, render_template, request

from app.insign.admin import current_admin, page_notices, redirect_with_error, redirect_with_message
from app.insign.db import db_session
from app.insign.errors import InsignError, NotFoundError
from app.insign.modules.accounts.service import (
    create_admin,
    delete_admin,
    get_admin,
    list_admins,
    list_roles,
    list_users,
    set_admin_active,
    update_admin,
)
from app.insign.rbac import require_permission
from app.insign.utils import parse_bool

bp = Blueprint("accounts", __name__)


# ---------- Admin accounts ----------
@bp.get("/admins")
@require_permission("admins.view")
def admins_list():
    s = db_session()
    return render_template("admin/accounts/index.html", admins=list_admins(s), **page_notices())


@bp.get("/admins/new")
@require_permission("admins.edit")
def admins_new_get():
    s = db_session()
    return render_template("admin/accounts/new.html", roles=list_roles(s), **page_notices())


@bp.post("/admins/new")
@require_permission("admins.edit")
def admins_new_post():
    s = db_session()
    payload = {
        "email": request.form.get("email"),
        "name": request.form.get("name"),
        "password": request.form.get("password") or "",
        "password_confirm": request.form.get("password_confirm") or "",
        "role_ids": request.form.getlist("role_ids"),
    }
    try:
        admin = create_admin(s, payload, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("accounts.admins_new_get", e.message)

    return redirect_with_message("accounts.admins_list", f"Account created for {admin.email}.")


@bp.get("/admins/<int:admin_id>/edit")
@require_permission("admins.edit")
def admins_edit_get(admin_id: int):
    s = db_session()
    try:
        account = get_admin(s, admin_id)
    except NotFoundError:
        abort(404)
    return render_template("admin/accounts/edit.html", account=account, roles=list_roles(s), **page_notices())


@bp.post("/admins/<int:admin_id>/edit")
@require_permission("admins.edit")
def admins_edit_post(admin_id: int):
    s = db_session()
    payload = {
        "name": request.form.get("name"),
        "password": request.form.get("password") or "",
        "password_confirm": request.form.get("password_confirm") or "",
        "role_ids": request.form.getlist("role_ids"),
    }
    try:
        update_admin(s, admin_id, payload, current_admin())
        s.commit()
    except NotFoundError:
        s.rollback()
        abort(404)
    except InsignError as e:
        s.rollback()
        return redirect_with_error("accounts.admins_edit_get", e.message, admin_id=admin_id)

    return redirect_with_message("accounts.admins_list", "Account updated.")


@bp.post("/admins/<int:admin_id>/toggle")
@require_permission("admins.edit")
def admins_toggle(admin_id: int):
    s = db_session()
    is_active = bool(parse_bool(request.form.get("is_active")))
    try:
        set_admin_active(s, admin_id, is_active, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        current_app.logger.info("Admin toggle refused (admin_id=%s): %s", admin_id, e.message)
        return redirect_with_error("accounts.admins_list", e.message)

    return redirect_with_message("accounts.admins_list", "Account enabled." if is_active else "Account disabled.")


@bp.post("/admins/<int:admin_id>/delete")
@require_permission("admins.edit")
def admins_delete(admin_id: int):
    s = db_session()
    try:
        delete_admin(s, admin_id, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("accounts.admins_list", e.message)
    return redirect_with_message("accounts.admins_list", "Account deleted.")


# ---------- End users ----------
@bp.get("/users")
@require_permission("users.view")
def users_list():
    s = db_session()
    return render_template("admin/accounts/users.html", users=list_users(s), **page_notices())
