from __future__ import annotations

from flask import Blueprint, abort, current_app, render_template, request

from app.insign.admin import current_admin, page_notices, redirect_with_error, redirect_with_message
from app.insign.db import db_session
from app.insign.errors import InsignError
from app.insign.modules.policies.models import POLICY_TYPE_LABELS, PolicyType
from app.insign.modules.policies.service import (
    PolicyPatch,
    create_policy,
    delete_policy,
    get_policy,
    list_policies,
    set_active_policy,
    update_policy,
    validate_policy_payload,
)
from app.insign.rbac import require_permission

bp = Blueprint("policies", __name__)


def _form_payload() -> dict:
    return {
        "type": request.form.get("type"),
        "title": request.form.get("title"),
        "content": request.form.get("content"),
        "version": request.form.get("version"),
        "is_active": request.form.get("is_active") is not None,
    }


def _form_context() -> dict:
    return {"policy_types": [(t, POLICY_TYPE_LABELS[t]) for t in PolicyType.ALL]}


@bp.get("/policies")
@require_permission("policies.view")
def policies_list():
    s = db_session()
    return render_template("admin/policies/index.html", policies=list_policies(s), **page_notices())


@bp.get("/policies/new")
@require_permission("policies.edit")
def policies_new_get():
    return render_template("admin/policies/new.html", policy=None, **_form_context(), **page_notices())


@bp.post("/policies/new")
@require_permission("policies.edit")
def policies_new_post():
    s = db_session()
    payload = _form_payload()

    errors = validate_policy_payload(payload)
    if errors:
        return redirect_with_error("policies.policies_new_get", " ".join(errors))

    try:
        create_policy(s, payload, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("policies.policies_new_get", e.message)

    return redirect_with_message("policies.policies_list", "Policy created.")


@bp.get("/policies/<int:policy_id>/edit")
@require_permission("policies.edit")
def policies_edit_get(policy_id: int):
    s = db_session()
    policy = get_policy(s, policy_id)
    if not policy:
        abort(404)
    return render_template("admin/policies/edit.html", policy=policy, **_form_context(), **page_notices())


@bp.post("/policies/<int:policy_id>/edit")
@require_permission("policies.edit")
def policies_edit_post(policy_id: int):
    s = db_session()
    payload = _form_payload()

    errors = validate_policy_payload(payload)
    if errors:
        return redirect_with_error("policies.policies_edit_get", " ".join(errors), policy_id=policy_id)

    try:
        update_policy(s, policy_id, PolicyPatch.from_payload(payload), current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        current_app.logger.warning("Policy update failed (policy_id=%s): %s", policy_id, e.message)
        return redirect_with_error("policies.policies_edit_get", e.message, policy_id=policy_id)

    return redirect_with_message("policies.policies_list", "Policy updated.")


@bp.post("/policies/<int:policy_id>/activate")
@require_permission("policies.edit")
def policies_activate(policy_id: int):
    s = db_session()
    try:
        set_active_policy(s, policy_id, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("policies.policies_list", e.message)
    return redirect_with_message("policies.policies_list", "Policy activated.")


@bp.post("/policies/<int:policy_id>/delete")
@require_permission("policies.edit")
def policies_delete(policy_id: int):
    s = db_session()
    try:
        delete_policy(s, policy_id, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("policies.policies_list", e.message)
    return redirect_with_message("policies.policies_list", "Policy deleted.")
