from __future__ import annotations

from flask import Blueprint, abort, current_app, render_template, request

from app.insign.admin import current_admin, page_notices, redirect_with_error, redirect_with_message
from app.insign.db import db_session
from app.insign.errors import InsignError
from app.insign.modules.events.service import (
    EventPatch,
    create_event,
    delete_event,
    get_event,
    list_events,
    update_event,
    validate_event_payload,
)
from app.insign.rbac import require_permission

bp = Blueprint("events", __name__)


def _form_payload() -> dict:
    return {
        "title": request.form.get("title"),
        "content": request.form.get("content"),
        "start_date": (request.form.get("start_date") or "").strip() or None,
        "end_date": (request.form.get("end_date") or "").strip() or None,
        # Unchecked checkboxes are not submitted at all.
        "is_active": request.form.get("is_active") is not None,
    }


# ---------- List ----------
@bp.get("/events")
@require_permission("events.view")
def events_list():
    s = db_session()
    return render_template("admin/events/index.html", events=list_events(s), **page_notices())


# ---------- New ----------
@bp.get("/events/new")
@require_permission("events.edit")
def events_new_get():
    return render_template("admin/events/new.html", event=None, **page_notices())


@bp.post("/events/new")
@require_permission("events.edit")
def events_new_post():
    s = db_session()
    payload = _form_payload()

    errors = validate_event_payload(payload)
    if errors:
        return redirect_with_error("events.events_new_get", " ".join(errors))

    try:
        create_event(s, payload, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("events.events_new_get", e.message)

    return redirect_with_message("events.events_list", "Event created.")


# ---------- Edit ----------
@bp.get("/events/<int:event_id>/edit")
@require_permission("events.edit")
def events_edit_get(event_id: int):
    s = db_session()
    event = get_event(s, event_id)
    if not event:
        abort(404)
    return render_template("admin/events/edit.html", event=event, **page_notices())


@bp.post("/events/<int:event_id>/edit")
@require_permission("events.edit")
def events_edit_post(event_id: int):
    s = db_session()
    payload = _form_payload()

    errors = validate_event_payload(payload)
    if errors:
        return redirect_with_error("events.events_edit_get", " ".join(errors), event_id=event_id)

    try:
        update_event(s, event_id, EventPatch.from_payload(payload), current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        current_app.logger.warning("Event update failed (event_id=%s): %s", event_id, e.message)
        return redirect_with_error("events.events_edit_get", e.message, event_id=event_id)

    return redirect_with_message("events.events_list", "Event updated.")


# ---------- Delete ----------
@bp.post("/events/<int:event_id>/delete")
@require_permission("events.edit")
def events_delete(event_id: int):
    s = db_session()
    try:
        delete_event(s, event_id, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("events.events_list", e.message)
    return redirect_with_message("events.events_list", "Event deleted.")
