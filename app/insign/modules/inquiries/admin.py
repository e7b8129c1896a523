from __future__ import annotations

import math

from flask import Blueprint, current_app, render_template, request

from app.insign.admin import current_admin, page_notices, redirect_with_error, redirect_with_message
from app.insign.db import db_session
from app.insign.errors import InsignError
from app.insign.mail import get_mail_service
from app.insign.modules.inquiries.models import STATUS_LABELS, InquiryStatus
from app.insign.modules.inquiries.service import (
    DEFAULT_PAGE_SIZE,
    InquiryStatusPatch,
    delete_inquiry,
    get_inquiry,
    list_inquiries,
    send_inquiry_response,
    update_inquiry_status,
    validate_status_payload,
)
from app.insign.rbac import require_permission

bp = Blueprint("inquiries", __name__)


@bp.get("/inquiries")
@require_permission("inquiries.view")
def inquiries_list():
    s = db_session()
    try:
        page = max(1, int(request.args.get("page") or 1))
    except ValueError:
        page = 1

    inquiries, total = list_inquiries(s, page, DEFAULT_PAGE_SIZE)
    return render_template(
        "admin/inquiries/index.html",
        inquiries=inquiries,
        current_page=page,
        total_pages=max(1, math.ceil(total / DEFAULT_PAGE_SIZE)),
        total=total,
        **page_notices(),
    )


@bp.get("/inquiries/<int:inquiry_id>")
@require_permission("inquiries.view")
def inquiry_detail(inquiry_id: int):
    s = db_session()
    inquiry = get_inquiry(s, inquiry_id)
    return render_template(
        "admin/inquiries/detail.html",
        inquiry=inquiry,
        statuses=[(st, STATUS_LABELS[st]) for st in InquiryStatus.ALL],
        **page_notices(),
    )


@bp.post("/inquiries/<int:inquiry_id>/status")
@require_permission("inquiries.edit")
def inquiry_status_post(inquiry_id: int):
    s = db_session()
    payload = {"status": (request.form.get("status") or "").strip() or None}
    if "admin_note" in request.form:
        payload["admin_note"] = request.form.get("admin_note")

    errors = validate_status_payload(payload)
    if errors:
        return redirect_with_error("inquiries.inquiry_detail", " ".join(errors), inquiry_id=inquiry_id)

    try:
        update_inquiry_status(s, inquiry_id, InquiryStatusPatch.from_payload(payload), current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("inquiries.inquiry_detail", e.message, inquiry_id=inquiry_id)

    return redirect_with_message("inquiries.inquiry_detail", "Inquiry updated.", inquiry_id=inquiry_id)


@bp.post("/inquiries/<int:inquiry_id>/respond")
@require_permission("inquiries.respond")
def inquiry_respond_post(inquiry_id: int):
    s = db_session()
    message = (request.form.get("message") or "").strip()
    if not message:
        return redirect_with_error("inquiries.inquiry_detail", "Response message is required.", inquiry_id=inquiry_id)

    try:
        send_inquiry_response(s, inquiry_id, message, get_mail_service(), current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        current_app.logger.warning("Inquiry respond failed (inquiry_id=%s): %s", inquiry_id, e.message)
        return redirect_with_error("inquiries.inquiry_detail", e.message, inquiry_id=inquiry_id)

    return redirect_with_message("inquiries.inquiry_detail", "Response sent.", inquiry_id=inquiry_id)


@bp.post("/inquiries/<int:inquiry_id>/delete")
@require_permission("inquiries.edit")
def inquiry_delete_post(inquiry_id: int):
    s = db_session()
    try:
        delete_inquiry(s, inquiry_id, current_admin())
        s.commit()
    except InsignError as e:
        s.rollback()
        return redirect_with_error("inquiries.inquiries_list", e.message)
    return redirect_with_message("inquiries.inquiries_list", "Inquiry deleted.")
