from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.insign.db import db_session
from app.insign.errors import NotFoundError, UnauthorizedError, ValidationError
from app.insign.models import User
from app.insign.modules.inquiries.models import Inquiry
from app.insign.modules.inquiries.service import (
    create_inquiry,
    get_inquiry,
    list_user_inquiries,
    validate_inquiry_payload,
)
from app.insign.tokens import bearer_required
from app.insign.utils import isoformat

bp = Blueprint("inquiries_api", __name__)


def inquiry_to_dict(inquiry: Inquiry) -> dict:
    return {
        "id": inquiry.id,
        "userId": inquiry.user_id,
        "category": inquiry.category,
        "subject": inquiry.subject,
        "content": inquiry.content,
        "attachmentUrls": inquiry.attachment_urls,
        "status": inquiry.status,
        "adminNote": inquiry.admin_note,
        "answeredAt": isoformat(inquiry.answered_at),
        "createdAt": isoformat(inquiry.created_at),
        "updatedAt": isoformat(inquiry.updated_at),
    }


@bp.post("/inquiries")
@bearer_required
def inquiries_create():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError(["Request body must be a JSON object."])

    payload = {
        "category": body.get("category"),
        "subject": body.get("subject"),
        "content": body.get("content"),
        "attachment_urls": body.get("attachmentUrls"),
    }
    errors = validate_inquiry_payload(payload)
    if errors:
        raise ValidationError(errors)

    s = db_session()
    if s.get(User, g.api_user_id) is None:
        raise UnauthorizedError("User no longer exists.")
    inquiry = create_inquiry(s, g.api_user_id, payload)
    s.commit()
    return jsonify(inquiry_to_dict(inquiry)), 201


@bp.get("/inquiries/my")
@bearer_required
def inquiries_mine():
    s = db_session()
    return jsonify([inquiry_to_dict(i) for i in list_user_inquiries(s, g.api_user_id)])


@bp.get("/inquiries/<int:inquiry_id>")
@bearer_required
def inquiries_detail(inquiry_id: int):
    s = db_session()
    inquiry = get_inquiry(s, inquiry_id)
    # Owner only; someone else's inquiry looks the same as a missing one.
    if inquiry.user_id != g.api_user_id:
        raise NotFoundError("Inquiry not found.")
    return jsonify(inquiry_to_dict(inquiry))
