"""
Inquiry service layer.
Handles user submissions, the admin status workflow and e-mailed responses.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.insign.audit import record_event
from app.insign.errors import BadRequestError, InsignError, NotFoundError
from app.insign.utils import UNSET, is_set, utcnow

from .models import Inquiry, InquiryCategory, InquiryStatus

if TYPE_CHECKING:
    from app.insign.mail import MailService
    from app.insign.models import Admin


logger = logging.getLogger(__name__)

SUBJECT_MAX_LENGTH = 200
DEFAULT_PAGE_SIZE = 20


@dataclass
class InquiryStatusPatch:
    status: Any = UNSET
    admin_note: Any = UNSET

    @classmethod
    def from_payload(cls, payload: dict) -> "InquiryStatusPatch":
        patch = cls()
        if payload.get("status"):
            patch.status = payload["status"].strip()
        if "admin_note" in payload:
            patch.admin_note = payload["admin_note"]
        return patch


def validate_inquiry_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    category = payload.get("category")
    if category not in InquiryCategory.ALL:
        errors.append(f"Invalid category. Must be one of: {', '.join(InquiryCategory.ALL)}")

    subject = payload.get("subject")
    if not isinstance(subject, str) or not subject.strip():
        errors.append("Subject is required.")
    elif len(subject.strip()) > SUBJECT_MAX_LENGTH:
        errors.append(f"Subject must be at most {SUBJECT_MAX_LENGTH} characters.")

    content = payload.get("content")
    if not isinstance(content, str) or not content.strip():
        errors.append("Content is required.")

    urls = payload.get("attachment_urls")
    if urls is not None:
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            errors.append("Attachment URLs must be a list of strings.")
    return errors


def validate_status_payload(payload: dict) -> list[str]:
    errors: list[str] = []
    status = payload.get("status")
    if status and status not in InquiryStatus.ALL:
        errors.append(f"Invalid status. Must be one of: {', '.join(InquiryStatus.ALL)}")
    note = payload.get("admin_note")
    if note is not None and not isinstance(note, str):
        errors.append("Admin note must be text.")
    return errors


def create_inquiry(s: Session, user_id: int, payload: dict) -> Inquiry:
    now = utcnow()
    inquiry = Inquiry(
        user_id=user_id,
        category=payload["category"],
        subject=payload["subject"].strip(),
        content=payload["content"],
        attachment_urls=payload.get("attachment_urls"),
        status=InquiryStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    s.add(inquiry)
    s.flush()
    logger.info("Inquiry received id=%s user_id=%s", inquiry.id, user_id)
    return inquiry


def list_inquiries(s: Session, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> tuple[list[Inquiry], int]:
    """Admin listing, newest first. Page is 1-indexed; total ignores paging."""
    page = max(1, int(page))
    limit = max(1, int(limit))
    skip = (page - 1) * limit

    total = s.query(func.count(Inquiry.id)).scalar() or 0
    items = (
        s.query(Inquiry)
        .options(joinedload(Inquiry.user))
        .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def list_user_inquiries(s: Session, user_id: int) -> list[Inquiry]:
    return (
        s.query(Inquiry)
        .filter(Inquiry.user_id == user_id)
        .order_by(Inquiry.created_at.desc(), Inquiry.id.desc())
        .all()
    )


def get_inquiry(s: Session, inquiry_id: int) -> Inquiry:
    inquiry = (
        s.query(Inquiry)
        .options(joinedload(Inquiry.user))
        .filter(Inquiry.id == inquiry_id)
        .one_or_none()
    )
    if not inquiry:
        raise NotFoundError("Inquiry not found.")
    return inquiry


def update_inquiry_status(
    s: Session,
    inquiry_id: int,
    patch: InquiryStatusPatch,
    actor: "Admin | None" = None,
) -> Inquiry:
    inquiry = get_inquiry(s, inquiry_id)
    old_status = inquiry.status

    if is_set(patch.status):
        inquiry.status = patch.status
        if patch.status == InquiryStatus.ANSWERED:
            inquiry.answered_at = utcnow()

    if is_set(patch.admin_note):
        inquiry.admin_note = patch.admin_note

    inquiry.updated_at = utcnow()
    s.flush()

    record_event(
        s,
        actor=actor,
        action="inquiry.status",
        entity_type="Inquiry",
        entity_id=str(inquiry.id),
        metadata={"old_status": old_status, "new_status": inquiry.status},
    )
    s.flush()
    return inquiry


def send_inquiry_response(
    s: Session,
    inquiry_id: int,
    message: str,
    mail: "MailService",
    actor: "Admin | None" = None,
) -> Inquiry:
    """
    Mail the answer to the inquiry owner, then mark the inquiry answered.
    If the mail fails nothing is changed.
    """
    inquiry = get_inquiry(s, inquiry_id)

    email = ((inquiry.user.email if inquiry.user else None) or "").strip()
    if not email:
        raise BadRequestError("The inquiry owner has no email address.")

    try:
        mail.send_inquiry_response_mail(
            to=email,
            inquiry_subject=inquiry.subject,
            inquiry_content=inquiry.content,
            response_message=message,
        )
    except InsignError as e:
        logger.warning("Inquiry response not sent (inquiry_id=%s): %s", inquiry_id, e.message)
        raise

    inquiry = update_inquiry_status(s, inquiry_id, InquiryStatusPatch(status=InquiryStatus.ANSWERED), actor)
    record_event(
        s,
        actor=actor,
        action="inquiry.respond",
        entity_type="Inquiry",
        entity_id=str(inquiry.id),
        metadata={"to": email},
    )
    s.flush()
    logger.info("Inquiry response sent id=%s", inquiry_id)
    return inquiry


def delete_inquiry(s: Session, inquiry_id: int, actor: "Admin | None" = None) -> None:
    inquiry = get_inquiry(s, inquiry_id)
    s.delete(inquiry)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="inquiry.delete",
        entity_type="Inquiry",
        entity_id=str(inquiry_id),
        metadata={"subject": inquiry.subject},
    )
    s.flush()
    logger.info("Inquiry deleted id=%s", inquiry_id)
