from __future__ import annotations

import logging
import re

from sqlalchemy import func
from sqlalchemy.orm import Session
from werkzeug.security import generate_password_hash

from app.insign.audit import record_event
from app.insign.errors import BadRequestError, ConflictError, NotFoundError, ValidationError
from app.insign.models import Admin, Role, User
from app.insign.modules.inquiries.models import Inquiry

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_password(password: str | None, confirm: str | None, *, required: bool = True) -> list[str]:
    errors: list[str] = []
    if not password:
        if required:
            errors.append("Password is required.")
        return errors
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters.")
    elif password != confirm:
        errors.append("Passwords do not match.")
    return errors


def validate_admin_payload(payload: dict, *, creating: bool) -> list[str]:
    errors: list[str] = []
    if creating:
        email = normalize_email(payload.get("email"))
        if not email:
            errors.append("Email is required.")
        elif not _EMAIL_RE.match(email):
            errors.append("Invalid email format.")
    errors.extend(validate_password(payload.get("password"), payload.get("password_confirm"), required=creating))
    return errors


def list_admins(s: Session) -> list[Admin]:
    return s.query(Admin).order_by(Admin.id.asc()).all()


def list_roles(s: Session) -> list[Role]:
    return s.query(Role).order_by(Role.name.asc()).all()


def get_admin(s: Session, admin_id: int) -> Admin:
    admin = s.get(Admin, admin_id)
    if not admin:
        raise NotFoundError("Admin not found.")
    return admin


def _roles_by_id(s: Session, role_ids) -> list[Role]:
    ids = [int(r) for r in role_ids or () if str(r).strip().isdigit()]
    if not ids:
        return []
    return s.query(Role).filter(Role.id.in_(ids)).order_by(Role.id).all()


def create_admin(s: Session, payload: dict, actor: Admin | None = None) -> Admin:
    errors = validate_admin_payload(payload, creating=True)
    if errors:
        raise ValidationError(errors)

    email = normalize_email(payload.get("email"))
    if s.query(Admin).filter(Admin.email == email).one_or_none():
        raise ConflictError("An account with this email already exists.")

    admin = Admin(
        email=email,
        name=(payload.get("name") or "").strip() or None,
        password_hash=generate_password_hash(payload["password"]),
        is_active=True,
    )
    admin.roles = _roles_by_id(s, payload.get("role_ids"))
    s.add(admin)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="admin.create",
        entity_type="Admin",
        entity_id=str(admin.id),
        metadata={"email": email, "roles": [r.key for r in admin.roles]},
    )
    s.flush()
    logger.info("Admin created id=%s", admin.id)
    return admin


def update_admin(s: Session, admin_id: int, payload: dict, actor: Admin | None = None) -> Admin:
    """
    Update display name, roles and (when given) password.
    ``role_ids`` absent from the payload leaves roles alone.
    """
    admin = get_admin(s, admin_id)
    errors = validate_admin_payload(payload, creating=False)
    if errors:
        raise ValidationError(errors)

    before = {"name": admin.name, "roles": [r.key for r in admin.roles]}
    if "name" in payload:
        admin.name = (payload.get("name") or "").strip() or None
    if "role_ids" in payload:
        roles = _roles_by_id(s, payload.get("role_ids"))
        if actor is not None and actor.id == admin.id and {r.id for r in roles} != {r.id for r in admin.roles}:
            raise BadRequestError("You cannot change your own roles.")
        admin.roles = roles
    password_changed = bool(payload.get("password"))
    if password_changed:
        admin.password_hash = generate_password_hash(payload["password"])
    s.flush()

    record_event(
        s,
        actor=actor,
        action="admin.update",
        entity_type="Admin",
        entity_id=str(admin.id),
        metadata={
            "before": before,
            "after": {"name": admin.name, "roles": [r.key for r in admin.roles]},
            "password_changed": password_changed,
        },
    )
    s.flush()
    return admin


def set_admin_active(s: Session, admin_id: int, is_active: bool, actor: Admin | None = None) -> Admin:
    admin = get_admin(s, admin_id)
    if not is_active and actor is not None and actor.id == admin.id:
        raise BadRequestError("You cannot disable your own account.")

    admin.is_active = bool(is_active)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="admin.enable" if admin.is_active else "admin.disable",
        entity_type="Admin",
        entity_id=str(admin.id),
        metadata={"email": admin.email},
    )
    s.flush()
    logger.info("Admin id=%s is_active=%s", admin.id, admin.is_active)
    return admin


def delete_admin(s: Session, admin_id: int, actor: Admin | None = None) -> None:
    admin = get_admin(s, admin_id)
    if actor is not None and actor.id == admin.id:
        raise BadRequestError("You cannot delete your own account.")

    email = admin.email
    s.delete(admin)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="admin.delete",
        entity_type="Admin",
        entity_id=str(admin_id),
        metadata={"email": email},
    )
    s.flush()
    logger.info("Admin deleted id=%s", admin_id)


def list_users(s: Session) -> list[tuple[User, int]]:
    """End users, newest first, each with their inquiry count."""
    counts = (
        s.query(Inquiry.user_id.label("user_id"), func.count(Inquiry.id).label("n"))
        .group_by(Inquiry.user_id)
        .subquery()
    )
    rows = (
        s.query(User, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.user_id == User.id)
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )
    return [(user, int(n)) for user, n in rows]
