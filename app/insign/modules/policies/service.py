from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError

from app.insign.audit import record_event
from app.insign.errors import ConflictError, NotFoundError
from app.insign.utils import UNSET, is_set, parse_bool, utcnow

from .models import Policy, PolicyType

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.insign.models import Admin


logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255
VERSION_MAX_LENGTH = 50


@dataclass
class PolicyPatch:
    """Partial update; UNSET fields are left alone, None clears nullable ones."""

    type: Any = UNSET
    title: Any = UNSET
    content: Any = UNSET
    version: Any = UNSET
    is_active: Any = UNSET

    @classmethod
    def from_payload(cls, payload: dict) -> "PolicyPatch":
        patch = cls()
        if "type" in payload:
            patch.type = (payload["type"] or "").strip()
        if "title" in payload:
            patch.title = (payload["title"] or "").strip()
        if "content" in payload:
            patch.content = payload["content"] or ""
        if "version" in payload:
            patch.version = (payload["version"] or "").strip() or None
        if "is_active" in payload:
            patch.is_active = bool(parse_bool(payload["is_active"]))
        return patch

    def present(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if is_set(getattr(self, f.name))}


def validate_policy_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate policy create/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial or "type" in payload:
        ptype = (payload.get("type") or "").strip()
        if ptype not in PolicyType.ALL:
            errors.append(f"Invalid policy type. Must be one of: {', '.join(PolicyType.ALL)}")
    if not partial or "title" in payload:
        title = (payload.get("title") or "").strip()
        if not title:
            errors.append("Title is required.")
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append(f"Title must be at most {TITLE_MAX_LENGTH} characters.")
    if not partial or "content" in payload:
        if not (payload.get("content") or "").strip():
            errors.append("Content is required.")
    version = payload.get("version")
    if version is not None and (not isinstance(version, str) or len(version.strip()) > VERSION_MAX_LENGTH):
        errors.append(f"Version must be text of at most {VERSION_MAX_LENGTH} characters.")
    if "is_active" in payload and parse_bool(payload["is_active"]) is None:
        errors.append("Active flag must be a boolean.")
    return errors


def list_policies(s: "Session") -> list[Policy]:
    return s.query(Policy).order_by(Policy.updated_at.desc(), Policy.id.desc()).all()


def get_policy(s: "Session", policy_id: int) -> Policy | None:
    return s.get(Policy, policy_id)


def get_active_policy(s: "Session", policy_type: str) -> Policy | None:
    return (
        s.query(Policy)
        .filter(Policy.type == policy_type, Policy.is_active.is_(True))
        .order_by(Policy.updated_at.desc())
        .first()
    )


def _deactivate_siblings(s: "Session", policy_type: str, *, exclude_id: int | None = None) -> int:
    """Clear the active flag on every other row of the type. Runs in the caller's transaction."""
    stmt = update(Policy).where(Policy.type == policy_type, Policy.is_active.is_(True))
    if exclude_id is not None:
        stmt = stmt.where(Policy.id != exclude_id)
    result = s.execute(stmt.values(is_active=False, updated_at=utcnow()))
    return result.rowcount


def _flush(s: "Session", policy_type: str) -> None:
    try:
        s.flush()
    except IntegrityError as e:
        logger.warning("Concurrent activation rejected (type=%s): %s", policy_type, e.orig)
        raise ConflictError("Another policy of this type was activated at the same time. Please retry.") from e


def create_policy(s: "Session", payload: dict, actor: "Admin | None" = None) -> Policy:
    patch = PolicyPatch.from_payload(payload)
    is_active = bool(patch.is_active) if is_set(patch.is_active) else False
    if is_active:
        _deactivate_siblings(s, patch.type)

    now = utcnow()
    policy = Policy(
        type=patch.type,
        title=patch.title,
        content=patch.content,
        version=patch.version if is_set(patch.version) else None,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    s.add(policy)
    _flush(s, policy.type)

    record_event(
        s,
        actor=actor,
        action="policy.create",
        entity_type="Policy",
        entity_id=str(policy.id),
        metadata={"type": policy.type, "version": policy.version, "is_active": policy.is_active},
    )
    s.flush()
    return policy


def update_policy(s: "Session", policy_id: int, patch: PolicyPatch, actor: "Admin | None" = None) -> Policy:
    policy = get_policy(s, policy_id)
    if not policy:
        raise NotFoundError(f"Policy {policy_id} not found.")

    target_type = patch.type if is_set(patch.type) else policy.type
    will_be_active = patch.is_active if is_set(patch.is_active) else policy.is_active
    if will_be_active:
        _deactivate_siblings(s, target_type, exclude_id=policy.id)

    changes = {}
    for name, value in patch.present().items():
        old = getattr(policy, name)
        if old != value:
            changes[name] = {"old": str(old), "new": str(value)}
        setattr(policy, name, value)
    policy.updated_at = utcnow()
    _flush(s, target_type)

    record_event(
        s,
        actor=actor,
        action="policy.edit",
        entity_type="Policy",
        entity_id=str(policy.id),
        metadata={"type": policy.type, "changes": changes},
    )
    s.flush()
    return policy


def set_active_policy(s: "Session", policy_id: int, actor: "Admin | None" = None) -> Policy:
    policy = get_policy(s, policy_id)
    if not policy:
        raise NotFoundError(f"Policy {policy_id} not found.")

    deactivated = _deactivate_siblings(s, policy.type, exclude_id=policy.id)
    policy.is_active = True
    policy.updated_at = utcnow()
    _flush(s, policy.type)

    record_event(
        s,
        actor=actor,
        action="policy.activate",
        entity_type="Policy",
        entity_id=str(policy.id),
        metadata={"type": policy.type, "deactivated": deactivated},
    )
    s.flush()
    logger.info("Policy activated id=%s type=%s deactivated=%s", policy.id, policy.type, deactivated)
    return policy


def delete_policy(s: "Session", policy_id: int, actor: "Admin | None" = None) -> None:
    # Deleting the active policy is allowed; the type then has no active row.
    result = s.execute(delete(Policy).where(Policy.id == policy_id))
    if result.rowcount == 0:
        raise NotFoundError(f"Policy {policy_id} not found.")

    record_event(
        s,
        actor=actor,
        action="policy.delete",
        entity_type="Policy",
        entity_id=str(policy_id),
    )
    s.flush()
