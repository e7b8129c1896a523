from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete

from app.insign.audit import record_event
from app.insign.errors import NotFoundError
from app.insign.utils import UNSET, is_set, parse_bool, parse_date, utcnow

from .models import Event

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.insign.models import Admin


logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255


@dataclass
class EventPatch:
    """
    Partial update. A field left as UNSET is not touched; None clears it.
    """

    title: Any = UNSET
    content: Any = UNSET
    start_date: Any = UNSET
    end_date: Any = UNSET
    is_active: Any = UNSET

    @classmethod
    def from_payload(cls, payload: dict) -> "EventPatch":
        patch = cls()
        if "title" in payload:
            patch.title = (payload["title"] or "").strip()
        if "content" in payload:
            patch.content = payload["content"] or ""
        if "start_date" in payload:
            patch.start_date = parse_date(payload["start_date"])
        if "end_date" in payload:
            patch.end_date = parse_date(payload["end_date"])
        if "is_active" in payload:
            patch.is_active = bool(parse_bool(payload["is_active"]))
        return patch

    def present(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if is_set(getattr(self, f.name))}


def _check_date(payload: dict, key: str, label: str, errors: list[str]) -> date | None:
    raw = payload.get(key)
    if raw is None or isinstance(raw, date):
        return raw
    if not isinstance(raw, str):
        errors.append(f"{label} must be a date string (YYYY-MM-DD).")
        return None
    try:
        return parse_date(raw)
    except ValueError:
        errors.append(f"{label} must be a valid date (YYYY-MM-DD).")
        return None


def validate_event_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate event create/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial or "title" in payload:
        title = (payload.get("title") or "").strip()
        if not title:
            errors.append("Title is required.")
        elif len(title) > TITLE_MAX_LENGTH:
            errors.append(f"Title must be at most {TITLE_MAX_LENGTH} characters.")
    if not partial or "content" in payload:
        if not (payload.get("content") or "").strip():
            errors.append("Content is required.")
    start = _check_date(payload, "start_date", "Start date", errors)
    end = _check_date(payload, "end_date", "End date", errors)
    if start and end and end < start:
        errors.append("End date must not be before start date.")
    if "is_active" in payload and parse_bool(payload["is_active"]) is None:
        errors.append("Active flag must be a boolean.")
    return errors


def list_active_events(s: "Session") -> list[Event]:
    return (
        s.query(Event)
        .filter(Event.is_active.is_(True))
        .order_by(Event.created_at.desc(), Event.id.desc())
        .all()
    )


def list_events(s: "Session") -> list[Event]:
    return s.query(Event).order_by(Event.created_at.desc(), Event.id.desc()).all()


def get_event(s: "Session", event_id: int) -> Event | None:
    return s.get(Event, event_id)


def create_event(s: "Session", payload: dict, actor: "Admin | None" = None) -> Event:
    """Create a new event. Active unless the payload says otherwise."""
    patch = EventPatch.from_payload(payload)
    now = utcnow()
    event = Event(
        title=patch.title if is_set(patch.title) else "",
        content=patch.content if is_set(patch.content) else "",
        start_date=patch.start_date if is_set(patch.start_date) else None,
        end_date=patch.end_date if is_set(patch.end_date) else None,
        is_active=patch.is_active if is_set(patch.is_active) else True,
        created_at=now,
        updated_at=now,
    )
    s.add(event)
    s.flush()

    record_event(
        s,
        actor=actor,
        action="event.create",
        entity_type="Event",
        entity_id=str(event.id),
        metadata={"title": event.title, "is_active": event.is_active},
    )
    s.flush()
    logger.info("Event created id=%s", event.id)
    return event


def update_event(s: "Session", event_id: int, patch: EventPatch, actor: "Admin | None" = None) -> Event:
    event = get_event(s, event_id)
    if not event:
        raise NotFoundError("Event not found.")

    changes = {}
    for name, value in patch.present().items():
        old = getattr(event, name)
        if old != value:
            changes[name] = {"old": str(old), "new": str(value)}
        setattr(event, name, value)

    # Saved even when nothing changed; updated_at always moves.
    event.updated_at = utcnow()
    s.flush()

    record_event(
        s,
        actor=actor,
        action="event.edit",
        entity_type="Event",
        entity_id=str(event.id),
        metadata={"title": event.title, "changes": changes},
    )
    s.flush()
    return event


def delete_event(s: "Session", event_id: int, actor: "Admin | None" = None) -> None:
    """Hard delete. Missing ids are not an error."""
    result = s.execute(delete(Event).where(Event.id == event_id))
    record_event(
        s,
        actor=actor,
        action="event.delete",
        entity_type="Event",
        entity_id=str(event_id),
        metadata={"deleted": result.rowcount},
    )
    s.flush()
    logger.info("Event delete id=%s affected=%s", event_id, result.rowcount)
