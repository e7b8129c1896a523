from __future__ import annotations

from flask import Blueprint, jsonify

from app.insign.db import db_session
from app.insign.modules.events.models import Event
from app.insign.modules.events.service import list_active_events
from app.insign.utils import isoformat

bp = Blueprint("events_api", __name__)


def event_to_dict(event: Event) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "content": event.content,
        "startDate": isoformat(event.start_date),
        "endDate": isoformat(event.end_date),
        "isActive": event.is_active,
        "createdAt": isoformat(event.created_at),
        "updatedAt": isoformat(event.updated_at),
    }


@bp.get("/events")
def events_list():
    """Active events for the public client, newest first."""
    s = db_session()
    return jsonify([event_to_dict(e) for e in list_active_events(s)])
