from __future__ import annotations

from flask import Blueprint, g, redirect, render_template, request, url_for
from sqlalchemy import func, text

from app.insign.db import db_session
from app.insign.models import Admin
from app.insign.rbac import require_permission

bp = Blueprint("admin", __name__)


def current_admin() -> Admin:
    a = getattr(g, "current_admin", None)
    if not a:
        raise RuntimeError("No current admin")
    return a


def redirect_with_message(endpoint: str, message: str, **values):
    """Redirect after a successful form post; url_for URL-encodes the message."""
    return redirect(url_for(endpoint, message=message, **values))


def redirect_with_error(endpoint: str, error: str, **values):
    """Send the admin back to the originating form with the error in the query string."""
    return redirect(url_for(endpoint, error=error, **values))


def page_notices() -> dict:
    return {
        "message": (request.args.get("message") or "").strip() or None,
        "error": (request.args.get("error") or "").strip() or None,
    }


@bp.get("/")
@require_permission("admin.view")
def index():
    from app.insign.modules.events.models import Event
    from app.insign.modules.inquiries.models import Inquiry, InquiryStatus
    from app.insign.modules.policies.models import Policy

    s = db_session()
    status = {"db_connected": False, "db_error": None}
    try:
        s.execute(text("SELECT 1"))
        status["db_connected"] = True
    except Exception as e:
        status["db_error"] = str(e)

    counts = {}
    if status["db_connected"]:
        counts = {
            "events": s.query(func.count(Event.id)).scalar() or 0,
            "active_events": s.query(func.count(Event.id)).filter(Event.is_active.is_(True)).scalar() or 0,
            "policies": s.query(func.count(Policy.id)).scalar() or 0,
            "pending_inquiries": s.query(func.count(Inquiry.id))
            .filter(Inquiry.status == InquiryStatus.PENDING)
            .scalar()
            or 0,
        }

    return render_template("admin/index.html", system_status=status, counts=counts, **page_notices())
