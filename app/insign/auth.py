from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, redirect, render_template, request, session, url_for
from werkzeug.security import check_password_hash

from app.insign.audit import record_event
from app.insign.db import db_session
from app.insign.models import Admin
from app.insign.utils import utcnow

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    cutoff = utcnow() - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(utcnow())


def load_current_admin() -> None:
    """
    Loads g.current_admin from the signed session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    # The JSON API authenticates with bearer tokens only.
    if request.path.startswith(("/static/", "/health", "/healthz", "/api/")):
        g.current_admin = None
        return

    admin_id = session.get("admin_id")
    if not admin_id:
        g.current_admin = None
        return

    try:
        s = db_session()
        admin = s.get(Admin, int(admin_id))
        if not admin or not admin.is_active:
            session.pop("admin_id", None)
            g.current_admin = None
            return
        g.current_admin = admin
    except Exception as e:
        current_app.logger.error("load_current_admin DB error (clearing session): %s", e)
        session.pop("admin_id", None)
        g.current_admin = None


@bp.get("/login")
def login_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/login.html", next=nxt, error=(request.args.get("error") or None))


@bp.post("/login")
def login_post():
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        return redirect(url_for("auth.login_get", error="Too many login attempts. Please wait 5 minutes."))

    _record_attempt(ip)

    try:
        s = db_session()
        admin = s.query(Admin).filter(Admin.email == email).one_or_none()
        if not admin or not admin.is_active or not check_password_hash(admin.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="Admin",
                entity_id=email,
                reason="Invalid credentials",
            )
            s.commit()
            return redirect(url_for("auth.login_get", error="Invalid credentials."))

        session["admin_id"] = admin.id
        _login_attempts[ip].clear()
        record_event(s, actor=admin, action="auth.login", entity_type="Admin", entity_id=str(admin.id))
        s.commit()
        # Only allow local paths to avoid open redirects.
        if nxt.startswith("/") and not nxt.startswith("//"):
            return redirect(nxt)
        return redirect(url_for("admin.index"))
    except Exception:
        current_app.logger.exception("Login POST crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.get("/logout")
def logout():
    s = db_session()
    admin = getattr(g, "current_admin", None)
    if admin:
        record_event(s, actor=admin, action="auth.logout", entity_type="Admin", entity_id=str(admin.id))
        s.commit()
    session.pop("admin_id", None)
    return redirect(url_for("auth.login_get"))
