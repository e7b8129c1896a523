from __future__ import annotations

from flask import Blueprint, abort, render_template

from app.insign.db import db_session
from app.insign.modules.policies.models import PolicyType
from app.insign.modules.policies.service import get_active_policy

bp = Blueprint("policies_public", __name__)


def _render_active(policy_type: str, page_type: str):
    s = db_session()
    policy = get_active_policy(s, policy_type)
    if not policy:
        abort(404)
    return render_template("public/policy.html", policy=policy, page_type=page_type)


@bp.get("/privacy")
def privacy():
    return _render_active(PolicyType.PRIVACY_POLICY, "privacy")


@bp.get("/terms")
def terms():
    return _render_active(PolicyType.TERMS_OF_SERVICE, "terms")
