from __future__ import annotations

from flask import Blueprint, jsonify

from app.insign.db import db_session
from app.insign.modules.policies.models import Policy, PolicyType
from app.insign.modules.policies.service import get_active_policy, get_policy
from app.insign.utils import isoformat

bp = Blueprint("policies_api", __name__)


def policy_to_dict(policy: Policy | None) -> dict | None:
    if policy is None:
        return None
    return {
        "id": policy.id,
        "type": policy.type,
        "title": policy.title,
        "content": policy.content,
        "version": policy.version,
        "isActive": policy.is_active,
        "createdAt": isoformat(policy.created_at),
        "updatedAt": isoformat(policy.updated_at),
    }


# A missing policy is a JSON null, not a 404; the client shows an empty state.
@bp.get("/policies/privacy-policy")
def privacy_policy():
    s = db_session()
    return jsonify(policy_to_dict(get_active_policy(s, PolicyType.PRIVACY_POLICY)))


@bp.get("/policies/terms-of-service")
def terms_of_service():
    s = db_session()
    return jsonify(policy_to_dict(get_active_policy(s, PolicyType.TERMS_OF_SERVICE)))


@bp.get("/policies/<int:policy_id>")
def policy_detail(policy_id: int):
    s = db_session()
    return jsonify(policy_to_dict(get_policy(s, policy_id)))
