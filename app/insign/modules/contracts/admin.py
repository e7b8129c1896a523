from __future__ import annotations

from flask import Blueprint, abort, current_app, render_template, request

from app.insign.admin import current_admin, page_notices, redirect_with_error, redirect_with_message
from app.insign.db import db_session
from app.insign.errors import InsignError, NotFoundError
from app.insign.mail import get_mail_service
from app.insign.modules.contracts.service import get_contract, list_contracts, send_signature_request
from app.insign.rbac import require_permission
from app.insign.utils import utcnow

bp = Blueprint("contracts", __name__)


@bp.get("/contracts")
@require_permission("contracts.view")
def contracts_list():
    s = db_session()
    return render_template("admin/contracts/index.html", contracts=list_contracts(s), **page_notices())


@bp.get("/contracts/<int:contract_id>")
@require_permission("contracts.view")
def contract_detail(contract_id: int):
    s = db_session()
    try:
        contract = get_contract(s, contract_id)
    except NotFoundError:
        abort(404)
    return render_template("admin/contracts/detail.html", contract=contract, now=utcnow(), **page_notices())


@bp.post("/contracts/<int:contract_id>/signature-request")
@require_permission("contracts.send")
def contract_signature_request(contract_id: int):
    s = db_session()
    # The detail page posts back to itself; the list is the default.
    if request.form.get("return_to") == "detail":
        endpoint, values = "contracts.contract_detail", {"contract_id": contract_id}
    else:
        endpoint, values = "contracts.contracts_list", {}

    try:
        send_signature_request(
            s,
            contract_id,
            get_mail_service(),
            current_app.config["APP_CLIENT_URL"],
            current_admin(),
        )
        s.commit()
    except InsignError as e:
        # Keep the failed mail log row.
        s.commit()
        current_app.logger.warning("Signature request failed (contract_id=%s): %s", contract_id, e.message)
        return redirect_with_error(endpoint, e.message, **values)

    return redirect_with_message(endpoint, "Signature request sent.", **values)
