from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from app.insign.audit import record_event
from app.insign.errors import BadRequestError, InsignError, NotFoundError
from app.insign.utils import utcnow

from .models import Contract, ContractMailLog

if TYPE_CHECKING:
    from app.insign.mail import MailService
    from app.insign.models import Admin


logger = logging.getLogger(__name__)

TOKEN_BYTES = 32
SIGNATURE_TOKEN_TTL = timedelta(days=7)
MAIL_TYPE_SIGNATURE_REQUEST = "signature-request"


def generate_token() -> str:
    """64 hex chars from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)


def signature_token_expiry(now: datetime | None = None) -> datetime:
    return (now or utcnow()) + SIGNATURE_TOKEN_TTL


def list_contracts(s: Session) -> list[Contract]:
    return s.query(Contract).order_by(Contract.created_at.desc(), Contract.id.desc()).all()


def get_contract(s: Session, contract_id: int) -> Contract:
    contract = s.get(Contract, contract_id)
    if not contract:
        raise NotFoundError("Contract not found.")
    return contract


def get_contract_by_signature_token(s: Session, token: str, *, now: datetime | None = None) -> Contract:
    """Resolve a signing link. Expired links are a BadRequestError, unknown ones NotFoundError."""
    contract = None
    if token:
        contract = s.query(Contract).filter(Contract.signature_token == token).one_or_none()
    if not contract:
        raise NotFoundError("Invalid signature link.")
    expires_at = contract.signature_token_expires_at
    if expires_at is not None and expires_at < (now or utcnow()):
        raise BadRequestError("The signature link has expired. Request a new one.")
    return contract


def signature_link(client_url: str, token: str) -> str:
    return f"{client_url.rstrip('/')}/sign/{token}"


def send_signature_request(
    s: Session,
    contract_id: int,
    mail: "MailService",
    client_url: str,
    actor: "Admin | None" = None,
) -> Contract:
    """
    Issue a fresh signature token and mail the signing link to the performer.

    A mail log row is written either way. On failure the error is re-raised
    after the failed log row is added, so callers that want the log kept
    should commit before reporting the error.
    """
    contract = get_contract(s, contract_id)
    recipient = (contract.performer_email or "").strip()
    if not recipient:
        raise BadRequestError("The contract has no performer email address.")

    now = utcnow()
    contract.signature_token = generate_token()
    contract.signature_token_expires_at = signature_token_expiry(now)
    contract.signature_sent_at = now
    contract.status = "active"
    contract.updated_at = now
    s.flush()

    try:
        mail.send_contract_signature_mail(
            to=recipient,
            contract_name=contract.name,
            link=signature_link(client_url, contract.signature_token),
            sender_name=contract.client_name,
        )
    except InsignError as e:
        s.add(
            ContractMailLog(
                contract_id=contract.id,
                recipient_email=recipient,
                mail_type=MAIL_TYPE_SIGNATURE_REQUEST,
                status="failed",
                error_message=e.message,
            )
        )
        s.flush()
        logger.warning("Signature request mail failed (contract_id=%s): %s", contract.id, e.message)
        raise

    s.add(
        ContractMailLog(
            contract_id=contract.id,
            recipient_email=recipient,
            mail_type=MAIL_TYPE_SIGNATURE_REQUEST,
            status="success",
        )
    )
    record_event(
        s,
        actor=actor,
        action="contract.signature_request",
        entity_type="Contract",
        entity_id=str(contract.id),
        metadata={"to": recipient},
    )
    s.flush()
    return contract


def backfill_viewer_tokens(s: Session) -> int:
    """Give every contract without a viewer token a fresh one. Returns the number filled."""
    contracts = s.query(Contract).filter(Contract.viewer_token.is_(None)).order_by(Contract.id).all()
    for contract in contracts:
        contract.viewer_token = generate_token()
    s.flush()
    logger.info("Backfilled viewer tokens for %s contracts", len(contracts))
    return len(contracts)
