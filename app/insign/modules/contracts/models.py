from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.insign.models import Base
from app.insign.utils import utcnow


class Contract(Base):
    __tablename__ = "contracts"
    __table_args__ = (
        Index("idx_contracts_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    client_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    performer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    status: Mapped[str] = mapped_column(String(60), nullable=False, default="draft")

    signature_token: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True)
    signature_token_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    signature_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Read-only link token, backfilled by scripts/backfill_viewer_tokens.py
    viewer_token: Mapped[str | None] = mapped_column(String(128), nullable=True, unique=True, index=True)

    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    mail_logs: Mapped[list["ContractMailLog"]] = relationship(
        "ContractMailLog",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractMailLog.id.desc()",
        lazy="selectin",
    )


class ContractMailLog(Base):
    __tablename__ = "contract_mail_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contract_id: Mapped[int] = mapped_column(ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_email: Mapped[str] = mapped_column(String(320), nullable=False)
    mail_type: Mapped[str] = mapped_column(String(64), nullable=False)  # e.g. "signature-request"
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # success | failed
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    contract: Mapped[Contract] = relationship("Contract", back_populates="mail_logs")
