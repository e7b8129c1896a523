from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from app.insign.models import Base
from app.insign.utils import utcnow


class PolicyType:
    PRIVACY_POLICY = "privacy_policy"
    TERMS_OF_SERVICE = "terms_of_service"

    ALL = (PRIVACY_POLICY, TERMS_OF_SERVICE)


POLICY_TYPE_LABELS = {
    PolicyType.PRIVACY_POLICY: "Privacy Policy",
    PolicyType.TERMS_OF_SERVICE: "Terms of Service",
}


class Policy(Base):
    __tablename__ = "policies"
    __table_args__ = (
        Index("idx_policies_type", "type"),
        # One active row per type.
        Index(
            "uq_policies_active_type",
            "type",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[str | None] = mapped_column(String(50), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    @property
    def type_label(self) -> str:
        return POLICY_TYPE_LABELS.get(self.type, self.type)
