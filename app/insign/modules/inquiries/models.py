from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.insign.models import Base
from app.insign.utils import utcnow

if TYPE_CHECKING:
    from app.insign.models import User


class InquiryCategory:
    CONTRACT = "contract"
    PAYMENT = "payment"
    ACCOUNT = "account"
    TECHNICAL = "technical"
    OTHER = "other"

    ALL = (CONTRACT, PAYMENT, ACCOUNT, TECHNICAL, OTHER)


class InquiryStatus:
    # Any status may be set from any other; only ANSWERED stamps answered_at.
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ANSWERED = "answered"
    CLOSED = "closed"

    ALL = (PENDING, IN_PROGRESS, ANSWERED, CLOSED)


CATEGORY_LABELS = {
    InquiryCategory.CONTRACT: "Contract",
    InquiryCategory.PAYMENT: "Payment / points",
    InquiryCategory.ACCOUNT: "Account / login",
    InquiryCategory.TECHNICAL: "Technical support",
    InquiryCategory.OTHER: "Other",
}

STATUS_LABELS = {
    InquiryStatus.PENDING: "Pending",
    InquiryStatus.IN_PROGRESS: "In progress",
    InquiryStatus.ANSWERED: "Answered",
    InquiryStatus.CLOSED: "Closed",
}

STATUS_BADGE_CLASSES = {
    InquiryStatus.PENDING: "badge-warning",
    InquiryStatus.IN_PROGRESS: "badge-info",
    InquiryStatus.ANSWERED: "badge-success",
    InquiryStatus.CLOSED: "badge-secondary",
}


class Inquiry(Base):
    __tablename__ = "inquiries"
    __table_args__ = (
        Index("idx_inquiries_user_id", "user_id"),
        Index("idx_inquiries_status", "status"),
        Index("idx_inquiries_created_at", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    category: Mapped[str] = mapped_column(String(32), nullable=False, default=InquiryCategory.OTHER)
    subject: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    attachment_urls: Mapped[list | None] = mapped_column(JSON, nullable=True)

    status: Mapped[str] = mapped_column(String(32), nullable=False, default=InquiryStatus.PENDING)
    admin_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    user: Mapped["User"] = relationship("User", lazy="select")

    @property
    def category_label(self) -> str:
        return CATEGORY_LABELS.get(self.category, self.category)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def status_badge_class(self) -> str:
        return STATUS_BADGE_CLASSES.get(self.status, "badge-secondary")
