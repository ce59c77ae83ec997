"""Loan application model with its append-only status history and timeline."""

import enum
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import String, Numeric, Integer, Enum, DateTime, ForeignKey, JSON, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from loanflow.database import Base


class ApplicationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    IN_REVIEW = "IN_REVIEW"
    DOCS_PENDING = "DOCS_PENDING"
    CORRECTIONS_PENDING = "CORRECTIONS_PENDING"
    COUNTER_OFFERED = "COUNTER_OFFERED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    DISBURSED = "DISBURSED"
    SYNCED = "SYNCED"

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    ApplicationStatus.DRAFT: "Borrador",
    ApplicationStatus.SUBMITTED: "Enviada",
    ApplicationStatus.IN_REVIEW: "En revisión",
    ApplicationStatus.DOCS_PENDING: "Documentos pendientes",
    ApplicationStatus.CORRECTIONS_PENDING: "Correcciones pendientes",
    ApplicationStatus.COUNTER_OFFERED: "Contraoferta",
    ApplicationStatus.APPROVED: "Aprobada",
    ApplicationStatus.REJECTED: "Rechazada",
    ApplicationStatus.CANCELLED: "Cancelada",
    ApplicationStatus.DISBURSED: "Desembolsada",
    ApplicationStatus.SYNCED: "Sincronizada",
}


class TimelineAction(str, enum.Enum):
    STATUS_CHANGED = "STATUS_CHANGED"
    DATA_REJECTED = "DATA_REJECTED"
    DATA_CORRECTED = "DATA_CORRECTED"
    DOC_UPLOADED = "DOC_UPLOADED"
    DOC_APPROVED = "DOC_APPROVED"
    DOC_REJECTED = "DOC_REJECTED"
    REFERENCE_ADDED = "REFERENCE_ADDED"


@dataclass(frozen=True)
class StatusChange:
    """One entry of an application's status history."""

    from_status: Optional[str]
    to_status: str
    reason: Optional[str]
    actor_id: Optional[str]
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "from": self.from_status,
            "to": self.to_status,
            "reason": self.reason,
            "actor_id": self.actor_id,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StatusChange":
        return cls(
            from_status=data.get("from"),
            to_status=data["to"],
            reason=data.get("reason"),
            actor_id=data.get("actor_id"),
            timestamp=data["timestamp"],
        )

    @property
    def at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)


@dataclass(frozen=True)
class TimelineEntry:
    """One narrative entry in an application's timeline."""

    action: str
    actor_id: Optional[str]
    timestamp: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "TimelineEntry":
        return cls(
            action=data["action"],
            actor_id=data.get("actor_id"),
            timestamp=data["timestamp"],
            payload=dict(data.get("payload") or {}),
        )

    @property
    def at(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)


class Application(Base):
    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    folio: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    applicant_id: Mapped[int] = mapped_column(ForeignKey("applicants.id"), nullable=False, index=True)
    product_id: Mapped[int | None] = mapped_column(ForeignKey("products.id"), nullable=True, index=True)

    # Loan details
    purpose: Mapped[str | None] = mapped_column(String(50), nullable=True)
    requested_amount: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    term_months: Mapped[int | None] = mapped_column(Integer, nullable=True)
    approved_amount: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[ApplicationStatus] = mapped_column(
        Enum(ApplicationStatus), default=ApplicationStatus.DRAFT, nullable=False, index=True
    )
    # Append-only logs; mutate only through append_status_change / append_timeline
    status_history_log: Mapped[list] = mapped_column("status_history", JSON, default=list, nullable=False)
    timeline_log: Mapped[list] = mapped_column("timeline", JSON, default=list, nullable=False)

    # Timestamps
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    disbursed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    applicant = relationship("Applicant", back_populates="applications")
    product = relationship("Product", lazy="selectin")
    documents = relationship(
        "Document", back_populates="application", lazy="selectin", cascade="all, delete-orphan"
    )
    references = relationship(
        "ApplicationReference", back_populates="application", lazy="selectin",
        cascade="all, delete-orphan",
    )

    @property
    def status_history(self) -> tuple[StatusChange, ...]:
        return tuple(StatusChange.from_dict(e) for e in (self.status_history_log or []))

    @property
    def timeline(self) -> tuple[TimelineEntry, ...]:
        return tuple(TimelineEntry.from_dict(e) for e in (self.timeline_log or []))

    def append_status_change(self, entry: StatusChange) -> None:
        # Reassign a new list so the JSON column is flagged dirty
        self.status_history_log = [*(self.status_history_log or []), entry.to_dict()]

    def append_timeline(self, entry: TimelineEntry) -> None:
        self.timeline_log = [*(self.timeline_log or []), entry.to_dict()]
