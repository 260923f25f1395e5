from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cellhub.models import Base, User
from app.cellhub.modules.cells.models import Participant

KNOWN_BY_CHOICES = ("tv", "radio", "friends", "cell", "other")

# Ordered consolidation milestones; each has a boolean flag and a date column.
CONSOLIDATION_STEPS = (
    "accepted_in_church",
    "fono_visit_done",
    "first_visit_done",
    "pre_encounter_done",
    "encounter_done",
    "post_encounter_done",
    "reencounter_done",
    "consolidation_done",
    "baptized",
)


class ConsolidationRecord(Base):
    __tablename__ = "consolidation_records"
    __table_args__ = (Index("idx_consolidation_records_tenant_created", "tenant_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    participant_id: Mapped[int] = mapped_column(ForeignKey("participants.id"), nullable=False)
    congregation_name: Mapped[str | None] = mapped_column(String(160), nullable=True)
    request_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    known_by: Mapped[str] = mapped_column(String(30), nullable=False, default="friends")
    known_by_other: Mapped[str | None] = mapped_column(String(120), nullable=True)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    participant: Mapped[Participant] = relationship(lazy="selectin")
    steps: Mapped["ConsolidationSteps | None"] = relationship(
        back_populates="record",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    history: Mapped[list["ConsolidationHistory"]] = relationship(
        back_populates="record",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ConsolidationHistory.created_at.desc()",
    )


class ConsolidationSteps(Base):
    __tablename__ = "consolidation_steps"

    consolidation_id: Mapped[int] = mapped_column(ForeignKey("consolidation_records.id"), primary_key=True)

    accepted_in_church: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    accepted_in_church_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    fono_visit_done: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    fono_visit_done_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    first_visit_done: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    first_visit_done_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pre_encounter_done: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    pre_encounter_done_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    encounter_done: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    encounter_done_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    post_encounter_done: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    post_encounter_done_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    reencounter_done: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    reencounter_done_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    consolidation_done: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    consolidation_done_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    baptized: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    baptized_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    record: Mapped[ConsolidationRecord] = relationship(back_populates="steps")


class ConsolidationHistory(Base):
    __tablename__ = "consolidation_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    consolidation_id: Mapped[int] = mapped_column(ForeignKey("consolidation_records.id"), nullable=False)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    record: Mapped[ConsolidationRecord] = relationship(back_populates="history")
    author: Mapped[User] = relationship(lazy="selectin")
