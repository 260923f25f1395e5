from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.cellhub.models import Base

PARTICIPANT_TYPES = ("member", "congregated", "visitor")


class Participant(Base):
    __tablename__ = "participants"
    __table_args__ = (Index("idx_participants_tenant_name", "tenant_id", "full_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    full_name: Mapped[str] = mapped_column(String(160), nullable=False)
    email: Mapped[str | None] = mapped_column(String(160), nullable=True)
    phone_home: Mapped[str | None] = mapped_column(String(30), nullable=True)
    phone_mobile: Mapped[str | None] = mapped_column(String(30), nullable=True)
    birth_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    cell_links: Mapped[list["ParticipantCellLink"]] = relationship(back_populates="participant", lazy="selectin")


class ParticipantCellLink(Base):
    __tablename__ = "participant_cell_links"
    __table_args__ = (Index("idx_participant_cell_links_tenant_cell", "tenant_id", "cell_id"),)

    participant_id: Mapped[int] = mapped_column(ForeignKey("participants.id"), primary_key=True)
    cell_id: Mapped[int] = mapped_column(ForeignKey("cells.id"), primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False, default="visitor")  # member, congregated, visitor
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    participant: Mapped[Participant] = relationship(back_populates="cell_links", lazy="selectin")


class ParticipantStatusHistory(Base):
    __tablename__ = "participant_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    participant_id: Mapped[int] = mapped_column(ForeignKey("participants.id"), nullable=False)
    from_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_type: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class TransferLog(Base):
    __tablename__ = "transfer_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    source_cell_id: Mapped[int] = mapped_column(ForeignKey("cells.id"), nullable=False)
    destination_cell_id: Mapped[int] = mapped_column(ForeignKey("cells.id"), nullable=False)
    transferred_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    transferred_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    participants: Mapped[list["TransferLogParticipant"]] = relationship(
        back_populates="transfer_log",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TransferLogParticipant(Base):
    __tablename__ = "transfer_log_participants"

    transfer_log_id: Mapped[int] = mapped_column(ForeignKey("transfer_logs.id"), primary_key=True)
    participant_id: Mapped[int] = mapped_column(ForeignKey("participants.id"), primary_key=True)

    transfer_log: Mapped[TransferLog] = relationship(back_populates="participants")


class AttendanceEntry(Base):
    __tablename__ = "attendance_entries"
    __table_args__ = (UniqueConstraint("tenant_id", "cell_id", "week_start", name="uq_attendance_tenant_cell_week"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    cell_id: Mapped[int] = mapped_column(ForeignKey("cells.id"), nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    total_attendance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
