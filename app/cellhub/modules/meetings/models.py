from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from app.cellhub.models import Base

MEETING_TYPES = ("gd", "cell", "worship")


class GdControl(Base):
    __tablename__ = "gd_controls"
    __table_args__ = (Index("idx_gd_controls_tenant_date", "tenant_id", "meeting_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)
    network_id: Mapped[int | None] = mapped_column(ForeignKey("church_networks.id"), nullable=True)
    cell_id: Mapped[int | None] = mapped_column(ForeignKey("cells.id"), nullable=True)
    meeting_type: Mapped[str] = mapped_column(String(20), nullable=False, default="gd")
    leader_name: Mapped[str] = mapped_column(String(160), nullable=False)
    meeting_date: Mapped[date] = mapped_column(Date, nullable=False)
    meeting_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    created_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
