from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.cellhub.models import Base

# Seeded by the initial migration and scripts/init_db.py.
DEFAULT_MODULE_NAMES = (
    ("cells", "Celulas"),
    ("discipleship", "Discipulado"),
    ("consolidation", "Consolidacao"),
    ("leadership_school", "Escola de lideres"),
    ("gd_control", "Controle GD"),
    ("network", "Rede"),
    ("reports", "Relatorios"),
)


class ModuleNameDefault(Base):
    __tablename__ = "module_name_defaults"

    code: Mapped[str] = mapped_column(String(60), primary_key=True)
    default_label: Mapped[str] = mapped_column(String(120), nullable=False)


class ModuleNameOverride(Base):
    __tablename__ = "module_name_overrides"

    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), primary_key=True)
    code: Mapped[str] = mapped_column(ForeignKey("module_name_defaults.code"), primary_key=True)
    custom_label: Mapped[str] = mapped_column(String(120), nullable=False)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False), nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )
