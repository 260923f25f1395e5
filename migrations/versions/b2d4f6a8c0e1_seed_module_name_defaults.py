"""Seed module name defaults.

Revision ID: b2d4f6a8c0e1
Revises: a1c3e5f7b9d0
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "b2d4f6a8c0e1"
down_revision: Union[str, Sequence[str], None] = "a1c3e5f7b9d0"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Snapshot at the time of this revision; later label changes get their own revision.
_DEFAULTS = (
    ("cells", "Celulas"),
    ("discipleship", "Discipulado"),
    ("consolidation", "Consolidacao"),
    ("leadership_school", "Escola de lideres"),
    ("gd_control", "Controle GD"),
    ("network", "Rede"),
    ("reports", "Relatorios"),
)

module_name_defaults = sa.table(
    "module_name_defaults",
    sa.column("code", sa.String),
    sa.column("default_label", sa.String),
)


def upgrade() -> None:
    bind = op.get_bind()
    existing = {row[0] for row in bind.execute(sa.select(module_name_defaults.c.code))}
    rows = [{"code": code, "default_label": label} for code, label in _DEFAULTS if code not in existing]
    if rows:
        op.bulk_insert(module_name_defaults, rows)


def downgrade() -> None:
    op.execute(
        module_name_defaults.delete().where(module_name_defaults.c.code.in_([code for code, _ in _DEFAULTS]))
    )
