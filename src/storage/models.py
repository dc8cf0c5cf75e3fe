"""SQLAlchemy 2.0 async models for rule persistence.

Tables:
- rules: one row per Rule (amendments included, linked by base_rule_id)
- systems: keyed by name; system_id unique but nullable for legacy rows
- retired_rule_ids: ids of deleted rules, never issued again
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from src.constants import DB_SCHEMA


class Base(DeclarativeBase):
    pass


class RuleRecord(Base):
    __tablename__ = "rules"
    __table_args__ = (
        Index("idx_rules_status", "status"),
        Index("idx_rules_system", "system"),
        Index("idx_rules_base_rule_id", "base_rule_id"),
        Index("idx_rules_is_archived", "is_archived"),
        {"schema": DB_SCHEMA},
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(Text)
    system: Mapped[str] = mapped_column(String(256))
    status: Mapped[str] = mapped_column(String(16))  # proposed|passed|active|expired|rejected
    clause_type: Mapped[str] = mapped_column(String(16))
    clause_text: Mapped[str] = mapped_column(Text)
    success_metrics: Mapped[str | None] = mapped_column(Text, nullable=True)
    success_metrics_source: Mapped[str] = mapped_column(String(16), default="none")
    sunset_type: Mapped[str] = mapped_column(String(16), default="default")
    custom_sunset_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    passed_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    effective_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    effective_date_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    expiration_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    body: Mapped[str] = mapped_column(Text, default="")
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    base_rule_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    amendment_number: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class SystemRecord(Base):
    __tablename__ = "systems"
    __table_args__ = {"schema": DB_SCHEMA}

    name: Mapped[str] = mapped_column(String(256), primary_key=True)
    system_id: Mapped[int | None] = mapped_column(Integer, unique=True, nullable=True)
    success_metrics: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class RetiredRuleId(Base):
    __tablename__ = "retired_rule_ids"
    __table_args__ = {"schema": DB_SCHEMA}

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    retired_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
