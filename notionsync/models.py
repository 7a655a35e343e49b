"""
SQLAlchemy ORM models for the tenant store.

A tenant owns one Notion workspace credential and one destination database;
it may connect several storefronts, and one storefront may be connected by
several tenants.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Tenant(Base):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        Text, primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str | None] = mapped_column(Text, nullable=True, unique=True)
    workspace_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    # Unset until onboarding has created / picked the tenant's database
    destination_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now, onupdate=_now
    )


class ConnectedStore(Base):
    __tablename__ = "connected_stores"

    id: Mapped[str] = mapped_column(
        Text, primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(
        Text, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False
    )
    # Normalized form: lower-case, no scheme, no platform suffix
    storefront_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    storefront_domain: Mapped[str] = mapped_column(Text, nullable=False, default="")
    access_token_encrypted: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    connected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "storefront_id", name="uq_tenant_storefront"),
    )
