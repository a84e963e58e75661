from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from seance_backend.db.base import Base
from seance_backend.db.enums import SubscriptionStatusEnum


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(length=36), primary_key=True, default=lambda: str(uuid4()))
    email: Mapped[str] = mapped_column(String(length=320), unique=True, nullable=False, index=True)
    # Null for users that authenticate through an external provider.
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(length=255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(length=320), unique=True, nullable=False, index=True)
    customer_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    subscription_id: Mapped[str] = mapped_column(String(length=255), nullable=False)
    status: Mapped[SubscriptionStatusEnum] = mapped_column(
        Enum(SubscriptionStatusEnum, native_enum=False, length=32), nullable=False
    )
    current_period_end: Mapped[int] = mapped_column(Integer, nullable=False)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
