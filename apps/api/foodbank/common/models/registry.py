"""Registry domain models (clients)."""

from __future__ import annotations

from datetime import datetime, time
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    TIMESTAMP,
    Uuid,
    Time,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from foodbank.common.models.base import Base, AppointmentDay, utcnow


class Client(Base):
    """Registered foodbank clients (households)."""

    __tablename__ = "clients"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid4
    )
    barcode_id: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    family_size: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    num_children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    children_ages: Mapped[Optional[str]] = mapped_column(Text)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    photo_url: Mapped[Optional[str]] = mapped_column(Text)
    appointment_day: Mapped[Optional[str]] = mapped_column(AppointmentDay)
    appointment_time: Mapped[Optional[time]] = mapped_column(Time)
    pref_gluten_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pref_halal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pref_vegetarian: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pref_no_cooking: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("staff.id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=utcnow
    )

    __table_args__ = (
        Index("ix_clients_appointment", "appointment_day", "appointment_time"),
    )
