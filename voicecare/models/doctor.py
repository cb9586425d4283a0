"""SQLAlchemy model for doctors in the directory."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, Float, Integer, String
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import relationship

from .base import Base


class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
    name = Column(String(255), nullable=False)
    specialty = Column(String(64), nullable=False, index=True)
    years_experience = Column(Integer, nullable=False, default=0)
    rating = Column(Float, nullable=False, default=0.0)
    location = Column(String(255), nullable=True)
    languages = Column(ARRAY(String), nullable=False, default=list)
    is_active = Column(Boolean, nullable=False, default=True)

    time_slots = relationship("TimeSlot", back_populates="doctor", cascade="all, delete-orphan")


__all__ = ["Doctor"]
