"""
SQLAlchemy ORM models for persistence.
"""
from datetime import datetime
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from db import Base


class PlaceORM(Base):
    __tablename__ = "places"
    # name_key/address_key hold lower-cased copies so uniqueness is case-insensitive
    __table_args__ = (
        UniqueConstraint("name_key", "address_key", name="uq_places_name_address"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String, nullable=False)
    address = Column(String, nullable=False)
    name_key = Column(String, nullable=False, index=True)
    address_key = Column(String, nullable=False)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    cuisine_type = Column(String, nullable=True)
    price_range = Column(String, nullable=True)
    rating = Column(Float, nullable=True)
    source = Column(String, nullable=False, default="manual")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    preferences = relationship(
        "PreferenceORM",
        back_populates="place",
        cascade="all, delete-orphan",
    )


class PreferenceORM(Base):
    __tablename__ = "user_preferences"
    __table_args__ = (
        UniqueConstraint("place_id", "user_id", name="uq_preferences_place_user"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    place_id = Column(Integer, ForeignKey("places.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    visited = Column(Boolean, nullable=False, default=False)
    want_to_visit = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    place = relationship("PlaceORM", back_populates="preferences")
