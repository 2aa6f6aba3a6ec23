import uuid

from sqlalchemy import Column, Text, Date, Float, Integer, Numeric, TIMESTAMP, func, Index
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship

from .base import Base


class User(Base):
    """
    Matchable user with the safety data the scorer needs.

    Location is stored as explicit latitude/longitude columns and red flags
    as a JSON list of identifiers.
    """
    __tablename__ = 'users'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    display_name = Column(Text)
    date_of_birth = Column(Date, nullable=False)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    red_flags = Column(JSONB, nullable=False, default=list)

    # Matching preferences (all optional)
    max_distance_km = Column(Float)
    min_age = Column(Integer)
    max_age = Column(Integer)

    # Derived completeness score, 0-100
    know_you_meter_score = Column(Numeric(5, 2), nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=func.now())

    traits = relationship("UserTrait", back_populates="user", cascade="all, delete-orphan")
    embedding = relationship("UserEmbedding", back_populates="user", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_users_created_at', 'created_at'),
    )
