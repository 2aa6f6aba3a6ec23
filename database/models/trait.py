import uuid

from sqlalchemy import Column, Text, Float, TIMESTAMP, ForeignKey, func, UniqueConstraint, Index
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from .base import Base


class UserTrait(Base):
    """
    One categorized trait of a user, unique per (user, dimension, trait).

    dimension: values|interests|communication|lifestyle|goals
    source: conversation|explicit|inferred
    """
    __tablename__ = 'user_traits'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    dimension = Column(Text, nullable=False)
    trait = Column(Text, nullable=False)
    value = Column(Float, nullable=False)
    confidence = Column(Float, nullable=False)
    source = Column(Text, nullable=False, default='conversation')

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=func.now())

    user = relationship("User", back_populates="traits")

    __table_args__ = (
        UniqueConstraint('user_id', 'dimension', 'trait', name='uq_user_traits_user_dimension_trait'),
        Index('idx_user_traits_user', 'user_id'),
        Index('idx_user_traits_dimension', 'user_id', 'dimension'),
    )
