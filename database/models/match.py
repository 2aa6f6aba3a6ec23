import uuid

from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, Numeric, UniqueConstraint, Index
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import UUID

from .base import Base


class Match(Base):
    """
    Directional match from user_id to matched_user_id.

    - One row per ordered pair (a mutual match is two accepted rows)
    - RBS total and component scores are written once at discovery
    - status: pending|accepted|rejected|expired
    """
    __tablename__ = 'matches'

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    matched_user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    rbs_score = Column(Numeric(6, 5), nullable=False)
    sr_score = Column(Numeric(6, 5), nullable=False)
    cu_score = Column(Numeric(6, 5), nullable=False)
    ig_score = Column(Numeric(6, 5), nullable=False)
    sc_score = Column(Numeric(6, 5), nullable=False)

    status = Column(Text, nullable=False, default='pending')

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"))
    expires_at = Column(TIMESTAMP(timezone=True), nullable=False)
    viewed_at = Column(TIMESTAMP(timezone=True))
    responded_at = Column(TIMESTAMP(timezone=True))

    __table_args__ = (
        UniqueConstraint('user_id', 'matched_user_id', name='uq_matches_user_matched_user'),
        Index('idx_matches_user_status', 'user_id', 'status'),
        Index('idx_matches_matched_user', 'matched_user_id'),
        Index('idx_matches_rbs_score', 'rbs_score'),
        Index('idx_matches_expires_at', 'expires_at'),
    )
