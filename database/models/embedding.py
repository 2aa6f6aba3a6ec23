from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, func
from sqlalchemy.sql import text as sql_text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import relationship
from pgvector.sqlalchemy import Vector

from .base import Base

EMBEDDING_DIMENSIONS = 768


class UserEmbedding(Base):
    """One profile embedding per user, searched with pgvector cosine distance."""
    __tablename__ = 'user_embeddings'

    user_id = Column(UUID(as_uuid=True), ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    embedding = Column(Vector(EMBEDDING_DIMENSIONS), nullable=False)
    model_version = Column(Text)
    payload = Column(JSONB, nullable=False, default=dict)

    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=sql_text("timezone('UTC', now())"), onupdate=func.now())

    user = relationship("User", back_populates="embedding")
