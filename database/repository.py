import logging

from sqlalchemy.orm import Session

from database.repositories import EmbeddingRepository, MatchRepository, ProfileRepository

logger = logging.getLogger(__name__)


class MatchingRepository:
    """
    Facade over the per-table repositories, all bound to one Session.

    - profiles: ProfileStore (users, user_traits)
    - embeddings: VectorSearch (user_embeddings, pgvector)
    - matches: MatchStore (matches)
    """

    def __init__(self, db: Session):
        self.db = db
        self.profiles = ProfileRepository(db)
        self.embeddings = EmbeddingRepository(db)
        self.matches = MatchRepository(db)
