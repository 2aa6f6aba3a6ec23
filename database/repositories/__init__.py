from database.repositories.base import BaseRepository
from database.repositories.profile import ProfileRepository
from database.repositories.match import MatchRepository
from database.repositories.embedding import EmbeddingRepository

__all__ = [
    'BaseRepository',
    'ProfileRepository',
    'MatchRepository',
    'EmbeddingRepository',
]
