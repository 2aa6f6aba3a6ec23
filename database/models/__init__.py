from .base import Base
from .user import User
from .trait import UserTrait
from .embedding import UserEmbedding, EMBEDDING_DIMENSIONS
from .match import Match

__all__ = [
    'Base',
    'User',
    'UserTrait',
    'UserEmbedding',
    'EMBEDDING_DIMENSIONS',
    'Match',
]
