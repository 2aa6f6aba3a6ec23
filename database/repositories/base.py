from sqlalchemy.orm import Session


class BaseRepository:
    """Per-table repository bound to the unit of work's Session."""

    def __init__(self, db: Session):
        self.db = db

    def savepoint(self):
        """SAVEPOINT scope: a failed statement inside rolls back only itself."""
        return self.db.begin_nested()
