import logging
from typing import Any, Iterable, List, Optional, Sequence
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import OperationalError

from core.exceptions import TransientUpstreamError
from core.matcher.dto import VectorHit, VectorRecord
from core.matcher.interfaces import VectorSearch
from core.utils import cosine_similarity_from_distance
from database.models import UserEmbedding
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class EmbeddingRepository(BaseRepository, VectorSearch):
    # Postgres cancels the k-NN query itself via statement_timeout
    enforces_timeout = True

    def search(
        self,
        query_embedding: Sequence[float],
        limit: int,
        exclude_ids: Optional[Iterable[Any]] = None,
        timeout_seconds: Optional[float] = None
    ) -> List[VectorHit]:
        stmt = select(
            UserEmbedding,
            UserEmbedding.embedding.cosine_distance(list(query_embedding)).label('distance')
        )

        exclude = list(exclude_ids or [])
        if exclude:
            stmt = stmt.where(UserEmbedding.user_id.not_in(exclude))

        stmt = stmt.order_by('distance').limit(limit)

        if timeout_seconds is None:
            results = self.db.execute(stmt).all()
        else:
            results = self._execute_with_timeout(stmt, timeout_seconds)

        return [
            VectorHit(
                id=row[0].user_id,
                similarity_score=cosine_similarity_from_distance(row._mapping['distance']),
                payload=dict(row[0].payload or {}),
            )
            for row in results
        ]

    def _execute_with_timeout(self, stmt, timeout_seconds: float):
        """Run `stmt` under a transaction-local statement_timeout.

        The SAVEPOINT keeps the outer transaction usable when Postgres cancels
        the query; on success the previous timeout is restored.
        """
        timeout_ms = max(1, int(timeout_seconds * 1000))
        try:
            with self.savepoint():
                previous = self.db.execute(select(func.current_setting('statement_timeout'))).scalar_one()
                self.db.execute(select(func.set_config('statement_timeout', f"{timeout_ms}ms", True)))
                results = self.db.execute(stmt).all()
                self.db.execute(select(func.set_config('statement_timeout', previous, True)))
        except OperationalError as e:
            logger.warning(f"k-NN search failed or exceeded {timeout_ms}ms: {e.orig}")
            raise TransientUpstreamError(f"k-NN search timed out or failed after {timeout_seconds}s") from e
        return results

    def get_vector(self, user_id: Any) -> Optional[VectorRecord]:
        stmt = select(UserEmbedding).where(UserEmbedding.user_id == user_id)
        row = self.db.execute(stmt).scalar_one_or_none()
        if row is None:
            return None
        return VectorRecord(id=row.user_id, vector=list(row.embedding), payload=dict(row.payload or {}))

    def upsert_embedding(
        self,
        user_id: Any,
        embedding: Sequence[float],
        model_version: Optional[str] = None,
        payload: Optional[dict] = None
    ) -> None:
        stmt = insert(UserEmbedding).values(
            user_id=user_id,
            embedding=list(embedding),
            model_version=model_version,
            payload=payload or {},
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserEmbedding.user_id],
            set_={
                'embedding': stmt.excluded.embedding,
                'model_version': stmt.excluded.model_version,
                'payload': stmt.excluded.payload,
            }
        )
        self.db.execute(stmt)
