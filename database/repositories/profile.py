import logging
from datetime import date
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from core.matcher.interfaces import ProfileStore
from core.scorer.models import (
    Coordinates, Profile5D, SafetyPreferences, SafetyProfile, Trait
)
from database.models import User, UserTrait
from database.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


def age_on(date_of_birth: date, today: date) -> int:
    """Whole years between date_of_birth and today."""
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def trait_from_orm(row: UserTrait) -> Trait:
    return Trait(
        dimension=row.dimension,
        name=row.trait,
        value=float(row.value),
        confidence=float(row.confidence),
        source=row.source,
    )


class ProfileRepository(BaseRepository, ProfileStore):
    def get_user(self, user_id: Any) -> Optional[User]:
        stmt = select(User).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_traits(self, user_id: Any) -> List[UserTrait]:
        stmt = select(UserTrait).where(UserTrait.user_id == user_id).order_by(
            UserTrait.dimension, UserTrait.trait
        )
        return self.db.execute(stmt).scalars().all()

    def load_profile(self, user_id: Any) -> Optional[Profile5D]:
        user = self.get_user(user_id)
        if user is None:
            return None

        traits = []
        for row in self.get_traits(user_id):
            try:
                traits.append(trait_from_orm(row))
            except ValueError as e:
                logger.warning(f"Ignoring invalid trait {row.dimension}/{row.trait} for user {user_id}: {e}")

        return Profile5D.from_traits(
            user_id=user_id,
            traits=traits,
            know_you_meter_score=float(user.know_you_meter_score or 0),
        )

    def load_safety_profile(self, user_id: Any, today: Optional[date] = None) -> Optional[SafetyProfile]:
        user = self.get_user(user_id)
        if user is None:
            return None

        return SafetyProfile(
            user_id=user_id,
            age=age_on(user.date_of_birth, today or date.today()),
            location=Coordinates(latitude=user.latitude, longitude=user.longitude),
            red_flags=frozenset(user.red_flags or []),
            preferences=SafetyPreferences(
                max_distance_km=user.max_distance_km,
                min_age=user.min_age,
                max_age=user.max_age,
            ),
        )

    def upsert_trait(self, user_id: Any, trait: Trait) -> None:
        """Insert or update the trait keyed by (user, dimension, name)."""
        stmt = insert(UserTrait).values(
            user_id=user_id,
            dimension=trait.dimension.value,
            trait=trait.name,
            value=trait.value,
            confidence=trait.confidence,
            source=trait.source.value,
        )
        stmt = stmt.on_conflict_do_update(
            constraint='uq_user_traits_user_dimension_trait',
            set_={
                'value': stmt.excluded.value,
                'confidence': stmt.excluded.confidence,
                'source': stmt.excluded.source,
            }
        )
        self.db.execute(stmt)

    def update_know_you_meter(self, user_id: Any, score: float) -> None:
        user = self.get_user(user_id)
        if user is not None:
            user.know_you_meter_score = round(score, 2)
