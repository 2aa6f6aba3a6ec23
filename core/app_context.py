from dataclasses import dataclass

from core.config_loader import AppConfig
from core.matcher.lifecycle import MatchLifecycleService
from core.matcher.service import MatchDiscoveryPipeline
from core.scorer.service import ScoreCombiner


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    The ScoreCombiner is built once (weights and subspace table are
    validated here, so a bad config refuses to start). DB access should be
    obtained via match_uow() per operation; the pipeline and lifecycle
    service are bound to that unit of work's repositories.
    """
    config: AppConfig
    combiner: ScoreCombiner

    @classmethod
    def build(cls, config: AppConfig) -> "AppContext":
        """Build an AppContext from config.

        Raises:
            InvariantViolation: RBS weights or subspace table are invalid
        """
        combiner = ScoreCombiner(config=config.scorer)
        return cls(config=config, combiner=combiner)

    def build_pipeline(self, repo) -> MatchDiscoveryPipeline:
        """Discovery pipeline bound to a MatchingRepository's stores."""
        return MatchDiscoveryPipeline(
            vector_search=repo.embeddings,
            profile_store=repo.profiles,
            match_store=repo.matches,
            combiner=self.combiner,
            config=self.config.discovery,
        )

    def build_lifecycle(self, repo) -> MatchLifecycleService:
        return MatchLifecycleService(match_store=repo.matches)

    def close(self) -> None:
        self.combiner.close()
