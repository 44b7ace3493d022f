from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict

from inkfeed.core.config import Settings, settings as default_settings
from inkfeed.data.models import utc_now
from inkfeed.recommendation.interaction_store import InteractionStore
from inkfeed.recommendation.similarity import SimilarityEngine, normalized_value


class ScorePredictor:
    """
    用户-笔记本亲和度预测

    final = USER_BASED_WEIGHT * 基于用户的分 + ITEM_BASED_WEIGHT * 基于笔记本的分，
    相似度阈值只在这里生效（矩阵里保存的是原始相似度）。
    """

    def __init__(
        self,
        engine: SimilarityEngine,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._engine = engine
        self._settings = settings or default_settings
        self._clock = clock

    @property
    def store(self) -> InteractionStore:
        return self._engine.store

    def predict(self, user_id: str, item_id: str) -> float:
        now = self._clock()
        cfg = self._settings
        user_based = self.user_based_score(user_id, item_id, now=now)
        item_based = self.item_based_score(user_id, item_id, now=now)
        score = cfg.USER_BASED_WEIGHT * user_based + cfg.ITEM_BASED_WEIGHT * item_based
        return min(1.0, max(0.0, score))

    def user_based_score(self, user_id: str, item_id: str, *, now: datetime | None = None) -> float:
        """相似用户对该笔记本的互动值，按相似度加权平均"""
        neighbors = self._engine.user_matrix.neighbors(user_id)
        return self._weighted(
            neighbors,
            lambda other: self.store.interactions_between(other, item_id),
            now or self._clock(),
        )

    def item_based_score(self, user_id: str, item_id: str, *, now: datetime | None = None) -> float:
        """该用户对相似笔记本的互动值，按相似度加权平均"""
        neighbors = self._engine.item_matrix.neighbors(item_id)
        return self._weighted(
            neighbors,
            lambda other: self.store.interactions_between(user_id, other),
            now or self._clock(),
        )

    def _weighted(self, neighbors: Dict[str, float], lookup, now: datetime) -> float:
        threshold = self._settings.SIMILARITY_THRESHOLD
        weighted_sum = 0.0
        similarity_sum = 0.0
        for other, similarity in neighbors.items():
            if similarity <= threshold:
                continue
            value = normalized_value(
                lookup(other),
                now=now,
                max_age_days=self._settings.MAX_INTERACTION_AGE_DAYS,
            )
            if value is None:
                continue
            weighted_sum += similarity * value
            similarity_sum += similarity
        return weighted_sum / similarity_sum if similarity_sum > 0 else 0.0
