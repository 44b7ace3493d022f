"""
信息流排序器

执行流程:
    1. 逐个笔记本计算综合分（互动度/用户相关度/质量/推荐分 × 时间衰减）
    2. 单个笔记本打分失败时记 0 分，继续处理其余笔记本
    3. 稳定排序（同分保持输入顺序）
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from inkfeed.core.config import Settings, settings as default_settings
from inkfeed.data.models import FeedItem, Interaction, utc_now
from inkfeed.ranking.scoring import (
    age_in_hours,
    engagement_score,
    quality_score,
    time_decay,
    user_relevance_score,
)
from inkfeed.recommendation.interaction_store import InteractionStore
from inkfeed.recommendation.predictor import ScorePredictor

InteractionHistory = Union[InteractionStore, Iterable[Interaction]]


@dataclass(frozen=True)
class ScoreBreakdown:
    item_id: str
    engagement: float
    user_relevance: float
    quality: float
    recommendation: float
    time_decay: float
    score: float


class FeedRanker:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings or default_settings
        self._clock = clock

    def rank(
        self,
        items: Sequence[FeedItem],
        interaction_history: InteractionHistory,
        predictor: Optional[ScorePredictor] = None,
        *,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> List[FeedItem]:
        """
        为所有笔记本写入 ranking_score 并返回按综合分降序的新列表

        Args:
            items: 当前可见的笔记本
            interaction_history: 互动日志（InteractionStore 或互动序列）
            predictor: 协同过滤打分器；为 None 时推荐分使用 DEFAULT_RECOMMENDATION_SCORE
            user_id: 观看者
            now: 计算时刻，同一次排序内所有笔记本共用
        """
        if not items:
            return []

        now = now or self._clock()
        lookup = _relevance_lookup(interaction_history, user_id)

        failed = 0
        for item in items:
            try:
                breakdown = self._breakdown(item, lookup(item.id), predictor, user_id, now)
                if not math.isfinite(breakdown.score):
                    raise ValueError(f"综合分不是有限数: {breakdown.score}")
                item.ranking_score = breakdown.score
            except Exception as e:
                failed += 1
                logger.warning(f"笔记本打分失败，按 0 分处理: item={getattr(item, 'id', None)}, err={e}")
                item.ranking_score = 0.0

        ranked = sorted(items, key=lambda x: x.ranking_score, reverse=True)
        logger.debug(f"信息流排序完成: user={user_id}, items={len(ranked)}, failed={failed}")
        return ranked

    def explain(
        self,
        item: FeedItem,
        interaction_history: InteractionHistory,
        predictor: Optional[ScorePredictor] = None,
        *,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> ScoreBreakdown:
        """返回单个笔记本各打分因子（不写 ranking_score）"""
        now = now or self._clock()
        lookup = _relevance_lookup(interaction_history, user_id)
        return self._breakdown(item, lookup(item.id), predictor, user_id, now)

    def _breakdown(
        self,
        item: FeedItem,
        own_interactions: Iterable[Interaction],
        predictor: Optional[ScorePredictor],
        user_id: str,
        now: datetime,
    ) -> ScoreBreakdown:
        cfg = self._settings
        engagement = engagement_score(item, cfg)
        relevance = user_relevance_score(own_interactions, now, cfg)
        quality = quality_score(item, cfg)
        if predictor is not None:
            recommendation = predictor.predict(user_id, item.id)
        else:
            recommendation = cfg.DEFAULT_RECOMMENDATION_SCORE
        decay = time_decay(age_in_hours(item.created_at, now))

        blended = (
            cfg.COMPOSITE_ENGAGEMENT_WEIGHT * engagement
            + cfg.COMPOSITE_RELEVANCE_WEIGHT * relevance
            + cfg.COMPOSITE_QUALITY_WEIGHT * quality
            + cfg.COMPOSITE_RECOMMENDATION_WEIGHT * recommendation
        )
        return ScoreBreakdown(
            item_id=item.id,
            engagement=engagement,
            user_relevance=relevance,
            quality=quality,
            recommendation=recommendation,
            time_decay=decay,
            score=blended * decay,
        )


def _relevance_lookup(history: InteractionHistory, user_id: str) -> Callable[[str], Sequence[Interaction]]:
    if isinstance(history, InteractionStore):
        return lambda item_id: history.interactions_between(user_id, item_id)

    grouped: Dict[str, List[Interaction]] = defaultdict(list)
    for interaction in history or ():
        if interaction.user_id == user_id:
            grouped[interaction.item_id].append(interaction)
    return lambda item_id: grouped.get(item_id, [])
