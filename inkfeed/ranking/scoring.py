"""
排序打分因子（纯函数，便于单测）

除 time_decay 外，所有因子取值都在 [0, 1]。
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

from inkfeed.core.config import Settings
from inkfeed.data.models import FeedItem, Interaction


def clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def age_in_hours(created_at: datetime, now: datetime) -> float:
    return (now - created_at).total_seconds() / 3600.0


def time_decay(age_hours: float) -> float:
    """
    1 / (1 + ln(max(age_hours, 1)))

    一小时以内（含未来时间）恒为 1；之后随年龄单调递减，永不为 0。
    """
    return 1.0 / (1.0 + math.log(max(age_hours, 1.0)))


def engagement_score(item: FeedItem, cfg: Settings) -> float:
    raw = (
        item.view_count * cfg.ENGAGEMENT_VIEW_WEIGHT
        + item.like_count * cfg.ENGAGEMENT_LIKE_WEIGHT
        + item.comment_count * cfg.ENGAGEMENT_COMMENT_WEIGHT
        + item.time_spent_seconds * cfg.ENGAGEMENT_TIME_SPENT_WEIGHT
    )
    return clamp01(raw / cfg.ENGAGEMENT_NORMALIZER)


def user_relevance_score(
    interactions: Iterable[Interaction],
    now: datetime,
    cfg: Settings,
) -> float:
    """观看用户在窗口期内与该笔记本的互动，越新加成越高"""
    window = cfg.RELEVANCE_WINDOW_HOURS
    total = 0.0
    for interaction in interactions:
        hours_ago = max(0.0, age_in_hours(interaction.timestamp, now))
        if hours_ago >= window:
            continue
        total += cfg.RELEVANCE_STEP * (window - hours_ago) / window
    return clamp01(total)


def quality_score(item: FeedItem, cfg: Settings) -> float:
    pages = min(1.0, max(0, item.page_count) / cfg.QUALITY_PAGE_TARGET)
    words = min(1.0, max(0, item.description_word_count) / cfg.QUALITY_DESCRIPTION_TARGET)
    content = min(1.0, max(0.0, item.average_content_length) / cfg.QUALITY_CONTENT_TARGET)
    return clamp01(
        cfg.QUALITY_PAGE_WEIGHT * pages
        + cfg.QUALITY_DESCRIPTION_WEIGHT * words
        + cfg.QUALITY_CONTENT_WEIGHT * content
    )
