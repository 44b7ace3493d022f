from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from inkfeed.core.config import Settings, settings as default_settings
from inkfeed.core.exceptions import ValidationError


class InteractionType(str, Enum):
    VIEW = "view"
    LIKE = "like"
    COMMENT = "comment"
    SAVE = "save"
    SHARE = "share"
    TIME_SPENT = "timeSpent"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Interaction:
    """
    用户-笔记本互动事件（创建后不可变）

    value 为归一化强度，取值 [0, 1]；合法性由 InteractionStore.record 校验。
    """

    user_id: str
    item_id: str
    type: InteractionType
    timestamp: datetime
    value: float

    @classmethod
    def create(
        cls,
        user_id: str,
        item_id: str,
        interaction_type: InteractionType,
        *,
        value: Optional[float] = None,
        timestamp: Optional[datetime] = None,
        settings: Settings | None = None,
    ) -> "Interaction":
        """未显式给出 value 时使用该互动类型的配置基础分值"""
        cfg = settings or default_settings
        try:
            itype = InteractionType(interaction_type)
        except ValueError as exc:
            raise ValidationError(f"未知的互动类型: {interaction_type!r}") from exc
        if value is None:
            value = cfg.interaction_value(itype)
        return cls(
            user_id=user_id,
            item_id=item_id,
            type=itype,
            timestamp=timestamp or utc_now(),
            value=float(value),
        )


@dataclass
class Comment:
    item_id: str
    author_id: str
    text: str
    author_name: str = ""
    created_at: datetime = field(default_factory=utc_now)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass
class FeedItem:
    """
    信息流中的一个公开笔记本

    计数器只能通过 FeedSession 的互动入口修改；ranking_score 只由 FeedRanker 写入。
    """

    id: str
    owner_id: str
    created_at: datetime
    title: str = ""
    description: Optional[str] = None
    page_count: int = 0
    description_word_count: int = 0
    average_content_length: float = 0.0

    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    save_count: int = 0
    share_count: int = 0
    time_spent_seconds: float = 0.0

    is_liked: bool = False
    is_saved: bool = False
    comments: List[Comment] = field(default_factory=list)
    ranking_score: float = 0.0

    def counters(self) -> dict:
        return {
            "viewCount": self.view_count,
            "likeCount": self.like_count,
            "commentCount": self.comment_count,
            "saveCount": self.save_count,
            "shareCount": self.share_count,
            "timeSpentSeconds": self.time_spent_seconds,
        }
