"""
存储文档 Schema

领域对象 <-> 文档（camelCase 字段名，与原有 notebooks 集合保持一致）的转换。
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from inkfeed.data.models import Comment, FeedItem, Interaction, InteractionType

NOTEBOOKS = "notebooks"
INTERACTIONS = "interactions"
COMMENTS = "comments"
USER_FEED_STATE = "userFeedState"


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PageDocument(_Document):
    id: str
    content: str = ""
    type: str = "text"
    order: int = 0


class NotebookDocument(_Document):
    """公开笔记本（信息流条目的来源）"""

    id: str
    title: str = ""
    description: Optional[str] = None
    owner_id: str = Field(..., alias="ownerId")
    is_public: bool = Field(False, alias="isPublic")
    created_at: datetime = Field(..., alias="createdAt")
    pages: List[PageDocument] = Field(default_factory=list)

    view_count: int = Field(0, alias="viewCount")
    like_count: int = Field(0, alias="likeCount")
    comment_count: int = Field(0, alias="commentCount")
    save_count: int = Field(0, alias="saveCount")
    share_count: int = Field(0, alias="shareCount")
    time_spent_seconds: float = Field(0.0, alias="timeSpentSeconds")

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def to_feed_item(self, *, is_liked: bool = False, is_saved: bool = False) -> FeedItem:
        words = len(self.description.split()) if self.description else 0
        lengths = [len(page.content) for page in self.pages]
        return FeedItem(
            id=self.id,
            owner_id=self.owner_id,
            created_at=self.created_at,
            title=self.title,
            description=self.description,
            page_count=len(self.pages),
            description_word_count=words,
            average_content_length=(sum(lengths) / len(lengths)) if lengths else 0.0,
            view_count=self.view_count,
            like_count=self.like_count,
            comment_count=self.comment_count,
            save_count=self.save_count,
            share_count=self.share_count,
            time_spent_seconds=self.time_spent_seconds,
            is_liked=is_liked,
            is_saved=is_saved,
        )


class InteractionDocument(_Document):
    user_id: str = Field(..., alias="userId")
    item_id: str = Field(..., alias="itemId")
    type: InteractionType
    timestamp: datetime
    value: float

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_interaction(cls, interaction: Interaction) -> "InteractionDocument":
        return cls(
            user_id=interaction.user_id,
            item_id=interaction.item_id,
            type=interaction.type,
            timestamp=interaction.timestamp,
            value=interaction.value,
        )

    def to_interaction(self) -> Interaction:
        return Interaction(
            user_id=self.user_id,
            item_id=self.item_id,
            type=self.type,
            timestamp=self.timestamp,
            value=self.value,
        )

    def to_document(self) -> dict:
        doc = super().to_document()
        doc["type"] = self.type.value
        return doc


class CommentDocument(_Document):
    id: str
    item_id: str = Field(..., alias="itemId")
    author_id: str = Field(..., alias="authorId")
    author_name: str = Field("", alias="authorName")
    text: str
    created_at: datetime = Field(..., alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentDocument":
        return cls(
            id=comment.id,
            item_id=comment.item_id,
            author_id=comment.author_id,
            author_name=comment.author_name,
            text=comment.text,
            created_at=comment.created_at,
        )

    def to_comment(self) -> Comment:
        return Comment(
            id=self.id,
            item_id=self.item_id,
            author_id=self.author_id,
            author_name=self.author_name,
            text=self.text,
            created_at=self.created_at,
        )


class UserFeedStateDocument(_Document):
    """观看用户对各笔记本的点赞/收藏状态"""

    user_id: str = Field(..., alias="userId")
    liked_item_ids: List[str] = Field(default_factory=list, alias="likedItemIds")
    saved_item_ids: List[str] = Field(default_factory=list, alias="savedItemIds")
