"""
信息流会话（编排层）

一个登录用户的一次信息流会话：持有笔记本集合、互动日志、两个相似度矩阵。
每次互动：记录 Interaction -> 增量更新相似度 -> 全量重排 -> 回调通知 -> 异步写回。
"""

from __future__ import annotations

import math
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError as SchemaError

from inkfeed.core.config import Settings, settings as default_settings
from inkfeed.core.exceptions import NotFoundError, ValidationError
from inkfeed.data.models import Comment, FeedItem, Interaction, InteractionType, utc_now
from inkfeed.feed.persistence import PersistenceErrorHandler, WriteBehind
from inkfeed.ranking.ranker import FeedRanker, ScoreBreakdown
from inkfeed.recommendation.interaction_store import InteractionStore, validate_interaction
from inkfeed.recommendation.predictor import ScorePredictor
from inkfeed.recommendation.similarity import SimilarityEngine
from inkfeed.store.base import BatchOperation, DocumentStore
from inkfeed.store.documents import (
    COMMENTS,
    INTERACTIONS,
    NOTEBOOKS,
    USER_FEED_STATE,
    CommentDocument,
    InteractionDocument,
    NotebookDocument,
    UserFeedStateDocument,
)

RankingChangedHandler = Callable[[List[FeedItem]], None]


class FeedSession:
    def __init__(
        self,
        user_id: str,
        items: Iterable[FeedItem] = (),
        *,
        history: Iterable[Interaction] = (),
        store: Optional[DocumentStore] = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
        use_predictor: bool = True,
        on_ranking_changed: Optional[RankingChangedHandler] = None,
        on_persistence_error: Optional[PersistenceErrorHandler] = None,
    ) -> None:
        """
        Args:
            user_id: 观看者
            items: 初始笔记本
            history: 持久化的互动历史，回放后全量重建相似度矩阵
            store: 文档存储；为 None 时不写回
            use_predictor: False 时推荐分固定为 DEFAULT_RECOMMENDATION_SCORE
            on_ranking_changed: 每次重排后回调，参数为新的排序结果
            on_persistence_error: 写回失败回调（非致命）
        """
        if not isinstance(user_id, str) or not user_id.strip():
            raise ValidationError("user_id 不能为空")

        self._user_id = user_id
        self._settings = settings or default_settings
        self._clock = clock
        self._on_ranking_changed = on_ranking_changed
        self._lock = threading.Lock()

        self._interactions = InteractionStore()
        self._engine = SimilarityEngine(self._interactions, settings=self._settings, clock=clock)
        self._predictor = (
            ScorePredictor(self._engine, settings=self._settings, clock=clock) if use_predictor else None
        )
        self._ranker = FeedRanker(settings=self._settings, clock=clock)
        self._writer = WriteBehind(store, on_error=on_persistence_error)

        self._items: Dict[str, FeedItem] = {}
        self._order: List[FeedItem] = []
        for item in items:
            self._items[item.id] = item
        self._liked_ids = {item.id for item in self._items.values() if item.is_liked}
        self._saved_ids = {item.id for item in self._items.values() if item.is_saved}

        replayed = self._interactions.extend(sorted(history, key=lambda x: x.timestamp))
        if replayed:
            self._engine.rebuild()
        self._engine.attach()
        self._order = self._rank_locked()

    @classmethod
    async def load(
        cls,
        store: DocumentStore,
        user_id: str,
        **kwargs,
    ) -> "FeedSession":
        """
        从文档存储恢复会话：公开笔记本 + 评论 + 用户点赞/收藏状态 + 互动历史

        kwargs 透传给构造函数；调用方给出的 history 与存储中的历史合并回放。
        """
        state = UserFeedStateDocument(user_id=user_id)
        state_raw = await store.get(USER_FEED_STATE, user_id)
        if state_raw:
            try:
                state = UserFeedStateDocument.model_validate(state_raw)
            except SchemaError as e:
                logger.warning(f"用户信息流状态无法解析，按空状态处理: user={user_id}, err={e}")
        liked = set(state.liked_item_ids)
        saved = set(state.saved_item_ids)

        items: List[FeedItem] = []
        for raw in await store.query(NOTEBOOKS, "isPublic", "==", True):
            try:
                notebook = NotebookDocument.model_validate(raw)
            except SchemaError as e:
                logger.warning(f"跳过无法解析的笔记本文档: id={raw.get('id')}, err={e}")
                continue
            items.append(notebook.to_feed_item(is_liked=notebook.id in liked, is_saved=notebook.id in saved))

        item_ids = [item.id for item in items]
        history: List[Interaction] = list(kwargs.pop("history", ()))
        if item_ids:
            by_id = {item.id: item for item in items}
            comments: List[Comment] = []
            for raw in await store.query(COMMENTS, "itemId", "in", item_ids):
                try:
                    comments.append(CommentDocument.model_validate(raw).to_comment())
                except SchemaError as e:
                    logger.warning(f"跳过无法解析的评论文档: id={raw.get('id')}, err={e}")
            for comment in sorted(comments, key=lambda c: c.created_at):
                by_id[comment.item_id].comments.append(comment)

            for raw in await store.query(INTERACTIONS, "itemId", "in", item_ids):
                try:
                    interaction = InteractionDocument.model_validate(raw).to_interaction()
                    validate_interaction(interaction)
                except (SchemaError, ValidationError) as e:
                    logger.warning(f"跳过非法的互动文档: err={e}")
                    continue
                history.append(interaction)

        session = cls(user_id, items, history=history, store=store, **kwargs)
        session._liked_ids |= liked
        session._saved_ids |= saved
        logger.info(
            f"信息流会话已加载: user={user_id}, items={len(items)}, interactions={len(history)}"
        )
        return session

    # ========================================
    # 读取
    # ========================================
    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def items(self) -> List[FeedItem]:
        """当前排序结果（按综合分降序）"""
        return list(self._order)

    @property
    def interactions(self) -> InteractionStore:
        return self._interactions

    @property
    def similarity(self) -> SimilarityEngine:
        return self._engine

    @property
    def predictor(self) -> Optional[ScorePredictor]:
        return self._predictor

    def get_item(self, item_id: str) -> FeedItem:
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(f"笔记本不在当前信息流中: {item_id}")
        return item

    def predict(self, item_id: str) -> float:
        with self._lock:
            self.get_item(item_id)
            if self._predictor is None:
                return self._settings.DEFAULT_RECOMMENDATION_SCORE
            return self._predictor.predict(self._user_id, item_id)

    def explain(self, item_id: str) -> ScoreBreakdown:
        with self._lock:
            item = self.get_item(item_id)
            return self._ranker.explain(item, self._interactions, self._predictor, user_id=self._user_id)

    async def flush(self) -> None:
        await self._writer.flush()

    # ========================================
    # 集合变更
    # ========================================
    def add_items(self, items: Sequence[FeedItem]) -> List[FeedItem]:
        """新的公开笔记本进入信息流（同 ID 覆盖旧条目）"""
        with self._lock:
            for item in items:
                self._items[item.id] = item
            ranked = self._rank_locked()
        self._notify(ranked)
        return ranked

    def refresh(self) -> List[FeedItem]:
        """无新互动时按当前时刻重新排序（时间衰减随时间变化）"""
        with self._lock:
            ranked = self._rank_locked()
        self._notify(ranked)
        return ranked

    # ========================================
    # 互动入口
    # ========================================
    def toggle_like(self, item_id: str) -> FeedItem:
        with self._lock:
            item = self.get_item(item_id)
            interaction = self._new_interaction(item_id, InteractionType.LIKE)

            item.is_liked = not item.is_liked
            item.like_count = max(0, item.like_count + (1 if item.is_liked else -1))
            if item.is_liked:
                self._liked_ids.add(item_id)
            else:
                self._liked_ids.discard(item_id)

            ranked = self._apply_locked([interaction])
            ops = self._interaction_ops([interaction]) + [
                self._counter_op(item),
                self._state_op(),
            ]
        self._after_apply(ranked, ops, f"like item={item_id} liked={item.is_liked}")
        return item

    def toggle_save(self, item_id: str) -> FeedItem:
        with self._lock:
            item = self.get_item(item_id)
            interaction = self._new_interaction(item_id, InteractionType.SAVE)

            item.is_saved = not item.is_saved
            if item.is_saved:
                item.save_count += 1
                self._saved_ids.add(item_id)
            else:
                self._saved_ids.discard(item_id)

            ranked = self._apply_locked([interaction])
            ops = self._interaction_ops([interaction]) + [
                self._counter_op(item),
                self._state_op(),
            ]
        self._after_apply(ranked, ops, f"save item={item_id} saved={item.is_saved}")
        return item

    def add_comment(self, item_id: str, text: str, author: str, *, author_name: str = "") -> Comment:
        with self._lock:
            item = self.get_item(item_id)
            if not isinstance(text, str) or not text.strip():
                raise ValidationError("评论内容不能为空")
            if not isinstance(author, str) or not author.strip():
                raise ValidationError("评论作者不能为空")
            interaction = self._new_interaction(item_id, InteractionType.COMMENT)

            comment = Comment(
                item_id=item_id,
                author_id=author,
                author_name=author_name,
                text=text,
                created_at=interaction.timestamp,
            )
            item.comments.append(comment)
            item.comment_count += 1

            ranked = self._apply_locked([interaction])
            ops = self._interaction_ops([interaction]) + [
                BatchOperation.set(COMMENTS, comment.id, CommentDocument.from_comment(comment).to_document()),
                self._counter_op(item),
            ]
        self._after_apply(ranked, ops, f"comment item={item_id}")
        return comment

    def increment_share(self, item_id: str) -> FeedItem:
        with self._lock:
            item = self.get_item(item_id)
            interaction = self._new_interaction(item_id, InteractionType.SHARE)

            item.share_count += 1

            ranked = self._apply_locked([interaction])
            ops = self._interaction_ops([interaction]) + [self._counter_op(item)]
        self._after_apply(ranked, ops, f"share item={item_id}")
        return item

    def record_view(self, item_id: str, dwell_seconds: float = 0.0) -> FeedItem:
        with self._lock:
            item = self.get_item(item_id)
            if isinstance(dwell_seconds, bool) or not isinstance(dwell_seconds, (int, float)):
                raise ValidationError(f"停留时长必须是数值: {dwell_seconds!r}")
            if not math.isfinite(dwell_seconds) or dwell_seconds < 0:
                raise ValidationError(f"停留时长必须是非负有限数: {dwell_seconds}")

            recorded = [self._new_interaction(item_id, InteractionType.VIEW)]
            if dwell_seconds > 0:
                cap = self._settings.TIME_SPENT_CAP_SECONDS
                recorded.append(
                    self._new_interaction(
                        item_id,
                        InteractionType.TIME_SPENT,
                        value=min(1.0, dwell_seconds / cap),
                        timestamp=recorded[0].timestamp,
                    )
                )

            item.view_count += 1
            item.time_spent_seconds += dwell_seconds

            ranked = self._apply_locked(recorded)
            ops = self._interaction_ops(recorded) + [self._counter_op(item)]
        self._after_apply(ranked, ops, f"view item={item_id} dwell={dwell_seconds}")
        return item

    # ========================================
    # 内部
    # ========================================
    def _new_interaction(
        self,
        item_id: str,
        interaction_type: InteractionType,
        *,
        value: Optional[float] = None,
        timestamp: Optional[datetime] = None,
    ) -> Interaction:
        interaction = Interaction.create(
            self._user_id,
            item_id,
            interaction_type,
            value=value,
            timestamp=timestamp or self._clock(),
            settings=self._settings,
        )
        # 修改任何状态之前先校验，保证非法输入不会部分生效
        validate_interaction(interaction)
        return interaction

    def _apply_locked(self, interactions: Sequence[Interaction]) -> List[FeedItem]:
        for interaction in interactions:
            self._interactions.record(interaction)
        return self._rank_locked()

    def _rank_locked(self) -> List[FeedItem]:
        self._order = self._ranker.rank(
            list(self._items.values()),
            self._interactions,
            self._predictor,
            user_id=self._user_id,
        )
        return list(self._order)

    def _after_apply(self, ranked: List[FeedItem], ops: List[BatchOperation], description: str) -> None:
        logger.debug(f"互动已应用: user={self._user_id}, {description}")
        self._notify(ranked)
        self._writer.schedule(ops, description=description)

    def _notify(self, ranked: List[FeedItem]) -> None:
        if self._on_ranking_changed is None:
            return
        try:
            self._on_ranking_changed(ranked)
        except Exception as e:
            logger.error(f"排序变更回调执行失败: {e}")

    def _interaction_ops(self, interactions: Sequence[Interaction]) -> List[BatchOperation]:
        return [
            BatchOperation.set(
                INTERACTIONS,
                uuid.uuid4().hex,
                InteractionDocument.from_interaction(interaction).to_document(),
            )
            for interaction in interactions
        ]

    def _counter_op(self, item: FeedItem) -> BatchOperation:
        return BatchOperation.update(NOTEBOOKS, item.id, item.counters())

    def _state_op(self) -> BatchOperation:
        state = UserFeedStateDocument(
            user_id=self._user_id,
            liked_item_ids=sorted(self._liked_ids),
            saved_item_ids=sorted(self._saved_ids),
        )
        return BatchOperation.set(USER_FEED_STATE, self._user_id, state.to_document())
