"""
相似度矩阵与在线更新

每条新互动触发：该用户 vs 其他所有已知用户、该笔记本 vs 其他所有已知笔记本的相似度重算，
结果双向写入对应矩阵。单次更新 O(N)，矩阵规模 O(N²)。
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, Iterable, Iterator, Optional, Sequence, Set, Tuple

from loguru import logger

from inkfeed.core.config import Settings, settings as default_settings
from inkfeed.data.models import Interaction, utc_now
from inkfeed.recommendation.interaction_store import InteractionStore


class SimilarityMatrix:
    """
    稀疏对称矩阵: key -> {other_key -> similarity}

    写入总是双向的；不保存自相似；取值截断到 [0, 1]。
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._rows: Dict[str, Dict[str, float]] = {}

    def set(self, a: str, b: str, similarity: float) -> float:
        if a == b:
            raise ValueError(f"相似度矩阵不保存自相似: {a}")
        value = min(1.0, max(0.0, float(similarity)))
        self._rows.setdefault(a, {})[b] = value
        self._rows.setdefault(b, {})[a] = value
        return value

    def get(self, a: str, b: str) -> Optional[float]:
        return self._rows.get(a, {}).get(b)

    def neighbors(self, key: str) -> Dict[str, float]:
        return dict(self._rows.get(key, {}))

    def keys(self) -> Set[str]:
        return set(self._rows.keys())

    def pairs(self) -> Iterator[Tuple[str, str, float]]:
        for a, row in self._rows.items():
            for b, value in row.items():
                yield a, b, value

    def is_symmetric(self) -> bool:
        return all(self.get(b, a) == value for a, b, value in self.pairs())

    def clear(self) -> None:
        self._rows.clear()

    def __contains__(self, pair: Tuple[str, str]) -> bool:
        a, b = pair
        return self.get(a, b) is not None

    def __len__(self) -> int:
        """有效配对数（每对只计一次）"""
        return sum(len(row) for row in self._rows.values()) // 2


def normalized_value(
    interactions: Sequence[Interaction],
    *,
    now: datetime,
    max_age_days: float,
) -> Optional[float]:
    """
    一组互动的时间衰减平均值

    decay = max(0, 1 - age_days / max_age_days)，按互动条数（而非衰减和）求平均，
    结果上限 1.0。空集合返回 None：调用方应跳过，而不是按 0 计分。
    """
    if not interactions:
        return None
    total = 0.0
    for interaction in interactions:
        age_days = (now - interaction.timestamp).total_seconds() / 86400.0
        decay = max(0.0, 1.0 - age_days / max_age_days)
        total += interaction.value * decay
    return min(1.0, total / len(interactions))


def pairwise_similarity(
    a: Sequence[Interaction],
    b: Sequence[Interaction],
    key: Callable[[Interaction], str],
    *,
    now: datetime,
    max_age_days: float,
) -> Optional[float]:
    """
    同一空间内两个实体的相似度

    key 取出"对方空间"的 ID：用户相似度按共同笔记本比较，笔记本相似度按共同用户比较。
    没有共同 key 时返回 None（不写入矩阵）。
    """
    grouped_a = _group(a, key)
    grouped_b = _group(b, key)
    common = grouped_a.keys() & grouped_b.keys()
    if not common:
        return None

    total = 0.0
    for k in common:
        value_a = normalized_value(grouped_a[k], now=now, max_age_days=max_age_days)
        value_b = normalized_value(grouped_b[k], now=now, max_age_days=max_age_days)
        total += 1.0 - abs(value_a - value_b)
    return total / len(common)


def _group(interactions: Iterable[Interaction], key: Callable[[Interaction], str]) -> Dict[str, list]:
    grouped: Dict[str, list] = {}
    for interaction in interactions:
        grouped.setdefault(key(interaction), []).append(interaction)
    return grouped


def _by_item(interaction: Interaction) -> str:
    return interaction.item_id


def _by_user(interaction: Interaction) -> str:
    return interaction.user_id


class SimilarityEngine:
    def __init__(
        self,
        store: InteractionStore,
        *,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
        user_matrix: SimilarityMatrix | None = None,
        item_matrix: SimilarityMatrix | None = None,
    ) -> None:
        self._store = store
        self._settings = settings or default_settings
        self._clock = clock
        self.user_matrix = user_matrix or SimilarityMatrix("user")
        self.item_matrix = item_matrix or SimilarityMatrix("item")

    @property
    def store(self) -> InteractionStore:
        return self._store

    def attach(self) -> "SimilarityEngine":
        """订阅互动日志，之后每次 record 都会触发增量更新"""
        self._store.subscribe(self.on_new_interaction)
        return self

    def on_new_interaction(self, interaction: Interaction) -> None:
        now = self._clock()
        updated_users = self._update_user(interaction.user_id, now)
        updated_items = self._update_item(interaction.item_id, now)
        logger.debug(
            f"相似度增量更新: user={interaction.user_id} ({updated_users} 对), "
            f"item={interaction.item_id} ({updated_items} 对)"
        )

    def rebuild(self) -> None:
        """按当前互动日志全量重建两个矩阵（O(N²)，用于历史回放之后）"""
        now = self._clock()
        self.user_matrix.clear()
        self.item_matrix.clear()
        users = sorted(self._store.all_user_ids())
        items = sorted(self._store.all_item_ids())
        for idx, user_id in enumerate(users):
            self._write_pairs(
                self.user_matrix, user_id, users[idx + 1 :],
                self._store.interactions_for_user, _by_item, now,
            )
        for idx, item_id in enumerate(items):
            self._write_pairs(
                self.item_matrix, item_id, items[idx + 1 :],
                self._store.interactions_for_item, _by_user, now,
            )
        logger.info(
            f"相似度矩阵重建完成: users={len(users)} pairs={len(self.user_matrix)}, "
            f"items={len(items)} pairs={len(self.item_matrix)}"
        )

    def _update_user(self, user_id: str, now: datetime) -> int:
        others = [u for u in self._store.all_user_ids() if u != user_id]
        return self._write_pairs(
            self.user_matrix, user_id, others, self._store.interactions_for_user, _by_item, now
        )

    def _update_item(self, item_id: str, now: datetime) -> int:
        others = [i for i in self._store.all_item_ids() if i != item_id]
        return self._write_pairs(
            self.item_matrix, item_id, others, self._store.interactions_for_item, _by_user, now
        )

    def _write_pairs(
        self,
        matrix: SimilarityMatrix,
        key: str,
        others: Iterable[str],
        lookup: Callable[[str], Sequence[Interaction]],
        common_key: Callable[[Interaction], str],
        now: datetime,
    ) -> int:
        own = lookup(key)
        written = 0
        for other in others:
            similarity = pairwise_similarity(
                own,
                lookup(other),
                common_key,
                now=now,
                max_age_days=self._settings.MAX_INTERACTION_AGE_DAYS,
            )
            if similarity is None:
                continue
            matrix.set(key, other, similarity)
            written += 1
        return written
