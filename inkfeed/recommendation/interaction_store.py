"""
互动日志（只追加）

所有相似度计算的数据基础。记录成功后通知订阅者（SimilarityEngine 的更新钩子）。
"""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Callable, Dict, Iterable, Iterator, List, Set, Tuple

from loguru import logger

from inkfeed.core.exceptions import ValidationError
from inkfeed.data.models import Interaction, InteractionType

InteractionListener = Callable[[Interaction], None]


class InteractionStore:
    def __init__(self) -> None:
        self._log: List[Interaction] = []
        self._by_user: Dict[str, List[Interaction]] = defaultdict(list)
        self._by_item: Dict[str, List[Interaction]] = defaultdict(list)
        self._by_pair: Dict[Tuple[str, str], List[Interaction]] = defaultdict(list)
        self._listeners: List[InteractionListener] = []

    def subscribe(self, listener: InteractionListener) -> None:
        self._listeners.append(listener)

    def record(self, interaction: Interaction) -> None:
        """校验并追加一条互动，然后触发订阅者；非法输入不会产生任何写入"""
        validate_interaction(interaction)
        self._append(interaction)
        for listener in self._listeners:
            listener(interaction)

    def extend(self, interactions: Iterable[Interaction], *, notify: bool = False) -> int:
        """
        批量追加（用于从持久化历史回放）

        先整体校验，任意一条非法则整批拒绝。notify=False 时不触发订阅者，
        由调用方随后做一次全量重建。
        """
        batch = list(interactions)
        for interaction in batch:
            validate_interaction(interaction)
        for interaction in batch:
            self._append(interaction)
            if notify:
                for listener in self._listeners:
                    listener(interaction)
        logger.debug(f"互动日志批量追加: {len(batch)} 条, 总计 {len(self._log)} 条")
        return len(batch)

    def _append(self, interaction: Interaction) -> None:
        self._log.append(interaction)
        self._by_user[interaction.user_id].append(interaction)
        self._by_item[interaction.item_id].append(interaction)
        self._by_pair[(interaction.user_id, interaction.item_id)].append(interaction)

    def interactions_for_user(self, user_id: str) -> Tuple[Interaction, ...]:
        return tuple(self._by_user.get(user_id, ()))

    def interactions_for_item(self, item_id: str) -> Tuple[Interaction, ...]:
        return tuple(self._by_item.get(item_id, ()))

    def interactions_between(self, user_id: str, item_id: str) -> Tuple[Interaction, ...]:
        return tuple(self._by_pair.get((user_id, item_id), ()))

    def all_user_ids(self) -> Set[str]:
        return set(self._by_user.keys())

    def all_item_ids(self) -> Set[str]:
        return set(self._by_item.keys())

    def __len__(self) -> int:
        return len(self._log)

    def __iter__(self) -> Iterator[Interaction]:
        return iter(tuple(self._log))


def validate_interaction(interaction: Interaction) -> None:
    if not isinstance(interaction, Interaction):
        raise ValidationError(f"不是合法的互动对象: {interaction!r}")
    if not isinstance(interaction.user_id, str) or not interaction.user_id.strip():
        raise ValidationError("user_id 不能为空")
    if not isinstance(interaction.item_id, str) or not interaction.item_id.strip():
        raise ValidationError("item_id 不能为空")
    if not isinstance(interaction.type, InteractionType):
        raise ValidationError(f"未知的互动类型: {interaction.type!r}")
    if interaction.timestamp is None or interaction.timestamp.tzinfo is None:
        raise ValidationError("timestamp 必须是带时区的 datetime")
    value = interaction.value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"value 必须是数值: {value!r}")
    if math.isnan(value) or value < 0.0 or value > 1.0:
        raise ValidationError(f"value 必须在 [0, 1] 范围内: {value}")
