from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Sequence, Set

from loguru import logger

from inkfeed.core.exceptions import PersistenceError
from inkfeed.store.base import BatchOperation, DocumentStore

PersistenceErrorHandler = Callable[[PersistenceError], None]


class WriteBehind:
    """
    异步写回（fire-and-forget）

    本地内存状态是权威数据：写入失败只记录告警并回调 on_error，不回滚。
    批次按提交顺序串行写入，避免后提交的计数被先提交的旧值覆盖。
    """

    def __init__(
        self,
        store: Optional[DocumentStore],
        *,
        on_error: Optional[PersistenceErrorHandler] = None,
    ) -> None:
        self._store = store
        self._on_error = on_error
        self._pending: Set[asyncio.Task] = set()
        self._lock: Optional[asyncio.Lock] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def enabled(self) -> bool:
        return self._store is not None

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(self, operations: Sequence[BatchOperation], *, description: str = "") -> None:
        if self._store is None or not operations:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._report(PersistenceError(f"没有运行中的事件循环，写回被跳过: {description}"))
            return

        if self._lock is None or self._loop is not loop:
            self._lock = asyncio.Lock()
            self._loop = loop
        task = loop.create_task(self._write(list(operations), description, self._lock))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def flush(self) -> None:
        """等待所有已提交的写回完成（测试与会话结束时使用）"""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _write(self, operations: List[BatchOperation], description: str, lock: asyncio.Lock) -> None:
        async with lock:
            try:
                await self._store.batch(operations)
                logger.debug(f"写回完成: {description}, ops={len(operations)}")
            except Exception as e:
                first = operations[0]
                self._report(
                    PersistenceError(
                        f"写回失败: {description}, err={e}",
                        collection=first.collection,
                        doc_id=first.doc_id,
                    )
                )

    def _report(self, error: PersistenceError) -> None:
        logger.warning(f"⚠️ {error}（本地状态保持不变）")
        if self._on_error is None:
            return
        try:
            self._on_error(error)
        except Exception as e:
            logger.error(f"持久化错误回调执行失败: {e}")
