from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Sequence

from inkfeed.core.exceptions import NotFoundError
from inkfeed.store.base import BatchOperation, Document, matches


class InMemoryDocumentStore:
    """
    进程内文档存储（嵌入式使用与测试）

    读写都做深拷贝，调用方拿到的文档修改不会回写到存储。
    """

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Document]] = {}

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(self, collection: str, field: str, op: str, value: Any) -> List[Document]:
        docs = self._collections.get(collection, {})
        return [copy.deepcopy(doc) for _, doc in sorted(docs.items()) if matches(doc, field, op, value)]

    async def set(self, collection: str, doc_id: str, document: Document) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(document)

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise NotFoundError(f"文档不存在: {collection}/{doc_id}")
        docs[doc_id].update(copy.deepcopy(fields))

    async def batch(self, operations: Sequence[BatchOperation]) -> None:
        # 先校验全部 update 目标存在，保证整批要么全部生效要么不生效
        created: set[tuple[str, str]] = set()
        for op in operations:
            key = (op.collection, op.doc_id)
            if op.kind == "set":
                created.add(key)
            elif key not in created and op.doc_id not in self._collections.get(op.collection, {}):
                raise NotFoundError(f"文档不存在: {op.collection}/{op.doc_id}")
        for op in operations:
            if op.kind == "set":
                await self.set(op.collection, op.doc_id, op.data)
            else:
                await self.update(op.collection, op.doc_id, op.data)
