"""
文档存储协作方接口

排序核心只依赖 get / query / set / update / batch 五个操作；
文档是 str -> (str | number | bool | datetime | dict | list) 的扁平映射。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence

Document = Dict[str, Any]

QUERY_OPERATORS = ("==", "!=", "<", "<=", ">", ">=", "in", "array-contains")


@dataclass(frozen=True)
class BatchOperation:
    kind: Literal["set", "update"]
    collection: str
    doc_id: str
    data: Document = field(default_factory=dict)

    @classmethod
    def set(cls, collection: str, doc_id: str, data: Document) -> "BatchOperation":
        return cls(kind="set", collection=collection, doc_id=doc_id, data=data)

    @classmethod
    def update(cls, collection: str, doc_id: str, data: Document) -> "BatchOperation":
        return cls(kind="update", collection=collection, doc_id=doc_id, data=data)


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    async def query(self, collection: str, field: str, op: str, value: Any) -> List[Document]:
        ...

    async def set(self, collection: str, doc_id: str, document: Document) -> None:
        ...

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        ...

    async def batch(self, operations: Sequence[BatchOperation]) -> None:
        ...


def matches(document: Document, field: str, op: str, value: Any) -> bool:
    """Firestore 风格的单字段条件判断；字段缺失视为不匹配"""
    if op not in QUERY_OPERATORS:
        raise ValueError(f"不支持的查询操作符: {op}")
    if field not in document:
        return False
    current = document[field]
    try:
        if op == "==":
            return current == value
        if op == "!=":
            return current != value
        if op == "<":
            return current < value
        if op == "<=":
            return current <= value
        if op == ">":
            return current > value
        if op == ">=":
            return current >= value
        if op == "in":
            return current in value
        return isinstance(current, list) and value in current
    except TypeError:
        # 类型不可比较（如 str 与 int）时按不匹配处理
        return False
