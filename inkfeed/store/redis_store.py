from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from inkfeed.core.exceptions import NotFoundError
from inkfeed.core.redis_client import RedisClient
from inkfeed.store.base import BatchOperation, Document, matches

_TIMESTAMP_TAG = "$timestamp"


@dataclass(frozen=True)
class DocumentKeys:
    prefix: str = ""

    @classmethod
    def with_prefix(cls, prefix: str) -> "DocumentKeys":
        """
        生成带前缀的 Key 集合（用于多环境/多项目共用 Redis 时隔离数据）
        """
        return cls(prefix=prefix or "")

    def document(self, collection: str, doc_id: str) -> str:
        return f"{self.prefix}doc:{collection}:{doc_id}"

    def index(self, collection: str) -> str:
        return f"{self.prefix}idx:{collection}"


class RedisDocumentStore:
    """
    基于 Redis 的文档存储

    每个文档以 JSON 字符串保存在 doc:<collection>:<id>，
    集合内全部 ID 记录在 idx:<collection>（Set），query 时全量扫描过滤。
    """

    def __init__(self, redis_client: RedisClient, keys: DocumentKeys | None = None):
        self._redis_client = redis_client
        self._keys = keys or DocumentKeys.with_prefix(redis_client.settings.FEED_KEY_PREFIX)

    @property
    def keys(self) -> DocumentKeys:
        return self._keys

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        raw = await self._redis_client.client.get(self._keys.document(collection, doc_id))
        return decode_document(raw) if raw is not None else None

    async def query(self, collection: str, field: str, op: str, value: Any) -> List[Document]:
        ids = sorted(await self._redis_client.client.smembers(self._keys.index(collection)))
        if not ids:
            return []
        pipe = self._redis_client.client.pipeline()
        for doc_id in ids:
            pipe.get(self._keys.document(collection, doc_id))
        raws = await pipe.execute()

        result: List[Document] = []
        for doc_id, raw in zip(ids, raws):
            if raw is None:
                logger.warning(f"索引中的文档缺失: {collection}/{doc_id}")
                continue
            doc = decode_document(raw)
            if matches(doc, field, op, value):
                result.append(doc)
        return result

    async def set(self, collection: str, doc_id: str, document: Document) -> None:
        await self.batch([BatchOperation.set(collection, doc_id, document)])

    async def update(self, collection: str, doc_id: str, fields: Document) -> None:
        await self.batch([BatchOperation.update(collection, doc_id, fields)])

    async def batch(self, operations: Sequence[BatchOperation]) -> None:
        """
        读出所有 update 目标后在内存中依次合并，再用一个 pipeline 写回

        任一 update 目标不存在则整批不写入。
        """
        if not operations:
            return

        targets: List[Tuple[str, str]] = list(
            dict.fromkeys((op.collection, op.doc_id) for op in operations if op.kind == "update")
        )
        current: Dict[Tuple[str, str], Optional[Document]] = {}
        if targets:
            read_pipe = self._redis_client.client.pipeline()
            for collection, doc_id in targets:
                read_pipe.get(self._keys.document(collection, doc_id))
            raws = await read_pipe.execute()
            for target, raw in zip(targets, raws):
                current[target] = decode_document(raw) if raw is not None else None

        staged: Dict[Tuple[str, str], Document] = {}
        for op in operations:
            key = (op.collection, op.doc_id)
            if op.kind == "set":
                staged[key] = dict(op.data)
                continue
            base = staged.get(key) if key in staged else current.get(key)
            if base is None:
                raise NotFoundError(f"文档不存在: {op.collection}/{op.doc_id}")
            merged = dict(base)
            merged.update(op.data)
            staged[key] = merged

        pipe = self._redis_client.client.pipeline()
        for (collection, doc_id), doc in staged.items():
            pipe.set(self._keys.document(collection, doc_id), encode_document(doc))
            pipe.sadd(self._keys.index(collection), doc_id)
        await pipe.execute()


def encode_document(document: Document) -> str:
    return json.dumps(document, default=_encode_value, ensure_ascii=False, sort_keys=True)


def decode_document(raw: str) -> Document:
    return json.loads(raw, object_hook=_decode_object)


def _encode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_TIMESTAMP_TAG: value.isoformat()}
    if isinstance(value, set):
        return list(value)
    raise TypeError(f"无法序列化的文档字段类型: {type(value).__name__}")


def _decode_object(obj: Dict[str, Any]) -> Any:
    if len(obj) == 1 and _TIMESTAMP_TAG in obj:
        return datetime.fromisoformat(obj[_TIMESTAMP_TAG])
    return obj
