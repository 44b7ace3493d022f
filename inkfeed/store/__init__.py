"""
文档存储模块

排序核心只通过 DocumentStore 协议与外部存储交互（依赖注入，不使用全局单例）。
"""

from inkfeed.store.base import BatchOperation, Document, DocumentStore
from inkfeed.store.memory import InMemoryDocumentStore
from inkfeed.store.redis_store import DocumentKeys, RedisDocumentStore

__all__ = [
    "BatchOperation",
    "Document",
    "DocumentKeys",
    "DocumentStore",
    "InMemoryDocumentStore",
    "RedisDocumentStore",
]
