"""
排序核心的异常分类

- ValidationError: 非法输入（空 ID、取值越界），同步拒绝，不做任何部分写入
- NotFoundError: 操作未知的笔记本/用户，状态不变
- PersistenceError: 外部存储写入失败，仅告警，本地内存状态不回滚
"""


class FeedError(Exception):
    """inkfeed 所有异常的基类"""


class ValidationError(FeedError, ValueError):
    pass


class NotFoundError(FeedError, LookupError):
    pass


class PersistenceError(FeedError):
    def __init__(self, message: str, *, collection: str | None = None, doc_id: str | None = None):
        super().__init__(message)
        self.collection = collection
        self.doc_id = doc_id
