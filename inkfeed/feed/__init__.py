"""
信息流会话模块

FeedSession 负责互动记录、重排、回调通知与异步写回。
"""

from inkfeed.feed.persistence import WriteBehind
from inkfeed.feed.session import FeedSession

__all__ = ["FeedSession", "WriteBehind"]
