"""
排序引擎模块

综合分 = (互动度 + 用户相关度 + 内容质量 + 推荐分) 加权后乘以时间衰减。
"""

from inkfeed.ranking.ranker import FeedRanker, ScoreBreakdown

__all__ = ["FeedRanker", "ScoreBreakdown"]
