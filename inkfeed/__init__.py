"""
inkfeed - 笔记本信息流排序与推荐引擎

在线协同过滤（用户/笔记本相似度矩阵）+ 互动/质量/时效启发式打分。
"""

from inkfeed.core.config import Settings, settings
from inkfeed.core.exceptions import FeedError, NotFoundError, PersistenceError, ValidationError
from inkfeed.data.models import Comment, FeedItem, Interaction, InteractionType
from inkfeed.feed.session import FeedSession
from inkfeed.ranking.ranker import FeedRanker, ScoreBreakdown
from inkfeed.recommendation.interaction_store import InteractionStore
from inkfeed.recommendation.predictor import ScorePredictor
from inkfeed.recommendation.similarity import SimilarityEngine, SimilarityMatrix

__version__ = "0.1.0"

__all__ = [
    "Comment",
    "FeedError",
    "FeedItem",
    "FeedRanker",
    "FeedSession",
    "Interaction",
    "InteractionStore",
    "InteractionType",
    "NotFoundError",
    "PersistenceError",
    "ScoreBreakdown",
    "ScorePredictor",
    "Settings",
    "SimilarityEngine",
    "SimilarityMatrix",
    "ValidationError",
    "settings",
]
