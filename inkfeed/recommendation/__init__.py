"""
推荐模块

互动日志、相似度矩阵（在线更新）与协同过滤打分。
"""

from inkfeed.recommendation.interaction_store import InteractionStore
from inkfeed.recommendation.predictor import ScorePredictor
from inkfeed.recommendation.similarity import SimilarityEngine, SimilarityMatrix, normalized_value

__all__ = [
    "InteractionStore",
    "ScorePredictor",
    "SimilarityEngine",
    "SimilarityMatrix",
    "normalized_value",
]
