# 读取 .env 配置
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None

    # Redis（文档存储）
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_UNIX_SOCKET: Optional[str] = None
    FEED_KEY_PREFIX: str = "inkfeed:"

    # 协同过滤
    SIMILARITY_THRESHOLD: float = Field(0.3, ge=0.0, le=1.0)
    USER_BASED_WEIGHT: float = Field(0.6, ge=0.0)
    ITEM_BASED_WEIGHT: float = Field(0.4, ge=0.0)
    MAX_INTERACTION_AGE_DAYS: float = Field(30.0, gt=0.0)

    # 互动类型基础分值
    INTERACTION_VALUE_VIEW: float = Field(0.3, ge=0.0, le=1.0)
    INTERACTION_VALUE_LIKE: float = Field(0.8, ge=0.0, le=1.0)
    INTERACTION_VALUE_COMMENT: float = Field(1.0, ge=0.0, le=1.0)
    INTERACTION_VALUE_SAVE: float = Field(0.9, ge=0.0, le=1.0)
    INTERACTION_VALUE_SHARE: float = Field(0.7, ge=0.0, le=1.0)
    INTERACTION_VALUE_DEFAULT: float = Field(0.1, ge=0.0, le=1.0)
    TIME_SPENT_CAP_SECONDS: float = Field(300.0, gt=0.0)

    # 互动度
    ENGAGEMENT_VIEW_WEIGHT: float = Field(1.0, ge=0.0)
    ENGAGEMENT_LIKE_WEIGHT: float = Field(2.0, ge=0.0)
    ENGAGEMENT_COMMENT_WEIGHT: float = Field(3.0, ge=0.0)
    ENGAGEMENT_TIME_SPENT_WEIGHT: float = Field(0.001, ge=0.0)
    ENGAGEMENT_NORMALIZER: float = Field(100.0, gt=0.0)

    # 综合分权重
    COMPOSITE_ENGAGEMENT_WEIGHT: float = Field(0.3, ge=0.0)
    COMPOSITE_RELEVANCE_WEIGHT: float = Field(0.2, ge=0.0)
    COMPOSITE_QUALITY_WEIGHT: float = Field(0.2, ge=0.0)
    COMPOSITE_RECOMMENDATION_WEIGHT: float = Field(0.3, ge=0.0)
    DEFAULT_RECOMMENDATION_SCORE: float = Field(0.5, ge=0.0, le=1.0)

    # 用户相关度（近期互动加成）
    RELEVANCE_WINDOW_HOURS: float = Field(24.0, gt=0.0)
    RELEVANCE_STEP: float = Field(0.1, ge=0.0)

    # 内容质量
    QUALITY_PAGE_WEIGHT: float = Field(0.4, ge=0.0)
    QUALITY_DESCRIPTION_WEIGHT: float = Field(0.3, ge=0.0)
    QUALITY_CONTENT_WEIGHT: float = Field(0.3, ge=0.0)
    QUALITY_PAGE_TARGET: float = Field(10.0, gt=0.0)
    QUALITY_DESCRIPTION_TARGET: float = Field(20.0, gt=0.0)
    QUALITY_CONTENT_TARGET: float = Field(500.0, gt=0.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore" # 忽略多余的环境变量
    )

    def interaction_value(self, interaction_type) -> float:
        """互动类型 -> 基础分值，未知类型使用 INTERACTION_VALUE_DEFAULT"""
        name = getattr(interaction_type, "value", interaction_type)
        values = {
            "view": self.INTERACTION_VALUE_VIEW,
            "like": self.INTERACTION_VALUE_LIKE,
            "comment": self.INTERACTION_VALUE_COMMENT,
            "save": self.INTERACTION_VALUE_SAVE,
            "share": self.INTERACTION_VALUE_SHARE,
        }
        return values.get(name, self.INTERACTION_VALUE_DEFAULT)

settings = Settings()
