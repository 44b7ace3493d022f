"""
Redis 客户端工具模块

提供统一的 Redis 连接封装，供 RedisDocumentStore 使用。
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as redis
from loguru import logger

from inkfeed.core.config import Settings, settings as default_settings


class RedisClient:
    """Redis 异步客户端封装"""

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or default_settings
        self._client: Optional[redis.Redis] = None

    async def connect(self):
        """建立 Redis 连接"""
        cfg = self._settings
        try:
            if cfg.REDIS_UNIX_SOCKET:
                self._client = redis.Redis(
                    unix_socket_path=cfg.REDIS_UNIX_SOCKET,
                    db=cfg.REDIS_DB,
                    password=cfg.REDIS_PASSWORD,
                    decode_responses=True,  # 自动解码为字符串
                    socket_connect_timeout=5,
                    socket_keepalive=True,
                )
            else:
                self._client = redis.Redis(
                    host=cfg.REDIS_HOST,
                    port=cfg.REDIS_PORT,
                    db=cfg.REDIS_DB,
                    password=cfg.REDIS_PASSWORD,
                    decode_responses=True,  # 自动解码为字符串
                    socket_connect_timeout=5,
                    socket_keepalive=True,
                )
            # 测试连接
            await self._client.ping()
            target = (
                cfg.REDIS_UNIX_SOCKET
                if cfg.REDIS_UNIX_SOCKET
                else f"{cfg.REDIS_HOST}:{cfg.REDIS_PORT}"
            )
            logger.info(f"✅ Redis 连接成功: {target}")
        except Exception as e:
            logger.error(f"❌ Redis 连接失败: {e}")
            self._client = None

    async def close(self):
        """关闭 Redis 连接"""
        if self._client:
            await self._client.aclose()
            logger.info("Redis 连接已关闭")

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def client(self):
        """获取 Redis 客户端实例"""
        if not self._client:
            raise RuntimeError("Redis 客户端未初始化，请先调用 connect()")
        return self._client
