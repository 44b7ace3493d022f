import sys

from loguru import logger

from inkfeed.core.config import Settings, settings as default_settings


# ========================================
# Loguru 日志配置
# ========================================
def setup_logger(settings: Settings | None = None) -> None:
    """配置 loguru 日志系统（由宿主应用在启动时调用一次）"""
    cfg = settings or default_settings

    # 移除默认的 handler
    logger.remove()

    # 添加控制台输出（彩色）
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=cfg.LOG_LEVEL,
        colorize=True,
    )

    # 如果配置了日志文件，添加文件输出
    if cfg.LOG_FILE:
        logger.add(
            cfg.LOG_FILE,
            rotation="100 MB",  # 日志文件达到 100MB 时轮转
            retention="10 days",  # 保留最近 10 天的日志
            compression="zip",  # 压缩旧日志
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level=cfg.LOG_LEVEL,
        )

    logger.info("Loguru 日志系统初始化完成")
