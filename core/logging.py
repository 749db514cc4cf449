"""
core/logging.py — 基于 Loguru 的结构化日志配置

  1. 彩色可读输出 → stderr，附带 extra 上下文（url / expected / detected 等）
  2. 结构化 JSON → 文件（按天轮转）
  3. 标准库 logging（web3 / aiohttp / uvicorn / sqlalchemy）→ 统一转入 Loguru

API、仪表盘和脚本在启动时各调用 `setup_logging()` 一次，重复调用会重建输出通道。
"""

from __future__ import annotations

import inspect
import logging
import sys

from loguru import logger

from core.config import get_settings

STDERR_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> — "
    "<level>{message}</level> {extra}"
)

# 第三方库的最低级别；web3 在 DEBUG 下会逐条打印请求体
LIBRARY_LEVELS: dict[str, str] = {
    "web3": "WARNING",
    "aiohttp": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
}


class InterceptHandler(logging.Handler):
    """把标准库 logging 记录转发给 Loguru，保留原始调用位置。"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 跳过 emit 本身以及 logging 模块内部的栈帧
        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(source=record.name).log(
            level, record.getMessage()
        )


def _route_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name, level in LIBRARY_LEVELS.items():
        library_logger = logging.getLogger(name)
        library_logger.handlers = []
        library_logger.propagate = True
        library_logger.setLevel(level)


def setup_logging() -> None:
    """配置 Loguru 输出通道并接管标准库 logging。"""
    settings = get_settings()
    log_dir = settings.log_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=STDERR_FORMAT,
        colorize=True,
    )

    logger.add(
        log_dir / "tipgas_{time:YYYY-MM-DD}.log",
        level="DEBUG",
        format="{message}",
        serialize=True,
        rotation="00:00",  # 午夜切分
        retention="7 days",
        compression="gz",
        enqueue=True,  # 仪表盘后台线程也会写
    )

    _route_stdlib_logging()

    logger.info("日志系统初始化完成", log_dir=str(log_dir), level=settings.log_level.upper())
