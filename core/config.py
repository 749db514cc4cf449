"""
core/config.py — 应用配置单例

使用 pydantic-settings 从 .env 文件中加载环境变量，并进行严格的类型校验。
通过 `get_settings()` 获取全局唯一的配置实例。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """集中化、类型安全的应用配置。"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 链 ──────────────────────────────────────────────────────
    chain_id: int = Field(default=137, gt=0)

    # ── RPC 端点（每条链的主 URL）────────────────────────────────
    ethereum_rpc_url: str = ""
    polygon_rpc_url: str = ""
    polygon_amoy_rpc_url: str = ""
    avax_rpc_url: str = ""
    avax_fuji_rpc_url: str = ""

    # ── 备用 RPC ────────────────────────────────────────────────
    ankr_rpc_url: str = ""
    ankr_api_key: str = ""
    # 例: EXTRA_RPC_URLS='{"137": ["https://my-node.example"]}'
    extra_rpc_urls: dict[int, list[str]] = Field(default_factory=dict)

    rpc_timeout_secs: float = 10.0

    # ── 代币 ────────────────────────────────────────────────────
    jpyc_address: str = ""

    # ── 数据库 ──────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./tipgas.db"

    # ── 日志 ────────────────────────────────────────────────────
    log_dir: Path = Path("./logs")
    log_level: str = "INFO"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """返回应用级别的配置单例。"""
    return AppSettings()
