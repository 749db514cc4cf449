"""
core/db.py — 异步 SQLAlchemy 2.0 数据库引擎 & 会话工厂

提供连接池、异步会话工厂、用于依赖注入的上下文管理器，
以及 Gas 补助数据的 Repository。
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from core.config import get_settings

if TYPE_CHECKING:
    from domain.db_models import FaucetConfigRecord, FaucetWalletRecord


class Base(DeclarativeBase):
    """所有 ORM 模型的声明式基类。"""
    pass


class Repository:
    """Faucet 配置、钱包与领取记录的读写。"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_faucet_config(self, chain_id: int) -> FaucetConfigRecord | None:
        from domain.db_models import FaucetConfigRecord

        stmt = select(FaucetConfigRecord).where(FaucetConfigRecord.chain_id == chain_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_faucet_wallet(self, chain_id: int) -> FaucetWalletRecord | None:
        """返回该链最近更新的启用中钱包。"""
        from domain.db_models import FaucetWalletRecord

        stmt = (
            select(FaucetWalletRecord)
            .where(FaucetWalletRecord.chain_id == chain_id, FaucetWalletRecord.active.is_(True))
            .order_by(FaucetWalletRecord.updated_at.desc(), FaucetWalletRecord.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def has_claimed(self, address: str) -> bool:
        from domain.db_models import GasClaimRecord

        stmt = select(GasClaimRecord.id).where(GasClaimRecord.address == address.lower())
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def save_faucet_config(
        self,
        chain_id: int,
        *,
        enabled: bool,
        claim_amount_pol: str,
        min_jpyc: int = 0,
        require_pol_zero: bool = True,
    ) -> FaucetConfigRecord:
        from domain.db_models import FaucetConfigRecord

        record = await self.get_faucet_config(chain_id)
        if record:
            record.enabled = enabled
            record.claim_amount_pol = claim_amount_pol
            record.min_jpyc = min_jpyc
            record.require_pol_zero = require_pol_zero
        else:
            record = FaucetConfigRecord(
                chain_id=chain_id,
                enabled=enabled,
                claim_amount_pol=claim_amount_pol,
                min_jpyc=min_jpyc,
                require_pol_zero=require_pol_zero,
            )
            self.session.add(record)
        await self.session.flush()
        return record

    async def save_faucet_wallet(
        self, chain_id: int, address: str, active: bool = True
    ) -> FaucetWalletRecord:
        from domain.db_models import FaucetWalletRecord

        record = FaucetWalletRecord(chain_id=chain_id, address=address, active=active)
        self.session.add(record)
        await self.session.flush()
        return record

    async def record_claim(self, address: str, chain_id: int) -> None:
        from domain.db_models import GasClaimRecord

        self.session.add(GasClaimRecord(address=address.lower(), chain_id=chain_id))
        await self.session.flush()


def _build_engine():
    """根据当前配置构建异步引擎。"""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=False,
        pool_pre_ping=True,
    )


# 模块级别的单例（延迟连接）。
_engine = _build_engine()
_session_factory = async_sessionmaker(
    bind=_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """生成一个异步会话并保证资源清理。

    用法::

        async with get_session() as session:
            repo = Repository(session)
    """
    session = _session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """创建所有 ORM 模型定义的数据表。

    在应用启动时调用一次。
    """
    import domain.db_models  # noqa: F401  注册表到 Base.metadata

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def shutdown_db() -> None:
    """优雅地释放引擎连接池。"""
    await _engine.dispose()
