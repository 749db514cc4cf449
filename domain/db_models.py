"""
domain/db_models.py — SQLAlchemy 2.0 ORM 模型

Gas 补助相关的持久化类。
使用 core.db 中的声明式基类 Base。
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FaucetConfigRecord(Base):
    """每条链一行的 Faucet 配置。"""

    __tablename__ = "faucet_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chain_id: Mapped[int] = mapped_column(Integer, unique=True, index=True, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    claim_amount_pol: Mapped[str] = mapped_column(String(32), default="0.1")
    min_jpyc: Mapped[int] = mapped_column(Integer, default=0)
    require_pol_zero: Mapped[bool] = mapped_column(Boolean, default=True)

    def __repr__(self) -> str:
        return f"<FaucetConfigRecord chain={self.chain_id} enabled={self.enabled}>"


class FaucetWalletRecord(Base):
    """Faucet 钱包（只存地址，不存私钥）。"""

    __tablename__ = "faucet_wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chain_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<FaucetWalletRecord chain={self.chain_id} {self.address[:10]}… active={self.active}>"


class GasClaimRecord(Base):
    """已领取记录，每个地址最多一条。"""

    __tablename__ = "gas_claims"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(42), unique=True, index=True, nullable=False)
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self) -> str:
        return f"<GasClaimRecord {self.address[:10]}… chain={self.chain_id}>"
