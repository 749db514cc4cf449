"""
domain/models.py — Pydantic V2 领域模型

严格、不可变的数据契约，用于 API 边界与仪表盘展示。
它们不是 ORM 模型（ORM 模型见 db_models.py）。
对外 JSON 使用 camelCase 字段名。
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RPC 探测结果
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class ProbeResult(_ApiModel):
    """单个候选 RPC URL 的探测结果。"""

    url: str
    ok: bool
    detected_chain_id: Optional[int] = None
    error: Optional[str] = None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Gas 补助（Faucet）
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class EligibilityReason(str, Enum):
    """不满足领取条件的原因。"""

    FAUCET_DISABLED = "FAUCET_DISABLED"
    FAUCET_WALLET_NOT_CONFIGURED = "FAUCET_WALLET_NOT_CONFIGURED"
    JPYC_BALANCE_LT_MIN = "JPYC_BALANCE_LT_MIN"
    POL_BALANCE_NOT_ZERO = "POL_BALANCE_NOT_ZERO"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    FAUCET_INSUFFICIENT = "FAUCET_INSUFFICIENT"


class FaucetBalance(_ApiModel):
    """Faucet 钱包余额。未启用或未配置钱包时只有 chain_id / enabled。"""

    chain_id: int
    enabled: bool
    faucet_address: Optional[str] = None
    faucet_balance_pol: Optional[str] = Field(default=None, description="原生代币，ether 单位")
    claim_amount_pol: Optional[str] = None


class GasEligibility(_ApiModel):
    """某地址能否领取 gas 补助。"""

    chain_id: int
    address: str
    eligible: bool
    reasons: list[EligibilityReason] = Field(default_factory=list)
    min_jpyc: Optional[int] = None
    jpyc_balance: Optional[str] = None
    pol_balance: Optional[str] = None
    claimable_amount_pol: Optional[str] = None
    faucet_address: Optional[str] = None
    faucet_balance_pol: Optional[str] = None

    @field_validator("address", mode="before")
    @classmethod
    def normalise_address(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v
