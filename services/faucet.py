"""
services/faucet.py — Gas 补助（Faucet）只读服务

  - faucet_balance(): 读取当前启用的 Faucet 钱包余额。
  - eligibility(): 判断某地址能否领取 gas 补助（原生余额、JPYC 余额、领取记录、Faucet 余额）。

读链通过注入的 `connect`（默认 core.chain.connect：探测 → 构建）完成，每次调用都重新获取。
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from decimal import Decimal, localcontext

from loguru import logger
from web3 import AsyncWeb3

from core import chain
from core.config import AppSettings, get_settings
from core.db import Repository
from core.errors import InvalidAddressError, TokenNotConfiguredError
from core.rpc import release_provider
from domain.models import EligibilityReason, FaucetBalance, GasEligibility

ERC20_ABI_MINIMAL = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "payable": False,
        "stateMutability": "view",
        "type": "function",
    },
]

NATIVE_DECIMALS = 18

Connector = Callable[[int], Awaitable[AsyncWeb3]]


def format_units(raw: int, decimals: int) -> str:
    """整数最小单位 → 十进制字符串，至少保留一位小数（如 "0.0"、"1.5"）。"""
    with localcontext() as ctx:
        ctx.prec = 100
        text = format(Decimal(raw).scaleb(-decimals).normalize(), "f")
    return text if "." in text else f"{text}.0"


def parse_units(amount: str, decimals: int) -> int:
    """十进制字符串 → 整数最小单位。"""
    with localcontext() as ctx:
        ctx.prec = 100
        return int(Decimal(amount.strip()).scaleb(decimals))


class FaucetService:
    def __init__(
        self,
        repository: Repository,
        connect: Connector = chain.connect,
        settings: AppSettings | None = None,
    ) -> None:
        self._repo = repository
        self._connect = connect
        self._settings = settings or get_settings()

    async def faucet_balance(self, chain_id: int | None = None) -> FaucetBalance:
        """未配置或没有启用中的钱包时返回 enabled=False，且不访问链。"""
        chain_id = chain_id or self._settings.chain_id

        config = await self._repo.get_faucet_config(chain_id)
        wallet = await self._repo.get_active_faucet_wallet(chain_id)
        if not config or not wallet:
            return FaucetBalance(chain_id=chain_id, enabled=False)

        w3 = await self._connect(chain_id)
        try:
            balance_wei = await w3.eth.get_balance(AsyncWeb3.to_checksum_address(wallet.address))
        finally:
            await release_provider(w3)
        logger.info("Faucet 余额", chain_id=chain_id, address=wallet.address, wei=balance_wei)

        return FaucetBalance(
            chain_id=chain_id,
            enabled=config.enabled,
            faucet_address=wallet.address,
            faucet_balance_pol=format_units(balance_wei, NATIVE_DECIMALS),
            claim_amount_pol=config.claim_amount_pol,
        )

    async def eligibility(self, address: str, chain_id: int | None = None) -> GasEligibility:
        """检查地址的领取资格。

        异常:
            InvalidAddressError: 地址格式非法。
            TokenNotConfiguredError: 未配置 JPYC 合约地址。
        """
        address = (address or "").strip()
        if not AsyncWeb3.is_address(address):
            raise InvalidAddressError(f"invalid address: {address!r}")
        chain_id = chain_id or self._settings.chain_id

        config = await self._repo.get_faucet_config(chain_id)
        if not config or not config.enabled:
            return GasEligibility(
                chain_id=chain_id,
                address=address,
                eligible=False,
                reasons=[EligibilityReason.FAUCET_DISABLED],
            )

        wallet = await self._repo.get_active_faucet_wallet(chain_id)
        if not wallet:
            return GasEligibility(
                chain_id=chain_id,
                address=address,
                eligible=False,
                reasons=[EligibilityReason.FAUCET_WALLET_NOT_CONFIGURED],
            )

        jpyc_address = self._settings.jpyc_address.strip()
        if not jpyc_address:
            raise TokenNotConfiguredError("JPYC_ADDRESS is not set")

        holder = AsyncWeb3.to_checksum_address(address)
        w3 = await self._connect(chain_id)
        try:
            jpyc = w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(jpyc_address),
                abi=ERC20_ABI_MINIMAL,
            )
            pol_wei, decimals, jpyc_raw, faucet_wei = await asyncio.gather(
                w3.eth.get_balance(holder),
                jpyc.functions.decimals().call(),
                jpyc.functions.balanceOf(holder).call(),
                w3.eth.get_balance(AsyncWeb3.to_checksum_address(wallet.address)),
            )
        finally:
            await release_provider(w3)
        already_claimed = await self._repo.has_claimed(address)

        reasons: list[EligibilityReason] = []
        if jpyc_raw < config.min_jpyc * 10**decimals:
            reasons.append(EligibilityReason.JPYC_BALANCE_LT_MIN)
        if config.require_pol_zero and pol_wei != 0:
            reasons.append(EligibilityReason.POL_BALANCE_NOT_ZERO)
        if already_claimed:
            reasons.append(EligibilityReason.ALREADY_CLAIMED)
        if faucet_wei < parse_units(config.claim_amount_pol, NATIVE_DECIMALS):
            reasons.append(EligibilityReason.FAUCET_INSUFFICIENT)

        logger.info(
            "Gas 补助资格检查",
            chain_id=chain_id,
            address=address.lower(),
            reasons=[r.value for r in reasons],
        )

        return GasEligibility(
            chain_id=chain_id,
            address=address,
            eligible=not reasons,
            reasons=reasons,
            min_jpyc=config.min_jpyc,
            jpyc_balance=format_units(jpyc_raw, decimals),
            pol_balance=format_units(pol_wei, NATIVE_DECIMALS),
            claimable_amount_pol=config.claim_amount_pol,
            faucet_address=wallet.address,
            faucet_balance_pol=format_units(faucet_wei, NATIVE_DECIMALS),
        )
