"""
scripts/seed_faucet.py — 写入 Faucet 配置、钱包地址与已领取记录

运行方式:
  python -m scripts.seed_faucet 0xFaucetWallet --claim 0.1 --min-jpyc 100
  python -m scripts.seed_faucet 0xFaucetWallet --chain-id 80002 --disabled
  python -m scripts.seed_faucet 0xFaucetWallet --claimed 0xUserA --claimed 0xUserB
"""

import argparse
import asyncio

from loguru import logger
from web3 import AsyncWeb3

from core.config import get_settings
from core.db import Repository, get_session, init_db, shutdown_db
from core.logging import setup_logging


async def seed(repo: Repository, chain_id: int, args: argparse.Namespace) -> str:
    """写入配置与钱包，并登记 --claimed 地址；返回校验和格式的钱包地址。"""
    address = AsyncWeb3.to_checksum_address(args.wallet)
    await repo.save_faucet_config(
        chain_id,
        enabled=not args.disabled,
        claim_amount_pol=args.claim,
        min_jpyc=args.min_jpyc,
        require_pol_zero=not args.allow_pol,
    )
    await repo.save_faucet_wallet(chain_id, address)

    for claimed in args.claimed:
        if not AsyncWeb3.is_address(claimed):
            raise SystemExit(f"invalid --claimed address: {claimed!r}")
        if await repo.has_claimed(claimed):
            logger.debug("已存在领取记录，跳过", address=claimed.lower())
            continue
        await repo.record_claim(claimed, chain_id)

    return address


async def main(args: argparse.Namespace) -> None:
    setup_logging()
    await init_db()

    chain_id = args.chain_id or get_settings().chain_id
    try:
        async with get_session() as session:
            address = await seed(Repository(session), chain_id, args)
    finally:
        await shutdown_db()

    logger.info(
        "Faucet 已写入",
        chain_id=chain_id,
        wallet=address,
        enabled=not args.disabled,
        claimed=len(args.claimed),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="写入 Faucet 配置")
    parser.add_argument("wallet")
    parser.add_argument("--chain-id", type=int, default=None)
    parser.add_argument("--claim", default="0.1", help="单次领取数量（原生代币）")
    parser.add_argument("--min-jpyc", type=int, default=0)
    parser.add_argument("--allow-pol", action="store_true", help="不要求原生余额为 0")
    parser.add_argument("--disabled", action="store_true")
    parser.add_argument(
        "--claimed",
        action="append",
        default=[],
        metavar="ADDRESS",
        help="登记为已领取的地址（可重复）",
    )
    return parser


if __name__ == "__main__":
    asyncio.run(main(build_parser().parse_args()))
