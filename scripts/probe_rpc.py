"""
scripts/probe_rpc.py — 命令行探测某条链的候选 RPC

不依赖 API / Streamlit，逐个探测候选 URL 并打印结果，
最后用可用端点构建 Provider 读一次最新区块号，确认整条链路可用。

运行方式:
  python -m scripts.probe_rpc            # 使用 .env 中的 CHAIN_ID
  python -m scripts.probe_rpc 80002
"""

import argparse
import asyncio

from loguru import logger

from core.chain import KNOWN_CHAINS, get_rpc_urls
from core.config import get_settings
from core.logging import setup_logging
from core.rpc import build_provider, probe_rpc_urls, release_provider


async def main(chain_id: int) -> int:
    setup_logging()
    name = KNOWN_CHAINS.get(chain_id, "未知链")

    candidates = get_rpc_urls(chain_id)
    if not candidates:
        logger.error("{} ({}) 没有配置任何 RPC URL", name, chain_id)
        return 2

    logger.info("开始探测 {} ({})，候选 {} 个", name, chain_id, len(candidates))
    results = await probe_rpc_urls(chain_id, candidates)
    for r in results:
        status = "✅" if r.ok else "❌"
        logger.info("  {} {}  chainId={}  {}", status, r.url, r.detected_chain_id, r.error or "")

    working = [r.url for r in results if r.ok]
    if not working:
        logger.error("没有可用的 RPC 端点")
        return 1

    w3 = build_provider(chain_id, working)
    try:
        block = await w3.eth.block_number
    finally:
        await release_provider(w3)
    logger.info("📦 最新区块: {}（可用端点 {} 个）", block, len(working))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="探测候选 RPC 端点")
    parser.add_argument("chain_id", nargs="?", type=int, default=None)
    args = parser.parse_args()
    raise SystemExit(asyncio.run(main(args.chain_id or get_settings().chain_id)))
