"""
core/chain.py — 按链组装候选 RPC 列表，并执行 探测 → 构建 流程

所有读链的调用方都通过 `connect()` 获取 AsyncWeb3，不做进程级缓存。
"""

from __future__ import annotations

from web3 import AsyncWeb3

from core.config import AppSettings, get_settings
from core.errors import NoHealthyRpcError, RpcNotConfiguredError
from core.rpc import build_provider, filter_working_rpc_urls

ETHEREUM = 1
POLYGON = 137
POLYGON_AMOY = 80002
AVALANCHE = 43114
AVALANCHE_FUJI = 43113

AVALANCHE_PUBLIC_RPC = "https://api.avax.network/ext/bc/C/rpc"
AVALANCHE_FUJI_PUBLIC_RPC = "https://api.avax-test.network/ext/bc/C/rpc"

# 主 URL 之后追加的公共端点（按顺序回退）
_PUBLIC_FALLBACKS: dict[int, tuple[str, ...]] = {
    POLYGON_AMOY: (
        "https://rpc-amoy.polygon.technology",
        "https://polygon-amoy-bor-rpc.publicnode.com",
    ),
}

KNOWN_CHAINS: dict[int, str] = {
    ETHEREUM: "Ethereum",
    POLYGON: "Polygon",
    POLYGON_AMOY: "Polygon Amoy",
    AVALANCHE: "Avalanche C-Chain",
    AVALANCHE_FUJI: "Avalanche Fuji",
}


def get_rpc_url(chain_id: int, settings: AppSettings | None = None) -> str | None:
    """返回该链的主 RPC URL，未知链或未配置时返回 None。"""
    s = settings or get_settings()
    if chain_id == ETHEREUM:
        return s.ethereum_rpc_url.strip() or None
    if chain_id == POLYGON:
        return s.polygon_rpc_url.strip() or None
    if chain_id == POLYGON_AMOY:
        # 未配置 Amoy 时才使用 Polygon 主 URL
        return s.polygon_amoy_rpc_url.strip() or s.polygon_rpc_url.strip() or None
    if chain_id == AVALANCHE:
        return s.avax_rpc_url.strip() or AVALANCHE_PUBLIC_RPC
    if chain_id == AVALANCHE_FUJI:
        return s.avax_fuji_rpc_url.strip() or AVALANCHE_FUJI_PUBLIC_RPC
    return None


def get_rpc_urls(chain_id: int, settings: AppSettings | None = None) -> list[str]:
    """按回退顺序返回候选 URL（去空白、去重，保留首次出现的位置）。"""
    s = settings or get_settings()
    urls: list[str] = []

    def add(url: str | None) -> None:
        if not url:
            return
        url = url.strip()
        if url and url not in urls:
            urls.append(url)

    add(get_rpc_url(chain_id, s))

    if chain_id == POLYGON:
        add("https://polygon-rpc.com")
        add(s.ankr_rpc_url)
        if s.ankr_api_key.strip():
            add(f"https://rpc.ankr.com/polygon/{s.ankr_api_key.strip()}")
        add("https://polygon-bor-rpc.publicnode.com")
    else:
        for url in _PUBLIC_FALLBACKS.get(chain_id, ()):
            add(url)

    for url in s.extra_rpc_urls.get(chain_id, []):
        add(url)

    return urls


async def connect(chain_id: int, settings: AppSettings | None = None) -> AsyncWeb3:
    """探测候选端点并构建只读 AsyncWeb3。

    异常:
        RpcNotConfiguredError: 该链没有任何候选 URL。
        NoHealthyRpcError: 所有候选都探测失败或 chainId 不匹配。
    """
    candidates = get_rpc_urls(chain_id, settings)
    if not candidates:
        raise RpcNotConfiguredError(chain_id)

    working = await filter_working_rpc_urls(chain_id, candidates)
    if not working:
        raise NoHealthyRpcError(chain_id, candidates)

    return build_provider(chain_id, working)
