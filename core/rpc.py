"""
core/rpc.py — RPC 端点探测 & 回退 Provider 构建

两个无状态的一次性函数：
  1. `filter_working_rpc_urls()` 逐个探测候选 URL 的 chainId，只保留匹配的端点。
  2. `build_provider()` 基于已确认可用的 URL 构建只读 AsyncWeb3 实例；
     多个 URL 时用 `FallbackProvider`（quorum = 1）包装。

Provider 不做缓存：端点健康状况会随请求变化，由调用方决定何时重新探测。
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from loguru import logger
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider
from web3.providers.async_base import AsyncJSONBaseProvider
from web3.types import RPCEndpoint, RPCResponse

from core.config import get_settings
from core.errors import AllProvidersFailedError, RpcConfigurationError
from domain.models import ProbeResult


class ReadBackend(Protocol):
    """FallbackProvider 成员所需的最小接口。"""

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        ...

    async def disconnect(self) -> None:
        ...


def _http_provider(url: str) -> AsyncHTTPProvider:
    """单端点 Provider。

    从不使用 batch_requests，每次调用立即单独发送；关闭 web3 自带的异常重试，
    失败直接交给调用方（探测排除 / FallbackProvider 换下一个成员）。
    """
    return AsyncHTTPProvider(
        endpoint_uri=url,
        request_kwargs={"timeout": get_settings().rpc_timeout_secs},
        exception_retry_configuration=None,
    )


async def release_provider(w3: AsyncWeb3) -> None:
    """关闭 Provider 缓存的 aiohttp 会话。用完 `build_provider()` 的结果后调用。"""
    await w3.provider.disconnect()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 探测
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def _probe_chain_id(url: str) -> int:
    """用一次性的连接请求 eth_chainId，结束后释放连接。"""
    w3 = AsyncWeb3(_http_provider(url))
    try:
        return int(await w3.eth.chain_id)
    finally:
        await release_provider(w3)


async def probe_rpc_urls(chain_id: int, rpc_urls: Sequence[str]) -> list[ProbeResult]:
    """顺序探测每个候选 URL，返回与输入一一对应的探测结果。

    任何失败都只记录警告，不抛出异常，也不重试。
    """
    results: list[ProbeResult] = []
    for url in rpc_urls:
        try:
            detected = await _probe_chain_id(url)
        except Exception as exc:
            logger.warning("RPC 探测失败", url=url, error=repr(exc))
            results.append(ProbeResult(url=url, ok=False, error=repr(exc)))
            continue

        if detected != chain_id:
            logger.warning(
                "RPC chainId 不匹配",
                url=url,
                expected=chain_id,
                detected=detected,
            )
            results.append(ProbeResult(url=url, ok=False, detected_chain_id=detected))
            continue

        results.append(ProbeResult(url=url, ok=True, detected_chain_id=detected))
    return results


async def filter_working_rpc_urls(chain_id: int, rpc_urls: Sequence[str]) -> list[str]:
    """返回 chainId 与 `chain_id` 一致的 URL，保持输入顺序。"""
    results = await probe_rpc_urls(chain_id, rpc_urls)
    return [r.url for r in results if r.ok]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 回退 Provider
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class FallbackProvider(AsyncJSONBaseProvider):
    """按顺序尝试多个单端点后端，直到 `quorum` 个后端返回相同结果。

    - 后端抛出异常（网络、超时）→ 跳过，尝试下一个；
    - JSON-RPC `error` 响应是节点的确定性回答，仅当没有任何成功结果时原样返回；
    - 全部后端都抛出异常 → AllProvidersFailedError。
    """

    def __init__(self, providers: Sequence[ReadBackend], quorum: int = 1, **kwargs: Any) -> None:
        if not 1 <= quorum <= len(providers):
            raise ValueError(
                f"quorum must be between 1 and {len(providers)}, got {quorum}"
            )
        super().__init__(**kwargs)
        self.providers: tuple[ReadBackend, ...] = tuple(providers)
        self.quorum = quorum

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        errors: list[BaseException] = []
        successes: list[RPCResponse] = []
        error_response: RPCResponse | None = None

        for index, provider in enumerate(self.providers):
            try:
                response = await provider.make_request(method, params)
            except Exception as exc:
                logger.debug("回退成员请求失败", method=method, member=index, error=repr(exc))
                errors.append(exc)
                continue

            if "result" not in response:
                if error_response is None:
                    error_response = response
                continue

            successes.append(response)
            agreeing = sum(1 for r in successes if r["result"] == response["result"])
            if agreeing >= self.quorum:
                return response

        if error_response is not None and not successes:
            return error_response
        if successes:
            errors.append(ValueError(f"quorum {self.quorum} not reached"))
        raise AllProvidersFailedError(method, errors)

    async def disconnect(self) -> None:
        """依次关闭所有成员；单个成员关闭失败不影响其余成员。"""
        for index, provider in enumerate(self.providers):
            try:
                await provider.disconnect()
            except Exception as exc:
                logger.warning("回退成员关闭失败", member=index, error=repr(exc))

    def __repr__(self) -> str:
        return f"<FallbackProvider members={len(self.providers)} quorum={self.quorum}>"


def build_provider(chain_id: int, rpc_urls: Sequence[str]) -> AsyncWeb3:
    """从已确认可用的 URL 构建只读 AsyncWeb3。

    异常:
        RpcConfigurationError: `rpc_urls` 为空。
    """
    if not rpc_urls:
        raise RpcConfigurationError("no endpoints provided")

    if len(rpc_urls) == 1:
        provider: AsyncJSONBaseProvider = _http_provider(rpc_urls[0])
    else:
        provider = FallbackProvider([_http_provider(url) for url in rpc_urls], quorum=1)

    logger.debug("已构建 Provider", chain_id=chain_id, endpoints=len(rpc_urls))
    return AsyncWeb3(provider)
