"""
core/errors.py — 领域异常

每个异常携带稳定的 `code`，HTTP 层据此映射状态码与错误体。
探测（probe）失败从不抛出异常，只会被记录并排除。
"""

from __future__ import annotations


class TipGasError(Exception):
    """所有领域异常的基类。"""

    code: str = "INTERNAL_ERROR"


class RpcConfigurationError(TipGasError):
    """构建 Provider 时没有任何端点。"""

    code = "RPC_NOT_CONFIGURED"


class RpcNotConfiguredError(RpcConfigurationError):
    """该链没有配置任何候选 RPC URL。"""

    def __init__(self, chain_id: int) -> None:
        super().__init__(f"no RPC URLs configured for chain {chain_id}")
        self.chain_id = chain_id


class NoHealthyRpcError(TipGasError):
    """候选 URL 存在，但探测后没有一个可用。"""

    code = "RPC_UNAVAILABLE"

    def __init__(self, chain_id: int, candidates: list[str]) -> None:
        super().__init__(
            f"none of {len(candidates)} RPC endpoints serve chain {chain_id}"
        )
        self.chain_id = chain_id
        self.candidates = list(candidates)


class AllProvidersFailedError(TipGasError):
    """FallbackProvider 的所有成员都请求失败。"""

    code = "INTERNAL_ERROR"

    def __init__(self, method: str, errors: list[BaseException]) -> None:
        detail = "; ".join(repr(e) for e in errors)
        super().__init__(f"all providers failed for {method}: {detail}")
        self.method = method
        self.errors = list(errors)


class InvalidAddressError(TipGasError):
    code = "INVALID_ADDRESS"


class TokenNotConfiguredError(TipGasError):
    code = "TOKEN_NOT_CONFIGURED"
