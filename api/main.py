"""
api/main.py — FastAPI 应用入口

路由:
  GET /api/gas-support/faucet-balance   Faucet 钱包余额
  GET /api/gas-support/eligibility      地址领取资格
  GET /api/rpc/health                   候选 RPC 的探测结果

领域异常在这里统一映射为 `{"error": CODE}` + HTTP 状态码。

启动方式: `uvicorn api.main:app`
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger

from core.chain import get_rpc_urls
from core.config import get_settings
from core.db import Repository, get_session, init_db, shutdown_db
from core.errors import RpcNotConfiguredError, TipGasError
from core.logging import setup_logging
from core.rpc import probe_rpc_urls
from domain.models import FaucetBalance, GasEligibility, ProbeResult
from services.faucet import FaucetService

STATUS_BY_CODE: dict[str, int] = {
    "INVALID_ADDRESS": 400,
    "RPC_NOT_CONFIGURED": 500,
    "TOKEN_NOT_CONFIGURED": 500,
    "RPC_UNAVAILABLE": 503,
    "INTERNAL_ERROR": 500,
}


async def get_faucet_service() -> AsyncIterator[FaucetService]:
    """每个请求一个会话，一个服务实例。"""
    async with get_session() as session:
        yield FaucetService(Repository(session))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 路由
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

router = APIRouter(prefix="/api")


@router.get(
    "/gas-support/faucet-balance",
    response_model=FaucetBalance,
    response_model_exclude_none=True,
)
async def faucet_balance(
    chain_id: Optional[int] = Query(default=None, alias="chainId", gt=0),
    service: FaucetService = Depends(get_faucet_service),
) -> FaucetBalance:
    return await service.faucet_balance(chain_id)


@router.get(
    "/gas-support/eligibility",
    response_model=GasEligibility,
    response_model_exclude_none=True,
)
async def eligibility(
    address: str = Query(default=""),
    chain_id: Optional[int] = Query(default=None, alias="chainId", gt=0),
    service: FaucetService = Depends(get_faucet_service),
) -> GasEligibility:
    return await service.eligibility(address, chain_id)


@router.get("/rpc/health", response_model=list[ProbeResult])
async def rpc_health(
    chain_id: Optional[int] = Query(default=None, alias="chainId", gt=0),
) -> list[ProbeResult]:
    chain_id = chain_id or get_settings().chain_id
    candidates = get_rpc_urls(chain_id)
    if not candidates:
        raise RpcNotConfiguredError(chain_id)
    return await probe_rpc_urls(chain_id, candidates)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 异常映射
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

async def _handle_domain_error(request: Request, exc: TipGasError) -> JSONResponse:
    status = STATUS_BY_CODE.get(exc.code, 500)
    if status >= 500:
        logger.error("{} {} 失败: {}", request.method, request.url.path, exc)
    else:
        logger.warning("{} {} 被拒绝: {}", request.method, request.url.path, exc)
    return JSONResponse({"error": exc.code}, status_code=status)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("{} {} 未处理的异常", request.method, request.url.path)
    return JSONResponse({"error": "INTERNAL_ERROR"}, status_code=500)


@asynccontextmanager
async def _lifespan(_app: FastAPI) -> AsyncIterator[None]:
    setup_logging()
    await init_db()
    yield
    await shutdown_db()


def create_app() -> FastAPI:
    app = FastAPI(title="tipgas", lifespan=_lifespan)
    app.include_router(router)
    app.add_exception_handler(TipGasError, _handle_domain_error)
    app.add_exception_handler(Exception, _handle_unexpected)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host="127.0.0.1", port=8000)
