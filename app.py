"""
app.py — Streamlit 运维仪表盘（RPC 健康 & Faucet 余额）

异步探测在后台守护线程的独立 asyncio 事件循环中运行，
Streamlit 在主线程中通过 run_coroutine_threadsafe 等待结果并渲染。

启动方式: `streamlit run app.py`
"""

from __future__ import annotations

import asyncio
import threading

import streamlit as st
from loguru import logger

from core.chain import KNOWN_CHAINS, get_rpc_urls
from core.config import get_settings
from core.db import Repository, get_session, init_db
from core.errors import TipGasError
from core.logging import setup_logging
from core.rpc import probe_rpc_urls
from domain.models import FaucetBalance, ProbeResult
from services.faucet import FaucetService

PROBE_TIMEOUT_SECS = 60


st.set_page_config(
    page_title="tipgas — RPC 健康",
    page_icon="⛽",
    layout="wide",
)

if "event_loop" not in st.session_state:
    st.session_state.event_loop: asyncio.AbstractEventLoop | None = None
if "probe_results" not in st.session_state:
    st.session_state.probe_results: dict[int, list[ProbeResult]] = {}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 后台事件循环
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _run_event_loop(loop: asyncio.AbstractEventLoop) -> None:
    """守护线程的目标函数。"""
    asyncio.set_event_loop(loop)
    loop.run_forever()


def get_or_create_loop() -> asyncio.AbstractEventLoop:
    """返回后台事件循环，如不存在则创建。"""
    loop = st.session_state.event_loop
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        threading.Thread(target=_run_event_loop, args=(loop,), daemon=True).start()
        st.session_state.event_loop = loop
    return loop


def _run(coro):
    return asyncio.run_coroutine_threadsafe(coro, get_or_create_loop()).result(
        timeout=PROBE_TIMEOUT_SECS
    )


async def _faucet_balance(chain_id: int) -> FaucetBalance:
    async with get_session() as session:
        return await FaucetService(Repository(session)).faucet_balance(chain_id)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# UI 布局
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def render_sidebar() -> int:
    """侧边栏：选择链并触发探测。返回选中的 chain id。"""
    settings = get_settings()
    chain_ids = list(KNOWN_CHAINS)
    default = chain_ids.index(settings.chain_id) if settings.chain_id in chain_ids else 0

    st.sidebar.title("⚙️ 控制面板")
    chain_id = st.sidebar.selectbox(
        "链",
        chain_ids,
        index=default,
        format_func=lambda c: f"{KNOWN_CHAINS[c]} ({c})",
    )

    if st.sidebar.button("🔬 探测 RPC", use_container_width=True):
        candidates = get_rpc_urls(chain_id)
        with st.sidebar.status("探测中…"):
            st.session_state.probe_results[chain_id] = _run(
                probe_rpc_urls(chain_id, candidates)
            )
    return chain_id


def render_main(chain_id: int) -> None:
    st.title(f"⛽ {KNOWN_CHAINS[chain_id]} ({chain_id})")

    candidates = get_rpc_urls(chain_id)
    if not candidates:
        st.error("该链没有配置任何 RPC URL。")
        return

    results = st.session_state.probe_results.get(chain_id)
    if results is None:
        st.info("尚未探测。候选 RPC：")
        for url in candidates:
            st.text(url)
    else:
        working = sum(1 for r in results if r.ok)
        c1, c2 = st.columns(2)
        c1.metric("候选", len(results))
        c2.metric("可用", working)
        st.dataframe(
            [
                {
                    "状态": "🟢" if r.ok else "🔴",
                    "URL": r.url,
                    "chainId": r.detected_chain_id,
                    "错误": r.error or "",
                }
                for r in results
            ],
            use_container_width=True,
        )

    st.markdown("---")
    st.subheader("💧 Faucet")
    try:
        balance = _run(_faucet_balance(chain_id))
    except TipGasError as exc:
        st.error(f"{exc.code}: {exc}")
        return
    except TimeoutError:
        st.error("读取 Faucet 余额超时")
        return

    if not balance.enabled:
        st.warning("Faucet 未启用或未配置钱包。")
        return
    st.text(f"地址:     {balance.faucet_address}")
    st.text(f"余额:     {balance.faucet_balance_pol}")
    st.text(f"单次领取: {balance.claim_amount_pol}")


def main() -> None:
    setup_logging()
    _run(init_db())
    chain_id = render_sidebar()
    render_main(chain_id)
    logger.debug("仪表盘已渲染", chain_id=chain_id)


# Streamlit 在每次交互时会重新执行脚本。
main()
