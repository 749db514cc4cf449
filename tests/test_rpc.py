import asyncio

import pytest
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider

import core.rpc as rpc
from core.errors import AllProvidersFailedError, RpcConfigurationError
from core.rpc import FallbackProvider, build_provider, filter_working_rpc_urls, probe_rpc_urls

GOOD = "https://good.example"
WRONG = "https://wrong-chain.example"
DOWN = "https://down.example"


def _fake_chain_ids(answers, seen=None):
    async def chain_id_of(url):
        if seen is not None:
            seen.append(url)
        answer = answers[url]
        if isinstance(answer, BaseException):
            raise answer
        return answer

    return chain_id_of


def _warnings(records):
    return [r for r in records if r["level"].name == "WARNING"]


def test_all_matching_urls_returned_in_order(monkeypatch):
    urls = ["https://a.example", "https://b.example", "https://c.example"]
    monkeypatch.setattr(rpc, "_probe_chain_id", _fake_chain_ids({u: 137 for u in urls}))

    assert asyncio.run(filter_working_rpc_urls(137, urls)) == urls


def test_mismatch_is_excluded_and_warned(monkeypatch, log_records):
    urls = ["https://a.example", WRONG, "https://c.example"]
    answers = {"https://a.example": 137, WRONG: 80002, "https://c.example": 137}
    monkeypatch.setattr(rpc, "_probe_chain_id", _fake_chain_ids(answers))

    working = asyncio.run(filter_working_rpc_urls(137, urls))

    assert working == ["https://a.example", "https://c.example"]
    warnings = _warnings(log_records)
    assert len(warnings) == 1
    extra = warnings[0]["extra"]
    assert extra["url"] == WRONG
    assert extra["expected"] == 137
    assert extra["detected"] == 80002


def test_empty_candidate_list(monkeypatch):
    async def never(url):
        raise AssertionError("no endpoint may be contacted")

    monkeypatch.setattr(rpc, "_probe_chain_id", never)
    assert asyncio.run(filter_working_rpc_urls(137, [])) == []


def test_unreachable_endpoint_is_warned_not_raised(monkeypatch, log_records):
    monkeypatch.setattr(
        rpc, "_probe_chain_id", _fake_chain_ids({DOWN: ConnectionError("refused")})
    )

    assert asyncio.run(filter_working_rpc_urls(137, [DOWN])) == []
    warnings = _warnings(log_records)
    assert warnings[0]["extra"]["url"] == DOWN
    assert "refused" in warnings[0]["extra"]["error"]


def test_endpoints_checked_sequentially_in_input_order(monkeypatch):
    seen = []
    answers = {GOOD: 137, WRONG: 80002, DOWN: asyncio.TimeoutError()}
    monkeypatch.setattr(rpc, "_probe_chain_id", _fake_chain_ids(answers, seen))

    asyncio.run(filter_working_rpc_urls(137, [DOWN, WRONG, GOOD]))

    assert seen == [DOWN, WRONG, GOOD]


def test_check_results_describe_each_candidate(monkeypatch):
    answers = {GOOD: 137, WRONG: 80002, DOWN: asyncio.TimeoutError()}
    monkeypatch.setattr(rpc, "_probe_chain_id", _fake_chain_ids(answers))

    results = asyncio.run(probe_rpc_urls(137, [GOOD, WRONG, DOWN]))

    assert [r.url for r in results] == [GOOD, WRONG, DOWN]
    assert [r.ok for r in results] == [True, False, False]
    assert results[1].detected_chain_id == 80002
    assert results[2].detected_chain_id is None
    assert results[2].error


def test_build_provider_requires_endpoints():
    with pytest.raises(RpcConfigurationError, match="no endpoints provided"):
        build_provider(137, [])


def test_build_provider_single_endpoint():
    w3 = build_provider(137, [GOOD])

    assert isinstance(w3, AsyncWeb3)
    assert isinstance(w3.provider, AsyncHTTPProvider)
    assert not isinstance(w3.provider, FallbackProvider)
    assert str(w3.provider.endpoint_uri) == GOOD


def test_build_provider_multiple_endpoints_wraps_in_fallback():
    urls = ["https://u1.example", "https://u2.example"]
    w3 = build_provider(137, urls)

    assert isinstance(w3.provider, FallbackProvider)
    assert w3.provider.quorum == 1
    assert [str(p.endpoint_uri) for p in w3.provider.providers] == urls


def test_end_to_end_good_wrong_down(monkeypatch):
    answers = {GOOD: 137, WRONG: 80002, DOWN: asyncio.TimeoutError()}
    monkeypatch.setattr(rpc, "_probe_chain_id", _fake_chain_ids(answers))

    working = asyncio.run(filter_working_rpc_urls(137, [GOOD, WRONG, DOWN]))
    assert working == [GOOD]

    w3 = build_provider(137, working)
    assert isinstance(w3.provider, AsyncHTTPProvider)
    assert str(w3.provider.endpoint_uri) == GOOD


class TestFallbackProvider:
    def test_first_success_wins(self, fake_backend):
        first, second = fake_backend(result="0x1"), fake_backend(result="0x2")
        provider = FallbackProvider([first, second])

        response = asyncio.run(provider.make_request("eth_getBalance", ["0x0", "latest"]))

        assert response["result"] == "0x1"
        assert second.calls == []

    def test_falls_back_when_member_raises(self, fake_backend):
        down = fake_backend(exc=ConnectionError("down"))
        good = fake_backend(result="0x10")
        provider = FallbackProvider([down, good])

        response = asyncio.run(provider.make_request("eth_getBalance", ["0x0", "latest"]))

        assert response["result"] == "0x10"
        assert len(down.calls) == 1

    def test_fails_only_when_every_member_fails(self, fake_backend):
        provider = FallbackProvider(
            [fake_backend(exc=ConnectionError("a")), fake_backend(exc=TimeoutError("b"))]
        )

        with pytest.raises(AllProvidersFailedError) as info:
            asyncio.run(provider.make_request("eth_getBalance", ["0x0", "latest"]))
        assert len(info.value.errors) == 2

    def test_error_response_returned_when_nothing_succeeds(self, fake_backend):
        error = {"code": -32000, "message": "execution reverted"}
        provider = FallbackProvider(
            [fake_backend(error=error), fake_backend(exc=ConnectionError("down"))]
        )

        response = asyncio.run(provider.make_request("eth_call", [{}, "latest"]))

        assert response["error"] == error

    def test_success_preferred_over_error_response(self, fake_backend):
        provider = FallbackProvider(
            [fake_backend(error={"code": -32005, "message": "rate limited"}), fake_backend(result="0x5")]
        )

        response = asyncio.run(provider.make_request("eth_blockNumber", []))

        assert response["result"] == "0x5"

    def test_quorum_two_needs_agreeing_results(self, fake_backend):
        agree = FallbackProvider(
            [fake_backend(result="0x1"), fake_backend(result="0x2"), fake_backend(result="0x1")],
            quorum=2,
        )
        assert asyncio.run(agree.make_request("eth_chainId", []))["result"] == "0x1"

        disagree = FallbackProvider([fake_backend(result="0x1"), fake_backend(result="0x2")], quorum=2)
        with pytest.raises(AllProvidersFailedError):
            asyncio.run(disagree.make_request("eth_chainId", []))

    @pytest.mark.parametrize("quorum", [0, 3])
    def test_quorum_bounds(self, fake_backend, quorum):
        with pytest.raises(ValueError):
            FallbackProvider([fake_backend(result="0x1"), fake_backend(result="0x1")], quorum=quorum)

    def test_disconnect_closes_every_member(self, fake_backend):
        class FailingClose:
            async def disconnect(self):
                raise RuntimeError("already closed")

        first, last = fake_backend(result="0x1"), fake_backend(result="0x1")
        provider = FallbackProvider([first, FailingClose(), last])

        asyncio.run(provider.disconnect())

        assert first.disconnected and last.disconnected
