import asyncio

import pytest
from web3.providers import AsyncHTTPProvider

import core.chain as chain
from core.chain import connect, get_rpc_url, get_rpc_urls
from core.config import AppSettings
from core.errors import NoHealthyRpcError, RpcConfigurationError, RpcNotConfiguredError
from core.rpc import FallbackProvider


def _settings(**overrides):
    base = dict(
        ethereum_rpc_url="",
        polygon_rpc_url="",
        polygon_amoy_rpc_url="",
        avax_rpc_url="",
        avax_fuji_rpc_url="",
        ankr_rpc_url="",
        ankr_api_key="",
        extra_rpc_urls={},
    )
    base.update(overrides)
    return AppSettings(**base)


def test_polygon_candidates_follow_configured_order():
    settings = _settings(
        polygon_rpc_url=" https://primary.example ",
        ankr_rpc_url="https://ankr-custom.example",
        ankr_api_key="KEY",
    )

    assert get_rpc_urls(137, settings) == [
        "https://primary.example",
        "https://polygon-rpc.com",
        "https://ankr-custom.example",
        "https://rpc.ankr.com/polygon/KEY",
        "https://polygon-bor-rpc.publicnode.com",
    ]


def test_duplicates_and_blanks_are_dropped():
    settings = _settings(
        polygon_rpc_url="https://polygon-rpc.com",
        ankr_rpc_url="   ",
        extra_rpc_urls={137: ["https://polygon-rpc.com", "https://extra.example"]},
    )

    assert get_rpc_urls(137, settings) == [
        "https://polygon-rpc.com",
        "https://polygon-bor-rpc.publicnode.com",
        "https://extra.example",
    ]


def test_amoy_falls_back_to_polygon_primary():
    settings = _settings(polygon_rpc_url="https://polygon.example")

    assert get_rpc_url(80002, settings) == "https://polygon.example"
    assert get_rpc_urls(80002, settings) == [
        "https://polygon.example",
        "https://rpc-amoy.polygon.technology",
        "https://polygon-amoy-bor-rpc.publicnode.com",
    ]


def test_amoy_url_takes_precedence_over_polygon():
    settings = _settings(
        polygon_rpc_url="https://polygon.example",
        polygon_amoy_rpc_url="https://amoy.example",
    )

    urls = get_rpc_urls(80002, settings)

    assert get_rpc_url(80002, settings) == "https://amoy.example"
    assert urls[0] == "https://amoy.example"
    assert "https://polygon.example" not in urls


def test_avalanche_has_public_default():
    settings = _settings()

    assert get_rpc_urls(43114, settings) == [chain.AVALANCHE_PUBLIC_RPC]
    assert get_rpc_url(43113, _settings(avax_fuji_rpc_url="https://fuji.example")) == "https://fuji.example"


def test_unknown_or_unconfigured_chain_has_no_candidates():
    assert get_rpc_urls(1, _settings()) == []
    assert get_rpc_urls(999, _settings()) == []
    assert get_rpc_urls(999, _settings(extra_rpc_urls={999: ["https://x.example"]})) == [
        "https://x.example"
    ]


def test_connect_without_candidates_is_a_configuration_error():
    with pytest.raises(RpcNotConfiguredError) as info:
        asyncio.run(connect(1, _settings()))
    assert isinstance(info.value, RpcConfigurationError)
    assert info.value.code == "RPC_NOT_CONFIGURED"


def test_connect_without_healthy_endpoint(monkeypatch):
    async def none_working(chain_id, urls):
        return []

    monkeypatch.setattr(chain, "filter_working_rpc_urls", none_working)

    with pytest.raises(NoHealthyRpcError) as info:
        asyncio.run(connect(43114, _settings()))
    assert info.value.code == "RPC_UNAVAILABLE"
    assert info.value.candidates == [chain.AVALANCHE_PUBLIC_RPC]


def test_connect_builds_from_working_urls(monkeypatch):
    async def drop_first(chain_id, urls):
        return list(urls[1:])

    monkeypatch.setattr(chain, "filter_working_rpc_urls", drop_first)
    settings = _settings(polygon_rpc_url="https://broken.example")

    w3 = asyncio.run(connect(137, settings))

    assert isinstance(w3.provider, FallbackProvider)
    assert [str(p.endpoint_uri) for p in w3.provider.providers] == [
        "https://polygon-rpc.com",
        "https://polygon-bor-rpc.publicnode.com",
    ]


def test_connect_single_working_url(monkeypatch):
    async def only_last(chain_id, urls):
        return [urls[-1]]

    monkeypatch.setattr(chain, "filter_working_rpc_urls", only_last)

    w3 = asyncio.run(connect(80002, _settings()))

    assert isinstance(w3.provider, AsyncHTTPProvider)
    assert str(w3.provider.endpoint_uri) == "https://polygon-amoy-bor-rpc.publicnode.com"
