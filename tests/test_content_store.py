"""Tests for the IPFS content store with a mocked transport."""

import httpx
import pytest

from heo.core.errors import UpstreamServiceError
from heo.services.content_store import ContentStore, is_placeholder_cid, placeholder_cid

API = "http://ipfs.test/api/v0"
GATEWAY = "https://gateway.test/ipfs"


def make_store(handler, is_production=False) -> ContentStore:
    return ContentStore(
        API, GATEWAY, is_production=is_production, transport=httpx.MockTransport(handler)
    )


def unavailable(request):
    raise httpx.ConnectError("connection refused", request=request)


@pytest.mark.asyncio
async def test_store_returns_hash():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["body"] = request.content
        return httpx.Response(200, json={"Name": "provenance.ttl", "Hash": "bafyabc", "Size": "42"})

    cid = await make_store(handler).store("<urn:uuid:1> a <urn:x> .")

    assert cid == "bafyabc"
    assert seen["url"].path == "/api/v0/add"
    assert seen["url"].params["pin"] == "true"
    assert b"<urn:uuid:1> a <urn:x> ." in seen["body"]


@pytest.mark.asyncio
async def test_unavailable_node_outside_production_returns_placeholder():
    cid = await make_store(unavailable).store("graph data")

    assert is_placeholder_cid(cid)
    assert cid == placeholder_cid(b"graph data")


@pytest.mark.asyncio
async def test_unavailable_node_in_production_raises():
    with pytest.raises(UpstreamServiceError) as exc_info:
        await make_store(unavailable, is_production=True).store("graph data")
    assert exc_info.value.service == "content_store"


@pytest.mark.asyncio
async def test_http_error_in_production_carries_status():
    store = make_store(lambda request: httpx.Response(500, text="boom"), is_production=True)

    with pytest.raises(UpstreamServiceError) as exc_info:
        await store.store("graph data")
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_missing_hash_in_production_raises():
    store = make_store(lambda request: httpx.Response(200, json={}), is_production=True)

    with pytest.raises(UpstreamServiceError, match="no hash"):
        await store.store("graph data")


@pytest.mark.asyncio
async def test_retrieve():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v0/cat"
        assert request.url.params["arg"] == "bafyabc"
        return httpx.Response(200, content=b"stored graph")

    assert await make_store(handler).retrieve("bafyabc") == b"stored graph"


@pytest.mark.asyncio
async def test_retrieve_placeholder_raises():
    store = make_store(lambda request: httpx.Response(200))

    with pytest.raises(UpstreamServiceError, match="placeholder"):
        await store.retrieve(placeholder_cid(b"x"))


@pytest.mark.asyncio
async def test_retrieve_missing_raises():
    store = make_store(lambda request: httpx.Response(404))

    with pytest.raises(UpstreamServiceError) as exc_info:
        await store.retrieve("bafymissing")
    assert exc_info.value.status_code == 404


def test_placeholder_cid_is_deterministic():
    assert placeholder_cid(b"abc") == placeholder_cid(b"abc")
    assert placeholder_cid(b"abc") != placeholder_cid(b"abd")
    assert len(placeholder_cid(b"abc")) == len("placeholder-") + 32
    assert not is_placeholder_cid("bafyabc")


def test_gateway_url_normalizes_trailing_slash():
    assert ContentStore(API, GATEWAY).gateway_url("bafyabc") == "https://gateway.test/ipfs/bafyabc"
    assert ContentStore(API, GATEWAY + "/").gateway_url("bafyabc") == "https://gateway.test/ipfs/bafyabc"
