"""
Tests for the signed LiblibAI client, using httpx.MockTransport as the downstream API.
"""

import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

from backend.liblib_client import LiblibAPIError, LiblibClient
from backend.model import TaskStatus
from backend.signer import compute_signature


def make_client(handler, **kwargs) -> LiblibClient:
    params = dict(
        access_key="ak",
        secret_key="sk",
        base_url="https://liblib.test",
        text2img_endpoint="/api/generate/webui/text2img/ultra",
        status_endpoint="/api/generate/webui/status",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )
    params.update(kwargs)
    return LiblibClient(**params)


def test_submit_signs_and_forwards_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["query"] = {k: v[0] for k, v in parse_qs(request.url.query.decode()).items()}
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"code": 0, "msg": "", "data": {"generateUuid": "uuid-1"}})

    client = make_client(handler)
    body = {"templateUuid": "tpl", "generateParams": {"prompt": "a cat", "imgCount": 1, "steps": 30}}

    assert asyncio.run(client.submit(body)) == "uuid-1"
    assert seen["path"] == "/api/generate/webui/text2img/ultra"
    assert seen["body"] == body

    q = seen["query"]
    assert q["AccessKey"] == "ak"
    assert q["Signature"] == compute_signature(
        "/api/generate/webui/text2img/ultra", int(q["Timestamp"]), q["SignatureNonce"], "sk"
    )


def test_fetch_status_parses_snapshot():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"generateUuid": "uuid-1"}
        return httpx.Response(
            200,
            json={
                "code": 0,
                "data": {
                    "generateUuid": "uuid-1",
                    "generateStatus": TaskStatus.REVIEWED,
                    "percentCompleted": 1,
                    "generateMsg": "",
                    "pointsCost": 10,
                    "accountBalance": 990,
                    "images": [{"imageUrl": "https://img.test/1.png", "seed": 42, "auditStatus": 3}],
                },
            },
        )

    status = asyncio.run(make_client(handler).fetch_status("uuid-1"))
    assert status.generateStatus == TaskStatus.REVIEWED
    assert status.percentCompleted == 1
    assert status.images[0].imageUrl == "https://img.test/1.png"
    assert status.images[0].seed == 42


def test_fetch_status_null_images_become_empty_list():
    def handler(request):
        return httpx.Response(200, json={"code": 0, "data": {"generateStatus": 1, "percentCompleted": 0.3, "images": None}})

    status = asyncio.run(make_client(handler).fetch_status("uuid-2"))
    assert status.generateUuid == "uuid-2"
    assert status.images == []


def test_http_error_carries_status_and_message():
    def handler(request):
        return httpx.Response(401, json={"code": 401, "msg": "invalid signature"})

    with pytest.raises(LiblibAPIError) as exc:
        asyncio.run(make_client(handler).submit({"templateUuid": "tpl"}))
    assert exc.value.status_code == 401
    assert exc.value.message == "invalid signature"


def test_nonzero_code_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"code": 100010, "msg": "insufficient points"})

    with pytest.raises(LiblibAPIError) as exc:
        asyncio.run(make_client(handler).submit({"templateUuid": "tpl"}))
    assert exc.value.status_code == 502
    assert "insufficient points" in str(exc.value)


def test_missing_generate_uuid_is_an_error():
    def handler(request):
        return httpx.Response(200, json={"code": 0, "data": {}})

    with pytest.raises(LiblibAPIError):
        asyncio.run(make_client(handler).submit({"templateUuid": "tpl"}))


def test_transport_error_has_no_status():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LiblibAPIError) as exc:
        asyncio.run(make_client(handler).fetch_status("uuid-1"))
    assert exc.value.status_code is None
    assert "connection refused" in exc.value.message


def test_empty_endpoint_fails_before_network_call():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"code": 0, "data": {"generateUuid": "x"}})

    client = make_client(handler, text2img_endpoint="")
    with pytest.raises(ValueError):
        asyncio.run(client.submit({"templateUuid": "tpl"}))
    assert calls == []


def test_empty_uuid_rejected():
    client = make_client(lambda request: httpx.Response(500))
    with pytest.raises(ValueError):
        asyncio.run(client.fetch_status(""))
