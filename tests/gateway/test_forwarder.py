"""Tests for HttpForwarder against an in-memory httpx transport."""

from __future__ import annotations

import json

import httpx
import pytest

from ragchat.gateway.forwarder import HttpForwarder
from ragchat.gateway.pipeline import GatewayRequest


def _forwarder(handler) -> HttpForwarder:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://storage:8081"
    )
    return HttpForwarder(client)


class TestHttpForwarder:
    @pytest.mark.asyncio
    async def test_forwards_method_path_query_body_and_headers(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"ok": True})

        response = await _forwarder(handler)(
            GatewayRequest(
                method="POST",
                path="/api/v1/sessions/s1/messages",
                headers={
                    "content-type": "application/json",
                    "X-INTERNAL-KEY": "k",
                    "host": "gateway.example",
                    "connection": "keep-alive",
                },
                query_string="page=1&size=5",
                body=b'{"sender":"u"}',
            )
        )

        assert response.status_code == 201
        assert json.loads(response.body) == {"ok": True}
        upstream = seen[0]
        assert upstream.method == "POST"
        assert upstream.url.path == "/api/v1/sessions/s1/messages"
        assert upstream.url.params["page"] == "1"
        assert upstream.url.params["size"] == "5"
        assert upstream.url.host == "storage"
        assert upstream.headers["x-internal-key"] == "k"
        assert upstream.content == b'{"sender":"u"}'
        assert upstream.headers.get("connection") != "keep-alive"

    @pytest.mark.asyncio
    async def test_transport_error_becomes_bad_gateway(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        response = await _forwarder(handler)(GatewayRequest(method="GET", path="/x"))

        assert response.status_code == 502
        assert json.loads(response.body)["error"] == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_downstream_status_is_passed_through(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"status": 404})

        response = await _forwarder(handler)(GatewayRequest(method="GET", path="/x"))
        assert response.status_code == 404
