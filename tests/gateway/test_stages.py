"""Tests for the four gateway stages and their default ordering."""

from __future__ import annotations

import logging
import uuid

import pytest

from ragchat.core.security import (
    API_KEY_HEADER,
    CORRELATION_ID_HEADER,
    INTERNAL_KEY_HEADER,
    Credentials,
    canonical_path,
)
from ragchat.gateway.pipeline import GatewayRequest, GatewayResponse, RequestPipeline
from ragchat.gateway.stages import (
    ApiKeyStage,
    CorrelationStage,
    InternalKeyStage,
    LoggingStage,
    default_stages,
)

GATEWAY_KEY = "external-secret"
INTERNAL_KEY = "internal-secret"

PROTECTED_PATHS = ["/api/v1/sessions", "/api/v1/sessions/abc/messages", "/", "/api/docs"]
PUBLIC_PATHS = ["/health", "/docs", "/openapi.json", "/actuator/health", "/swagger-ui/index.html"]


def _credentials(gateway_key: str = GATEWAY_KEY) -> Credentials:
    return Credentials(gateway_api_key=gateway_key, internal_service_key=INTERNAL_KEY)


def _request(path: str = "/api/v1/sessions", headers: dict | None = None) -> GatewayRequest:
    return GatewayRequest(method="GET", path=path, headers=headers or {})


class _Downstream:
    def __init__(self, status_code: int = 200):
        self.calls: list[GatewayRequest] = []
        self._status = status_code

    async def __call__(self, request: GatewayRequest) -> GatewayResponse:
        self.calls.append(request)
        return GatewayResponse(status_code=self._status)


# =========================================================================
# Correlation stage
# =========================================================================


class TestCorrelationStage:
    @pytest.mark.asyncio
    async def test_generates_uuid4_when_missing(self):
        request = _request()
        assert await CorrelationStage().process(request) is None
        value = request.headers[CORRELATION_ID_HEADER]
        assert uuid.UUID(value).version == 4

    @pytest.mark.asyncio
    async def test_generated_ids_are_unique(self):
        stage = CorrelationStage()
        seen = set()
        for _ in range(200):
            request = _request()
            await stage.process(request)
            seen.add(request.headers[CORRELATION_ID_HEADER])
        assert len(seen) == 200

    @pytest.mark.asyncio
    async def test_passes_existing_id_through(self):
        request = _request(headers={CORRELATION_ID_HEADER: "client-trace-42"})
        await CorrelationStage().process(request)
        assert request.headers.get_list(CORRELATION_ID_HEADER) == ["client-trace-42"]


# =========================================================================
# External-key validation stage
# =========================================================================


class TestApiKeyStage:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PROTECTED_PATHS)
    async def test_missing_key_is_unauthorized(self, path):
        response = await ApiKeyStage(_credentials()).process(_request(path))
        assert response is not None
        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("supplied", ["wrong", "", GATEWAY_KEY + " ", GATEWAY_KEY.upper()])
    async def test_mismatched_key_is_unauthorized(self, supplied):
        request = _request(headers={API_KEY_HEADER: supplied})
        response = await ApiKeyStage(_credentials()).process(request)
        assert response is not None and response.status_code == 401

    @pytest.mark.asyncio
    async def test_matching_key_passes(self):
        request = _request(headers={API_KEY_HEADER: GATEWAY_KEY})
        assert await ApiKeyStage(_credentials()).process(request) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PUBLIC_PATHS)
    async def test_public_paths_bypass(self, path):
        assert await ApiKeyStage(_credentials()).process(_request(path)) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("unset", ["", "   "])
    async def test_no_configured_key_is_a_no_op(self, unset):
        stage = ApiKeyStage(_credentials(gateway_key=unset))
        assert await stage.process(_request()) is None

    @pytest.mark.asyncio
    async def test_denial_body_is_terse(self):
        response = await ApiKeyStage(_credentials()).process(_request())
        assert GATEWAY_KEY.encode() not in response.body
        assert b"Unauthorized" in response.body


# =========================================================================
# Internal-key injection stage
# =========================================================================


class TestInternalKeyStage:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", PROTECTED_PATHS + PUBLIC_PATHS)
    async def test_injects_on_every_path(self, path):
        request = _request(path)
        assert await InternalKeyStage(_credentials()).process(request) is None
        assert request.headers[INTERNAL_KEY_HEADER] == INTERNAL_KEY

    @pytest.mark.asyncio
    async def test_overwrites_client_supplied_value(self):
        request = _request(headers={INTERNAL_KEY_HEADER: "forged"})
        await InternalKeyStage(_credentials()).process(request)
        assert request.headers.get_list(INTERNAL_KEY_HEADER) == [INTERNAL_KEY]


# =========================================================================
# Logging stage
# =========================================================================


class TestLoggingStage:
    @pytest.mark.asyncio
    async def test_logs_method_path_status(self, caplog):
        downstream = _Downstream(status_code=204)
        with caplog.at_level(logging.INFO, logger="ragchat.gateway.stages"):
            response = await LoggingStage().around_forward(
                _request("/api/v1/sessions/x"), downstream
            )
        assert response.status_code == 204
        assert "GET /api/v1/sessions/x -> 204" in caplog.text

    @pytest.mark.asyncio
    async def test_does_not_alter_request(self):
        request = _request(headers={"a": "1"})
        await LoggingStage().process(request)
        assert dict(request.headers) == {"a": "1"}


# =========================================================================
# Full default chain
# =========================================================================


class TestDefaultChain:
    def test_order(self):
        names = [s.name for s in default_stages(_credentials())]
        assert names == ["correlation", "api_key", "internal_key", "logging"]

    @pytest.mark.asyncio
    async def test_rejected_request_never_reaches_downstream(self):
        downstream = _Downstream()
        pipeline = RequestPipeline(default_stages(_credentials()), downstream)
        request = _request(headers={API_KEY_HEADER: "nope"})

        response = await pipeline.handle(request)

        assert response.status_code == 401
        assert downstream.calls == []
        # The correlation stage ran first, internal-key injection did not.
        assert CORRELATION_ID_HEADER in request.headers
        assert INTERNAL_KEY_HEADER not in request.headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [{API_KEY_HEADER: GATEWAY_KEY}, {API_KEY_HEADER: GATEWAY_KEY, "x-extra": "1"}],
    )
    async def test_accepted_request_carries_internal_key(self, headers):
        downstream = _Downstream()
        pipeline = RequestPipeline(default_stages(_credentials()), downstream)

        await pipeline.handle(_request(headers=headers))

        forwarded = downstream.calls[0]
        assert forwarded.headers[INTERNAL_KEY_HEADER] == INTERNAL_KEY
        assert CORRELATION_ID_HEADER in forwarded.headers

    @pytest.mark.asyncio
    async def test_open_gateway_forwards_without_external_key(self):
        downstream = _Downstream()
        pipeline = RequestPipeline(default_stages(_credentials(gateway_key="")), downstream)

        await pipeline.handle(_request())

        assert downstream.calls[0].headers[INTERNAL_KEY_HEADER] == INTERNAL_KEY

    @pytest.mark.asyncio
    async def test_public_path_still_gets_internal_key(self):
        downstream = _Downstream()
        pipeline = RequestPipeline(default_stages(_credentials()), downstream)

        await pipeline.handle(_request("/docs"))

        assert downstream.calls[0].headers[INTERNAL_KEY_HEADER] == INTERNAL_KEY


# =========================================================================
# Path canonicalisation and allow-list boundaries
# =========================================================================

TRAVERSAL_PATHS = [
    "/health/../api/v1/sessions/all",
    "/docs/./../api/v1/sessions",
    "/docs/%2e%2e/api/v1/sessions",
    "/health/..%2Fapi/v1/sessions/all",
    "/docs/%252e%252e/api/v1/sessions",
    "/health\\..\\api/v1/sessions",
]

LOOKALIKE_PATHS = [
    "/healthcheck-admin",
    "/docsanything",
    "/openapi.json.bak",
    "/metricsx",
    "/swagger-uix/index.html",
]


class TestCanonicalPath:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("/api/v1/sessions", "/api/v1/sessions"),
            ("/health/../api/v1/sessions/all", "/api/v1/sessions/all"),
            ("/a/./b//c/", "/a/b/c/"),
            ("/../../etc", "/etc"),
            ("/docs/%2E%2E/x", "/x"),
            ("/a%2Fb", "/a/b"),
            ("", "/"),
            ("/", "/"),
        ],
    )
    def test_resolves(self, raw, expected):
        assert canonical_path(raw) == expected

    def test_request_path_is_canonical(self):
        assert _request("/health/../api/v1/sessions").path == "/api/v1/sessions"


class TestAllowListBypass:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", TRAVERSAL_PATHS)
    async def test_dot_segments_cannot_reach_protected_paths(self, path):
        downstream = _Downstream()
        pipeline = RequestPipeline(default_stages(_credentials()), downstream)

        response = await pipeline.handle(_request(path))

        assert response.status_code == 401
        assert downstream.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", LOOKALIKE_PATHS)
    async def test_prefix_lookalikes_are_protected(self, path):
        assert _credentials().is_public_path(path) is False
        response = await ApiKeyStage(_credentials()).process(_request(path))
        assert response is not None
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_forwarded_path_is_the_checked_path(self):
        downstream = _Downstream()
        pipeline = RequestPipeline(default_stages(_credentials()), downstream)

        await pipeline.handle(
            _request("/api/v1/./sessions//all", headers={API_KEY_HEADER: GATEWAY_KEY})
        )

        assert downstream.calls[0].path == "/api/v1/sessions/all"


# =========================================================================
# Logging on downstream failure
# =========================================================================


class TestLoggingStageFailure:
    @pytest.mark.asyncio
    async def test_logs_when_forward_raises(self, caplog):
        async def broken(request: GatewayRequest) -> GatewayResponse:
            raise RuntimeError("downstream exploded")

        with caplog.at_level(logging.INFO, logger="ragchat.gateway.stages"):
            with pytest.raises(RuntimeError):
                await LoggingStage().around_forward(_request("/api/v1/sessions"), broken)

        records = [r for r in caplog.records if r.name == "ragchat.gateway.stages"]
        assert len(records) == 1
        assert records[0].levelno == logging.ERROR
        assert "GET /api/v1/sessions -> failed" in records[0].getMessage()
