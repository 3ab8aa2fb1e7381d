"""
Tests for the httpx-backed HTTP capability.
"""
import json

import httpx
import pytest

from prompt_gateway.core.http import HttpxCapability


def capability(handler):
    return HttpxCapability(transport=httpx.MockTransport(handler))


class TestHttpxCapability:
    """Test mapping of httpx outcomes to HttpResult."""

    @pytest.mark.asyncio
    async def test_success(self):
        """Test a JSON body is decoded and headers are sent."""
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["content_type"] = request.headers["Content-Type"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"ok": True})

        http = capability(handler)
        result = await http.request(
            "https://api.example.com/v1/chat",
            method="POST",
            headers={"Authorization": "Bearer sk-test"},
            body={"model": "m"},
        )
        await http.aclose()

        assert result.success is True
        assert result.data == {"ok": True}
        assert result.status_code == 200
        assert seen == {"auth": "Bearer sk-test", "content_type": "application/json", "body": {"model": "m"}}

    @pytest.mark.asyncio
    async def test_error_status(self):
        """Test non-2xx responses keep the status and body."""
        http = capability(lambda request: httpx.Response(401, text='{"error": "invalid_api_key"}'))
        result = await http.request("https://api.example.com/v1/models")

        assert result.success is False
        assert result.status_code == 401
        assert result.error.startswith("HTTP 401: ")
        assert "invalid_api_key" in result.error

    @pytest.mark.asyncio
    async def test_empty_body(self):
        """Test an empty body is a failure even with a 2xx status."""
        http = capability(lambda request: httpx.Response(204))
        result = await http.request("https://api.example.com/v1/models")

        assert result.success is False
        assert result.status_code == 204
        assert "Empty response" in result.error

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        """Test an unparsable body is reported."""
        http = capability(lambda request: httpx.Response(200, text="<html>"))
        result = await http.request("https://api.example.com/v1/models")

        assert result.success is False
        assert result.error.startswith("Parse error")

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test httpx timeouts are flagged."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        result = await capability(handler).request("https://api.example.com/v1/models", timeout_ms=10)

        assert result.success is False
        assert result.timed_out is True
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_network_error(self):
        """Test transport failures carry no status."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        result = await capability(handler).request("https://api.example.com/v1/models")

        assert result.success is False
        assert result.timed_out is False
        assert result.status_code is None
        assert result.error.startswith("Network error")
