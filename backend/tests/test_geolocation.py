"""Tests for IP geolocation (HTTP lookups are mocked)."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from loanflow.config import settings
from loanflow.services.geolocation import LOCAL_LABEL, approximate_location


def _mock_client(body=None, side_effect=None):
    resp = MagicMock(spec=httpx.Response)
    resp.status_code = 200
    resp.json.return_value = body or {}
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client.get = AsyncMock(return_value=resp, side_effect=side_effect)
    return mock_client


class TestLocalAddresses:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("ip", ["127.0.0.1", "10.1.2.3", "192.168.0.10", "::1", "169.254.1.1"])
    async def test_private_ranges_skip_lookup(self, ip):
        with patch.object(settings, "geolocation_enabled", True), \
             patch("loanflow.services.geolocation.httpx.AsyncClient") as client_cls:
            assert await approximate_location(ip) == LOCAL_LABEL
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_ip(self):
        assert await approximate_location(None) is None
        assert await approximate_location("") is None


class TestPublicLookup:

    @pytest.mark.asyncio
    async def test_disabled_returns_none(self):
        with patch.object(settings, "geolocation_enabled", False), \
             patch("loanflow.services.geolocation.httpx.AsyncClient") as client_cls:
            assert await approximate_location("201.1.2.3") is None
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_success(self):
        mock_client = _mock_client({
            "status": "success", "city": "Guadalajara", "regionName": "Jalisco", "country": "México",
        })
        with patch.object(settings, "geolocation_enabled", True), \
             patch("loanflow.services.geolocation.httpx.AsyncClient", return_value=mock_client):
            location = await approximate_location("201.1.2.3")

        assert location == "Guadalajara, Jalisco, México"
        url = mock_client.get.call_args.args[0]
        assert "201.1.2.3" in url
        assert mock_client.get.call_args.kwargs["timeout"] == settings.geolocation_timeout_seconds

    @pytest.mark.asyncio
    async def test_failed_status(self):
        mock_client = _mock_client({"status": "fail", "message": "reserved range"})
        with patch.object(settings, "geolocation_enabled", True), \
             patch("loanflow.services.geolocation.httpx.AsyncClient", return_value=mock_client):
            assert await approximate_location("201.1.2.3") is None

    @pytest.mark.asyncio
    async def test_network_error_never_raises(self):
        mock_client = _mock_client(side_effect=httpx.ConnectTimeout("timed out"))
        with patch.object(settings, "geolocation_enabled", True), \
             patch("loanflow.services.geolocation.httpx.AsyncClient", return_value=mock_client):
            assert await approximate_location("201.1.2.3") is None

    @pytest.mark.asyncio
    async def test_garbage_hostname_is_looked_up_and_tolerated(self):
        mock_client = _mock_client(side_effect=ValueError("bad json"))
        with patch.object(settings, "geolocation_enabled", True), \
             patch("loanflow.services.geolocation.httpx.AsyncClient", return_value=mock_client):
            assert await approximate_location("not-an-ip") is None
