"""Tests for authentication module."""

import json
from unittest.mock import MagicMock

from starlette.responses import JSONResponse

from restroom.lib.config import Settings, get_settings
from restroom.lib.config.testing import set_settings
from restroom.server.auth import (
    API_KEY_HEADER,
    is_valid_api_key,
    require_api_key,
)


class TestIsValidApiKey:
    """Tests for API key comparison."""

    def test_matching_key(self):
        assert is_valid_api_key("k2", frozenset({"k1", "k2"})) is True

    def test_wrong_key(self):
        assert is_valid_api_key("k3", frozenset({"k1", "k2"})) is False

    def test_missing_key(self):
        assert is_valid_api_key(None, frozenset({"k1"})) is False
        assert is_valid_api_key("", frozenset({"k1"})) is False


@require_api_key
async def _protected(request):
    return JSONResponse({"ok": True})


def _request(key=None):
    request = MagicMock()
    request.headers = {API_KEY_HEADER: key} if key is not None else {}
    return request


class TestRequireApiKey:
    """Tests for the require_api_key decorator."""

    async def test_open_when_no_keys_configured(self):
        response = await _protected(_request())
        assert response.status_code == 200

    async def test_rejects_missing_key(self):
        set_settings(Settings(api_keys="secret"))

        response = await _protected(_request())

        assert response.status_code == 401
        assert json.loads(response.body) == {"error": "Unauthorized"}

    async def test_accepts_configured_key(self):
        set_settings(Settings(api_keys="secret, other"))

        response = await _protected(_request("other"))

        assert response.status_code == 200

    def test_blank_entries_ignored(self):
        set_settings(Settings(api_keys=" , "))
        assert get_settings().server.auth_enabled is False
