from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from app.core.config import settings
from app.core.security import log_access_mode
from app.core.security import verify_api_key


@pytest.mark.asyncio
async def test_verify_api_key_success(monkeypatch):
    monkeypatch.setattr(settings, "api_key", "secret", raising=False)
    result = await verify_api_key("secret")
    assert result is True


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["wrong_key", None])
async def test_verify_api_key_failure(monkeypatch, key):
    monkeypatch.setattr(settings, "api_key", "secret", raising=False)
    with pytest.raises(HTTPException) as exc:
        await verify_api_key(key)
    assert exc.value.status_code == 403
    assert exc.value.detail == "Invalid API Key"


@pytest.mark.asyncio
async def test_open_access_without_configured_key(monkeypatch):
    monkeypatch.setattr(settings, "api_key", None, raising=False)
    assert await verify_api_key(None) is True


def test_open_access_is_warned_at_startup(monkeypatch):
    mock_logger = MagicMock()
    monkeypatch.setattr("app.core.security.logger", mock_logger)
    monkeypatch.setattr(settings, "api_key", None, raising=False)

    log_access_mode()

    mock_logger.warning.assert_called_once()
    assert "No API_KEY" in mock_logger.warning.call_args[0][0]


def test_configured_key_is_not_warned(monkeypatch):
    mock_logger = MagicMock()
    monkeypatch.setattr("app.core.security.logger", mock_logger)
    monkeypatch.setattr(settings, "api_key", "secret", raising=False)

    log_access_mode()

    mock_logger.warning.assert_not_called()
