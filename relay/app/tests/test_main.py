"""
Unit Tests for the Application Factory and Entry Point
======================================================

Tests for relay/app/main.py

Run tests:
----------
    pytest relay/app/tests/test_main.py -v
"""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from relay.app import main as main_module
from relay.app.config import Settings, get_settings
from relay.app.main import create_app


@pytest.fixture
def mock_settings():
    return Settings(
        _env_file=None,
        SERVICE_BASE_URL="http://backend:8002",
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
    )


def test_lifespan_manages_upstream_client(mock_settings):
    """Test that the shared client exists only while the app is running"""
    app = create_app()

    with patch("relay.app.main.get_settings", return_value=mock_settings):
        with TestClient(app):
            app_state = app.state.app_state
            assert isinstance(app_state.upstream_client, httpx.AsyncClient)
            assert app_state.settings is mock_settings

    assert app.state.app_state.upstream_client is None


def test_upstream_client_has_no_timeout(mock_settings):
    """Test that the lifespan client never times out upstream calls"""
    app = create_app()

    with patch("relay.app.main.get_settings", return_value=mock_settings):
        with TestClient(app):
            timeout = app.state.app_state.upstream_client.timeout
            assert timeout.connect is None
            assert timeout.read is None
            assert timeout.write is None
            assert timeout.pool is None


def test_apps_do_not_share_state():
    assert create_app().state.app_state is not create_app().state.app_state


def test_main_exits_with_lifecycle_code(mock_settings):
    lifecycle = Mock()
    lifecycle.run = AsyncMock(return_value=0)

    with patch("relay.app.main.get_settings", return_value=mock_settings), \
            patch("relay.app.main.RelayLifecycle", return_value=lifecycle) as lifecycle_cls:
        with pytest.raises(SystemExit) as exc_info:
            main_module.main()

    assert exc_info.value.code == 0
    assert lifecycle_cls.call_args.args[0] is mock_settings
    lifecycle.run.assert_awaited_once()


def test_main_exits_one_on_fatal_startup(mock_settings):
    lifecycle = Mock()
    lifecycle.run = AsyncMock(return_value=1)

    with patch("relay.app.main.get_settings", return_value=mock_settings), \
            patch("relay.app.main.RelayLifecycle", return_value=lifecycle):
        with pytest.raises(SystemExit) as exc_info:
            main_module.main()

    assert exc_info.value.code == 1


def test_main_exits_one_on_invalid_configuration(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("SERVICE_BASE_URL", raising=False)
    get_settings.cache_clear()

    try:
        with patch("relay.app.main.RelayLifecycle") as lifecycle_cls:
            with pytest.raises(SystemExit) as exc_info:
                main_module.main()
    finally:
        get_settings.cache_clear()

    assert exc_info.value.code == 1
    lifecycle_cls.assert_not_called()
