"""Shared fixtures for PAM CLI tests."""

import os
from typing import Callable

import httpx
import pytest

from pam_cli.core.client.api_client import PamApiClient

BASE_URL = "https://pam.test"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    """Keep the developer's PAM_* variables, .env files and config out of tests."""
    for key in list(os.environ):
        if key.startswith("PAM_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("PAM_NO_DOTENV", "1")
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def make_client() -> Callable[[Handler], PamApiClient]:
    """Build a PamApiClient whose requests are answered by a handler function."""
    def _make(handler: Handler, **kwargs) -> PamApiClient:
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return PamApiClient(BASE_URL, http_client=http_client, **kwargs)

    return _make
