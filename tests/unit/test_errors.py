"""Tests for the error taxonomy."""

from pathlib import Path

from pam_cli.core.errors import (
    ConfigError,
    DecodeError,
    PamError,
    RemoteError,
    RequestTimeoutError,
    TransportError,
    ValidationError,
    create_user_friendly_message,
)


def test_all_errors_are_pam_errors() -> None:
    for error_type in (ConfigError, ValidationError, DecodeError, TransportError, RequestTimeoutError):
        assert issubclass(error_type, PamError)
    assert issubclass(RemoteError, PamError)
    assert issubclass(RequestTimeoutError, TransportError)


def test_remote_error_str_includes_status_and_body() -> None:
    error = RemoteError("memory_search failed", status=500, body="boom", endpoint="memory_search")

    assert str(error) == "memory_search failed (Status: 500): boom"
    assert error.to_dict()["details"] == {"endpoint": "memory_search"}


def test_config_error_keeps_path() -> None:
    error = ConfigError("Failed to parse config file", path=Path("/tmp/config.json"))

    assert error.path == Path("/tmp/config.json")
    assert error.code == "CONFIG_ERROR"
    assert "pam config init --force" in create_user_friendly_message(error)


def test_friendly_messages() -> None:
    assert "timed out" in create_user_friendly_message(RequestTimeoutError(timeout_seconds=60))
    assert "Could not reach PAM" in create_user_friendly_message(TransportError("refused"))
    assert "PAM_CLI_API_KEY" in create_user_friendly_message(RemoteError("chat failed", status=401))
    assert create_user_friendly_message(ValidationError("Invalid JSON params")) == "Invalid JSON params"
