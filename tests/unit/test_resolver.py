"""Tests for layered configuration resolution."""

import json
import sys
from pathlib import Path

import pytest

from pam_cli.config.resolver import ConfigResolver, get_user_config_dir
from pam_cli.config.settings import DEFAULT_API_URL
from pam_cli.core.errors import ConfigError


def write_config(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestResolve:
    """Test cases for ConfigResolver.resolve."""

    def test_defaults_when_file_absent(self, tmp_path: Path) -> None:
        """An absent config file is not an error."""
        config = ConfigResolver(environ={}).resolve(tmp_path / "missing.json")

        assert config.api_url == DEFAULT_API_URL
        assert config.db_port == 5433

    def test_file_overrides_defaults(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"gcs_bucket": "my-bucket", "db_port": 6000})
        config = ConfigResolver(environ={}).resolve(path)

        assert config.gcs_bucket == "my-bucket"
        assert config.db_port == 6000
        assert config.db_host == "localhost"

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"api_url": "https://file.test"})
        config = ConfigResolver(environ={"PAM_API_URL": "https://env.test"}).resolve(path)

        assert config.api_url == "https://env.test"

    def test_override_wins(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"api_url": "https://file.test"})
        resolver = ConfigResolver(environ={"PAM_API_URL": "https://env.test"})
        config = resolver.resolve(path, {"api_url": "https://flag.test"})

        assert config.api_url == "https://flag.test"

    def test_none_override_ignored(self, tmp_path: Path) -> None:
        resolver = ConfigResolver(environ={"PAM_API_URL": "https://env.test"})
        config = resolver.resolve(tmp_path / "missing.json", {"api_url": None})

        assert config.api_url == "https://env.test"

    def test_api_url_from_process_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that PAM_API_URL is read from os.environ by default."""
        monkeypatch.setenv("PAM_API_URL", "https://x.test")
        config = ConfigResolver().resolve(tmp_path / "missing.json")

        assert config.api_url == "https://x.test"

    def test_all_environment_variables(self, tmp_path: Path) -> None:
        environ = {
            "PAM_GCS_BUCKET": "env-bucket",
            "PAM_USER_EMAIL": "pm@example.com",
            "PAM_DB_HOST": "db.internal",
            "PAM_DB_PORT": "5432",
            "PAM_DB_PASSWORD": "pw",
        }
        config = ConfigResolver(environ=environ).resolve(tmp_path / "missing.json")

        assert config.gcs_bucket == "env-bucket"
        assert config.user_email == "pm@example.com"
        assert config.db_host == "db.internal"
        assert config.db_port == 5432
        assert config.db_password == "pw"

    @pytest.mark.parametrize("port", ["not-a-number", "0", "99999"])
    def test_invalid_port_in_environment_ignored(self, tmp_path: Path, port: str) -> None:
        """An unusable PAM_DB_PORT keeps the lower layer's value."""
        path = write_config(tmp_path / "config.json", {"db_port": 6000})
        config = ConfigResolver(environ={"PAM_DB_PORT": port}).resolve(path)

        assert config.db_port == 6000

    def test_comments_allowed_in_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(
            '{\n  // team bucket\n  "gcs_bucket": "commented-bucket"\n}\n',
            encoding="utf-8",
        )
        config = ConfigResolver(environ={}).resolve(path)

        assert config.gcs_bucket == "commented-bucket"

    def test_malformed_file_raises(self, tmp_path: Path) -> None:
        """A malformed file is never silently replaced by defaults."""
        path = tmp_path / "config.json"
        path.write_text("{ this is not json", encoding="utf-8")

        with pytest.raises(ConfigError) as exc_info:
            ConfigResolver(environ={}).resolve(path)

        assert exc_info.value.path == path
        assert str(path) in exc_info.value.message

    def test_non_utf8_file_raises(self, tmp_path: Path) -> None:
        """Undecodable bytes are reported as a config error naming the file."""
        path = tmp_path / "config.json"
        path.write_bytes(b'{"api_url": "\xff\xfe"}')

        with pytest.raises(ConfigError) as exc_info:
            ConfigResolver(environ={}).resolve(path)

        assert exc_info.value.path == path
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)

    def test_non_object_file_raises(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", ["api_url"])

        with pytest.raises(ConfigError):
            ConfigResolver(environ={}).resolve(path)

    def test_invalid_value_in_file_names_file(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"db_port": "abc"})

        with pytest.raises(ConfigError) as exc_info:
            ConfigResolver(environ={}).resolve(path)

        assert exc_info.value.path == path
        assert "db_port" in exc_info.value.message

    def test_describe_sources(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"gcs_bucket": "b"})
        resolver = ConfigResolver(environ={"PAM_USER_EMAIL": "pm@example.com"})
        resolver.resolve(path, {"api_url": "https://flag.test"})

        sources = {entry["source"]: entry for entry in resolver.describe_sources()}

        assert sources["file"]["path"] == str(path)
        assert sources["file"]["exists"] is True
        assert sources["file"]["keys"] == ["gcs_bucket"]
        assert sources["environment"]["keys"] == ["user_email"]
        assert sources["override"]["keys"] == ["api_url"]
        assert sources["default"]["keys"] == []


class TestSetField:
    """Test cases for ConfigResolver.set_field."""

    def test_set_writes_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        updated = ConfigResolver(environ={}).set_field("user_email", "pm@example.com", path)

        assert updated.user_email == "pm@example.com"
        assert json.loads(path.read_text(encoding="utf-8"))["user_email"] == "pm@example.com"

    def test_set_preserves_other_file_values(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"gcs_bucket": "keep-me"})
        ConfigResolver(environ={}).set_field("db_port", "6543", path)

        stored = json.loads(path.read_text(encoding="utf-8"))
        assert stored["gcs_bucket"] == "keep-me"
        assert stored["db_port"] == 6543

    def test_set_does_not_persist_environment(self, tmp_path: Path) -> None:
        """Values that came from the environment are not written to the file."""
        path = tmp_path / "config.json"
        resolver = ConfigResolver(environ={"PAM_API_URL": "https://env.test", "PAM_DB_PASSWORD": "pw"})
        resolver.set_field("gcs_bucket", "new-bucket", path)

        stored = json.loads(path.read_text(encoding="utf-8"))
        assert stored["api_url"] == DEFAULT_API_URL
        assert "db_password" not in stored

    def test_unknown_key_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"

        with pytest.raises(ConfigError) as exc_info:
            ConfigResolver(environ={}).set_field("theme", "dark", path)

        assert "Unknown config key" in exc_info.value.message
        assert not path.exists()

    def test_secret_keys_not_settable(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            ConfigResolver(environ={}).set_field("cli_api_key", "k", tmp_path / "config.json")

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            ConfigResolver(environ={}).set_field("db_port", "abc", tmp_path / "config.json")

    def test_set_on_malformed_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("not json", encoding="utf-8")

        with pytest.raises(ConfigError):
            ConfigResolver(environ={}).set_field("user_email", "pm@example.com", path)

        assert path.read_text(encoding="utf-8") == "not json"


class TestInit:
    """Test cases for ConfigResolver.init."""

    def test_init_creates_file(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "config.json"
        written = ConfigResolver(environ={}).init(explicit_path=path)

        assert written == path
        stored = json.loads(path.read_text(encoding="utf-8"))
        assert stored["api_url"] == DEFAULT_API_URL
        assert "user_email" not in stored

    def test_init_refuses_to_overwrite(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"gcs_bucket": "mine"})

        with pytest.raises(ConfigError):
            ConfigResolver(environ={}).init(explicit_path=path)

        assert json.loads(path.read_text(encoding="utf-8")) == {"gcs_bucket": "mine"}

    def test_init_force_overwrites(self, tmp_path: Path) -> None:
        path = write_config(tmp_path / "config.json", {"gcs_bucket": "mine"})
        ConfigResolver(environ={}).init(force=True, explicit_path=path)

        assert json.loads(path.read_text(encoding="utf-8"))["gcs_bucket"] == "pam-context-files"


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="XDG layout is Linux-only")
def test_default_path_follows_xdg(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

    assert get_user_config_dir() == tmp_path / "pam"
    assert ConfigResolver.default_config_path() == tmp_path / "pam" / "config.json"
