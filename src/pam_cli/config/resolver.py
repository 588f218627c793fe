"""
Layered configuration resolution for PAM CLI.

This module merges compiled-in defaults, the persisted config file,
environment variables and explicit overrides into a single immutable
PamConfig snapshot.
"""

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
import logging

import commentjson
from pydantic import ValidationError as PydanticValidationError

from .settings import PamConfig, SETTABLE_KEYS
from ..core.errors import ConfigError

logger = logging.getLogger(__name__)


class ConfigSource(Enum):
    """Configuration layers, listed lowest precedence first."""
    DEFAULT = "default"
    FILE = "file"
    ENVIRONMENT = "environment"
    OVERRIDE = "override"


@dataclass
class ConfigLayer:
    """One source of configuration values."""
    source: ConfigSource
    path: Optional[Path]
    settings: Dict[str, Any] = field(default_factory=dict)
    exists: bool = True


def _parse_port(value: str) -> int:
    port = int(value)
    if not 0 < port <= 65535:
        raise ValueError(f"port out of range: {port}")
    return port


# Environment variable -> field name, or (field name, converter)
ENV_MAPPING: Dict[str, Union[str, Tuple[str, Callable[[str], Any]]]] = {
    "PAM_API_URL": "api_url",
    "PAM_GCS_BUCKET": "gcs_bucket",
    "PAM_USER_EMAIL": "user_email",
    "PAM_DB_HOST": "db_host",
    "PAM_DB_PORT": ("db_port", _parse_port),
    "PAM_DB_PASSWORD": "db_password",
}


def get_user_config_dir() -> Path:
    """Platform-conventional configuration directory for PAM CLI."""
    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "pam"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "pam"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "pam"
    return Path.home() / ".config" / "pam"


class ConfigResolver:
    """
    Resolves PamConfig from layered sources.

    Configuration precedence (later entries override earlier ones):
    1. Default values (compiled in)
    2. Config file (explicit path, else ~/.config/pam/config.json)
    3. Environment variables (PAM_*)
    4. Explicit overrides (command-line flags)

    A missing config file is not an error. A config file that exists but
    cannot be read or parsed always raises ConfigError naming the file.
    """

    CONFIG_FILE_NAME = "config.json"

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        """Initialize the resolver.

        Args:
            environ: Environment mapping to read; defaults to os.environ
        """
        self._environ = environ
        self._layers: Dict[ConfigSource, ConfigLayer] = {}

    @classmethod
    def default_config_path(cls) -> Path:
        """Path of the config file when no explicit path is given."""
        return get_user_config_dir() / cls.CONFIG_FILE_NAME

    def resolve(
        self,
        explicit_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None
    ) -> PamConfig:
        """Build the configuration snapshot for this invocation.

        Args:
            explicit_path: Config file to read instead of the default location
            overrides: Highest-precedence values; None entries are ignored

        Returns:
            Merged, validated configuration

        Raises:
            ConfigError: If the config file is unreadable or malformed, or a
                merged value fails validation
        """
        path = self._config_path(explicit_path)

        self._layers = {
            ConfigSource.DEFAULT: self._default_layer(),
            ConfigSource.FILE: self._file_layer(path),
            ConfigSource.ENVIRONMENT: self._environment_layer(),
            ConfigSource.OVERRIDE: self._override_layer(overrides),
        }

        # Attribute type errors in the file to the file itself
        self._validate(self._merge([ConfigSource.DEFAULT, ConfigSource.FILE]), path)

        merged = self._merge(list(ConfigSource))
        return self._validate(merged, None)

    def load_persisted(self, explicit_path: Optional[Path] = None) -> PamConfig:
        """Load defaults and the config file only, ignoring the environment.

        Args:
            explicit_path: Config file to read instead of the default location

        Returns:
            Configuration as it is stored on disk
        """
        path = self._config_path(explicit_path)
        self._layers = {
            ConfigSource.DEFAULT: self._default_layer(),
            ConfigSource.FILE: self._file_layer(path),
        }
        merged = self._merge([ConfigSource.DEFAULT, ConfigSource.FILE])
        return self._validate(merged, path)

    def persist(self, config: PamConfig, explicit_path: Optional[Path] = None) -> Path:
        """Write a configuration record to the config file.

        Args:
            config: Configuration to serialize
            explicit_path: Config file to write instead of the default location

        Returns:
            Path that was written
        """
        path = self._config_path(explicit_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                commentjson.dump(config.model_dump(exclude_none=True), f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise ConfigError(f"Failed to write config file: {path}", path=path, original_error=e) from e

        logger.debug(f"Saved configuration to {path}")
        return path

    def set_field(self, key: str, value: str, explicit_path: Optional[Path] = None) -> PamConfig:
        """Change one persisted configuration value.

        This is a read-modify-write against the file. Two processes running
        `set` concurrently can lose an update.

        Args:
            key: One of SETTABLE_KEYS
            value: New value, converted to the field's type
            explicit_path: Config file to update instead of the default location

        Returns:
            The configuration that was written

        Raises:
            ConfigError: If the key is unknown or the value is invalid
        """
        if key not in SETTABLE_KEYS:
            raise ConfigError(
                f"Unknown config key: {key}. Valid keys: {', '.join(SETTABLE_KEYS)}",
                config_field=key,
            )

        current = self.load_persisted(explicit_path)
        data = current.model_dump()
        data[key] = value

        try:
            updated = PamConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid value for {key}: {value!r}", config_field=key, original_error=e) from e

        self.persist(updated, explicit_path)
        return updated

    def init(self, force: bool = False, explicit_path: Optional[Path] = None) -> Path:
        """Create a config file holding the defaults.

        Args:
            force: Overwrite an existing file
            explicit_path: Config file to create instead of the default location

        Returns:
            Path that was written

        Raises:
            ConfigError: If the file exists and force is False
        """
        path = self._config_path(explicit_path)
        if path.exists() and not force:
            raise ConfigError(
                f"Config file already exists at {path}. Use --force to overwrite.",
                path=path,
            )
        return self.persist(PamConfig(), path)

    def describe_sources(self) -> List[Dict[str, Any]]:
        """Summarize the layers used by the last resolve() call."""
        summary = []
        for source in ConfigSource:
            layer = self._layers.get(source)
            if layer is None:
                continue
            summary.append({
                "source": source.value,
                "path": str(layer.path) if layer.path else None,
                "exists": layer.exists,
                "keys": sorted(layer.settings) if source is not ConfigSource.DEFAULT else [],
            })
        return summary

    def _config_path(self, explicit_path: Optional[Path]) -> Path:
        if explicit_path is not None:
            return Path(explicit_path).expanduser()
        return self.default_config_path()

    def _default_layer(self) -> ConfigLayer:
        return ConfigLayer(
            source=ConfigSource.DEFAULT,
            path=None,
            settings=PamConfig().model_dump(),
        )

    def _file_layer(self, path: Path) -> ConfigLayer:
        """Load settings from the config file.

        Args:
            path: Config file path

        Returns:
            ConfigLayer with the parsed settings, empty if the file is absent
        """
        layer = ConfigLayer(source=ConfigSource.FILE, path=path, exists=path.exists())

        if not layer.exists:
            logger.debug(f"Config file not found, using defaults: {path}")
            return layer

        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read config file: {path}", path=path, original_error=e) from e

        try:
            parsed = commentjson.loads(content)
        except Exception as e:
            raise ConfigError(f"Failed to parse config file: {path}", path=path, original_error=e) from e

        if not isinstance(parsed, dict):
            raise ConfigError(f"Failed to parse config file: {path} (expected a JSON object)", path=path)

        layer.settings = parsed
        logger.debug(f"Loaded config file: {path}")
        return layer

    def _environment_layer(self) -> ConfigLayer:
        """Load settings from PAM_* environment variables."""
        environ = self._environ if self._environ is not None else os.environ
        env_settings = {}

        for env_var, setting_info in ENV_MAPPING.items():
            value = environ.get(env_var)
            if value is None:
                continue
            if isinstance(setting_info, tuple):
                setting_key, converter = setting_info
                try:
                    env_settings[setting_key] = converter(value)
                except ValueError:
                    # Keep the lower layer's value
                    logger.debug(f"Ignoring invalid value for {env_var}: {value!r}")
            else:
                env_settings[setting_info] = value

        return ConfigLayer(
            source=ConfigSource.ENVIRONMENT,
            path=None,
            settings=env_settings,
            exists=bool(env_settings),
        )

    def _override_layer(self, overrides: Optional[Dict[str, Any]]) -> ConfigLayer:
        settings = {k: v for k, v in (overrides or {}).items() if v is not None}
        return ConfigLayer(
            source=ConfigSource.OVERRIDE,
            path=None,
            settings=settings,
            exists=bool(settings),
        )

    def _merge(self, sources: List[ConfigSource]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for source in sources:
            layer = self._layers.get(source)
            if layer and layer.settings:
                merged.update(layer.settings)
        return merged

    def _validate(self, data: Dict[str, Any], path: Optional[Path]) -> PamConfig:
        try:
            return PamConfig.model_validate(data)
        except PydanticValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            if path is not None:
                message = f"Invalid value in config file {path}: {fields}"
            else:
                message = f"Invalid configuration value: {fields}"
            raise ConfigError(message, path=path, original_error=e) from e
