"""Configuration loading.

Layers, later wins:

    built-in defaults
    ~/.config/reanalyst/config.yaml   (or the file named by $REANALYST_CONFIG)
    <project root>/.reanalyst.yaml
    REANALYST__SECTION__KEY environment variables
    keyword overrides passed to load_config()
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from reanalyst.config.models import (
    AnalysisConfig,
    BinariesConfig,
    LoggingConfig,
    ReanalystConfig,
    ServerConfig,
)
from reanalyst.core.errors import ConfigError

GLOBAL_CONFIG_PATH = Path("~/.config/reanalyst/config.yaml").expanduser()
GLOBAL_CONFIG_ENV = "REANALYST_CONFIG"
PROJECT_CONFIG_NAME = ".reanalyst.yaml"


def _load_yaml(path: Path) -> dict[str, Any]:
    """Read one YAML layer. A missing file is an empty layer."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError.parse_error(str(path), "top level must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def global_config_path() -> Path:
    override = os.environ.get(GLOBAL_CONFIG_ENV)
    return Path(override).expanduser() if override else GLOBAL_CONFIG_PATH


def yaml_layers(project_root: Path | None) -> dict[str, Any]:
    """Merged YAML configuration for project_root (global first, then project)."""
    merged = _load_yaml(global_config_path())
    if project_root is not None:
        merged = _deep_merge(merged, _load_yaml(project_root / PROJECT_CONFIG_NAME))
    return merged


class _YamlSource(PydanticBaseSettingsSource):
    """Pre-merged YAML layers as a pydantic-settings source."""

    def __init__(self, settings_cls: type[BaseSettings], data: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._data = data

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        value = self._data.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        return self._data


def _settings_class(data: dict[str, Any]) -> type[BaseSettings]:
    """Settings class bound to one set of YAML layers."""

    class ReanalystSettings(BaseSettings):
        model_config = SettingsConfigDict(
            env_prefix="REANALYST__",
            env_nested_delimiter="__",
            case_sensitive=False,
        )

        logging: LoggingConfig = LoggingConfig()
        server: ServerConfig = ServerConfig()
        analysis: AnalysisConfig = AnalysisConfig()
        binaries: BinariesConfig = BinariesConfig()

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            return (init_settings, env_settings, _YamlSource(settings_cls, data))

    return ReanalystSettings


def load_config(project_root: Path | None = None, **overrides: Any) -> ReanalystConfig:
    """Resolve configuration for a project.

    Args:
        project_root: Directory that may hold .reanalyst.yaml. None skips the
                      project layer.
        **overrides: Section dicts that beat every other layer,
                     e.g. ``server={"enabled": False}``.

    Raises:
        ConfigError: A YAML layer is unreadable or a value fails validation.
    """
    settings_cls = _settings_class(yaml_layers(project_root))
    try:
        settings = settings_cls(**overrides)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        raise ConfigError.invalid_value(field, first.get("input"), first["msg"]) from e
    return ReanalystConfig.model_validate(settings.model_dump())
