"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (OPENSTAX__SERVER__TRANSPORT=http)
  2. openstax.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults. The model
endpoint is the one thing that has no usable default: without
``models.base_url`` the search and practice-problem tools report
MODEL_NOT_CONFIGURED.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("openstax-mcp")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "cache.db")
_DEFAULT_VECTOR_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "vectors.db")


def _find_config_file() -> str | None:
    """Return the path of the first openstax.yaml found, or None."""
    candidates = [
        Path("openstax.yaml"),
        Path(platformdirs.user_config_dir("openstax-mcp")) / "openstax.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "0.0.0.0"
    port: int = 8080


class GitHubSettings(BaseModel):
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"
    org: str = "openstax"
    branch: str = "main"
    repo_prefix: str = "osbooks-"
    # Only raises the upstream rate limit; callers of this server are not authenticated.
    token: str = ""
    timeout_seconds: float = 30.0


class CacheSettings(BaseModel):
    db_path: str = _DEFAULT_DB_PATH
    listing_ttl_hours: int = 24
    content_ttl_hours: int = 24 * 7
    generated_ttl_hours: int = 24 * 30
    cleanup_interval_hours: int = 6


class ModelSettings(BaseModel):
    base_url: str = ""  # OpenAI-compatible endpoint, e.g. https://api.openai.com/v1
    api_key: str = ""
    embedding_model: str = "@cf/baai/bge-base-en-v1.5"
    generation_model: str = "@cf/meta/llama-3.1-8b-instruct"
    timeout_seconds: float = 120.0


class SearchSettings(BaseModel):
    db_path: str = _DEFAULT_VECTOR_DB_PATH
    snippet_chars: int = 1000
    default_limit: int = 5


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: OPENSTAX__SERVER__PORT=9090
        env_prefix="OPENSTAX__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    github: GitHubSettings = GitHubSettings()
    cache: CacheSettings = CacheSettings()
    models: ModelSettings = ModelSettings()
    search: SearchSettings = SearchSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
