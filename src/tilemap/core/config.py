"""
Configuration schema and loading for map builds.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Recognized options (the whole configuration surface of a build):

    log_mirror.url        Local mirror of the checksum database (read)
    tile_store.url        Tile store receiving the new revision (write)
    tree_id               Salt for all tree hashing
    prefix_strata         Number of 8-bit strata before the final stratum
    count                 Entries to use from the start of the log, -1 for all
    write_batch_size      Tiles written per sink batch
    incremental_update    Update the latest revision instead of rebuilding
    build_version_list    Also map each module to a commitment to its versions
    hash_algorithm        hashlib algorithm name used by the tree
    tree_builder          Registered tree builder plugin name
    concurrency           Worker pool for parallel transform stages
"""

import hashlib
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from tilemap.contracts.enums import BuildMode
from tilemap.contracts.errors import ConfigError

# Tree IDs are stored and hashed as signed 64-bit integers
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class DatabaseSettings(BaseModel):
    """Database connection configuration."""

    model_config = {"frozen": True}

    url: str = Field(description="SQLAlchemy connection URL, e.g. sqlite:///./sum.db")

    @field_validator("url")
    @classmethod
    def validate_url_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("database url must not be empty")
        return v


class ConcurrencySettings(BaseModel):
    """Parallel processing configuration for map stages."""

    model_config = {"frozen": True}

    max_workers: int = Field(
        default=4,
        gt=0,
        description="Maximum parallel workers for per-record stages",
    )


class BuildSettings(BaseModel):
    """Top-level build configuration.

    Single source of truth for one build invocation. Contradictory mode
    flags are accepted here and rejected by check_build_mode() before
    any store is touched, so that the error surfaces as ConfigError.
    """

    model_config = {"frozen": True}

    log_mirror: DatabaseSettings = Field(description="Local copy of the source log (read only)")
    tile_store: DatabaseSettings = Field(description="Output database for map tiles and revisions")

    tree_id: int = Field(
        default=12345,
        ge=_INT64_MIN,
        le=_INT64_MAX,
        description="The ID of the tree. Used as a salt in hashing.",
    )
    prefix_strata: int = Field(
        default=2,
        ge=0,
        description="The number of 8-bit strata before the final stratum.",
    )
    count: int = Field(
        default=-1,
        ge=-1,
        description="Entries to use from the beginning of the log, or -1 to use all",
    )
    write_batch_size: int = Field(
        default=250,
        gt=0,
        description="Number of tiles to write per batch",
    )
    incremental_update: bool = Field(
        default=False,
        description="Update the previous revision with the new entries instead of rebuilding",
    )
    build_version_list: bool = Field(
        default=False,
        description="Also map each module to a commitment to its list of versions",
    )
    hash_algorithm: str = Field(
        default="sha512_256",
        description="hashlib algorithm used for keys, leaves and tile roots",
    )
    tree_builder: str = Field(
        default="stratified",
        description="Registered tree builder plugin name",
    )
    concurrency: ConcurrencySettings = Field(
        default_factory=ConcurrencySettings,
        description="Parallel processing configuration",
    )

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        """Algorithm must exist in hashlib and have a fixed digest size."""
        name = v.lower()
        if name not in hashlib.algorithms_available:
            raise ValueError(f"unknown hash algorithm {v!r}. Available: {sorted(hashlib.algorithms_available)}")
        if hashlib.new(name).digest_size == 0:
            raise ValueError(f"hash algorithm {v!r} has variable-length output")
        return name

    @model_validator(mode="after")
    def validate_strata_fit_key(self) -> "BuildSettings":
        """Strata are one byte each and must leave at least one key byte for the final stratum."""
        key_size = hashlib.new(self.hash_algorithm).digest_size
        if self.prefix_strata >= key_size:
            raise ValueError(f"prefix_strata must be less than the {key_size}-byte key size of {self.hash_algorithm}, got {self.prefix_strata}")
        return self

    @property
    def mode(self) -> BuildMode:
        return BuildMode.INCREMENTAL if self.incremental_update else BuildMode.FULL


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Unset variables without a default are left as-is.
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    """Lowercase dict keys recursively (Dynaconf uppercases env-sourced keys)."""
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def format_validation_error(error: ValidationError) -> str:
    """Render a pydantic ValidationError as one line per failing field."""
    lines = []
    for item in error.errors():
        loc = ".".join(str(x) for x in item["loc"]) or "settings"
        lines.append(f"  - {loc}: {item['msg']}")
    return "Configuration errors:\n" + "\n".join(lines)


def build_settings(raw_config: dict[str, Any]) -> BuildSettings:
    """Validate a raw settings mapping.

    Raises:
        ConfigError: If validation fails
    """
    try:
        return BuildSettings(**raw_config)
    except ValidationError as e:
        raise ConfigError(format_validation_error(e)) from e


def load_settings(config_path: Path) -> BuildSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (TILEMAP_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: TILEMAP_TILE_STORE__URL for nested keys.

    Raises:
        ConfigError: If the file is missing, is not valid YAML, or fails validation
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise ConfigError(f"Settings file not found: {config_path}")

    try:
        yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML syntax error in {config_path}: {e}") from e

    dynaconf_settings = Dynaconf(
        envvar_prefix="TILEMAP",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lower_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _expand_env_vars(raw_config)

    return build_settings(raw_config)


def apply_overrides(settings: BuildSettings | None, overrides: dict[str, Any]) -> BuildSettings:
    """Merge explicitly given options over loaded settings and revalidate.

    Keys whose value is None are treated as "not given". Nested
    database URLs are passed as log_mirror / tile_store strings.

    Raises:
        ConfigError: If the merged settings fail validation
    """
    merged: dict[str, Any] = settings.model_dump() if settings is not None else {}
    for key, value in overrides.items():
        if value is None:
            continue
        if key in ("log_mirror", "tile_store"):
            merged[key] = {"url": value}
        elif key == "max_workers":
            merged["concurrency"] = {"max_workers": value}
        else:
            merged[key] = value
    return build_settings(merged)


def resolve_config(settings: BuildSettings) -> dict[str, Any]:
    """Dict form of the validated settings, for logging.

    Database URLs may carry credentials; passwords are masked.
    """
    from sqlalchemy.engine.url import make_url

    config_dict = settings.model_dump(mode="json")
    for key in ("log_mirror", "tile_store"):
        url = make_url(config_dict[key]["url"])
        config_dict[key]["url"] = url.render_as_string(hide_password=True)
    return config_dict
