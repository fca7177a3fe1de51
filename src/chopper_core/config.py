"""Configuration loading for chopper-grep.

Layer order (later wins):
1) Defaults (the pydantic model field defaults)
2) TOML file: explicit ``--config-file`` or ``chopper.toml`` in the working directory
3) Environment variables (``CHOPPER_DB_PATH``, ``CHOPPER_EMBEDDING_DIM``,
   ``CHOPPER_EMBEDDING_PROVIDER``, ``CHOPPER_EMBEDDING_MODEL``)
4) Explicit overrides passed by the caller (CLI flags)
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .chunking import DEFAULT_EXCLUDE_DIRS, DEFAULT_EXTENSIONS, ChunkingOptions
from .embedding.types import EmbeddingFailurePolicy
from .errors import ConfigError
from .types import DEFAULT_EMBEDDING_DIM

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "chopper.toml"

ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    "CHOPPER_DB_PATH": ("store", "path"),
    "CHOPPER_EMBEDDING_DIM": ("store", "dimension"),
    "CHOPPER_EMBEDDING_PROVIDER": ("embedding", "provider"),
    "CHOPPER_EMBEDDING_MODEL": ("embedding", "model"),
}


class StoreSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    path: str = Field(default="code_chunks.db", description="SQLite database file")
    dimension: int = Field(default=DEFAULT_EMBEDDING_DIM, gt=0, description="Embedding dimension D")
    batch_size: int = Field(default=500, gt=0, description="Records per bulk insert transaction")
    busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout")


class EmbeddingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: str = Field(default="noop", description="noop | sentence-transformers")
    model: Optional[str] = Field(default=None, description="Provider model name")
    on_failure: EmbeddingFailurePolicy = Field(
        default=EmbeddingFailurePolicy.FAIL,
        description="fail | skip | zero",
    )
    options: Dict[str, Any] = Field(default_factory=dict)


class ChunkingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_DIRS))
    max_file_bytes: int = Field(default=1_000_000, gt=0)
    window_lines: int = Field(default=60, gt=0)

    def to_options(self) -> ChunkingOptions:
        return ChunkingOptions(
            extensions=tuple(self.extensions),
            exclude_dirs=tuple(self.exclude_dirs),
            max_file_bytes=self.max_file_bytes,
            window_lines=self.window_lines,
        )


class ChopperConfig(BaseModel):
    """Effective configuration for one run."""

    model_config = ConfigDict(extra="forbid")

    store: StoreSettings = Field(default_factory=StoreSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)

    def embedder_config(self) -> Dict[str, Any]:
        """Config dict in the shape ``resolve_embedder`` expects."""
        return {
            "provider": self.embedding.provider,
            "model": self.embedding.model,
            "dimension": self.store.dimension,
            "options": dict(self.embedding.options),
        }


class ConfigLoader:
    """Load and layer chopper-grep configuration."""

    @staticmethod
    def _deep_merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = dict(base)
        for key, value in overlay.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, Mapping):
                result[key] = ConfigLoader._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def load_toml(path: Path) -> dict[str, Any]:
        try:
            with open(path, "rb") as f:
                return tomllib.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    @staticmethod
    def env_layer(env: Mapping[str, str]) -> dict[str, Any]:
        layer: dict[str, Any] = {}
        for var, (section, key) in ENV_OVERRIDES.items():
            value = env.get(var)
            if value is None or not value.strip():
                continue
            layer.setdefault(section, {})[key] = value.strip()
        return layer

    @classmethod
    def load(
        cls,
        config_file: Optional[Path] = None,
        *,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ChopperConfig:
        data: dict[str, Any] = {}

        if config_file is not None:
            data = cls._deep_merge(data, cls.load_toml(Path(config_file)))
            logger.debug(f"Loaded config file {config_file}")
        else:
            candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_FILENAME
            if candidate.is_file():
                data = cls._deep_merge(data, cls.load_toml(candidate))
                logger.debug(f"Loaded config file {candidate}")

        data = cls._deep_merge(data, cls.env_layer(os.environ if env is None else env))
        if overrides:
            data = cls._deep_merge(data, overrides)

        try:
            return ChopperConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


__all__ = [
    "DEFAULT_CONFIG_FILENAME",
    "ENV_OVERRIDES",
    "StoreSettings",
    "EmbeddingSettings",
    "ChunkingSettings",
    "ChopperConfig",
    "ConfigLoader",
]
