from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from chopper_core.config import ChopperConfig, ConfigLoader

# Global variable to store custom config file path
_global_config_file: Optional[Path] = None


def set_global_config_file(config_file: Optional[Path]) -> None:
    """Set the global config file path for use by utility functions."""
    global _global_config_file
    _global_config_file = config_file.resolve() if config_file else None


def get_global_config_file() -> Optional[Path]:
    """Get the global config file path if set."""
    return _global_config_file


def configure_stdio() -> None:
    """Replace unencodable characters instead of crashing on non-UTF8 Windows consoles."""
    if os.name != "nt":
        return

    for stream in (sys.stdout, sys.stderr):
        reconfigure = getattr(stream, "reconfigure", None)
        if reconfigure is not None:
            reconfigure(errors="replace")


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
        force=True,
    )


def load_config(
    *,
    db: Optional[Path] = None,
    dimension: Optional[int] = None,
) -> ChopperConfig:
    """Effective config for a command, with CLI flags as the top layer."""
    overrides: Dict[str, Any] = {}
    if db is not None:
        overrides.setdefault("store", {})["path"] = str(db)
    if dimension is not None:
        overrides.setdefault("store", {})["dimension"] = dimension
    return ConfigLoader.load(get_global_config_file(), overrides=overrides)
