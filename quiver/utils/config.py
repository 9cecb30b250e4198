"""
Pipeline configuration loading.

Defaults ship with the package in quiver/config/pipeline.yaml. A user file
referenced by QUIVER_CONFIG_PATH is merged over them, so an override only
needs the keys it changes.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

load_dotenv()

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "pipeline.yaml"


def load_pipeline_config(override_path: Optional[Path] = None) -> dict:
    """
    Load pipeline configuration as a plain dict.

    Args:
        override_path: YAML file merged over the packaged defaults
            (default: QUIVER_CONFIG_PATH env var, if set)

    Returns:
        Resolved configuration dict

    Raises:
        FileNotFoundError: If an explicit override file does not exist
    """
    config = OmegaConf.load(DEFAULT_CONFIG_PATH)

    if override_path is None and os.getenv("QUIVER_CONFIG_PATH"):
        override_path = Path(os.getenv("QUIVER_CONFIG_PATH"))

    if override_path is not None:
        if not override_path.exists():
            raise FileNotFoundError(f"Pipeline config override not found: {override_path}")
        config = OmegaConf.merge(config, OmegaConf.load(override_path))

    return OmegaConf.to_container(config, resolve=True)


@lru_cache(maxsize=1)
def get_pipeline_config() -> dict:
    """Cached configuration for module-level constants."""
    return load_pipeline_config()
