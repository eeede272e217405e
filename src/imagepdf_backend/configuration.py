from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf

from .models import AppSettings

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [_HERE.parent / "config/config.yaml"] + [parent / "config/config.yaml" for parent in _HERE.parents[:3]]

CONFIG_PATH = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
if CONFIG_PATH is None:  # pragma: no cover - broken installation
    raise FileNotFoundError("Default config.yaml could not be located; the package data is missing from this installation.")


@lru_cache(maxsize=1)
def _load_default_config() -> DictConfig:
    return OmegaConf.load(CONFIG_PATH)


def make_runtime_config(overrides: Optional[Dict[str, Any]] = None) -> DictConfig:
    """Merge ``overrides`` onto the defaults; unknown keys are rejected."""
    base_container = OmegaConf.to_container(_load_default_config(), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)

    merged = DictConfig(OmegaConf.merge(base, OmegaConf.create(overrides or {})))
    return merged


def load_settings(overrides: Optional[Dict[str, Any]] = None) -> AppSettings:
    """
    Resolve the runtime configuration into validated settings.

    Environment variables (and a ``.env`` file, if present) are read at call
    time through the ``oc.env`` resolvers in ``config.yaml``.
    """
    load_dotenv()
    config = make_runtime_config(overrides)
    container = OmegaConf.to_container(config, resolve=True, enum_to_str=True)
    return AppSettings.model_validate(container)
