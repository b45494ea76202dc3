"""
Application configuration.

``ConfigLoader`` merges the built-in ``DEFAULTS`` with an optional
``config.json`` placed next to this module or in the working directory.
Only keys present in the file override defaults; nested sections are
merged key by key.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = 'config.json'

DEFAULTS: dict = {
    'canvas': {'width': 800, 'height': 600},
    'window': {'width': 1280, 'height': 720},
    'fps': 60,
    'update_every_n': 30,
    'seed': None,
    'ion_radius': 10,
    'electron_radius': 3,
    'ion_color': [220, 40, 40],
    'electron_color': [40, 70, 230],
    'slider_order': [
        'field_strength',
        'suppression',
        'ion_distance',
        'init_velocity',
        'electrons',
        'volume',
    ],
    'sliders': {
        'field_strength': {'label': 'Field strength', 'bounds': [0.0, 10.0], 'initial': 1.0, 'step': 0.1, 'decimals': 1},
        'suppression': {'label': 'Suppression', 'bounds': [0.0, 10.0], 'initial': 0.2, 'step': 0.1, 'decimals': 1},
        'ion_distance': {'label': 'Ion distance', 'bounds': [30.0, 200.0], 'initial': 80.0, 'step': 1.0, 'decimals': 0},
        'init_velocity': {'label': 'Initial velocity', 'bounds': [0.0, 10.0], 'initial': 2.0, 'step': 0.1, 'decimals': 1},
        'electrons': {'label': 'Electrons', 'bounds': [0.0, 300.0], 'initial': 100.0, 'step': 1.0, 'decimals': 0},
        'volume': {'label': 'Sample volume', 'bounds': [1.0, 100.0], 'initial': 10.0, 'step': 1.0, 'decimals': 0},
    },
    'slider_scale': {'field_strength': 0.1, 'suppression': 0.1},
    'units': {
        'electron_q': 1.602e-19,
        'electron_m': 9.109e-31,
        'volume_scale': 1.0e-25,
        'time_scale': 1.0e-14,
        'to_cm_pow_2': 1.0e4,
        'to_um': 1.0e6,
        'to_mm_pow_2': 1.0e6,
    },
}


def _merge(base: dict, override: dict) -> dict:
    """Recursively overlay ``override`` on a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _candidate_paths() -> list[Path]:
    return [Path(__file__).resolve().parent / CONFIG_FILENAME, Path.cwd() / CONFIG_FILENAME]


def load_config_file(path: Path) -> Optional[dict]:
    """Return the parsed JSON object at ``path`` or ``None`` if unusable."""
    try:
        with path.open('r', encoding='utf-8') as fh:
            data = json.load(fh)
    except OSError as e:
        logger.warning(f"Could not read config file '{path}': {e}")
        return None
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed config file '{path}': {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file '{path}': top level must be an object")
        return None
    return data


class ConfigLoader:
    """Read-only view of the merged configuration."""

    def __init__(self, path: Optional[Path] = None):
        candidates = [Path(path)] if path is not None else _candidate_paths()
        self._loader: dict = copy.deepcopy(DEFAULTS)
        self.source: Optional[Path] = None
        for candidate in candidates:
            if not candidate.exists():
                continue
            data = load_config_file(candidate)
            if data is None:
                continue
            self._loader = _merge(DEFAULTS, data)
            self.source = candidate
            logger.debug(f"Loaded configuration from {candidate}")
            break

    def __getitem__(self, key: str) -> Any:
        return self._loader[key]

    def __contains__(self, key: str) -> bool:
        return key in self._loader

    def get(self, key: str, default: Any = None) -> Any:
        return self._loader.get(key, default)

    def slider(self, key: str) -> dict:
        """Return the slider definition for ``key``."""
        return self._loader['sliders'][key]
