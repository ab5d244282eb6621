from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

SCORING_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "scoring.yaml"

_cache: dict[str, Any] | None = None


def get_scoring_config() -> dict[str, Any]:
    """Score ranges and closed value sets from ``config/scoring.yaml``, read once."""
    global _cache

    if _cache is None:
        try:
            loaded = yaml.safe_load(SCORING_CONFIG_PATH.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise RuntimeError(f"Cannot load scoring config {SCORING_CONFIG_PATH}: {exc}") from exc
        if not isinstance(loaded, dict):
            raise RuntimeError(f"Scoring config {SCORING_CONFIG_PATH} must be a mapping at the top level.")
        _cache = loaded
    return _cache


def get_scoring_value(path: str, default: Any = None) -> Any:
    """Get nested config value using dot path notation, e.g. 'analysis.ranges.dimension'."""
    if not path:
        return default

    node: Any = get_scoring_config()
    for key in path.split("."):
        if not isinstance(node, dict) or key not in node:
            return default
        node = node[key]
    return node


def get_enum(path: str) -> frozenset[str]:
    values = get_scoring_value(path, default=[]) or []
    return frozenset(str(value) for value in values)


def get_range(name: str) -> tuple[float, float]:
    bounds = get_scoring_value(f"analysis.ranges.{name}")
    if not isinstance(bounds, list) or len(bounds) != 2:
        raise RuntimeError(f"Scoring config range '{name}' must be a two-item list.")
    return float(bounds[0]), float(bounds[1])
