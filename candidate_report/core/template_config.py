from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

_TEMPLATE_CONFIG_CACHE: dict[str, Any] | None = None
_TEMPLATE_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "report.yaml"

WEIGHT_KEYS = ("experience", "skills_match", "values_alignment", "language_proficiency")


@dataclass(frozen=True)
class Theme:
    name: str
    tailwind: str


def get_template_config() -> dict[str, Any]:
    """Load report template config from repo-level config/report.yaml and cache it."""
    global _TEMPLATE_CONFIG_CACHE

    if _TEMPLATE_CONFIG_CACHE is not None:
        return _TEMPLATE_CONFIG_CACHE

    if not _TEMPLATE_CONFIG_PATH.exists():
        raise RuntimeError(
            f"Report template config not found at '{_TEMPLATE_CONFIG_PATH}'. "
            "Expected file: config/report.yaml"
        )

    try:
        raw = _TEMPLATE_CONFIG_PATH.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(
            f"Failed to read report template config '{_TEMPLATE_CONFIG_PATH}': {exc}"
        ) from exc

    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise RuntimeError(
            f"Invalid YAML in report template config '{_TEMPLATE_CONFIG_PATH}': {exc}"
        ) from exc

    if not isinstance(parsed, dict):
        raise RuntimeError(
            f"Invalid report template config '{_TEMPLATE_CONFIG_PATH}': expected a top-level mapping."
        )

    _TEMPLATE_CONFIG_CACHE = parsed
    return _TEMPLATE_CONFIG_CACHE


def get_template_value(path: str, default: Any = None) -> Any:
    """Get nested config value using dot path notation, e.g. 'matching.weights.experience'."""
    if not path:
        return default

    current: Any = get_template_config()
    for key in path.split("."):
        if not isinstance(current, dict):
            return default
        if key not in current:
            return default
        current = current[key]
    return current


def get_match_weights() -> dict[str, int]:
    raw = get_template_value("matching.weights", {})
    if not isinstance(raw, dict):
        raise RuntimeError("matching.weights must be a mapping in config/report.yaml")
    weights: dict[str, int] = {}
    for key in WEIGHT_KEYS:
        value = raw.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise RuntimeError(f"matching.weights.{key} must be a non-negative integer")
        weights[key] = value
    if sum(weights.values()) != 100:
        raise RuntimeError("matching.weights must sum to 100")
    return weights


def get_theme_palette() -> tuple[Theme, ...]:
    raw = get_template_value("themes", [])
    if not isinstance(raw, list) or not raw:
        raise RuntimeError("themes must be a non-empty list in config/report.yaml")
    palette: list[Theme] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict) or not item.get("name") or not item.get("tailwind"):
            raise RuntimeError(f"themes[{index}] needs both 'name' and 'tailwind'")
        palette.append(Theme(name=str(item["name"]), tailwind=str(item["tailwind"])))
    return tuple(palette)


def theme_for_position(position: int, palette: tuple[Theme, ...] | None = None) -> Theme:
    """Theme for a 1-based candidate position; cycles through the palette."""
    if position < 1:
        raise ValueError("position is 1-based")
    themes = palette or get_theme_palette()
    return themes[(position - 1) % len(themes)]
