from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from tissue_efp.errors import ConfigError


CONFIG_ENV_VAR = "EFP_CONFIG_PATH"


@dataclass
class SourcesConfig:
    catalog_url: str
    expression_url: str
    reference_url: str
    diagram_url_template: str


@dataclass
class HTTPConfig:
    timeout_s: float = 30.0
    retries: int = 3
    backoff_factor: float = 0.5
    user_agent: str = "tissue-efp/0.1"


@dataclass
class RenderConfig:
    poll_interval_s: float = 0.1
    max_polls: int = 200
    settle_delay_s: float = 0.2

    @property
    def poll_budget_s(self) -> float:
        return self.poll_interval_s * self.max_polls


@dataclass
class AppConfig:
    raw: Dict[str, Any]
    sources: SourcesConfig
    http: HTTPConfig = field(default_factory=HTTPConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    alias_groups: Dict[str, List[str]] = field(default_factory=dict)

    def alias_group_for(self, region: str) -> List[str]:
        """Return the alias group containing ``region``, or an empty list."""

        for members in self.alias_groups.values():
            if region in members:
                return members
        return []


def _default_config_path() -> Path:
    """Packaged default configuration, shipped next to this module."""

    return Path(__file__).resolve().parent / "configs" / "default.yaml"


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(
            f"eFP config file not found at '{path}'. "
            f"Set {CONFIG_ENV_VAR} to a valid YAML config."
        )
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config YAML at '{path}': {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config at '{path}' must be a YAML mapping/object.")
    return data


def _coerce_sources(section: Any) -> SourcesConfig:
    if not isinstance(section, dict):
        raise ConfigError("'sources' section must be a mapping/object.")
    try:
        sources = SourcesConfig(
            catalog_url=str(section["catalog_url"]),
            expression_url=str(section["expression_url"]),
            reference_url=str(section["reference_url"]),
            diagram_url_template=str(section["diagram_url_template"]),
        )
    except KeyError as exc:
        raise ConfigError(f"'sources' is missing required key: {exc}.") from exc
    if "{name}" not in sources.diagram_url_template:
        raise ConfigError("'sources.diagram_url_template' must contain a '{name}' placeholder.")
    return sources


def _coerce_http(section: Any) -> HTTPConfig:
    if not isinstance(section, dict):
        return HTTPConfig()
    return HTTPConfig(
        timeout_s=float(section.get("timeout_s", 30.0)),
        retries=int(section.get("retries", 3)),
        backoff_factor=float(section.get("backoff_factor", 0.5)),
        user_agent=str(section.get("user_agent", "tissue-efp/0.1")),
    )


def _coerce_render(section: Any) -> RenderConfig:
    if not isinstance(section, dict):
        return RenderConfig()
    cfg = RenderConfig(
        poll_interval_s=float(section.get("poll_interval_s", 0.1)),
        max_polls=int(section.get("max_polls", 200)),
        settle_delay_s=float(section.get("settle_delay_s", 0.2)),
    )
    if cfg.poll_interval_s <= 0 or cfg.max_polls < 1:
        raise ConfigError("'render.poll_interval_s' and 'render.max_polls' must be positive.")
    return cfg


def _coerce_alias_groups(section: Any) -> Dict[str, List[str]]:
    if not section:
        return {}
    if not isinstance(section, dict):
        raise ConfigError("'alias_groups' must be a mapping of group name to region list.")

    groups: Dict[str, List[str]] = {}
    for name, members in section.items():
        if not isinstance(members, list):
            raise ConfigError(f"Alias group '{name}' must be a list of region names.")
        groups[str(name)] = [str(m) for m in members]
    return groups


def parse_config(raw: Dict[str, Any]) -> AppConfig:
    """Validate a raw configuration mapping into an :class:`AppConfig`."""

    return AppConfig(
        raw=raw,
        sources=_coerce_sources(raw.get("sources")),
        http=_coerce_http(raw.get("http") or {}),
        render=_coerce_render(raw.get("render") or {}),
        alias_groups=_coerce_alias_groups(raw.get("alias_groups")),
    )


_CACHED_CONFIG: Optional[AppConfig] = None


def load_config(force_reload: bool = False) -> AppConfig:
    """
    Load and validate the eFP configuration.

    Precedence:
    1. Use path from EFP_CONFIG_PATH if set.
    2. Otherwise fall back to the packaged `configs/default.yaml`.
    """

    global _CACHED_CONFIG
    if _CACHED_CONFIG is not None and not force_reload:
        return _CACHED_CONFIG

    env_path = os.environ.get(CONFIG_ENV_VAR)
    path = Path(env_path).expanduser() if env_path else _default_config_path()

    _CACHED_CONFIG = parse_config(_load_yaml(path))
    return _CACHED_CONFIG


__all__ = [
    "AppConfig",
    "SourcesConfig",
    "HTTPConfig",
    "RenderConfig",
    "CONFIG_ENV_VAR",
    "parse_config",
    "load_config",
]
