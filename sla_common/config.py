"""Configuration loading for the weekly SLA report.

Settings come from a YAML file. Credentials may instead be supplied through
the environment, which is how scheduled runs usually receive them::

    SUPABASE_URL                -> ticket_store.base_url
    SUPABASE_SERVICE_ROLE_KEY   -> ticket_store.api_key
    RESEND_API_KEY              -> mail.api_key

``SLA_REPORTS_CONFIG`` names a config file to use when ``--config`` is not
given.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml


class ConfigError(RuntimeError):
    """Raised when configuration cannot be loaded."""


PACKAGE_ROOT = Path(__file__).resolve().parents[1]

CONFIG_ENV_VAR = "SLA_REPORTS_CONFIG"

DEFAULT_CONFIG_LOCATIONS = (
    PACKAGE_ROOT / "config" / "config.yaml",
    PACKAGE_ROOT / "config" / "config.yml",
    Path("./config/config.yaml"),
    Path("./config/config.yml"),
    Path.home() / ".sla_reports" / "config.yaml",
)

SECTIONS = ("ticket_store", "mail", "recipients", "reporting", "logging")

ENV_OVERRIDES: Dict[Tuple[str, str], str] = {
    ("ticket_store", "base_url"): "SUPABASE_URL",
    ("ticket_store", "api_key"): "SUPABASE_SERVICE_ROLE_KEY",
    ("mail", "api_key"): "RESEND_API_KEY",
}


def resolve_path(path_str: str | None, *, base: Path | None = None) -> Path:
    """Resolve ``path_str`` against ``base`` (default: the working directory)."""
    base_path = base or Path.cwd()
    if not path_str:
        return base_path
    path = Path(path_str).expanduser()
    return path if path.is_absolute() else base_path / path


def _candidate_paths(path: str | os.PathLike[str] | None, environ: Mapping[str, str]) -> List[Path]:
    if path:
        return [Path(path)]
    from_env = environ.get(CONFIG_ENV_VAR)
    if from_env:
        return [Path(from_env).expanduser()]
    return list(DEFAULT_CONFIG_LOCATIONS)


def _read_yaml(candidate: Path) -> Dict[str, Any]:
    with candidate.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"Unable to parse configuration file {candidate}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration file {candidate} must contain a mapping")
    for section in SECTIONS:
        value = data.get(section)
        if value is None:
            data.pop(section, None)
        elif not isinstance(value, dict):
            raise ConfigError(f"Section '{section}' in {candidate} must be a mapping")
    return data


def apply_env_overrides(config: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Copy non-empty credential variables from ``environ`` into ``config``."""
    environ = os.environ if environ is None else environ
    for (section, key), variable in ENV_OVERRIDES.items():
        value = environ.get(variable, "").strip()
        if value:
            config.setdefault(section, {})[key] = value
    return config


def load_config(
    path: str | os.PathLike[str] | None = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Load the YAML configuration and apply environment credential overrides.

    An explicit ``path`` must exist. Otherwise ``SLA_REPORTS_CONFIG`` and then
    the default locations are tried in order.
    """
    environ = os.environ if environ is None else environ
    candidates = _candidate_paths(path, environ)
    for candidate in candidates:
        if candidate.exists():
            return apply_env_overrides(_read_yaml(candidate), environ)
    if len(candidates) == 1:
        raise ConfigError(f"Configuration file {candidates[0]} does not exist")
    raise ConfigError(
        "No configuration file could be located. Provide --config, set "
        f"{CONFIG_ENV_VAR}, or create config/config.yaml (see config/config.example.yaml)."
    )
