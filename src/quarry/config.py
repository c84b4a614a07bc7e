"""Quarry configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (QUARRY_STORAGE_ROOT, QUARRY_NOTION_TIMEOUT)
  3. Per-project quarry.yaml  (next to .quarry.db)
  4. Global ~/.quarry/config.yaml  (defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; the Notion integration token is
read from NOTION_API_KEY or passed with --api-key.
notion.base_url must be an https:// URL.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".quarry"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "quarry.yaml"

# Fields that suggest an API key; forbidden in global config.
# Matches: api_key, apikey, api-key, api_secret, _token (suffix), standalone token,
# standalone secret, _secret (suffix), password, passwd, credential(s).
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"  # api_key, api-key, api_secret, apikey
    r"|_token$"                  # integration_token, access_token (suffix)
    r"|^token$"                  # exactly "token" (standalone)
    r"|_secret$"                 # client_secret (suffix)
    r"|^secret$"                 # exactly "secret" (standalone)
    r"|passw(?:ord|d)"           # password, passwd
    r"|credential",              # credential, credentials
    re.IGNORECASE,
)

# Known top-level sections. Unknown keys produce a warning.
_KNOWN_SECTIONS: frozenset[str] = frozenset(["project", "storage", "notion"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class ProjectCfg:
    """Project-level metadata (quarry.yaml: project:)."""

    name: str = ""


@dataclass
class StorageCfg:
    """Where materialized artifacts live (quarry.yaml: storage:).

    Attributes:
        root: Artifact directory. Relative paths resolve against the project
            directory.
    """

    root: str = ".quarry/artifacts"


@dataclass
class NotionCfg:
    """Notion API settings (quarry.yaml: notion:)."""

    base_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    timeout: float = 30.0


@dataclass
class QuarryConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    project: ProjectCfg = field(default_factory=ProjectCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    notion: NotionCfg = field(default_factory=NotionCfg)
    project_dir: Path = field(default_factory=Path.cwd)

    def storage_root(self) -> Path:
        """Absolute artifact directory."""
        root = Path(self.storage.root).expanduser()
        return root if root.is_absolute() else self.project_dir / root


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export NOTION_API_KEY=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _validate_base_url(url: str) -> None:
    if not url.startswith("https://"):
        raise ConfigError(
            f"notion.base_url must be an https:// URL: '{url}'\n"
            "  Example: notion.base_url: https://api.notion.com/v1"
        )


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _cfg_from_dict(data: dict[str, Any], project_dir: Path) -> QuarryConfig:
    """Build a *QuarryConfig* from a merged raw YAML dict."""
    cfg = QuarryConfig(project_dir=project_dir)

    if "project" in data:
        p = data["project"] or {}
        cfg.project = ProjectCfg(name=str(p.get("name", cfg.project.name)))

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(root=str(s.get("root", cfg.storage.root)))

    if "notion" in data:
        n = data["notion"] or {}
        try:
            timeout = float(n.get("timeout", cfg.notion.timeout))
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"notion.timeout must be a number: {n.get('timeout')!r}") from exc
        cfg.notion = NotionCfg(
            base_url=str(n.get("base_url", cfg.notion.base_url)),
            api_version=str(n.get("api_version", cfg.notion.api_version)),
            timeout=timeout,
        )

    return cfg


def _apply_env_overrides(cfg: QuarryConfig) -> QuarryConfig:
    """Apply QUARRY_* environment variable overrides (layer 2)."""
    if root := os.environ.get("QUARRY_STORAGE_ROOT"):
        cfg.storage.root = root
    if timeout := os.environ.get("QUARRY_NOTION_TIMEOUT"):
        try:
            cfg.notion.timeout = float(timeout)
        except ValueError as exc:
            raise ConfigError(f"QUARRY_NOTION_TIMEOUT must be a number: {timeout!r}") from exc
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> QuarryConfig:
    """Load and return a merged *QuarryConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *quarry.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *QuarryConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or if
            ``notion.base_url`` is not an https:// URL.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    # Layer 1: global config
    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    # Layer 2: per-project config
    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged, search_dir)
    _validate_base_url(cfg.notion.base_url)

    # Layer 3: env var overrides
    cfg = _apply_env_overrides(cfg)

    return cfg


def write_project_config(project_dir: Path, name: str) -> Path:
    """Write a starter ``quarry.yaml`` into *project_dir* unless one exists."""
    target = project_dir / _PROJECT_CONFIG_NAME
    if not target.exists():
        data = {
            "project": {"name": name},
            "storage": {"root": StorageCfg().root},
        }
        target.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return target


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.quarry/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# Quarry global configuration — defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export NOTION_API_KEY=secret_...\n"
            "\n"
            "notion:\n"
            "  api_version: \"2022-06-28\"\n"
            "  timeout: 30\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target
