"""
Configuration management for Switchyard.

Precedence: env vars (SWITCHYARD_*) > config.yaml > defaults

Config file: ~/.switchyard/config.yaml

The source and target tables default to the well-known locations of Claude
Code, Cursor and Gemini. Paths may start with "~", which is expanded against
`home` rather than the real home directory so a whole installation can be
pointed at a scratch directory.
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "SWITCHYARD_"

# Known config keys that can be set via `switchyard config set`
CONFIG_KEYS = {
    "home", "primary_source", "bundle_root", "model_settings_path",
    "host", "port", "log_level", "watch_debounce",
}


class SourceConfig(BaseModel):
    """One MCP source file, in precedence order."""

    tag: str
    path: str
    label: str
    definitions_key: str = "mcpServers"
    enabled_key: str = "enabledMcpjsonServers"
    disabled_key: str = "disabledMcpjsonServers"


class TargetConfig(BaseModel):
    """One tool that skill bundles can be synced into."""

    id: str
    label: str
    skills_dir: str
    is_source: bool = False


DEFAULT_SOURCES: list[dict[str, Any]] = [
    {"tag": "claude_json", "path": "~/.claude.json", "label": "Claude Code"},
    {"tag": "claude_mcp_servers", "path": "~/.claude/mcp-servers.json", "label": "Claude (mcp-servers)"},
    {"tag": "cursor_mcp", "path": "~/.cursor/mcp.json", "label": "Cursor"},
    {"tag": "gemini_settings", "path": "~/.gemini/settings.json", "label": "Gemini"},
]

DEFAULT_TARGETS: list[dict[str, Any]] = [
    {"id": "claude_code", "label": "Claude Code", "skills_dir": "~/.claude/skills", "is_source": True},
    {"id": "cursor", "label": "Cursor", "skills_dir": "~/.cursor/skills"},
    {"id": "antigravity", "label": "Antigravity", "skills_dir": "~/.gemini/skills"},
]


def _resolve_config_dir(data: dict[str, Any]) -> Path:
    """Resolve the config directory before Settings init."""
    raw = data.get("config_dir") or os.environ.get(f"{ENV_PREFIX}CONFIG_DIR", "")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".switchyard"


def _load_yaml_config(config_dir: Path) -> dict[str, Any]:
    """Load config.yaml from the config directory."""
    config_file = config_dir / "config.yaml"
    if not config_file.exists():
        return {}
    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            logger.warning(f"config.yaml is not a dict, ignoring: {config_file}")
            return {}
        return data
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error loading config.yaml: {e}")
        return {}


def save_yaml_config(config_dir: Path, data: dict[str, Any]) -> Path:
    """Write config values to <config_dir>/config.yaml."""
    config_file = get_config_path(config_dir)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    return config_file


def get_config_path(config_dir: Path) -> Path:
    return config_dir / "config.yaml"


class Settings(BaseSettings):
    """Switchyard configuration. Precedence: env vars > config.yaml > defaults."""

    # Locations
    home: Path = Field(default_factory=Path.home, description="Directory '~' expands to")
    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".switchyard",
        description="Directory holding config.yaml",
    )

    # MCP sources, highest precedence first
    sources: list[SourceConfig] = Field(
        default_factory=lambda: [SourceConfig(**s) for s in DEFAULT_SOURCES]
    )
    primary_source: str = Field(
        default="claude_json", description="Tag of the only source we write to"
    )

    # Skills
    targets: list[TargetConfig] = Field(
        default_factory=lambda: [TargetConfig(**t) for t in DEFAULT_TARGETS]
    )
    bundle_root: Optional[str] = Field(
        default=None, description="Bundle root; defaults to the source target's skills_dir"
    )

    # Model switching
    model_settings_path: str = Field(
        default="~/.claude/settings.json",
        description="Claude Code settings file holding the env block",
    )

    # Server
    host: str = Field(default="127.0.0.1", description="Server bind address")
    port: int = Field(default=3456, description="Server port")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )

    # Watcher
    watch_debounce: float = Field(
        default=0.5, description="Seconds to wait for more changes before rescanning"
    )

    model_config = {
        "env_prefix": ENV_PREFIX,
        "extra": "ignore",
        "protected_namespaces": (),
    }

    @model_validator(mode="before")
    @classmethod
    def _inject_yaml_config(cls, data: Any) -> Any:
        """Inject config.yaml values as fallbacks below env vars."""
        if not isinstance(data, dict):
            data = {}

        config_dir = _resolve_config_dir(data)
        yaml_config = _load_yaml_config(config_dir)

        for key, value in yaml_config.items():
            if key not in data or data[key] is None:
                env_val = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
                if env_val is None:
                    data[key] = value

        data.setdefault("config_dir", config_dir)
        return data

    @model_validator(mode="after")
    def _check_tables(self) -> "Settings":
        tags = [s.tag for s in self.sources]
        if len(set(tags)) != len(tags):
            raise ValueError("Source tags must be unique")
        if self.primary_source not in tags:
            raise ValueError(f"primary_source '{self.primary_source}' is not a configured source")
        if sum(1 for t in self.targets if t.is_source) != 1:
            raise ValueError("Exactly one target must be marked is_source")
        return self

    def expand(self, raw: str) -> Path:
        """Expand a configured path; '~' means `home`."""
        if raw == "~":
            return self.home
        if raw.startswith("~/"):
            return self.home / raw[2:]
        return Path(raw)

    @property
    def source_target(self) -> TargetConfig:
        return next(t for t in self.targets if t.is_source)

    @property
    def bundle_root_path(self) -> Path:
        if self.bundle_root:
            return self.expand(self.bundle_root)
        return self.expand(self.source_target.skills_dir)

    @property
    def model_settings_file(self) -> Path:
        return self.expand(self.model_settings_path)

    @property
    def config_file(self) -> Path:
        return get_config_path(self.config_dir)
