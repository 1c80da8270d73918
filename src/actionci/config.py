# config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

CONFIG_FILE = ".actionci.json"
DEFAULT_DATABASE_URL = "sqlite:///.actionci/history.db"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class ConfigFile(BaseModel):
    """Schema of .actionci.json."""
    model_config = ConfigDict(extra="forbid")

    max_workers: Optional[int] = Field(default=None, ge=1)
    action_timeout: Optional[float] = Field(default=None, gt=0)
    database_url: Optional[str] = None
    workspace_dir: Optional[str] = None
    keep_workspaces: Optional[bool] = None
    aliases: Dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class EngineConfig:
    """
    Engine settings.

    Precedence: CLI flags > ACTIONCI_* environment variables > .actionci.json > defaults.
    """
    max_workers: Optional[int] = None          # None -> cpu_count - 1
    action_timeout: Optional[float] = None     # None -> no timeout
    database_url: str = DEFAULT_DATABASE_URL
    workspace_dir: Optional[str] = None        # None -> system temp dir
    keep_workspaces: bool = False
    aliases: Dict[str, str] = field(default_factory=dict)

    def override(self, **changes: Any) -> "EngineConfig":
        """Copy with the given non-None values replaced (used for CLI flags)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _env_int(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = env.get(key)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(f"{key} must be >= 1, got {value}")
    return value


def _env_float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key)
    if raw is None or raw == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number of seconds, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be > 0, got {value}")
    return value


def _env_bool(env: Mapping[str, str], key: str) -> Optional[bool]:
    raw = env.get(key)
    if raw is None:
        return None
    low = raw.strip().lower()
    if low in _TRUE:
        return True
    if low in _FALSE:
        return False
    raise ConfigError(f"{key} must be a boolean (true/false), got {raw!r}")


def read_config_file(path: Union[str, Path]) -> ConfigFile:
    p = Path(path)
    if not p.exists():
        return ConfigFile()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"{p.name} is not valid JSON", details=[str(e)]) from None
    try:
        return ConfigFile.model_validate(raw)
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ConfigError(f"Invalid {p.name}", details=details) from None


def load_config(
    repo_root: Union[str, Path] = ".",
    env: Optional[Mapping[str, str]] = None,
) -> EngineConfig:
    """Build the EngineConfig for a repository."""
    env = os.environ if env is None else env
    file_cfg = read_config_file(Path(repo_root) / CONFIG_FILE)

    def pick(env_value: Any, file_value: Any, default: Any) -> Any:
        if env_value is not None:
            return env_value
        if file_value is not None:
            return file_value
        return default

    return EngineConfig(
        max_workers=pick(_env_int(env, "ACTIONCI_MAX_WORKERS"), file_cfg.max_workers, None),
        action_timeout=pick(_env_float(env, "ACTIONCI_ACTION_TIMEOUT"), file_cfg.action_timeout, None),
        database_url=pick(env.get("ACTIONCI_DATABASE_URL") or None, file_cfg.database_url, DEFAULT_DATABASE_URL),
        workspace_dir=pick(env.get("ACTIONCI_WORKSPACE_DIR") or None, file_cfg.workspace_dir, None),
        keep_workspaces=pick(_env_bool(env, "ACTIONCI_KEEP_WORKSPACES"), file_cfg.keep_workspaces, False),
        aliases=dict(file_cfg.aliases),
    )
