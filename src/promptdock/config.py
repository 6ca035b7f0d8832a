from __future__ import annotations

import json
import os
import stat
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

from platformdirs import user_config_path

DEFAULT_REGISTRY_URL = "https://jeffreysprompts.com/api/registry"
DEFAULT_TIMEOUT_S = 2.0
DEFAULT_CACHE_TTL_S = 3600

CACHE_FILENAME = "registry-cache.json"
META_FILENAME = "registry-meta.json"
OFFLINE_LIBRARY_FILENAME = "library.json"
PROJECT_SKILLS_DIR = ".claude/skills"


@dataclass(frozen=True)
class Config:
    home: str
    registry_url: str = DEFAULT_REGISTRY_URL
    cache_path: str = ""
    meta_path: str = ""
    cache_ttl_s: float = DEFAULT_CACHE_TTL_S
    timeout_s: float = DEFAULT_TIMEOUT_S
    auto_refresh: bool = True
    local_prompts_enabled: bool = True
    local_prompts_dir: str = ""
    offline_library_path: str = ""
    personal_skills_dir: str = ""
    project_skills_dir: str = ""

    def __post_init__(self) -> None:
        # Empty paths are filled from home so a config file only needs overrides.
        home = Path(self.home).expanduser()
        defaults = {
            "cache_path": home / CACHE_FILENAME,
            "meta_path": home / META_FILENAME,
            "local_prompts_dir": home / "local",
            "offline_library_path": home / "offline" / OFFLINE_LIBRARY_FILENAME,
            "personal_skills_dir": home / "skills",
            "project_skills_dir": Path.cwd() / PROJECT_SKILLS_DIR,
        }
        for name, default in defaults.items():
            if not getattr(self, name):
                object.__setattr__(self, name, str(default))


def home_dir() -> Path:
    if env := os.getenv("PROMPTDOCK_HOME"):
        return Path(env).expanduser()
    return user_config_path("promptdock")


def config_path(path_override: str | Path | None = None) -> Path:
    if path_override is not None:
        return Path(path_override).expanduser()
    if env := os.getenv("PROMPTDOCK_CONFIG_PATH"):
        return Path(env).expanduser()
    return home_dir() / "config.json"


def _read_raw(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return {}
    return raw if isinstance(raw, dict) else {}


def load_config(path_override: str | Path | None = None, *, apply_env: bool = True) -> Config:
    raw = _read_raw(config_path(path_override))
    allowed = {f.name for f in fields(Config)}
    filtered: dict[str, Any] = {k: v for k, v in raw.items() if k in allowed}
    filtered.setdefault("home", str(home_dir()))

    # Env overrides the file; CLI flags are applied later with with_overrides().
    if not apply_env:
        return Config(**filtered)
    if env_url := os.getenv("PROMPTDOCK_REGISTRY_URL"):
        filtered["registry_url"] = env_url
    if env_timeout := os.getenv("PROMPTDOCK_TIMEOUT_S"):
        try:
            filtered["timeout_s"] = float(env_timeout)
        except ValueError:
            pass
    return Config(**filtered)


def with_overrides(cfg: Config, *, registry_url: str | None = None, timeout_s: float | None = None) -> Config:
    changes: dict[str, Any] = {}
    if registry_url:
        changes["registry_url"] = registry_url
    if timeout_s is not None and timeout_s > 0:
        changes["timeout_s"] = float(timeout_s)
    return replace(cfg, **changes) if changes else cfg


def save_config(cfg: Config, path_override: str | Path | None = None) -> Path:
    from .store import write_json_atomic

    path = config_path(path_override)
    # Only persist what differs from the defaults; derived paths stay derived.
    defaults = asdict(Config(home=cfg.home))
    data = {k: v for k, v in asdict(cfg).items() if k != "home" and v != defaults[k]}
    write_json_atomic(path, data)

    try:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
    except OSError:
        pass

    return path
