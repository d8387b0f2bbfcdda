"""Configuration loading for Spread Journal.

Supports three tiers:
1. Simple config via .toml or .json - most users
2. Python config via .py - hooks such as on_change
3. Constructing JournalConfig directly - embedding and tests
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Python <3.11
    except ImportError:  # pragma: no cover
        tomllib = None

from .periods import FirstWeekday, JournalCalendar, MONDAY, SUNDAY


@dataclass
class JournalConfig:
    """Configuration for one journal."""

    name: str = "journal"
    root: Path = field(default_factory=Path.cwd)

    # Where the JSON repositories live (relative to root)
    data_dir: str = "journal_data"

    # Calendar
    timezone: str = "UTC"
    first_weekday: FirstWeekday = FirstWeekday.SYSTEM_DEFAULT
    # Weekday used when first_weekday is system_default (Python numbering)
    default_first_weekday: int = SUNDAY

    # Features
    events_enabled: bool = True
    parent_fallback: bool = False

    log_level: str = "INFO"

    # Hooks (populated from Python config)
    hooks: dict[str, Callable] = field(default_factory=dict)

    def get_data_path(self) -> Path:
        return self.root / self.data_dir

    def calendar(self) -> JournalCalendar:
        return JournalCalendar.for_zone(self.timezone, first_weekday=self.default_first_weekday)


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    if tomllib is None:
        raise ImportError("tomli required for TOML config: pip install tomli")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_python_config(path: Path) -> tuple[dict[str, Any], dict[str, Callable]]:
    """Load configuration from Python file.

    Returns:
        Tuple of (config_dict, hooks_dict)

    Convention:
        - CONFIG dict or config dict for static configuration
        - Functions named hook_* become hooks (hook_on_change -> "on_change")
    """
    spec = importlib.util.spec_from_file_location("journal_config", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python config from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["journal_config"] = module
    spec.loader.exec_module(module)

    config_dict = {}
    if hasattr(module, "CONFIG"):
        config_dict = module.CONFIG
    elif hasattr(module, "config"):
        config_dict = module.config

    hooks = {}
    for name in dir(module):
        if name.startswith("hook_"):
            hooks[name[5:]] = getattr(module, name)

    return config_dict, hooks


_WEEKDAY_NAMES = {"sunday": SUNDAY, "monday": MONDAY}


def dict_to_config(data: dict[str, Any], root: Path) -> JournalConfig:
    """Convert dictionary to JournalConfig."""
    config = JournalConfig(root=root)

    if "journal" in data:
        journal = data["journal"]
        if "name" in journal:
            config.name = journal["name"]
        if "data_dir" in journal:
            config.data_dir = journal["data_dir"]

    if "calendar" in data:
        cal = data["calendar"]
        if "timezone" in cal:
            config.timezone = cal["timezone"]
        if "first_weekday" in cal:
            config.first_weekday = FirstWeekday(cal["first_weekday"])
        if "default_first_weekday" in cal:
            value = cal["default_first_weekday"]
            if value not in _WEEKDAY_NAMES:
                raise ValueError(f"default_first_weekday must be one of {sorted(_WEEKDAY_NAMES)}")
            config.default_first_weekday = _WEEKDAY_NAMES[value]

    if "features" in data:
        features = data["features"]
        if "events_enabled" in features:
            config.events_enabled = bool(features["events_enabled"])

    if "assignment" in data:
        if "parent_fallback" in data["assignment"]:
            config.parent_fallback = bool(data["assignment"]["parent_fallback"])

    if "logging" in data:
        if "level" in data["logging"]:
            config.log_level = str(data["logging"]["level"]).upper()

    return config


def find_config_file(root: Path) -> Optional[Path]:
    """Find configuration file in the journal root.

    Search order:
    1. journal_config.py (most flexible)
    2. journal_config.toml
    3. journal_config.json
    4. .journal.toml
    5. .journal.json
    """
    candidates = [
        "journal_config.py",
        "journal_config.toml",
        "journal_config.json",
        ".journal.toml",
        ".journal.json",
    ]

    for name in candidates:
        path = root / name
        if path.exists():
            return path

    return None


def load_config(root: Path, config_path: Optional[Path] = None) -> JournalConfig:
    """Load journal configuration.

    Args:
        root: Directory the journal lives in
        config_path: Optional explicit path to config file

    Returns:
        JournalConfig instance
    """
    if config_path is None:
        config_path = find_config_file(root)

    if config_path is None:
        return JournalConfig(root=root)

    suffix = config_path.suffix.lower()

    if suffix == ".py":
        config_dict, hooks = load_python_config(config_path)
        config = dict_to_config(config_dict, root)
        config.hooks = hooks
        return config

    elif suffix == ".toml":
        return dict_to_config(load_toml_config(config_path), root)

    elif suffix == ".json":
        return dict_to_config(load_json_config(config_path), root)

    else:
        raise ValueError(f"Unsupported config file type: {suffix}")
