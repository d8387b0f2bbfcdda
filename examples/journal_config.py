"""Spread Journal Configuration - Python Example

Copy to your journal root as journal_config.py.

Convention:
- CONFIG dict for static configuration (same structure as TOML)
- Functions named hook_* become hooks
"""

import json
from pathlib import Path

# =============================================================================
# Static Configuration (same structure as TOML)
# =============================================================================

CONFIG = {
    "journal": {
        "name": "personal",
        "data_dir": "journal_data",
    },
    "calendar": {
        "timezone": "Europe/Berlin",
        "first_weekday": "monday",
    },
    "features": {
        "events_enabled": True,
    },
    "assignment": {
        # Walk day -> month -> year when no spread of the entry's own period exists
        "parent_fallback": False,
    },
    "logging": {
        "level": "INFO",
    },
}


# =============================================================================
# Hooks
# =============================================================================

def hook_on_change(event_name: str, payload: dict) -> None:
    """Called after every successful mutation.

    Appends one JSON line per change so another process can follow along.
    """
    feed = Path("journal_data") / "changes.jsonl"
    feed.parent.mkdir(parents=True, exist_ok=True)
    with open(feed, "a", encoding="utf-8") as f:
        f.write(json.dumps({"event": event_name, **payload}, default=str) + "\n")
