"""MCP tool definitions wrapping the journal engine."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from .engine import JournalEngine
from .errors import (
    JournalError,
    MigrationError,
    NoSourceAssignmentError,
    NotFoundError,
    SpreadCreationError,
    TaskCancelledError,
    UnsupportedEntryKindError,
)
from .models import EventTiming, TaskStatus
from .periods import MultidayPreset, Period

_DATE = {
    "type": "string",
    "description": "ISO 8601 date or datetime (e.g. 2026-01-05); read in the journal's timezone",
}

_PERIOD = {
    "type": "string",
    "enum": ["year", "month", "day"],
    "description": "Preferred period (default: day)",
}


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def make_tools(engine: JournalEngine) -> dict[str, dict]:
    """Create MCP tool definitions for the journal engine.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== Spreads ==========
    tools["spread_create"] = {
        "name": "spread_create",
        "description": "Create a spread. Year/month/day spreads need a date; multiday spreads need start and end dates or a preset. Inbox entries matching the new spread are assigned to it.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "period": {
                    "type": "string",
                    "enum": ["year", "month", "day", "multiday"],
                },
                "date": _DATE,
                "end_date": {**_DATE, "description": "Multiday end date (inclusive)"},
                "preset": {
                    "type": "string",
                    "enum": [p.value for p in MultidayPreset],
                    "description": "Multiday preset relative to today",
                },
            },
            "required": ["period"],
        },
    }

    tools["spread_check"] = {
        "name": "spread_check",
        "description": "Check whether a spread could be created, without creating it.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "period": {"type": "string", "enum": ["year", "month", "day", "multiday"]},
                "date": _DATE,
                "end_date": _DATE,
            },
            "required": ["period", "date"],
        },
    }

    tools["spread_delete"] = {
        "name": "spread_delete",
        "description": "Delete a spread. Its tasks and notes move to the nearest parent spread, or to the Inbox if none exists. Entries are never deleted.",
        "inputSchema": {
            "type": "object",
            "properties": {"spread_id": {"type": "string"}},
            "required": ["spread_id"],
        },
    }

    tools["spread_list"] = {
        "name": "spread_list",
        "description": "List spreads as a year -> month -> day tree, with the spread selected for today.",
        "inputSchema": {
            "type": "object",
            "properties": {"date": {**_DATE, "description": "Date to select for (default: today)"}},
        },
    }

    tools["spread_contents"] = {
        "name": "spread_contents",
        "description": "Tasks, notes, and events shown on a spread.",
        "inputSchema": {
            "type": "object",
            "properties": {"spread_id": {"type": "string"}},
            "required": ["spread_id"],
        },
    }

    # ========== Entries ==========
    tools["task_add"] = {
        "name": "task_add",
        "description": "Add a task. It is assigned to the spread matching its period and date, or goes to the Inbox.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "date": _DATE,
                "period": _PERIOD,
                "status": {"type": "string", "enum": ["open", "complete"]},
            },
            "required": ["title"],
        },
    }

    tools["task_set_status"] = {
        "name": "task_set_status",
        "description": "Complete, cancel, or reopen a task.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "task_id": {"type": "string"},
                "status": {"type": "string", "enum": ["open", "complete", "cancelled"]},
            },
            "required": ["task_id", "status"],
        },
    }

    tools["note_add"] = {
        "name": "note_add",
        "description": "Add a note. It is assigned like a task and only migrates when asked.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "title": {"type": "string"},
                "content": {"type": "string"},
                "date": _DATE,
                "period": _PERIOD,
            },
            "required": ["title"],
        },
    }

    if engine.config.events_enabled:
        tools["event_add"] = {
            "name": "event_add",
            "description": "Add an event. Events appear on every spread their dates overlap.",
            "inputSchema": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "start_date": _DATE,
                    "end_date": _DATE,
                    "timing": {"type": "string", "enum": [t.value for t in EventTiming]},
                    "start_time": _DATE,
                    "end_time": _DATE,
                },
                "required": ["title", "start_date"],
            },
        }

    tools["entry_get"] = {
        "name": "entry_get",
        "description": "Fetch any entry by id, including cancelled tasks.",
        "inputSchema": {
            "type": "object",
            "properties": {"entry_id": {"type": "string"}},
            "required": ["entry_id"],
        },
    }

    tools["inbox_list"] = {
        "name": "inbox_list",
        "description": "Tasks and notes not assigned to any existing spread.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    # ========== Migration ==========
    tools["entry_migrate"] = {
        "name": "entry_migrate",
        "description": "Move a task or note from one spread to another, keeping the source as migrated history.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "entry_id": {"type": "string"},
                "source_id": {"type": "string"},
                "destination_id": {"type": "string"},
            },
            "required": ["entry_id", "source_id", "destination_id"],
        },
    }

    tools["tasks_migrate_batch"] = {
        "name": "tasks_migrate_batch",
        "description": "Migrate several tasks between two spreads. Cancelled tasks are skipped.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "task_ids": {"type": "array", "items": {"type": "string"}},
                "source_id": {"type": "string"},
                "destination_id": {"type": "string"},
            },
            "required": ["task_ids", "source_id", "destination_id"],
        },
    }

    tools["tasks_eligible"] = {
        "name": "tasks_eligible",
        "description": "Open tasks on a parent spread that can be migrated into a child spread.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "source_id": {"type": "string"},
                "destination_id": {"type": "string"},
            },
            "required": ["source_id", "destination_id"],
        },
    }

    return tools


def _spread_summary(engine: JournalEngine, spread) -> dict:
    return {**spread.to_dict(), "label": spread.display_label(engine.calendar)}


async def execute_tool(engine: JournalEngine, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a journal tool and return the result.

    Args:
        engine: JournalEngine instance
        name: Tool name
        arguments: Tool arguments

    Returns:
        Result dict with success status and data or error
    """
    try:
        if name == "spread_create":
            period = Period(arguments["period"])
            if period is Period.MULTIDAY:
                if "preset" in arguments:
                    spread = engine.add_preset_spread(MultidayPreset(arguments["preset"]))
                else:
                    spread = engine.add_multiday_spread(
                        _parse_date(arguments["date"]), _parse_date(arguments["end_date"])
                    )
            else:
                spread = engine.add_spread(period, _parse_date(arguments["date"]))
            return {
                "success": True,
                "spread": _spread_summary(engine, spread),
                "inbox_count": engine.inbox_count,
                "message": f"Created {period.value} spread {spread.display_label(engine.calendar)}",
            }

        elif name == "spread_check":
            check = engine.check_spread(
                Period(arguments["period"]),
                _parse_date(arguments["date"]),
                _parse_date(arguments.get("end_date")),
            )
            return {
                "success": True,
                "result": check.value,
                "valid": check.is_valid,
                "message": check.message,
            }

        elif name == "spread_delete":
            reassigned = engine.delete_spread(arguments["spread_id"])
            return {
                "success": True,
                "reassigned_to": reassigned,
                "inbox_count": engine.inbox_count,
                "message": f"Deleted spread {arguments['spread_id']}",
            }

        elif name == "spread_list":
            hierarchy = engine.hierarchy()
            selected = hierarchy.initial_selection(_parse_date(arguments.get("date")) or engine.today)
            return {
                "success": True,
                "years": hierarchy.to_dict(),
                "selected_id": selected.id if selected else None,
            }

        elif name == "spread_contents":
            contents = engine.spread_contents(arguments["spread_id"])
            return {"success": True, **contents.to_dict()}

        elif name == "task_add":
            task = engine.add_task(
                title=arguments["title"],
                date=_parse_date(arguments.get("date")),
                period=Period(arguments.get("period", "day")),
                status=TaskStatus(arguments.get("status", "open")),
            )
            return {
                "success": True,
                "task": task.to_dict(),
                "in_inbox": not task.assignments,
            }

        elif name == "task_set_status":
            task = engine.set_task_status(arguments["task_id"], TaskStatus(arguments["status"]))
            return {"success": True, "task": task.to_dict()}

        elif name == "note_add":
            note = engine.add_note(
                title=arguments["title"],
                content=arguments.get("content", ""),
                date=_parse_date(arguments.get("date")),
                period=Period(arguments.get("period", "day")),
            )
            return {
                "success": True,
                "note": note.to_dict(),
                "in_inbox": not note.assignments,
            }

        elif name == "event_add":
            event = engine.add_event(
                title=arguments["title"],
                start_date=_parse_date(arguments["start_date"]),
                end_date=_parse_date(arguments.get("end_date")),
                timing=EventTiming(arguments.get("timing", "single_day")),
                start_time=_parse_date(arguments.get("start_time")),
                end_time=_parse_date(arguments.get("end_time")),
            )
            return {"success": True, "event": event.to_dict()}

        elif name == "entry_get":
            return {"success": True, "entry": engine.get_entry(arguments["entry_id"]).to_dict()}

        elif name == "inbox_list":
            entries = engine.inbox_entries()
            return {
                "success": True,
                "count": len(entries),
                "entries": [e.to_dict() for e in entries],
            }

        elif name == "entry_migrate":
            entry = engine.get_entry(arguments["entry_id"])
            if entry.kind.value == "note":
                updated = engine.migrate_note(entry.id, arguments["source_id"], arguments["destination_id"])
            else:
                updated = engine.migrate_task(entry.id, arguments["source_id"], arguments["destination_id"])
            return {"success": True, "entry": updated.to_dict()}

        elif name == "tasks_migrate_batch":
            migrated = engine.migrate_tasks_batch(
                arguments["task_ids"], arguments["source_id"], arguments["destination_id"]
            )
            return {
                "success": True,
                "migrated": [t.id for t in migrated],
                "message": f"Migrated {len(migrated)} tasks",
            }

        elif name == "tasks_eligible":
            tasks = engine.eligible_tasks_for_migration(arguments["source_id"], arguments["destination_id"])
            return {"success": True, "tasks": [t.to_dict() for t in tasks]}

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
            }

    except SpreadCreationError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "spread_creation",
            "reason": e.reason.value,
        }

    except NotFoundError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "not_found",
        }

    except NoSourceAssignmentError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "no_source_assignment",
            "suggestion": "Use spread_contents to find the spread the entry is on",
        }

    except TaskCancelledError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "task_cancelled",
            "suggestion": "Reopen the task with task_set_status before migrating it",
        }

    except UnsupportedEntryKindError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "unsupported_entry_kind",
        }

    except MigrationError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "migration_error",
        }

    except JournalError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "journal_error",
        }

    except (KeyError, ValueError) as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_arguments",
        }

    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
