"""MCP tool definitions wrapping the timelog engine."""

from __future__ import annotations

import base64
import binascii
from typing import Any

from .engine import TimelogEngine
from .errors import (
    ConfigError,
    DecodeError,
    FileIOError,
    ImportFailedError,
    InvalidRecordError,
    RecordNotFoundError,
    StoreError,
    TimelogError,
)
from .models import format_timestamp, parse_timestamp

_KINDS = ["timeline", "inspiration", "moment"]


def make_tools(engine: TimelogEngine) -> dict[str, dict]:
    """Create MCP tool definitions for the timelog engine.

    Returns:
        Dict mapping tool names to their definitions.
    """

    tools = {}

    # ========== entries ==========
    tools["timelog_add"] = {
        "name": "timelog_add",
        "description": "Add a new entry to the timelog. Tags are written inline as #tag.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "Entry text, may contain #tags",
                },
                "kind": {
                    "type": "string",
                    "enum": _KINDS,
                    "description": "Entry classification (default: timeline)",
                },
                "timestamp": {
                    "type": "string",
                    "description": "ISO 8601 time of the entry (default: now)",
                },
                "icon_name": {
                    "type": "string",
                    "description": "Presentation icon hint",
                },
                "image_base64": {
                    "type": "string",
                    "description": "Attached image, base64 encoded",
                },
                "rich_format": {
                    "type": "string",
                    "description": "Style-span document whose text equals content",
                },
                "is_highlighted": {
                    "type": "boolean",
                    "description": "Also show in the inspiration collection",
                },
            },
        },
    }

    tools["timelog_read"] = {
        "name": "timelog_read",
        "description": "Read entries newest first, or a single entry by id.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "entry_id": {"type": "string", "description": "Read one entry"},
                "kind": {"type": "string", "enum": _KINDS, "description": "Restrict to one kind"},
                "limit": {"type": "integer", "minimum": 0, "description": "Maximum entries to return"},
            },
        },
    }

    tools["timelog_delete"] = {
        "name": "timelog_delete",
        "description": "Delete an entry by id.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "entry_id": {"type": "string", "description": "Entry to delete"},
            },
            "required": ["entry_id"],
        },
    }

    tools["timelog_segments"] = {
        "name": "timelog_segments",
        "description": "Split an entry into styled tag/text/separator segments for rendering.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "entry_id": {"type": "string", "description": "Entry to segment"},
                "highlight": {"type": "string", "description": "Search text to highlight"},
            },
            "required": ["entry_id"],
        },
    }

    tools["timelog_search"] = {
        "name": "timelog_search",
        "description": "Case-insensitive search of entry text with an optional filter.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "Text to look for"},
                "filter": {
                    "type": "string",
                    "enum": ["all", "has_image", "text_only", "recent"],
                    "description": "Secondary filter (default: all)",
                },
                "kind": {"type": "string", "enum": _KINDS, "description": "Restrict to one kind"},
            },
        },
    }

    # ========== tags ==========
    tools["tags_top"] = {
        "name": "tags_top",
        "description": "Most used #tags with their counts.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "limit": {"type": "integer", "description": "Number of tags (default from config)"},
                "kind": {"type": "string", "enum": _KINDS, "description": "Restrict to one kind"},
            },
        },
    }

    tools["tags_filter"] = {
        "name": "tags_filter",
        "description": "Entries carrying a given #tag.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "tag": {"type": "string", "description": "Tag, with or without the leading #"},
                "kind": {"type": "string", "enum": _KINDS, "description": "Restrict to one kind"},
            },
            "required": ["tag"],
        },
    }

    # ========== backups ==========
    tools["backup_export"] = {
        "name": "backup_export",
        "description": "Export every entry to a new JSON backup file.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    tools["backup_list"] = {
        "name": "backup_list",
        "description": "List backup files, newest first.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    tools["backup_import"] = {
        "name": "backup_import",
        "description": "Import a backup file. 'merge' adds entries; 'overwrite' deletes all entries first.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Backup file path or name"},
                "policy": {
                    "type": "string",
                    "enum": ["merge", "overwrite"],
                    "description": "Import policy (default: merge)",
                },
            },
            "required": ["path"],
        },
    }

    tools["backup_delete"] = {
        "name": "backup_delete",
        "description": "Permanently delete a backup file. Cannot be undone.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Backup file path or name"},
            },
            "required": ["path"],
        },
    }

    # ========== duplicates ==========
    tools["dedup_find"] = {
        "name": "dedup_find",
        "description": "Show groups of duplicate entries (same text, same day, same image presence).",
        "inputSchema": {"type": "object", "properties": {}},
    }

    tools["dedup_remove"] = {
        "name": "dedup_remove",
        "description": "Remove duplicate entries, keeping the first stored entry of each group.",
        "inputSchema": {"type": "object", "properties": {}},
    }

    return tools


def _decode_image_argument(value: Any) -> Any:
    if value is None:
        return None
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise ValueError(f"image_base64 is not valid base64: {e}") from e


async def execute_tool(engine: TimelogEngine, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Execute a timelog tool and return the result.

    Args:
        engine: TimelogEngine instance
        name: Tool name
        arguments: Tool arguments

    Returns:
        Result dict with success status and data or error
    """
    try:
        if name == "timelog_add":
            timestamp = arguments.get("timestamp")
            record = engine.add_entry(
                content=arguments.get("content", ""),
                kind=arguments.get("kind", "timeline"),
                timestamp=parse_timestamp(timestamp) if timestamp else None,
                icon_name=arguments.get("icon_name"),
                image_bytes=_decode_image_argument(arguments.get("image_base64")),
                rich_format=arguments.get("rich_format"),
                is_highlighted=arguments.get("is_highlighted", False),
            )
            return {
                "success": True,
                "entry_id": record.id,
                "timestamp": format_timestamp(record.timestamp),
                "message": f"Entry {record.id} added",
            }

        elif name == "timelog_read":
            if arguments.get("entry_id"):
                record = engine.get_entry(arguments["entry_id"])
                return {"success": True, "count": 1, "entries": [record.to_dict()]}
            records = engine.list_entries(kind=arguments.get("kind"))
            limit = arguments.get("limit")
            if limit is not None:
                if limit < 0:
                    raise ValueError(f"limit must not be negative, got {limit}")
                records = records[:limit]
            return {
                "success": True,
                "count": len(records),
                "entries": [r.to_dict() for r in records],
            }

        elif name == "timelog_delete":
            engine.delete_entry(arguments["entry_id"])
            return {
                "success": True,
                "entry_id": arguments["entry_id"],
                "message": f"Entry {arguments['entry_id']} deleted",
            }

        elif name == "timelog_segments":
            segments = engine.segments_for(arguments["entry_id"], highlight=arguments.get("highlight"))
            return {
                "success": True,
                "entry_id": arguments["entry_id"],
                "segments": [s.to_dict() for s in segments],
            }

        elif name == "timelog_search":
            records = engine.search(
                text=arguments.get("text", ""),
                search_filter=arguments.get("filter", "all"),
                kind=arguments.get("kind"),
            )
            return {
                "success": True,
                "count": len(records),
                "entries": [r.to_dict() for r in records],
            }

        elif name == "tags_top":
            ranked = engine.top_tags(limit=arguments.get("limit"), kind=arguments.get("kind"))
            return {
                "success": True,
                "tags": [{"tag": tag, "count": count} for tag, count in ranked],
            }

        elif name == "tags_filter":
            records = engine.entries_with_tag(arguments["tag"], kind=arguments.get("kind"))
            return {
                "success": True,
                "tag": arguments["tag"],
                "count": len(records),
                "entries": [r.to_dict() for r in records],
            }

        elif name == "backup_export":
            path = engine.export_backup()
            return {
                "success": True,
                "path": str(path),
                "message": f"Backup written to {path}",
            }

        elif name == "backup_list":
            paths = engine.list_backups()
            return {
                "success": True,
                "count": len(paths),
                "backups": [{"name": p.name, "path": str(p)} for p in paths],
            }

        elif name == "backup_import":
            result = engine.import_backup(arguments["path"], policy=arguments.get("policy", "merge"))
            return {
                "success": True,
                **result.to_dict(),
                "message": f"Imported {result.inserted_count} entries, skipped {result.skipped_count}",
            }

        elif name == "backup_delete":
            path = engine.delete_backup(arguments["path"])
            return {
                "success": True,
                "path": str(path),
                "message": f"Deleted {path.name}",
            }

        elif name == "dedup_find":
            groups = engine.find_duplicates()
            return {
                "success": True,
                "group_count": len(groups),
                "duplicate_count": sum(len(g) - 1 for g in groups),
                "groups": [[r.to_dict() for r in group] for group in groups],
            }

        elif name == "dedup_remove":
            removed = engine.remove_duplicates()
            return {
                "success": True,
                "removed_count": removed,
                "message": f"Removed {removed} duplicate entries",
            }

        else:
            return {
                "success": False,
                "error": f"Unknown tool: {name}",
            }

    except DecodeError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "decode_error",
            "suggestion": "The file is not a timelog backup; the store was not changed",
        }

    except ImportFailedError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "import_failed",
            "inserted_count": e.inserted_count,
            "suggestion": "Entries inserted before the failure remain; run dedup_remove after retrying",
        }

    except StoreError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "store_error",
        }

    except FileIOError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "file_io_error",
        }

    except RecordNotFoundError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "not_found",
            "suggestion": "Use timelog_read to list entry ids",
        }

    except InvalidRecordError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_record",
        }

    except ConfigError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "config_error",
        }

    except TimelogError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "timelog_error",
        }

    except KeyError as e:
        return {
            "success": False,
            "error": f"Missing argument: {e.args[0]}",
            "error_type": "invalid_argument",
        }

    except ValueError as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "invalid_argument",
        }

    except Exception as e:
        return {
            "success": False,
            "error": str(e),
            "error_type": "unexpected_error",
        }
