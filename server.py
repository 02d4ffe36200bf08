#!/usr/bin/env python3
"""
Arrangement MCP Server - robust timeline edits for a music host's arrangement.

Provides tools to list, lengthen, shorten, move, duplicate, split, slice and
update segments on an arrangement track. Edits go through a segment store: a
remote host bridge by default, or an in-memory store for offline use.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Sequence

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from arrangement.config import EngineConfig
from arrangement.editor import ArrangementEditor
from arrangement.errors import StaleReference, StoreError
from arrangement.memory_store import InMemorySegmentStore
from arrangement.models import OperationResult, SegmentKey, SegmentProps, parse_beats
from arrangement.remote import HostConnection, RemoteSegmentStore
from arrangement.store import SegmentStore, reacquire, read_track

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("arrangement-mcp-server")

server = Server("arrangement-mcp-server")
STORE_MODE = os.environ.get("ARRANGEMENT_STORE", "remote")
HOST = os.environ.get("ARRANGEMENT_HOST", "localhost")
PORT = int(os.environ.get("ARRANGEMENT_PORT", "9877"))

_store: SegmentStore | None = None
_config: EngineConfig | None = None


# ============================================================================
# STORE SETUP
# ============================================================================

def get_config() -> EngineConfig:
    global _config
    if _config is None:
        _config = EngineConfig.from_env()
    return _config


def get_store() -> SegmentStore:
    """Return the active store, creating it from ARRANGEMENT_STORE on first use."""
    global _store
    if _store is None:
        if STORE_MODE == "memory":
            _store = InMemorySegmentStore()
        elif STORE_MODE == "remote":
            _store = RemoteSegmentStore(HostConnection(HOST, PORT))
        else:
            raise ValueError(f"Unknown ARRANGEMENT_STORE '{STORE_MODE}' (use 'remote' or 'memory')")
        logger.info(f"Using {STORE_MODE} segment store")
    return _store


def set_store(store: SegmentStore | None, config: EngineConfig | None = None) -> None:
    """Replace the active store (and optionally the config)."""
    global _store, _config
    _store = store
    _config = config


def close_store() -> None:
    """Drop the active store, closing the host bridge socket if there is one."""
    global _store
    if isinstance(_store, RemoteSegmentStore):
        _store.connection.disconnect()
    _store = None


def get_editor() -> ArrangementEditor:
    return ArrangementEditor(get_store(), get_config())


# ============================================================================
# ARGUMENT PARSING
# ============================================================================

def _beats(value: Any) -> float:
    """Parse a position given as beats or "bar|beat"."""
    return parse_beats(value, get_config().time_signature)


def _duration(value: Any) -> float:
    """Parse a length given as beats or "bars:beats"."""
    return parse_beats(value, get_config().time_signature, duration=True)


def _segment_key(arguments: dict) -> SegmentKey:
    return SegmentKey(
        track=int(arguments["track"]),
        position=_beats(arguments["position"]),
        content_ref=arguments.get("content_ref"),
    )


# ============================================================================
# FORMATTING
# ============================================================================

def format_position(beats: float) -> str:
    return f"{get_config().time_signature.beats_to_bar_beat(beats)} ({beats:g})"


def format_segments(segments: list[SegmentProps]) -> str:
    result = "| # | Start | End | Length | Kind | Looping | Content |\n"
    result += "|---|-------|-----|--------|------|---------|---------|\n"
    for i, s in enumerate(segments, 1):
        result += (f"| {i} | {format_position(s.start)} | {format_position(s.end)} | "
                   f"{s.length:g} | {s.kind.value} | {'yes' if s.looping else 'no'} | "
                   f"{s.content_ref or '-'} |\n")
    return result


def format_result(title: str, result: OperationResult) -> str:
    text = f"# {title}\n\n{result.summary()}\n"
    if result.warnings:
        text += "\n" + "\n".join(f"- Warning: {w}" for w in result.warnings) + "\n"
    if result.segments:
        text += "\n" + format_segments(result.segments)
    return text


# ============================================================================
# TOOLS
# ============================================================================

_SEGMENT_PROPERTIES = {
    "track": {"type": "integer", "description": "Track index"},
    "position": {
        "type": ["number", "string"],
        "description": "Current segment start, in beats or bar|beat (e.g. '2|1')",
    },
    "content_ref": {"type": "string", "description": "Content reference, to disambiguate"},
}


@server.list_tools()
async def list_tools() -> list[Tool]:
    return [
        # ===== READ TOOLS =====
        Tool(
            name="list_segments",
            description="List all segments on an arrangement track with positions, lengths and kinds",
            inputSchema={
                "type": "object",
                "properties": {"track": {"type": "integer", "description": "Track index"}},
                "required": ["track"]
            }
        ),

        # ===== EDIT TOOLS =====
        Tool(
            name="lengthen_segment",
            description=(
                "Lengthen a segment. Resizable segments reveal more content; looping and "
                "content-fixed segments are tiled. Capped when the content runs out."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_SEGMENT_PROPERTIES,
                    "length": {
                        "type": ["number", "string"],
                        "description": "Target length in beats or bars:beats (e.g. '2:0')",
                    },
                },
                "required": ["track", "position", "length"]
            }
        ),
        Tool(
            name="shorten_segment",
            description="Shorten a segment from its end",
            inputSchema={
                "type": "object",
                "properties": {
                    **_SEGMENT_PROPERTIES,
                    "length": {
                        "type": ["number", "string"],
                        "description": "Target length in beats or bars:beats",
                    },
                },
                "required": ["track", "position", "length"]
            }
        ),
        Tool(
            name="move_segment",
            description="Move a segment to a new position on its track; content under the target is cleared",
            inputSchema={
                "type": "object",
                "properties": {
                    **_SEGMENT_PROPERTIES,
                    "new_position": {
                        "type": ["number", "string"],
                        "description": "Target start in beats or bar|beat",
                    },
                },
                "required": ["track", "position", "new_position"]
            }
        ),
        Tool(
            name="duplicate_segment",
            description=(
                "Copy a segment to a new position, optionally at a different length. Longer "
                "copies are tiled or revealed like lengthen_segment; content under the target "
                "is cleared"
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    **_SEGMENT_PROPERTIES,
                    "new_position": {
                        "type": ["number", "string"],
                        "description": "Start of the copy in beats or bar|beat",
                    },
                    "length": {
                        "type": ["number", "string"],
                        "description": "Length of the copy in beats or bars:beats (default: source length)",
                    },
                },
                "required": ["track", "position", "new_position"]
            }
        ),
        Tool(
            name="split_segment",
            description="Split a segment at offsets from its start (max 32 points)",
            inputSchema={
                "type": "object",
                "properties": {
                    **_SEGMENT_PROPERTIES,
                    "points": {
                        "type": "array",
                        "items": {"type": ["number", "string"]},
                        "description": (
                            "Split offsets from the segment start, in beats or segment-relative "
                            "bar|beat ('1|1' is the segment start)"
                        ),
                    },
                },
                "required": ["track", "position", "points"]
            }
        ),
        Tool(
            name="slice_segment",
            description="Cut a segment into consecutive equal-length pieces (max 64 slices)",
            inputSchema={
                "type": "object",
                "properties": {
                    **_SEGMENT_PROPERTIES,
                    "slice_length": {
                        "type": ["number", "string"],
                        "description": "Slice length in beats or bars:beats (e.g. '1:0')",
                    },
                },
                "required": ["track", "position", "slice_length"]
            }
        ),
        Tool(
            name="update_segment",
            description="Move and/or resize a segment in one call; the move happens first",
            inputSchema={
                "type": "object",
                "properties": {
                    **_SEGMENT_PROPERTIES,
                    "new_position": {"type": ["number", "string"]},
                    "length": {"type": ["number", "string"]},
                },
                "required": ["track", "position"]
            }
        ),
    ]


async def handle_list_segments(arguments: dict) -> Sequence[TextContent]:
    track = int(arguments["track"])
    segments = read_track(get_store(), track)
    if not segments:
        return [TextContent(type="text", text=f"No segments on track {track}")]
    result = f"# Segments on track {track}\n\n" + format_segments(segments)
    return [TextContent(type="text", text=result)]


async def handle_lengthen_segment(arguments: dict) -> Sequence[TextContent]:
    result = get_editor().lengthen(_segment_key(arguments), _duration(arguments["length"]))
    return [TextContent(type="text", text=format_result("Lengthened segment", result))]


async def handle_shorten_segment(arguments: dict) -> Sequence[TextContent]:
    result = get_editor().shorten(_segment_key(arguments), _duration(arguments["length"]))
    return [TextContent(type="text", text=format_result("Shortened segment", result))]


async def handle_move_segment(arguments: dict) -> Sequence[TextContent]:
    result = get_editor().move(_segment_key(arguments), _beats(arguments["new_position"]))
    return [TextContent(type="text", text=format_result("Moved segment", result))]


async def handle_duplicate_segment(arguments: dict) -> Sequence[TextContent]:
    length = arguments.get("length")
    result = get_editor().duplicate(
        _segment_key(arguments),
        _beats(arguments["new_position"]),
        length=_duration(length) if length is not None else None,
    )
    return [TextContent(type="text", text=format_result("Duplicated segment", result))]


async def handle_split_segment(arguments: dict) -> Sequence[TextContent]:
    editor = get_editor()
    props = reacquire(editor.store, _segment_key(arguments))
    points = [props.start + _beats(p) for p in arguments["points"]]
    pieces = editor.split(props.key, points)
    result = f"# Split segment into {len(pieces)} pieces\n\n" + format_segments(pieces)
    return [TextContent(type="text", text=result)]


async def handle_slice_segment(arguments: dict) -> Sequence[TextContent]:
    result = get_editor().slice(_segment_key(arguments), _duration(arguments["slice_length"]))
    return [TextContent(type="text", text=format_result("Sliced segment", result))]


async def handle_update_segment(arguments: dict) -> Sequence[TextContent]:
    new_position = arguments.get("new_position")
    length = arguments.get("length")
    result = get_editor().update(
        _segment_key(arguments),
        position=_beats(new_position) if new_position is not None else None,
        length=_duration(length) if length is not None else None,
    )
    return [TextContent(type="text", text=format_result("Updated segment", result))]


# ============================================================================
# TOOL DISPATCH
# ============================================================================

TOOL_HANDLERS = {
    # Read
    "list_segments": handle_list_segments,
    # Edit
    "lengthen_segment": handle_lengthen_segment,
    "shorten_segment": handle_shorten_segment,
    "move_segment": handle_move_segment,
    "duplicate_segment": handle_duplicate_segment,
    "split_segment": handle_split_segment,
    "slice_segment": handle_slice_segment,
    "update_segment": handle_update_segment,
}


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> Sequence[TextContent]:
    handler = TOOL_HANDLERS.get(name)
    if not handler:
        return [TextContent(type="text", text=f"Unknown tool: {name}")]
    try:
        return await handler(arguments)
    except StaleReference as e:
        return [TextContent(type="text", text=f"Segment not found: {e}")]
    except StoreError as e:
        logger.error(f"Tool {name} aborted: {e}")
        failed = OperationResult.failed(e.step, str(e))
        return [TextContent(type="text", text=format_result("Edit failed", failed))]
    except (KeyError, ValueError) as e:
        return [TextContent(type="text", text=f"Validation error: {e}")]
    except Exception as e:
        logger.exception(f"Error in tool {name}")
        return [TextContent(type="text", text=f"Error: {type(e).__name__}")]


# ============================================================================
# MAIN
# ============================================================================

async def main():
    try:
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())
    finally:
        close_store()


def main_sync():
    """Synchronous entry point for use as a console script."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    main_sync()
