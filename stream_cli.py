#!/usr/bin/env python3
"""
stream_cli: replay markdown through the block splitter and render it live

Features
- Replays a file, stdin or a built-in preset N characters per tick, the way an
  LLM response would arrive
- Stable blocks are printed once; the in-progress block is shown auto-fixed in
  a live tail (Rich)
- Optional debug table of blocks, open inline tags and the fixed preview, with
  JSON export of every snapshot

Requirements
    pip install rich markdown-it-py
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from typing import Iterator, Optional

from rich.console import Console
from rich.logging import RichHandler

from blocks import INITIAL_REGISTRY, BlockRegistry, DebugRecorder, finalize_active_block, process_new_content
from render.markdown_live import BlockStreamRenderer

logger = logging.getLogger("stream_cli")


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


# ---------------- Configuration ----------------
DEFAULT_SPEED = _env_number("STREAMBLOCKS_SPEED", 5, int)
DEFAULT_DELAY = _env_number("STREAMBLOCKS_DELAY", 0.03, float)
DEFAULT_PRESET = "kitchen_sink"
DEBUG_HISTORY = 500
console = Console()
err_console = Console(stderr=True)

PRESETS = {
    "headers": "# H1\n## H2\n### H3\n#### H4\n##### H5\n###### H6",
    "emphasis": "Normal *italic* **bold** ***both*** ~~strike~~",
    "code_block": "```typescript\nconst x: number = 1;\nconsole.log(x);\n```",
    "lists": "- Item 1\n- Item 2\n  - Nested\n\n1. First\n2. Second",
    "table": "| Name | Age |\n|------|-----|\n| Alice | 30 |\n| Bob | 25 |",
    "blockquote": "> This is a quote\n> spanning multiple lines",
    "incomplete_bold": "This is **bold but never clo",
    "incomplete_code": "```javascript\nconst x = 1\n// no closing fence",
    "incomplete_link": "Check out [this link](https://exa",
    "component": (
        "Here is a status card:\n\n"
        '[{c:"StatusCard",p:{"title":"On-call","description":"Pager rotation for week 42",'
        '"priority":1,"tickets":7}}]\n\n'
        "More text."
    ),
    "nested_layout": (
        "A card with nested content:\n\n"
        '[{c:"Card",p:{"title":"Dashboard"},children:[\n'
        '  {c:"Stack",p:{"gap":12},children:[\n'
        '    {c:"StatusCard",p:{"title":"Active Tasks","priority":1,"tickets":8}},\n'
        '    {c:"StatusCard",p:{"title":"Backlog","priority":3,"tickets":23}}\n'
        "  ]}\n"
        "]}]\n\n"
        "Nested components render recursively!"
    ),
    "kitchen_sink": (
        "# Streamdown Test\n\n"
        "## Introduction\n"
        "This is **bold** and *italic* text.\n\n"
        "### Code Example\n"
        "```typescript\n"
        "interface User {\n  name: string;\n  age: number;\n}\n\n"
        "const greet = (user: User) => {\n  console.log(`Hello, ${user.name}!`);\n};\n"
        "```\n\n"
        "### Lists\n\n"
        "- First item\n- Second item\n  - Nested item\n\n"
        "1. Ordered first\n2. Ordered second\n\n"
        "### Table\n\n"
        "| Feature | Status |\n|---------|--------|\n| Headers | yes |\n| Code | yes |\n\n"
        "> This is a blockquote\n> with multiple lines\n\n"
        "---\n\n"
        "### Component Demo\n\n"
        '[{c:"StatusCard",p:{"title":"Sprint 42","description":"Feature development and bug fixes",'
        '"priority":2,"tickets":12}}]\n\n'
        "That's all folks!\n"
    ),
}


# ---------------- Replay core ----------------
def iter_prefixes(text: str, speed: int) -> Iterator[str]:
    """Yield growing prefixes of ``text``, ``speed`` characters at a time."""
    step = max(1, speed)
    for end in range(step, len(text) + step, step):
        yield text[: min(end, len(text))]


def replay(
    text: str,
    *,
    speed: int = DEFAULT_SPEED,
    delay: float = DEFAULT_DELAY,
    renderer: Optional[BlockStreamRenderer] = None,
    recorder: Optional[DebugRecorder] = None,
) -> BlockRegistry:
    """Feed ``text`` through the splitter and return the final registry."""
    registry = INITIAL_REGISTRY
    try:
        for prefix in iter_prefixes(text, speed):
            registry = process_new_content(registry, prefix, observer=recorder)
            if renderer:
                renderer.update(registry)
            if delay > 0:
                time.sleep(delay)
    except KeyboardInterrupt:
        logger.info("Replay interrupted at %d/%d chars", registry.cursor, len(text))
    finally:
        registry = finalize_active_block(registry)
        if renderer:
            renderer.update(registry, final=True)
    return registry


def load_source(path: Optional[str], preset: Optional[str]) -> str:
    if path == "-":
        return sys.stdin.read()
    if path:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    return PRESETS[preset or DEFAULT_PRESET]


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point with argument parsing."""
    parser = argparse.ArgumentParser(prog="stream_cli", description="Replay markdown as a simulated LLM stream")
    parser.add_argument("path", nargs="?", help="Markdown file to replay ('-' for stdin)")
    parser.add_argument("--preset", choices=sorted(PRESETS), help=f"Built-in sample (default {DEFAULT_PRESET})")
    parser.add_argument("--speed", type=int, default=DEFAULT_SPEED, help=f"Characters per tick (default {DEFAULT_SPEED})")
    parser.add_argument("--delay", type=float, default=DEFAULT_DELAY, help=f"Seconds between ticks (default {DEFAULT_DELAY})")
    parser.add_argument("--debug", action="store_true", help="Print the block/tag state table after replay")
    parser.add_argument("--save-debug", metavar="PATH", help="Write every debug snapshot to a JSON file")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )

    try:
        text = load_source(args.path, args.preset)
    except OSError as e:
        err_console.print(f"[red]error:[/red] {e}")
        return 1

    recorder = DebugRecorder(limit=DEBUG_HISTORY) if (args.debug or args.save_debug) else None
    registry = replay(
        text,
        speed=args.speed,
        delay=args.delay,
        renderer=BlockStreamRenderer(console=console),
        recorder=recorder,
    )

    if recorder and args.debug:
        console.print(recorder.render_table())
    if recorder and args.save_debug:
        out = recorder.save_json(args.save_debug)
        console.print(f"[dim]Saved debug snapshots → {out}[/dim]")
    logger.info("Replayed %d chars into %d blocks", len(text), len(registry.blocks))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
