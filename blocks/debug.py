from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from rich.table import Table

from blocks.registry import BlockRegistry
from inline.autofix import fix_incomplete_markdown

PREVIEW_CHARS = 60


def _preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    text = text.replace("\n", "\\n")
    return text if len(text) <= limit else text[: limit - 1] + "…"


@dataclass
class DebugSnapshot:
    position: int
    total_length: int
    new_chars: str
    new_char_count: int
    blocks: List[Dict[str, Any]] = field(default_factory=list)
    active: Optional[Dict[str, Any]] = None
    tag_stack: List[Dict[str, Any]] = field(default_factory=list)
    fixed_preview: str = ""
    timestamp: float = 0.0
    delta_ms: Optional[float] = None


class StreamObserver(Protocol):
    def on_update(self, snapshot: DebugSnapshot) -> None: ...


def build_snapshot(previous: BlockRegistry, current: BlockRegistry, full_text: str) -> DebugSnapshot:
    """Describe what one ``process_new_content`` call did."""
    new_chars = full_text[previous.cursor:current.cursor]
    active = current.active_block
    return DebugSnapshot(
        position=current.cursor,
        total_length=len(full_text),
        new_chars=new_chars,
        new_char_count=len(new_chars),
        blocks=[
            {"id": b.id, "type": b.type.value, "length": len(b.content), "content": _preview(b.content)}
            for b in current.blocks
        ],
        active=(
            {"type": active.type.value, "length": len(active.content), "content": _preview(active.content)}
            if active
            else None
        ),
        tag_stack=[
            {"type": t.type, "position": t.position, "marker": t.marker}
            for t in current.active_tag_state.stack
        ],
        fixed_preview=(
            _preview(fix_incomplete_markdown(active.content, current.active_tag_state)) if active else ""
        ),
        timestamp=time.time(),
    )


class DebugRecorder:
    """Collects debug snapshots and supports JSON persistence and a table view."""

    def __init__(self, limit: Optional[int] = None) -> None:
        self.version = 1
        self.limit = limit
        self.snapshots: List[DebugSnapshot] = []

    def on_update(self, snapshot: DebugSnapshot) -> None:
        if self.snapshots:
            snapshot.delta_ms = (snapshot.timestamp - self.snapshots[-1].timestamp) * 1000.0
        self.snapshots.append(snapshot)
        if self.limit is not None and len(self.snapshots) > self.limit:
            del self.snapshots[0]

    @property
    def latest(self) -> Optional[DebugSnapshot]:
        return self.snapshots[-1] if self.snapshots else None

    # ---- persistence ----
    def to_json_obj(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "count": len(self.snapshots),
            "snapshots": [asdict(s) for s in self.snapshots],
        }

    def save_json(self, path: str | Path) -> str:
        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            json.dump(self.to_json_obj(), f, ensure_ascii=False, indent=2)
        return str(out_path)

    # ---- display ----
    def render_table(self, snapshot: Optional[DebugSnapshot] = None) -> Table:
        snap = snapshot or self.latest
        table = Table(title="stream state", show_lines=False, expand=False)
        table.add_column("id", style="cyan", no_wrap=True)
        table.add_column("type", style="magenta")
        table.add_column("len", justify="right")
        table.add_column("content")
        if snap is None:
            return table

        for block in snap.blocks:
            table.add_row(block["id"], block["type"], str(block["length"]), block["content"])
        if snap.active:
            table.add_row("active", snap.active["type"], str(snap.active["length"]), snap.active["content"], style="yellow")
            if snap.tag_stack:
                tags = " ".join(f"{t['type']}@{t['position']}" for t in snap.tag_stack)
                table.add_row("tags", "", "", tags, style="dim")
            table.add_row("fixed", "", "", snap.fixed_preview, style="green")

        delta = f" +{snap.delta_ms:.1f}ms" if snap.delta_ms is not None else ""
        table.caption = f"pos {snap.position}/{snap.total_length}, +{snap.new_char_count} chars{delta}"
        return table
