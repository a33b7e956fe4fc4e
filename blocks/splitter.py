"""Incremental block splitting.

``process_new_content`` is fed the whole response text so far and returns a new
registry version. New characters are replayed one at a time, so the finalized
blocks never depend on how the caller chunked the stream.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from blocks.ast_parser import fallback_paragraph, parse_block_content
from blocks.debug import StreamObserver, build_snapshot
from blocks.patterns import (
    BLOCK_PATTERNS,
    detect_block_type,
    detect_partial_block_type,
    is_code_block_closed,
    is_component_closed,
)
from blocks.registry import (
    INITIAL_REGISTRY,
    ActiveBlock,
    BlockRegistry,
    BlockType,
    StableBlock,
    generate_block_id,
    hash_content,
)
from dsl.component_parser import extract_component_data
from inline.tag_state import INITIAL_TAG_STATE, update_tag_state

logger = logging.getLogger(__name__)

Parser = Callable[[str], Any]

_LEADING_NEWLINES = re.compile(r"^[\r\n]+")
_BLANK_LINES = re.compile(r"\n\n+")
_HEADING_LEVEL = re.compile(r"^(#{1,6})")
_FENCE_LANGUAGE = re.compile(r"^(?:`{3,}|~{3,})(\w*)")
_ORDERED_ITEM = re.compile(r"^\s*\d+\.")


# ---- finalization ----
def _cells(row: str) -> List[str]:
    return [cell.strip() for cell in row.split("|") if cell.strip()]


def extract_block_meta(content: str, block_type: BlockType) -> Dict[str, Any]:
    if block_type == BlockType.HEADING:
        m = _HEADING_LEVEL.match(content)
        return {"level": len(m.group(1)) if m else 1}
    if block_type == BlockType.CODE_BLOCK:
        m = _FENCE_LANGUAGE.match(content)
        return {"language": m.group(1) if m else ""}
    if block_type == BlockType.LIST:
        lines = content.split("\n")
        return {
            "ordered": bool(_ORDERED_ITEM.match(lines[0])),
            "items": [line for line in lines if line.strip()],
        }
    if block_type == BlockType.TABLE:
        lines = [line for line in content.split("\n") if line.strip()]
        return {
            "headers": _cells(lines[0]) if lines else [],
            "rows": [_cells(row) for row in lines[2:]],
        }
    if block_type == BlockType.COMPONENT:
        return extract_component_data(content).to_dict()
    if block_type == BlockType.FOOTNOTE:
        m = BLOCK_PATTERNS["footnote"].match(content.split("\n", 1)[0])
        return {"label": m.group(1) if m else ""}
    return {}


def finalize_block(
    content: str,
    block_type: BlockType,
    counter: int,
    start_pos: int,
    parser: Parser = parse_block_content,
) -> StableBlock:
    """Turn ``content`` into an immutable block with meta and a cached AST."""
    ast = None
    if block_type != BlockType.COMPONENT:
        try:
            ast = parser(content)
        except Exception as e:
            logger.warning("Block parse failed for %s-%d, using plain paragraph: %s", block_type.value, counter, e)
            ast = fallback_paragraph(content)

    block = StableBlock(
        id=generate_block_id(block_type, counter),
        type=block_type,
        content=content,
        content_hash=hash_content(content),
        start_pos=start_pos,
        end_pos=start_pos + len(content),
        meta=extract_block_meta(content, block_type),
        ast=ast,
    )
    logger.debug("finalized %s [%d:%d]", block.id, block.start_pos, block.end_pos)
    return block


# ---- per-character processing ----
@dataclass(frozen=True)
class _Step:
    registry: BlockRegistry
    cursor: int
    content: str
    start_pos: int
    parser: Parser

    def finalize(self, content: str, block_type: BlockType, start_pos: int) -> StableBlock:
        return finalize_block(content, block_type, self.registry.block_counter, start_pos, self.parser)

    def commit(
        self,
        blocks: tuple,
        counter: int,
        active: Optional[ActiveBlock],
    ) -> BlockRegistry:
        return replace(
            self.registry,
            blocks=blocks,
            active_block=active,
            cursor=self.cursor,
            block_counter=counter,
        )


def _trim_leading_newlines(content: str, start_pos: int):
    m = _LEADING_NEWLINES.match(content)
    if not m:
        return content, start_pos
    return content[m.end():], start_pos + m.end()


def _classify(content: str, fallback: BlockType = BlockType.PARAGRAPH) -> BlockType:
    first_line = content.split("\n", 1)[0]
    complete = detect_block_type(first_line)
    if complete:
        return complete.type
    partial = detect_partial_block_type(content)
    if partial:
        return partial.type
    return fallback


def _new_active(content: str, start_pos: int) -> Optional[ActiveBlock]:
    content, start_pos = _trim_leading_newlines(content, start_pos)
    if not content:
        return None
    return ActiveBlock(type=_classify(content), content=content, start_pos=start_pos)


def _update_active(step: _Step, block_type: Optional[BlockType] = None) -> BlockRegistry:
    active = step.registry.active_block
    if active is None:
        return step.commit(step.registry.blocks, step.registry.block_counter, None)
    new_type = block_type or _classify(step.content, fallback=active.type)
    return step.commit(
        step.registry.blocks,
        step.registry.block_counter,
        replace(active, content=step.content, type=new_type),
    )


def _close_explicit(step: _Step) -> Optional[BlockRegistry]:
    active = step.registry.active_block
    if active is None or active.type not in (BlockType.CODE_BLOCK, BlockType.COMPONENT):
        return None

    closed = (
        is_code_block_closed(step.content)
        if active.type == BlockType.CODE_BLOCK
        else is_component_closed(step.content)
    )
    if not closed:
        return _update_active(step, active.type)

    block = step.finalize(step.content, active.type, active.start_pos)
    return step.commit(step.registry.blocks + (block,), step.registry.block_counter + 1, None)


def _close_heading(step: _Step) -> Optional[BlockRegistry]:
    active = step.registry.active_block
    if active is None or active.type != BlockType.HEADING:
        return None
    nl = step.content.find("\n")
    if nl == -1:
        return None

    heading = step.finalize(step.content[:nl].rstrip(), BlockType.HEADING, active.start_pos)
    remainder = step.content[nl + 1:]
    next_active = _new_active(remainder, active.start_pos + nl + 1) if remainder.strip() else None
    return step.commit(step.registry.blocks + (heading,), step.registry.block_counter + 1, next_active)


def _split_paragraph(step: _Step) -> Optional[BlockRegistry]:
    active = step.registry.active_block
    if active is None or active.type != BlockType.PARAGRAPH:
        return None
    content = step.content
    last_nl = content.rfind("\n")
    if last_nl == -1 or last_nl >= len(content) - 1:
        return None

    detected = detect_block_type(content[last_nl + 1:])
    if not detected:
        return None

    split_at = last_nl
    next_type = detected.type
    if detected.type == BlockType.TABLE:
        header_start = content.rfind("\n", 0, last_nl) + 1
        if "|" in content[header_start:last_nl]:
            if header_start == 0:
                return _update_active(step, BlockType.TABLE)
            # keep the header row together with its separator
            split_at = header_start - 1

    paragraph = content[:split_at].rstrip()
    blocks = step.registry.blocks
    counter = step.registry.block_counter
    if paragraph:
        blocks = blocks + (step.finalize(paragraph, BlockType.PARAGRAPH, active.start_pos),)
        counter += 1

    rest, rest_start = _trim_leading_newlines(content[split_at + 1:], active.start_pos + split_at + 1)
    return step.commit(blocks, counter, ActiveBlock(type=next_type, content=rest, start_pos=rest_start))


def _split_blank_lines(step: _Step) -> Optional[BlockRegistry]:
    content = step.content
    if "\n\n" not in content:
        return None

    active = step.registry.active_block
    base = active.start_pos if active else step.start_pos
    segments = _BLANK_LINES.split(content)
    separators = _BLANK_LINES.findall(content)

    blocks = step.registry.blocks
    counter = step.registry.block_counter
    offset = 0
    for i, raw in enumerate(segments[:-1]):
        segment = raw.rstrip()
        if segment:
            detected = detect_block_type(segment.split("\n", 1)[0])
            if detected:
                block_type = detected.type
            elif i == 0 and active:
                block_type = active.type
            else:
                block_type = BlockType.PARAGRAPH
            blocks = blocks + (finalize_block(segment, block_type, counter, base + offset, step.parser),)
            counter += 1
        offset += len(raw) + len(separators[i])

    return step.commit(blocks, counter, _new_active(segments[-1], base + offset))


def _advance_active(step: _Step) -> BlockRegistry:
    if step.registry.active_block is None:
        active = _new_active(step.content, step.start_pos)
        if active is None:
            return step.commit(step.registry.blocks, step.registry.block_counter, None)
        registry = replace(step.registry, active_block=active, cursor=step.cursor)
        return _process_lines(replace(step, registry=registry, content=active.content, start_pos=active.start_pos))
    return _update_active(step)


def _process_lines(step: _Step) -> BlockRegistry:
    return (
        _close_explicit(step)
        or _close_heading(step)
        or _split_paragraph(step)
        or _split_blank_lines(step)
        or _advance_active(step)
    )


def _process_character(registry: BlockRegistry, full_text: str, end: int, parser: Parser) -> BlockRegistry:
    active = registry.active_block
    new_content = full_text[registry.cursor:end]
    step = _Step(
        registry=registry,
        cursor=end,
        content=active.content + new_content if active else new_content,
        start_pos=active.start_pos if active else registry.cursor,
        parser=parser,
    )
    result = _process_lines(step)
    if result.active_block is None:
        return replace(result, active_tag_state=INITIAL_TAG_STATE)
    return replace(
        result,
        active_tag_state=update_tag_state(result.active_tag_state, result.active_block.content),
    )


# ---- public API ----
def process_new_content(
    registry: BlockRegistry,
    full_text: str,
    *,
    parser: Parser = parse_block_content,
    observer: Optional[StreamObserver] = None,
) -> BlockRegistry:
    """Advance ``registry`` to cover ``full_text``.

    ``full_text`` must extend the text previously seen; anything not longer
    than the cursor is ignored. Callers that detect a diverged stream start
    over from :func:`reset_registry`.
    """
    if len(full_text) <= registry.cursor:
        return registry

    logger.debug("process_new_content cursor=%d incoming=%d", registry.cursor, len(full_text))
    current = registry
    for end in range(registry.cursor + 1, len(full_text) + 1):
        current = _process_character(current, full_text, end, parser)

    if observer is not None:
        observer.on_update(build_snapshot(registry, current, full_text))
    return current


def finalize_active_block(registry: BlockRegistry, *, parser: Parser = parse_block_content) -> BlockRegistry:
    """Force the active block into a stable block at the end of a stream."""
    active = registry.active_block
    if active is None or not active.content.strip():
        return registry

    block = finalize_block(active.content.rstrip(), active.type, registry.block_counter, active.start_pos, parser)
    return replace(
        registry,
        blocks=registry.blocks + (block,),
        active_block=None,
        active_tag_state=INITIAL_TAG_STATE,
        block_counter=registry.block_counter + 1,
    )


def reset_registry() -> BlockRegistry:
    return INITIAL_REGISTRY
