from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from inline.tag_state import INITIAL_TAG_STATE, TagState


class BlockType(str, Enum):
    HEADING = "heading"
    PARAGRAPH = "paragraph"
    CODE_BLOCK = "code_block"
    LIST = "list"
    TABLE = "table"
    BLOCKQUOTE = "blockquote"
    HORIZONTAL_RULE = "horizontal_rule"
    IMAGE = "image"
    FOOTNOTE = "footnote"
    COMPONENT = "component"


_ID_PREFIXES = {
    BlockType.HEADING: "h",
    BlockType.PARAGRAPH: "p",
    BlockType.CODE_BLOCK: "c",
    BlockType.LIST: "l",
    BlockType.TABLE: "t",
    BlockType.BLOCKQUOTE: "q",
    BlockType.HORIZONTAL_RULE: "hr",
    BlockType.IMAGE: "img",
    BlockType.FOOTNOTE: "fn",
    BlockType.COMPONENT: "cmp",
}


def hash_content(text: str) -> int:
    """djb2-xor over code points, as an unsigned 32-bit int."""
    h = 5381
    for ch in text:
        h = (((h << 5) + h) ^ ord(ch)) & 0xFFFFFFFF
    return h


def generate_block_id(block_type: BlockType, counter: int) -> str:
    return f"{_ID_PREFIXES.get(block_type, 'b')}-{counter}"


@dataclass(frozen=True)
class StableBlock:
    """A finalized block. Never mutated once created."""

    id: str
    type: BlockType
    content: str
    content_hash: int
    start_pos: int
    end_pos: int
    meta: Dict[str, Any] = field(default_factory=dict, compare=False)
    ast: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ActiveBlock:
    type: BlockType
    content: str
    start_pos: int


@dataclass(frozen=True)
class BlockRegistry:
    """One version of the streaming state.

    Every operation on the registry returns a new value; ``blocks`` only ever
    grows and ``cursor`` is the length of input consumed so far.
    """

    blocks: Tuple[StableBlock, ...] = ()
    active_block: Optional[ActiveBlock] = None
    active_tag_state: TagState = INITIAL_TAG_STATE
    cursor: int = 0
    block_counter: int = 0


INITIAL_REGISTRY = BlockRegistry()
