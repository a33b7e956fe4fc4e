from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from blocks.registry import BlockType

# Full block starts: marker plus the space/content that confirms it.
BLOCK_PATTERNS = {
    "heading": re.compile(r"^(#{1,6})\s+(.*)\Z"),
    "code_fence": re.compile(r"^(`{3,}|~{3,})(\w*)\Z"),
    "horizontal_rule": re.compile(r"^([-*_])\1{2,}\s*\Z"),
    "ordered_list": re.compile(r"^(\s*)(\d+)\.\s+(.*)\Z"),
    "unordered_list": re.compile(r"^(\s*)([-*+])\s+(.*)\Z"),
    "blockquote": re.compile(r"^>\s?(.*)\Z"),
    "component": re.compile(r'^\[\{\s*c:\s*"([^"]+)"'),
    "image": re.compile(r"^!\[([^\]]*)\]\(([^)]+)\)\s*\Z"),
    "table_separator": re.compile(r"^(?=[^-]*-)\|?[\s:|-]+\|[\s:|-]*\|?\Z"),
    "footnote": re.compile(r"^\[\^([^\]]+)\]:\s*(.*)\Z"),
}

# Markers that are still being typed.
PARTIAL_PATTERNS = {
    "heading": re.compile(r"^#{1,6}\Z"),
    "heading_with_space": re.compile(r"^(#{1,6})\s"),
    "code_fence": re.compile(r"^(`{3,}|~{3,})(\w*)"),
    "blockquote": re.compile(r"^>"),
    "component": re.compile(r"^\[\{\s*c:"),
    "image": re.compile(r"^!\["),
    "horizontal_rule": re.compile(r"^([-*_])\1{2,}\Z"),
    "ordered_list_with_space": re.compile(r"^\d+\.\s"),
    "ordered_list": re.compile(r"^\d+\.?\Z"),
    "unordered_list_with_space": re.compile(r"^[-*+]\s"),
}

DEFINITE = "definite"
LIKELY = "likely"
POSSIBLE = "possible"


@dataclass(frozen=True)
class BlockMatch:
    type: BlockType
    meta: Dict[str, Any] = field(default_factory=dict)
    confidence: str = DEFINITE


def detect_block_type(line: str) -> Optional[BlockMatch]:
    """Classify a complete line. Returns ``None`` for plain paragraph text."""
    m = BLOCK_PATTERNS["heading"].match(line)
    if m:
        return BlockMatch(BlockType.HEADING, {"level": len(m.group(1))})

    m = BLOCK_PATTERNS["code_fence"].match(line)
    if m:
        return BlockMatch(BlockType.CODE_BLOCK, {"language": m.group(2) or ""})

    if BLOCK_PATTERNS["horizontal_rule"].match(line):
        return BlockMatch(BlockType.HORIZONTAL_RULE)

    if BLOCK_PATTERNS["ordered_list"].match(line):
        return BlockMatch(BlockType.LIST, {"ordered": True})

    if BLOCK_PATTERNS["unordered_list"].match(line):
        return BlockMatch(BlockType.LIST, {"ordered": False})

    if BLOCK_PATTERNS["blockquote"].match(line):
        return BlockMatch(BlockType.BLOCKQUOTE)

    m = BLOCK_PATTERNS["component"].match(line)
    if m:
        return BlockMatch(BlockType.COMPONENT, {"name": m.group(1)})

    if BLOCK_PATTERNS["image"].match(line):
        return BlockMatch(BlockType.IMAGE)

    if BLOCK_PATTERNS["table_separator"].match(line):
        return BlockMatch(BlockType.TABLE)

    m = BLOCK_PATTERNS["footnote"].match(line)
    if m:
        return BlockMatch(BlockType.FOOTNOTE, {"label": m.group(1)})

    return None


def detect_partial_block_type(content: str) -> Optional[BlockMatch]:
    """Best guess for a block whose first line is still being typed.

    A complete match wins outright; otherwise the bare marker is matched and
    tagged with how sure we are (``definite``, ``likely`` or ``possible``).
    """
    first_line = content.split("\n", 1)[0]
    if not first_line:
        return None

    complete = detect_block_type(first_line)
    if complete:
        return complete

    m = PARTIAL_PATTERNS["heading_with_space"].match(first_line)
    if m:
        return BlockMatch(BlockType.HEADING, {"level": len(m.group(1))})

    if PARTIAL_PATTERNS["heading"].match(first_line):
        return BlockMatch(BlockType.HEADING, {"level": min(len(first_line), 6)}, LIKELY)

    m = PARTIAL_PATTERNS["code_fence"].match(first_line)
    if m:
        return BlockMatch(BlockType.CODE_BLOCK, {"language": m.group(2) or ""})

    if PARTIAL_PATTERNS["blockquote"].match(first_line):
        return BlockMatch(BlockType.BLOCKQUOTE, confidence=DEFINITE if len(first_line) > 1 else LIKELY)

    if PARTIAL_PATTERNS["component"].match(first_line):
        return BlockMatch(BlockType.COMPONENT, {"name": ""})

    if PARTIAL_PATTERNS["image"].match(first_line):
        return BlockMatch(BlockType.IMAGE, confidence=LIKELY)

    if PARTIAL_PATTERNS["horizontal_rule"].match(first_line):
        return BlockMatch(BlockType.HORIZONTAL_RULE, confidence=LIKELY)

    if PARTIAL_PATTERNS["ordered_list_with_space"].match(first_line):
        return BlockMatch(BlockType.LIST, {"ordered": True})
    if PARTIAL_PATTERNS["ordered_list"].match(first_line):
        return BlockMatch(BlockType.LIST, {"ordered": True}, POSSIBLE)

    if PARTIAL_PATTERNS["unordered_list_with_space"].match(first_line):
        return BlockMatch(BlockType.LIST, {"ordered": False})

    return None


def is_code_block_closed(content: str) -> bool:
    """True once the last line is a fence of the opener's char, at least as long."""
    lines = content.split("\n")
    if len(lines) < 2:
        return False
    m = re.match(r"^(`{3,}|~{3,})", lines[0])
    if not m:
        return False
    fence = m.group(1)
    closer = re.compile(rf"^{re.escape(fence[0])}{{{len(fence)},}}\s*\Z")
    return bool(closer.match(lines[-1]))


def is_component_closed(content: str) -> bool:
    """True once the ``[{`` opener is balanced by a ``}]``, ignoring brackets in strings."""
    if not content.startswith("[{"):
        return False

    brace_depth = 1
    bracket_depth = 1
    in_string = False
    escape = False
    for i in range(2, len(content)):
        ch = content[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if ch == "{":
            brace_depth += 1
        elif ch == "}":
            brace_depth -= 1
        elif ch == "[":
            bracket_depth += 1
        elif ch == "]":
            bracket_depth -= 1
            if brace_depth == 0 and bracket_depth == 0 and content[i - 1] == "}":
                return True
    return False
