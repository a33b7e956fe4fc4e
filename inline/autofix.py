"""Format-as-you-type preview for a streaming block.

``fix_incomplete_markdown`` appends closers for every marker the tag state
reports as open, then hides the markers that have no content yet, so that
``**bo`` previews as bold and a lone ``**`` previews as nothing. Only the
unterminated tail is touched; complete markdown comes back unchanged.
"""
from __future__ import annotations

import re
from typing import Tuple

from inline.tag_state import (
    BOLD,
    CODE,
    CODE_BLOCK,
    ITALIC,
    LINK,
    LINK_URL,
    PENDING_BACKTICK,
    PENDING_CODE_BLOCK,
    STRIKETHROUGH,
    Tag,
    TagState,
)

ZWSP = "\u200b"

_TRAILING_WS = re.compile(r"[ \t]+\Z")
_BOLD_ITALIC_OPENER = re.compile(r"(^|\s)\*\*\*[^*]")
_TRAILING_ORDINAL = re.compile(r"\n(\d+)\Z")

# Longest patterns first; every one is anchored to the end of the text.
_EMPTY_MARKERS = [
    re.compile(r"(^|\s)\*\*\*" + ZWSP + r"\*\*\*\Z"),
    re.compile(r"(^|\s)\*" + ZWSP + r"\*\Z"),
    re.compile(r"(^|\s)\*\*\*\*\*\*\Z"),
    re.compile(r"(^|\s)\*\*\*\*\Z"),
]
_EMPTY_DOUBLE_ASTERISK = re.compile(r"(^|\s)\*\*\Z")
_EMPTY_STRIKE = [
    re.compile(r"(^|\s)~~~~\Z"),
    re.compile(r"(^|\s)~~\Z"),
    re.compile(r"(^|\s)~\Z"),
]
_HAS_FENCE_OPENER = re.compile(r"```\w*\n")
_PENDING_FENCE_OWN_LINE = re.compile(r"\n`{1,2}\n(`{3,})\Z")
_PENDING_FENCE_INLINE = re.compile(r"([^\n`])`{1,2}\n(`{3,})\Z")
_EMPTY_INLINE_CODE = re.compile(r"``\Z")
_LONE_BACKTICKS = [
    re.compile(r"(^|\s)`\Z"),
    re.compile(r"(^|\s)``\Z"),
]
_EMPTY_LINK = re.compile(r"(^|\s)\[\]\(#\)\Z")
_LONE_BRACKET = re.compile(r"(^|\s)\[\Z")


def _split_trailing_whitespace(text: str) -> Tuple[str, str]:
    m = _TRAILING_WS.search(text)
    if not m:
        return text, ""
    return text[: m.start()], m.group(0)


def _ends_with_partial(text: str, partial: str, full: str) -> bool:
    return text.endswith(partial) and not text.endswith(full)


def _has_bold_italic_opener(text: str) -> bool:
    return bool(_BOLD_ITALIC_OPENER.search(text)) or text == "***"


def _close_tag(fixed: str, tag: Tag, original: str, first: bool) -> str:
    untouched = len(fixed) == len(original)

    if tag.type == BOLD:
        if (
            first
            and untouched
            and _ends_with_partial(original, "*", "**")
            and not _has_bold_italic_opener(original)
        ):
            return fixed + "*"
        return fixed + "**"

    if tag.type == ITALIC:
        if len(fixed) > tag.position + 1:
            return fixed + "*"
        return fixed + ZWSP + "*"

    if tag.type == CODE:
        return fixed + "`"

    if tag.type == STRIKETHROUGH:
        if tag.marker == "~~" and first and untouched and _ends_with_partial(original, "~", "~~"):
            return fixed + "~"
        return fixed + tag.marker

    if tag.type == CODE_BLOCK:
        return fixed + tag.marker if fixed.endswith("\n") else fixed + "\n" + tag.marker

    if tag.type == LINK:
        if tag.marker == LINK_URL:
            return fixed + ")"
        return fixed + "(#)" if fixed.endswith("]") else fixed + "](#)"

    # pending backticks are hidden later, never closed
    return fixed


def complete_ordered_list_markers(text: str) -> str:
    """``"1. First\\n2"`` -> ``"1. First\\n2."``; only a bare number at the very end."""
    return _TRAILING_ORDINAL.sub(r"\n\1.", text)


def hide_incomplete_markers(text: str, pending_fence: bool = False) -> str:
    result = text

    for pattern in _EMPTY_MARKERS:
        result = pattern.sub(r"\1", result)
    if result.count("**") == 1 and _EMPTY_DOUBLE_ASTERISK.search(result):
        result = _EMPTY_DOUBLE_ASTERISK.sub(r"\1", result)
    for pattern in _EMPTY_STRIKE:
        result = pattern.sub(r"\1", result)

    if pending_fence and _HAS_FENCE_OPENER.search(result):
        stripped = _PENDING_FENCE_OWN_LINE.sub(r"\n\1", result)
        if stripped == result:
            stripped = _PENDING_FENCE_INLINE.sub(r"\1\n\2", result)
        result = stripped

    if "```" not in result:
        result = _EMPTY_INLINE_CODE.sub("", result)
    for pattern in _LONE_BACKTICKS:
        result = pattern.sub(r"\1", result)

    result = _EMPTY_LINK.sub(r"\1", result)
    result = _LONE_BRACKET.sub(r"\1", result)
    return result


def fix_incomplete_markdown(text: str, state: TagState) -> str:
    """Return a renderable preview of ``text`` given its open-tag ``state``."""
    if state.open_component >= 0:
        # a truncated component literal is never shown raw
        text = text[: state.open_component]
    if not text:
        return text

    fixed, whitespace = _split_trailing_whitespace(text)

    for count, tag in enumerate(reversed(state.stack)):
        fixed = _close_tag(fixed, tag, text, count == 0)

    fixed = complete_ordered_list_markers(fixed)
    pending = any(t.type in (PENDING_BACKTICK, PENDING_CODE_BLOCK) for t in state.stack)
    fixed = hide_incomplete_markers(fixed, pending_fence=pending)
    return fixed + whitespace
