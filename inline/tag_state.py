"""Open inline-marker tracking for a block that is still streaming.

``rebuild_tag_state`` scans the text once, left to right, and reports which
markers (bold, italic, inline code, strikethrough, links, code fences) are
still waiting for their closer. The auto-fixer uses the result to close or
hide them so partial markdown renders as it is typed.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

BOLD = "bold"
ITALIC = "italic"
CODE = "code"
STRIKETHROUGH = "strikethrough"
CODE_BLOCK = "code_block"
PENDING_CODE_BLOCK = "pending_code_block"
PENDING_BACKTICK = "pending_backtick"
LINK = "link"

LINK_TEXT = "["
LINK_URL = "]("


@dataclass(frozen=True)
class Tag:
    type: str
    position: int
    marker: str


@dataclass(frozen=True)
class TagState:
    stack: Tuple[Tag, ...] = ()
    tag_counts: Dict[str, int] = field(default_factory=dict)
    earliest_position: int = 0
    in_code_block: bool = False
    in_inline_code: bool = False
    open_component: int = -1
    text_length: int = 0
    fingerprint: int = field(default=0, repr=False)

    def has(self, tag_type: str) -> bool:
        return any(t.type == tag_type for t in self.stack)

    @property
    def types(self) -> List[str]:
        return [t.type for t in self.stack]


INITIAL_TAG_STATE = TagState(fingerprint=hash(""))


class _Scanner:
    def __init__(self, text: str) -> None:
        self.text = text
        self.stack: List[Tag] = []
        self.counts: Dict[str, int] = {}
        self.in_code_block = False
        self.in_inline_code = False
        self.open_component = -1

    def push(self, tag_type: str, position: int, marker: str) -> None:
        self.stack.append(Tag(tag_type, position, marker))
        self.counts[tag_type] = self.counts.get(tag_type, 0) + 1

    def find(self, tag_type: str, marker: Optional[str] = None) -> int:
        for idx in range(len(self.stack) - 1, -1, -1):
            tag = self.stack[idx]
            if tag.type == tag_type and (marker is None or tag.marker == marker):
                return idx
        return -1

    def remove(self, idx: int) -> None:
        tag = self.stack.pop(idx)
        self.counts[tag.type] = max(0, self.counts.get(tag.type, 0) - 1)

    def run_length(self, i: int, ch: str) -> int:
        j = i
        while j < len(self.text) and self.text[j] == ch:
            j += 1
        return j - i

    def at_line_start(self, i: int) -> bool:
        return i == 0 or self.text[i - 1] == "\n"

    def next_is_space(self, i: int) -> bool:
        return i + 1 < len(self.text) and self.text[i + 1].isspace()

    # ---- rules; each returns the next offset ----
    def fence(self, i: int, ch: str, run: int) -> int:
        if self.in_code_block:
            idx = self.find(CODE_BLOCK)
            opener = self.stack[idx].marker if idx >= 0 else ch * 3
            if opener[0] == ch and run >= len(opener):
                if idx >= 0:
                    self.remove(idx)
                self.in_code_block = False
        else:
            self.push(CODE_BLOCK, i, ch * run)
            self.in_code_block = True
        return i + run

    def component(self, i: int) -> int:
        text = self.text
        start = i
        depth = 1
        in_string = False
        i += 2
        while i < len(text):
            ch = text[i]
            if in_string:
                if ch == "\\":
                    i += 2
                    continue
                if ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "}" and depth == 1 and text.startswith("]", i + 1):
                return i + 2
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
            i += 1
        self.open_component = start
        return i

    def asterisk(self, i: int) -> int:
        text = self.text
        if text.startswith("**", i):
            idx = self.find(BOLD)
            if idx >= 0:
                self.remove(idx)
            else:
                self.push(BOLD, i, "**")
            return i + 2

        italic = self.find(ITALIC)
        bold = self.find(BOLD)
        if bold >= 0 and italic < 0 and i == len(text) - 1:
            # "**bold*": first half of the closer, unless nothing follows the opener ("***")
            if i > self.stack[bold].position + 2:
                return i + 1
        if italic >= 0:
            self.remove(italic)
        elif not self.next_is_space(i):
            self.push(ITALIC, i, "*")
        return i + 1

    def tilde(self, i: int) -> int:
        text = self.text
        idx = self.find(STRIKETHROUGH)
        open_marker = self.stack[idx].marker if idx >= 0 else None

        if text.startswith("~~", i):
            if open_marker == "~~":
                self.remove(idx)
                return i + 2
            if open_marker == "~":
                self.remove(idx)
                return i + 1
            self.push(STRIKETHROUGH, i, "~~")
            return i + 2

        if open_marker == "~~":
            # lone "~" after "~~text" is a partial closer; elsewhere it is literal
            return i + 1
        if open_marker == "~":
            self.remove(idx)
        elif not self.next_is_space(i):
            self.push(STRIKETHROUGH, i, "~")
        return i + 1

    def scan(self) -> None:
        text = self.text
        n = len(text)
        i = 0
        while i < n:
            ch = text[i]

            if ch == "`":
                run = self.run_length(i, "`")
                if run >= 3:
                    i = self.fence(i, "`", run)
                    continue
                if run == 2 and i + 2 == n:
                    self.push(PENDING_CODE_BLOCK, i, "``")
                    i += 2
                    continue
                if self.in_code_block and i + 1 == n:
                    self.push(PENDING_BACKTICK, i, "`")
                    i += 1
                    continue
            elif ch == "~" and self.at_line_start(i):
                run = self.run_length(i, "~")
                if run >= 3:
                    i = self.fence(i, "~", run)
                    continue

            if self.in_code_block:
                i += 1
                continue

            if text.startswith("[{", i):
                i = self.component(i)
                continue

            if ch == "`":
                if self.in_inline_code:
                    self.remove(self.find(CODE))
                    self.in_inline_code = False
                else:
                    self.push(CODE, i, "`")
                    self.in_inline_code = True
                i += 1
                continue

            if self.in_inline_code:
                i += 1
                continue

            if ch == "*":
                i = self.asterisk(i)
            elif ch == "~":
                i = self.tilde(i)
            elif ch == "[":
                self.push(LINK, i, LINK_TEXT)
                i += 1
            elif ch == "]" and text.startswith("(", i + 1) and self.find(LINK, LINK_TEXT) >= 0:
                idx = self.find(LINK, LINK_TEXT)
                self.stack[idx] = replace(self.stack[idx], marker=LINK_URL)
                i += 2
            elif ch == ")" and self.find(LINK, LINK_URL) >= 0:
                self.remove(self.find(LINK, LINK_URL))
                i += 1
            else:
                i += 1


def rebuild_tag_state(text: str) -> TagState:
    """Scan ``text`` from scratch and return the markers left open at its end."""
    scanner = _Scanner(text)
    scanner.scan()
    return TagState(
        stack=tuple(scanner.stack),
        tag_counts=scanner.counts,
        earliest_position=min((t.position for t in scanner.stack), default=0),
        in_code_block=scanner.in_code_block,
        in_inline_code=scanner.in_inline_code,
        open_component=scanner.open_component,
        text_length=len(text),
        fingerprint=hash(text),
    )


def update_tag_state(state: TagState, text: str) -> TagState:
    if state.text_length == len(text) and state.fingerprint == hash(text):
        return state
    return rebuild_tag_state(text)
