"""Component DSL extraction.

Components are injected inline with a bracketed object literal whose keys are
left unquoted::

    [{c:"Card",p:{"title":"Hello"},style:{"gridColumn":"span 2"},children:[...]}]

While a response streams the literal is usually truncated somewhere in the
middle, so extraction works in two modes: a balanced span is decoded as plain
JSON, and anything else is recovered field by field with a small JSON repair
pass. Every prop tree is sanitized before it is returned.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from dsl.sanitize import sanitize_props

logger = logging.getLogger(__name__)

_NAME = re.compile(r'\[\{\s*c:\s*"([^"]+)"')
_CHILD_NAME = re.compile(r'\{\s*c:\s*"([^"]+)"')
_KEY = re.compile(r"(\s*)([A-Za-z_][A-Za-z0-9_]*)(\s*):")
_FIELD = re.compile(r",\s*(p|style|children)\s*:\s*")

_TRAILING_COMMA = re.compile(r",\s*\Z")
_TRAILING_KEY = re.compile(r'(?P<lead>[{,])\s*"(?:[^"\\]|\\.)*"\s*:?\s*\Z')
_PARTIAL_LITERAL = re.compile(
    r"(?P<lead>[:\[,])\s*"
    r"(?:tru|tr|t|fals|fal|fa|f|nul|nu|n|-|-?\d+\.|-?\d+(?:\.\d+)?[eE][+-]?)\Z"
)

_CLOSERS = {"{": "}", "[": "]"}


@dataclass
class ComponentData:
    name: str
    props: Dict[str, Any] = field(default_factory=dict)
    style: Optional[Dict[str, Any]] = None
    children: Optional[List["ComponentData"]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "props": self.props}
        if self.style is not None:
            out["style"] = self.style
        if self.children is not None:
            out["children"] = [c.to_dict() for c in self.children]
        return out


# ---- JSON repair ----
def normalize_to_json(dsl: str) -> str:
    """Quote bare object keys (``{c:"X"}`` -> ``{"c":"X"}``), leaving string contents alone."""
    out: List[str] = []
    in_string = False
    i = 0
    n = len(dsl)
    while i < n:
        ch = dsl[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(dsl[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue
        out.append(ch)
        if ch == '"':
            in_string = True
        elif ch in "{,":
            m = _KEY.match(dsl, i + 1)
            if m:
                out.append(f'{m.group(1)}"{m.group(2)}"{m.group(3)}:')
                i = m.end()
                continue
        i += 1
    return "".join(out)


def _scan(text: str) -> Tuple[List[str], bool, int]:
    """Return (open containers, ends inside a string, offset of a dangling escape or -1)."""
    stack: List[str] = []
    in_string = False
    n = len(text)
    i = 0
    while i < n:
        ch = text[i]
        if in_string:
            if ch == "\\":
                if i + 1 >= n:
                    return stack, True, i
                if text[i + 1] == "u":
                    if i + 6 > n:
                        return stack, True, i
                    i += 6
                    continue
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]" and stack:
            stack.pop()
        i += 1
    return stack, in_string, -1


def _close_open_string(text: str) -> str:
    _, in_string, dangling = _scan(text)
    if dangling >= 0:
        text = text[:dangling]
    return text + '"' if in_string else text


def _strip_incomplete_tail(text: str) -> str:
    while True:
        before = text
        text = text.rstrip()
        text = _TRAILING_COMMA.sub("", text)

        m = _PARTIAL_LITERAL.search(text)
        if m and not _scan(text[: m.start()])[1]:
            text = text[: m.start()] + m.group("lead")

        m = _TRAILING_KEY.search(text)
        if m:
            stack, in_string, _ = _scan(text[: m.start()])
            lead = m.group("lead")
            if not in_string and (lead == "{" or (stack and stack[-1] == "{")):
                text = text[: m.start()] + (lead if lead == "{" else "")

        if text == before:
            return text


def _drop_commas_before_closers(text: str) -> str:
    out: List[str] = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < n and text[j].isspace():
                j += 1
            if j >= n or text[j] not in "}]":
                out.append(ch)
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def try_parse_incomplete_json(fragment: str) -> Any:
    """Decode a (possibly truncated) DSL/JSON fragment.

    Returns ``None`` when nothing sensible can be recovered. Partial string
    values are closed so they can be shown as they stream in.
    """
    normalized = normalize_to_json(fragment)
    try:
        return json.loads(normalized)
    except (json.JSONDecodeError, RecursionError):
        pass

    repaired = _close_open_string(normalized)
    repaired = _strip_incomplete_tail(repaired)
    repaired = _drop_commas_before_closers(repaired)
    stack, _, _ = _scan(repaired)
    repaired += "".join(_CLOSERS[c] for c in reversed(stack))
    try:
        return json.loads(repaired)
    except (json.JSONDecodeError, RecursionError):
        return None


# ---- span helpers ----
def _balanced_end(text: str, start: int) -> int:
    """Offset just past the container opened at ``start``, or -1 while it is still open."""
    depth = 0
    in_string = False
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return -1


def _top_level_fields(body: str) -> Dict[str, int]:
    """Map ``p``/``style``/``children`` to the offset where their value starts.

    Only keys at the component's own nesting level count, so a ``style`` key
    inside a child or inside the props object is never picked up.
    """
    found: Dict[str, int] = {}
    depth = 0
    in_string = False
    i = 0
    n = len(body)
    while i < n:
        ch = body[i]
        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
        elif ch == "," and depth <= 0:
            m = _FIELD.match(body, i)
            if m and m.group(1) not in found:
                found[m.group(1)] = m.end()
        i += 1
    return found


def _object_at(text: str) -> Optional[Dict[str, Any]]:
    if not text.startswith("{"):
        return None
    end = _balanced_end(text, 0)
    parsed = try_parse_incomplete_json(text[:end] if end > 0 else text)
    return parsed if isinstance(parsed, dict) else None


# ---- extraction ----
def _children_from_json(items: List[Any]) -> List[ComponentData]:
    children: List[ComponentData] = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("c"), str):
            continue
        props = item.get("p")
        style = item.get("style")
        nested = item.get("children")
        children.append(
            ComponentData(
                name=item["c"],
                props=sanitize_props(props if isinstance(props, dict) else {}),
                style=sanitize_props(style) if isinstance(style, dict) else None,
                children=_children_from_json(nested) if isinstance(nested, list) else None,
            )
        )
    return children


def _partial_children(text: str) -> List[ComponentData]:
    """Extract each sibling in a (possibly truncated) children array body."""
    children: List[ComponentData] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "]":
            break
        if ch == "{":
            end = _balanced_end(text, i)
            end = end if end > 0 else n
            m = _CHILD_NAME.match(text, i)
            if m:
                children.append(_partial_component(m.group(1), text[m.end():end]))
            i = end
            continue
        i += 1
    return children


def _partial_component(name: str, body: str) -> ComponentData:
    fields = _top_level_fields(body)
    props: Dict[str, Any] = {}
    style = None
    children = None

    if "p" in fields:
        props = _object_at(body[fields["p"]:]) or {}
    if "style" in fields:
        style = _object_at(body[fields["style"]:])
    if "children" in fields:
        value = body[fields["children"]:]
        if value.startswith("["):
            children = _partial_children(value[1:]) or None

    return ComponentData(
        name=name,
        props=sanitize_props(props),
        style=sanitize_props(style) if style is not None else None,
        children=children,
    )


def _extract(match: re.Match, content: str) -> ComponentData:
    end = _balanced_end(content, match.start())
    if end > 0 and content[end - 1] == "]":
        parsed = try_parse_incomplete_json(content[match.start():end])
        if isinstance(parsed, list) and parsed and isinstance(parsed[0], dict):
            node = parsed[0]
            props = node.get("p")
            style = node.get("style")
            children = node.get("children")
            return ComponentData(
                name=match.group(1),
                props=sanitize_props(props if isinstance(props, dict) else {}),
                style=sanitize_props(style) if isinstance(style, dict) else None,
                children=_children_from_json(children) if isinstance(children, list) else None,
            )

    return _partial_component(match.group(1), content[match.end():])


def extract_component_data(content: str) -> ComponentData:
    """Extract ``{name, props, style, children}`` from component DSL text.

    Works on complete and truncated input alike; fields that have been fully
    received never change value as more text arrives. Nesting too deep to
    decode yields the name alone.
    """
    m = _NAME.search(content)
    if not m:
        return ComponentData(name="")

    try:
        return _extract(m, content)
    except RecursionError:
        logger.warning("Component %s is nested too deeply, dropping its props", m.group(1))
        return ComponentData(name=m.group(1))
