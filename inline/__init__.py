from __future__ import annotations

from inline.autofix import fix_incomplete_markdown
from inline.tag_state import INITIAL_TAG_STATE, Tag, TagState, rebuild_tag_state, update_tag_state


__all__ = [
    "INITIAL_TAG_STATE",
    "Tag",
    "TagState",
    "fix_incomplete_markdown",
    "rebuild_tag_state",
    "update_tag_state",
]
