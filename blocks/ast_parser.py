"""markdown-it-py wrapper used to cache structure on finalized blocks.

Setext headings are switched off so a paragraph never turns into a heading
after the fact when a ``---``/``===`` line streams in below it.
"""
from __future__ import annotations

from typing import Optional

from markdown_it import MarkdownIt
from markdown_it.token import Token
from markdown_it.tree import SyntaxTreeNode

_md = MarkdownIt("commonmark").enable(["table", "strikethrough"]).disable("lheading")


def parse_markdown(text: str) -> SyntaxTreeNode:
    return SyntaxTreeNode(_md.parse(text))


def parse_block_content(content: str) -> Optional[SyntaxTreeNode]:
    """Parse one block's content and return its first block-level node."""
    if not content.strip():
        return None
    root = parse_markdown(content)
    return root.children[0] if root.children else None


def fallback_paragraph(content: str) -> SyntaxTreeNode:
    """A plain-text paragraph node, used when the parser fails on a block."""
    tokens = [
        Token("paragraph_open", "p", 1, block=True),
        Token(
            "inline",
            "",
            0,
            content=content,
            children=[Token("text", "", 0, content=content)],
        ),
        Token("paragraph_close", "p", -1, block=True),
    ]
    return SyntaxTreeNode(tokens).children[0]
