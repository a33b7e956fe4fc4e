from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Optional

from rich import box
from rich.console import Console, RenderableType
from rich.live import Live
from rich.markdown import CodeBlock, Heading, Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

from blocks.registry import BlockRegistry, BlockType, StableBlock
from dsl.component_parser import ComponentData, extract_component_data
from inline.autofix import fix_incomplete_markdown


class _CodeBlockTight(CodeBlock):
    def __rich_console__(self, console, options):
        code = str(self.text).rstrip()
        yield Syntax(code, self.lexer_name, theme=self.theme, word_wrap=True, padding=(1, 0))


class _HeadingLeft(Heading):
    def __rich_console__(self, console, options):
        text = self.text
        text.justify = "left"
        if self.tag == "h1":
            yield Panel(text, box=box.HEAVY, style="markdown.h1.border")
        else:
            yield text


class MarkdownStyled(Markdown):
    elements = {
        **Markdown.elements,
        "fence": _CodeBlockTight,
        "code_block": _CodeBlockTight,
        "heading_open": _HeadingLeft,
    }


def render_component(data: ComponentData, streaming: bool = False) -> Panel:
    """Show a component as a panel listing its (possibly partial) props."""
    body = Text()
    for key, value in data.props.items():
        shown = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
        body.append(f"{key}: ", style="bold")
        body.append(f"{shown}\n")
    if data.style:
        body.append(f"style: {json.dumps(data.style, ensure_ascii=False)}\n", style="dim")
    for child in data.children or []:
        body.append(f"└ {child.name} ", style="cyan")
        body.append(f"{json.dumps(child.props, ensure_ascii=False)}\n", style="dim")

    title = data.name or "component"
    return Panel(
        body if body.plain else Text("…", style="dim"),
        title=f"{title} (streaming)" if streaming else title,
        title_align="left",
        border_style="yellow" if streaming else "cyan",
        expand=False,
    )


def render_block(block: StableBlock) -> RenderableType:
    if block.type == BlockType.COMPONENT:
        return render_component(extract_component_data(block.content))
    return MarkdownStyled(block.content)


@dataclass
class BlockStreamRenderer:
    """Prints each stable block once and keeps the active block in a live tail."""

    live: Optional[Live] = None
    console: Optional[Console] = None
    when: float = 0.0
    min_delay: float = 1.0 / 20
    printed: int = 0

    def _ensure_live(self):
        if not self.live:
            self.live = Live(Text(""), console=self.console, refresh_per_second=1.0 / self.min_delay)
            self.live.start()

    def stop(self):
        if self.live:
            try:
                self.live.update(Text(""))
                self.live.stop()
            except Exception:
                pass
            self.live = None

    def active_renderable(self, registry: BlockRegistry) -> RenderableType:
        active = registry.active_block
        if active is None:
            return Text("")
        if active.type == BlockType.COMPONENT:
            return render_component(extract_component_data(active.content), streaming=True)
        return MarkdownStyled(fix_incomplete_markdown(active.content, registry.active_tag_state))

    def update(self, registry: BlockRegistry, final: bool = False) -> None:
        self._ensure_live()

        for block in registry.blocks[self.printed:]:
            if self.live:
                self.live.console.print(render_block(block))
        self.printed = len(registry.blocks)

        if final:
            self.stop()
            return

        now = time.time()
        if (now - self.when) < self.min_delay:
            return
        self.when = now
        if self.live:
            self.live.update(self.active_renderable(registry))
