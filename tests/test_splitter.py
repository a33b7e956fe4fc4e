import logging

import pytest

from blocks import (
    INITIAL_REGISTRY,
    BlockType,
    DebugRecorder,
    finalize_active_block,
    hash_content,
    process_new_content,
    reset_registry,
)
from inline.tag_state import BOLD, ITALIC

DOC = (
    "# Title\n\n"
    "Intro with **bold** and `code`.\n"
    "## Section\n"
    "- one\n- two\n\n"
    "1. first\n2. second\n\n"
    "```py\nprint('hi')\n\n\nx = 1\n```\n\n"
    "> quote\n> more\n\n"
    "| a | b |\n|---|---|\n| 1 | 2 |\n\n"
    "---\n\n"
    '[{c:"Card",p:{"title":"Hi"}}]\n\n'
    "Closing paragraph."
)


def feed(text, chunk=None):
    registry = INITIAL_REGISTRY
    if chunk is None:
        return process_new_content(registry, text)
    for end in range(chunk, len(text) + chunk, chunk):
        registry = process_new_content(registry, text[:end])
    return registry


def run(text, chunk=None):
    return finalize_active_block(feed(text, chunk))


def types(registry):
    return [b.type for b in registry.blocks]


class TestScenarios:
    def test_heading_with_blank_line(self):
        registry = process_new_content(INITIAL_REGISTRY, "# Hello\n\n")
        assert len(registry.blocks) == 1
        block = registry.blocks[0]
        assert block.type == BlockType.HEADING
        assert block.content == "# Hello"
        assert block.meta == {"level": 1}
        assert registry.active_block is None
        assert registry.cursor == 9

    def test_heading_then_streaming_paragraph(self):
        registry = process_new_content(INITIAL_REGISTRY, "## Intro\n")
        registry = process_new_content(registry, "## Intro\nThis is **bold**")
        assert [(b.type, b.content) for b in registry.blocks] == [(BlockType.HEADING, "## Intro")]
        assert registry.active_block.type == BlockType.PARAGRAPH
        assert registry.active_block.content == "This is **bold**"
        assert registry.active_block.start_pos == 9


class TestHeadings:
    def test_consecutive_headings_and_ids(self):
        registry = run("# A\n## B\nText")
        assert [b.id for b in registry.blocks] == ["h-0", "h-1", "p-2"]
        assert [b.meta.get("level") for b in registry.blocks[:2]] == [1, 2]

    def test_paragraph_followed_by_heading(self):
        registry = run("Hello\n# Title\n")
        assert [(b.type, b.content) for b in registry.blocks] == [
            (BlockType.PARAGRAPH, "Hello"),
            (BlockType.HEADING, "# Title"),
        ]
        assert registry.blocks[1].start_pos == 6

    def test_headings_in_one_call_are_all_finalized(self):
        registry = process_new_content(INITIAL_REGISTRY, "# A\n## B\n### C\n")
        assert [b.content for b in registry.blocks] == ["# A", "## B", "### C"]
        assert registry.active_block is None

    def test_too_many_hashes_keep_heading_type(self):
        registry = run("####### Not really")
        assert types(registry) == [BlockType.HEADING]


class TestCodeBlocks:
    def test_closed_fence_finalizes_immediately(self):
        registry = process_new_content(INITIAL_REGISTRY, "```js\nconst x = 1;\n```")
        assert registry.active_block is None
        block = registry.blocks[0]
        assert block.type == BlockType.CODE_BLOCK
        assert block.meta == {"language": "js"}

    def test_blank_lines_inside_fence(self):
        registry = process_new_content(INITIAL_REGISTRY, "```\na\n\n\nb\n")
        assert registry.blocks == ()
        assert registry.active_block.type == BlockType.CODE_BLOCK
        assert registry.active_block.content == "```\na\n\n\nb\n"

    def test_fence_after_paragraph_line(self):
        registry = run("Intro\n```py\ncode\n```")
        assert [(b.type, b.content) for b in registry.blocks] == [
            (BlockType.PARAGRAPH, "Intro"),
            (BlockType.CODE_BLOCK, "```py\ncode\n```"),
        ]

    def test_unclosed_fence_finalized_at_end(self):
        registry = run("```js\nconst x")
        assert registry.blocks[0].type == BlockType.CODE_BLOCK
        assert registry.blocks[0].content == "```js\nconst x"

    def test_tag_state_inside_fence(self):
        registry = process_new_content(INITIAL_REGISTRY, "```py\nx = '**'")
        assert registry.active_tag_state.in_code_block
        assert not registry.active_tag_state.has(BOLD)


class TestComponents:
    def test_component_between_paragraphs(self):
        registry = run('Here:\n\n[{c:"Card",p:{"title":"Hi"}}]\n\nMore')
        assert types(registry) == [BlockType.PARAGRAPH, BlockType.COMPONENT, BlockType.PARAGRAPH]
        component = registry.blocks[1]
        assert component.id == "cmp-1"
        assert component.meta == {"name": "Card", "props": {"title": "Hi"}}
        assert component.ast is None

    def test_spaced_component_opener(self):
        registry = run('[{ c:"Card",p:{"title":"Hi"}}]\n\nMore')
        assert types(registry) == [BlockType.COMPONENT, BlockType.PARAGRAPH]
        assert registry.blocks[0].meta == {"name": "Card", "props": {"title": "Hi"}}

    def test_streaming_component_stays_active(self):
        registry = process_new_content(INITIAL_REGISTRY, '[{c:"Card",p:{"title":"On-c')
        assert registry.blocks == ()
        assert registry.active_block.type == BlockType.COMPONENT

    def test_blank_lines_inside_component(self):
        text = '[{c:"Card",p:{},children:[\n\n  {c:"Text",p:{"content":"x"}}\n]}]'
        registry = process_new_content(INITIAL_REGISTRY, text)
        assert types(registry) == [BlockType.COMPONENT]
        assert registry.blocks[0].content == text


class TestOtherBlocks:
    def test_list(self):
        registry = run("- a\n- b\n\nText")
        assert types(registry) == [BlockType.LIST, BlockType.PARAGRAPH]
        assert registry.blocks[0].meta == {"ordered": False, "items": ["- a", "- b"]}

    def test_ordered_list(self):
        registry = run("1. a\n2. b")
        assert registry.blocks[0].type == BlockType.LIST
        assert registry.blocks[0].meta["ordered"] is True

    def test_blockquote(self):
        assert types(run("> a\n> b\n\nx")) == [BlockType.BLOCKQUOTE, BlockType.PARAGRAPH]

    def test_table(self):
        registry = run("| a | b |\n|---|---|\n| 1 | 2 |\n\nafter")
        assert types(registry) == [BlockType.TABLE, BlockType.PARAGRAPH]
        assert registry.blocks[0].meta == {"headers": ["a", "b"], "rows": [["1", "2"]]}

    def test_table_after_intro_line(self):
        text = "Intro text\n| a | b |\n|---|---|\n| 1 | 2 |"
        registry = run(text)
        assert [(b.type, b.content) for b in registry.blocks] == [
            (BlockType.PARAGRAPH, "Intro text"),
            (BlockType.TABLE, "| a | b |\n|---|---|\n| 1 | 2 |"),
        ]
        assert registry.blocks[1].start_pos == 11

    def test_horizontal_rule_after_text_is_not_setext(self):
        registry = run("Text\n---\n\nMore")
        assert types(registry) == [BlockType.PARAGRAPH, BlockType.HORIZONTAL_RULE, BlockType.PARAGRAPH]

    def test_footnote(self):
        registry = run("[^1]: The note.\n\nAfter")
        assert registry.blocks[0].type == BlockType.FOOTNOTE
        assert registry.blocks[0].id == "fn-0"
        assert registry.blocks[0].meta == {"label": "1"}

    def test_image(self):
        registry = run("![alt](a.png)\n\nText")
        assert registry.blocks[0].type == BlockType.IMAGE
        assert registry.blocks[0].id == "img-0"

    def test_blank_line_paragraphs(self):
        registry = run("Para one\n\nPara two")
        assert [(b.content, b.start_pos) for b in registry.blocks] == [("Para one", 0), ("Para two", 10)]


class TestDocument:
    def test_block_sequence(self):
        registry = run(DOC)
        assert types(registry) == [
            BlockType.HEADING,
            BlockType.PARAGRAPH,
            BlockType.HEADING,
            BlockType.LIST,
            BlockType.LIST,
            BlockType.CODE_BLOCK,
            BlockType.BLOCKQUOTE,
            BlockType.TABLE,
            BlockType.HORIZONTAL_RULE,
            BlockType.COMPONENT,
            BlockType.PARAGRAPH,
        ]
        assert [b.id for b in registry.blocks][-3:] == ["hr-8", "cmp-9", "p-10"]

    @pytest.mark.parametrize("chunk", [1, 2, 3, 7, 50, len(DOC)])
    def test_chunking_does_not_change_blocks(self, chunk):
        expected = run(DOC)
        registry = run(DOC, chunk)
        assert registry.blocks == expected.blocks
        assert [b.meta for b in registry.blocks] == [b.meta for b in expected.blocks]

    @pytest.mark.parametrize("chunk", [1, 2, 3, 7, 50])
    @pytest.mark.parametrize("cut", [9, 60, 120, len(DOC) - 5])
    def test_chunking_does_not_change_streaming_state(self, chunk, cut):
        text = DOC[:cut]
        expected = feed(text)
        registry = feed(text, chunk)
        assert registry.blocks == expected.blocks
        assert registry.active_block == expected.active_block
        assert registry.active_tag_state == expected.active_tag_state
        assert registry.cursor == expected.cursor == len(text)
        assert registry.block_counter == expected.block_counter

    def test_blocks_point_back_into_the_text(self):
        for block in run(DOC).blocks:
            assert DOC[block.start_pos:block.end_pos] == block.content
            assert block.content_hash == hash_content(block.content)

    def test_blocks_never_change_once_finalized(self):
        registry = INITIAL_REGISTRY
        seen = ()
        for end in range(1, len(DOC) + 1):
            registry = process_new_content(registry, DOC[:end])
            assert registry.blocks[: len(seen)] == seen
            assert all(a is b for a, b in zip(registry.blocks, seen))
            seen = registry.blocks

    def test_cached_ast_types(self):
        registry = run(DOC)
        assert [b.ast.type if b.ast is not None else None for b in registry.blocks] == [
            "heading",
            "paragraph",
            "heading",
            "bullet_list",
            "ordered_list",
            "fence",
            "blockquote",
            "table",
            "hr",
            None,
            "paragraph",
        ]


class TestRegistryContract:
    def test_shrunk_input_is_ignored(self):
        registry = process_new_content(INITIAL_REGISTRY, "Hello world")
        assert process_new_content(registry, "Hello") is registry
        assert process_new_content(registry, "Hello world") is registry

    def test_previous_versions_are_untouched(self):
        first = process_new_content(INITIAL_REGISTRY, "# A\n")
        second = process_new_content(first, "# A\nBody")
        assert first.active_block is None
        assert first.cursor == 4
        assert second.active_block.content == "Body"

    def test_reset(self):
        assert reset_registry() is INITIAL_REGISTRY

    def test_whitespace_only_active_is_not_finalized(self):
        registry = process_new_content(INITIAL_REGISTRY, "   ")
        assert finalize_active_block(registry) is registry

    def test_finalize_without_active_block(self):
        assert finalize_active_block(INITIAL_REGISTRY) is INITIAL_REGISTRY

    def test_tag_state_follows_active_block(self):
        registry = process_new_content(INITIAL_REGISTRY, "Para **one**\n\nNext *it")
        assert registry.active_block.content == "Next *it"
        assert registry.active_tag_state.types == [ITALIC]
        assert registry.active_tag_state.text_length == len("Next *it")

    def test_finalize_clears_tag_state(self):
        registry = finalize_active_block(process_new_content(INITIAL_REGISTRY, "**open"))
        assert registry.active_block is None
        assert registry.active_tag_state.stack == ()


def test_content_hash():
    assert hash_content("") == 5381
    assert hash_content("a") == 177604


def test_parser_failure_falls_back_to_paragraph(caplog):
    def broken(content):
        raise RuntimeError("boom")

    with caplog.at_level(logging.WARNING, logger="blocks.splitter"):
        registry = finalize_active_block(
            process_new_content(INITIAL_REGISTRY, "# Title\nbody", parser=broken),
            parser=broken,
        )

    assert [b.ast.type for b in registry.blocks] == ["paragraph", "paragraph"]
    assert registry.blocks[0].ast.children[0].content == "# Title"
    assert "Block parse failed" in caplog.text


def test_observer_receives_snapshot():
    recorder = DebugRecorder()
    process_new_content(INITIAL_REGISTRY, "Some **bo", observer=recorder)
    snapshot = recorder.latest
    assert snapshot.position == 9
    assert snapshot.new_chars == "Some **bo"
    assert snapshot.new_char_count == 9
    assert snapshot.active["type"] == "paragraph"
    assert snapshot.tag_stack == [{"type": "bold", "position": 5, "marker": "**"}]
    assert snapshot.fixed_preview == "Some **bo**"


@pytest.mark.parametrize("depth", [500, 1500])
def test_deeply_nested_component_does_not_stop_the_stream(depth):
    text = '[{c:"X",p:{"a":' + "[" * depth + "]" * depth + "}}]\n\nafter"
    registry = finalize_active_block(process_new_content(INITIAL_REGISTRY, text))
    assert types(registry) == [BlockType.COMPONENT, BlockType.PARAGRAPH]
    assert registry.blocks[0].meta["name"] == "X"
    assert registry.blocks[1].content == "after"
