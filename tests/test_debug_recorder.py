import json

from rich.table import Table

from blocks import INITIAL_REGISTRY, DebugRecorder, process_new_content


def feed(recorder, *prefixes):
    registry = INITIAL_REGISTRY
    for prefix in prefixes:
        registry = process_new_content(registry, prefix, observer=recorder)
    return registry


def test_snapshot_per_call_with_deltas():
    rec = DebugRecorder()
    feed(rec, "# T", "# T\n\nBo", "# T\n\nBody")
    assert len(rec.snapshots) == 3
    assert rec.snapshots[0].delta_ms is None
    assert rec.snapshots[1].delta_ms is not None
    assert rec.latest.new_chars == "dy"


def test_no_snapshot_when_nothing_new():
    rec = DebugRecorder()
    registry = feed(rec, "abc")
    process_new_content(registry, "abc", observer=rec)
    assert len(rec.snapshots) == 1


def test_limit_keeps_most_recent():
    rec = DebugRecorder(limit=2)
    feed(rec, "a", "ab", "abc")
    assert [s.position for s in rec.snapshots] == [2, 3]


def test_to_json_obj():
    rec = DebugRecorder()
    feed(rec, "# T\n\nBody")
    obj = rec.to_json_obj()
    assert obj["version"] == 1
    assert obj["count"] == 1
    snap = obj["snapshots"][0]
    assert snap["blocks"] == [{"id": "h-0", "type": "heading", "length": 3, "content": "# T"}]
    assert snap["active"] == {"type": "paragraph", "length": 4, "content": "Body"}


def test_save_json(tmp_path):
    rec = DebugRecorder()
    feed(rec, "line one\nline two")
    out = rec.save_json(tmp_path / "nested" / "debug.json")
    with open(out, "r", encoding="utf-8") as f:
        data = json.load(f)
    assert data["count"] == 1
    assert data["snapshots"][0]["active"]["content"] == "line one\\nline two"


def test_long_previews_are_truncated():
    rec = DebugRecorder()
    feed(rec, "x" * 200)
    content = rec.latest.active["content"]
    assert len(content) == 60
    assert content.endswith("…")


def test_render_table():
    rec = DebugRecorder()
    assert rec.render_table().row_count == 0

    feed(rec, "# T\n\n**Bo")
    table = rec.render_table()
    assert isinstance(table, Table)
    # heading, active, tags, fixed
    assert table.row_count == 4
    assert table.caption.startswith("pos 9/9")
