from __future__ import annotations

from blocks.debug import DebugRecorder, DebugSnapshot, StreamObserver
from blocks.registry import (
    INITIAL_REGISTRY,
    ActiveBlock,
    BlockRegistry,
    BlockType,
    StableBlock,
    generate_block_id,
    hash_content,
)
from blocks.splitter import finalize_active_block, finalize_block, process_new_content, reset_registry


__all__ = [
    "INITIAL_REGISTRY",
    "ActiveBlock",
    "BlockRegistry",
    "BlockType",
    "StableBlock",
    "DebugRecorder",
    "DebugSnapshot",
    "StreamObserver",
    "finalize_active_block",
    "finalize_block",
    "generate_block_id",
    "hash_content",
    "process_new_content",
    "reset_registry",
]
