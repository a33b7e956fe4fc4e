from __future__ import annotations

from dsl.component_parser import ComponentData, extract_component_data, try_parse_incomplete_json
from dsl.sanitize import sanitize_props, sanitize_url


__all__ = [
    "ComponentData",
    "extract_component_data",
    "try_parse_incomplete_json",
    "sanitize_props",
    "sanitize_url",
]
