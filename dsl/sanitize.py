"""Allowlist URL sanitizing for component props.

Only a handful of schemes are allowed through; everything else (``javascript:``,
``data:``, ``file:``, ...) is rejected. Relative references are structurally safe
and bypass scheme parsing entirely.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# ---- Configuration ----
ALLOWED_SCHEMES = frozenset({"http", "https", "mailto", "tel", "sms"})
RELATIVE_PREFIXES = ("/", "#", "./", "../")

# Schemes that need a host to mean anything
_NETWORK_SCHEMES = frozenset({"http", "https"})

_URL_LIKE = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)


def sanitize_url(url: Any) -> Optional[str]:
    """Return ``url`` unchanged when it is safe to render, otherwise ``None``."""
    if not isinstance(url, str):
        return None
    trimmed = url.strip()
    if not trimmed:
        return None

    if trimmed.startswith(RELATIVE_PREFIXES):
        return url

    try:
        parsed = urlparse(trimmed)
    except ValueError:
        return None

    scheme = parsed.scheme.lower()
    if not scheme:
        return None
    if scheme not in ALLOWED_SCHEMES:
        logger.warning("Blocked URL with disallowed scheme: %s:", scheme)
        return None
    if scheme in _NETWORK_SCHEMES and not parsed.netloc:
        return None
    if scheme not in _NETWORK_SCHEMES and not parsed.path:
        return None
    return url


def looks_like_url(value: str) -> bool:
    return bool(_URL_LIKE.match(value))


def _sanitize_scalar(value: Any) -> Any:
    if isinstance(value, str) and looks_like_url(value):
        safe = sanitize_url(value)
        return safe if safe is not None else ""
    return value


def sanitize_props(props: Dict[str, Any]) -> Dict[str, Any]:
    """Walk a prop tree and blank out every URL-looking string that fails
    :func:`sanitize_url`. Numbers, booleans and ``None`` pass through.

    The walk is iterative; nesting depth is not limited by the interpreter stack.
    """
    root: Dict[str, Any] = {}
    pending: List[Tuple[Any, Any]] = [(props, root)]
    while pending:
        source, target = pending.pop()
        items = source.items() if isinstance(source, dict) else enumerate(source)
        for key, value in items:
            if isinstance(value, dict):
                child: Any = {}
            elif isinstance(value, list):
                child = [None] * len(value)
            else:
                target[key] = _sanitize_scalar(value)
                continue
            target[key] = child
            pending.append((value, child))
    return root
