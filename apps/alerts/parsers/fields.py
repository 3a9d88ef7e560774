"""Typed accessors over deserialized JSON values.

Webhook payloads arrive as untyped ``json.loads`` output. Every accessor here
returns the value only when it is present *and* has the expected shape, and
``None`` (or an empty container) otherwise, so parsers never need ad-hoc
``isinstance`` probing.
"""

from __future__ import annotations

from typing import Any


def get_dict(obj: Any, key: str) -> dict[str, Any]:
    """Return ``obj[key]`` if it is a dict, else an empty dict."""
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, dict):
            return value
    return {}


def get_list(obj: Any, key: str) -> list[Any]:
    """Return ``obj[key]`` if it is a list, else an empty list."""
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, list):
            return value
    return []


def get_str(obj: Any, key: str) -> str | None:
    """Return ``obj[key]`` if it is a non-empty string."""
    if isinstance(obj, dict):
        value = obj.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def first_str(obj: Any, keys: list[str] | tuple[str, ...]) -> str | None:
    """Return the first non-empty string found under ``keys``."""
    for key in keys:
        value = get_str(obj, key)
        if value is not None:
            return value
    return None


def scalar_str(value: Any) -> str | None:
    """Render strings and numbers as text; anything else is ``None``."""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return None


def get_id(obj: Any, key: str) -> str | None:
    """Return ``obj[key]`` as an identifier string (strings or numbers)."""
    if not isinstance(obj, dict):
        return None
    value = obj.get(key)
    if isinstance(value, bool) or value is None:
        return None
    text = scalar_str(value)
    return text or None


def parse_tag_list(tags: Any) -> dict[str, str]:
    """Parse ``["env:prod", "canary"]`` style tags into a mapping.

    Accepts a list of strings or a single comma separated string. Bare tags
    map to ``"true"``; only the first colon splits key from value.
    """
    if isinstance(tags, str):
        items: list[Any] = [t.strip() for t in tags.split(",")]
    elif isinstance(tags, list):
        items = tags
    else:
        return {}

    result: dict[str, str] = {}
    for tag in items:
        if not isinstance(tag, str) or not tag:
            continue
        key, sep, value = tag.partition(":")
        if not key:
            continue
        result[key] = value if sep and value else "true"
    return result


def find_tag_value(tags: Any, key: str) -> str | None:
    """Return the value of the first ``key:value`` tag (case-insensitive key)."""
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",")]
    if not isinstance(tags, list):
        return None
    prefix = f"{key.lower()}:"
    for tag in tags:
        if isinstance(tag, str) and tag.lower().startswith(prefix):
            value = tag[len(prefix):]
            return value or None
    return None


def scalar_items(obj: Any) -> dict[str, str]:
    """Keep only the entries of a mapping whose values are scalars, as text."""
    if not isinstance(obj, dict):
        return {}
    result: dict[str, str] = {}
    for key, value in obj.items():
        text = scalar_str(value)
        if text is not None:
            result[str(key)] = text
    return result
