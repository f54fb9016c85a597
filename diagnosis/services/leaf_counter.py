"""
Leaf counting over schema-free answer trees.

A reference shape gives the denominator (``total_leaves``); the user's answers
measured against it give the numerator (``filled_leaves``). Both functions are
total: any JSON-like input yields a non-negative integer.
"""
import math
from typing import Any

from diagnosis.services.module_schema import MISSING, RESERVED_KEYS


def _is_primitive(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def _is_absent(value: Any) -> bool:
    return value is MISSING or value is None


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def total_leaves(reference: Any) -> int:
    """Number of fillable units in a reference shape."""
    if _is_absent(reference):
        return 0
    if isinstance(reference, list):
        if not reference or all(_is_primitive(item) for item in reference):
            return 1
        return sum(total_leaves(item) for item in reference)
    if isinstance(reference, dict):
        return sum(
            total_leaves(value)
            for key, value in reference.items()
            if key not in RESERVED_KEYS
        )
    if _is_primitive(reference):
        return 1
    return 0


def _filled_primitive(data: Any, reference: Any) -> int:
    if _is_absent(data):
        return 0
    if isinstance(data, str):
        text = data.strip()
        if not text:
            return 0
        if isinstance(reference, str) and reference.strip() == text:
            return 0
        return 1
    if isinstance(data, bool):
        if isinstance(reference, bool) and data == reference:
            return 0
        return 1 if data else 0
    if isinstance(data, (int, float)):
        if isinstance(reference, (int, float)) and not isinstance(reference, bool) and data == reference:
            return 0
        return 1
    return 0


def filled_leaves(data: Any, reference: Any) -> int:
    """Number of reference leaves the answers actually fill.

    Not bounded by ``total_leaves`` for malformed input (e.g. answers where
    the reference holds ``None``); callers clamp the ratio.
    """
    if _is_absent(data) and _is_absent(reference):
        return 0

    if isinstance(reference, list):
        if not isinstance(data, list) or not data:
            return 0
        if not reference or all(_is_primitive(item) for item in reference):
            return 1
        return sum(
            filled_leaves(
                data[i] if i < len(data) else MISSING,
                reference[i] if i < len(reference) else MISSING,
            )
            for i in range(max(len(data), len(reference)))
        )

    if _is_primitive(reference):
        return _filled_primitive(data, reference)

    if isinstance(reference, dict):
        if not isinstance(data, dict):
            return 0
        keys = [k for k in reference if k not in RESERVED_KEYS]
        keys += [k for k in data if k not in reference and k not in RESERVED_KEYS]
        return sum(filled_leaves(data.get(k, MISSING), reference.get(k, MISSING)) for k in keys)

    return 0


def compute_percentage(data: Any, reference: Any) -> int:
    """0-100 completion of ``data`` against ``reference``."""
    total = total_leaves(reference)
    if total == 0:
        return 100 if isinstance(data, dict) and data else 0
    filled = filled_leaves(data, reference)
    return min(100, round_half_up(100 * filled / total))
