"""
Data conversion utilities for report field values.

The report export writes every value as element text. Conversions here never
raise and never return None: a missing or unusable value becomes the
type's default (0, 0.0 or False).
"""

import math
import re
from typing import Any, Optional


# Leading numeric prefix, after optional whitespace and sign
_INT_PREFIX = re.compile(r'^\s*([+-]?)(\d+)')
_HEX_PREFIX = re.compile(r'^\s*([+-]?)0[xX]([0-9a-fA-F]+)')
_FLOAT_PREFIX = re.compile(r'^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)')


def convert_to_bool(value: Any) -> bool:
    """
    Convert element text to bool.

    Only the exact string "true" is True; "TRUE", "1" or "yes" are not.

    Args:
        value: Element text (or None)

    Returns:
        bool: True only on exact match
    """
    if isinstance(value, bool):
        return value
    return value == "true"


def convert_to_int(value: Optional[str]) -> int:
    """
    Convert element text to int by parsing its leading integer prefix.

    "12abc" -> 12, "  -3" -> -3, "0x1A" -> 26, "N/A" -> 0, None -> 0.

    Args:
        value: Element text (or None)

    Returns:
        int: Parsed value, 0 if no integer prefix exists
    """
    if value is None:
        return 0
    text = str(value)

    match = _HEX_PREFIX.match(text)
    if match:
        number = int(match.group(2), 16)
        return -number if match.group(1) == '-' else number

    match = _INT_PREFIX.match(text)
    if not match:
        return 0
    number = int(match.group(2))
    return -number if match.group(1) == '-' else number


def convert_to_float(value: Optional[str]) -> float:
    """
    Convert element text to float by parsing its leading numeric prefix.

    "12.5abc" -> 12.5, ".5" -> 0.5, "1e3x" -> 1000.0, "N/A" -> 0.0,
    None -> 0.0. Overflowing values also become 0.0.

    Args:
        value: Element text (or None)

    Returns:
        float: Parsed value, 0.0 if no numeric prefix exists
    """
    if value is None:
        return 0.0
    match = _FLOAT_PREFIX.match(str(value))
    if not match:
        return 0.0
    number = float(match.group(1))
    if not math.isfinite(number):
        return 0.0
    return number


def convert_to_text(value: Optional[str]) -> str:
    """Element text, or an empty string when absent."""
    return value or ''
