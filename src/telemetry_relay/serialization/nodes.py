"""
Module: nodes.py
Description: Tagged node vocabulary for the reference-safe serializer.

Every composite or special value is written as a JSON object whose
``__kind`` key names one member of a closed set. Primitives are written
as-is and carry no tag.
"""

import re
from enum import Enum

KIND_KEY = "__kind"
FALLBACK_KEY = "__serializationError"
TRUNCATE_AT = 200


class NodeKind(str, Enum):
    """Discriminator values for serialized nodes."""

    OBJECT = "Object"
    ARRAY = "Array"
    DATE = "Date"
    ERROR = "Error"
    REGEXP = "RegExp"
    FUNCTION = "Function"
    UNKNOWN = "Unknown"
    BACK_REFERENCE = "BackReference"
    FIELD_ERROR = "FieldError"


REGEX_FLAG_LETTERS = (
    ("a", re.ASCII),
    ("i", re.IGNORECASE),
    ("m", re.MULTILINE),
    ("s", re.DOTALL),
    ("x", re.VERBOSE),
)


def truncate(text: str, limit: int = TRUNCATE_AT) -> str:
    """Cut text at ``limit`` characters, marking the cut with an ellipsis."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
