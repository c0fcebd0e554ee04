"""
Module: serializer.py
Description: Reference-safe serializer for arbitrary object graphs.

Turns any Python value (including cyclic graphs, datetimes, exceptions,
compiled patterns, callables and values with no JSON form) into JSON text
made of tagged nodes, and rebuilds an equivalent value from that text.

Key Components:
- ReferenceSafeSerializer: serialize()/deserialize() entry points
- _Encoder: one depth-first encoding pass with its own reference table
- _Decoder: one decoding pass resolving back-references
- RestoredError: stand-in for exceptions whose class cannot be rebuilt

Behaviour:
- serialize() never raises; failures produce a fallback marker document
- deserialize() never raises; malformed text produces None
- Any second encounter of the same object (cyclic or merely shared) is
  written as a BackReference node

Dependencies: json, inspect, traceback, structlog (via utils.logger)
"""

import builtins
import inspect
import json
import math
import re
import traceback
import types
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from telemetry_relay.errors import SerializationError
from telemetry_relay.utils.logger import get_logger
from telemetry_relay.utils.timestamps import utc_now_iso
from telemetry_relay.serialization.nodes import (
    FALLBACK_KEY,
    KIND_KEY,
    REGEX_FLAG_LETTERS,
    NodeKind,
    truncate,
)

logger = get_logger(__name__)


class RestoredError(Exception):
    """Exception rebuilt from a serialized error whose class is not a builtin."""

    def __init__(self, message: str = "", name: str = "Error"):
        super().__init__(message)
        self.name = name

    def __repr__(self) -> str:
        return f"RestoredError({self.name}: {self.args[0] if self.args else ''})"


class _Encoder:
    """Single encoding pass. Holds the seen-reference table for that pass only."""

    def __init__(self):
        self._seen: Dict[int, int] = {}
        # Keeps visited values alive so their id() cannot be reused mid-pass
        self._visited: List[Any] = []
        self._ref_counter = 0

    def encode(self, value: Any) -> Any:
        if value is None or isinstance(value, (str, bool, int)):
            return value

        if isinstance(value, float):
            if math.isfinite(value):
                return value
            return self._unknown(value)

        if isinstance(value, Enum):
            return self.encode(value.value)

        if isinstance(value, datetime):
            return {KIND_KEY: NodeKind.DATE.value, "value": value.isoformat(), "dateOnly": False}

        if isinstance(value, date):
            return {KIND_KEY: NodeKind.DATE.value, "value": value.isoformat(), "dateOnly": True}

        if isinstance(value, BaseException):
            return self._error(value)

        if isinstance(value, re.Pattern) and isinstance(value.pattern, str):
            return self._regexp(value)

        if isinstance(value, dict):
            return self._object(value, value.items())

        if isinstance(value, (list, tuple, set, frozenset)):
            return self._array(value)

        if inspect.isroutine(value) or inspect.isclass(value):
            return self._function(value)

        if hasattr(value, "__dict__") and not isinstance(value, types.ModuleType):
            return self._object(value, vars(value).items(), class_name=type(value).__qualname__)

        return self._unknown(value)

    def _visit(self, value: Any):
        """Register a composite value; returns (back_reference_node, ref_id)."""
        key = id(value)
        if key in self._seen:
            return {
                KIND_KEY: NodeKind.BACK_REFERENCE.value,
                "isBackReference": True,
                "refId": self._seen[key],
            }, None

        self._ref_counter += 1
        self._seen[key] = self._ref_counter
        self._visited.append(value)
        return None, self._ref_counter

    def _field(self, name: str, value: Any) -> Any:
        try:
            return self.encode(value)
        except Exception as e:
            return {
                KIND_KEY: NodeKind.FIELD_ERROR.value,
                "fieldError": True,
                "message": str(e),
                "fieldName": name,
            }

    def _object(self, value, items, class_name: Optional[str] = None) -> Dict[str, Any]:
        back_reference, ref_id = self._visit(value)
        if back_reference is not None:
            return back_reference

        fields = {}
        for key, item in list(items):
            name = key if isinstance(key, str) else str(key)
            fields[name] = self._field(name, item)

        node = {KIND_KEY: NodeKind.OBJECT.value, "refId": ref_id, "fields": fields}
        if class_name is not None:
            node["className"] = class_name
        return node

    def _array(self, value) -> Dict[str, Any]:
        back_reference, ref_id = self._visit(value)
        if back_reference is not None:
            return back_reference

        items = [self._field(f"[{index}]", item) for index, item in enumerate(list(value))]
        return {KIND_KEY: NodeKind.ARRAY.value, "refId": ref_id, "items": items}

    def _error(self, value: BaseException) -> Dict[str, Any]:
        back_reference, ref_id = self._visit(value)
        if back_reference is not None:
            return back_reference

        stack = None
        if value.__traceback__ is not None:
            stack = "".join(
                traceback.format_exception(type(value), value, value.__traceback__, chain=False)
            )

        cause = value.__cause__
        return {
            KIND_KEY: NodeKind.ERROR.value,
            "refId": ref_id,
            "name": type(value).__name__,
            "message": str(value),
            "stack": stack,
            "cause": self._field("cause", cause) if cause is not None else None,
        }

    def _regexp(self, value: "re.Pattern") -> Dict[str, Any]:
        flags = "".join(letter for letter, bit in REGEX_FLAG_LETTERS if value.flags & bit)
        return {KIND_KEY: NodeKind.REGEXP.value, "source": value.pattern, "flags": flags}

    def _function(self, value: Any) -> Dict[str, Any]:
        name = getattr(value, "__qualname__", None) or getattr(value, "__name__", None) or "anonymous"

        try:
            arity = len(inspect.signature(value).parameters)
        except (TypeError, ValueError):
            arity = None

        try:
            source = inspect.getsource(value)
        except (OSError, TypeError):
            source = repr(value)

        return {
            KIND_KEY: NodeKind.FUNCTION.value,
            "name": name,
            "arity": arity,
            "source": truncate(source),
        }

    def _unknown(self, value: Any) -> Dict[str, Any]:
        return {
            KIND_KEY: NodeKind.UNKNOWN.value,
            "typeName": type(value).__name__,
            "text": truncate(str(value)),
        }


class _Decoder:
    """Single decoding pass. Containers are registered before their children."""

    def __init__(self):
        self._refs: Dict[int, Any] = {}

    def decode(self, node: Any) -> Any:
        if node is None or isinstance(node, (str, bool, int, float)):
            return node

        if not isinstance(node, dict):
            raise SerializationError(f"untagged {type(node).__name__} node")

        if KIND_KEY not in node:
            if node.get(FALLBACK_KEY) is True:
                return node
            raise SerializationError("untagged object node")

        try:
            kind = NodeKind(node[KIND_KEY])
        except ValueError:
            raise SerializationError(f"unknown node kind {node[KIND_KEY]!r}")

        handlers = {
            NodeKind.OBJECT: self._object,
            NodeKind.ARRAY: self._array,
            NodeKind.DATE: self._date,
            NodeKind.ERROR: self._error,
            NodeKind.REGEXP: self._regexp,
            NodeKind.FUNCTION: self._function,
            NodeKind.UNKNOWN: self._unknown,
            NodeKind.BACK_REFERENCE: self._back_reference,
            NodeKind.FIELD_ERROR: self._field_error,
        }
        return handlers[kind](node)

    def _object(self, node: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        self._refs[node["refId"]] = result
        for key, child in node["fields"].items():
            result[key] = self.decode(child)
        return result

    def _array(self, node: Dict[str, Any]) -> List[Any]:
        result: List[Any] = []
        self._refs[node["refId"]] = result
        for child in node["items"]:
            result.append(self.decode(child))
        return result

    def _date(self, node: Dict[str, Any]):
        if node.get("dateOnly"):
            return date.fromisoformat(node["value"])
        return datetime.fromisoformat(node["value"].replace("Z", "+00:00"))

    def _error(self, node: Dict[str, Any]) -> BaseException:
        name = node.get("name") or "Error"
        message = node.get("message") or ""

        error_class = getattr(builtins, name, None)
        error: BaseException
        if isinstance(error_class, type) and issubclass(error_class, BaseException):
            try:
                error = error_class(message)
            except Exception:
                error = RestoredError(message, name=name)
        else:
            error = RestoredError(message, name=name)

        error.stack = node.get("stack")
        if node.get("refId") is not None:
            self._refs[node["refId"]] = error

        if node.get("cause") is not None:
            cause = self.decode(node["cause"])
            if isinstance(cause, BaseException):
                error.__cause__ = cause
        return error

    def _regexp(self, node: Dict[str, Any]) -> "re.Pattern":
        letters = dict(REGEX_FLAG_LETTERS)
        flags = 0
        for letter in node.get("flags", ""):
            flags |= letters.get(letter, 0)
        return re.compile(node["source"], flags)

    def _function(self, node: Dict[str, Any]) -> str:
        return f"[Function: {node.get('name') or 'anonymous'}]"

    def _unknown(self, node: Dict[str, Any]) -> Any:
        text = node.get("text", "")
        if node.get("typeName") == "float":
            try:
                return float(text)
            except ValueError:
                return text
        return text

    def _back_reference(self, node: Dict[str, Any]) -> Any:
        # Ancestor not materialised yet, or never emitted
        return self._refs.get(node.get("refId"))

    def _field_error(self, node: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "fieldError": True,
            "message": node.get("message"),
            "fieldName": node.get("fieldName"),
        }


class ReferenceSafeSerializer:
    """
    Serializer that survives cycles and values JSON cannot represent.

    Each call works on fresh reference tables, so one instance can be
    shared by the transport and the durable store.

    Example:
        >>> serializer = ReferenceSafeSerializer()
        >>> node = {"name": "root"}
        >>> node["self"] = node
        >>> restored = serializer.deserialize(serializer.serialize(node))
        >>> restored["self"] is restored
        True
    """

    def serialize(self, value: Any) -> str:
        """
        Encode a value graph as JSON text.

        Args:
            value: Any Python value

        Returns:
            JSON text made of tagged nodes, or a fallback marker document
            describing why encoding failed
        """
        try:
            return self.encode(value)

        except SerializationError as e:
            logger.error(
                "Serialization failed, using fallback payload",
                error=str(e),
                original_type=type(value).__name__
            )
            return self.fallback_text(value, e)

    def encode(self, value: Any) -> str:
        """
        Encode a value graph as JSON text, raising on failure.

        Raises:
            SerializationError: If the graph cannot be encoded
        """
        try:
            node = _Encoder().encode(value)
            return json.dumps(node, ensure_ascii=False, allow_nan=False)
        except Exception as e:
            raise SerializationError(f"{type(e).__name__}: {e}") from e

    def fallback_text(self, value: Any, error: BaseException) -> str:
        """Build the fallback marker document for a value that failed to encode."""
        return json.dumps({
            FALLBACK_KEY: True,
            "error": str(error),
            "originalType": type(value).__name__,
            "isObject": value is not None and not isinstance(value, (str, bool, int, float)),
            "timestamp": utc_now_iso(),
        })

    def deserialize(self, text: Any) -> Any:
        """
        Rebuild a value from serializer output.

        Args:
            text: JSON text produced by serialize()

        Returns:
            The rebuilt value, the fallback marker dict if the text is one,
            or None if the text is malformed
        """
        if not isinstance(text, (str, bytes, bytearray)):
            logger.warning(
                "Deserialization skipped, input is not text",
                input_type=type(text).__name__
            )
            return None

        try:
            return _Decoder().decode(json.loads(text))

        except Exception as e:
            logger.warning(
                "Deserialization failed",
                error=str(e),
                error_type=type(e).__name__
            )
            return None

    def serialize_for_logging(self, value: Any) -> str:
        """Serialize a value for inclusion in a log field."""
        return self.serialize(value)

    @staticmethod
    def is_fallback(value: Any) -> bool:
        """Check whether a deserialized value is a serialization fallback marker."""
        return isinstance(value, dict) and value.get(FALLBACK_KEY) is True

