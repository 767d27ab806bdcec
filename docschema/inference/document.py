"""
Document tree model.

Sampled documents are converted into a closed set of node kinds before
any inference runs, so the extractor only ever sees one of six shapes.
Number nodes keep their literal text so decimal scale survives parsing.
"""

import json
import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Tuple, Union


class SchemaInferenceError(Exception):
    """Base exception for the inference core."""
    pass


class DocumentError(SchemaInferenceError):
    """Raised when a sampled document cannot be turned into an object tree."""
    pass


class AnalysisCancelledError(SchemaInferenceError):
    """
    Raised when a pass is cancelled and the caller asked for an error
    instead of a partial model.
    """

    def __init__(self, message: str, partial_model: Any = None):
        super().__init__(message)
        self.partial_model = partial_model


class JsonKind(str, Enum):
    """Enumeration of document node kinds."""
    NULL = "null"
    BOOLEAN = "boolean"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"


@dataclass(frozen=True)
class JsonNode:
    """
    One node of a parsed document.

    Attributes:
        kind: Node kind
        value: str for STRING, bool for BOOLEAN, literal text for NUMBER
        items: Child nodes of an ARRAY
        properties: (name, node) pairs of an OBJECT, in document order
        malformed: True when the source value could not be represented faithfully
    """
    kind: JsonKind
    value: Any = None
    items: Tuple["JsonNode", ...] = ()
    properties: Tuple[Tuple[str, "JsonNode"], ...] = ()
    malformed: bool = False

    @property
    def is_scalar(self) -> bool:
        return self.kind not in (JsonKind.ARRAY, JsonKind.OBJECT)

    def iter_properties(self) -> Iterator[Tuple[str, "JsonNode"]]:
        return iter(self.properties)

    def to_text(self) -> str:
        """
        Canonical text form of the node.

        Strings pass through verbatim; every other kind is rendered as
        compact JSON with object keys sorted.
        """
        if self.kind == JsonKind.STRING:
            return self.value
        return _render(self)


def _render(node: JsonNode) -> str:
    if node.kind == JsonKind.NULL:
        return "null"
    if node.kind == JsonKind.BOOLEAN:
        return "true" if node.value else "false"
    if node.kind == JsonKind.NUMBER:
        return node.value
    if node.kind == JsonKind.STRING:
        return json.dumps(node.value, ensure_ascii=False)
    if node.kind == JsonKind.ARRAY:
        return "[" + ",".join(_render(item) for item in node.items) + "]"
    if node.kind == JsonKind.OBJECT:
        parts = [
            f"{json.dumps(name, ensure_ascii=False)}:{_render(child)}"
            for name, child in sorted(node.properties, key=lambda p: p[0])
        ]
        return "{" + ",".join(parts) + "}"
    raise ValueError(f"Unknown node kind: {node.kind!r}")


def to_node(value: Any) -> JsonNode:
    """
    Convert a Python value (as produced by json.loads) into a JsonNode.

    Values that JSON cannot carry (non-finite numbers, arbitrary objects)
    are kept as nodes flagged malformed rather than raising.
    """
    if value is None:
        return JsonNode(JsonKind.NULL)
    if isinstance(value, bool):
        return JsonNode(JsonKind.BOOLEAN, value=value)
    if isinstance(value, int):
        try:
            return JsonNode(JsonKind.NUMBER, value=str(value))
        except ValueError:
            # Beyond the interpreter's int-to-str digit limit
            return JsonNode(JsonKind.NUMBER, value="", malformed=True)
    if isinstance(value, float):
        return JsonNode(JsonKind.NUMBER, value=repr(value), malformed=not math.isfinite(value))
    if isinstance(value, Decimal):
        return JsonNode(JsonKind.NUMBER, value=str(value), malformed=not value.is_finite())
    if isinstance(value, str):
        return JsonNode(JsonKind.STRING, value=value)
    if isinstance(value, dict):
        return JsonNode(
            JsonKind.OBJECT,
            properties=tuple((str(key), to_node(child)) for key, child in value.items()),
        )
    if isinstance(value, (list, tuple)):
        return JsonNode(JsonKind.ARRAY, items=tuple(to_node(item) for item in value))
    return JsonNode(JsonKind.STRING, value=str(value), malformed=True)


def parse_document(raw: Union[str, bytes, dict, JsonNode]) -> JsonNode:
    """
    Turn one sampled record into an OBJECT node.

    Args:
        raw: JSON text, an already-decoded dict, or a JsonNode

    Returns:
        The document root

    Raises:
        DocumentError: If the text is not valid JSON or the root is not an object
    """
    if isinstance(raw, JsonNode):
        node = raw
    elif isinstance(raw, (str, bytes, bytearray)):
        if not raw or not raw.strip():
            raise DocumentError("Empty document")
        try:
            decoded = json.loads(raw, parse_float=Decimal)
        except ValueError as e:
            raise DocumentError(f"Invalid JSON document: {e}") from e
        node = to_node(decoded)
    elif isinstance(raw, dict):
        node = to_node(raw)
    else:
        raise DocumentError(f"Unsupported document type: {type(raw).__name__}")

    if node.kind != JsonKind.OBJECT:
        raise DocumentError(f"Document root must be an object, got {node.kind.value}")

    return node
