"""
Field extraction for one document.

Splits a document into main-table scalar fields and raw row samples for
child tables, and feeds every array element into a value-frequency
table. Everything is written to a document-local ExtractionResult; the
aggregator commits it once the whole document has been walked.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from docschema.config.settings import Settings, get_settings
from docschema.inference.array_analyzer import ArrayStructureAnalyzer
from docschema.inference.document import JsonKind, JsonNode
from docschema.inference.models import ArrayAnalysis, ArrayStorage, ChildTableType, FieldInfo
from docschema.inference.relationships import VALUE_COLUMN, ValueFrequencyTable
from docschema.inference.type_classifier import SqlType, TypeClassifier
from docschema.inference.type_unifier import TypeUnifier

logger = logging.getLogger(__name__)

# Errors that skip a single property instead of the whole document
VALUE_ERRORS = (ValueError, TypeError, ArithmeticError, RecursionError)


@dataclass
class ExtractionResult:
    """Everything one document contributes to a pass."""
    main_fields: Dict[str, FieldInfo] = field(default_factory=dict)
    child_samples: Dict[str, List[Dict[str, FieldInfo]]] = field(default_factory=dict)
    child_types: Dict[str, ChildTableType] = field(default_factory=dict)
    frequencies: ValueFrequencyTable = field(default_factory=ValueFrequencyTable)
    array_analyses: Dict[str, ArrayAnalysis] = field(default_factory=dict)
    skipped_values: int = 0

    def add_child_row(self, table: str, table_type: ChildTableType, row: Dict[str, FieldInfo]) -> None:
        self.child_types.setdefault(table, table_type)
        rows = self.child_samples.setdefault(table, [])
        if row:
            rows.append(row)


class FieldExtractor:
    """
    Recursive document walker.

    Objects at the document root become NestedObject child tables;
    deeper objects are flattened with underscore-joined names. Arrays are
    routed by the ArrayStructureAnalyzer. Arrays inside child-table rows
    are kept as opaque text.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        classifier: Optional[TypeClassifier] = None,
        unifier: Optional[TypeUnifier] = None,
        array_analyzer: Optional[ArrayStructureAnalyzer] = None,
    ):
        settings = settings or get_settings()

        self.classifier = classifier or TypeClassifier(settings)
        self.unifier = unifier or TypeUnifier(settings)
        self.array_analyzer = array_analyzer or ArrayStructureAnalyzer(settings, self.classifier)
        self.array_sample_size = settings.array_sample_size
        self.normalize_nested_objects = settings.normalize_nested_objects

    def extract(self, document: JsonNode) -> ExtractionResult:
        """
        Walk one document.

        Args:
            document: OBJECT node (see parse_document)

        Returns:
            ExtractionResult for this document only
        """
        result = ExtractionResult()
        self._walk_object(document, "", result)
        return result

    # ======================================
    # Main-table walk
    # ======================================
    def _walk_object(self, node: JsonNode, prefix: str, result: ExtractionResult) -> None:
        for name, child in node.iter_properties():
            field_name = f"{prefix}_{name}" if prefix else name
            try:
                self._walk_property(child, prefix, field_name, result)
            except VALUE_ERRORS as e:
                result.skipped_values += 1
                logger.warning(
                    "Skipping unreadable field value",
                    extra={"extra_fields": {"field": field_name, "error": str(e)}},
                )

    def _walk_property(
        self,
        node: JsonNode,
        prefix: str,
        field_name: str,
        result: ExtractionResult,
    ) -> None:
        if node.kind == JsonKind.OBJECT:
            if not prefix and self.normalize_nested_objects:
                row: Dict[str, FieldInfo] = {}
                self.flatten_row(node, "", row)
                result.add_child_row(field_name, ChildTableType.NESTED_OBJECT, row)
            else:
                self._walk_object(node, field_name, result)
        elif node.kind == JsonKind.ARRAY:
            self._walk_array(node, field_name, bool(prefix), result)
        elif node.kind in (JsonKind.STRING, JsonKind.NUMBER, JsonKind.BOOLEAN, JsonKind.NULL):
            self._record_scalar(result.main_fields, field_name, node, is_nested=bool(prefix))
        else:
            raise ValueError(f"Unhandled node kind: {node.kind!r}")

    def _walk_array(
        self,
        node: JsonNode,
        path: str,
        is_nested: bool,
        result: ExtractionResult,
    ) -> None:
        analysis = self.array_analyzer.analyze(node, path)
        result.array_analyses[path] = analysis

        # Relationship tracking sees every element, not just the sample
        observed = [
            (item.to_text(), self.classifier.classify(item) if item.is_scalar else None)
            for item in node.items
            if item.kind != JsonKind.NULL and not item.malformed
        ]
        for text, label in observed:
            result.frequencies.record(path, text, label)

        if analysis.recommended_storage == ArrayStorage.RELATIONAL_TABLE:
            for item in node.items[:self.array_sample_size]:
                row: Dict[str, FieldInfo] = {}
                self.flatten_row(item, "", row)
                result.add_child_row(path, ChildTableType.ARRAY, row)
            return

        info = result.main_fields.get(path)
        if info is None:
            info = result.main_fields[path] = FieldInfo(name=path, is_nested=is_nested)
        info.add_type(analysis.recommended_sql_type or SqlType.TEXT, self.unifier)
        info.observe_length(analysis.inline_length)

    # ======================================
    # Child-table rows
    # ======================================
    def flatten_row(
        self,
        node: JsonNode,
        prefix: str,
        fields: Dict[str, FieldInfo],
        is_nested: bool = False,
    ) -> None:
        """
        Flatten one array element or nested object into a row sample.

        Nested objects flatten with underscore-joined names; arrays at this
        depth never become further tables and are kept as NVARCHAR(MAX).
        A bare scalar element lands in the `value` column.
        """
        if node.kind == JsonKind.OBJECT:
            for name, child in node.iter_properties():
                field_name = f"{prefix}_{name}" if prefix else name
                self.flatten_row(child, field_name, fields, is_nested=bool(prefix))
        elif node.kind == JsonKind.ARRAY:
            name = prefix or VALUE_COLUMN
            info = fields.get(name)
            if info is None:
                info = fields[name] = FieldInfo(name=name, is_nested=is_nested)
            info.add_type(SqlType.TEXT, self.unifier)
            info.observe_length(len(node.to_text()))
        else:
            self._record_scalar(fields, prefix or VALUE_COLUMN, node, is_nested=is_nested)

    def _record_scalar(
        self,
        fields: Dict[str, FieldInfo],
        name: str,
        node: JsonNode,
        is_nested: bool,
    ) -> None:
        label = self.classifier.classify(node)
        info = fields.get(name)
        if info is None:
            info = fields[name] = FieldInfo(name=name, is_nested=is_nested)

        info.add_type(label, self.unifier)
        if node.kind == JsonKind.STRING:
            info.observe_length(len(node.value))
