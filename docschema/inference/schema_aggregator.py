"""
Schema aggregation over a document sample.

Drives the FieldExtractor once per document, groups documents into
schema variants by exact field signature, consolidates child-table row
samples and, once the sample is exhausted, computes prevalence and
merges relationship findings into the child tables.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from docschema.config.settings import Settings, get_settings
from docschema.inference.document import DocumentError, parse_document
from docschema.inference.field_extractor import ExtractionResult, FieldExtractor
from docschema.inference.models import (
    ChildTableSchema,
    ChildTableType,
    DocumentSchema,
    FieldInfo,
    SchemaModel,
)
from docschema.inference.relationships import RelationshipDetector, ValueFrequencyTable
from docschema.inference.type_unifier import TypeUnifier

logger = logging.getLogger(__name__)

SIGNATURE_SEPARATOR = "|"


@dataclass
class AnalysisContext:
    """
    All mutable state of one collection pass.

    Owned by exactly one SchemaAggregator; never shared between passes.
    """
    collection_name: str = ""
    schemas: Dict[str, DocumentSchema] = field(default_factory=dict)
    child_tables: Dict[str, ChildTableSchema] = field(default_factory=dict)
    frequencies: ValueFrequencyTable = field(default_factory=ValueFrequencyTable)
    documents_analyzed: int = 0
    documents_skipped: int = 0
    values_skipped: int = 0
    cancelled: bool = False


def schema_signature(main_fields: Dict[str, FieldInfo]) -> str:
    """Sorted `name:typesCSV` pairs of main-table fields."""
    return SIGNATURE_SEPARATOR.join(
        f"{name}:{','.join(sorted(main_fields[name].detected_types))}"
        for name in sorted(main_fields)
    )


class SchemaAggregator:
    """Folds extracted documents into schema variants and child tables."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        collection_name: str = "",
        extractor: Optional[FieldExtractor] = None,
        detector: Optional[RelationshipDetector] = None,
    ):
        self.settings = settings or get_settings()

        self.extractor = extractor or FieldExtractor(self.settings)
        self.unifier: TypeUnifier = self.extractor.unifier
        self.detector = detector or RelationshipDetector(self.settings, self.unifier)
        self.parent_key_field = self.settings.parent_key_field
        self.context = AnalysisContext(collection_name=collection_name)
        self._model: Optional[SchemaModel] = None

    @property
    def documents_seen(self) -> int:
        return self.context.documents_analyzed + self.context.documents_skipped

    def add_document(self, raw: Any) -> bool:
        """
        Analyze one sampled document.

        Args:
            raw: JSON text, decoded dict or JsonNode

        Returns:
            True if the document was analyzed, False if it was skipped
        """
        if self._model is not None:
            raise RuntimeError("Aggregator already finalized")

        try:
            document = parse_document(raw)
            result = self.extractor.extract(document)
        except (DocumentError, RecursionError) as e:
            self.context.documents_skipped += 1
            logger.warning(
                "Skipping malformed document",
                extra={"extra_fields": {
                    "collection": self.context.collection_name,
                    "error": str(e),
                }},
            )
            return False

        self._commit(result)
        return True

    def add_documents(
        self,
        documents: Iterable[Any],
        limit: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> int:
        """
        Analyze documents until the iterable ends, the limit is reached or
        the pass is cancelled.

        Returns:
            Number of documents analyzed by this call
        """
        analyzed = 0
        for raw in documents:
            if cancel_event is not None and cancel_event.is_set():
                self.context.cancelled = True
                logger.info(
                    "Analysis cancelled",
                    extra={"extra_fields": {
                        "collection": self.context.collection_name,
                        "documents_seen": self.documents_seen,
                    }},
                )
                break
            if limit is not None and self.documents_seen >= limit:
                break
            if self.add_document(raw):
                analyzed += 1
        return analyzed

    # ======================================
    # Per-document commit
    # ======================================
    def _commit(self, result: ExtractionResult) -> None:
        context = self.context
        context.documents_analyzed += 1
        context.values_skipped += result.skipped_values

        signature = schema_signature(result.main_fields)
        schema = context.schemas.get(signature)
        if schema is None:
            schema = DocumentSchema(
                signature=signature,
                schema_name=f"Schema_{len(context.schemas) + 1}",
                fields={name: info.copy() for name, info in result.main_fields.items()},
            )
            context.schemas[signature] = schema
            logger.debug(
                "New schema variant",
                extra={"extra_fields": {
                    "schema_name": schema.schema_name,
                    "field_count": len(schema.fields),
                }},
            )
        else:
            for name, info in result.main_fields.items():
                schema.fields[name].merge(info, self.unifier)
        schema.sample_count += 1

        for table_name, rows in result.child_samples.items():
            if rows:
                self._merge_child_rows(table_name, result.child_types[table_name], rows)

        context.frequencies.merge(result.frequencies)

    def consolidate_rows(self, rows: List[Dict[str, FieldInfo]]) -> Dict[str, FieldInfo]:
        """Union of row samples; a field missing from any row is optional."""
        merged: Dict[str, FieldInfo] = {}
        for row in rows:
            for name, info in row.items():
                if name in merged:
                    merged[name].merge(info, self.unifier)
                else:
                    merged[name] = info.copy()

        for name, info in merged.items():
            if any(name not in row for row in rows):
                info.is_required = False
        return merged

    def _merge_child_rows(
        self,
        table_name: str,
        table_type: ChildTableType,
        rows: List[Dict[str, FieldInfo]],
    ) -> None:
        consolidated = self.consolidate_rows(rows)
        table = self.context.child_tables.get(table_name)

        if table is None:
            table = ChildTableSchema(
                table_name=table_name,
                source_field_path=table_name,
                table_type=table_type,
                fields=consolidated,
                sample_count=len(rows),
                parent_key_field=self.parent_key_field,
            )
            if table_type == ChildTableType.ARRAY:
                table.transformation_notes.append(
                    "Extract array items into separate rows with a foreign key to the parent")
            else:
                table.transformation_notes.append(
                    "Extract nested object properties into a separate table with a foreign key to the parent")
            self.context.child_tables[table_name] = table
            return

        for name, info in table.fields.items():
            if name not in consolidated:
                info.is_required = False
        for name, info in consolidated.items():
            if name in table.fields:
                table.fields[name].merge(info, self.unifier)
            else:
                # Earlier samples lacked it
                added = info.copy()
                added.is_required = False
                table.fields[name] = added
        table.sample_count += len(rows)

    # ======================================
    # End of pass
    # ======================================
    def finalize(self) -> SchemaModel:
        """
        Close the pass and build the schema model.

        Computes prevalence, runs many-to-many classification over the
        value-frequency table and discards the table afterwards. Calling
        it again returns the same model.
        """
        if self._model is not None:
            return self._model

        context = self.context
        schemas = list(context.schemas.values())
        total = sum(schema.sample_count for schema in schemas)
        for schema in schemas:
            schema.prevalence = schema.sample_count / total if total > 0 else 0.0

        hints = self.detector.detect(context.frequencies, context.documents_analyzed)
        self.detector.apply(hints, context.child_tables, context.frequencies)
        for table in context.child_tables.values():
            self.detector.review_child_table(table)
        context.frequencies.clear()

        self._model = SchemaModel(
            collection_name=context.collection_name,
            schemas=schemas,
            child_tables=dict(context.child_tables),
            relationship_hints=hints,
            total_documents=context.documents_analyzed,
            skipped_documents=context.documents_skipped,
            skipped_values=context.values_skipped,
            cancelled=context.cancelled,
        )

        logger.info(
            "Schema inference finished",
            extra={"extra_fields": {
                "collection": context.collection_name,
                "documents": context.documents_analyzed,
                "skipped": context.documents_skipped,
                "schemas": len(schemas),
                "child_tables": len(context.child_tables),
                "many_to_many": len(hints),
            }},
        )
        return self._model
