"""
Schema model.

In-memory shape of an inferred relational schema: main-table schema
variants, child tables, per-field recommended types and relationship
hints. Consumed by DDL/report emitters.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from docschema.inference.type_unifier import TypeUnifier


class ChildTableType(str, Enum):
    ARRAY = "Array"
    NESTED_OBJECT = "NestedObject"
    MANY_TO_MANY = "ManyToMany"


class ArrayStorage(str, Enum):
    JSON = "JSON"
    DELIMITED_STRING = "DelimitedString"
    RELATIONAL_TABLE = "RelationalTable"


@dataclass
class FieldInfo:
    """
    One column candidate.

    `recommended_type` is always recomputed from `detected_types`; never
    assign it directly.
    """
    name: str
    detected_types: Set[str] = field(default_factory=set)
    recommended_type: str = ""
    is_required: bool = True
    is_nested: bool = False
    max_length: int = 0

    def add_type(self, label: str, unifier: TypeUnifier) -> None:
        self.detected_types.add(label)
        self.recommended_type = unifier.unify(self.detected_types)

    def observe_length(self, length: int) -> None:
        self.max_length = max(self.max_length, length)

    def merge(self, other: "FieldInfo", unifier: TypeUnifier) -> None:
        """Fold another observation of the same field into this one."""
        self.detected_types |= other.detected_types
        self.recommended_type = unifier.unify(self.detected_types)
        self.is_required = self.is_required and other.is_required
        self.is_nested = self.is_nested or other.is_nested
        self.max_length = max(self.max_length, other.max_length)

    def copy(self) -> "FieldInfo":
        return FieldInfo(
            name=self.name,
            detected_types=set(self.detected_types),
            recommended_type=self.recommended_type,
            is_required=self.is_required,
            is_nested=self.is_nested,
            max_length=self.max_length,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "detected_types": sorted(self.detected_types),
            "recommended_type": self.recommended_type,
            "is_required": self.is_required,
            "is_nested": self.is_nested,
            "max_length": self.max_length,
        }


@dataclass
class DocumentSchema:
    """One structural variant of the main table."""
    signature: str
    schema_name: str
    fields: Dict[str, FieldInfo] = field(default_factory=dict)
    sample_count: int = 0
    prevalence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_name": self.schema_name,
            "signature": self.signature,
            "sample_count": self.sample_count,
            "prevalence": self.prevalence,
            "fields": {name: info.to_dict() for name, info in self.fields.items()},
        }


@dataclass
class IndexRecommendation:
    table_name: str
    index_name: str
    columns: List[str]
    index_type: str = "NonClustered"
    justification: str = ""
    priority: int = 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "index_name": self.index_name,
            "index_type": self.index_type,
            "columns": list(self.columns),
            "justification": self.justification,
            "priority": self.priority,
        }


@dataclass
class ChildTableSchema:
    """A table normalized out of an array or nested-object field."""
    table_name: str
    source_field_path: str
    table_type: ChildTableType
    fields: Dict[str, FieldInfo] = field(default_factory=dict)
    sample_count: int = 0
    parent_key_field: str = "ParentId"
    recommended_indexes: List[IndexRecommendation] = field(default_factory=list)
    transformation_notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "source_field_path": self.source_field_path,
            "table_type": self.table_type.value,
            "sample_count": self.sample_count,
            "parent_key_field": self.parent_key_field,
            "fields": {name: info.to_dict() for name, info in self.fields.items()},
            "recommended_indexes": [index.to_dict() for index in self.recommended_indexes],
            "transformation_notes": list(self.transformation_notes),
        }


@dataclass
class ArrayAnalysis:
    """Storage decision for one array value. Not persisted."""
    array_name: str
    item_count: int
    should_create_table: bool
    recommended_storage: ArrayStorage
    recommended_sql_type: Optional[str]
    transformation_logic: str = ""
    # Length of the inline representation (delimited or JSON text)
    inline_length: int = 0


@dataclass
class RelationshipHint:
    """
    Many-to-many classification of one array field.

    `child_table` names the child table the finding was attached to, or
    None when the array is stored inline on the main table.
    """
    field_path: str
    unique_values: int
    total_occurrences: int
    documents: int
    max_share: float
    reuse_ratio: float
    reasons: List[str] = field(default_factory=list)
    child_table: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_path": self.field_path,
            "unique_values": self.unique_values,
            "total_occurrences": self.total_occurrences,
            "documents": self.documents,
            "max_share": self.max_share,
            "reuse_ratio": self.reuse_ratio,
            "reasons": list(self.reasons),
            "child_table": self.child_table,
        }


@dataclass
class SchemaModel:
    """Output of one collection's analysis pass."""
    collection_name: str = ""
    schemas: List[DocumentSchema] = field(default_factory=list)
    child_tables: Dict[str, ChildTableSchema] = field(default_factory=dict)
    relationship_hints: List[RelationshipHint] = field(default_factory=list)
    total_documents: int = 0
    skipped_documents: int = 0
    skipped_values: int = 0
    cancelled: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.schemas and not self.child_tables

    def main_table_fields(self, unifier: TypeUnifier) -> Dict[str, FieldInfo]:
        """
        Union of main-table fields across all schema variants.

        A field is required only if every variant carries it.
        """
        merged: Dict[str, FieldInfo] = {}
        for schema in self.schemas:
            for name, info in schema.fields.items():
                if name in merged:
                    merged[name].merge(info, unifier)
                else:
                    merged[name] = info.copy()
        for name, info in merged.items():
            if any(name not in schema.fields for schema in self.schemas):
                info.is_required = False
        return merged

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection_name": self.collection_name,
            "total_documents": self.total_documents,
            "skipped_documents": self.skipped_documents,
            "skipped_values": self.skipped_values,
            "cancelled": self.cancelled,
            "schemas": [schema.to_dict() for schema in self.schemas],
            "child_tables": {
                name: table.to_dict() for name, table in self.child_tables.items()
            },
            "relationship_hints": [hint.to_dict() for hint in self.relationship_hints],
        }
