"""
Cross-document relationship detection.

Tracks how often each distinct array element value recurs across the
sample and, once sampling ends, flags array fields whose values look
like a shared vocabulary (reference data) rather than document-private
data.
"""

import logging
import re
from collections import Counter
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from docschema.config.settings import Settings, get_settings
from docschema.inference.models import (
    ChildTableSchema,
    ChildTableType,
    FieldInfo,
    IndexRecommendation,
    RelationshipHint,
)
from docschema.inference.type_classifier import SqlType
from docschema.inference.type_unifier import TypeUnifier

logger = logging.getLogger(__name__)

VALUE_COLUMN = "value"

# snake_case, camelCase and ACRONYM runs
_NAME_TOKEN = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z0-9])")


def name_tokens(name: str) -> List[str]:
    """Split a field path or column name into lower-case words."""
    return [token.lower() for token in _NAME_TOKEN.findall(name)]


def has_keyword(name: str, keywords: Sequence[str]) -> bool:
    """
    True when a word of `name` begins with one of `keywords`.

    Plurals match their keyword (`roles`, `categories`); a keyword buried
    inside a longer word (`width`, `paid`) does not.
    """
    for token in name_tokens(name):
        for keyword in keywords:
            if token.startswith(keyword):
                return True
            if keyword.endswith("y") and token.startswith(keyword[:-1] + "ies"):
                return True
    return False


class ValueFrequencyTable:
    """
    Array field path -> element text -> occurrence count.

    Scoped to one collection pass. Scalar element type labels are kept
    alongside so a lookup table can be typed if one is synthesized.
    """

    def __init__(self):
        self.counts: Dict[str, Counter] = {}
        self.value_types: Dict[str, Set[str]] = {}

    def record(self, path: str, text: str, label: Optional[str] = None) -> None:
        self.counts.setdefault(path, Counter())[text] += 1
        if label is not None:
            self.value_types.setdefault(path, set()).add(label)

    def merge(self, other: "ValueFrequencyTable") -> None:
        for path, counter in other.counts.items():
            self.counts.setdefault(path, Counter()).update(counter)
        for path, labels in other.value_types.items():
            self.value_types.setdefault(path, set()).update(labels)

    def paths(self) -> List[str]:
        return list(self.counts)

    def items(self) -> Iterator[Tuple[str, Counter]]:
        return iter(self.counts.items())

    def clear(self) -> None:
        self.counts.clear()
        self.value_types.clear()

    def __len__(self) -> int:
        return len(self.counts)

    def __contains__(self, path: str) -> bool:
        return path in self.counts


class RelationshipDetector:
    """Classifies tracked array fields as many-to-many candidates."""

    # Path keywords that suggest an array of link rows
    RELATIONSHIP_KEYWORDS = (
        "assignment", "membership", "tag", "category", "role",
        "permission", "link", "association", "relation",
    )
    ID_TYPES = (
        SqlType.UNIQUEIDENTIFIER, SqlType.BIGINT, SqlType.INT,
        SqlType.SMALLINT, SqlType.TINYINT,
    )
    ONE_TO_ONE_MAX_FIELDS = 3
    JUNCTION_MAX_DATA_FIELDS = 3

    def __init__(
        self,
        settings: Optional[Settings] = None,
        unifier: Optional[TypeUnifier] = None,
    ):
        settings = settings or get_settings()

        self.unifier = unifier or TypeUnifier(settings)
        self.reference_keywords = [keyword.lower() for keyword in settings.reference_keywords]
        self.min_documents = settings.m2m_min_documents
        self.min_unique_values = settings.m2m_min_unique_values
        self.min_share = settings.m2m_min_share
        self.max_reuse_ratio = settings.m2m_max_reuse_ratio
        self.min_unique_for_reuse = settings.m2m_min_unique_for_reuse
        self.min_unique_for_keyword = settings.m2m_min_unique_for_keyword
        self.force_tables = settings.force_many_to_many_tables
        self.parent_key_field = settings.parent_key_field

    def is_reference_like(self, field_path: str) -> bool:
        return has_keyword(field_path, self.reference_keywords)

    def evaluate(
        self,
        field_path: str,
        counter: Counter,
        total_documents: int,
    ) -> Optional[RelationshipHint]:
        """
        Classify one array field.

        Args:
            field_path: Array field path
            counter: Element text -> occurrences
            total_documents: Documents processed in the pass (n)

        Returns:
            RelationshipHint if the field looks many-to-many, else None
        """
        unique_values = len(counter)
        total_occurrences = sum(counter.values())
        if unique_values == 0 or total_documents == 0:
            return None

        max_share = max(counter.values()) / total_documents
        reuse_ratio = unique_values / total_occurrences

        reasons = []
        if (
            total_documents >= self.min_documents
            and unique_values >= self.min_unique_values
            and max_share >= self.min_share
        ):
            reasons.append(
                f"Most frequent value appears {max(counter.values())} times "
                f"across {total_documents} documents (share {max_share:.2f} >= {self.min_share:.2f})")
        if reuse_ratio <= self.max_reuse_ratio and unique_values >= self.min_unique_for_reuse:
            reasons.append(
                f"{unique_values} distinct values over {total_occurrences} occurrences "
                f"(reuse ratio {reuse_ratio:.2f} <= {self.max_reuse_ratio:.2f})")
        if self.is_reference_like(field_path) and unique_values >= self.min_unique_for_keyword:
            reasons.append(
                f"Field name '{field_path}' suggests reference data "
                f"with {unique_values} distinct values")

        if not reasons:
            return None

        return RelationshipHint(
            field_path=field_path,
            unique_values=unique_values,
            total_occurrences=total_occurrences,
            documents=total_documents,
            max_share=round(max_share, 4),
            reuse_ratio=round(reuse_ratio, 4),
            reasons=reasons,
        )

    def detect(
        self,
        table: ValueFrequencyTable,
        total_documents: int,
    ) -> List[RelationshipHint]:
        hints = []
        for field_path, counter in table.items():
            hint = self.evaluate(field_path, counter, total_documents)
            if hint is not None:
                hints.append(hint)
        return hints

    def apply(
        self,
        hints: List[RelationshipHint],
        child_tables: Dict[str, ChildTableSchema],
        table: ValueFrequencyTable,
    ) -> None:
        """
        Attach findings to the child tables they belong to.

        Arrays stored inline have no child table; those hints stay on the
        model unattached unless force_many_to_many_tables is set, in which
        case a lookup child table is synthesized for them.
        """
        for hint in hints:
            child = child_tables.get(hint.field_path)

            if child is None and self.force_tables:
                child = self._synthesize_table(hint, table)
                child_tables[child.table_name] = child

            if child is None:
                logger.info(
                    "Many-to-many candidate has no child table; keeping as hint",
                    extra={"extra_fields": {"field_path": hint.field_path}},
                )
                continue

            self._mark_many_to_many(child, hint)
            hint.child_table = child.table_name

    def _mark_many_to_many(self, child: ChildTableSchema, hint: RelationshipHint) -> None:
        child.table_type = ChildTableType.MANY_TO_MANY
        column = self._lookup_column(child)
        child.recommended_indexes.append(IndexRecommendation(
            table_name=child.table_name,
            index_name=f"IX_{child.table_name}_{column}",
            columns=[column],
            justification="Lookup index on shared reference values",
            priority=1,
        ))
        child.transformation_notes.append(
            f"Many-to-many candidate: {hint.unique_values} distinct values, "
            f"{hint.total_occurrences} occurrences in {hint.documents} documents "
            f"(max share {hint.max_share:.2f}, reuse ratio {hint.reuse_ratio:.2f})")
        child.transformation_notes.extend(hint.reasons)
        child.transformation_notes.append(
            f"Move distinct values of '{hint.field_path}' into a lookup table and keep "
            f"({child.parent_key_field}, lookup id) pairs in a junction table")

    def _lookup_column(self, child: ChildTableSchema) -> str:
        if VALUE_COLUMN in child.fields:
            return VALUE_COLUMN
        for name in child.fields:
            if self.is_reference_like(name):
                return name
        return next(iter(child.fields), child.parent_key_field)

    def _synthesize_table(self, hint: RelationshipHint, table: ValueFrequencyTable) -> ChildTableSchema:
        counter = table.counts.get(hint.field_path, Counter())
        value_field = FieldInfo(name=VALUE_COLUMN)
        for label in table.value_types.get(hint.field_path, set()):
            value_field.add_type(label, self.unifier)
        if not value_field.detected_types:
            value_field.recommended_type = self.unifier.unify(())
        value_field.max_length = max((len(text) for text in counter), default=0)

        child = ChildTableSchema(
            table_name=hint.field_path,
            source_field_path=hint.field_path,
            table_type=ChildTableType.MANY_TO_MANY,
            fields={VALUE_COLUMN: value_field},
            sample_count=hint.total_occurrences,
            parent_key_field=self.parent_key_field,
        )
        child.transformation_notes.append(
            f"Inline array '{hint.field_path}' promoted to a child table because "
            f"its values are shared across documents")
        return child

    # ======================================
    # Per-table review
    # ======================================
    def review_child_table(self, child: ChildTableSchema) -> None:
        """
        Add structural guidance to one consolidated child table.

        Every table gets a parent key index; small nested objects get a
        one-to-one merge hint; array tables that look like link rows are
        flagged as junction-table candidates.
        """
        child.recommended_indexes.insert(0, IndexRecommendation(
            table_name=child.table_name,
            index_name=f"IX_{child.table_name}_{child.parent_key_field}",
            columns=[child.parent_key_field],
            justification="Foreign key lookups from the parent table",
            priority=1,
        ))

        if (
            child.table_type == ChildTableType.NESTED_OBJECT
            and len(child.fields) <= self.ONE_TO_ONE_MAX_FIELDS
        ):
            child.transformation_notes.append(
                f"One-to-one relationship with only {len(child.fields)} field(s); "
                f"consider merging back into the parent table")

        if child.table_type == ChildTableType.ARRAY and self.is_junction_candidate(child):
            id_columns = [name for name in child.fields if self._is_id_column(child.fields[name])]
            child.transformation_notes.append(
                f"Junction table candidate: rows link the parent to "
                f"{', '.join(id_columns)}")
            child.transformation_notes.append(
                f"Create a composite key on ({child.parent_key_field}, {', '.join(id_columns)}) "
                f"and foreign keys to the referenced tables")
            logger.debug(
                "Junction table candidate",
                extra={"extra_fields": {"table": child.table_name, "id_columns": id_columns}},
            )

    def is_junction_candidate(self, child: ChildTableSchema) -> bool:
        if not has_keyword(child.source_field_path, self.RELATIONSHIP_KEYWORDS):
            return False

        id_fields = [info for info in child.fields.values() if self._is_id_column(info)]
        data_fields = len(child.fields) - len(id_fields)
        return bool(id_fields) and data_fields <= self.JUNCTION_MAX_DATA_FIELDS

    def _is_id_column(self, info: FieldInfo) -> bool:
        tokens = name_tokens(info.name)
        return len(tokens) > 1 and "id" in tokens and info.recommended_type in self.ID_TYPES
