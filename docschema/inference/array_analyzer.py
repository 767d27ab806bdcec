"""
Array storage strategy analysis.

Decides, for one array value, whether it should be kept inline as a
delimited string, kept inline as a JSON blob, or normalized into a child
table. The decision tree is evaluated top to bottom and the first
matching rule wins.
"""

from typing import Optional, Set

from docschema.config.settings import Settings, get_settings
from docschema.inference.document import JsonKind, JsonNode
from docschema.inference.models import ArrayAnalysis, ArrayStorage
from docschema.inference.type_classifier import SqlType, TypeClassifier


class ArrayStructureAnalyzer:
    """Pure decision function over one array value and its field name."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        classifier: Optional[TypeClassifier] = None,
        sample_size: Optional[int] = None,
    ):
        settings = settings or get_settings()

        self.classifier = classifier or TypeClassifier(settings)
        self.sample_size = sample_size or settings.array_sample_size
        self.tag_keywords = [keyword.lower() for keyword in settings.tag_keywords]
        self.tag_max_length = settings.tag_max_length
        self.large_item_count = settings.array_large_item_count
        self.large_string_length = settings.array_large_string_length
        self.delimited_max_items = settings.array_delimited_max_items
        self.delimiter = settings.delimiter

    def is_tag_like(self, field_name: str) -> bool:
        name = field_name.lower()
        return any(keyword in name for keyword in self.tag_keywords)

    def analyze(self, array: JsonNode, field_name: str) -> ArrayAnalysis:
        """
        Decide how one array value should be stored.

        Args:
            array: ARRAY node
            field_name: Flattened field path, used for semantic hints

        Returns:
            ArrayAnalysis with the storage decision
        """
        items = array.items
        item_count = len(items)

        if item_count == 0:
            return self._inline_json(
                field_name, array, "Empty array; store as JSON, no further action")

        kinds: Set[JsonKind] = set()
        max_string_length = 0
        has_complex_structure = False

        for item in items[:self.sample_size]:
            if item.malformed or item.kind == JsonKind.NULL:
                continue
            kinds.add(item.kind)
            if item.kind in (JsonKind.OBJECT, JsonKind.ARRAY):
                has_complex_structure = True
            elif item.kind == JsonKind.STRING:
                max_string_length = max(max_string_length, len(item.value))

        # Rule 1: objects or nested arrays need their own rows
        if has_complex_structure:
            return self._relational(
                field_name, item_count,
                f"Normalize elements of '{field_name}' into a child table, one row per element")

        if not kinds:
            return self._inline_json(
                field_name, array,
                "Array elements could not be classified; store as JSON")

        if len(kinds) == 1:
            kind = next(iter(kinds))

            # Rule 2: homogeneous strings
            if kind == JsonKind.STRING:
                if self.is_tag_like(field_name) and max_string_length <= self.tag_max_length:
                    return self._delimited(
                        field_name, array,
                        f"Tag-like string array; join values with '{self.delimiter}'")
                if item_count > self.large_item_count or max_string_length > self.large_string_length:
                    return self._relational(
                        field_name, item_count,
                        f"Large string array ({item_count} items, max length "
                        f"{max_string_length}); store one value per child row")
                return self._inline_json(
                    field_name, array, "Small string array; store as JSON")

            # Rule 3: homogeneous non-string primitives
            if item_count <= self.delimited_max_items:
                return self._delimited(
                    field_name, array,
                    f"Small {kind.value} array; join values with '{self.delimiter}'")
            return self._relational(
                field_name, item_count,
                f"Large {kind.value} array ({item_count} items); store one value per child row")

        # Rule 4: mixed kinds
        kind_names = ", ".join(sorted(kind.value for kind in kinds))
        return self._inline_json(
            field_name, array,
            f"Mixed-type array ({kind_names}) stored opaquely as JSON")

    def _relational(self, field_name: str, item_count: int, logic: str) -> ArrayAnalysis:
        return ArrayAnalysis(
            array_name=field_name,
            item_count=item_count,
            should_create_table=True,
            recommended_storage=ArrayStorage.RELATIONAL_TABLE,
            recommended_sql_type=None,
            transformation_logic=logic,
        )

    def _delimited(self, field_name: str, array: JsonNode, logic: str) -> ArrayAnalysis:
        inline_length = sum(len(item.to_text()) for item in array.items)
        inline_length += len(self.delimiter) * (len(array.items) - 1)
        return ArrayAnalysis(
            array_name=field_name,
            item_count=len(array.items),
            should_create_table=False,
            recommended_storage=ArrayStorage.DELIMITED_STRING,
            recommended_sql_type=self.classifier.bucket_length(inline_length),
            transformation_logic=logic,
            inline_length=inline_length,
        )

    def _inline_json(self, field_name: str, array: JsonNode, logic: str) -> ArrayAnalysis:
        return ArrayAnalysis(
            array_name=field_name,
            item_count=len(array.items),
            should_create_table=False,
            recommended_storage=ArrayStorage.JSON,
            recommended_sql_type=SqlType.TEXT,
            transformation_logic=logic,
            inline_length=len(array.to_text()),
        )
