"""
Unit tests for schema aggregation across a document sample.
"""

import json
import threading

import pytest

from docschema.inference.models import ChildTableType, FieldInfo
from docschema.inference.schema_aggregator import SchemaAggregator, schema_signature


@pytest.fixture
def aggregator(test_settings):
    return SchemaAggregator(test_settings, collection_name="people")


def run(aggregator, documents):
    aggregator.add_documents(documents)
    return aggregator.finalize()


class TestSignatures:
    """Tests for schema signature grouping."""

    def test_signature_format(self):
        fields = {
            "b": FieldInfo(name="b", detected_types={"INT", "TINYINT"}),
            "a": FieldInfo(name="a", detected_types={"BIT"}),
        }
        assert schema_signature(fields) == "a:BIT|b:INT,TINYINT"

    def test_optional_field_splits_schemas(self, aggregator):
        model = run(aggregator, [
            {"id": "1", "name": "Ann"},
            {"id": "2", "name": "Bo", "age": 30},
        ])

        assert len(model.schemas) == 2
        assert [schema.schema_name for schema in model.schemas] == ["Schema_1", "Schema_2"]
        for schema in model.schemas:
            assert schema.sample_count == 1
            assert schema.prevalence == pytest.approx(0.5)

    def test_identical_shapes_share_schema(self, aggregator):
        model = run(aggregator, [{"name": "Ann"}, {"name": "Bobby"}])

        assert len(model.schemas) == 1
        schema = model.schemas[0]
        assert schema.sample_count == 2
        assert schema.fields["name"].max_length == 5

    def test_child_fields_do_not_affect_signature(self, aggregator):
        model = run(aggregator, [
            {"id": "1", "address": {"city": "Seattle"}},
            {"id": "2", "address": {"city": "Boise", "zip": "83702"}},
        ])
        assert len(model.schemas) == 1

    def test_string_bucket_change_splits_schemas(self, aggregator):
        aggregator.add_document({"name": "Ann"})
        aggregator.add_document({"name": "x" * 60})
        schema = aggregator.finalize().schemas
        assert len(schema) == 2
        assert schema[0].fields["name"].max_length == 3


class TestPrevalence:
    """Tests for prevalence computation."""

    def test_prevalence_sums_to_one(self, aggregator, order_documents):
        documents = order_documents + [{"id": "9"}, {"id": "10"}, "not json"]
        model = run(aggregator, documents)

        assert sum(schema.prevalence for schema in model.schemas) == pytest.approx(1.0)

    def test_prevalence_ignores_skipped_documents(self, aggregator):
        model = run(aggregator, [{"id": "1"}, "{broken", "[1, 2]"])

        assert model.total_documents == 1
        assert model.skipped_documents == 2
        assert model.schemas[0].prevalence == pytest.approx(1.0)


class TestDocumentInput:
    """Tests for raw document handling."""

    def test_accepts_json_text(self, aggregator):
        assert aggregator.add_document(json.dumps({"id": 1}))
        assert aggregator.add_document(b'{"id": 2}')

    def test_malformed_documents_are_counted(self, aggregator):
        assert not aggregator.add_document("")
        assert not aggregator.add_document("not json")
        assert not aggregator.add_document(42)
        assert aggregator.context.documents_skipped == 3
        assert aggregator.context.schemas == {}

    def test_zero_documents(self, aggregator):
        model = aggregator.finalize()

        assert model.is_empty
        assert model.total_documents == 0
        assert model.schemas == []
        assert model.child_tables == {}

    def test_limit(self, aggregator):
        analyzed = aggregator.add_documents(({"n": i} for i in range(5)), limit=3)
        assert analyzed == 3
        assert aggregator.finalize().total_documents == 3

    def test_cancellation(self, aggregator):
        event = threading.Event()
        event.set()
        aggregator.add_documents([{"id": 1}], cancel_event=event)
        model = aggregator.finalize()

        assert model.cancelled
        assert model.total_documents == 0

    def test_finalize_is_idempotent(self, aggregator):
        aggregator.add_document({"id": 1})
        assert aggregator.finalize() is aggregator.finalize()

    def test_add_after_finalize_fails(self, aggregator):
        aggregator.finalize()
        with pytest.raises(RuntimeError):
            aggregator.add_document({"id": 1})


class TestChildTables:
    """Tests for child table consolidation."""

    def test_nested_object_table(self, aggregator):
        model = run(aggregator, [{"id": "1", "address": {"street": "Main St", "city": "Seattle"}}])

        table = model.child_tables["address"]
        assert table.table_type == ChildTableType.NESTED_OBJECT
        assert set(table.fields) == {"street", "city"}
        assert table.parent_key_field == "ParentId"
        assert table.sample_count == 1
        assert "address_street" not in model.schemas[0].fields

    def test_array_table_from_object_elements(self, aggregator):
        items = [{"sku": f"S-{i}", "qty": i, "price": 2.5} for i in range(5)]
        model = run(aggregator, [{"items": items}])

        table = model.child_tables["items"]
        assert table.table_type == ChildTableType.ARRAY
        assert set(table.fields) == {"sku", "qty", "price"}
        assert table.sample_count == 5

    def test_fields_missing_from_some_rows_are_optional(self, aggregator):
        model = run(aggregator, [{"items": [{"a": 1, "b": 2}, {"a": 3}]}])

        fields = model.child_tables["items"].fields
        assert fields["a"].is_required
        assert not fields["b"].is_required

    def test_consolidation_across_documents(self, aggregator):
        model = run(aggregator, [
            {"address": {"street": "Main St", "city": "Seattle"}},
            {"address": {"street": "Pine Ave", "zip": "97201"}},
        ])

        table = model.child_tables["address"]
        assert set(table.fields) == {"street", "city", "zip"}
        assert table.fields["street"].is_required
        assert not table.fields["city"].is_required
        assert not table.fields["zip"].is_required
        assert table.sample_count == 2

    def test_types_union_across_documents(self, aggregator):
        model = run(aggregator, [
            {"items": [{"qty": 1}]},
            {"items": [{"qty": 70000}]},
        ])
        field = model.child_tables["items"].fields["qty"]
        assert field.detected_types == {"TINYINT", "INT"}
        assert field.recommended_type == "INT"

    def test_guidance_notes_and_parent_index(self, aggregator):
        model = run(aggregator, [{"address": {"street": "Main St", "city": "Seattle"}}])

        table = model.child_tables["address"]
        assert any("separate table" in note for note in table.transformation_notes)
        assert any("One-to-one" in note for note in table.transformation_notes)
        assert table.recommended_indexes[0].index_name == "IX_address_ParentId"
        assert table.recommended_indexes[0].columns == ["ParentId"]


class TestMonotonicity:
    """Tests for order-independent monotonic merges."""

    def test_max_length_never_decreases(self, aggregator):
        aggregator.add_document({"address": {"city": "Minneapolis"}})
        aggregator.add_document({"address": {"city": "Ely"}})
        model = aggregator.finalize()
        assert model.child_tables["address"].fields["city"].max_length == len("Minneapolis")

    def test_required_never_returns(self, aggregator):
        aggregator.add_document({"address": {"city": "A", "zip": "1"}})
        aggregator.add_document({"address": {"city": "B"}})
        aggregator.add_document({"address": {"city": "C", "zip": "3"}})
        model = aggregator.finalize()
        assert not model.child_tables["address"].fields["zip"].is_required

    def test_document_order_does_not_matter(self, test_settings, order_documents):
        forward = run(SchemaAggregator(test_settings), order_documents)
        backward = run(SchemaAggregator(test_settings), list(reversed(order_documents)))

        def summarize(model):
            return {
                name: {field: (info.recommended_type, info.is_required, info.max_length)
                       for field, info in table.fields.items()}
                for name, table in model.child_tables.items()
            }

        assert summarize(forward) == summarize(backward)
        assert sorted(s.sample_count for s in forward.schemas) == \
            sorted(s.sample_count for s in backward.schemas)
