"""
Integration tests for collection-level analysis.

Runs complete passes from raw documents to DDL text, including
multi-collection parallelism and cooperative cancellation.
"""

import json
import threading

import pytest

from docschema.inference import (
    AnalysisCancelledError,
    ChildTableType,
    DDLGenerator,
    analyze_collection,
    analyze_collections,
    cluster_schemas,
)


def customer_documents(count):
    documents = []
    for i in range(count):
        document = {
            "id": f"c-{i}",
            "name": f"Customer {i}",
            "created": "2024-01-15T10:00:00Z",
            "profile": {"tier": ["gold", "silver"][i % 2], "score": i},
            "departments": [["sales", "support", "billing"][i % 3], "sales"],
        }
        if i % 4 == 0:
            document["email"] = f"c{i}@example.com"
        documents.append(json.dumps(document))
    return documents


class CountingIterable:
    """Iterable that records how many documents were consumed."""

    def __init__(self, documents):
        self.documents = documents
        self.consumed = 0

    def __iter__(self):
        for document in self.documents:
            self.consumed += 1
            yield document


class TestAnalyzeCollection:
    """End-to-end tests for one collection."""

    def test_full_pass(self, test_settings):
        model = analyze_collection(
            customer_documents(20), collection_name="customers", settings=test_settings)

        assert model.total_documents == 20
        assert model.skipped_documents == 0
        assert len(model.schemas) == 2
        assert sum(schema.prevalence for schema in model.schemas) == pytest.approx(1.0)
        assert model.child_tables["profile"].table_type == ChildTableType.NESTED_OBJECT

        main_fields = model.main_table_fields(DDLGenerator().unifier)
        assert main_fields["created"].recommended_type == "DATETIME2"
        assert not main_fields["email"].is_required

        hints = {hint.field_path: hint for hint in model.relationship_hints}
        assert "departments" in hints
        assert hints["departments"].child_table is None

    def test_model_is_json_serializable(self, test_settings):
        model = analyze_collection(
            customer_documents(5), collection_name="customers", settings=test_settings)
        data = json.loads(json.dumps(model.to_dict()))

        assert data["collection_name"] == "customers"
        assert data["child_tables"]["profile"]["table_type"] == "NestedObject"

    def test_ddl_and_clustering(self, test_settings):
        model = analyze_collection(
            customer_documents(8), collection_name="customers", settings=test_settings)

        ddl = DDLGenerator().generate(model)
        assert "CREATE TABLE [customers] (" in ddl
        assert "[email] NVARCHAR(50) NULL" in ddl
        assert "CREATE TABLE [customers_profile] (" in ddl

        clusters = cluster_schemas(model.schemas, test_settings.cluster_similarity_threshold)
        assert len(clusters) == 1
        assert clusters[0].optional_fields == ["email"]

    def test_sample_cap(self, test_settings):
        documents = CountingIterable(customer_documents(150))
        model = analyze_collection(documents, collection_name="customers", settings=test_settings)

        assert model.total_documents == test_settings.sample_size
        assert documents.consumed <= test_settings.sample_size + 1

    def test_explicit_sample_size(self, test_settings):
        model = analyze_collection(
            customer_documents(10), settings=test_settings, sample_size=4)
        assert model.total_documents == 4

    def test_empty_collection(self, test_settings):
        model = analyze_collection([], collection_name="empty", settings=test_settings)

        assert model.is_empty
        assert model.total_documents == 0
        assert DDLGenerator().generate(model) == ""

    def test_skipped_documents_are_reported(self, test_settings):
        documents = customer_documents(3) + ["{not json", "null", "[]"]
        model = analyze_collection(documents, settings=test_settings)

        assert model.total_documents == 3
        assert model.skipped_documents == 3


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_partial_model_is_returned(self, test_settings):
        event = threading.Event()

        def documents():
            for index, document in enumerate(customer_documents(10)):
                if index == 3:
                    event.set()
                yield document

        model = analyze_collection(documents(), settings=test_settings, cancel_event=event)

        assert model.cancelled
        assert model.total_documents == 3

    def test_raise_on_cancel(self, test_settings):
        event = threading.Event()
        event.set()

        with pytest.raises(AnalysisCancelledError) as exc_info:
            analyze_collection(
                customer_documents(5),
                collection_name="customers",
                settings=test_settings,
                cancel_event=event,
                raise_on_cancel=True,
            )

        assert exc_info.value.partial_model.cancelled
        assert exc_info.value.partial_model.total_documents == 0


class TestAnalyzeCollections:
    """Tests for parallel multi-collection analysis."""

    def test_independent_passes(self, test_settings):
        collections = {
            "customers": customer_documents(10),
            "orders": [{"order_id": i, "lines": [{"sku": "A", "qty": i}]} for i in range(10)],
            "empty": [],
        }

        results = analyze_collections(collections, settings=test_settings, max_workers=3)

        assert set(results) == {"customers", "orders", "empty"}
        assert results["customers"].collection_name == "customers"
        assert "lines" in results["orders"].child_tables
        assert "lines" not in results["customers"].child_tables
        assert "profile" not in results["orders"].child_tables
        assert results["empty"].is_empty

    def test_results_match_sequential_runs(self, test_settings):
        documents = customer_documents(12)

        parallel = analyze_collections(
            {"a": documents, "b": documents}, settings=test_settings, max_workers=2)
        sequential = analyze_collection(documents, collection_name="a", settings=test_settings)

        assert parallel["a"].to_dict() == sequential.to_dict()
        assert parallel["b"].to_dict()["schemas"] == sequential.to_dict()["schemas"]
