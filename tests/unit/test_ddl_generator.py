"""
Unit tests for T-SQL DDL generation.
"""

import pytest

from docschema.inference.ddl_generator import DDLGenerator
from docschema.inference.models import FieldInfo, SchemaModel
from docschema.inference.schema_aggregator import SchemaAggregator


@pytest.fixture
def generator():
    return DDLGenerator()


@pytest.fixture
def orders_model(test_settings, order_documents):
    aggregator = SchemaAggregator(test_settings, collection_name="orders")
    aggregator.add_documents(order_documents)
    return aggregator.finalize()


class TestNameSanitization:
    """Tests for identifier sanitization."""

    def test_spaces_and_punctuation(self, generator):
        assert generator._sanitize_name("first name") == "first_name"
        assert generator._sanitize_name("a.b") == "a_b"
        assert generator._sanitize_name("price($)") == "price___"

    def test_leading_digit(self, generator):
        assert generator._sanitize_name("1st") == "col_1st"

    def test_empty(self, generator):
        assert generator._sanitize_name("") == "col"

    def test_collisions_are_suffixed(self, generator):
        fields = {
            "id": FieldInfo(name="id"),
            "a.b": FieldInfo(name="a.b"),
            "a_b": FieldInfo(name="a_b"),
        }
        columns = generator._column_names(fields, {"Id"})
        assert columns == {"id": "id_2", "a.b": "a_b", "a_b": "a_b_2"}


class TestMainTable:
    """Tests for the main table statement."""

    def test_columns_and_nullability(self, generator):
        fields = {
            "name": FieldInfo(name="name", detected_types={"NVARCHAR(50)"},
                              recommended_type="NVARCHAR(50)"),
            "age": FieldInfo(name="age", detected_types={"TINYINT"},
                             recommended_type="TINYINT", is_required=False),
            "note": FieldInfo(name="note", detected_types={"NULL"},
                              recommended_type="NVARCHAR(MAX)"),
        }
        ddl = generator.generate_table_ddl("people", fields)

        assert ddl.startswith("CREATE TABLE [people] (")
        assert "[Id] BIGINT IDENTITY(1,1) NOT NULL" in ddl
        assert "[name] NVARCHAR(50) NOT NULL" in ddl
        assert "[age] TINYINT NULL" in ddl
        assert "[note] NVARCHAR(MAX) NULL" in ddl
        assert "CONSTRAINT [PK_people] PRIMARY KEY CLUSTERED ([Id])" in ddl
        assert ddl.endswith(");")

    def test_fallback_json_column(self):
        ddl = DDLGenerator(include_fallback_json=True).generate_table_ddl("people", {})
        assert "[ExtraJson] NVARCHAR(MAX) NULL" in ddl


class TestColumnSizing:
    """Tests for string column widths."""

    def test_bounded_string_widened_to_longest_value(self, generator):
        info = FieldInfo(name="note", detected_types={"NVARCHAR(50)", "NVARCHAR(255)"},
                         recommended_type="NVARCHAR(50)", max_length=200)
        assert generator._column_type(info) == ("NVARCHAR(255)", False)

    def test_overlong_value_becomes_max(self, generator):
        info = FieldInfo(name="body", detected_types={"NVARCHAR(50)"},
                         recommended_type="NVARCHAR(50)", max_length=5000)
        assert generator._column_type(info)[0] == "NVARCHAR(MAX)"

    def test_fitting_and_non_string_types_unchanged(self, generator):
        fitting = FieldInfo(name="code", detected_types={"NVARCHAR(100)"},
                            recommended_type="NVARCHAR(100)", max_length=60)
        stamp = FieldInfo(name="at", detected_types={"DATETIME2"},
                          recommended_type="DATETIME2", max_length=20)
        assert generator._column_type(fitting)[0] == "NVARCHAR(100)"
        assert generator._column_type(stamp)[0] == "DATETIME2"

    def test_mixed_lengths_across_documents(self, test_settings):
        aggregator = SchemaAggregator(test_settings, collection_name="notes")
        aggregator.add_documents([{"note": "short"}, {"note": "x" * 200}])

        ddl = DDLGenerator().generate(aggregator.finalize())

        assert "[note] NVARCHAR(255) NOT NULL" in ddl
        assert "[note] NVARCHAR(50)" not in ddl


class TestFullScript:
    """Tests for whole-model generation."""

    def test_main_and_child_tables(self, generator, orders_model):
        ddl = generator.generate(orders_model)

        assert "CREATE TABLE [orders] (" in ddl
        assert "[id_2] NVARCHAR(50) NOT NULL" in ddl
        assert "CREATE TABLE [orders_address] (" in ddl
        assert "CREATE TABLE [orders_items] (" in ddl
        assert "[ParentId] BIGINT NOT NULL" in ddl
        assert "FOREIGN KEY ([ParentId]) REFERENCES [orders] ([Id])" in ddl
        assert "CREATE NONCLUSTERED INDEX [IX_orders_address_ParentId] " \
               "ON [orders_address] ([ParentId]);" in ddl

    def test_optional_child_column_is_nullable(self, generator, orders_model):
        ddl = generator.generate(orders_model)
        assert "[zip] NVARCHAR(50) NULL" in ddl
        assert "[gift] BIT NULL" in ddl

    def test_notes_become_comments(self, generator, orders_model):
        ddl = generator.generate(orders_model)
        assert "-- Array table from 'items'" in ddl

    def test_table_name_override(self, generator, orders_model):
        ddl = generator.generate(orders_model, table_name="sales order")
        assert "CREATE TABLE [sales_order] (" in ddl
        assert "CREATE TABLE [sales_order_items] (" in ddl

    def test_empty_model(self, generator):
        assert generator.generate(SchemaModel(collection_name="empty")) == ""

    def test_default_table_name(self, generator):
        assert generator.table_name_for(SchemaModel()) == "MainTable"


class TestInsertStatement:
    """Tests for INSERT templates."""

    def test_named_parameters(self, generator):
        fields = {"name": FieldInfo(name="name"), "first name": FieldInfo(name="first name")}
        sql = generator.generate_insert_statement("people", fields)
        assert sql == (
            "INSERT INTO [people] ([name], [first_name]) VALUES (@name, @first_name);"
        )
