"""
DDL Generator for inferred schemas.

Generates T-SQL CREATE TABLE statements for the main table and every
child table of a SchemaModel, with nullability taken from field presence
and indexes taken from the model's recommendations.
"""

from typing import Dict, List, Optional, Set, Tuple

from docschema.inference.models import ChildTableSchema, FieldInfo, IndexRecommendation, SchemaModel
from docschema.inference.type_classifier import SqlType, TypeClassifier
from docschema.inference.type_unifier import TypeUnifier


class DDLGenerator:
    """
    Generates SQL Server DDL (Data Definition Language) statements.

    The main table gets a surrogate identity key; child tables get their
    own identity key plus a foreign key back to the main table.
    """

    def __init__(
        self,
        unifier: Optional[TypeUnifier] = None,
        primary_key: str = "Id",
        include_fallback_json: bool = False,
        classifier: Optional[TypeClassifier] = None,
    ):
        """
        Initialize DDL generator.

        Args:
            unifier: Used to merge schema variants into one main table
            primary_key: Name of the surrogate key column on every table
            include_fallback_json: Add an NVARCHAR(MAX) column for unmapped fields
            classifier: Supplies the string length buckets used to size columns
        """
        self.unifier = unifier or TypeUnifier()
        self.classifier = classifier or TypeClassifier()
        self.primary_key = primary_key
        self.include_fallback_json = include_fallback_json

    def _sanitize_name(self, name: str) -> str:
        """
        Sanitize an identifier for T-SQL.

        Args:
            name: Original field path or table name

        Returns:
            Identifier safe to wrap in brackets
        """
        name = name.replace(".", "_").replace("[]", "_array")
        name = "".join(c if c.isalnum() or c == "_" else "_" for c in name)

        if not name:
            name = "col"
        if name[0].isdigit():
            name = f"col_{name}"
        # Bracket quoting handles reserved words
        return name[:128]

    @staticmethod
    def _quote(name: str) -> str:
        return f"[{name}]"

    def _column_type(self, info: FieldInfo) -> Tuple[str, bool]:
        sql_type = info.recommended_type or self.unifier.unify(info.detected_types)
        sql_type = self._fit_string_length(sql_type, info.max_length)
        nullable = not info.is_required or SqlType.NULL in info.detected_types
        return sql_type, nullable

    def _fit_string_length(self, sql_type: str, max_length: int) -> str:
        """Widen a bounded NVARCHAR that is shorter than the longest value seen."""
        if not sql_type.startswith("NVARCHAR(") or sql_type == SqlType.TEXT:
            return sql_type
        bound = int(sql_type[len("NVARCHAR("):-1])
        if bound >= max_length:
            return sql_type
        return self.classifier.bucket_length(max_length)

    def _column_names(self, fields: Dict[str, FieldInfo], reserved: Set[str]) -> Dict[str, str]:
        """Map field names to unique sanitized column names."""
        seen = {name.lower() for name in reserved}
        columns = {}
        for field_name in fields:
            column = self._sanitize_name(field_name)
            candidate, suffix = column, 2
            while candidate.lower() in seen:
                candidate = f"{column}_{suffix}"
                suffix += 1
            seen.add(candidate.lower())
            columns[field_name] = candidate
        return columns

    def _column_definitions(self, fields: Dict[str, FieldInfo], columns: Dict[str, str]) -> List[str]:
        definitions = []
        for field_name, info in fields.items():
            sql_type, nullable = self._column_type(info)
            nullable_clause = "NULL" if nullable else "NOT NULL"
            definitions.append(f"    {self._quote(columns[field_name])} {sql_type} {nullable_clause}")
        return definitions

    def table_name_for(self, model: SchemaModel, table_name: Optional[str] = None) -> str:
        return self._sanitize_name(table_name or model.collection_name or "MainTable")

    def child_table_name(self, main_table: str, child: ChildTableSchema) -> str:
        return self._sanitize_name(f"{main_table}_{child.table_name}")

    def generate_table_ddl(self, table_name: str, fields: Dict[str, FieldInfo]) -> str:
        """
        Generate the CREATE TABLE statement for the main table.

        Args:
            table_name: Sanitized table name
            fields: Union of main-table fields

        Returns:
            Complete CREATE TABLE SQL statement
        """
        columns = self._column_names(fields, {self.primary_key})
        definitions = [f"    {self._quote(self.primary_key)} BIGINT IDENTITY(1,1) NOT NULL"]
        definitions.extend(self._column_definitions(fields, columns))

        if self.include_fallback_json:
            definitions.append(f"    {self._quote('ExtraJson')} {SqlType.TEXT} NULL")

        definitions.append(
            f"    CONSTRAINT {self._quote(f'PK_{table_name}')} "
            f"PRIMARY KEY CLUSTERED ({self._quote(self.primary_key)})")

        lines = [f"CREATE TABLE {self._quote(table_name)} ("]
        lines.append(",\n".join(definitions))
        lines.append(");")
        return "\n".join(lines)

    def generate_child_table_ddl(self, main_table: str, child: ChildTableSchema) -> str:
        """
        Generate CREATE TABLE plus index statements for one child table.

        Args:
            main_table: Sanitized name of the parent table
            child: Consolidated child table

        Returns:
            SQL statements separated by newlines
        """
        table_name = self.child_table_name(main_table, child)
        parent_key = self._sanitize_name(child.parent_key_field)
        columns = self._column_names(child.fields, {self.primary_key, parent_key})

        definitions = [
            f"    {self._quote(self.primary_key)} BIGINT IDENTITY(1,1) NOT NULL",
            f"    {self._quote(parent_key)} BIGINT NOT NULL",
        ]
        definitions.extend(self._column_definitions(child.fields, columns))
        definitions.append(
            f"    CONSTRAINT {self._quote(f'PK_{table_name}')} "
            f"PRIMARY KEY CLUSTERED ({self._quote(self.primary_key)})")
        definitions.append(
            f"    CONSTRAINT {self._quote(f'FK_{table_name}_{main_table}')} "
            f"FOREIGN KEY ({self._quote(parent_key)}) "
            f"REFERENCES {self._quote(main_table)} ({self._quote(self.primary_key)})")

        lines = [f"-- {child.table_type.value} table from '{child.source_field_path}'"]
        lines.extend(f"-- {note}" for note in child.transformation_notes)
        lines.append(f"CREATE TABLE {self._quote(table_name)} (")
        lines.append(",\n".join(definitions))
        lines.append(");")

        column_lookup = {**columns, child.parent_key_field: parent_key}
        for index in sorted(child.recommended_indexes, key=lambda i: i.priority):
            statement = self._index_statement(table_name, index, column_lookup)
            if statement:
                lines.append(statement)

        return "\n".join(lines)

    def _index_statement(
        self,
        table_name: str,
        index: IndexRecommendation,
        columns: Dict[str, str],
    ) -> Optional[str]:
        resolved = [columns[name] for name in index.columns if name in columns]
        if not resolved:
            return None
        index_name = self._sanitize_name(index.index_name.replace(index.table_name, table_name, 1))
        column_list = ", ".join(self._quote(name) for name in resolved)
        return (
            f"CREATE {index.index_type.upper()} INDEX {self._quote(index_name)} "
            f"ON {self._quote(table_name)} ({column_list});"
        )

    def generate(self, model: SchemaModel, table_name: Optional[str] = None) -> str:
        """
        Generate the full DDL script for a schema model.

        Args:
            model: Finished SchemaModel
            table_name: Main table name (defaults to the collection name)

        Returns:
            T-SQL script; empty string for an empty model
        """
        if model.is_empty:
            return ""

        main_table = self.table_name_for(model, table_name)
        statements = [
            f"-- Inferred from {model.total_documents} documents, "
            f"{len(model.schemas)} schema variant(s)",
            self.generate_table_ddl(main_table, model.main_table_fields(self.unifier)),
        ]
        for child in model.child_tables.values():
            statements.append(self.generate_child_table_ddl(main_table, child))
        return "\n\n".join(statements)

    def generate_insert_statement(self, table_name: str, fields: Dict[str, FieldInfo]) -> str:
        """
        Generate a parameterized INSERT template for a table.

        Args:
            table_name: Sanitized table name
            fields: Table fields

        Returns:
            INSERT statement with @-named parameters
        """
        columns = list(self._column_names(fields, {self.primary_key}).values())
        column_list = ", ".join(self._quote(name) for name in columns)
        placeholders = ", ".join(f"@{name}" for name in columns)
        return f"INSERT INTO {self._quote(table_name)} ({column_list}) VALUES ({placeholders});"
