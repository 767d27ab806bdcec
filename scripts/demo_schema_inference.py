#!/usr/bin/env python3
"""
Quick demo script for schema inference.

Analyzes a JSON Lines file (one document per line) or a built-in sample
collection and prints the inferred schema model and T-SQL DDL.

Usage:
    python scripts/demo_schema_inference.py [documents.jsonl] [collection_name]
"""

import json
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


SAMPLE_ORDERS = [
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "placed": "2024-01-15T10:00:00Z",
        "total": 42.5,
        "customer": {"name": "Alice", "email": "alice@example.com"},
        "tags": ["gift", "express"],
        "lines": [{"sku": "A-1", "qty": 2, "price": 10.25}, {"sku": "B-7", "qty": 1, "price": 22.0}],
    },
    {
        "id": "6fa459ea-ee8a-3ca4-894e-db77e160355e",
        "placed": "2024-01-16T08:30:00Z",
        "total": 9.99,
        "customer": {"name": "Bob", "email": "bob@example.com", "phone": "555-123-4567"},
        "tags": ["express"],
        "lines": [{"sku": "C-3", "qty": 1, "price": 9.99}],
        "coupon": "WINTER24",
    },
]


def load_documents(path: Path):
    with path.open(encoding="utf-8") as handle:
        for line in handle:
            if line.strip():
                yield line


def main():
    from docschema.common.logging_config import setup_logging
    from docschema.config.settings import get_settings
    from docschema.inference import DDLGenerator, analyze_collection, cluster_schemas

    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    if len(sys.argv) > 1:
        documents = load_documents(Path(sys.argv[1]))
        collection_name = sys.argv[2] if len(sys.argv) > 2 else Path(sys.argv[1]).stem
    else:
        documents = SAMPLE_ORDERS
        collection_name = "orders"

    model = analyze_collection(documents, collection_name=collection_name, settings=settings)

    print("=" * 70)
    print(f"SCHEMA MODEL: {collection_name}")
    print("=" * 70)
    print(f"   Documents analyzed: {model.total_documents}")
    print(f"   Documents skipped: {model.skipped_documents}")
    for schema in model.schemas:
        print(f"   {schema.schema_name}: {schema.sample_count} docs ({schema.prevalence:.0%})")
    for table in model.child_tables.values():
        print(f"   Child table {table.table_name} [{table.table_type.value}]: "
              f"{', '.join(table.fields)}")
    for hint in model.relationship_hints:
        print(f"   Many-to-many candidate: {hint.field_path} -> {hint.child_table or 'inline'}")

    clusters = cluster_schemas(model.schemas, settings.cluster_similarity_threshold)
    print(f"\n   Schema clusters: {len(clusters)}")

    print("\n" + "=" * 70)
    print("DDL")
    print("=" * 70)
    print(DDLGenerator().generate(model))

    print("\n" + "=" * 70)
    print("MODEL JSON")
    print("=" * 70)
    print(json.dumps(model.to_dict(), indent=2))


if __name__ == "__main__":
    main()
