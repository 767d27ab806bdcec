"""
Inference module for relational schema discovery.

Provides type classification, array storage analysis, schema
aggregation, relationship detection and DDL generation for sampled
JSON document collections.
"""

from docschema.inference.document import (
    AnalysisCancelledError,
    DocumentError,
    JsonKind,
    JsonNode,
    SchemaInferenceError,
    parse_document,
    to_node,
)
from docschema.inference.type_classifier import SqlType, TypeClassifier
from docschema.inference.type_unifier import TypeUnifier
from docschema.inference.array_analyzer import ArrayStructureAnalyzer
from docschema.inference.models import (
    ArrayAnalysis,
    ArrayStorage,
    ChildTableSchema,
    ChildTableType,
    DocumentSchema,
    FieldInfo,
    IndexRecommendation,
    RelationshipHint,
    SchemaModel,
)
from docschema.inference.field_extractor import ExtractionResult, FieldExtractor
from docschema.inference.relationships import RelationshipDetector, ValueFrequencyTable
from docschema.inference.schema_aggregator import AnalysisContext, SchemaAggregator
from docschema.inference.clustering import SchemaCluster, cluster_schemas
from docschema.inference.ddl_generator import DDLGenerator
from docschema.inference.collection_analyzer import analyze_collection, analyze_collections

__all__ = [  # ruff: noqa: RUF022
    # Documents
    "parse_document",
    "to_node",
    "JsonKind",
    "JsonNode",
    # Errors
    "SchemaInferenceError",
    "DocumentError",
    "AnalysisCancelledError",
    # Types
    "SqlType",
    "TypeClassifier",
    "TypeUnifier",
    # Structure
    "ArrayStructureAnalyzer",
    "FieldExtractor",
    "ExtractionResult",
    "SchemaAggregator",
    "AnalysisContext",
    "RelationshipDetector",
    "ValueFrequencyTable",
    # Model
    "ArrayAnalysis",
    "ArrayStorage",
    "ChildTableSchema",
    "ChildTableType",
    "DocumentSchema",
    "FieldInfo",
    "IndexRecommendation",
    "RelationshipHint",
    "SchemaModel",
    # Post-processing
    "SchemaCluster",
    "cluster_schemas",
    "DDLGenerator",
    # Drivers
    "analyze_collection",
    "analyze_collections",
]
