"""
Post-pass schema clustering.

Groups schema variants whose field-name sets are similar enough to be
served by one table. Runs over a finished SchemaModel's schemas; the
aggregator itself only ever groups by exact signature.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from docschema.inference.models import DocumentSchema, FieldInfo
from docschema.inference.type_unifier import TypeUnifier

logger = logging.getLogger(__name__)


def jaccard_similarity(left: Set[str], right: Set[str]) -> float:
    if not left and not right:
        return 1.0
    return len(left & right) / len(left | right)


@dataclass
class SchemaCluster:
    """A group of similar schema variants."""
    cluster_name: str
    schema_names: List[str] = field(default_factory=list)
    fields: Dict[str, FieldInfo] = field(default_factory=dict)
    optional_fields: List[str] = field(default_factory=list)
    sample_count: int = 0
    prevalence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cluster_name": self.cluster_name,
            "schema_names": list(self.schema_names),
            "sample_count": self.sample_count,
            "prevalence": self.prevalence,
            "optional_fields": list(self.optional_fields),
            "fields": {name: info.to_dict() for name, info in self.fields.items()},
        }


def cluster_schemas(
    schemas: List[DocumentSchema],
    threshold: float = 0.8,
    unifier: Optional[TypeUnifier] = None,
) -> List[SchemaCluster]:
    """
    Greedy single-pass clustering by field-name Jaccard similarity.

    Schemas are visited in order; each joins the first cluster whose
    founding schema is at least `threshold` similar, otherwise it founds
    a new cluster.

    Args:
        schemas: Schema variants in first-seen order
        threshold: Minimum Jaccard similarity to join a cluster
        unifier: Used to recompute merged field types

    Returns:
        Clusters in founding order
    """
    unifier = unifier or TypeUnifier()

    founders: List[Set[str]] = []
    members: List[List[DocumentSchema]] = []
    for schema in schemas:
        names = set(schema.fields)
        for index, founder in enumerate(founders):
            if jaccard_similarity(names, founder) >= threshold:
                members[index].append(schema)
                break
        else:
            founders.append(names)
            members.append([schema])

    clusters = [
        _build_cluster(f"Cluster_{index + 1}", group, unifier)
        for index, group in enumerate(members)
    ]
    logger.debug(
        "Clustered schema variants",
        extra={"extra_fields": {"schemas": len(schemas), "clusters": len(clusters)}},
    )
    return clusters


def _build_cluster(name: str, group: List[DocumentSchema], unifier: TypeUnifier) -> SchemaCluster:
    cluster = SchemaCluster(cluster_name=name)
    for schema in group:
        cluster.schema_names.append(schema.schema_name)
        cluster.sample_count += schema.sample_count
        cluster.prevalence += schema.prevalence
        for field_name, info in schema.fields.items():
            if field_name in cluster.fields:
                cluster.fields[field_name].merge(info, unifier)
            else:
                cluster.fields[field_name] = info.copy()

    for field_name, info in cluster.fields.items():
        if any(field_name not in schema.fields for schema in group):
            info.is_required = False
            cluster.optional_fields.append(field_name)
    cluster.optional_fields.sort()
    return cluster
