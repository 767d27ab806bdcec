"""
Collection analysis driver.

Runs one schema inference pass per collection: caps the sample, sets the
analysis id for log correlation, times the pass and records metrics.
Several collections can be analyzed in parallel; every pass owns its own
aggregator, so nothing is shared between them.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, Mapping, Optional

from docschema.common import metrics
from docschema.common.logging_config import (
    PerformanceTracker,
    clear_analysis_id,
    set_analysis_id,
)
from docschema.config.settings import Settings, get_settings
from docschema.inference.document import AnalysisCancelledError
from docschema.inference.models import SchemaModel
from docschema.inference.schema_aggregator import SchemaAggregator

logger = logging.getLogger(__name__)


def analyze_collection(
    documents: Iterable[Any],
    collection_name: str = "",
    settings: Optional[Settings] = None,
    cancel_event: Optional[threading.Event] = None,
    raise_on_cancel: bool = False,
    sample_size: Optional[int] = None,
) -> SchemaModel:
    """
    Infer the relational schema of one collection sample.

    Args:
        documents: Iterable of JSON strings or decoded dicts
        collection_name: Name used in logs and on the model
        settings: Settings override
        cancel_event: Checked before each document
        raise_on_cancel: Raise AnalysisCancelledError instead of returning
            the partial model
        sample_size: Maximum documents consumed (defaults to settings)

    Returns:
        SchemaModel for the sample

    Raises:
        AnalysisCancelledError: If cancelled and raise_on_cancel is set
    """
    settings = settings or get_settings()
    limit = sample_size or settings.sample_size

    run = _run_pass
    if settings.metrics_enabled:
        run = metrics.track_analysis_time(_run_pass)

    analysis_id = set_analysis_id()
    try:
        with PerformanceTracker(
            "collection_analysis", logger, collection=collection_name, sample_size=limit
        ):
            model = run(documents, collection_name, settings, cancel_event, limit)
    finally:
        clear_analysis_id()

    if settings.metrics_enabled:
        record_model_metrics(model)

    if model.cancelled and raise_on_cancel:
        raise AnalysisCancelledError(
            f"Analysis of '{collection_name}' cancelled after "
            f"{model.total_documents + model.skipped_documents} documents "
            f"(analysis {analysis_id})",
            partial_model=model,
        )
    return model


def _run_pass(
    documents: Iterable[Any],
    collection_name: str,
    settings: Settings,
    cancel_event: Optional[threading.Event],
    limit: int,
) -> SchemaModel:
    aggregator = SchemaAggregator(settings, collection_name=collection_name)
    aggregator.add_documents(documents, limit=limit, cancel_event=cancel_event)
    return aggregator.finalize()


def record_model_metrics(model: SchemaModel) -> None:
    metrics.documents_processed_total.labels(status="analyzed").inc(model.total_documents)
    metrics.documents_processed_total.labels(status="skipped").inc(model.skipped_documents)
    metrics.schema_variants_detected_total.inc(len(model.schemas))
    for table in model.child_tables.values():
        metrics.child_tables_detected_total.labels(table_type=table.table_type.value).inc()
    metrics.many_to_many_detected_total.inc(len(model.relationship_hints))


def analyze_collections(
    collections: Mapping[str, Iterable[Any]],
    settings: Optional[Settings] = None,
    max_workers: Optional[int] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, SchemaModel]:
    """
    Analyze several collections concurrently.

    Each collection runs its own independent pass on a worker thread.
    A failure in one collection propagates after the others finish.

    Returns:
        Collection name -> SchemaModel
    """
    settings = settings or get_settings()
    workers = max_workers or settings.max_workers

    logger.info(
        "Analyzing collections",
        extra={"extra_fields": {"collections": len(collections), "max_workers": workers}},
    )

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {
            name: executor.submit(
                analyze_collection,
                documents,
                collection_name=name,
                settings=settings,
                cancel_event=cancel_event,
            )
            for name, documents in collections.items()
        }
        return {name: future.result() for name, future in futures.items()}
