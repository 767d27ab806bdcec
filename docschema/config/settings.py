# Configuration management

from pydantic_settings import BaseSettings  # type: ignore
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    # Sampling
    sample_size: int = 100
    array_sample_size: int = 10

    # Type classification
    string_length_buckets: List[int] = [50, 100, 255, 1000]

    # Array storage decisions
    tag_keywords: List[str] = ["tag", "category", "label", "keyword", "topic", "genre"]
    tag_max_length: int = 100
    array_large_item_count: int = 20
    array_large_string_length: int = 500
    array_delimited_max_items: int = 10
    delimiter: str = ","

    # Many-to-many detection
    reference_keywords: List[str] = [
        "id", "code", "type", "status", "category",
        "classification", "department", "team", "role",
    ]
    m2m_min_documents: int = 5
    m2m_min_unique_values: int = 3
    m2m_min_share: float = 0.30
    m2m_max_reuse_ratio: float = 0.70
    m2m_min_unique_for_reuse: int = 10
    m2m_min_unique_for_keyword: int = 5
    force_many_to_many_tables: bool = False

    # Child tables
    parent_key_field: str = "ParentId"
    # False flattens top-level objects into the main table instead
    normalize_nested_objects: bool = True

    # Post-pass clustering
    cluster_similarity_threshold: float = 0.8

    # Multi-collection analysis
    max_workers: int = 4

    # Observability
    log_level: str = "INFO"
    log_json: bool = True
    metrics_enabled: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    return Settings()
