# Test configuration

import pytest
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


@pytest.fixture
def test_settings():
    """Settings isolated from any local .env file"""
    from docschema.config.settings import Settings
    return Settings(_env_file=None, metrics_enabled=False, log_json=False)


@pytest.fixture
def forced_settings():
    """Settings that synthesize lookup tables for inline many-to-many arrays"""
    from docschema.config.settings import Settings
    return Settings(_env_file=None, metrics_enabled=False, force_many_to_many_tables=True)


@pytest.fixture
def order_documents():
    """A small, varied order collection"""
    return [
        {
            "id": "1",
            "customer": "Ann",
            "total": 19.99,
            "address": {"street": "Main St", "city": "Seattle"},
            "tags": ["new", "priority"],
            "items": [
                {"sku": "A-1", "qty": 2, "price": 4.5},
                {"sku": "B-2", "qty": 1, "price": 10.99},
            ],
        },
        {
            "id": "2",
            "customer": "Bo",
            "total": 5.0,
            "address": {"street": "Pine Ave", "city": "Portland", "zip": "97201"},
            "tags": ["priority"],
            "items": [{"sku": "A-1", "qty": 1, "price": 4.5}],
        },
        {
            "id": "3",
            "customer": "Cy",
            "total": 12.25,
            "address": {"street": "Oak Rd", "city": "Boise"},
            "tags": [],
            "items": [{"sku": "C-3", "qty": 3, "price": 2.5, "gift": True}],
        },
    ]
