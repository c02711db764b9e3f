"""Pytest configuration and shared fixtures."""
import asyncio
import copy

import pytest

from diligencestate import EngineConfig, InMemoryBackend, Record, SelectionEngine
from diligencestate.config import reset_engine_config


# Record with two solutions: c2 was never stamped, c1 was created first
RECORD_R1 = {
    'id': 'R1',
    'createdAt': '2023-06-01T00:00:00Z',
    'fields': {'name': 'Acme Software', 'business_criticality': 'High', 'country': 'FR'},
    'children': [
        {
            'id': 'c2',
            'createdAt': None,
            'fields': {'name': 'Portal', 'main_use_case': 'Customer portal'},
            'grandchildren': [
                {
                    'id': 'g2-prod',
                    'createdAt': '2024-02-01T00:00:00Z',
                    'fields': {'env_type': 'production', 'redundancy': 'minimal'},
                },
            ],
        },
        {
            'id': 'c1',
            'createdAt': '2024-01-01T00:00:00Z',
            'fields': {'name': 'Billing', 'main_use_case': 'Invoicing'},
            'grandchildren': [
                {
                    'id': 'g1-test',
                    'createdAt': '2024-03-01T00:00:00Z',
                    'fields': {'env_type': 'test', 'redundancy': 'none'},
                },
                {
                    'id': 'g1-prod',
                    'createdAt': '2024-01-05T00:00:00Z',
                    'fields': {'env_type': 'production', 'redundancy': 'geo_redundant'},
                    'profiles': {'hosting': {'provider': 'OVH', 'region': 'eu-west'}},
                },
            ],
        },
    ],
}

RECORD_R2 = {
    'id': 'R2',
    'fields': {'name': 'Globex', 'business_criticality': 'Low'},
    'children': [
        {
            'id': 'd1',
            'createdAt': '2024-05-01T00:00:00Z',
            'fields': {'name': 'Globex ERP', 'main_use_case': 'ERP'},
            'grandchildren': [],
        },
    ],
}


@pytest.fixture(autouse=True)
def reset_config():
    """Forget any process-wide EngineConfig a test installed."""
    reset_engine_config()
    yield
    reset_engine_config()


@pytest.fixture
def record_payload():
    """Provide a fresh copy of the R1 payload."""
    return copy.deepcopy(RECORD_R1)


@pytest.fixture
def record(record_payload):
    return Record.from_dict(record_payload)


@pytest.fixture
def backend():
    """In-memory data source + collaborator seeded with R1 and R2."""
    return InMemoryBackend([RECORD_R1, RECORD_R2])


@pytest.fixture
def hidden_archived_config():
    """Config where archived items start hidden."""
    return EngineConfig(include_archived=False)


@pytest.fixture
def make_engine(backend):
    """Factory building an engine wired to the in-memory backend."""
    def _make(record_id='R1', **kwargs):
        kwargs.setdefault('mutations', backend)
        kwargs.setdefault('data_source', backend)
        fetched = asyncio.run(backend.fetch_record(record_id))
        return SelectionEngine(fetched, **kwargs)
    return _make


@pytest.fixture
def engine(make_engine):
    """Engine on R1 with stock configuration."""
    return make_engine()
