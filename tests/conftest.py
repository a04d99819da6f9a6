"""Shared fixtures: an in-memory storage driver and metadata store."""

import pytest

from storage import MemoryDriver
from workflows import FilingService, MetadataStore


@pytest.fixture
def driver():
    return MemoryDriver()


@pytest.fixture
def store():
    s = MetadataStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def service(driver, store):
    return FilingService(driver, store)
