"""
Pytest configuration for the ledger tests.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules, and
provides an in-memory record store with a few seeded rows.
"""

import sys
from pathlib import Path

import pytest

# Add the project directory to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

from domain.user import UserRole  # noqa: E402
from fakes import InMemoryRecordStore, add_batch, add_client, add_user  # noqa: E402


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def owner(store):
    return add_user(store, "Owner", UserRole.OWNER)


@pytest.fixture
def worker(store):
    return add_user(store, "Youssef", UserRole.WORKER)


@pytest.fixture
def client_id(store):
    return add_client(store)


@pytest.fixture
def batch_id(store):
    return add_batch(store)
