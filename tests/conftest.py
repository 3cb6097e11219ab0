from __future__ import annotations

import os
import threading
from unittest import mock

import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

from mongobench.config import UnknownOperationError


class StubQueries:
    """In-memory stand-in for MongoQueries; operations record the calling worker ids."""

    def __init__(self, operations=None) -> None:
        self.calls: list[tuple[str, int]] = []
        self.populated: list[int] = []
        self.indexed = False
        self.purged = False
        self._lock = threading.Lock()
        self._operations = operations or {"simple": lambda worker_id: None}

    def available_operations(self) -> list[str]:
        return sorted(self._operations)

    def get_operation(self, name: str):
        if name not in self._operations:
            raise UnknownOperationError(name, self.available_operations())
        operation = self._operations[name]

        def call(worker_id: int):
            with self._lock:
                self.calls.append((name, worker_id))
            return operation(worker_id)

        return call

    def populate_collection(self, num_documents: int) -> None:
        self.populated.append(num_documents)

    def ensure_index(self) -> str:
        self.indexed = True
        return "k_1"

    def purge_collection(self) -> None:
        self.purged = True


@pytest.fixture
def stub_queries() -> StubQueries:
    return StubQueries()


@pytest.fixture
def fake_client() -> mock.MagicMock:
    client = mock.MagicMock(name="MongoClient")
    collection = client.__getitem__.return_value.__getitem__.return_value
    collection.find_one.return_value = {"_id": 1, "k": 1}
    collection.find.return_value = iter([])
    return client


@pytest.fixture
def client_factory(fake_client):
    factory = mock.MagicMock(name="create_client", return_value=fake_client)
    return factory
