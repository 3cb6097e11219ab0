from __future__ import annotations

import logging
import random
import time
from typing import Callable

from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from .config import ConnectionConfig, MongoBenchError, UnknownOperationError

LOGGER = logging.getLogger("mongobench.queries")

CONNECT_TIMEOUT_MS = 5_000
INDEXED_FIELD = "k"
INDEXED_LOOKUP_VALUE = 12345
NONINDEXED_LOOKUP_VALUE = "lorem"
INSERT_BATCH_SIZE = 1_000

WORDS: tuple[str, ...] = tuple(
    """
    lorem ipsum dolor sit amet consectetur adipiscing elit donec tristique ullamcorper sapien non porttitor
    baoreet fringilla suspendisse et metus aliquam consectetur augue lacus non dapibus arcu cum sociis natoque
    penatibus magnis dis parturient montes nascetur ridiculus mus donec eu luctus arcu
    """.split()
)


class ConnectionSetupError(MongoBenchError):
    """Raised when the database cannot be reached within the connect window."""


def create_client(
    connection: ConnectionConfig,
    pool_size: int = 1,
    connect_deadline_s: float = 30.0,
) -> MongoClient:
    """Open a client sized for ``pool_size`` concurrent workers and wait until it answers a ping."""
    backoff = 1.0
    max_backoff = 10.0
    deadline = time.time() + connect_deadline_s

    client: MongoClient = MongoClient(
        connection.host,
        connection.port,
        maxPoolSize=max(pool_size, 1),
        serverSelectionTimeoutMS=CONNECT_TIMEOUT_MS,
        connectTimeoutMS=CONNECT_TIMEOUT_MS,
    )
    while True:
        try:
            client.admin.command("ping")
            return client
        except PyMongoError as exc:
            if time.time() >= deadline:
                client.close()
                raise ConnectionSetupError(
                    f"failed to connect to MongoDB at {connection.address} within {connect_deadline_s:.0f} seconds"
                ) from exc
            LOGGER.warning("MongoDB at %s not reachable yet: %s", connection.address, exc)
            time.sleep(backoff)
            backoff = min(backoff * 1.5, max_backoff)


def random_word(rng: random.Random | None = None) -> str:
    return (rng or random).choice(WORDS)


def generate_tags(length: int, rng: random.Random | None = None) -> list[str]:
    return [random_word(rng) for _ in range(length)]


def build_document(key: int, rng: random.Random | None = None) -> dict[str, object]:
    rng = rng or random
    return {
        "k": key,
        "c": random_word(rng),
        "tags": generate_tags(rng.randrange(5), rng),
        "emb": [
            {
                "k": key,
                "c": random_word(rng),
                "tags": generate_tags(rng.randrange(5), rng),
            }
        ],
    }


class MongoQueries:
    """Named, timed operations against a single benchmark collection.

    The harness only looks operations up by name through :data:`OPERATIONS`;
    every operation takes the calling worker's id.
    """

    def __init__(
        self,
        database: Database,
        collection: str,
        rng: random.Random | None = None,
    ) -> None:
        self._database = database
        self._collection: Collection = database[collection]
        self._rng = rng or random.Random()

    @property
    def collection(self) -> Collection:
        return self._collection

    @classmethod
    def available_operations(cls) -> list[str]:
        return sorted(OPERATIONS)

    @classmethod
    def validate_operation(cls, name: str) -> None:
        if name not in OPERATIONS:
            raise UnknownOperationError(name, cls.available_operations())

    def get_operation(self, name: str) -> Callable[[int], object]:
        self.validate_operation(name)
        method = OPERATIONS[name]
        return lambda worker_id: method(self, worker_id)

    def populate_collection(self, num_documents: int) -> None:
        batch: list[dict[str, object]] = []
        for key in range(num_documents):
            batch.append(build_document(key, self._rng))
            if len(batch) >= INSERT_BATCH_SIZE:
                self._collection.insert_many(batch)
                batch = []
        if batch:
            self._collection.insert_many(batch)

    def ensure_index(self) -> str:
        return self._collection.create_index([(INDEXED_FIELD, ASCENDING)])

    def purge_collection(self) -> None:
        self._collection.drop()

    def simple(self, worker_id: int) -> object:
        return self._collection.find_one()

    def indexed_find(self, worker_id: int) -> list[dict]:
        return list(self._collection.find({INDEXED_FIELD: INDEXED_LOOKUP_VALUE}))

    def nonindexed_find(self, worker_id: int) -> list[dict]:
        return list(self._collection.find({"c": NONINDEXED_LOOKUP_VALUE}))


OPERATIONS: dict[str, Callable[[MongoQueries, int], object]] = {
    "simple": MongoQueries.simple,
    "indexed_find": MongoQueries.indexed_find,
    "nonindexed_find": MongoQueries.nonindexed_find,
}


__all__ = [
    "ConnectionSetupError",
    "MongoQueries",
    "OPERATIONS",
    "build_document",
    "create_client",
]
