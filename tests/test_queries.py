from __future__ import annotations

import random
from unittest import mock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from mongobench import queries
from mongobench.config import ConnectionConfig, UnknownOperationError
from mongobench.queries import (
    ConnectionSetupError,
    MongoQueries,
    build_document,
    create_client,
)


@pytest.fixture
def collection():
    return mock.MagicMock(name="collection")


@pytest.fixture
def mongo_queries(collection):
    database = mock.MagicMock(name="database")
    database.__getitem__.return_value = collection
    return MongoQueries(database, "mongobench_test_data", rng=random.Random(1))


def test_available_operations():
    assert MongoQueries.available_operations() == ["indexed_find", "nonindexed_find", "simple"]


def test_unknown_operation(mongo_queries):
    with pytest.raises(UnknownOperationError, match="Valid choices are: indexed_find"):
        mongo_queries.get_operation("bogus")


def test_operations_query_the_collection(mongo_queries, collection):
    collection.find.return_value = iter([{"k": 12345}])
    mongo_queries.get_operation("simple")(0)
    collection.find_one.assert_called_once_with()

    assert mongo_queries.get_operation("indexed_find")(1) == [{"k": 12345}]
    collection.find.assert_called_with({"k": 12345})

    collection.find.return_value = iter([])
    assert mongo_queries.get_operation("nonindexed_find")(2) == []
    collection.find.assert_called_with({"c": "lorem"})


def test_build_document_shape():
    document = build_document(42, random.Random(3))
    assert document["k"] == 42
    assert document["c"] in queries.WORDS
    assert 0 <= len(document["tags"]) < 5
    assert len(document["emb"]) == 1
    embedded = document["emb"][0]
    assert embedded["k"] == 42
    assert set(embedded["tags"]) <= set(queries.WORDS)


def test_populate_inserts_in_batches(mongo_queries, collection, monkeypatch):
    monkeypatch.setattr(queries, "INSERT_BATCH_SIZE", 4)
    mongo_queries.populate_collection(10)

    batch_sizes = [len(call.args[0]) for call in collection.insert_many.call_args_list]
    assert batch_sizes == [4, 4, 2]
    keys = [doc["k"] for call in collection.insert_many.call_args_list for doc in call.args[0]]
    assert keys == list(range(10))


def test_populate_zero_documents(mongo_queries, collection):
    mongo_queries.populate_collection(0)
    collection.insert_many.assert_not_called()


def test_ensure_index_and_purge(mongo_queries, collection):
    mongo_queries.ensure_index()
    collection.create_index.assert_called_once_with([("k", 1)])
    mongo_queries.purge_collection()
    collection.drop.assert_called_once_with()


def test_create_client_sizes_pool(monkeypatch):
    client_cls = mock.MagicMock(name="MongoClient")
    monkeypatch.setattr(queries, "MongoClient", client_cls)

    client = create_client(ConnectionConfig(host="db", port=27018), pool_size=8)

    assert client is client_cls.return_value
    args, kwargs = client_cls.call_args
    assert args == ("db", 27018)
    assert kwargs["maxPoolSize"] == 8
    client.admin.command.assert_called_once_with("ping")


def test_create_client_gives_up_after_deadline(monkeypatch):
    client_cls = mock.MagicMock(name="MongoClient")
    client_cls.return_value.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
    monkeypatch.setattr(queries, "MongoClient", client_cls)
    monkeypatch.setattr(queries.time, "sleep", lambda _: None)

    with pytest.raises(ConnectionSetupError, match="db:27017"):
        create_client(ConnectionConfig(host="db"), connect_deadline_s=0)
    client_cls.return_value.close.assert_called_once_with()
