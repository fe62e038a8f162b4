"""
Pytest configuration for the transfer test suite

Provides in-memory stand-ins for motor collections so the transfer pipeline
runs without a MongoDB server.
"""
import os
from typing import Any, Dict, List, Optional

import pytest
from pymongo import DeleteOne, ReplaceOne
from pymongo.errors import InvalidOperation

from mongo_transfer.config.manager import DatabaseSettings, MirrorMode, TransferConfig
from mongo_transfer.core.database import DatabaseConfig, MongoCollectionClient
from mongo_transfer.transfer.identifiers import identifier_key


class FakeBulkWriteResult:
    def __init__(self, matched=0, modified=0, upserted=0, deleted=0):
        self.matched_count = matched
        self.modified_count = modified
        self.upserted_count = upserted
        self.deleted_count = deleted


class FakeUnacknowledgedResult:
    """Result of a w=0 write: every counter raises, as pymongo does"""

    @property
    def matched_count(self):
        raise InvalidOperation("unacknowledged write")

    modified_count = upserted_count = deleted_count = matched_count


class FakeCursor:
    def __init__(self, documents: List[Dict[str, Any]], fail_after: Optional[int] = None):
        self._documents = documents
        self._fail_after = fail_after
        self.requested_batch_size = None

    def batch_size(self, size: int):
        self.requested_batch_size = size
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for position, document in enumerate(self._documents):
            if self._fail_after is not None and position >= self._fail_after:
                raise ConnectionError("cursor lost")
            yield document


class FakeCollection:
    """Async collection keeping documents in insertion order"""

    def __init__(self, documents=(), fail_bulk_on_call: Optional[int] = None,
                 fail_cursor_after: Optional[int] = None, acknowledged: bool = True):
        self._documents: Dict[Any, Dict[str, Any]] = {}
        for document in documents:
            self._documents[identifier_key(document["_id"])] = dict(document)
        self.bulk_calls: List[List[Any]] = []
        self.find_calls: List[tuple] = []
        self.fail_bulk_on_call = fail_bulk_on_call
        self.fail_cursor_after = fail_cursor_after
        self.acknowledged = acknowledged

    @property
    def documents(self) -> List[Dict[str, Any]]:
        return list(self._documents.values())

    def ids(self) -> set:
        return {identifier_key(doc["_id"]) for doc in self._documents.values()}

    def find(self, filter=None, projection=None):
        self.find_calls.append((filter, projection))
        snapshot = [dict(doc) for doc in self._documents.values()]
        if projection:
            fields = [name for name, include in projection.items() if include]
            snapshot = [{name: doc[name] for name in ["_id"] + fields if name in doc} for doc in snapshot]
        return FakeCursor(snapshot, self.fail_cursor_after)

    async def estimated_document_count(self):
        return len(self._documents)

    async def bulk_write(self, operations, ordered=True):
        self.bulk_calls.append(list(operations))
        if self.fail_bulk_on_call is not None and len(self.bulk_calls) == self.fail_bulk_on_call:
            raise ConnectionError("bulk write failed")

        result = FakeBulkWriteResult()
        for operation in operations:
            (field_name, value), = operation._filter.items()
            key = self._match(field_name, value)
            if isinstance(operation, ReplaceOne):
                if key is not None:
                    result.matched_count += 1
                    if self._documents[key] != operation._doc:
                        result.modified_count += 1
                elif operation._upsert:
                    result.upserted_count += 1
                    key = identifier_key(operation._doc["_id"])
                else:
                    continue
                self._documents[key] = dict(operation._doc)
            elif isinstance(operation, DeleteOne):
                if key is not None:
                    del self._documents[key]
                    result.deleted_count += 1
        return result if self.acknowledged else FakeUnacknowledgedResult()

    def _match(self, field_name: str, value: Any):
        """Storage key of the first document whose field equals value"""
        wanted = identifier_key(value)
        for key, document in self._documents.items():
            if field_name in document and identifier_key(document[field_name]) == wanted:
                return key
        return None


def make_client(collection: FakeCollection, role: str = "source") -> MongoCollectionClient:
    config = DatabaseConfig(
        connection_string="mongodb://localhost:27017",
        database_name="db",
        collection_name=f"{role}_coll",
        role=role
    )
    client = MongoCollectionClient(config)
    client.collection = collection
    client.is_connected = True
    return client


def make_config(tmp_path, batch_size: int = 50000, mirror_mode: MirrorMode = MirrorMode.NONE,
                identifier_field: str = "_id") -> TransferConfig:
    return TransferConfig(
        source_database=DatabaseSettings("mongodb://localhost:27017", "db", "source_coll"),
        target_database=DatabaseSettings("mongodb://localhost:27017", "db", "target_coll"),
        batch_size=batch_size,
        mirror_mode=mirror_mode,
        identifier_field=identifier_field,
        audit_directory=str(tmp_path),
        show_progress=False
    )


def audit_files(directory) -> List:
    return sorted(p for p in directory.iterdir() if p.name.startswith("mirror."))


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep dotenv files and TRANSFER_* variables of the host out of the tests"""
    for name in list(os.environ):
        if name.startswith("TRANSFER_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
