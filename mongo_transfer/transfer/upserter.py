"""
Batched upsert delivery
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pymongo import ReplaceOne

from ..core.database import MongoCollectionClient
from ..exceptions import MissingIdentifierError
from ..monitoring.metrics import OperationType
from .identifiers import IdentifierSet
from .stream import DocumentStream

logger = logging.getLogger(__name__)


@dataclass
class UpsertStats:
    """Counters for one upsert pass"""
    documents_read: int = 0
    documents_written: int = 0
    batches_written: int = 0
    batch_sizes: List[int] = field(default_factory=list)
    matched: int = 0
    modified: int = 0
    upserted: int = 0


def build_upsert(document: Dict[str, Any], identifier_field: str, position: int,
                 namespace: str = "source") -> ReplaceOne:
    """Replace-by-identifier operation that creates the document when absent"""
    if identifier_field not in document:
        raise MissingIdentifierError(identifier_field, position, namespace)
    return ReplaceOne({identifier_field: document[identifier_field]}, document, upsert=True)


class BatchUpserter:
    """
    Drains a DocumentStream into the destination with ordered bulk upserts.

    A batch is written as soon as it holds batch_size operations; whatever
    is left when the stream ends goes out as one final partial batch. Only
    one bulk write is awaited at a time. When a residual IdentifierSet is
    given, every streamed identifier is discarded from it.
    """

    def __init__(self, target_client: MongoCollectionClient, batch_size: int,
                 identifier_field: str = "_id",
                 on_flush: Optional[Callable[[int], None]] = None):
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self.target_client = target_client
        self.batch_size = batch_size
        self.identifier_field = identifier_field
        self.on_flush = on_flush
        self.stats = UpsertStats()

    async def run(self, stream: DocumentStream, residual: Optional[IdentifierSet] = None) -> UpsertStats:
        pending: List[ReplaceOne] = []

        async for document in stream:
            self.stats.documents_read += 1
            operation = build_upsert(document, self.identifier_field, self.stats.documents_read,
                                     stream.source_client.namespace)
            pending.append(operation)
            if residual is not None:
                residual.discard(document[self.identifier_field])

            if len(pending) == self.batch_size:
                await self._flush(pending)
                pending = []

        if pending:
            await self._flush(pending)

        return self.stats

    async def _flush(self, operations: List[ReplaceOne]):
        logger.info(f"Writing {len(operations):,} document(s).")
        try:
            counts = await self.target_client.bulk_write(operations, OperationType.WRITE)
        except Exception:
            if self.stats.batches_written:
                logger.error(f"Bulk upsert failed; {self.stats.documents_written:,} document(s) in "
                             f"{self.stats.batches_written} earlier batch(es) remain committed")
            raise

        self.stats.batches_written += 1
        self.stats.documents_written += len(operations)
        self.stats.batch_sizes.append(len(operations))
        self.stats.matched += counts.get("matched", 0)
        self.stats.modified += counts.get("modified", 0)
        self.stats.upserted += counts.get("upserted", 0)

        if self.on_flush:
            self.on_flush(len(operations))
