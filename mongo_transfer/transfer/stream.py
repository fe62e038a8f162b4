"""
Source document stream
"""
import logging
from typing import Any, AsyncIterator, Dict

from ..core.database import MongoCollectionClient

logger = logging.getLogger(__name__)


class DocumentStream:
    """
    One-pass, lazy iteration over every document of the source collection.

    The cursor is opened with no filter, sort or projection, so documents come
    back complete and in the server's natural order. Cursor errors propagate
    to the caller untouched.
    """

    def __init__(self, source_client: MongoCollectionClient):
        self.source_client = source_client
        self.documents_read = 0
        self._consumed = False

    def __aiter__(self) -> AsyncIterator[Dict[str, Any]]:
        if self._consumed:
            raise RuntimeError("DocumentStream can only be iterated once")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Dict[str, Any]]:
        logger.debug(f"Opening source cursor on {self.source_client.namespace}")
        async for document in self.source_client.find_all():
            self.documents_read += 1
            yield document
        logger.debug(f"Source cursor exhausted after {self.documents_read:,} documents")
