"""
Core Database Client
Motor-based collection access for transfer runs: streaming reads, identifier projections and bulk writes
"""
import logging
from typing import Dict, List, Optional, Any, AsyncIterator
from dataclasses import dataclass

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import InvalidOperation

from ..exceptions import MissingIdentifierError
from ..monitoring.metrics import MetricsCollector, OperationType

logger = logging.getLogger(__name__)

@dataclass
class DatabaseConfig:
    """Database configuration"""
    connection_string: str
    database_name: str
    collection_name: str
    role: str = "source"
    cursor_batch_size: int = 1000
    max_pool_size: int = 100
    min_pool_size: int = 0
    max_idle_time_ms: int = 300000
    socket_timeout_ms: int = 30000
    connect_timeout_ms: int = 20000
    server_selection_timeout_ms: int = 30000

class MongoCollectionClient:
    """
    Client bound to a single MongoDB collection

    Provides:
    - Connection management
    - Full unfiltered streaming reads
    - Identifier-only projected reads
    - Ordered bulk writes that surface failures to the caller
    """

    def __init__(self, config: DatabaseConfig, metrics: Optional[MetricsCollector] = None):
        self.config = config
        self.metrics = metrics or MetricsCollector()
        self.client: Optional[AsyncIOMotorClient] = None
        self.database = None
        self.collection = None
        self.is_connected = False

    async def connect(self):
        """Connect and verify the server answers a ping"""
        logger.info(f"Connecting to {self.config.role} database {self.config.database_name}...")

        self.client = AsyncIOMotorClient(
            self.config.connection_string,
            maxPoolSize=self.config.max_pool_size,
            minPoolSize=self.config.min_pool_size,
            maxIdleTimeMS=self.config.max_idle_time_ms,
            socketTimeoutMS=self.config.socket_timeout_ms,
            connectTimeoutMS=self.config.connect_timeout_ms,
            serverSelectionTimeoutMS=self.config.server_selection_timeout_ms
        )
        self.database = self.client[self.config.database_name]
        self.collection = self.database[self.config.collection_name]

        await self.client.admin.command('ping')

        self.is_connected = True
        logger.info(f"✅ Connected to {self.config.role} database")

    async def disconnect(self):
        """Disconnect from database"""
        if self.client:
            self.client.close()
            self.client = None
            logger.info(f"Disconnected from {self.config.role} database")
        self.is_connected = False

    @property
    def namespace(self) -> str:
        return f"{self.config.database_name}.{self.config.collection_name}"

    async def get_estimated_count(self) -> int:
        """Get estimated document count, used for progress display only"""
        try:
            return await self.collection.estimated_document_count()
        except Exception as e:
            logger.warning(f"Could not estimate document count for {self.namespace}: {e}")
            return 0

    def find_all(self):
        """Cursor over every document, no filter, sort or projection"""
        return self.collection.find({}).batch_size(self.config.cursor_batch_size)

    async def iter_identifiers(self, identifier_field: str = "_id") -> AsyncIterator[Any]:
        """Yield the identifier of every document using a projected read"""
        cursor = self.collection.find({}, {identifier_field: 1}).batch_size(self.config.cursor_batch_size)
        position = 0
        async for doc in cursor:
            position += 1
            if identifier_field not in doc:
                raise MissingIdentifierError(identifier_field, position, self.namespace)
            yield doc[identifier_field]

    async def bulk_write(self, operations: List[Any], operation_type: OperationType = OperationType.WRITE) -> Dict[str, int]:
        """Ordered bulk write; failures are recorded then re-raised"""
        operation = self.metrics.start_operation(f"bulk_{operation_type.value}", operation_type, len(operations))

        try:
            result = await self.collection.bulk_write(operations, ordered=True)
        except Exception as e:
            self.metrics.end_operation(operation, 0, False, str(e))
            raise

        counts = _result_counts(result, len(operations))
        self.metrics.end_operation(operation, len(operations), True)
        logger.debug(f"bulk_{operation_type.value} on {self.namespace}: {counts}")
        return counts

def _result_counts(result, submitted: int) -> Dict[str, int]:
    """Extract counters from a BulkWriteResult"""
    try:
        return {
            "matched": result.matched_count,
            "modified": result.modified_count,
            "upserted": result.upserted_count,
            "deleted": result.deleted_count,
        }
    except (AttributeError, InvalidOperation):
        # Unacknowledged writes carry no counters
        return {"matched": 0, "modified": 0, "upserted": 0, "deleted": 0, "submitted": submitted}

def create_database_client(config: DatabaseConfig, metrics: Optional[MetricsCollector] = None) -> MongoCollectionClient:
    """Factory function to create a collection client"""
    return MongoCollectionClient(config, metrics)
