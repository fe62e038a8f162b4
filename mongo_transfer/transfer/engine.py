"""
Transfer Engine
Sequential snapshot, batched upsert and mirror reconciliation between two MongoDB collections
"""
import logging
import re
import sys
import time
from typing import Any, Dict, Optional

from tqdm import tqdm

from ..config.manager import TransferConfig, DatabaseSettings
from ..core.database import DatabaseConfig, MongoCollectionClient, create_database_client
from ..monitoring.metrics import MetricsCollector
from .audit import AuditWriter
from .reconciler import MirrorReconciler
from .snapshot import IdentifierSnapshot
from .stream import DocumentStream
from .upserter import BatchUpserter

logger = logging.getLogger(__name__)

_CREDENTIALS = re.compile(r"(?P<scheme>mongodb(?:\+srv)?://)(?P<user>[^:@/]+):(?P<password>[^@/]*)@")


def mask_connection_string(connection_string: Optional[str]) -> str:
    """Hide the password part of a MongoDB URI"""
    if not connection_string:
        return ""
    return _CREDENTIALS.sub(lambda m: f"{m.group('scheme')}{m.group('user')}:****@", connection_string)


def _database_config(settings: DatabaseSettings, role: str) -> DatabaseConfig:
    return DatabaseConfig(
        connection_string=settings.connection_string,
        database_name=settings.database_name,
        collection_name=settings.collection_name,
        role=role,
        cursor_batch_size=settings.cursor_batch_size,
        max_pool_size=settings.max_pool_size,
        min_pool_size=settings.min_pool_size,
        max_idle_time_ms=settings.max_idle_time_ms,
        socket_timeout_ms=settings.socket_timeout_ms,
        connect_timeout_ms=settings.connect_timeout_ms,
        server_selection_timeout_ms=settings.server_selection_timeout_ms
    )


class TransferEngine:
    """
    Runs one transfer:
    - Destination identifier snapshot (mirror modes only)
    - Stream the source and upsert it in fixed-size batches
    - Report or delete destination-only documents

    Every stage awaits its own I/O before the next starts. Failures are not
    retried; they propagate to the caller after being logged.
    """

    def __init__(self, config: TransferConfig,
                 source_client: Optional[MongoCollectionClient] = None,
                 target_client: Optional[MongoCollectionClient] = None):
        self.config = config
        self.metrics_collector = MetricsCollector()
        self.source_client = source_client or create_database_client(
            _database_config(config.source_database, "source"), self.metrics_collector)
        self.target_client = target_client or create_database_client(
            _database_config(config.target_database, "target"), self.metrics_collector)
        self.audit_writer = AuditWriter(config.audit_directory)
        self.progress_bar = None

    async def initialize(self):
        """Connect to both databases"""
        if not self.source_client.is_connected:
            await self.source_client.connect()
        if not self.target_client.is_connected:
            await self.target_client.connect()
        logger.info("Transfer engine initialized successfully")

    def log_run_banner(self):
        source = self.config.source_database
        target = self.config.target_database
        logger.info(f"Input server      : {mask_connection_string(source.connection_string)}")
        logger.info(f"Input database    : {source.database_name}")
        logger.info(f"Input collection  : {source.collection_name}")
        logger.info(f"Output server     : {mask_connection_string(target.connection_string)}")
        logger.info(f"Output database   : {target.database_name}")
        logger.info(f"Output collection : {target.collection_name}")
        logger.info(f"Mirror mode       : {self.config.mirror_mode.value}")
        logger.info(f"Batch size        : {self.config.batch_size:,}")

    async def run(self) -> Dict[str, Any]:
        """Execute the transfer and return final statistics"""
        start_time = time.time()
        mirror_mode = self.config.mirror_mode
        identifier_field = self.config.identifier_field

        snapshot = IdentifierSnapshot(self.target_client, self.audit_writer, identifier_field)
        residual = await snapshot.capture(mirror_mode)
        destination_before = len(residual)

        total_docs = await self.source_client.get_estimated_count()
        self.progress_bar = tqdm(
            total=total_docs or None,
            desc="Transferring",
            unit="docs",
            unit_scale=True,
            ncols=120,
            leave=True,
            file=sys.stdout,
            disable=not self.config.show_progress
        )

        upserter = BatchUpserter(
            self.target_client,
            self.config.batch_size,
            identifier_field,
            on_flush=self.progress_bar.update
        )
        stream = DocumentStream(self.source_client)
        try:
            upsert_stats = await upserter.run(stream, residual if mirror_mode.enabled else None)
        finally:
            self.progress_bar.close()
            self.progress_bar = None

        reconciler = MirrorReconciler(self.target_client, self.audit_writer, mirror_mode, identifier_field)
        reconciliation = await reconciler.reconcile(residual)

        elapsed = time.time() - start_time
        logger.info(f"Elapsed: {elapsed:.2f}s")

        return {
            "documents_read": upsert_stats.documents_read,
            "documents_written": upsert_stats.documents_written,
            "batches_written": upsert_stats.batches_written,
            "batch_sizes": upsert_stats.batch_sizes,
            "upserted": upsert_stats.upserted,
            "modified": upsert_stats.modified,
            "mirror_mode": mirror_mode.value,
            "destination_identifiers_before": destination_before,
            "snapshot_audit_path": str(snapshot.audit_path) if snapshot.audit_path else None,
            "residual_count": reconciliation.residual_count,
            "residual_audit_path": str(reconciliation.audit_path) if reconciliation.audit_path else None,
            "deleted_count": reconciliation.deleted_count,
            "delete_acknowledged": reconciliation.acknowledged,
            "elapsed_time": elapsed,
            "average_rate": upsert_stats.documents_written / elapsed if elapsed > 0 else 0,
            "framework_metrics": self.metrics_collector.get_summary()
        }

    async def cleanup(self):
        """Close both connections"""
        await self.source_client.disconnect()
        await self.target_client.disconnect()
        logger.info("Transfer engine cleaned up")


def create_transfer_engine(config: TransferConfig) -> TransferEngine:
    """Create a transfer engine with the given configuration"""
    return TransferEngine(config)
