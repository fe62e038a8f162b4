"""
Mongo Transfer
Upsert documents from one MongoDB collection to another, with optional mirroring
"""

__version__ = "1.0.0"

# Configuration
from .config.manager import (
    ConfigManager,
    TransferConfig,
    DatabaseSettings,
    MirrorMode,
    Environment
)

# Errors
from .exceptions import TransferError, ConfigurationError, MissingIdentifierError

# Database access
from .core.database import DatabaseConfig, MongoCollectionClient, create_database_client

# Transfer pipeline
from .transfer.engine import TransferEngine, create_transfer_engine
from .transfer.stream import DocumentStream
from .transfer.snapshot import IdentifierSnapshot
from .transfer.upserter import BatchUpserter, UpsertStats
from .transfer.reconciler import MirrorReconciler, ReconciliationResult
from .transfer.audit import AuditWriter
from .transfer.identifiers import IdentifierSet

# Monitoring
from .monitoring.metrics import MetricsCollector, OperationMetrics, OperationType

__all__ = [
    # Configuration
    "ConfigManager",
    "TransferConfig",
    "DatabaseSettings",
    "MirrorMode",
    "Environment",

    # Errors
    "TransferError",
    "ConfigurationError",
    "MissingIdentifierError",

    # Database access
    "DatabaseConfig",
    "MongoCollectionClient",
    "create_database_client",

    # Transfer pipeline
    "TransferEngine",
    "create_transfer_engine",
    "DocumentStream",
    "IdentifierSnapshot",
    "BatchUpserter",
    "UpsertStats",
    "MirrorReconciler",
    "ReconciliationResult",
    "AuditWriter",
    "IdentifierSet",

    # Monitoring
    "MetricsCollector",
    "OperationMetrics",
    "OperationType"
]
