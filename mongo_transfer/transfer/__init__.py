"""
Transfer pipeline
"""
from .engine import TransferEngine, create_transfer_engine, mask_connection_string
from .stream import DocumentStream
from .snapshot import IdentifierSnapshot
from .upserter import BatchUpserter, UpsertStats, build_upsert
from .reconciler import MirrorReconciler, ReconciliationResult
from .audit import AuditWriter
from .identifiers import IdentifierSet, identifier_key
