"""
Destination identifier snapshot
"""
import logging
from pathlib import Path
from typing import Optional

from ..config.manager import MirrorMode
from ..core.database import MongoCollectionClient
from ..monitoring.metrics import OperationType
from .audit import AuditWriter, SNAPSHOT_SUFFIX
from .identifiers import IdentifierSet

logger = logging.getLogger(__name__)


class IdentifierSnapshot:
    """Captures the identifiers currently held by the destination collection"""

    def __init__(self, target_client: MongoCollectionClient, audit_writer: AuditWriter,
                 identifier_field: str = "_id"):
        self.target_client = target_client
        self.audit_writer = audit_writer
        self.identifier_field = identifier_field
        self.audit_path: Optional[Path] = None

    async def capture(self, mirror_mode: MirrorMode) -> IdentifierSet:
        """
        Read every destination identifier when mirroring is enabled.

        With mirroring disabled the destination is not read at all and an
        empty set is returned. A non-empty snapshot is written to an audit
        file before anything else happens.
        """
        identifiers = IdentifierSet()
        if not mirror_mode.enabled:
            return identifiers

        metrics = self.target_client.metrics
        operation = metrics.start_operation("identifier_snapshot", OperationType.SNAPSHOT)
        try:
            async for identifier in self.target_client.iter_identifiers(self.identifier_field):
                identifiers.add(identifier)
        except Exception as e:
            metrics.end_operation(operation, len(identifiers), False, str(e))
            raise
        metrics.end_operation(operation, len(identifiers), True)

        if not identifiers:
            logger.info("No document exists in the output collection.")
            return identifiers

        self.audit_path = self.audit_writer.write(identifiers, SNAPSHOT_SUFFIX)
        logger.info(f"{len(identifiers):,} document(s) exist in the output collection. Ids have been output to '{self.audit_path}'.")
        return identifiers
