"""
Mirror reconciliation of destination-only documents
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pymongo import DeleteOne

from ..config.manager import MirrorMode
from ..core.database import MongoCollectionClient
from ..monitoring.metrics import OperationType
from .audit import AuditWriter, RESIDUAL_SUFFIX
from .identifiers import IdentifierSet

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of the mirror step"""
    mirror_mode: MirrorMode
    residual_count: int = 0
    audit_path: Optional[Path] = None
    deleted_count: int = 0
    acknowledged: bool = True

    @property
    def already_mirrored(self) -> bool:
        return self.mirror_mode.enabled and self.residual_count == 0


class MirrorReconciler:
    """Reports or deletes identifiers seen in the destination but never in the source"""

    def __init__(self, target_client: MongoCollectionClient, audit_writer: AuditWriter,
                 mirror_mode: MirrorMode, identifier_field: str = "_id"):
        self.target_client = target_client
        self.audit_writer = audit_writer
        self.mirror_mode = mirror_mode
        self.identifier_field = identifier_field

    async def reconcile(self, residual: IdentifierSet) -> ReconciliationResult:
        result = ReconciliationResult(mirror_mode=self.mirror_mode)
        if not self.mirror_mode.enabled:
            return result

        if not residual:
            logger.info("No document existed in the output collection and not in the input collection. Mirror is implicit.")
            return result

        result.residual_count = len(residual)
        result.audit_path = self.audit_writer.write(residual, RESIDUAL_SUFFIX)
        logger.info(f"{result.residual_count:,} document(s) exist in the output collection and not in the input collection. "
                    f"Ids have been output to '{result.audit_path}'.")

        if self.mirror_mode is MirrorMode.TEST:
            logger.info("Test mode. Nothing was deleted.")
            return result

        operations = [DeleteOne({self.identifier_field: identifier}) for identifier in residual]
        counts = await self.target_client.bulk_write(operations, OperationType.DELETE)
        if "submitted" in counts:
            # w=0: the server reports nothing back
            result.acknowledged = False
            result.deleted_count = counts["submitted"]
            logger.info(f"Delete mode. {result.deleted_count:,} document(s) have been submitted for deletion from the output collection.")
        else:
            result.deleted_count = counts.get("deleted", 0)
            logger.info(f"Delete mode. {result.deleted_count:,} document(s) have been deleted from the output collection.")
        return result
