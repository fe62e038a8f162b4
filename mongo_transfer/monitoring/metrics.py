"""
Monitoring and Metrics
Per-operation tracking for snapshot reads, bulk upserts and bulk deletes
"""
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

logger = logging.getLogger(__name__)

class OperationType(Enum):
    """Types of operations to monitor"""
    SNAPSHOT = "snapshot"
    WRITE = "write"
    DELETE = "delete"

@dataclass
class OperationMetrics:
    """Metrics for a single operation"""
    operation_name: str
    operation_type: OperationType
    start_time: float
    end_time: Optional[float] = None
    documents_submitted: int = 0
    documents_processed: int = 0
    success: bool = False
    error_message: Optional[str] = None

    @property
    def duration(self) -> float:
        if self.end_time is None:
            return time.time() - self.start_time
        return self.end_time - self.start_time

    @property
    def rate(self) -> float:
        return self.documents_processed / self.duration if self.duration > 0 else 0

class MetricsCollector:
    """
    Collects finished operations and summarizes them:
    - Counts per operation type
    - Documents processed and throughput
    - Failures with their error messages
    """

    def __init__(self):
        self.operations: List[OperationMetrics] = []
        self.start_time = time.time()

    def start_operation(self, operation_name: str, operation_type: OperationType,
                        documents_count: int = 0) -> OperationMetrics:
        """Start tracking an operation"""
        operation = OperationMetrics(
            operation_name=operation_name,
            operation_type=operation_type,
            start_time=time.time(),
            documents_submitted=documents_count
        )
        logger.debug(f"Started operation: {operation_name} ({documents_count} docs)")
        return operation

    def end_operation(self, operation: OperationMetrics, documents_processed: int,
                      success: bool, error_message: Optional[str] = None):
        """End tracking an operation"""
        operation.end_time = time.time()
        operation.documents_processed = documents_processed
        operation.success = success
        operation.error_message = error_message
        self.operations.append(operation)

        if success:
            logger.debug(f"✅ {operation.operation_name}: {documents_processed:,} docs in {operation.duration:.2f}s ({operation.rate:.0f} docs/s)")
        else:
            logger.error(f"❌ {operation.operation_name}: Failed - {error_message}")

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary"""
        if not self.operations:
            return {"message": "No operations recorded"}

        successful_ops = [op for op in self.operations if op.success]
        failed_ops = [op for op in self.operations if not op.success]

        total_docs = sum(op.documents_processed for op in successful_ops)
        total_time = sum(op.duration for op in successful_ops)

        by_type = {}
        for operation_type in OperationType:
            ops = [op for op in successful_ops if op.operation_type == operation_type]
            if ops:
                by_type[operation_type.value] = {
                    "operations": len(ops),
                    "documents": sum(op.documents_processed for op in ops)
                }

        return {
            "total_operations": len(self.operations),
            "successful_operations": len(successful_ops),
            "failed_operations": len(failed_ops),
            "total_documents_processed": total_docs,
            "total_time": total_time,
            "average_rate": total_docs / total_time if total_time > 0 else 0,
            "by_type": by_type,
            "errors": [op.error_message for op in failed_ops]
        }
