"""
Monitoring
"""
from .metrics import MetricsCollector, OperationMetrics, OperationType
