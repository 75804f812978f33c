"""
Background repair queue: immutable task payloads, bounded queue and
worker pool.
"""

from .tasks import RepairKind, RepairQueue, RepairTask
from .workers import RepairWorker, RepairWorkerPool

__all__ = [
    "RepairKind",
    "RepairQueue",
    "RepairTask",
    "RepairWorker",
    "RepairWorkerPool",
]
