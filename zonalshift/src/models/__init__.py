"""
Models package for zonal shift notifications and reconciliation results
"""

from .events import (
    SNSEnvelope,
    ShiftMetadata,
    ShiftDetail,
    EventBridgeEvent,
    ShiftEvent,
    ConfirmationRequired,
)
from .results import (
    PoolOutcome,
    ReconcileBranch,
    PoolResult,
    ReconcileResult,
)

__all__ = [
    "SNSEnvelope",
    "ShiftMetadata",
    "ShiftDetail",
    "EventBridgeEvent",
    "ShiftEvent",
    "ConfirmationRequired",
    "PoolOutcome",
    "ReconcileBranch",
    "PoolResult",
    "ReconcileResult",
]
