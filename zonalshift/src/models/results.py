#!/usr/bin/env python3
"""
Reconciliation outcome records
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class PoolOutcome(str, Enum):
    """What happened to a single node pool during a pass"""
    UPDATED = "updated"
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


class ReconcileBranch(str, Enum):
    """Which strategy a pass took"""
    CREATE_FAILOVER = "create-failover"
    PATCH_EXISTING = "patch-existing"


@dataclass
class PoolResult:
    """Outcome for one node pool"""
    pool: str
    outcome: PoolOutcome
    reason: Optional[str] = None
    zones_before: List[str] = field(default_factory=list)
    zones_after: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool": self.pool,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "zones_before": list(self.zones_before),
            "zones_after": list(self.zones_after)
        }


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass for one event"""
    event_id: Optional[str]
    region: str
    away_from: str
    branch: Optional[ReconcileBranch] = None
    healthy_zones: List[str] = field(default_factory=list)
    pools: List[PoolResult] = field(default_factory=list)
    error: Optional[str] = None
    dry_run: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def abandoned(self) -> bool:
        """True when the pass stopped before any pool could be examined"""
        return self.error is not None

    @property
    def failed_pools(self) -> List[PoolResult]:
        return [p for p in self.pools if p.outcome == PoolOutcome.FAILED]

    def outcome_for(self, pool: str) -> Optional[PoolResult]:
        for result in self.pools:
            if result.pool == pool:
                return result
        return None

    @property
    def status(self) -> str:
        if self.abandoned:
            return "abandoned"
        if self.failed_pools:
            return "partial"
        return "ok"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_id": self.event_id,
            "region": self.region,
            "away_from": self.away_from,
            "branch": self.branch.value if self.branch else None,
            "status": self.status,
            "healthy_zones": list(self.healthy_zones),
            "pools": [p.to_dict() for p in self.pools],
            "error": self.error,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None
        }
