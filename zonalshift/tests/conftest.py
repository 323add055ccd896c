"""Shared pytest fixtures for the zonal shift reconciler tests.

Provides an in-memory node pool repository with resource-version optimistic
concurrency, a scripted zone resolver, and builders for notification payloads
and node pool manifests.
"""

import copy
import json
import os
import sys
import threading
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add src to path for absolute imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src"))

from core.errors import (  # noqa: E402
    ListFailed,
    PoolNotFound,
    UpdateFailed,
    PoolAlreadyExists,
    ConflictRetryable,
)
from database.repositories import NodePoolRepository  # noqa: E402
from database.schemas import NodePool, ZONE_KEY  # noqa: E402
from models.events import ShiftEvent  # noqa: E402


# =============================================================================
# Builders
# =============================================================================


def nodepool_manifest(
    name: str,
    zones: Optional[List[str]] = None,
    operator: str = "In",
    extra_requirements: Optional[List[Dict[str, Any]]] = None,
    resource_version: Optional[str] = "1",
    node_class: Optional[Dict[str, str]] = None,
    limits: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Build a Karpenter NodePool manifest."""
    requirements = list(extra_requirements or [])
    if zones is not None:
        requirements.append({"key": ZONE_KEY, "operator": operator, "values": list(zones)})
    doc = {
        "apiVersion": "karpenter.sh/v1",
        "kind": "NodePool",
        "metadata": {"name": name},
        "spec": {
            "template": {
                "spec": {
                    "requirements": requirements,
                    "nodeClassRef": node_class or {
                        "name": "default", "kind": "NodeClass", "group": "eks.amazonaws.com"
                    },
                }
            },
        },
    }
    if limits:
        doc["spec"]["limits"] = limits
    if resource_version is not None:
        doc["metadata"]["resourceVersion"] = resource_version
    return doc


def shift_event(region: str = "us-east-1", away_from: str = "us-east-1b", event_id: str = "evt-1") -> ShiftEvent:
    return ShiftEvent(region=region, away_from=away_from, event_id=event_id, source="aws.arc-zonal-shift")


def eventbridge_document(region: Optional[str] = "us-east-1", away_from: Optional[str] = "us-east-1b") -> Dict[str, Any]:
    metadata = {"notes": "zonal shift started"}
    if away_from is not None:
        metadata["awayFrom"] = away_from
    doc = {
        "version": "0",
        "id": "abc123",
        "detail-type": "Autoshift In Progress",
        "source": "aws.arc-zonal-shift",
        "account": "123456789012",
        "time": "2025-02-07T12:34:56Z",
        "resources": [],
        "detail": {"version": "0.0.1", "data": "", "metadata": metadata},
    }
    if region is not None:
        doc["region"] = region
    return doc


def sns_notification(message: Any) -> Dict[str, Any]:
    return {
        "Type": "Notification",
        "MessageId": "msg-1",
        "TopicArn": "arn:aws:sns:us-east-1:123456789012:zonal-shift",
        "Message": message if isinstance(message, str) else json.dumps(message),
        "Timestamp": "2025-02-07T12:34:57Z",
        "SignatureVersion": "1",
        "Signature": "sig",
        "SigningCertURL": "https://sns.us-east-1.amazonaws.com/cert.pem",
    }


def sns_confirmation(url: Optional[str] = "https://sns.us-east-1.amazonaws.com/?Action=ConfirmSubscription&Token=t") -> Dict[str, Any]:
    doc = {
        "Type": "SubscriptionConfirmation",
        "MessageId": "msg-0",
        "TopicArn": "arn:aws:sns:us-east-1:123456789012:zonal-shift",
        "Message": "You have chosen to subscribe to the topic",
        "Timestamp": "2025-02-07T12:00:00Z",
    }
    if url is not None:
        doc["SubscribeURL"] = url
    return doc


# =============================================================================
# Fakes
# =============================================================================


class FakeNodePoolRepository(NodePoolRepository):
    """In-memory node pool store with resource-version checks."""

    def __init__(self, manifests: Optional[List[Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._pools: Dict[str, Dict[str, Any]] = {}
        self._version = 0
        self.creates: List[str] = []
        self.updates: List[str] = []
        self.conflicts = 0
        self.list_error: Optional[Exception] = None
        self.update_errors: Dict[str, Exception] = {}
        self.before_update: Optional[Callable[[NodePool], None]] = None
        self.after_list: Optional[Callable[[], None]] = None
        for manifest in manifests or []:
            self.seed(manifest)

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def seed(self, manifest: Dict[str, Any]) -> None:
        doc = copy.deepcopy(manifest)
        doc["metadata"]["resourceVersion"] = self._next_version()
        self._pools[doc["metadata"]["name"]] = doc

    def zones(self, name: str) -> Optional[List[str]]:
        pool = NodePool.from_manifest(self._pools[name])
        constraint = pool.zone_constraint()
        return constraint.values if constraint else None

    def names(self) -> List[str]:
        return sorted(self._pools)

    def list(self) -> List[NodePool]:
        if self.list_error:
            raise self.list_error
        with self._lock:
            pools = [NodePool.from_manifest(doc) for doc in self._pools.values()]
        if self.after_list:
            self.after_list()
        return pools

    def get(self, name: str) -> NodePool:
        with self._lock:
            if name not in self._pools:
                raise PoolNotFound(name)
            return NodePool.from_manifest(self._pools[name])

    def create(self, pool: NodePool) -> NodePool:
        with self._lock:
            if pool.name in self._pools:
                raise PoolAlreadyExists(f"Node pool {pool.name} already exists", status=409)
            doc = pool.to_manifest()
            doc["metadata"]["resourceVersion"] = self._next_version()
            self._pools[pool.name] = doc
            self.creates.append(pool.name)
            return NodePool.from_manifest(doc)

    def update(self, pool: NodePool) -> NodePool:
        if self.before_update:
            hook, self.before_update = self.before_update, None
            hook(pool)
        if pool.name in self.update_errors:
            raise self.update_errors[pool.name]
        with self._lock:
            current = self._pools.get(pool.name)
            if current is None:
                raise UpdateFailed(f"Node pool {pool.name} not found", status=404)
            if current["metadata"]["resourceVersion"] != pool.resource_version:
                self.conflicts += 1
                raise ConflictRetryable(f"Node pool {pool.name} changed", status=409)
            doc = pool.to_manifest()
            doc["metadata"]["resourceVersion"] = self._next_version()
            self._pools[pool.name] = doc
            self.updates.append(pool.name)
            return NodePool.from_manifest(doc)

    def write_zones(self, name: str, zones: List[str]) -> None:
        """Out-of-band writer, as another reconciliation pass would do."""
        with self._lock:
            pool = NodePool.from_manifest(self._pools[name])
            pool.set_zone_constraint(zones)
            doc = pool.to_manifest()
            doc["metadata"]["resourceVersion"] = self._next_version()
            self._pools[name] = doc

    def drop_zones(self, name: str) -> None:
        """Out-of-band removal of the zone requirement."""
        with self._lock:
            pool = NodePool.from_manifest(self._pools[name])
            pool.requirements = [r for r in pool.requirements if r.key != ZONE_KEY]
            doc = pool.to_manifest()
            doc["metadata"]["resourceVersion"] = self._next_version()
            self._pools[name] = doc


class FakeZoneResolver:
    """Returns a scripted healthy zone list, or raises a scripted error."""

    def __init__(self, zones: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.zones = zones or []
        self.error = error
        self.calls: List[tuple] = []

    def resolve(self, region: str, away_from: str) -> List[str]:
        self.calls.append((region, away_from))
        if self.error:
            raise self.error
        return list(self.zones)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def event():
    return shift_event()


@pytest.fixture
def bootstrap_repository():
    """The two EKS Auto Mode default pools and nothing else."""
    return FakeNodePoolRepository([
        nodepool_manifest(
            "general-purpose",
            extra_requirements=[
                {"key": "karpenter.sh/capacity-type", "operator": "In", "values": ["on-demand"]},
                {"key": "eks.amazonaws.com/instance-category", "operator": "In", "values": ["c", "m", "r"]},
            ],
            limits={"cpu": "1000", "memory": "1000Gi"},
        ),
        nodepool_manifest(
            "system",
            extra_requirements=[
                {"key": "karpenter.sh/capacity-type", "operator": "In", "values": ["on-demand"]},
            ],
        ),
    ])


@pytest.fixture
def healthy_resolver():
    return FakeZoneResolver(["us-east-1a", "us-east-1c"])
