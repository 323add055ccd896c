#!/usr/bin/env python3
"""
Node pool reconciler

Applies a zonal shift to the cluster's Karpenter node pools. A pass lists the
pools once and then takes one of two branches:

- create-failover: the cluster only has the bootstrap pair (general-purpose
  and system), so a dedicated pool restricted to the healthy zones is created
  from the general-purpose template;
- patch-existing: every pool carrying a zone requirement has it replaced with
  the healthy zones, unless it already matches.

Each pool is written independently. Writes are conditional on the resource
version read with the pool; a conflict re-reads that pool and retries once.
"""

import copy
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from core.errors import (
    ListFailed,
    PoolNotFound,
    UpdateFailed,
    PoolAlreadyExists,
    ConflictRetryable,
    ProviderUnavailable,
    ZoneNotFound,
    NoHealthyZones,
)
from core.logging_config import log_context
from core.zones import ZoneResolver
from database.repositories import NodePoolRepository
from database.schemas import NodePool, NodeClassRef, NodeRequirement, Operator, ZONE_KEY
from models.events import ShiftEvent
from models.results import PoolOutcome, PoolResult, ReconcileBranch, ReconcileResult

logger = logging.getLogger(__name__)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "zonal-shift-reconciler"
EVENT_ID_ANNOTATION = "zonal-shift.k8s.aws/event-id"
AWAY_FROM_ANNOTATION = "zonal-shift.k8s.aws/away-from"


class NodePoolReconciler:
    """Reconciles node pool zone requirements against a zonal shift"""

    def __init__(
        self,
        repository: NodePoolRepository,
        resolver: ZoneResolver,
        zone_key: str = ZONE_KEY,
        bootstrap_pools: Iterable[str] = ("general-purpose", "system"),
        template_pool: str = "general-purpose",
        failover_pool_name: str = "zonal-shift-{region}",
        default_node_class: Optional[NodeClassRef] = None,
        dry_run: bool = False
    ):
        """
        Initialize the reconciler

        Args:
            repository: Node pool store
            resolver: Healthy zone resolver
            zone_key: Requirement key holding the zone constraint
            bootstrap_pools: Pool names that, alone, trigger failover pool creation
            template_pool: Pool the failover pool copies its requirements from
            failover_pool_name: Name template for the failover pool, {region} is substituted
            default_node_class: nodeClassRef used when the template has none
            dry_run: Compute and log decisions without writing
        """
        self.repository = repository
        self.resolver = resolver
        self.zone_key = zone_key
        self.bootstrap_pools = sorted(bootstrap_pools)
        self.template_pool = template_pool
        self.failover_pool_name = failover_pool_name
        self.default_node_class = default_node_class or NodeClassRef(
            name="default", kind="NodeClass", group="eks.amazonaws.com"
        )
        self.dry_run = dry_run

    def failover_name(self, region: str) -> str:
        return self.failover_pool_name.format(region=region)

    def is_bootstrap(self, pools: List[NodePool]) -> bool:
        """True when the pool set is exactly the bootstrap pair, in any order"""
        return sorted(p.name for p in pools) == self.bootstrap_pools

    def reconcile(self, event: ShiftEvent) -> ReconcileResult:
        """
        Run one reconciliation pass for an event

        Args:
            event: Normalized zonal shift

        Returns:
            ReconcileResult with one entry per pool that was examined
        """
        result = ReconcileResult(
            event_id=event.event_id,
            region=event.region,
            away_from=event.away_from,
            dry_run=self.dry_run
        )

        with log_context(event_id=event.event_id or "-"):
            logger.info(f"Processing zonal shift in {event.region} away from {event.away_from}")
            try:
                pools = self.repository.list()
            except ListFailed as e:
                logger.error(f"Abandoning pass, node pools could not be listed: {e}")
                result.error = f"ListFailed: {e}"
                return self._finish(result)

            logger.info(f"Found {len(pools)} node pools: {sorted(p.name for p in pools)}")

            if self.is_bootstrap(pools):
                result.branch = ReconcileBranch.CREATE_FAILOVER
                self._create_failover(event, pools, result)
            else:
                result.branch = ReconcileBranch.PATCH_EXISTING
                self._patch_existing(event, pools, result)

            return self._finish(result)

    def _finish(self, result: ReconcileResult) -> ReconcileResult:
        result.finished_at = datetime.now(timezone.utc)
        counts = {}
        for pool in result.pools:
            counts[pool.outcome.value] = counts.get(pool.outcome.value, 0) + 1
        logger.info(
            f"Pass finished for {result.region} (branch={result.branch.value if result.branch else None}, "
            f"status={result.status}, outcomes={counts})"
        )
        return result

    def _resolve(self, event: ShiftEvent, result: ReconcileResult) -> Optional[List[str]]:
        try:
            zones = self.resolver.resolve(event.region, event.away_from)
        except (ProviderUnavailable, ZoneNotFound, NoHealthyZones) as e:
            logger.error(f"Abandoning pass, healthy zones unavailable: {type(e).__name__}: {e}")
            result.error = f"{type(e).__name__}: {e}"
            return None
        result.healthy_zones = list(zones)
        return zones

    # Create-failover branch

    def _create_failover(self, event: ShiftEvent, pools: List[NodePool], result: ReconcileResult) -> None:
        template = next((p for p in pools if p.name == self.template_pool), None)
        if template is None:
            logger.error(f"Template node pool {self.template_pool} is not among the bootstrap pools")
            result.error = f"Template node pool {self.template_pool} not found"
            return

        zones = self._resolve(event, result)
        if zones is None:
            return

        pool = self.build_failover_pool(event, template, zones)
        with log_context(pool=pool.name):
            logger.info(f"Only bootstrap node pools present, creating {pool.name} with zones {zones}")
            if self.dry_run:
                logger.info(f"Dry run: not creating node pool {pool.name}")
                result.pools.append(PoolResult(pool.name, PoolOutcome.CREATED, "dry-run", [], zones))
                return

            try:
                self.repository.create(pool)
            except PoolAlreadyExists:
                logger.info(f"Node pool {pool.name} already exists, updating it instead")
                result.pools.append(self._upsert_existing(pool.name, zones))
                return
            except UpdateFailed as e:
                logger.error(f"Failed to create node pool {pool.name}: {e}")
                result.pools.append(PoolResult(pool.name, PoolOutcome.FAILED, str(e), [], zones))
                return

            logger.info(f"Created node pool {pool.name} with zones {zones}")
            result.pools.append(PoolResult(pool.name, PoolOutcome.CREATED, None, [], zones))

    def build_failover_pool(self, event: ShiftEvent, template: NodePool, zones: List[str]) -> NodePool:
        """Copy the template's requirements, replacing the zone constraint"""
        requirements = [
            copy.deepcopy(r) for r in template.requirements if r.key != self.zone_key
        ]
        requirements.append(NodeRequirement(key=self.zone_key, operator=Operator.IN.value, values=list(zones)))

        annotations = {AWAY_FROM_ANNOTATION: event.away_from}
        if event.event_id:
            annotations[EVENT_ID_ANNOTATION] = event.event_id

        return NodePool(
            name=self.failover_name(event.region),
            requirements=requirements,
            node_class_ref=copy.deepcopy(template.node_class_ref) or copy.deepcopy(self.default_node_class),
            limits=dict(template.limits),
            labels={MANAGED_BY_LABEL: MANAGED_BY_VALUE},
            namespace=template.namespace,
            raw={"metadata": {"annotations": annotations}}
        )

    def _upsert_existing(self, name: str, zones: List[str]) -> PoolResult:
        try:
            existing = self.repository.get(name)
        except (PoolNotFound, ListFailed) as e:
            logger.error(f"Node pool {name} exists but could not be read: {e}")
            return PoolResult(name, PoolOutcome.FAILED, str(e), [], zones)
        return self._patch_pool(existing, zones, append_missing=True)

    # Patch-existing branch

    def _patch_existing(self, event: ShiftEvent, pools: List[NodePool], result: ReconcileResult) -> None:
        targets = [p for p in pools if p.zone_constraint(self.zone_key) is not None]
        for pool in pools:
            if pool.zone_constraint(self.zone_key) is None:
                logger.debug(f"Node pool {pool.name} has no zone requirement, leaving it untouched")
        if not targets:
            logger.info("No node pool carries a zone requirement, nothing to patch")
            return

        zones = self._resolve(event, result)
        if zones is None:
            return

        for pool in targets:
            with log_context(pool=pool.name):
                result.pools.append(self._patch_pool(pool, zones))

    def converged(self, pool: NodePool, zones: List[str]) -> bool:
        """Zone constraint is already `In` the healthy zones, compared as sets"""
        constraint = pool.zone_constraint(self.zone_key)
        return (
            constraint is not None
            and constraint.operator == Operator.IN.value
            and set(constraint.values) == set(zones)
        )

    def _patch_pool(
        self,
        pool: NodePool,
        zones: List[str],
        retry: bool = True,
        append_missing: bool = False
    ) -> PoolResult:
        constraint = pool.zone_constraint(self.zone_key)
        before = list(constraint.values) if constraint else []

        # only the failover pool may gain a zone requirement it does not have
        if constraint is None and not append_missing:
            logger.info(f"Node pool {pool.name} no longer has a zone requirement, leaving it untouched")
            return PoolResult(pool.name, PoolOutcome.SKIPPED, "zone requirement removed concurrently", [], [])

        if self.converged(pool, zones):
            logger.info(f"No changes needed for node pool {pool.name} - zones unchanged {before}")
            return PoolResult(pool.name, PoolOutcome.SKIPPED, "zones unchanged", before, before)

        logger.info(f"Zone list changed for node pool {pool.name}: {before} -> {zones}")
        if self.dry_run:
            logger.info(f"Dry run: not updating node pool {pool.name}")
            return PoolResult(pool.name, PoolOutcome.UPDATED, "dry-run", before, zones)

        pool.set_zone_constraint(zones, self.zone_key)
        try:
            self.repository.update(pool)
        except ConflictRetryable as e:
            if not retry:
                logger.error(f"Node pool {pool.name} changed again during retry, giving up: {e}")
                return PoolResult(pool.name, PoolOutcome.FAILED, f"conflict: {e}", before, zones)
            logger.warning(f"Conflict updating node pool {pool.name}, re-reading and retrying once: {e}")
            try:
                fresh = self.repository.get(pool.name)
            except (PoolNotFound, ListFailed) as read_error:
                logger.error(f"Could not re-read node pool {pool.name} after conflict: {read_error}")
                return PoolResult(pool.name, PoolOutcome.FAILED, str(read_error), before, zones)
            return self._patch_pool(fresh, zones, retry=False, append_missing=append_missing)
        except UpdateFailed as e:
            logger.error(f"Failed to update node pool {pool.name} ({before} -> {zones}): {e}")
            return PoolResult(pool.name, PoolOutcome.FAILED, str(e), before, zones)

        logger.info(f"Updated node pool {pool.name}: {before} -> {zones}")
        return PoolResult(pool.name, PoolOutcome.UPDATED, None, before, zones)
