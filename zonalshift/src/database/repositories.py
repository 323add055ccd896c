#!/usr/bin/env python3
"""
Node pool repositories for the zonal shift reconciler
"""

import logging
import os
from typing import List, Optional

import urllib3
from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException

from core.errors import (
    ListFailed,
    PoolNotFound,
    UpdateFailed,
    PoolAlreadyExists,
    ConflictRetryable,
)
from .schemas import NodePool, InvalidNodePool

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (urllib3.exceptions.HTTPError, OSError)


class NodePoolRepository:
    """
    Read/list/create/update access to node pools

    update() is a conditional write: the pool's resource_version from read
    time is presented and a stale one raises ConflictRetryable.
    """

    def list(self) -> List[NodePool]:
        raise NotImplementedError

    def get(self, name: str) -> NodePool:
        raise NotImplementedError

    def create(self, pool: NodePool) -> NodePool:
        raise NotImplementedError

    def update(self, pool: NodePool) -> NodePool:
        raise NotImplementedError


def create_custom_objects_api(in_cluster: bool = True, kubeconfig_path: Optional[str] = None) -> client.CustomObjectsApi:
    """Load cluster credentials and return a CustomObjectsApi"""
    if in_cluster:
        logger.info("Loading in-cluster config")
        k8s_config.load_incluster_config()
    else:
        if kubeconfig_path and not os.path.exists(kubeconfig_path):
            logger.error(f"Kubeconfig file not found at: {kubeconfig_path}")
            raise FileNotFoundError(f"Kubeconfig file not found: {kubeconfig_path}")
        logger.info(f"Loading kubeconfig from: {kubeconfig_path or 'default location'}")
        k8s_config.load_kube_config(config_file=kubeconfig_path)
    return client.CustomObjectsApi()


class KubernetesNodePoolRepository(NodePoolRepository):
    """Cluster-scoped Karpenter NodePools through the CustomObjectsApi"""

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        group: str = "karpenter.sh",
        version: str = "v1",
        plural: str = "nodepools",
        request_timeout: Optional[float] = 10.0
    ):
        """
        Initialize the repository

        Args:
            custom_api: Kubernetes CustomObjectsApi client
            group: NodePool API group
            version: NodePool API version
            plural: NodePool resource plural
            request_timeout: Per-call timeout in seconds
        """
        self.api = custom_api
        self.group = group
        self.version = version
        self.plural = plural
        self.request_timeout = request_timeout

    @property
    def _resource(self) -> str:
        return f"{self.group}/{self.version}/{self.plural}"

    def list(self) -> List[NodePool]:
        try:
            response = self.api.list_cluster_custom_object(
                group=self.group,
                version=self.version,
                plural=self.plural,
                _request_timeout=self.request_timeout
            )
        except ApiException as e:
            raise ListFailed(f"Listing {self._resource} failed: {e.status} {e.reason}") from e
        except TRANSPORT_ERRORS as e:
            raise ListFailed(f"Listing {self._resource} failed: {e}") from e

        try:
            pools = [NodePool.from_manifest(item) for item in response.get("items", [])]
        except InvalidNodePool as e:
            raise ListFailed(f"Listing {self._resource} returned an invalid node pool: {e}") from e

        logger.debug(f"Listed {len(pools)} node pools")
        return pools

    def get(self, name: str) -> NodePool:
        try:
            response = self.api.get_cluster_custom_object(
                group=self.group,
                version=self.version,
                plural=self.plural,
                name=name,
                _request_timeout=self.request_timeout
            )
        except ApiException as e:
            if e.status == 404:
                raise PoolNotFound(f"Node pool {name} not found") from e
            raise ListFailed(f"Reading node pool {name} failed: {e.status} {e.reason}") from e
        except TRANSPORT_ERRORS as e:
            raise ListFailed(f"Reading node pool {name} failed: {e}") from e

        try:
            return NodePool.from_manifest(response)
        except InvalidNodePool as e:
            raise ListFailed(f"Node pool {name} is invalid: {e}") from e

    def create(self, pool: NodePool) -> NodePool:
        body = pool.to_manifest()
        body.get("metadata", {}).pop("resourceVersion", None)
        try:
            response = self.api.create_cluster_custom_object(
                group=self.group,
                version=self.version,
                plural=self.plural,
                body=body,
                _request_timeout=self.request_timeout
            )
        except ApiException as e:
            if e.status == 409:
                raise PoolAlreadyExists(f"Node pool {pool.name} already exists", status=409) from e
            raise UpdateFailed(f"Creating node pool {pool.name} failed: {e.status} {e.reason}", status=e.status) from e
        except TRANSPORT_ERRORS as e:
            raise UpdateFailed(f"Creating node pool {pool.name} failed: {e}") from e

        logger.info(f"Created node pool {pool.name}")
        return self._written(pool, response)

    def update(self, pool: NodePool) -> NodePool:
        if not pool.resource_version:
            raise UpdateFailed(f"Refusing unconditional update of node pool {pool.name}: no resourceVersion")

        try:
            response = self.api.replace_cluster_custom_object(
                group=self.group,
                version=self.version,
                plural=self.plural,
                name=pool.name,
                body=pool.to_manifest(),
                _request_timeout=self.request_timeout
            )
        except ApiException as e:
            if e.status == 409:
                raise ConflictRetryable(
                    f"Node pool {pool.name} changed since resourceVersion {pool.resource_version}",
                    status=409
                ) from e
            raise UpdateFailed(f"Updating node pool {pool.name} failed: {e.status} {e.reason}", status=e.status) from e
        except TRANSPORT_ERRORS as e:
            raise UpdateFailed(f"Updating node pool {pool.name} failed: {e}") from e

        logger.info(f"Updated node pool {pool.name}")
        return self._written(pool, response)

    @staticmethod
    def _written(pool: NodePool, response) -> NodePool:
        try:
            return NodePool.from_manifest(response)
        except InvalidNodePool as e:
            logger.warning(f"Unexpected response body after writing node pool {pool.name}: {e}")
            return pool
