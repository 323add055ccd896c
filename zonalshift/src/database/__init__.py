"""
Node pool store for the zonal shift reconciler

Typed Karpenter NodePool schema and the repositories that read and write it.
"""

from .schemas import (
    NodePool,
    NodeRequirement,
    NodeClassRef,
    Operator,
    InvalidNodePool,
    NODEPOOL_API_VERSION,
    NODEPOOL_KIND,
    ZONE_KEY
)

from .repositories import (
    NodePoolRepository,
    KubernetesNodePoolRepository,
    create_custom_objects_api
)

__all__ = [
    # Schemas
    "NodePool",
    "NodeRequirement",
    "NodeClassRef",
    "Operator",
    "InvalidNodePool",
    "NODEPOOL_API_VERSION",
    "NODEPOOL_KIND",
    "ZONE_KEY",

    # Repositories
    "NodePoolRepository",
    "KubernetesNodePoolRepository",
    "create_custom_objects_api"
]
