#!/usr/bin/env python3
"""
Typed schema for Karpenter NodePool documents

Manifests are validated into these dataclasses when they are read from the
cluster. The manifest as read is kept on the pool so that writes only touch
the fields modelled here and carry everything else through unchanged.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

NODEPOOL_API_VERSION = "karpenter.sh/v1"
NODEPOOL_KIND = "NodePool"
ZONE_KEY = "topology.kubernetes.io/zone"


class InvalidNodePool(ValueError):
    """A node pool manifest does not have the expected shape"""


class Operator(str, Enum):
    """Node selector requirement operators"""
    IN = "In"
    NOT_IN = "NotIn"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "DoesNotExist"
    GT = "Gt"
    LT = "Lt"


@dataclass
class NodeRequirement:
    """One scheduling requirement (key, operator, values)"""
    key: str
    operator: str
    values: List[str] = field(default_factory=list)
    # Fields such as minValues are carried through untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        doc = dict(self.extra)
        doc.update({"key": self.key, "operator": self.operator, "values": list(self.values)})
        return doc

    @classmethod
    def from_dict(cls, data: Any) -> "NodeRequirement":
        if not isinstance(data, dict):
            raise InvalidNodePool(f"requirement must be an object, got {type(data).__name__}")
        key = data.get("key")
        operator = data.get("operator")
        values = data.get("values") or []
        if not isinstance(key, str) or not key:
            raise InvalidNodePool("requirement is missing 'key'")
        if not isinstance(operator, str) or not operator:
            raise InvalidNodePool(f"requirement '{key}' is missing 'operator'")
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise InvalidNodePool(f"requirement '{key}' has non-string values")
        extra = {k: v for k, v in data.items() if k not in ("key", "operator", "values")}
        return cls(key=key, operator=operator, values=list(values), extra=extra)


@dataclass
class NodeClassRef:
    """Reference to the provider-specific node class"""
    name: str
    kind: str
    group: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "kind": self.kind, "group": self.group}

    @classmethod
    def from_dict(cls, data: Any) -> Optional["NodeClassRef"]:
        if not data:
            return None
        if not isinstance(data, dict) or not data.get("name"):
            raise InvalidNodePool("nodeClassRef must be an object with a name")
        return cls(name=data["name"], kind=data.get("kind", ""), group=data.get("group", ""))


@dataclass
class NodePool:
    """Karpenter NodePool document schema"""
    name: str
    requirements: List[NodeRequirement] = field(default_factory=list)
    node_class_ref: Optional[NodeClassRef] = None
    limits: Dict[str, Any] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)
    namespace: Optional[str] = None
    resource_version: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    def zone_constraint(self, zone_key: str = ZONE_KEY) -> Optional[NodeRequirement]:
        """The requirement restricting eligible zones, if the pool has one"""
        for requirement in self.requirements:
            if requirement.key == zone_key:
                return requirement
        return None

    def set_zone_constraint(self, zones: List[str], zone_key: str = ZONE_KEY) -> None:
        """Replace (or append) the zone requirement with `In <zones>`"""
        replaced = False
        requirements = []
        for requirement in self.requirements:
            if requirement.key != zone_key:
                requirements.append(requirement)
            elif not replaced:
                requirement.operator = Operator.IN.value
                requirement.values = list(zones)
                requirements.append(requirement)
                replaced = True
        if not replaced:
            requirements.append(NodeRequirement(key=zone_key, operator=Operator.IN.value, values=list(zones)))
        self.requirements = requirements

    def to_manifest(self) -> Dict[str, Any]:
        """Merge the typed fields back into a copy of the manifest as read"""
        doc = copy.deepcopy(self.raw) if self.raw else {}
        doc.setdefault("apiVersion", NODEPOOL_API_VERSION)
        doc.setdefault("kind", NODEPOOL_KIND)

        metadata = doc.setdefault("metadata", {})
        metadata["name"] = self.name
        if self.namespace:
            metadata["namespace"] = self.namespace
        if self.labels:
            metadata["labels"] = dict(self.labels)
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        else:
            metadata.pop("resourceVersion", None)

        spec = doc.setdefault("spec", {})
        template_spec = spec.setdefault("template", {}).setdefault("spec", {})
        template_spec["requirements"] = [r.to_dict() for r in self.requirements]
        if self.node_class_ref:
            template_spec["nodeClassRef"] = self.node_class_ref.to_dict()
        if self.limits:
            spec["limits"] = dict(self.limits)
        return doc

    @classmethod
    def from_manifest(cls, doc: Any) -> "NodePool":
        """Validate a manifest read from the cluster"""
        if not isinstance(doc, dict):
            raise InvalidNodePool("node pool manifest must be an object")
        metadata = doc.get("metadata") or {}
        name = metadata.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidNodePool("node pool manifest has no metadata.name")

        spec = doc.get("spec") or {}
        template_spec = (spec.get("template") or {}).get("spec") or {}
        requirements = template_spec.get("requirements") or []
        if not isinstance(requirements, list):
            raise InvalidNodePool(f"node pool '{name}' requirements must be a list")

        limits = spec.get("limits") or {}
        if not isinstance(limits, dict):
            raise InvalidNodePool(f"node pool '{name}' limits must be an object")

        return cls(
            name=name,
            requirements=[NodeRequirement.from_dict(r) for r in requirements],
            node_class_ref=NodeClassRef.from_dict(template_spec.get("nodeClassRef")),
            limits=dict(limits),
            labels=dict(metadata.get("labels") or {}),
            namespace=metadata.get("namespace"),
            resource_version=metadata.get("resourceVersion"),
            raw=copy.deepcopy(doc)
        )
