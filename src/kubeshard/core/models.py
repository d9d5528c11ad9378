#!/usr/bin/env python3
"""
KUBESHARD CORE MODELS
---------------------
Defines the fundamental data structures used across the KubeShard engine:
the declarative shard description, the resolved per-tablet specs compiled
from it, and the status aggregate written back after every pass.

Author: KubeShard Team
Date: 2026-10-17
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ConditionStatus(str, Enum):
    """Tri-state condition, spelled the way Kubernetes spells it."""
    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"

    @classmethod
    def of(cls, value: bool) -> "ConditionStatus":
        return cls.TRUE if value else cls.FALSE


# Pool types a tablet can be deployed as.
TABLET_POOL_TYPES = ("replica", "rdonly", "externalmaster", "externalreplica", "externalrdonly")


@dataclass(frozen=True)
class KeyRange:
    """Hex key range of a shard. Empty bounds mean 'unbounded'."""
    start: str = ""
    end: str = ""

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"

    def safe_name(self) -> str:
        """Range rendered for labels and object names ('-' bounds become 'x')."""
        return f"{self.start or 'x'}-{self.end or 'x'}"

    @classmethod
    def parse(cls, value: Any) -> "KeyRange":
        if isinstance(value, dict):
            return cls(start=str(value.get("start") or ""), end=str(value.get("end") or ""))
        if not value or value == "-":
            return cls()
        start, _, end = str(value).partition("-")
        return cls(start=start, end=end)


@dataclass
class BackupLocation:
    name: str = ""
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class TabletPool:
    """
    A group of tablets sharing cell and type within a shard.
    """
    cell: str
    type: str
    replicas: int
    data_volume_claim_template: Optional[Dict[str, Any]] = None
    extra_flags: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    extra_labels: Dict[str, str] = field(default_factory=dict)
    affinity: Optional[Dict[str, Any]] = None
    tolerations: List[Dict[str, Any]] = field(default_factory=list)
    resources: Dict[str, Any] = field(default_factory=dict)
    backup_location_name: str = ""

    @classmethod
    def from_manifest(cls, data: Dict[str, Any]) -> "TabletPool":
        vttablet = data.get("vttablet") or {}
        return cls(
            cell=str(data["cell"]),
            type=str(data.get("type", "replica")),
            replicas=int(data.get("replicas", 0)),
            data_volume_claim_template=data.get("dataVolumeClaimTemplate"),
            extra_flags=dict(vttablet.get("extraFlags") or {}),
            annotations=dict(data.get("annotations") or {}),
            extra_labels=dict(data.get("extraLabels") or {}),
            affinity=data.get("affinity"),
            tolerations=list(data.get("tolerations") or []),
            resources=dict(vttablet.get("resources") or {}),
            backup_location_name=str(data.get("backupLocationName") or ""),
        )


@dataclass
class ShardDesiredState:
    """
    Immutable input for one reconciliation pass: the shard identity plus
    its ordered tablet pools.
    """
    name: str
    namespace: str
    cluster: str
    keyspace: str
    key_range: KeyRange
    tablet_pools: List[TabletPool] = field(default_factory=list)
    generation: int = 0
    uid: Optional[str] = None
    images: Dict[str, str] = field(default_factory=dict)
    extra_flags: Dict[str, str] = field(default_factory=dict)
    backup_locations: List[BackupLocation] = field(default_factory=list)
    global_lockserver: Dict[str, Any] = field(default_factory=dict)
    database_name: str = ""
    zone_map: Dict[str, str] = field(default_factory=dict)
    backup_engine: str = ""

    def backup_location(self, name: str) -> Optional[BackupLocation]:
        for location in self.backup_locations:
            if location.name == name:
                return location
        return None

    @classmethod
    def from_manifest(cls, manifest: Dict[str, Any]) -> "ShardDesiredState":
        """
        Builds the desired state from a VitessShard-shaped manifest.
        Only structural parsing happens here; no defaulting or validation.
        """
        metadata = manifest.get("metadata") or {}
        labels = metadata.get("labels") or {}
        spec = manifest.get("spec") or {}

        key_range = KeyRange.parse(spec.get("keyRange"))
        return cls(
            name=str(spec.get("name") or str(key_range)),
            namespace=str(metadata.get("namespace") or "default"),
            cluster=str(labels.get("kubeshard.io/cluster") or spec.get("cluster") or ""),
            keyspace=str(labels.get("kubeshard.io/keyspace") or spec.get("keyspace") or ""),
            key_range=key_range,
            tablet_pools=[TabletPool.from_manifest(p) for p in spec.get("tabletPools") or []],
            generation=int(metadata.get("generation") or 0),
            uid=metadata.get("uid"),
            images=dict(spec.get("images") or {}),
            extra_flags=dict(spec.get("extraVitessFlags") or {}),
            backup_locations=[
                BackupLocation(name=str(b.get("name") or ""), annotations=dict(b.get("annotations") or {}))
                for b in spec.get("backupLocations") or []
            ],
            global_lockserver=dict(spec.get("globalLockserver") or {}),
            database_name=str(spec.get("databaseName") or ""),
            zone_map=dict(spec.get("zoneMap") or {}),
            backup_engine=str(spec.get("backupEngine") or ""),
        )


@dataclass(frozen=True)
class TabletAlias:
    """Globally unique tablet identity: cell plus numeric UID."""
    cell: str
    uid: int

    def __str__(self) -> str:
        return f"{self.cell}-{self.uid:010d}"

    @classmethod
    def parse(cls, value: str) -> "TabletAlias":
        cell, _, uid = value.rpartition("-")
        if not cell or not uid.isdigit():
            raise ValueError(f"invalid tablet alias: {value!r}")
        return cls(cell=cell, uid=int(uid))


@dataclass
class TabletSpec:
    """
    Fully resolved configuration for one tablet. Owned by the compiler;
    builders and strategies only read it, except for the resize annotation
    the resize propagator arms before a recreate.
    """
    alias: TabletAlias
    alias_str: str
    index: int
    type: str
    keyspace: str
    key_range: KeyRange
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)
    images: Dict[str, str] = field(default_factory=dict)
    extra_flags: Dict[str, str] = field(default_factory=dict)
    data_volume_pvc_spec: Optional[Dict[str, Any]] = None
    data_volume_pvc_name: str = ""
    backup_location: Optional[BackupLocation] = None
    backup_engine: str = ""
    zone: str = ""
    affinity: Optional[Dict[str, Any]] = None
    tolerations: List[Dict[str, Any]] = field(default_factory=list)
    resources: Dict[str, Any] = field(default_factory=dict)
    extra_labels: Dict[str, str] = field(default_factory=dict)
    database_name: str = ""
    global_lockserver: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, order=True)
class ObjectKey:
    """Namespace/name pair identifying a managed object."""
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def of(cls, obj: Dict[str, Any]) -> "ObjectKey":
        metadata = obj.get("metadata") or {}
        return cls(namespace=metadata.get("namespace", ""), name=metadata.get("name", ""))


@dataclass
class TabletStatus:
    type: str = ""
    index: int = 0
    running: ConditionStatus = ConditionStatus.UNKNOWN
    ready: ConditionStatus = ConditionStatus.UNKNOWN
    available: ConditionStatus = ConditionStatus.UNKNOWN
    data_volume_bound: ConditionStatus = ConditionStatus.UNKNOWN
    pending_changes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "type": self.type,
            "index": self.index,
            "running": self.running.value,
            "ready": self.ready.value,
            "available": self.available.value,
            "dataVolumeBound": self.data_volume_bound.value,
        }
        if self.pending_changes:
            out["pendingChanges"] = self.pending_changes
        return out


@dataclass
class OrphanStatus:
    """Why a live, undesired object is being kept around."""
    reason: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"reason": self.reason, "message": self.message}


@dataclass
class ShardStatus:
    """
    Status aggregate for one shard, recomputed from scratch every pass.
    lowest_pod_generation uses 0 as its 'unset' sentinel.
    """
    cells: List[str] = field(default_factory=list)
    tablets: Dict[str, TabletStatus] = field(default_factory=dict)
    orphaned_tablets: Dict[str, OrphanStatus] = field(default_factory=dict)
    lowest_pod_generation: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cells": list(self.cells),
            "tablets": {alias: s.to_dict() for alias, s in sorted(self.tablets.items())},
            "orphanedTablets": {alias: o.to_dict() for alias, o in sorted(self.orphaned_tablets.items())},
            "lowestPodGeneration": self.lowest_pod_generation,
        }
