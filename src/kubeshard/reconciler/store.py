#!/usr/bin/env python3
"""
KUBESHARD OBJECT STORE
----------------------
The narrow view of the cluster API the reconciler depends on: get, list
by label, create, update and delete for Kubernetes-shaped mappings.

InMemoryObjectStore backs dry runs and tests. It behaves like a tiny API
server: it stamps server-owned metadata and rejects stale updates.

Author: KubeShard Team
Date: 2026-10-17
"""

import copy
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from kubeshard.core.models import ObjectKey

POD_KIND = "Pod"
PVC_KIND = "PersistentVolumeClaim"


class StoreError(Exception):
    """Base error for object store operations."""


class NotFoundError(StoreError):
    def __init__(self, kind: str, key: ObjectKey):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class AlreadyExistsError(StoreError):
    def __init__(self, kind: str, key: ObjectKey):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} already exists")


class ConflictError(StoreError):
    """Raised when an update is based on a stale resourceVersion."""


class ObjectStore:
    """
    Interface to the cluster object store. Implementations must treat the
    mappings they receive as owned by the caller and never mutate them.
    """

    def get(self, kind: str, key: ObjectKey) -> Dict[str, Any]:
        raise NotImplementedError

    def list(self, kind: str, namespace: str, labels: Dict[str, str]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def create(self, kind: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update(self, kind: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def delete(self, kind: str, obj: Dict[str, Any]):
        raise NotImplementedError


def matches_labels(obj: Dict[str, Any], selector: Dict[str, str]) -> bool:
    labels = (obj.get("metadata") or {}).get("labels") or {}
    return all(labels.get(k) == v for k, v in selector.items())


class InMemoryObjectStore(ObjectStore):
    """
    Dict-backed object store. Failures can be injected per operation and
    object name with fail_on(), for exercising error isolation.
    """

    def __init__(self, objects: Optional[Iterable[Dict[str, Any]]] = None):
        self._objects: Dict[Tuple[str, ObjectKey], Dict[str, Any]] = {}
        self._versions = itertools.count(1)
        self._failures: Dict[Tuple[str, str], Exception] = {}
        self.actions: List[Tuple[str, str, ObjectKey]] = []
        for obj in objects or []:
            self.seed(obj)

    def seed(self, obj: Dict[str, Any]):
        """Inserts an object as-is, without recording an action."""
        kind = obj.get("kind")
        if kind not in (POD_KIND, PVC_KIND):
            raise StoreError(f"unsupported kind in seed data: {kind!r}")
        stored = copy.deepcopy(obj)
        version = (stored.get("metadata") or {}).get("resourceVersion")
        self._stamp(stored)
        if version:
            # Seeded state round-trips unchanged.
            stored["metadata"]["resourceVersion"] = str(version)
        self._objects[(kind, ObjectKey.of(stored))] = stored

    def fail_on(self, action: str, name: str, error: Optional[Exception] = None):
        self._failures[(action, name)] = error or StoreError(f"injected {action} failure for {name}")

    def _check_failure(self, action: str, key: ObjectKey):
        err = self._failures.get((action, key.name))
        if err is not None:
            raise err

    def _stamp(self, obj: Dict[str, Any]):
        metadata = obj.setdefault("metadata", {})
        metadata.setdefault("uid", str(uuid.uuid4()))
        metadata.setdefault("creationTimestamp", datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"))
        metadata["resourceVersion"] = str(next(self._versions))

    def objects(self, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(obj) for (k, key), obj in sorted(self._objects.items(), key=lambda i: (i[0][0], i[0][1]))
            if kind is None or k == kind
        ]

    def get(self, kind: str, key: ObjectKey) -> Dict[str, Any]:
        self._check_failure("get", key)
        obj = self._objects.get((kind, key))
        if obj is None:
            raise NotFoundError(kind, key)
        return copy.deepcopy(obj)

    def list(self, kind: str, namespace: str, labels: Dict[str, str]) -> List[Dict[str, Any]]:
        self._check_failure("list", ObjectKey(namespace, ""))
        return [
            copy.deepcopy(obj) for (k, key), obj in sorted(self._objects.items(), key=lambda i: i[0][1])
            if k == kind and key.namespace == namespace and matches_labels(obj, labels)
        ]

    def create(self, kind: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        key = ObjectKey.of(obj)
        self._check_failure("create", key)
        if (kind, key) in self._objects:
            raise AlreadyExistsError(kind, key)
        stored = copy.deepcopy(obj)
        stored["kind"] = kind
        self._stamp(stored)
        self._objects[(kind, key)] = stored
        self.actions.append(("create", kind, key))
        return copy.deepcopy(stored)

    def update(self, kind: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        key = ObjectKey.of(obj)
        self._check_failure("update", key)
        current = self._objects.get((kind, key))
        if current is None:
            raise NotFoundError(kind, key)
        sent_version = (obj.get("metadata") or {}).get("resourceVersion")
        if sent_version and sent_version != current["metadata"].get("resourceVersion"):
            raise ConflictError(f"{kind} {key} was modified (resourceVersion {sent_version} is stale)")
        stored = copy.deepcopy(obj)
        self._stamp(stored)
        self._objects[(kind, key)] = stored
        self.actions.append(("update", kind, key))
        return copy.deepcopy(stored)

    def delete(self, kind: str, obj: Dict[str, Any]):
        key = ObjectKey.of(obj)
        self._check_failure("delete", key)
        if self._objects.pop((kind, key), None) is None:
            raise NotFoundError(kind, key)
        self.actions.append(("delete", kind, key))
