#!/usr/bin/env python3
"""
KUBESHARD KUBERNETES ADAPTER
----------------------------
ObjectStore implementation over the official Kubernetes client. Models
returned by the API are flattened to plain mappings so the engine never
depends on client model classes.

Author: KubeShard Team
Date: 2026-10-17
"""

import logging
from typing import Any, Dict, List, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from kubeshard.core.models import ObjectKey
from kubeshard.reconciler.store import (
    POD_KIND,
    PVC_KIND,
    AlreadyExistsError,
    ConflictError,
    NotFoundError,
    ObjectStore,
    StoreError,
)

logger = logging.getLogger("kubeshard.kube")

# kind -> CoreV1Api method suffix
_KIND_METHODS = {
    POD_KIND: "pod",
    PVC_KIND: "persistent_volume_claim",
}


def label_selector(labels: Dict[str, str]) -> str:
    return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))


class KubernetesObjectStore(ObjectStore):
    """
    Pods and PVCs through CoreV1Api. The caller is responsible for loading
    kube config before constructing the api object.
    """

    def __init__(self, core_api: Optional[client.CoreV1Api] = None):
        self.core_api = core_api or client.CoreV1Api()
        self.api_client = self.core_api.api_client

    def _method(self, verb: str, kind: str):
        suffix = _KIND_METHODS.get(kind)
        if suffix is None:
            raise StoreError(f"unsupported kind: {kind}")
        return getattr(self.core_api, f"{verb}_namespaced_{suffix}")

    def _to_dict(self, kind: str, model: Any) -> Dict[str, Any]:
        obj = self.api_client.sanitize_for_serialization(model)
        obj.setdefault("kind", kind)
        obj.setdefault("apiVersion", "v1")
        return obj

    def _translate(self, err: ApiException, kind: str, key: ObjectKey) -> Exception:
        if err.status == 404:
            return NotFoundError(kind, key)
        if err.status == 409:
            if err.reason == "AlreadyExists" or "already exists" in (err.body or ""):
                return AlreadyExistsError(kind, key)
            return ConflictError(f"{kind} {key}: {err.reason}")
        return StoreError(f"{kind} {key}: API error {err.status} {err.reason}")

    def get(self, kind: str, key: ObjectKey) -> Dict[str, Any]:
        try:
            model = self._method("read", kind)(key.name, key.namespace)
        except ApiException as e:
            raise self._translate(e, kind, key) from e
        return self._to_dict(kind, model)

    def list(self, kind: str, namespace: str, labels: Dict[str, str]) -> List[Dict[str, Any]]:
        try:
            result = self._method("list", kind)(namespace, label_selector=label_selector(labels))
        except ApiException as e:
            raise self._translate(e, kind, ObjectKey(namespace, "")) from e
        return [self._to_dict(kind, item) for item in result.items]

    def create(self, kind: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        key = ObjectKey.of(obj)
        try:
            model = self._method("create", kind)(key.namespace, obj)
        except ApiException as e:
            raise self._translate(e, kind, key) from e
        logger.debug(f"Created {kind} {key}")
        return self._to_dict(kind, model)

    def update(self, kind: str, obj: Dict[str, Any]) -> Dict[str, Any]:
        key = ObjectKey.of(obj)
        try:
            model = self._method("replace", kind)(key.name, key.namespace, obj)
        except ApiException as e:
            raise self._translate(e, kind, key) from e
        logger.debug(f"Updated {kind} {key}")
        return self._to_dict(kind, model)

    def delete(self, kind: str, obj: Dict[str, Any]):
        key = ObjectKey.of(obj)
        metadata = obj.get("metadata") or {}
        # Guard against deleting a recreated object with the same name.
        preconditions = client.V1Preconditions(uid=metadata.get("uid")) if metadata.get("uid") else None
        try:
            self._method("delete", kind)(
                key.name, key.namespace, body=client.V1DeleteOptions(preconditions=preconditions)
            )
        except ApiException as e:
            raise self._translate(e, kind, key) from e
        logger.debug(f"Deleted {kind} {key}")
