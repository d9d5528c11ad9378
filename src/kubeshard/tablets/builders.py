#!/usr/bin/env python3
"""
KUBESHARD OBJECT BUILDERS
-------------------------
Minimal Pod and PVC mappings for a tablet, plus the two update flavours
the reconciler distinguishes:

- in place:  metadata only (labels, annotations). Never restarts anything.
- recreate:  anything inside the pod spec (images, flags, resources,
             scheduling, volumes) and a pending filesystem resize.

Recreate-class changes are detected through a hash of the rendered pod
spec stored on the pod, so defaults filled in by the API server never
look like a change.

Author: KubeShard Team
Date: 2026-10-17
"""

import copy
import hashlib
import json
from typing import Any, Dict, List

from kubernetes.utils import parse_quantity

from kubeshard.core.labels import POD_SPEC_HASH_ANNOTATION, PVC_FILESYSTEM_RESIZE_ANNOTATION
from kubeshard.core.models import ObjectKey, TabletSpec

VTTABLET_CONTAINER_NAME = "vttablet"
DATA_VOLUME_NAME = "vt"
DATA_VOLUME_MOUNT_PATH = "/vt/vtdataroot"


# --- SHARED HELPERS ---

def _metadata(obj: Dict[str, Any]) -> Dict[str, Any]:
    return obj.setdefault("metadata", {})


def _merge_string_map(obj: Dict[str, Any], field: str, values: Dict[str, str]):
    """Adds/overwrites entries; never removes keys owned by someone else."""
    metadata = _metadata(obj)
    if metadata.get(field) is None:
        metadata[field] = {}
    metadata[field].update(values)


def tablet_labels(tablet: TabletSpec) -> Dict[str, str]:
    labels = dict(tablet.extra_labels)
    labels.update(tablet.labels)
    return labels


def flag_args(flags: Dict[str, str]) -> List[str]:
    return [f"--{name}={value}" for name, value in sorted(flags.items())]


# --- PERSISTENT VOLUME CLAIMS ---

def new_pvc(key: ObjectKey, tablet: TabletSpec) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {
            "name": key.name,
            "namespace": key.namespace,
            "labels": tablet_labels(tablet),
        },
        "spec": copy.deepcopy(tablet.data_volume_pvc_spec or {}),
    }


def update_pvc_in_place(pvc: Dict[str, Any], tablet: TabletSpec):
    """
    Keeps labels current and expands the claim when the template asks for
    more storage. Claims can't shrink, so smaller requests are ignored.
    """
    _merge_string_map(pvc, "labels", tablet_labels(tablet))

    wanted = (((tablet.data_volume_pvc_spec or {}).get("resources") or {}).get("requests") or {}).get("storage")
    if wanted is None:
        return
    requests = pvc.setdefault("spec", {}).setdefault("resources", {}).setdefault("requests", {})
    current = requests.get("storage")
    try:
        if current is not None and parse_quantity(wanted) <= parse_quantity(current):
            return
    except ValueError:
        return
    requests["storage"] = wanted


# --- PODS ---

def pod_spec(key: ObjectKey, tablet: TabletSpec) -> Dict[str, Any]:
    """The part of the pod that only changes through a restart."""
    flags = {
        "tablet-path": tablet.alias_str,
        "init_keyspace": tablet.keyspace,
        "init_shard": str(tablet.key_range),
        "init_tablet_type": tablet.type,
    }
    if tablet.database_name:
        flags["init_db_name_override"] = tablet.database_name
    if tablet.backup_engine:
        flags["backup_engine_implementation"] = tablet.backup_engine
    flags.update(tablet.extra_flags)

    container = {
        "name": VTTABLET_CONTAINER_NAME,
        "image": tablet.images.get("vttablet", ""),
        "args": flag_args(flags),
        "resources": copy.deepcopy(tablet.resources),
    }
    spec: Dict[str, Any] = {
        "hostname": key.name,
        "containers": [container],
    }
    if tablet.data_volume_pvc_spec is not None:
        container["volumeMounts"] = [{"name": DATA_VOLUME_NAME, "mountPath": DATA_VOLUME_MOUNT_PATH}]
        spec["volumes"] = [{
            "name": DATA_VOLUME_NAME,
            "persistentVolumeClaim": {"claimName": tablet.data_volume_pvc_name},
        }]
    if tablet.affinity:
        spec["affinity"] = copy.deepcopy(tablet.affinity)
    if tablet.zone:
        spec["nodeSelector"] = {"topology.kubernetes.io/zone": tablet.zone}
    if tablet.tolerations:
        spec["tolerations"] = copy.deepcopy(tablet.tolerations)
    return spec


def spec_hash(spec: Dict[str, Any]) -> str:
    encoded = json.dumps(spec, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()[:16]


def _in_place_annotations(tablet: TabletSpec) -> Dict[str, str]:
    annotations = dict(tablet.annotations)
    annotations.pop(PVC_FILESYSTEM_RESIZE_ANNOTATION, None)
    return annotations


def new_pod(key: ObjectKey, tablet: TabletSpec) -> Dict[str, Any]:
    spec = pod_spec(key, tablet)
    annotations = dict(tablet.annotations)
    annotations[POD_SPEC_HASH_ANNOTATION] = spec_hash(spec)
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": key.name,
            "namespace": key.namespace,
            "labels": tablet_labels(tablet),
            "annotations": annotations,
        },
        "spec": spec,
    }


def update_pod_in_place(pod: Dict[str, Any], tablet: TabletSpec):
    _merge_string_map(pod, "labels", tablet_labels(tablet))
    _merge_string_map(pod, "annotations", _in_place_annotations(tablet))


def update_pod(pod: Dict[str, Any], tablet: TabletSpec):
    """
    Applies recreate-class changes. Leaves the pod untouched when neither
    the rendered spec nor the pending resize target changed.
    """
    key = ObjectKey.of(pod)
    spec = pod_spec(key, tablet)
    wanted_hash = spec_hash(spec)
    wanted_resize = tablet.annotations.get(PVC_FILESYSTEM_RESIZE_ANNOTATION)

    annotations = _metadata(pod).get("annotations") or {}
    if annotations.get(POD_SPEC_HASH_ANNOTATION) == wanted_hash and (
            wanted_resize is None or annotations.get(PVC_FILESYSTEM_RESIZE_ANNOTATION) == wanted_resize):
        return

    pod["spec"] = spec
    values = {POD_SPEC_HASH_ANNOTATION: wanted_hash}
    if wanted_resize is not None:
        values[PVC_FILESYSTEM_RESIZE_ANNOTATION] = wanted_resize
    _merge_string_map(pod, "annotations", values)
