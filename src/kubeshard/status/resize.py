#!/usr/bin/env python3
"""
KUBESHARD VOLUME RESIZE PROPAGATOR
----------------------------------
Some storage drivers only grow the filesystem once the pod using the
volume restarts. When a claim has been expanded and reports
FileSystemResizePending, the tablet spec is annotated with the target
size so the next rolling recreate picks it up.

Author: KubeShard Team
Date: 2026-10-17
"""

import logging
from typing import Any, Dict, Optional

from kubernetes.utils import parse_quantity

from kubeshard.core.labels import PVC_FILESYSTEM_RESIZE_ANNOTATION
from kubeshard.core.models import ObjectKey, TabletSpec
from kubeshard.reconciler.store import PVC_KIND, ObjectStore

logger = logging.getLogger("kubeshard.resize")

FILESYSTEM_RESIZE_PENDING = "FileSystemResizePending"


def storage_request(spec: Optional[Dict[str, Any]]) -> Optional[str]:
    return (((spec or {}).get("resources") or {}).get("requests") or {}).get("storage")


def same_quantity(a: Any, b: Any) -> bool:
    """Compares two Kubernetes quantities by value ('1Gi' == '1024Mi')."""
    try:
        return parse_quantity(a) == parse_quantity(b)
    except (TypeError, ValueError):
        return False


def has_filesystem_resize_pending(pvc: Dict[str, Any]) -> bool:
    for condition in (pvc.get("status") or {}).get("conditions") or []:
        if condition.get("type") != FILESYSTEM_RESIZE_PENDING:
            continue
        return condition.get("status") == "True"
    return False


def update_pvc_filesystem_resize_annotation(store: ObjectStore, tablet: TabletSpec, pod: Dict[str, Any]):
    """
    Arms the resize annotation on the tablet spec (never on the live pod).
    Anything that doesn't line up just means 'not applicable yet'.
    """
    if tablet.data_volume_pvc_spec is None:
        return

    requested = storage_request(tablet.data_volume_pvc_spec)
    if requested is None:
        return

    namespace = (pod.get("metadata") or {}).get("namespace", "")
    try:
        pvc = store.get(PVC_KIND, ObjectKey(namespace, tablet.data_volume_pvc_name))
    except Exception as e:
        logger.debug(f"Skipping resize check for {tablet.alias_str}: {e}")
        return

    # The claim itself must already ask for the desired size.
    if not same_quantity(storage_request(pvc.get("spec")), requested):
        return

    if not has_filesystem_resize_pending(pvc):
        return

    tablet.annotations[PVC_FILESYSTEM_RESIZE_ANNOTATION] = str(requested)
    logger.info(f"Tablet {tablet.alias_str} needs a restart to finish resizing its volume to {requested}")
