#!/usr/bin/env python3
"""
KUBESHARD DRAIN MARKERS
-----------------------
Drain is performed by an external subsystem. KubeShard only requests it
and polls for completion, all through annotations on the object.

Author: KubeShard Team
Date: 2026-10-17
"""

from typing import Any, Dict

DRAIN_PREFIX = "drain.kubeshard.io"

SUPPORTED_ANNOTATION = f"{DRAIN_PREFIX}/supported"
STARTED_ANNOTATION = f"{DRAIN_PREFIX}/started"
FINISHED_ANNOTATION = f"{DRAIN_PREFIX}/finished"


def _annotations(obj: Dict[str, Any]) -> Dict[str, str]:
    metadata = obj.setdefault("metadata", {})
    if metadata.get("annotations") is None:
        metadata["annotations"] = {}
    return metadata["annotations"]


def started(obj: Dict[str, Any]) -> bool:
    return STARTED_ANNOTATION in ((obj.get("metadata") or {}).get("annotations") or {})


def finished(obj: Dict[str, Any]) -> bool:
    return FINISHED_ANNOTATION in ((obj.get("metadata") or {}).get("annotations") or {})


def start(obj: Dict[str, Any], reason: str):
    """Requests a drain. An existing request is left untouched."""
    annotations = _annotations(obj)
    if STARTED_ANNOTATION not in annotations:
        annotations[STARTED_ANNOTATION] = reason
