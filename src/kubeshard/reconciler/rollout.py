#!/usr/bin/env python3
"""
KUBESHARD ROLLOUT MARKERS
-------------------------
Changes that need an object to be recreated are never applied directly.
The reconciler schedules them with an annotation, and an external rollout
controller releases objects one at a time once it is safe to restart them.

Author: KubeShard Team
Date: 2026-10-17
"""

from typing import Any, Dict

ROLLOUT_PREFIX = "rollout.kubeshard.io"

SCHEDULED_ANNOTATION = f"{ROLLOUT_PREFIX}/scheduled"
RELEASED_ANNOTATION = f"{ROLLOUT_PREFIX}/released"


def _annotations(obj: Dict[str, Any]) -> Dict[str, str]:
    return (obj.get("metadata") or {}).get("annotations") or {}


def scheduled(obj: Dict[str, Any]) -> str:
    """The pending change description, or '' if nothing is scheduled."""
    return _annotations(obj).get(SCHEDULED_ANNOTATION, "")


def released(obj: Dict[str, Any]) -> bool:
    return RELEASED_ANNOTATION in _annotations(obj)


def schedule(obj: Dict[str, Any], description: str):
    metadata = obj.setdefault("metadata", {})
    if metadata.get("annotations") is None:
        metadata["annotations"] = {}
    metadata["annotations"][SCHEDULED_ANNOTATION] = description


def unschedule(obj: Dict[str, Any]):
    annotations = (obj.get("metadata") or {}).get("annotations")
    if annotations:
        annotations.pop(SCHEDULED_ANNOTATION, None)
        annotations.pop(RELEASED_ANNOTATION, None)
