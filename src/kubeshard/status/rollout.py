#!/usr/bin/env python3
"""
KUBESHARD ROLLOUT GENERATION TRACKER
------------------------------------
Every in-place update stamps the pod with the shard generation it acted
on. The lowest stamp across all pods tells external rollout logic when
the whole fleet has observed a given generation.

Author: KubeShard Team
Date: 2026-10-17
"""

from typing import Any, Dict, Optional

from kubeshard.core.labels import OBSERVED_SHARD_GENERATION_ANNOTATION
from kubeshard.core.models import ShardStatus


def observed_generation(pod: Dict[str, Any]) -> Optional[int]:
    """The stamped generation, or None when absent or unparseable."""
    value = ((pod.get("metadata") or {}).get("annotations") or {}).get(OBSERVED_SHARD_GENERATION_ANNOTATION)
    if not value:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def stamp_observed_generation(pod: Dict[str, Any], generation: int):
    metadata = pod.setdefault("metadata", {})
    if metadata.get("annotations") is None:
        metadata["annotations"] = {}
    metadata["annotations"][OBSERVED_SHARD_GENERATION_ANNOTATION] = str(generation)


def record_lowest_generation(status: ShardStatus, generation: Optional[int]):
    """Lowers the low-water mark; 0 means nothing recorded yet."""
    if generation is None:
        return
    if status.lowest_pod_generation == 0 or generation < status.lowest_pod_generation:
        status.lowest_pod_generation = generation
