#!/usr/bin/env python3
"""
KUBESHARD AVAILABILITY TRACKER
------------------------------
A tablet is Ready when its pod says so. It only counts as Available once
it has been Ready for long enough that query routers have noticed, and
as long as the pod is not being deleted.

Author: KubeShard Team
Date: 2026-10-17
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from kubeshard.core.models import ConditionStatus
from kubeshard.core.results import ResultBuilder

# How long a tablet pod must be consistently Ready before it is Available.
TABLET_AVAILABLE_SECONDS = 30


def parse_timestamp(value: Any) -> Optional[datetime]:
    """RFC 3339 timestamp from a pod condition; None if absent or malformed."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def pod_ready_condition(pod: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for condition in (pod.get("status") or {}).get("conditions") or []:
        if condition.get("type") == "Ready":
            return condition
    return None


def is_pod_running(pod: Dict[str, Any]) -> bool:
    return (pod.get("status") or {}).get("phase") == "Running"


def is_pod_ready(pod: Dict[str, Any]) -> bool:
    condition = pod_ready_condition(pod)
    return condition is not None and condition.get("status") == "True"


def is_pod_available(pod: Dict[str, Any], min_ready_seconds: int, now: datetime) -> bool:
    """
    Ready, and Ready since at least min_ready_seconds ago. Sensitive to
    clock skew against the API server, as Kubernetes' own check is.
    """
    if not is_pod_ready(pod):
        return False
    if min_ready_seconds == 0:
        return True
    since = parse_timestamp(pod_ready_condition(pod).get("lastTransitionTime"))
    if since is None:
        return False
    return since + timedelta(seconds=min_ready_seconds) <= now


def is_terminating(pod: Dict[str, Any]) -> bool:
    return bool((pod.get("metadata") or {}).get("deletionTimestamp"))


def tablet_available_status(result_builder: ResultBuilder, pod: Dict[str, Any],
                            min_ready_seconds: int = TABLET_AVAILABLE_SECONDS,
                            now: Optional[datetime] = None) -> ConditionStatus:
    """
    Availability of a pod that is already known to be Ready.
    """
    # A pod being deleted is unavailable even if it hasn't gone Unready yet.
    if is_terminating(pod):
        return ConditionStatus.FALSE

    now = now or datetime.now(timezone.utc)
    if is_pod_available(pod, min_ready_seconds, now):
        return ConditionStatus.TRUE

    # Only time needs to pass; no watch event will fire for that.
    result_builder.requeue_after(min_ready_seconds)
    return ConditionStatus.FALSE
