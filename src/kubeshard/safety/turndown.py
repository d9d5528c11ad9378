#!/usr/bin/env python3
"""
KUBESHARD TURNDOWN GATE
-----------------------
Decides whether an unwanted object may be deleted right now. Runs every
pass, so every step is either read-only or idempotent.

The tablet gate is sequential; each step assumes the previous ones passed:
1. Drain finished        -> otherwise start it, refuse 'Draining'
2. Not the primary       -> 'PrimaryUnknown' / 'Primary'
3. Desired tablets Ready -> 'ShardNotHealthy'

Author: KubeShard Team
Date: 2026-10-17
"""

import logging
from typing import Any, Dict, Optional

from kubeshard.core.labels import CELL_LABEL, TABLET_UID_LABEL
from kubeshard.core.models import ConditionStatus, ObjectKey, OrphanStatus, ShardDesiredState, ShardStatus, TabletAlias
from kubeshard.reconciler.store import POD_KIND, NotFoundError, ObjectStore
from kubeshard.safety import drain
from kubeshard.safety.topo import PrimaryCheck, PrimaryChecker

logger = logging.getLogger("kubeshard.safety")

DRAINING = "Draining"
PRIMARY_UNKNOWN = "PrimaryUnknown"
PRIMARY = "Primary"
SHARD_NOT_HEALTHY = "ShardNotHealthy"
POD_EXISTS = "PodExists"


def alias_from_pod(pod: Dict[str, Any]) -> TabletAlias:
    """Tablet identity recovered from the labels stamped at creation."""
    labels = (pod.get("metadata") or {}).get("labels") or {}
    return TabletAlias(cell=labels.get(CELL_LABEL, ""), uid=int(labels.get(TABLET_UID_LABEL) or 0))


class TurndownPolicy:
    """
    Turndown gate for tablet pods of one shard during one pass.

    Args:
        shard: The shard being reconciled.
        status: Status of this pass; desired tablets must already be filled in.
        primary_checker: Shared checker wrapping the topology service.
        timeout: Bound on the primary lookup, in seconds.
    """

    def __init__(self, shard: ShardDesiredState, status: ShardStatus, primary_checker: PrimaryChecker,
                 timeout: float):
        self.shard = shard
        self.status = status
        self.primary_checker = primary_checker
        self.timeout = timeout

    def prepare(self, key: ObjectKey, pod: Dict[str, Any]) -> Optional[OrphanStatus]:
        alias = alias_from_pod(pod)

        # --- GATE 1: DRAIN ---
        if not drain.finished(pod):
            drain.start(pod, "turning down unwanted tablet")
            return OrphanStatus(DRAINING, "waiting for the tablet to be drained before turn-down")

        # --- GATE 2: PRIMARY ---
        check = self.primary_checker.check(self.shard.keyspace, self.shard.name, alias, self.timeout)
        if check is PrimaryCheck.UNKNOWN:
            return OrphanStatus(PRIMARY_UNKNOWN, "unable to determine whether this tablet is the primary")
        if check is PrimaryCheck.IS_PRIMARY:
            return OrphanStatus(PRIMARY, "this tablet is the primary")

        # --- GATE 3: FLEET HEALTH ---
        # Don't remove capacity while the shard isn't at full strength.
        for tablet in self.status.tablets.values():
            if tablet.ready != ConditionStatus.TRUE:
                return OrphanStatus(SHARD_NOT_HEALTHY, "the remaining, desired tablets in the shard are not all healthy")

        logger.info(f"Tablet {alias} in {self.shard.keyspace}/{self.shard.name} cleared for turn-down")
        return None


def pvc_turndown_gate(store: ObjectStore, key: ObjectKey) -> Optional[OrphanStatus]:
    """
    A data volume may only go once its pod is gone. If the pod can't be
    looked up, assume it still exists.
    """
    try:
        store.get(POD_KIND, key)
    except NotFoundError:
        return None
    except Exception as e:
        logger.warning(f"Can't check for tablet pod {key}: {e}")
    return OrphanStatus(POD_EXISTS, "not deleting tablet PVC because tablet Pod still exists")
