#!/usr/bin/env python3
"""
KUBESHARD TABLET STRATEGIES
---------------------------
The two Strategy implementations used for tablets: data-volume PVCs and
tablet Pods. Both are built fresh for every pass and share the pass's
tablet map, status aggregate and result builder.

Author: KubeShard Team
Date: 2026-10-17
"""

import logging
from typing import Any, Dict, Optional, Set

from kubeshard.core.models import ConditionStatus, ObjectKey, OrphanStatus, ShardDesiredState, ShardStatus, TabletSpec
from kubeshard.core.results import ResultBuilder
from kubeshard.reconciler import rollout
from kubeshard.reconciler.objectset import Strategy
from kubeshard.reconciler.store import POD_KIND, PVC_KIND, ObjectStore
from kubeshard.safety.turndown import TurndownPolicy, alias_from_pod, pvc_turndown_gate
from kubeshard.status.availability import (
    TABLET_AVAILABLE_SECONDS,
    is_pod_ready,
    is_pod_running,
    tablet_available_status,
)
from kubeshard.status.resize import update_pvc_filesystem_resize_annotation
from kubeshard.status.rollout import observed_generation, record_lowest_generation, stamp_observed_generation
from kubeshard.tablets import builders

logger = logging.getLogger("kubeshard.tablets")

TabletMap = Dict[ObjectKey, TabletSpec]


class TabletPVCStrategy(Strategy):
    """Data volumes. Shares object keys with the pods that mount them."""
    kind = PVC_KIND

    def __init__(self, store: ObjectStore, tablets: TabletMap, status: ShardStatus):
        self.store = store
        self.tablets = tablets
        self.shard_status = status

    def new(self, key: ObjectKey) -> Dict[str, Any]:
        tablet = self.tablets[key]
        # The PVC doesn't exist, so it can't be bound.
        self.shard_status.tablets[tablet.alias_str].data_volume_bound = ConditionStatus.FALSE
        return builders.new_pvc(key, tablet)

    def update_in_place(self, key: ObjectKey, obj: Dict[str, Any]):
        builders.update_pvc_in_place(obj, self.tablets[key])

    def status(self, key: ObjectKey, obj: Dict[str, Any]):
        tablet = self.tablets[key]
        phase = (obj.get("status") or {}).get("phase")
        self.shard_status.tablets[tablet.alias_str].data_volume_bound = ConditionStatus.of(phase == "Bound")

    def orphan_status(self, key: ObjectKey, obj: Dict[str, Any], orphan: OrphanStatus):
        alias = str(alias_from_pod(obj))
        logger.warning(f"Keeping data volume of tablet {alias}: {orphan.reason}")
        # The pod strategy runs later and overwrites this with the pod's own reason.
        self.shard_status.orphaned_tablets.setdefault(alias, orphan)

    def prepare_for_turndown(self, key: ObjectKey, obj: Dict[str, Any]) -> Optional[OrphanStatus]:
        # If the pod is being kept (see the pod gate), keep its volume too.
        return pvc_turndown_gate(self.store, key)


class TabletPodStrategy(Strategy):
    """Tablet pods: status projection, generation stamping and the turndown gate."""
    kind = POD_KIND

    def __init__(self, store: ObjectStore, shard: ShardDesiredState, tablets: TabletMap, status: ShardStatus,
                 deployed_cells: Set[str], result_builder: ResultBuilder, turndown: TurndownPolicy,
                 available_seconds: int = TABLET_AVAILABLE_SECONDS):
        self.store = store
        self.shard = shard
        self.tablets = tablets
        self.shard_status = status
        self.deployed_cells = deployed_cells
        self.result_builder = result_builder
        self.turndown = turndown
        self.available_seconds = available_seconds

    def new(self, key: ObjectKey) -> Dict[str, Any]:
        tablet = self.tablets[key]
        # The pod doesn't exist, so it can't be running or ready.
        tablet_status = self.shard_status.tablets[tablet.alias_str]
        tablet_status.running = ConditionStatus.FALSE
        tablet_status.ready = ConditionStatus.FALSE
        tablet_status.available = ConditionStatus.FALSE

        pod = builders.new_pod(key, tablet)
        stamp_observed_generation(pod, self.shard.generation)
        return pod

    def update_in_place(self, key: ObjectKey, obj: Dict[str, Any]):
        builders.update_pod_in_place(obj, self.tablets[key])
        stamp_observed_generation(obj, self.shard.generation)

    def update_rolling_recreate(self, key: ObjectKey, obj: Dict[str, Any]):
        tablet = self.tablets[key]
        update_pvc_filesystem_resize_annotation(self.store, tablet, obj)
        builders.update_pod(obj, tablet)

    def status(self, key: ObjectKey, obj: Dict[str, Any]):
        tablet = self.tablets[key]
        tablet_status = self.shard_status.tablets[tablet.alias_str]

        tablet_status.running = ConditionStatus.of(is_pod_running(obj))
        if is_pod_ready(obj):
            tablet_status.ready = ConditionStatus.TRUE
            tablet_status.available = tablet_available_status(self.result_builder, obj, self.available_seconds)
        else:
            tablet_status.ready = ConditionStatus.FALSE
            tablet_status.available = ConditionStatus.FALSE
        tablet_status.pending_changes = rollout.scheduled(obj)

        record_lowest_generation(self.shard_status, observed_generation(obj))

    def orphan_status(self, key: ObjectKey, obj: Dict[str, Any], orphan: OrphanStatus):
        alias = alias_from_pod(obj)
        self.shard_status.orphaned_tablets[str(alias)] = orphan
        # The tablet stays, so the shard is still deployed in its cell.
        self.deployed_cells.add(alias.cell)

    def prepare_for_turndown(self, key: ObjectKey, obj: Dict[str, Any]) -> Optional[OrphanStatus]:
        return self.turndown.prepare(key, obj)
