#!/usr/bin/env python3
"""
KUBESHARD ENGINE - The Shard Reconciler
---------------------------------------
ShardReconciler runs one reconciliation pass for one shard:

1. Compile the desired tablets from the shard's pools.
2. Pre-seed a status entry for every desired tablet.
3. Reconcile data-volume PVCs, then tablet Pods (pods read fresh claim
   status for volume resizes, so the order is fixed).
4. Fold deployed cells, errors and requeue requests into the result.

Passes for the same shard must not overlap; the caller guarantees that.
Nothing is kept between passes: all durable state lives on the cluster.

Author: KubeShard Team
Date: 2026-10-17
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from kubeshard.config.settings import OperatorConfig
from kubeshard.core.labels import CLUSTER_LABEL, COMPONENT_LABEL, KEYSPACE_LABEL, SHARD_LABEL, VTTABLET_COMPONENT_NAME
from kubeshard.core.models import ObjectKey, ShardDesiredState, ShardStatus, TabletStatus
from kubeshard.core.results import PassResult, ResultBuilder
from kubeshard.reconciler.objectset import ObjectSetReconciler
from kubeshard.reconciler.store import ObjectStore
from kubeshard.safety.topo import PrimaryChecker, TopoServer
from kubeshard.safety.turndown import TurndownPolicy
from kubeshard.tablets.compiler import pod_name, tablet_specs
from kubeshard.tablets.strategies import TabletMap, TabletPodStrategy, TabletPVCStrategy

logger = logging.getLogger("kubeshard.engine")

SHARD_API_VERSION = "kubeshard.io/v2"
SHARD_KIND = "VitessShard"


def shard_labels(shard: ShardDesiredState) -> Dict[str, str]:
    """Selector shared by every tablet object of the shard."""
    return {
        COMPONENT_LABEL: VTTABLET_COMPONENT_NAME,
        CLUSTER_LABEL: shard.cluster,
        KEYSPACE_LABEL: shard.keyspace,
        SHARD_LABEL: shard.key_range.safe_name(),
    }


def shard_parent(shard: ShardDesiredState) -> Dict[str, Any]:
    """Owner stub handed to the object-set reconciler."""
    metadata = {"name": f"{shard.cluster}-{shard.keyspace}-{shard.key_range.safe_name()}",
                "namespace": shard.namespace}
    if shard.uid:
        metadata["uid"] = shard.uid
    return {"apiVersion": SHARD_API_VERSION, "kind": SHARD_KIND, "metadata": metadata}


class ShardReconciler:
    """
    Principal orchestrator for tablet objects of a shard.
    One instance can serve many shards; it holds no per-shard state.
    """

    def __init__(self, store: ObjectStore, topo: TopoServer, config: Optional[OperatorConfig] = None):
        self.store = store
        self.topo = topo
        self.config = config or OperatorConfig()
        self.reconciler = ObjectSetReconciler(store)
        self.primary_checker = PrimaryChecker(topo)

    def reconcile(self, shard: ShardDesiredState) -> Tuple[PassResult, ShardStatus]:
        """
        Runs a full pass and returns its result with the freshly computed
        status aggregate, for the caller to write to the status subresource.
        """
        status = ShardStatus()
        result = self.reconcile_tablets(shard, status)
        if result.error is not None:
            logger.error(f"Pass for {shard.keyspace}/{shard.name} finished with errors: {result.error}")
        elif result.requeue_after is not None:
            logger.info(f"Pass for {shard.keyspace}/{shard.name} requests a recheck in {result.requeue_after}s")
        return result, status

    def close(self):
        """Releases the topology connection."""
        self.primary_checker.close()

    def reconcile_tablets(self, shard: ShardDesiredState, status: ShardStatus) -> PassResult:
        result_builder = ResultBuilder()
        labels = shard_labels(shard)
        parent = shard_parent(shard)

        # Remember which cells any tablets are deployed in.
        deployed_cells: Set[str] = set()

        # --- PHASE 1: DESIRED STATE ---
        tablets = tablet_specs(shard, labels)

        pvc_keys: List[ObjectKey] = []
        pod_keys: List[ObjectKey] = []
        tablet_map: TabletMap = {}
        for tablet in tablets:
            key = ObjectKey(shard.namespace, pod_name(shard.cluster, tablet.alias))

            if tablet.data_volume_pvc_spec is not None:
                # The pod and its main data volume share a name.
                tablet.data_volume_pvc_name = key.name
                pvc_keys.append(key)

            pod_keys.append(key)
            tablet_map[key] = tablet
            deployed_cells.add(tablet.alias.cell)

            # Every desired tablet is listed, even if nothing is known about it.
            status.tablets[tablet.alias_str] = TabletStatus(type=tablet.type, index=tablet.index)

        logger.debug(f"Shard {shard.keyspace}/{shard.name}: {len(tablets)} desired tablets")

        # --- PHASE 2: DATA VOLUMES ---
        pvc_strategy = TabletPVCStrategy(self.store, tablet_map, status)
        self._reconcile_kind(parent, pvc_keys, labels, pvc_strategy, result_builder)

        # --- PHASE 3: TABLET PODS ---
        turndown = TurndownPolicy(shard, status, self.primary_checker, self.config.topo_timeout)
        pod_strategy = TabletPodStrategy(
            self.store, shard, tablet_map, status, deployed_cells, result_builder, turndown,
            available_seconds=self.config.tablet_available_seconds,
        )
        self._reconcile_kind(parent, pod_keys, labels, pod_strategy, result_builder)

        status.cells = sorted(deployed_cells)
        return result_builder.result()

    def _reconcile_kind(self, parent, keys, labels, strategy, result_builder: ResultBuilder):
        try:
            if self.reconciler.reconcile_object_set(parent, keys, labels, strategy):
                # Replacements for released objects get created next pass.
                result_builder.requeue_after(1)
        except Exception as e:
            result_builder.error(e)
