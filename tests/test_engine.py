#!/usr/bin/env python3
"""
KUBESHARD ENGINE TESTS
----------------------
Full passes of the shard reconciler against the in-memory store:
scale-up, steady state, scale-down through every gate, rolling
recreates and generation tracking.
"""

import dataclasses

from conftest import DATA_VOLUME, make_shard, mark_pod_ready, set_annotation

from kubeshard.config.settings import OperatorConfig
from kubeshard.core.labels import PVC_FILESYSTEM_RESIZE_ANNOTATION
from kubeshard.core.models import ConditionStatus, ObjectKey, TabletPool
from kubeshard.core.engine import ShardReconciler, shard_labels
from kubeshard.reconciler import rollout
from kubeshard.reconciler.store import POD_KIND, PVC_KIND
from kubeshard.safety import drain
from kubeshard.safety.topo import StaticTopoServer
from kubeshard.tablets.compiler import pod_name, tablet_specs


def keys_for(shard):
    return [ObjectKey(shard.namespace, pod_name(shard.cluster, t.alias))
            for t in tablet_specs(shard, shard_labels(shard))]


def aliases_for(shard):
    return [t.alias for t in tablet_specs(shard, shard_labels(shard))]


def names(store, kind):
    return {o["metadata"]["name"] for o in store.objects(kind)}


def engine(store, primary=None):
    shards = {"commerce": {"-80": str(primary)}} if primary else {}
    return ShardReconciler(store, StaticTopoServer(shards), OperatorConfig(reconcile_timeout=5.0))


def test_first_pass_creates_volumes_and_pods(store):
    shard = make_shard(replicas=2)

    result, status = engine(store).reconcile(shard)

    assert result.error is None
    expected = {k.name for k in keys_for(shard)}
    assert names(store, PVC_KIND) == expected
    assert names(store, POD_KIND) == expected
    assert status.cells == ["us-east"]
    assert len(status.tablets) == 2
    for tablet in status.tablets.values():
        assert tablet.running == ConditionStatus.FALSE
        assert tablet.ready == ConditionStatus.FALSE
        assert tablet.available == ConditionStatus.FALSE
        assert tablet.data_volume_bound == ConditionStatus.FALSE
        assert tablet.type == "replica"
    assert sorted(t.index for t in status.tablets.values()) == [1, 2]


def test_pod_mounts_its_own_claim(store):
    shard = make_shard(replicas=1)
    engine(store).reconcile(shard)

    key = keys_for(shard)[0]
    pod = store.get(POD_KIND, key)
    assert pod["spec"]["volumes"][0]["persistentVolumeClaim"]["claimName"] == key.name
    assert pod["metadata"]["ownerReferences"][0]["uid"] == shard.uid


def test_steady_state_pass_writes_nothing(store):
    shard = make_shard(replicas=2)
    reconciler = engine(store)
    reconciler.reconcile(shard)
    store.actions.clear()

    result, _ = reconciler.reconcile(shard)

    assert store.actions == []
    assert result.error is None


def test_ready_tablets_report_available(store):
    shard = make_shard(replicas=1)
    reconciler = engine(store)
    reconciler.reconcile(shard)
    mark_pod_ready(store, keys_for(shard)[0])

    result, status = reconciler.reconcile(shard)

    tablet = status.tablets[str(aliases_for(shard)[0])]
    assert tablet.running == ConditionStatus.TRUE
    assert tablet.ready == ConditionStatus.TRUE
    assert tablet.available == ConditionStatus.TRUE
    assert result.requeue_after is None


def test_recently_ready_tablet_requeues(store):
    shard = make_shard(replicas=1)
    reconciler = engine(store)
    reconciler.reconcile(shard)
    mark_pod_ready(store, keys_for(shard)[0], ready_for=5)

    result, status = reconciler.reconcile(shard)

    assert status.tablets[str(aliases_for(shard)[0])].available == ConditionStatus.FALSE
    assert result.requeue_after == 30


def test_scale_down_walks_through_every_gate(store):
    big = make_shard(replicas=3)
    small = make_shard(replicas=2)
    keep, removed = keys_for(big)[:2], keys_for(big)[2]
    removed_alias = aliases_for(big)[2]
    primary = aliases_for(big)[0]
    reconciler = engine(store, primary=primary)

    reconciler.reconcile(big)
    for key in keys_for(big):
        mark_pod_ready(store, key)

    # Pass 1: drain requested, pod and volume kept.
    result, status = reconciler.reconcile(small)
    assert result.error is None
    assert status.orphaned_tablets[str(removed_alias)].reason == "Draining"
    assert drain.started(store.get(POD_KIND, removed))
    assert removed.name in names(store, PVC_KIND)
    assert str(removed_alias) not in status.tablets

    # Pass 2: drained, not primary, fleet healthy -> pod goes, volume stays.
    set_annotation(store, POD_KIND, removed, drain.FINISHED_ANNOTATION, "true")
    result, status = reconciler.reconcile(small)
    assert result.error is None
    assert removed.name not in names(store, POD_KIND)
    assert removed.name in names(store, PVC_KIND)
    # The kept volume still shows up under its tablet.
    assert status.orphaned_tablets[str(removed_alias)].reason == "PodExists"

    # Pass 3: the volume follows its pod.
    _, status = reconciler.reconcile(small)
    assert status.orphaned_tablets == {}
    assert names(store, PVC_KIND) == {k.name for k in keep}
    assert names(store, POD_KIND) == {k.name for k in keep}


def test_primary_is_kept_even_when_drained(store):
    big = make_shard(replicas=2)
    small = make_shard(replicas=1)
    removed = keys_for(big)[1]
    reconciler = engine(store, primary=aliases_for(big)[1])

    reconciler.reconcile(big)
    for key in keys_for(big):
        mark_pod_ready(store, key)
    set_annotation(store, POD_KIND, removed, drain.FINISHED_ANNOTATION, "true")

    _, status = reconciler.reconcile(small)

    assert status.orphaned_tablets[str(aliases_for(big)[1])].reason == "Primary"
    assert removed.name in names(store, POD_KIND)


def test_unreachable_topology_keeps_tablet(store):
    big = make_shard(replicas=2)
    removed = keys_for(big)[1]
    reconciler = engine(store)

    reconciler.reconcile(big)
    for key in keys_for(big):
        mark_pod_ready(store, key)
    set_annotation(store, POD_KIND, removed, drain.FINISHED_ANNOTATION, "true")

    _, status = reconciler.reconcile(make_shard(replicas=1))

    assert status.orphaned_tablets[str(aliases_for(big)[1])].reason == "PrimaryUnknown"


def test_orphan_keeps_its_cell_deployed(store):
    two_cells = make_shard(pools=[
        TabletPool(cell="us-east", type="replica", replicas=1),
        TabletPool(cell="us-west", type="replica", replicas=1),
    ])
    east_only = make_shard(pools=[TabletPool(cell="us-east", type="replica", replicas=1)])
    reconciler = engine(store)

    reconciler.reconcile(two_cells)
    _, status = reconciler.reconcile(east_only)

    assert status.cells == ["us-east", "us-west"]
    assert list(status.orphaned_tablets) == [str(aliases_for(two_cells)[1])]


def test_image_change_is_scheduled_then_recreated_on_release(store):
    shard = make_shard(replicas=1)
    key = keys_for(shard)[0]
    reconciler = engine(store)
    reconciler.reconcile(shard)

    upgraded = dataclasses.replace(shard, images={"vttablet": "vitess/lite:v20"}, generation=2)
    _, status = reconciler.reconcile(upgraded)

    pod = store.get(POD_KIND, key)
    assert rollout.scheduled(pod)
    assert pod["spec"]["containers"][0]["image"] == "vitess/lite:v19"
    assert status.tablets[str(aliases_for(shard)[0])].pending_changes

    set_annotation(store, POD_KIND, key, rollout.RELEASED_ANNOTATION, "true")
    result, _ = reconciler.reconcile(upgraded)
    assert result.requeue_after == 1
    assert key.name not in names(store, POD_KIND)

    reconciler.reconcile(upgraded)
    pod = store.get(POD_KIND, key)
    assert pod["spec"]["containers"][0]["image"] == "vitess/lite:v20"
    assert not rollout.scheduled(pod)


def test_label_change_is_applied_in_place(store):
    shard = make_shard(replicas=1)
    key = keys_for(shard)[0]
    reconciler = engine(store)
    reconciler.reconcile(shard)

    relabeled = make_shard(pools=[TabletPool(cell="us-east", type="replica", replicas=1,
                                             data_volume_claim_template=DATA_VOLUME,
                                             extra_labels={"team": "payments"})])
    reconciler.reconcile(relabeled)

    pod = store.get(POD_KIND, key)
    assert pod["metadata"]["labels"]["team"] == "payments"
    assert not rollout.scheduled(pod)


def test_lowest_generation_tracks_the_laggard(store):
    shard = make_shard(replicas=2)
    reconciler = engine(store)

    _, status = reconciler.reconcile(shard)
    assert status.lowest_pod_generation == 1

    _, status = reconciler.reconcile(dataclasses.replace(shard, generation=4))
    assert status.lowest_pod_generation == 4


def test_pending_filesystem_resize_forces_recreate(store):
    shard = make_shard(replicas=1)
    key = keys_for(shard)[0]
    reconciler = engine(store)
    reconciler.reconcile(shard)

    pvc = store.get(PVC_KIND, key)
    pvc["status"] = {"phase": "Bound",
                     "conditions": [{"type": "FileSystemResizePending", "status": "True"}]}
    store.update(PVC_KIND, pvc)

    _, status = reconciler.reconcile(shard)

    pod = store.get(POD_KIND, key)
    assert rollout.scheduled(pod)
    assert PVC_FILESYSTEM_RESIZE_ANNOTATION not in pod["metadata"]["annotations"]
    assert status.tablets[str(aliases_for(shard)[0])].data_volume_bound == ConditionStatus.TRUE


def test_one_failing_pod_does_not_block_the_shard(store):
    shard = make_shard(replicas=2)
    first, second = keys_for(shard)
    store.fail_on("create", first.name)

    result, _ = engine(store).reconcile(shard)

    assert result.error is not None
    assert second.name in names(store, POD_KIND)
    assert first.name not in names(store, POD_KIND)
