#!/usr/bin/env python3
"""
KUBESHARD STATUS TRACKER TESTS
------------------------------
Availability timing, generation low-water mark and resize propagation.
"""

from datetime import datetime, timezone

import pytest

from conftest import DATA_VOLUME, make_shard, ready_pod

from kubeshard.core.labels import OBSERVED_SHARD_GENERATION_ANNOTATION, PVC_FILESYSTEM_RESIZE_ANNOTATION
from kubeshard.core.models import ConditionStatus, ShardStatus
from kubeshard.core.results import ResultBuilder
from kubeshard.reconciler.store import InMemoryObjectStore
from kubeshard.status.availability import is_pod_ready, tablet_available_status
from kubeshard.status.resize import has_filesystem_resize_pending, update_pvc_filesystem_resize_annotation
from kubeshard.status.rollout import observed_generation, record_lowest_generation
from kubeshard.tablets.compiler import tablet_specs

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=timezone.utc)


# --- AVAILABILITY ---

def test_ready_but_too_recent_is_unavailable_and_requeues():
    builder = ResultBuilder()

    status = tablet_available_status(builder, ready_pod(ready_for=29, now=NOW), 30, NOW)

    assert status == ConditionStatus.FALSE
    assert builder.result().requeue_after == 30


def test_ready_long_enough_is_available():
    builder = ResultBuilder()

    assert tablet_available_status(builder, ready_pod(ready_for=30, now=NOW), 30, NOW) == ConditionStatus.TRUE
    assert builder.result().requeue_after is None


def test_terminating_pod_is_unavailable_without_requeue():
    builder = ResultBuilder()
    pod = ready_pod(ready_for=40, terminating=True, now=NOW)

    assert tablet_available_status(builder, pod, 30, NOW) == ConditionStatus.FALSE
    assert builder.result().requeue_after is None


def test_missing_transition_time_is_not_available():
    pod = ready_pod(now=NOW)
    del pod["status"]["conditions"][0]["lastTransitionTime"]

    assert tablet_available_status(ResultBuilder(), pod, 30, NOW) == ConditionStatus.FALSE


def test_readiness_follows_ready_condition():
    pod = ready_pod(now=NOW)
    assert is_pod_ready(pod)

    pod["status"]["conditions"][0]["status"] = "False"
    assert not is_pod_ready(pod)
    assert not is_pod_ready({"metadata": {}})


# --- GENERATION TRACKING ---

def pod_with_generation(value):
    annotations = {} if value is None else {OBSERVED_SHARD_GENERATION_ANNOTATION: value}
    return {"metadata": {"annotations": annotations}}


def test_lowest_generation_is_tracked():
    status = ShardStatus()
    for value in ["5", "7", "3", None]:
        record_lowest_generation(status, observed_generation(pod_with_generation(value)))

    assert status.lowest_pod_generation == 3


def test_all_unset_leaves_sentinel():
    status = ShardStatus()
    for _ in range(3):
        record_lowest_generation(status, observed_generation(pod_with_generation(None)))

    assert status.lowest_pod_generation == 0


@pytest.mark.parametrize("value", ["", "abc", "1.5"])
def test_malformed_generation_is_ignored(value):
    assert observed_generation(pod_with_generation(value)) is None


# --- RESIZE PROPAGATION ---

def claim(storage="10Gi", resize_pending="True"):
    pvc = {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {"name": "tablet-1", "namespace": "vitess"},
        "spec": {"resources": {"requests": {"storage": storage}}},
        "status": {"phase": "Bound", "conditions": []},
    }
    if resize_pending is not None:
        pvc["status"]["conditions"].append({"type": "FileSystemResizePending", "status": resize_pending})
    return pvc


def tablet():
    spec = tablet_specs(make_shard(replicas=1), {})[0]
    spec.data_volume_pvc_name = "tablet-1"
    return spec


def pod():
    return {"metadata": {"name": "tablet-1", "namespace": "vitess"}}


def test_pending_resize_with_matching_size_arms_annotation():
    spec = tablet()
    update_pvc_filesystem_resize_annotation(InMemoryObjectStore([claim()]), spec, pod())

    assert spec.annotations[PVC_FILESYSTEM_RESIZE_ANNOTATION] == DATA_VOLUME["resources"]["requests"]["storage"]


def test_equivalent_quantities_match():
    spec = tablet()
    update_pvc_filesystem_resize_annotation(InMemoryObjectStore([claim(storage="10240Mi")]), spec, pod())

    assert PVC_FILESYSTEM_RESIZE_ANNOTATION in spec.annotations


def test_mismatched_size_is_skipped():
    spec = tablet()
    update_pvc_filesystem_resize_annotation(InMemoryObjectStore([claim(storage="5Gi")]), spec, pod())

    assert PVC_FILESYSTEM_RESIZE_ANNOTATION not in spec.annotations


@pytest.mark.parametrize("pending", [None, "False"])
def test_no_pending_condition_is_skipped(pending):
    spec = tablet()
    update_pvc_filesystem_resize_annotation(InMemoryObjectStore([claim(resize_pending=pending)]), spec, pod())

    assert PVC_FILESYSTEM_RESIZE_ANNOTATION not in spec.annotations
    assert has_filesystem_resize_pending(claim(resize_pending=pending)) is False


def test_missing_claim_is_skipped():
    spec = tablet()
    update_pvc_filesystem_resize_annotation(InMemoryObjectStore(), spec, pod())

    assert PVC_FILESYSTEM_RESIZE_ANNOTATION not in spec.annotations
