"""
KUBESHARD TEST FIXTURES
-----------------------
Shared builders for shards, pods and claims used across the suite.
"""

from datetime import datetime, timedelta, timezone

import pytest

from kubeshard.core.models import BackupLocation, KeyRange, ShardDesiredState, TabletPool
from kubeshard.reconciler.store import POD_KIND, InMemoryObjectStore

DATA_VOLUME = {
    "accessModes": ["ReadWriteOnce"],
    "resources": {"requests": {"storage": "10Gi"}},
}


def make_shard(replicas: int = 2, cell: str = "us-east", pools=None, **kwargs) -> ShardDesiredState:
    if pools is None:
        pools = [TabletPool(cell=cell, type="replica", replicas=replicas, data_volume_claim_template=DATA_VOLUME)]
    values = dict(
        name="-80",
        namespace="vitess",
        cluster="example",
        keyspace="commerce",
        key_range=KeyRange("", "80"),
        tablet_pools=pools,
        generation=1,
        uid="shard-uid-1",
        images={"vttablet": "vitess/lite:v19"},
        backup_locations=[BackupLocation(name="", annotations={"backup.kubeshard.io/bucket": "s3://backups"})],
    )
    values.update(kwargs)
    return ShardDesiredState(**values)


def rfc3339(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%SZ")


def ready_pod(name: str = "pod", ready_for: float = 3600, terminating: bool = False,
              now: datetime = None) -> dict:
    now = now or datetime.now(timezone.utc)
    pod = {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name, "namespace": "vitess", "labels": {}, "annotations": {}},
        "status": {
            "phase": "Running",
            "conditions": [{
                "type": "Ready",
                "status": "True",
                "lastTransitionTime": rfc3339(now - timedelta(seconds=ready_for)),
            }],
        },
    }
    if terminating:
        pod["metadata"]["deletionTimestamp"] = rfc3339(now)
    return pod


def mark_pod_ready(store: InMemoryObjectStore, key, ready_for: float = 3600):
    pod = store.get(POD_KIND, key)
    pod["status"] = ready_pod(ready_for=ready_for)["status"]
    store.update(POD_KIND, pod)


def set_annotation(store: InMemoryObjectStore, kind: str, key, name: str, value: str):
    obj = store.get(kind, key)
    obj["metadata"].setdefault("annotations", {})[name] = value
    store.update(kind, obj)


@pytest.fixture
def store():
    return InMemoryObjectStore()


@pytest.fixture
def shard():
    return make_shard()
