#!/usr/bin/env python3
"""
KUBESHARD COMPILER - Desired Tablets
------------------------------------
Expands a shard's pool configuration into the concrete list of tablets
that should exist. Pure function of its inputs: the same shard always
compiles to the same aliases, names and specs.

Author: KubeShard Team
Date: 2026-10-17
"""

import hashlib
import re
from typing import Dict, List

from kubeshard.core.labels import CELL_LABEL, TABLET_INDEX_LABEL, TABLET_TYPE_LABEL, TABLET_UID_LABEL
from kubeshard.core.models import KeyRange, ShardDesiredState, TabletAlias, TabletSpec
from kubeshard.safety import drain

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")


def tablet_uid(cell: str, keyspace: str, key_range: KeyRange, tablet_type: str, index: int) -> int:
    """
    Deterministic 32-bit tablet UID. Never derived from cluster-assigned
    names, so a tablet keeps its identity across passes and restarts.
    """
    digest = hashlib.md5(f"{cell} {keyspace} {key_range} {tablet_type} {index}\n".encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def pod_name(cluster: str, alias: TabletAlias) -> str:
    """Name shared by a tablet's Pod and its data-volume PVC."""
    raw = f"{cluster}-vttablet-{alias.cell}-{alias.uid:010d}".lower()
    return _INVALID_NAME_CHARS.sub("-", raw).strip("-")


def tablet_specs(shard: ShardDesiredState, parent_labels: Dict[str, str]) -> List[TabletSpec]:
    """
    Creates the list of tablet specs for a shard, in pool order then
    ordinal order. Within each pool tablets get a 1-based index.
    """
    tablets: List[TabletSpec] = []

    for pool in shard.tablet_pools:
        backup_location = shard.backup_location(pool.backup_location_name)

        for index in range(1, pool.replicas + 1):
            alias = TabletAlias(
                cell=pool.cell,
                uid=tablet_uid(pool.cell, shard.keyspace, shard.key_range, pool.type, index),
            )

            # Copy parent labels and add the tablet-specific ones.
            labels = dict(parent_labels)
            labels[CELL_LABEL] = alias.cell
            labels[TABLET_UID_LABEL] = str(alias.uid)
            labels[TABLET_TYPE_LABEL] = pool.type
            labels[TABLET_INDEX_LABEL] = str(index)

            # Pool-level flags override shard-global ones.
            extra_flags = dict(shard.extra_flags)
            extra_flags.update(pool.extra_flags)

            annotations = {drain.SUPPORTED_ANNOTATION: "ensure that the tablet is not a primary"}
            annotations.update(pool.annotations)
            if backup_location is not None:
                annotations.update(backup_location.annotations)

            tablets.append(TabletSpec(
                alias=alias,
                alias_str=str(alias),
                index=index,
                type=pool.type,
                keyspace=shard.keyspace,
                key_range=shard.key_range,
                labels=labels,
                annotations=annotations,
                images=dict(shard.images),
                extra_flags=extra_flags,
                data_volume_pvc_spec=pool.data_volume_claim_template,
                backup_location=backup_location,
                backup_engine=shard.backup_engine,
                zone=shard.zone_map.get(alias.cell, ""),
                affinity=pool.affinity,
                tolerations=list(pool.tolerations),
                resources=dict(pool.resources),
                extra_labels=dict(pool.extra_labels),
                database_name=shard.database_name,
                global_lockserver=dict(shard.global_lockserver),
            ))

    return tablets
