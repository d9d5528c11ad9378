#!/usr/bin/env python3
"""
KUBESHARD LABELS & ANNOTATIONS
------------------------------
Keys of every label and annotation KubeShard reads or writes on managed
objects. Objects are the only durable state shared between passes, so
these keys are effectively the on-cluster storage format.

Author: KubeShard Team
Date: 2026-10-17
"""

LABEL_PREFIX = "kubeshard.io"

# Selector labels (stamped on new objects and used to list live ones)
COMPONENT_LABEL = f"{LABEL_PREFIX}/component"
CLUSTER_LABEL = f"{LABEL_PREFIX}/cluster"
KEYSPACE_LABEL = f"{LABEL_PREFIX}/keyspace"
SHARD_LABEL = f"{LABEL_PREFIX}/shard"
CELL_LABEL = f"{LABEL_PREFIX}/cell"
TABLET_UID_LABEL = f"{LABEL_PREFIX}/tablet-uid"
TABLET_TYPE_LABEL = f"{LABEL_PREFIX}/tablet-type"
TABLET_INDEX_LABEL = f"{LABEL_PREFIX}/tablet-index"

VTTABLET_COMPONENT_NAME = "vttablet"

# Shard generation stamped on a pod by every in-place update.
OBSERVED_SHARD_GENERATION_ANNOTATION = f"{LABEL_PREFIX}/observed-shard-generation"

# Target size of a pending filesystem expansion; forces a restart of the pod.
PVC_FILESYSTEM_RESIZE_ANNOTATION = f"{LABEL_PREFIX}/pvc-filesystem-resize"

# Hash of the rendered pod spec, used to classify recreate-class changes.
POD_SPEC_HASH_ANNOTATION = f"{LABEL_PREFIX}/pod-spec-hash"
