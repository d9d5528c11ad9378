#!/usr/bin/env python3
"""
KUBESHARD OBJECT-SET RECONCILER
-------------------------------
Generic engine that drives the live objects of one kind toward a desired
key set. It knows nothing about tablets: everything kind-specific lives in
a Strategy, and this module only sequences the callbacks.

Per pass, for one kind:
1. List live objects owned by the parent (label selector).
2. Desired keys: create missing objects, update existing ones, project
   status for all of them.
3. Undesired live objects: ask the strategy whether turndown is safe,
   then either delete or record why the object is being kept.

Desired keys are always processed before undesired ones, so turndown
decisions can rely on the status computed for the desired set.

Author: KubeShard Team
Date: 2026-10-17
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from kubeshard.core.models import ObjectKey, OrphanStatus
from kubeshard.core.results import ReconcileError
from kubeshard.reconciler import rollout
from kubeshard.reconciler.store import ObjectStore

logger = logging.getLogger("kubeshard.reconciler")


class Strategy:
    """
    Kind-specific callbacks for ObjectSetReconciler. Every callback is
    optional; the defaults do nothing. Subclasses set `kind` and override
    what they need. Update callbacks mutate the object they are given.
    """
    kind: str = ""

    def new(self, key: ObjectKey) -> Dict[str, Any]:
        raise NotImplementedError(f"{type(self).__name__} cannot create {self.kind} objects")

    def update_in_place(self, key: ObjectKey, obj: Dict[str, Any]):
        """Apply changes that are safe without restarting the object."""

    def update_rolling_recreate(self, key: ObjectKey, obj: Dict[str, Any]):
        """Apply changes that only take effect by recreating the object."""

    def status(self, key: ObjectKey, obj: Dict[str, Any]):
        """Project the live object into the parent's status."""

    def orphan_status(self, key: ObjectKey, obj: Dict[str, Any], orphan: OrphanStatus):
        """Record why an undesired object is being kept."""

    def prepare_for_turndown(self, key: ObjectKey, obj: Dict[str, Any]) -> Optional[OrphanStatus]:
        """Return None to allow deletion, or the reason to keep the object."""
        return None


def _is_terminating(obj: Dict[str, Any]) -> bool:
    return bool((obj.get("metadata") or {}).get("deletionTimestamp"))


def _owner_reference(parent: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    metadata = parent.get("metadata") or {}
    if not metadata.get("uid"):
        return None
    return {
        "apiVersion": parent.get("apiVersion", ""),
        "kind": parent.get("kind", ""),
        "name": metadata.get("name", ""),
        "uid": metadata["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }


class ObjectSetReconciler:
    """
    Reconciles one kind at a time against an ObjectStore. Never retries:
    failures are collected and raised together once every object has been
    given its turn.
    """

    def __init__(self, store: ObjectStore):
        self.store = store

    def reconcile_object_set(self, parent: Dict[str, Any], keys: Iterable[ObjectKey],
                             labels: Dict[str, str], strategy: Strategy) -> bool:
        """
        Drives live objects of strategy.kind toward `keys`.

        Args:
            parent: Minimal mapping of the owning resource (apiVersion, kind,
                metadata.name/namespace/uid) used for scoping and owner refs.
            keys: Desired object keys.
            labels: Selector identifying objects owned by the parent.
            strategy: Kind-specific callbacks.

        Returns:
            True if some object was deleted for recreation, so the caller
            should requeue to create its replacement.

        Raises:
            ReconcileError: One or more objects failed. All other objects
                were still processed.
        """
        kind = strategy.kind
        namespace = (parent.get("metadata") or {}).get("namespace", "")
        desired: List[ObjectKey] = list(dict.fromkeys(keys))
        desired_set = set(desired)
        errors: List[Exception] = []
        recreating = False

        # --- PHASE 1: LIST LIVE OBJECTS ---
        # Without the live set nothing can be diffed; fail the whole kind.
        try:
            live_objects = self.store.list(kind, namespace, labels)
        except Exception as e:
            raise ReconcileError(f"can't list {kind} objects in {namespace}", [e]) from e
        live = {ObjectKey.of(obj): obj for obj in live_objects}

        # --- PHASE 2: DESIRED OBJECTS ---
        for key in desired:
            try:
                if key in live:
                    recreating |= self._update(key, live[key], strategy)
                else:
                    self._create(key, parent, strategy)
            except Exception as e:
                logger.error(f"Failed to reconcile {kind} {key}: {e}")
                errors.append(e)

        # --- PHASE 3: UNDESIRED OBJECTS ---
        for key, obj in live.items():
            if key in desired_set or _is_terminating(obj):
                continue
            try:
                self._turndown(key, obj, strategy)
            except Exception as e:
                logger.error(f"Failed to turn down {kind} {key}: {e}")
                errors.append(e)

        if errors:
            raise ReconcileError(f"failed to reconcile {len(errors)} {kind} object(s)", errors)
        return recreating

    def _create(self, key: ObjectKey, parent: Dict[str, Any], strategy: Strategy):
        obj = strategy.new(key)
        metadata = obj.setdefault("metadata", {})
        metadata["name"] = key.name
        metadata["namespace"] = key.namespace
        owner = _owner_reference(parent)
        if owner is not None:
            metadata["ownerReferences"] = [owner]

        created = self.store.create(strategy.kind, obj)
        logger.info(f"Created {strategy.kind} {key}")
        strategy.status(key, created)

    def _update(self, key: ObjectKey, cur: Dict[str, Any], strategy: Strategy) -> bool:
        kind = strategy.kind
        recreating = False

        # In-place changes go straight to the live object.
        new_obj = copy.deepcopy(cur)
        strategy.update_in_place(key, new_obj)
        if new_obj != cur:
            cur = self.store.update(kind, new_obj)
            logger.info(f"Updated {kind} {key} in place")

        # Recreate-class changes are only scheduled; the object is replaced
        # once the rollout controller releases it.
        new_obj = copy.deepcopy(cur)
        strategy.update_rolling_recreate(key, new_obj)
        if new_obj != cur:
            if rollout.released(cur):
                self.store.delete(kind, cur)
                logger.info(f"Deleted released {kind} {key} for recreation")
                recreating = True
            elif not rollout.scheduled(cur):
                scheduled = copy.deepcopy(cur)
                rollout.schedule(scheduled, f"{kind} changes require a restart")
                cur = self.store.update(kind, scheduled)
                logger.info(f"Scheduled rolling recreate of {kind} {key}")
        elif rollout.scheduled(cur):
            unscheduled = copy.deepcopy(cur)
            rollout.unschedule(unscheduled)
            cur = self.store.update(kind, unscheduled)
            logger.info(f"Cleared stale rollout schedule on {kind} {key}")

        strategy.status(key, cur)
        return recreating

    def _turndown(self, key: ObjectKey, cur: Dict[str, Any], strategy: Strategy):
        kind = strategy.kind
        obj = copy.deepcopy(cur)
        orphan = strategy.prepare_for_turndown(key, obj)

        if orphan is None:
            self.store.delete(kind, cur)
            logger.info(f"Deleted unwanted {kind} {key}")
            return

        # Record the refusal before persisting side effects, so the status
        # explains the object even if the update below fails.
        strategy.orphan_status(key, obj, orphan)
        logger.warning(f"Keeping unwanted {kind} {key}: {orphan.reason}: {orphan.message}")
        if obj != cur:
            self.store.update(kind, obj)
