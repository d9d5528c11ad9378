#!/usr/bin/env python3
"""
KUBESHARD TOPOLOGY LOOKUP
-------------------------
Reads the shard record from the global topology (lock) service to find
which tablet is the primary. This is the one blocking external call on
the deletion path, so it always runs under an explicit timeout and every
failure maps to UNKNOWN instead of an exception.

Author: KubeShard Team
Date: 2026-10-17
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from kubeshard.core.models import TabletAlias

logger = logging.getLogger("kubeshard.safety")


class PrimaryCheck(Enum):
    IS_PRIMARY = "is-primary"
    NOT_PRIMARY = "not-primary"
    UNKNOWN = "unknown"


@dataclass
class ShardRecord:
    primary_alias: Optional[TabletAlias] = None


class TopoServer:
    """Interface to the global topology service."""

    def get_shard(self, keyspace: str, shard: str, timeout: Optional[float] = None) -> ShardRecord:
        """Implementations should bound their own I/O by `timeout` seconds."""
        raise NotImplementedError

    def close(self):
        pass


class StaticTopoServer(TopoServer):
    """
    Topology served from a mapping of keyspace -> shard -> primary alias,
    e.g. {"commerce": {"-80": "us-east-0123456789"}}.
    """

    def __init__(self, shards: Optional[Dict[str, Dict[str, Any]]] = None):
        self.shards = shards or {}

    def get_shard(self, keyspace: str, shard: str, timeout: Optional[float] = None) -> ShardRecord:
        try:
            primary = self.shards[keyspace][shard]
        except KeyError:
            raise LookupError(f"no shard record for {keyspace}/{shard}")
        if isinstance(primary, dict):
            primary = primary.get("primaryAlias")
        return ShardRecord(primary_alias=TabletAlias.parse(primary) if primary else None)


class PrimaryChecker:
    """
    Compares a tablet alias against the globally recorded primary. The
    tablet's own opinion is deliberately not consulted, so a tablet that
    wrongly believes it is primary can still be removed.

    Lookups run on a daemon thread and at most one is in flight at a time:
    while a timed-out lookup is still hung, later checks answer UNKNOWN
    without starting another thread. One instance is shared by all passes
    of a reconciler.
    """

    def __init__(self, topo: TopoServer):
        self.topo = topo
        self._lock = threading.Lock()
        self._pending: Optional[threading.Thread] = None

    def check(self, keyspace: str, shard: str, alias: TabletAlias, timeout: float) -> PrimaryCheck:
        outcome: Dict[str, Any] = {}

        def lookup():
            try:
                outcome["record"] = self.topo.get_shard(keyspace, shard, timeout=timeout)
            except Exception as e:
                outcome["error"] = e

        with self._lock:
            if self._pending is not None and self._pending.is_alive():
                logger.warning(f"Previous shard record lookup is still pending; skipping {keyspace}/{shard}")
                return PrimaryCheck.UNKNOWN
            worker = threading.Thread(target=lookup, name="kubeshard-topo", daemon=True)
            self._pending = worker
            worker.start()

        worker.join(timeout)
        if worker.is_alive():
            logger.warning(f"Timed out after {timeout}s reading shard record {keyspace}/{shard}")
            return PrimaryCheck.UNKNOWN
        if "error" in outcome:
            logger.warning(f"Can't read shard record {keyspace}/{shard}: {outcome['error']}")
            return PrimaryCheck.UNKNOWN

        if outcome["record"].primary_alias == alias:
            return PrimaryCheck.IS_PRIMARY
        return PrimaryCheck.NOT_PRIMARY

    def close(self):
        self.topo.close()
