#!/usr/bin/env python3
"""
KUBESHARD MANIFEST I/O
----------------------
Reads shard manifests and multi-document object state files, and writes
object sets back with conventional Kubernetes key ordering.

Author: KubeShard Team
Date: 2026-10-17
"""

import io
from pathlib import Path
from typing import Any, Dict, List, Union

from ruamel.yaml import YAML, YAMLError


class ManifestError(Exception):
    """Raised when a manifest file can't be read or has the wrong shape."""


class ManifestIO:
    """
    Thin ruamel.yaml wrapper. Documents are converted to plain dicts on
    load, so nothing downstream sees ruamel's comment-carrying types.
    """

    def __init__(self):
        self.loader = YAML(typ="safe")
        self.dumper = YAML(typ="rt")
        # Standard K8s: 2 spaces, sequences indented 4 (offset 2)
        self.dumper.indent(mapping=2, sequence=4, offset=2)
        self.dumper.width = 4096
        self.preferred_order = ["apiVersion", "kind", "metadata", "spec", "status"]

    def load_all(self, path: Union[str, Path]) -> List[Dict[str, Any]]:
        path = Path(path)
        try:
            docs = list(self.loader.load_all(path.read_text(encoding="utf-8-sig")))
        except (OSError, YAMLError) as e:
            raise ManifestError(f"Failed to read {path}: {e}")
        docs = [doc for doc in docs if doc is not None]
        for doc in docs:
            if not isinstance(doc, dict):
                raise ManifestError(f"{path}: every document must be a mapping")
        return docs

    def load_one(self, path: Union[str, Path]) -> Dict[str, Any]:
        docs = self.load_all(path)
        if len(docs) != 1:
            raise ManifestError(f"{path}: expected exactly one document, found {len(docs)}")
        return docs[0]

    def _ordered(self, data: Any) -> Any:
        """Top-level keys in preferred order; unknown keys keep their position."""
        if not isinstance(data, dict):
            return data
        keys = list(data.keys())

        def sort_logic(key):
            if key in self.preferred_order:
                return self.preferred_order.index(key)
            return len(self.preferred_order) + keys.index(key)

        return {key: data[key] for key in sorted(keys, key=sort_logic)}

    def dump_all(self, docs: List[Dict[str, Any]]) -> str:
        stream = io.StringIO()
        for i, doc in enumerate(docs):
            # Multi-document output gets explicit separators.
            if i > 0:
                stream.write("---\n")
            self.dumper.dump(self._ordered(doc), stream)
        return stream.getvalue()

    def write_all(self, path: Union[str, Path], docs: List[Dict[str, Any]]):
        """Atomic replace, so an interrupted write never truncates state."""
        path = Path(path)
        temp_file = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_file.write_text(self.dump_all(docs), encoding="utf-8")
            temp_file.replace(path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise ManifestError(f"Failed to write {path}: {e}")
