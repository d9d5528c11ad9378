#!/usr/bin/env python3
"""
KUBESHARD CLI
-------------
Command-line front end for the shard reconciler.

  kubeshard tablets SHARD.yaml
      Show the tablets a shard manifest compiles to.

  kubeshard reconcile SHARD.yaml [--state STATE.yaml] [--topo TOPO.yaml]
      Run one pass against a YAML file of live objects (dry run unless
      --write), or against the current kube context with --kube.

Author: KubeShard Team
Date: 2026-10-17
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.panel import Panel

from kubeshard.cli.formatter import ShardFormatter
from kubeshard.cli.manifests import ManifestError, ManifestIO
from kubeshard.config.settings import ConfigError, OperatorConfig, load_config
from kubeshard.core.engine import ShardReconciler, shard_labels
from kubeshard.core.models import ShardDesiredState
from kubeshard.reconciler.store import InMemoryObjectStore, ObjectStore, StoreError
from kubeshard.safety.topo import StaticTopoServer
from kubeshard.tablets.compiler import pod_name, tablet_specs

# Global console for consistent styling across the application
console = Console()

VERSION = "kubeshard v1.0.0"


class KubeShardCLI:
    """
    CLI wrapper that translates user commands into engine actions.
    """

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="kubeshard",
            description="KubeShard - tablet reconciliation for sharded databases on Kubernetes",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.io = ManifestIO()
        self.formatter = ShardFormatter(console)
        self._setup_args()

    def _setup_args(self):
        """Configures the command-line flags and subcommands."""
        self.parser.add_argument("-v", "--version", action="version", version=VERSION)
        self.parser.add_argument("--config", help="Operator configuration file (YAML)")
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        tablets_parser = subparsers.add_parser("tablets", help="List the tablets a shard compiles to")
        tablets_parser.add_argument("shard", help="Path to a shard manifest")

        reconcile_parser = subparsers.add_parser("reconcile", help="Run one reconciliation pass")
        reconcile_parser.add_argument("shard", help="Path to a shard manifest")
        reconcile_parser.add_argument("--state", help="Multi-document YAML of live Pods/PVCs")
        reconcile_parser.add_argument("--topo", help="YAML map of keyspace -> shard -> primary alias")
        reconcile_parser.add_argument("--write", action="store_true",
                                      help="Write the resulting objects back to --state")
        reconcile_parser.add_argument("--kube", action="store_true",
                                      help="Reconcile against the current kube context instead of --state")
        reconcile_parser.add_argument("--status-out", help="Write the status aggregate to this file")

    def print_header(self, subtitle: str):
        console.print(Panel.fit(
            f"[bold cyan]{VERSION}[/bold cyan]",
            title=f"[bold white]{subtitle}[/bold white]",
            border_style="cyan"
        ))

    def _load_shard(self, path: str) -> ShardDesiredState:
        return ShardDesiredState.from_manifest(self.io.load_one(path))

    def _open_store(self, args: argparse.Namespace) -> ObjectStore:
        if args.kube:
            # Imported lazily: offline runs don't need cluster credentials.
            from kubernetes import config as kube_config
            from kubeshard.reconciler.kube import KubernetesObjectStore

            kube_config.load_kube_config()
            return KubernetesObjectStore()

        objects = self.io.load_all(args.state) if args.state and Path(args.state).exists() else []
        return InMemoryObjectStore(objects)

    def _load_topo(self, path: Optional[str]) -> StaticTopoServer:
        if not path:
            return StaticTopoServer()
        topo = self.io.load_one(path)
        return StaticTopoServer(topo)

    def cmd_tablets(self, args: argparse.Namespace, config: OperatorConfig) -> int:
        shard = self._load_shard(args.shard)
        tablets = tablet_specs(shard, shard_labels(shard))
        names = [pod_name(shard.cluster, t.alias) for t in tablets]
        self.formatter.print_tablets(tablets, names)
        return 0

    def cmd_reconcile(self, args: argparse.Namespace, config: OperatorConfig) -> int:
        if args.write and (args.kube or not args.state):
            console.print("[bold red]Error:[/bold red] --write needs --state and can't be used with --kube.")
            return 2

        shard = self._load_shard(args.shard)
        store = self._open_store(args)
        topo = self._load_topo(args.topo)

        engine = ShardReconciler(store, topo, config)
        try:
            result, status = engine.reconcile(shard)
        finally:
            engine.close()

        self.formatter.print_status(status)
        self.formatter.print_result(result)

        if args.status_out:
            self.io.write_all(args.status_out, [status.to_dict()])
        if args.write and isinstance(store, InMemoryObjectStore):
            self.io.write_all(args.state, store.objects())
            console.print(f"[dim]Wrote {len(store.objects())} objects to {args.state}[/dim]")

        return 1 if result.error is not None else 0

    def run(self, argv=None) -> int:
        """Primary routing entry point."""
        args = self.parser.parse_args(argv)
        if not args.command:
            self.print_header("Shard Reconciler")
            self.parser.print_help()
            return 0

        try:
            config = load_config(args.config)
        except ConfigError as e:
            console.print(f"[bold red]Configuration error:[/bold red] {e}")
            return 2
        logging.basicConfig(level=config.log_level.upper(),
                            format="%(asctime)s %(levelname)s %(name)s: %(message)s")

        try:
            if args.command == "tablets":
                return self.cmd_tablets(args, config)
            if args.command == "reconcile":
                self.print_header("Reconcile Pass")
                return self.cmd_reconcile(args, config)
        except (ManifestError, StoreError, KeyError, ValueError) as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            return 1

        self.parser.print_help()
        return 0


def main():
    """Application entry point with interrupt handling."""
    try:
        sys.exit(KubeShardCLI().run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
