# src/kubeshard/cli/formatter.py
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kubeshard.core.models import ConditionStatus, ShardStatus, TabletSpec
from kubeshard.core.results import PassResult, ReconcileError

# Initialize the Rich console for high-quality terminal output
console = Console()

_CONDITION_STYLES = {
    ConditionStatus.TRUE: "[green]True[/green]",
    ConditionStatus.FALSE: "[red]False[/red]",
    ConditionStatus.UNKNOWN: "[dim]Unknown[/dim]",
}


class ShardFormatter:
    """
    ShardFormatter: renders compiled tablets, pass status and results.
    """

    def __init__(self, target: Optional[Console] = None):
        self.console = target or console

    def print_tablets(self, tablets: List[TabletSpec], names: List[str]):
        table = Table(title="Desired Tablets", show_header=True, header_style="bold magenta")
        table.add_column("Alias", style="cyan")
        table.add_column("Type")
        table.add_column("Index", justify="right")
        table.add_column("Object Name", style="dim")

        for tablet, name in zip(tablets, names):
            table.add_row(tablet.alias_str, tablet.type, str(tablet.index), name)

        self.console.print(table)

    def print_status(self, status: ShardStatus):
        table = Table(title="Tablet Status", show_lines=True, header_style="bold magenta")
        table.add_column("Alias", style="cyan")
        table.add_column("Type")
        table.add_column("Running", justify="center")
        table.add_column("Ready", justify="center")
        table.add_column("Available", justify="center")
        table.add_column("Volume Bound", justify="center")
        table.add_column("Pending Changes", style="yellow")

        for alias, s in sorted(status.tablets.items()):
            table.add_row(
                alias, s.type,
                _CONDITION_STYLES[s.running], _CONDITION_STYLES[s.ready],
                _CONDITION_STYLES[s.available], _CONDITION_STYLES[s.data_volume_bound],
                s.pending_changes,
            )
        self.console.print(table)

        if status.orphaned_tablets:
            orphans = Table(title="Orphaned Tablets", header_style="bold red")
            orphans.add_column("Alias", style="cyan")
            orphans.add_column("Reason", style="bold")
            orphans.add_column("Message")
            for alias, orphan in sorted(status.orphaned_tablets.items()):
                orphans.add_row(alias, orphan.reason, orphan.message)
            self.console.print(orphans)

        generation = status.lowest_pod_generation or "unset"
        self.console.print(f"[bold]Cells:[/bold] {', '.join(status.cells) or '-'}    "
                           f"[bold]Lowest pod generation:[/bold] {generation}")

    def print_result(self, result: PassResult):
        if result.error is None:
            lines = ["[bold green]Pass complete[/bold green]"]
            style = "green"
        else:
            lines = ["[bold red]Pass finished with errors[/bold red]"]
            errors = result.error.errors if isinstance(result.error, ReconcileError) else [result.error]
            lines.extend(f"  • {e}" for e in errors)
            style = "red"
        if result.requeue_after is not None:
            lines.append(f"Requeue after: [cyan]{result.requeue_after:g}s[/cyan]")
        self.console.print(Panel("\n".join(lines), border_style=style))
