"""Rich rendering of snapshots, gap reports and errors."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from oculus_deploy.inventory.models import InventorySnapshot, ResourceKind
from oculus_deploy.reconcile.requirements import GapReport
from oculus_deploy.utils.errors import DeploymentError

KIND_LABELS = {
    ResourceKind.NETWORK: "VPCs",
    ResourceKind.SUBNET: "Subnets",
    ResourceKind.ROUTE_TABLE: "Route Tables",
    ResourceKind.NETWORK_ACL: "Network ACLs",
    ResourceKind.NAT_GATEWAY: "NAT Gateways",
    ResourceKind.COMPUTE_INSTANCE: "EC2 Instances",
    ResourceKind.DATABASE_INSTANCE: "RDS Instances",
    ResourceKind.DATABASE_PROXY: "RDS Proxies",
    ResourceKind.COMPUTE_FUNCTION: "Lambda Functions",
    ResourceKind.API_ENDPOINT_GROUP: "API Gateways",
    ResourceKind.MANAGED_SECRET: "Secrets",
    ResourceKind.OBJECT_STORE_BUCKET: "S3 Buckets",
    ResourceKind.CONTENT_DELIVERY_DISTRIBUTION: "CloudFront Distributions",
}


def section(console: Console, title: str):
    """Print a labelled section header."""
    console.print(f"\n[bold]==[ {title} ]==[/bold]\n")


def _detail(record) -> str:
    """One-line status summary of a record."""
    parts = []
    for attr in ('state', 'status', 'role', 'cidr_block', 'engine', 'endpoint',
                 'endpoint_address', 'domain_name', 'runtime', 'stage_name'):
        value = getattr(record, attr, None)
        if value:
            parts.append(str(getattr(value, 'value', value)))
    return ', '.join(parts) or '-'


def render_inventory(console: Console, snapshot: InventorySnapshot, detailed: bool = True):
    """Print per-kind counts and, when ``detailed``, one row per record."""
    table = Table(
        title=f"Resources matching '{snapshot.marker}' in {snapshot.region}",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("Kind", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Resources")

    for kind, records in snapshot.resources.items():
        names = ', '.join(record.label for record in records[:5])
        if len(records) > 5:
            names += f" (+{len(records) - 5} more)"
        style = None if records else "dim"
        table.add_row(KIND_LABELS[kind], str(len(records)), names or '-', style=style)

    console.print(table)

    if detailed:
        for kind in (ResourceKind.DATABASE_INSTANCE, ResourceKind.DATABASE_PROXY,
                     ResourceKind.API_ENDPOINT_GROUP, ResourceKind.CONTENT_DELIVERY_DISTRIBUTION):
            for record in snapshot.of_kind(kind):
                console.print(f"  [cyan]{KIND_LABELS[kind]}[/cyan] {record.label}: {_detail(record)}")

    console.print(f"\n[bold]Total resources:[/bold] {snapshot.total()}")
    if snapshot.observed_public_ip:
        console.print(f"[bold]Public IP:[/bold] {snapshot.observed_public_ip}")


def render_gap_report(console: Console, report: GapReport):
    """Print requirement statuses."""
    table = Table(title="Required resources", show_header=True, header_style="bold cyan")
    table.add_column("Requirement", style="cyan")
    table.add_column("Kind")
    table.add_column("Found", justify="right")
    table.add_column("Needed", justify="right")
    table.add_column("Status")

    for status in report.statuses:
        if status.present:
            marker = "[green]✓ present[/green]"
        elif status.blocking:
            marker = "[red]✗ missing[/red]"
        else:
            marker = "[yellow]○ informational[/yellow]"
        table.add_row(status.name, status.kind.value, str(status.observed),
                      str(status.required), marker)

    console.print(table)
    if report.all_present:
        console.print("[green]All required resources exist; the stack will be updated in place[/green]")
    else:
        console.print(f"[red]Missing:[/red] {', '.join(report.missing_names)}")


def render_error(console: Console, error: DeploymentError, output_lines: Optional[int] = 60):
    """Print a fatal error and, if present, the tool output that caused it."""
    console.print(error.to_user_message(), style="red", markup=False)
    if error.output:
        lines = error.output.splitlines()
        if output_lines is not None:
            lines = lines[-output_lines:]
        console.print(Panel(Text("\n".join(lines)), title="Tool output", border_style="red"))
