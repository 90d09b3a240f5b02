"""Main CLI entry point."""

import sys
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from oculus_deploy import __version__
from oculus_deploy.cli.output import outputs
from oculus_deploy.cli.render import render_error, render_gap_report, render_inventory, section
from oculus_deploy.config.parser import DEFAULT_CONFIG_FILE, Config, ConfigValidationError
from oculus_deploy.deploy.backend import CdkBackend, CommandRunner
from oculus_deploy.deploy.executor import DeployExecutor
from oculus_deploy.deploy.functions import FunctionPackager, find_api_function, update_function_code
from oculus_deploy.deploy.outputs import StackOutputs, seed_database
from oculus_deploy.envfiles.generator import (
    check_api_url,
    check_proxy_endpoint,
    render_backend_env,
    render_frontend_env,
    snapshot_api_url,
    write_env_file,
)
from oculus_deploy.inventory.collector import InventoryCollector
from oculus_deploy.inventory.models import InventorySnapshot, ResourceKind
from oculus_deploy.inventory.public_ip import PublicIpLookup
from oculus_deploy.inventory.store import FileSnapshotStore
from oculus_deploy.pipeline.runner import (
    PipelineCallback,
    PipelineResult,
    PipelineStage,
    ReconciliationPipeline,
)
from oculus_deploy.reconcile.confirmation import ConsoleConfirmation, ConsoleNetworkSelector
from oculus_deploy.reconcile.requirements import GapReport, RequiredResourceSet
from oculus_deploy.site.builder import SiteBuilder
from oculus_deploy.site.publisher import SitePublisher
from oculus_deploy.utils.aws_client import AWSClientManager
from oculus_deploy.utils.errors import DeploymentError, ErrorContext, InventoryError, error_handler
from oculus_deploy.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

STAGE_TITLES = {
    PipelineStage.COLLECT: "Collecting AWS inventory",
    PipelineStage.ANALYZE: "Checking required resources",
    PipelineStage.CONFIRM: "Confirmation",
    PipelineStage.DEPLOY: "Deploying with CDK",
    PipelineStage.DESTROY: "Destroying with CDK",
    PipelineStage.VERIFY: "Refreshing inventory",
}


@click.group()
@click.version_option(__version__, prog_name='oculus')
@click.option('--config', 'config_path', default=DEFAULT_CONFIG_FILE, show_default=True,
              help='Path to configuration file')
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.pass_context
def cli(ctx, config_path, profile, region, log_level):
    """Oculus infrastructure reconciliation and deploy tool."""
    ctx.ensure_object(dict)
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region
    ctx.obj['log_level'] = log_level

    # Setup logging
    setup_logging(log_level)

    ctx.obj['config'] = load_config(config_path, profile=profile, region=region)


cli.add_command(outputs)


def load_config(config_path: str, profile: Optional[str] = None, region: Optional[str] = None) -> Config:
    """Load and validate configuration file, applying command line overrides."""
    try:
        return Config(config_path).load().apply_overrides(profile=profile, region=region)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e))
        sys.exit(1)


def create_client_manager(cfg: Config) -> AWSClientManager:
    """Create the AWS client manager for the configured profile and region."""
    return AWSClientManager(profile=cfg.project.profile, region=cfg.project.region)


def create_collector(cfg: Config, client_manager) -> InventoryCollector:
    return InventoryCollector(client_manager, region=cfg.project.region, marker=cfg.project.marker)


def create_store(cfg: Config) -> FileSnapshotStore:
    return FileSnapshotStore(cfg.paths.cache_file)


def stream_output(line: str):
    console.print(line, style="dim", markup=False, highlight=False)


def create_backend(cfg: Config) -> CdkBackend:
    """CDK backend that streams tool output to the console."""
    return CdkBackend(cfg.paths.cdk_dir, on_output=stream_output)


def create_runner() -> CommandRunner:
    """Command runner for npm builds outside the CDK directory."""
    return CommandRunner(on_output=stream_output)


def build_pipeline(cfg: Config, destructive: bool = False) -> ReconciliationPipeline:
    """Wire a pipeline from configuration with console confirmation.

    Raises:
        DeploymentError: If the AWS credentials are missing or invalid
    """
    client_manager = create_client_manager(cfg)
    try:
        credentials = client_manager.validate_credentials()
    except Exception as e:
        raise error_handler.handle_exception(e, ErrorContext(operation='validate-credentials'))
    console.print(f"[dim]Account {credentials.account_id} ({credentials.user_arn}) in {credentials.region}[/dim]")

    executor = DeployExecutor(
        create_backend(cfg),
        synth_attempts=cfg.deploy.synth_attempts,
        synth_delay=cfg.deploy.synth_delay,
    )
    return ReconciliationPipeline(
        collector=create_collector(cfg, client_manager),
        store=create_store(cfg),
        executor=executor,
        confirmation=ConsoleConfirmation(console, destructive=destructive),
        required=RequiredResourceSet.from_config(cfg.deploy, cfg.requirements),
        public_ip=PublicIpLookup(cfg.public_ip.url, timeout=cfg.public_ip.timeout),
        network_selector=ConsoleNetworkSelector(console),
        create_token=cfg.confirmation.create_token,
        destroy_token=cfg.confirmation.destroy_token,
        stack_name=cfg.project.stack_name,
        network_context_key=cfg.deploy.network_context_key,
        callback=RichPipelineCallback(),
    )


def load_snapshot(cfg: Config) -> InventorySnapshot:
    """Load the cached snapshot.

    Raises:
        InventoryError: If there is no readable cache
    """
    snapshot = create_store(cfg).load()
    if snapshot is None:
        raise InventoryError(
            f"No inventory cache found at {cfg.paths.cache_file}",
            context=ErrorContext(operation='load-inventory'),
            suggestions=["Run oculus inventory first"],
        )
    return snapshot


def fail(error: DeploymentError):
    """Report a fatal error and exit with status 1."""
    logger.debug(f"Error details: {error.to_dict()}")
    render_error(console, error)
    sys.exit(1)


class RichPipelineCallback(PipelineCallback):
    """Pipeline callback that displays progress using Rich."""

    def on_stage(self, stage: PipelineStage):
        title = STAGE_TITLES.get(stage)
        if title:
            section(console, title)

    def on_snapshot(self, snapshot: InventorySnapshot):
        render_inventory(console, snapshot, detailed=False)

    def on_public_ip(self, address: str):
        console.print(f"[bold]Public IP:[/bold] {address}")

    def on_gap_report(self, report: GapReport):
        render_gap_report(console, report)

    def on_stack_check(self, stack_name: str, found: bool):
        if found:
            console.print(f"[green]✓[/green] Stack {stack_name} found")
        else:
            console.print(f"[yellow]⚠[/yellow] Stack {stack_name} not found")

    def on_verified(self, snapshot: InventorySnapshot):
        render_inventory(console, snapshot, detailed=False)

    def on_warning(self, message: str):
        console.print(f"[yellow]Warning:[/yellow] {message}")


@cli.command()
@click.option('--json', 'as_json', is_flag=True, help='Print the snapshot as JSON')
@click.pass_context
def inventory(ctx, as_json):
    """Collect project resources and refresh the inventory cache."""
    cfg = ctx.obj['config']
    try:
        if not as_json:
            section(console, f"Collecting AWS inventory ({cfg.project.region})")
        collector = create_collector(cfg, create_client_manager(cfg))
        store = create_store(cfg)

        snapshot = collector.collect()
        previous = store.load()
        if previous is not None and previous.observed_public_ip:
            snapshot = snapshot.with_public_ip(previous.observed_public_ip, previous.last_ip_update)
        store.save(snapshot)
    except DeploymentError as e:
        fail(e)

    if as_json:
        console.print_json(data=snapshot.to_dict())
        return

    render_inventory(console, snapshot)
    console.print(f"\n[green]✓[/green] Inventory saved to {cfg.paths.cache_file}")


@cli.command('deploy-infra')
@click.option('--reuse-network', 'reuse_network', metavar='VPC_ID', help='Deploy into an existing VPC')
@click.option('--select-network', is_flag=True, help='Choose an existing VPC interactively')
@click.option('--seed/--no-seed', default=True, help='Seed the database after a successful deploy')
@click.pass_context
def deploy_infra(ctx, reuse_network, select_network, seed):
    """Deploy or update the infrastructure stack."""
    cfg = ctx.obj['config']

    console.print(Panel.fit(
        f"[bold]Deploying {cfg.project.stack_name}[/bold]\n"
        f"Project: {cfg.project.name}\n"
        f"Region: {cfg.project.region}\n"
        f"Network: {reuse_network or ('interactive' if select_network else 'new')}",
        title="Deployment Configuration",
        border_style="cyan"
    ))

    try:
        pipeline = build_pipeline(cfg)
        result = pipeline.run_deploy(reuse_network=reuse_network, select_network=select_network)
    except DeploymentError as e:
        fail(e)

    if result.is_declined():
        console.print("\n[yellow]Deployment cancelled; no changes made[/yellow]")
        return

    _print_summary(result, "Deployment Complete")

    if seed:
        _seed_after_deploy(cfg)


@cli.command('delete-infra')
@click.pass_context
def delete_infra(ctx):
    """Destroy the infrastructure stack."""
    cfg = ctx.obj['config']

    try:
        pipeline = build_pipeline(cfg, destructive=True)
        result = pipeline.run_destroy()
    except DeploymentError as e:
        fail(e)

    if result.is_declined():
        console.print("\n[yellow]Deletion cancelled; no changes made[/yellow]")
        return

    _print_summary(result, "Deletion Complete")


def _print_summary(result: PipelineResult, title: str):
    lines = []
    if result.verified_snapshot is not None:
        lines.append(f"Resources after run: {result.verified_snapshot.total()}")
    if result.network_id:
        lines.append(f"Network: {result.network_id}")
    if result.verification_warning:
        lines.append(f"[yellow]Inventory refresh failed: {result.verification_warning}[/yellow]")
    console.print()
    console.print(Panel.fit(
        "[green]✓ Done[/green]\n\n" + "\n".join(lines),
        title=title,
        border_style="green"
    ))


def _seed_after_deploy(cfg: Config):
    """Seed the database; failures are reported and do not fail the deploy."""
    section(console, "Seeding database")
    try:
        stack_outputs = StackOutputs.fetch(
            create_client_manager(cfg).get_client('cloudformation'), cfg.project.stack_name
        )
    except DeploymentError as e:
        console.print(f"[yellow]Skipping seed:[/yellow] {e.message}")
        return

    if not stack_outputs.api_url:
        console.print("[yellow]Skipping seed: no API URL in stack outputs[/yellow]")
        return

    if _run_seed(cfg, stack_outputs.api_url):
        console.print("[green]✓[/green] Database seeded")
    else:
        console.print("[yellow]⚠ Seeding failed; run oculus seed to retry[/yellow]")


def _run_seed(cfg: Config, api_url: str) -> bool:
    return seed_database(
        api_url,
        seed_path=cfg.deploy.seed_path,
        attempts=cfg.deploy.seed_attempts,
        delay=cfg.deploy.seed_delay,
    )


@cli.command('generate-env')
@click.option('--output', 'output_path', help='Target file (defaults to the configured frontend env file)')
@click.option('--dry-run', is_flag=True, help='Print the file instead of writing it')
@click.pass_context
def generate_env(ctx, output_path, dry_run):
    """Generate the frontend .env.local from the inventory cache."""
    cfg = ctx.obj['config']
    try:
        snapshot = load_snapshot(cfg)
        content = render_frontend_env(snapshot)
    except DeploymentError as e:
        fail(e)

    _write_or_print(content, output_path or cfg.paths.frontend_env_file, dry_run)
    console.print(f"[bold]API URL:[/bold] {snapshot_api_url(snapshot)}")


@cli.command('generate-lambda-env')
@click.option('--output', 'output_path', help='Target file (defaults to the configured backend env file)')
@click.option('--dry-run', is_flag=True, help='Print the file instead of writing it')
@click.pass_context
def generate_lambda_env(ctx, output_path, dry_run):
    """Generate the Lambda .env from the inventory cache."""
    cfg = ctx.obj['config']
    try:
        snapshot = load_snapshot(cfg)
        content = render_backend_env(snapshot)
    except DeploymentError as e:
        fail(e)

    _write_or_print(content, output_path or cfg.paths.backend_env_file, dry_run)

    proxy = snapshot.first(ResourceKind.DATABASE_PROXY)
    checks = {
        'RDS Proxy': check_proxy_endpoint(proxy.endpoint if proxy else None),
        'API Gateway': check_api_url(snapshot_api_url(snapshot)),
    }
    section(console, "Connectivity checks")
    for name, check in checks.items():
        if check.success:
            console.print(f"[green]✓[/green] {name}: {check.details}")
        else:
            console.print(f"[red]✗[/red] {name}: {check.error}")


def _write_or_print(content: str, path: str, dry_run: bool):
    if dry_run:
        click.echo(content, nl=False)
        return
    try:
        written = write_env_file(path, content)
    except OSError as e:
        console.print(f"[red]Error:[/red] Could not write {path}: {e}")
        sys.exit(1)
    if written.backup_path:
        console.print(f"[dim]Backup: {written.backup_path}[/dim]")
    console.print(f"[green]✓[/green] Environment file saved: {written.path}")


@cli.command()
@click.option('--api-url', help='API base URL (defaults to the stack output)')
@click.pass_context
def seed(ctx, api_url):
    """Seed the database through the API."""
    cfg = ctx.obj['config']
    if not api_url:
        try:
            stack_outputs = StackOutputs.fetch(
                create_client_manager(cfg).get_client('cloudformation'), cfg.project.stack_name
            )
        except DeploymentError as e:
            fail(e)
        api_url = stack_outputs.api_url
        if not api_url:
            console.print("[red]Error:[/red] No API URL found in stack outputs")
            sys.exit(1)

    console.print(f"Seeding via {api_url}")
    if not _run_seed(cfg, api_url):
        console.print("[red]✗ Seeding failed[/red]")
        sys.exit(1)
    console.print("[green]✓[/green] Database seeded")


@cli.command('deploy-lambda')
@click.option('--function', 'function_name', help='Function to update (defaults to the API function in the inventory)')
@click.option('--source', help='Handler source (defaults to the configured function source)')
@click.pass_context
def deploy_lambda(ctx, function_name, source):
    """Update the API function's code without touching the stack."""
    cfg = ctx.obj['config']
    source = source or cfg.paths.function_source
    try:
        if not function_name:
            record = find_api_function(load_snapshot(cfg), cfg.deploy.api_function_patterns)
            if record is None:
                raise InventoryError(
                    "No API function found in inventory",
                    context=ErrorContext(resource_kind=ResourceKind.COMPUTE_FUNCTION.value),
                    suggestions=[
                        "Run oculus deploy-infra first",
                        "Pass --function with the function name",
                    ],
                )
            function_name = record.id

        section(console, f"Packaging {source}")
        archive = FunctionPackager(create_runner()).package(source)

        section(console, f"Updating {function_name}")
        update = update_function_code(create_client_manager(cfg).get_client('lambda'), function_name, archive)
    except DeploymentError as e:
        fail(e)

    console.print(Panel.fit(
        f"[green]✓ Function code updated[/green]\n\n"
        f"Function: {update.function_name}\n"
        f"Code size: {update.code_size} bytes\n"
        f"Last modified: {update.last_modified or 'unknown'}\n\n"
        f"[dim]No infrastructure changes made[/dim]",
        title="Function Deploy Complete",
        border_style="green"
    ))


@cli.command('publish-site')
@click.option('--site-dir', help='Built site directory (defaults to the configured site dir)')
@click.option('--bucket', help='Target bucket (defaults to the first bucket in the inventory)')
@click.option('--distribution', 'distribution_id', help='CloudFront distribution id to invalidate')
@click.option('--invalidate/--no-invalidate', default=True, help='Invalidate the CloudFront cache')
@click.option('--build/--no-build', default=True, help='Run npm install and npm run build in the app dir first')
@click.pass_context
def publish_site(ctx, site_dir, bucket, distribution_id, invalidate, build):
    """Build the frontend, upload it and invalidate the CDN cache."""
    cfg = ctx.obj['config']
    try:
        if not bucket or (invalidate and not distribution_id):
            snapshot = load_snapshot(cfg)
            if not bucket:
                record = snapshot.first(ResourceKind.OBJECT_STORE_BUCKET)
                if record is None:
                    raise InventoryError(
                        "No S3 bucket found in inventory",
                        context=ErrorContext(resource_kind=ResourceKind.OBJECT_STORE_BUCKET.value),
                        suggestions=["Pass --bucket", "Run oculus inventory to refresh the cache"],
                    )
                bucket = record.id
            if invalidate and not distribution_id:
                record = snapshot.first(ResourceKind.CONTENT_DELIVERY_DISTRIBUTION)
                distribution_id = record.id if record else None

        if build:
            section(console, f"Building {cfg.paths.app_dir}")
            SiteBuilder(create_runner()).build(cfg.paths.app_dir)

        client_manager = create_client_manager(cfg)
        publisher = SitePublisher(
            client_manager.get_client('s3'),
            client_manager.get_client('cloudfront') if invalidate else None,
        )
        section(console, f"Publishing site to s3://{bucket}")
        result = publisher.publish(site_dir or cfg.paths.site_dir, bucket,
                                   distribution_id if invalidate else None)
    except DeploymentError as e:
        fail(e)

    console.print(Panel.fit(
        f"[green]✓ Site published[/green]\n\n"
        f"Uploaded: {len(result.uploaded)}\n"
        f"Deleted: {len(result.deleted)}\n"
        f"Unchanged: {result.unchanged}\n"
        f"Invalidation: {result.invalidation_id or 'none'}",
        title="Publish Complete",
        border_style="green"
    ))


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == '__main__':
    main()
