"""
Click CLI for creating, deleting and inspecting ECS clusters.
"""

import dataclasses
import json
import logging
import sys
from typing import Optional

import click

from .config import ClusterOptions, Settings
from .errors import ConfigurationError, InspectionError
from .executor import ExecutionPolicy, Outcome
from .providers import AwsProvider
from .reconciler import PlannedChange, Reconciler, ReconciliationResult
from .reporter import render_text
from .resources import Operation
from .tags import parse_user_tags

logger = logging.getLogger(__name__)

OUTCOME_ICONS = {
    Outcome.SUCCEEDED: "✅",
    Outcome.FAILED: "❌",
    Outcome.SKIPPED: "⏭️ ",
    Outcome.ABORTED: "⛔",
}


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--region", help="AWS region (defaults to CLUSTERCTL_REGION or AWS_REGION)")
@click.pass_context
def main(ctx, verbose: bool, region: Optional[str]):
    """
    clusterctl - create, delete and inspect ECS clusters.
    """
    ctx.ensure_object(dict)

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if region:
        settings = dataclasses.replace(settings, region=region)

    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx.obj["settings"] = settings


def _reconciler(ctx, vpc_id: Optional[str] = None) -> Reconciler:
    """Build a reconciler; tests inject a provider through ctx.obj."""
    settings = ctx.obj["settings"]
    logger.debug(f"Using region {settings.region}")
    provider = ctx.obj.get("provider") or AwsProvider(region=settings.region, vpc_id=vpc_id)
    return Reconciler(provider, settings, **ctx.obj.get("timing", {}))


def _print_plan(change: PlannedChange) -> None:
    verb = "create" if change.operation is Operation.CREATE else "delete"
    click.echo(f"Determining AWS resources to {verb} for cluster {change.names.cluster_name}...")
    for action in change.plan:
        note = " (after its pending deletion finishes)" if action.pre_wait else ""
        click.echo(f"  {action.kind.label:<24} {action.name}{note}")


def _print_result(result: ReconciliationResult) -> None:
    report = result.report
    if report.user_aborted:
        click.echo("Aborted. No resources were changed.")
        return

    for entry in report.results:
        line = f"{OUTCOME_ICONS[entry.outcome]} {entry.action.describe()}"
        if entry.outcome is not Outcome.SUCCEEDED and entry.reason:
            line += f": {entry.reason}"
        click.echo(line)

    if report.failed:
        click.echo(f"\n❌ {len(report.failures)} action(s) failed", err=True)
    else:
        click.echo("\n🎉 Done")


def _run(reconciler: Reconciler, change: PlannedChange, force: bool, continue_on_error: bool) -> None:
    if change.nothing_to_do:
        verb = "create" if change.operation is Operation.CREATE else "delete"
        click.echo(f"Nothing to {verb}: cluster {change.names.cluster_name} is already in the desired state.")
        sys.exit(0)

    _print_plan(change)

    def confirm(prompt: str) -> bool:
        return click.confirm(prompt, default=False)

    result = reconciler.apply(change, ExecutionPolicy(continue_on_error=continue_on_error, confirm=None if force else confirm))
    _print_result(result)
    sys.exit(1 if result.report.failed else 0)


@main.command("cluster-create")
@click.argument("cluster_name")
@click.option("--instance-type", default="t2.micro", show_default=True, help="EC2 instance type of container instances")
@click.option("--initial-capacity", type=int, default=1, show_default=True, help="Number of container instances")
@click.option("--key", "key_pair", help="EC2 key pair name for SSH access")
@click.option("--vpc", "vpc_id", help="VPC ID (defaults to the account's default VPC)")
@click.option("--instance-profile", help="Existing IAM instance profile to use instead of creating one")
@click.option("--tag", "tags", multiple=True, help="Tags in format 'key=value' (repeatable)")
@click.option("--force", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--continue", "continue_on_error", is_flag=True, help="Keep going after a failed action")
@click.pass_context
def cluster_create(ctx, cluster_name: str, instance_type: str, initial_capacity: int, key_pair: Optional[str],
                   vpc_id: Optional[str], instance_profile: Optional[str], tags: tuple, force: bool,
                   continue_on_error: bool):
    """
    Create a new ECS cluster and its container instance resources.
    """
    try:
        options = ClusterOptions(
            instance_type=instance_type,
            initial_capacity=initial_capacity,
            key_pair=key_pair,
            vpc_id=vpc_id,
            instance_profile=instance_profile,
            tags=parse_user_tags(list(tags)),
        )
        reconciler = _reconciler(ctx, vpc_id)
        change = reconciler.plan(cluster_name, Operation.CREATE, options)
    except (ValueError, ConfigurationError, InspectionError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    _run(reconciler, change, force, continue_on_error)


@main.command("cluster-delete")
@click.argument("cluster_name")
@click.option("--force", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option("--continue", "continue_on_error", is_flag=True, help="Keep going after a failed action")
@click.pass_context
def cluster_delete(ctx, cluster_name: str, force: bool, continue_on_error: bool):
    """
    Delete an ECS cluster and the resources clusterctl created for it.
    """
    try:
        reconciler = _reconciler(ctx)
        change = reconciler.plan(cluster_name, Operation.DELETE)
    except (ConfigurationError, InspectionError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    _run(reconciler, change, force, continue_on_error)


@main.command("cluster-status")
@click.argument("cluster_name")
@click.option("--vpc", "vpc_id", help="VPC ID (defaults to the account's default VPC)")
@click.option("--format", "output_format", type=click.Choice(["human", "json"]), default="human", help="Output format")
@click.pass_context
def cluster_status(ctx, cluster_name: str, vpc_id: Optional[str], output_format: str):
    """
    Show the status of an ECS cluster.
    """
    try:
        snapshot = _reconciler(ctx, vpc_id=vpc_id).status(cluster_name)
    except (ConfigurationError, InspectionError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(snapshot.to_dict(), indent=2))
    else:
        click.echo(render_text(snapshot))


if __name__ == "__main__":
    main()
