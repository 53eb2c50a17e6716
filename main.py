import logging
from typing import Optional

import typer

import common
from aws_discover import AwsBackend
from config import DEFAULT_REGION, DiscoveryConfig
from eks_discovery import list_regions, resolve_account_identity, run_discovery
from errors import DiscoveryError
from models import DiscoveryStatus

app = typer.Typer(
    no_args_is_help=True,
    help="Discover EKS clusters and their API endpoints across every region of an AWS account.",
)


def _build_backend(config: DiscoveryConfig) -> AwsBackend:
    return AwsBackend(config)


def _print_regions(regions):
    typer.echo("Available AWS Regions:")
    for region in regions:
        typer.echo(f"* {region}")


def _print_failures(report):
    typer.echo(
        f"WARNING: {len(report.region_errors)} region(s) and "
        f"{len(report.cluster_errors)} cluster(s) could not be scanned:",
        err=True,
    )
    for region, error in report.region_errors.items():
        typer.echo(f"  region {region}: {error.kind}: {error}", err=True)
    for record, error in report.cluster_errors.items():
        typer.echo(f"  cluster {record}: {error.kind}: {error}", err=True)


@app.command()
def aws(
    regions: list[str] = typer.Option(None, "--region", help="Specific AWS regions to scan. If empty, every region of the account is scanned."),
    profile: Optional[str] = typer.Option(None, "--profile", envvar="AWS_PROFILE", help="AWS profile to use for credentials."),
    default_region: str = typer.Option(DEFAULT_REGION, "--default-region", envvar="EKS_DISCOVERY_DEFAULT_REGION", help="Region used for the STS and EC2 calls."),
    enabled_only: bool = typer.Option(False, "--enabled-only", help="Skip regions the account has not opted into."),
    workers: int = typer.Option(8, "--workers", envvar="EKS_DISCOVERY_WORKERS", help="Maximum number of concurrent AWS calls."),
    retries: int = typer.Option(2, "--retries", envvar="EKS_DISCOVERY_RETRIES", help="Retries for throttled or failed network calls per region/cluster."),
    timeout: Optional[float] = typer.Option(None, "--timeout", envvar="EKS_DISCOVERY_TIMEOUT", help="Overall deadline in seconds. Unfinished work is reported as cancelled."),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """
    Discover EKS clusters in specific or all AWS regions and resolve their endpoints.
    """
    common.configure_logging(verbose)
    try:
        config = DiscoveryConfig(
            profile_name=profile,
            default_region=default_region,
            regions=regions or (),
            include_disabled_regions=not enabled_only,
            max_workers=workers,
            max_retries=retries,
            timeout=timeout,
        )
        report = run_discovery(_build_backend(config), config)
    except DiscoveryError as e:
        logging.error("EKS discovery failed: %s: %s", e.kind, e)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(common.to_json(report))
    else:
        typer.echo(f"Analyzing EKS clusters for AWS Account: {report.account}\n")
        _print_regions(report.regions)
        typer.echo(f"Total clusters found: {len(report.clusters)}")
        for record, endpoint in report.clusters.resolved():
            typer.echo(f"{record.region} {record.name} {endpoint}")

    if report.has_failures:
        _print_failures(report)
    if report.status is DiscoveryStatus.FAILED:
        raise typer.Exit(code=1)


@app.command("regions")
def show_regions(
    profile: Optional[str] = typer.Option(None, "--profile", envvar="AWS_PROFILE", help="AWS profile to use for credentials."),
    default_region: str = typer.Option(DEFAULT_REGION, "--default-region", envvar="EKS_DISCOVERY_DEFAULT_REGION", help="Region used for the STS and EC2 calls."),
    enabled_only: bool = typer.Option(False, "--enabled-only", help="Only list regions the account has opted into."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """
    Show the account id and the regions that would be scanned.
    """
    common.configure_logging(verbose)
    try:
        config = DiscoveryConfig(profile_name=profile, default_region=default_region)
        backend = _build_backend(config)
        account = resolve_account_identity(backend)
        region_names = list_regions(backend, include_disabled=not enabled_only)
    except DiscoveryError as e:
        logging.error("Region listing failed: %s: %s", e.kind, e)
        raise typer.Exit(code=1)

    typer.echo(f"AWS Account: {account}\n")
    _print_regions(region_names)


if __name__ == "__main__":
    app()
