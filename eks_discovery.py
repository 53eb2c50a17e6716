import logging
import threading
import time
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    stop_when_event_set,
    wait_exponential,
)

from aws_discover import translate_error
from errors import DiscoveryCancelledError, DiscoveryError
from models import ClusterInventory, ClusterRecord, DiscoveryReport

# Upper bound on how long the fan-out loop waits before re-checking for cancellation.
_POLL_INTERVAL = 0.1


class ScanContext:
    """Deadline and cancellation flag shared by every call in one discovery pass."""

    def __init__(self, timeout=None, cancel_event=None):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self):
        self.cancel_event.set()

    def remaining(self):
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    @property
    def cancelled(self):
        if self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def check(self, region=None, operation=None):
        if self.cancelled:
            raise DiscoveryCancelledError(
                "Discovery was cancelled or ran out of time", region=region, operation=operation
            )


def _call_with_retry(fn, config, context, region, operation, *args):
    """Calls fn, retrying retryable errors (TransportError) up to config.max_retries times with backoff."""
    retrying = Retrying(
        stop=stop_after_attempt(config.max_retries + 1) | stop_when_event_set(context.cancel_event),
        wait=wait_exponential(multiplier=config.retry_backoff, max=config.retry_max_wait),
        retry=retry_if_exception(lambda exc: getattr(exc, "retryable", False)),
        before_sleep=before_sleep_log(logging.getLogger(), logging.WARNING),
        reraise=True,
    )
    for attempt in retrying:
        with attempt:
            context.check(region=region, operation=operation)
            result = fn(*args)
    return result


def _fan_out(tasks, work, config, context, describe):
    """
    Runs work(task) for every task on a bounded thread pool.

    Returns (results, errors), both keyed by task. Any exception raised by a task
    is recorded against it as a DiscoveryError (botocore errors are translated,
    anything else is wrapped and logged with its traceback). Tasks still
    unfinished when the context is cancelled are recorded as
    DiscoveryCancelledError.
    """
    results, errors = {}, {}
    if not tasks:
        return results, errors

    def harvest(future):
        task = future_to_task[future]
        try:
            results[task] = future.result()
        except DiscoveryError as exc:
            errors[task] = exc
        except Exception as exc:
            logging.exception("Unexpected error while scanning %s", describe(task))
            errors[task] = translate_error(exc, region=getattr(task, "region", task))

    executor = ThreadPoolExecutor(max_workers=config.max_workers)
    future_to_task = {executor.submit(work, task): task for task in tasks}
    pending = set(future_to_task)
    try:
        while pending and not context.cancelled:
            timeout = _POLL_INTERVAL
            remaining = context.remaining()
            if remaining is not None:
                timeout = min(timeout, remaining)
            done, pending = wait(pending, timeout=timeout, return_when=FIRST_COMPLETED)
            for future in done:
                harvest(future)
    finally:
        for future in pending:
            future.cancel()
        # Abandon in-flight calls instead of blocking on them once cancelled.
        executor.shutdown(wait=not pending, cancel_futures=True)

    for future in pending:
        if future.done() and not future.cancelled():
            harvest(future)
            continue
        task = future_to_task[future]
        logging.warning("Abandoning %s: discovery was cancelled or timed out", describe(task))
        errors[task] = DiscoveryCancelledError(
            f"Abandoned {describe(task)} before it completed",
            region=getattr(task, "region", task),
        )
    return results, errors


def resolve_account_identity(identity_client, context=None):
    """Returns the account id of the caller. Failures are fatal and not retried."""
    if context is not None:
        context.check(operation="GetCallerIdentity")
    return identity_client.get_caller_identity()


def list_regions(region_client, include_disabled=True, context=None):
    """Returns every region name in provider order, opt-in regions included by default."""
    if context is not None:
        context.check(operation="DescribeRegions")
    regions = region_client.describe_regions(include_disabled=include_disabled)
    return list(dict.fromkeys(regions))


def get_cluster_names_for_region(eks_factory, region, config, context):
    logging.info("Scanning EKS clusters in region: %s", region)
    context.check(region=region, operation="ListClusters")
    eks_client = eks_factory.for_region(region)
    names = _call_with_retry(eks_client.list_clusters, config, context, region, "ListClusters")
    for name in names:
        logging.info("Found cluster '%s' in region: %s", name, region)
    return names


def enumerate_clusters(regions, eks_factory, config, context=None):
    """
    Lists the EKS clusters of every region, tagging each name with its region.

    Each region is visited exactly once. A region whose client cannot be built
    or whose ListClusters call fails contributes no records and is reported in
    the returned region errors instead; the scan carries on with the others.

    Returns (ClusterInventory, {region: DiscoveryError}), both ordered by the
    position of the region in ``regions``.
    """
    context = context or ScanContext(config.timeout)
    regions = list(dict.fromkeys(regions))

    results, errors = _fan_out(
        regions,
        lambda region: get_cluster_names_for_region(eks_factory, region, config, context),
        config,
        context,
        describe=lambda region: f"region {region}",
    )

    inventory = ClusterInventory()
    region_errors = {}
    for region in regions:
        if region in errors:
            logging.warning(
                "Could not list EKS clusters in region %s. Skipping. Error: %s", region, errors[region]
            )
            region_errors[region] = errors[region]
            continue
        for name in results.get(region, []):
            inventory.add(ClusterRecord(name=name, region=region))
    return inventory, region_errors


def get_cluster_endpoint(eks_factory, record, config, context):
    eks_client = eks_factory.for_region(record.region)
    return _call_with_retry(
        eks_client.describe_cluster_endpoint, config, context, record.region, "DescribeCluster", record.name
    )


def resolve_endpoints(inventory, eks_factory, config, context=None):
    """
    Describes every cluster with a client scoped to the cluster's own region.

    Returns a new ClusterInventory whose endpoints line up with its records
    (None where resolution failed) and a {ClusterRecord: DiscoveryError} map of
    the failures.
    """
    context = context or ScanContext(config.timeout)

    results, errors = _fan_out(
        inventory.records,
        lambda record: get_cluster_endpoint(eks_factory, record, config, context),
        config,
        context,
        describe=lambda record: f"cluster {record}",
    )

    resolved = ClusterInventory()
    failed_clusters = {}
    for record in inventory.records:
        if record in errors:
            logging.warning(
                "Could not describe cluster %s in region %s. Skipping. Error: %s",
                record.name,
                record.region,
                errors[record],
            )
            failed_clusters[record] = errors[record]
        resolved.add(record, results.get(record))
    return resolved, failed_clusters


def run_discovery(backend, config, context=None):
    """
    Runs one discovery pass: identity, regions, clusters, then endpoints.

    Identity and region listing failures propagate. Regional and per-cluster
    failures are collected into the returned DiscoveryReport.
    """
    context = context or ScanContext(config.timeout)

    account = resolve_account_identity(backend, context)
    logging.info("Analyzing EKS clusters for AWS Account: %s", account)

    if config.regions:
        regions = list(dict.fromkeys(config.regions))
    else:
        regions = list_regions(backend, config.include_disabled_regions, context)
    logging.info("Starting EKS discovery for regions: %s", regions)

    inventory, region_errors = enumerate_clusters(regions, backend, config, context)
    logging.info("Found a total of %d EKS clusters across all scanned regions.", len(inventory))

    inventory, cluster_errors = resolve_endpoints(inventory, backend, config, context)

    report = DiscoveryReport(
        account=account,
        regions=regions,
        clusters=inventory,
        region_errors=region_errors,
        cluster_errors=cluster_errors,
    )
    logging.info(
        "Discovery %s: %d endpoints resolved, %d region failures, %d cluster failures",
        report.status.value,
        len(report.endpoints),
        len(region_errors),
        len(cluster_errors),
    )
    return report
