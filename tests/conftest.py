import threading
import time

import pytest

from config import DiscoveryConfig
from errors import TransportError


class FakeEksClient:
    def __init__(self, backend, region):
        self.backend = backend
        self.region = region

    def list_clusters(self):
        return self.backend.call("ListClusters", self.region)

    def describe_cluster_endpoint(self, name):
        return self.backend.call("DescribeCluster", self.region, name)


class FakeBackend:
    """
    In-memory stand-in for AwsBackend.

    ``clusters`` maps region -> list of names or an exception to raise.
    ``endpoints`` maps (region, name) -> endpoint or an exception to raise.
    ``transient`` maps (operation, region[, name]) -> number of TransportErrors
    to raise before answering normally.
    ``delays`` maps (operation, region[, name]) -> seconds to sleep first.
    """

    def __init__(self, account="111111111111", regions=(), clusters=None, endpoints=None,
                 identity_error=None, regions_error=None, client_errors=None,
                 transient=None, delays=None, gates=None):
        self.account = account
        self.regions = list(regions)
        self.clusters = clusters or {}
        self.endpoints = endpoints or {}
        self.identity_error = identity_error
        self.regions_error = regions_error
        self.client_errors = client_errors or {}
        self.transient = dict(transient or {})
        self.delays = delays or {}
        self.gates = gates or {}
        self.calls = []
        self.include_disabled = None
        self._lock = threading.Lock()

    def get_caller_identity(self):
        self.calls.append(("GetCallerIdentity",))
        if self.identity_error:
            raise self.identity_error
        return self.account

    def describe_regions(self, include_disabled=True):
        self.calls.append(("DescribeRegions",))
        self.include_disabled = include_disabled
        if self.regions_error:
            raise self.regions_error
        return list(self.regions)

    def for_region(self, region):
        if region in self.client_errors:
            raise self.client_errors[region]
        return FakeEksClient(self, region)

    def call(self, operation, *key):
        call_key = (operation,) + key
        with self._lock:
            self.calls.append(call_key)
            remaining = self.transient.get(call_key, 0)
            if remaining:
                self.transient[call_key] = remaining - 1
        if call_key in self.gates:
            self.gates[call_key].wait(5)
        if call_key in self.delays:
            time.sleep(self.delays[call_key])
        if remaining:
            raise TransportError("Rate exceeded", region=key[0], operation=operation, code="ThrottlingException")

        if operation == "ListClusters":
            outcome = self.clusters.get(key[0], [])
        else:
            outcome = self.endpoints[key]
        if isinstance(outcome, Exception):
            raise outcome
        return list(outcome) if isinstance(outcome, list) else outcome

    def count(self, *call_key):
        return sum(1 for c in self.calls if c == call_key)


@pytest.fixture
def config():
    return DiscoveryConfig(retry_backoff=0, retry_max_wait=0, max_workers=4)


@pytest.fixture
def make_backend():
    return FakeBackend
