import logging
import threading
from typing import Dict, List, Protocol

import boto3
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from errors import (
    AuthError,
    ConfigError,
    DiscoveryError,
    EndpointNotReadyError,
    NotFoundError,
    TransportError,
)

AUTH_ERROR_CODES = frozenset([
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "UnauthorizedException",
    "UnrecognizedClientException",
    "InvalidClientTokenId",
    "ExpiredToken",
    "ExpiredTokenException",
    "AuthFailure",
    "SignatureDoesNotMatch",
    "OptInRequired",
])

NOT_FOUND_ERROR_CODES = frozenset([
    "ResourceNotFoundException",
    "NotFoundException",
])

TRANSIENT_ERROR_CODES = frozenset([
    "Throttling",
    "ThrottlingException",
    "TooManyRequestsException",
    "RequestLimitExceeded",
    "RequestTimeout",
    "RequestTimeoutException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "InternalError",
    "InternalFailure",
    "ServerException",
])

# Covers endpoint, proxy, connect-timeout, read-timeout and connection-closed errors.
_CONNECTION_ERRORS = (BotoConnectionError, HTTPClientError)


class IdentityClient(Protocol):
    def get_caller_identity(self) -> str:
        ...


class RegionClient(Protocol):
    def describe_regions(self, include_disabled: bool = True) -> List[str]:
        ...


class RegionalEksClient(Protocol):
    region: str

    def list_clusters(self) -> List[str]:
        ...

    def describe_cluster_endpoint(self, name: str) -> str:
        ...


class EksClientFactory(Protocol):
    def for_region(self, region: str) -> RegionalEksClient:
        ...


class DiscoveryBackend(IdentityClient, RegionClient, EksClientFactory, Protocol):
    """Everything a discovery pass needs from the cloud provider."""


def translate_error(exc, region=None, operation=None):
    """Maps a botocore exception onto the discovery error taxonomy."""
    if isinstance(exc, DiscoveryError):
        return exc

    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return AuthError(str(exc), region=region, operation=operation)

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        message = error.get("Message") or str(exc)
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        if code in AUTH_ERROR_CODES or code.startswith("AccessDenied"):
            error_class = AuthError
        elif code in NOT_FOUND_ERROR_CODES:
            error_class = NotFoundError
        elif code in TRANSIENT_ERROR_CODES or status >= 500:
            error_class = TransportError
        else:
            error_class = DiscoveryError
        return error_class(message, region=region, operation=operation, code=code or None)

    if isinstance(exc, _CONNECTION_ERRORS):
        return TransportError(str(exc), region=region, operation=operation)

    if isinstance(exc, BotoCoreError):
        return ConfigError(str(exc), region=region, operation=operation)

    return DiscoveryError(str(exc), region=region, operation=operation)


class Boto3EksClient:
    """EKS operations bound to a single region."""

    def __init__(self, client, region: str):
        self.client = client
        self.region = region

    def list_clusters(self) -> List[str]:
        names = []
        try:
            paginator = self.client.get_paginator("list_clusters")
            for page in paginator.paginate():
                names.extend(page.get("clusters", []))
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, region=self.region, operation="ListClusters") from e
        return names

    def describe_cluster_endpoint(self, name: str) -> str:
        try:
            cluster = self.client.describe_cluster(name=name)["cluster"]
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, region=self.region, operation="DescribeCluster") from e

        endpoint = cluster.get("endpoint")
        if not endpoint:
            raise EndpointNotReadyError(
                f"Cluster '{name}' has no endpoint yet (status: {cluster.get('status', 'UNKNOWN')})",
                region=self.region,
                operation="DescribeCluster",
            )
        return endpoint


class AwsBackend:
    """
    boto3-backed implementation of every remote operation used by discovery.

    STS and EC2 calls go to ``config.default_region``; EKS calls go to a client
    scoped to the cluster's own region. boto3 sessions are not thread-safe, so
    clients are created under a lock and cached, one per service and region.
    Clients themselves are safe to share between worker threads.
    """

    def __init__(self, config, session=None):
        self.config = config
        try:
            self.session = session or boto3.Session(profile_name=config.profile_name)
        except BotoCoreError as e:
            raise translate_error(e, operation="CreateSession") from e
        self._clients: Dict[tuple, object] = {}
        self._lock = threading.Lock()

    def _client(self, service, region, operation):
        key = (service, region)
        with self._lock:
            if key not in self._clients:
                try:
                    self._clients[key] = self.session.client(
                        service, region_name=region, config=self.config.boto_config()
                    )
                except BotoCoreError as e:
                    raise translate_error(e, region=region, operation=operation) from e
            return self._clients[key]

    def get_caller_identity(self) -> str:
        region = self.config.default_region
        sts = self._client("sts", region, "GetCallerIdentity")
        try:
            return sts.get_caller_identity()["Account"]
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, region=region, operation="GetCallerIdentity") from e

    def describe_regions(self, include_disabled: bool = True) -> List[str]:
        region = self.config.default_region
        ec2 = self._client("ec2", region, "DescribeRegions")
        try:
            response = ec2.describe_regions(AllRegions=include_disabled)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, region=region, operation="DescribeRegions") from e
        return [r["RegionName"] for r in response.get("Regions", []) if r.get("RegionName")]

    def for_region(self, region: str) -> Boto3EksClient:
        client = self._client("eks", region, "CreateClient")
        logging.debug("Using EKS client for region %s", region)
        return Boto3EksClient(client, region)
