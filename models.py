import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from errors import DiscoveryError


@dataclass(frozen=True)
class ClusterRecord:
    """An EKS cluster name together with the region it was listed in."""

    name: str
    region: str

    def __str__(self):
        return f"{self.region}/{self.name}"


@dataclass
class ClusterInventory:
    """
    Clusters found during a scan.

    ``endpoints`` runs parallel to ``records``: ``endpoints[i]`` is the API
    endpoint of ``records[i]``, or None when it has not been (or could not be)
    resolved.
    """

    records: List[ClusterRecord] = field(default_factory=list)
    endpoints: List[Optional[str]] = field(default_factory=list)

    def __len__(self):
        return len(self.records)

    def add(self, record, endpoint=None):
        self.records.append(record)
        self.endpoints.append(endpoint)

    def resolved(self):
        """Yields (record, endpoint) pairs for every resolved cluster."""
        for record, endpoint in zip(self.records, self.endpoints):
            if endpoint is not None:
                yield record, endpoint


class DiscoveryStatus(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class DiscoveryReport:
    account: str
    regions: List[str]
    clusters: ClusterInventory
    region_errors: Dict[str, DiscoveryError] = field(default_factory=dict)
    cluster_errors: Dict[ClusterRecord, DiscoveryError] = field(default_factory=dict)

    @property
    def endpoints(self):
        return [endpoint for _, endpoint in self.clusters.resolved()]

    @property
    def has_failures(self):
        return bool(self.region_errors or self.cluster_errors)

    @property
    def status(self):
        if not self.has_failures:
            return DiscoveryStatus.SUCCESS
        if self.endpoints:
            return DiscoveryStatus.PARTIAL
        return DiscoveryStatus.FAILED

    def to_dict(self):
        return {
            "account": self.account,
            "status": self.status.value,
            "regions": list(self.regions),
            "cluster_count": len(self.clusters),
            "clusters": [
                {"name": record.name, "region": record.region, "endpoint": endpoint}
                for record, endpoint in zip(self.clusters.records, self.clusters.endpoints)
            ],
            "region_errors": {
                region: error.to_dict() for region, error in self.region_errors.items()
            },
            "cluster_errors": [
                {"name": record.name, "region": record.region, "error": error.to_dict()}
                for record, error in self.cluster_errors.items()
            ],
        }
