import json

from common import to_json
from errors import AuthError, NotFoundError
from models import ClusterInventory, ClusterRecord, DiscoveryReport, DiscoveryStatus


def make_inventory(*entries):
    inventory = ClusterInventory()
    for name, region, endpoint in entries:
        inventory.add(ClusterRecord(name, region), endpoint)
    return inventory


def test_cluster_records_are_hashable_by_name_and_region():
    assert ClusterRecord("a", "us-east-1") == ClusterRecord("a", "us-east-1")
    assert len({ClusterRecord("a", "us-east-1"), ClusterRecord("a", "eu-west-1")}) == 2
    assert str(ClusterRecord("a", "eu-west-1")) == "eu-west-1/a"


def test_resolved_skips_unresolved_entries():
    inventory = make_inventory(
        ("a", "us-east-1", "https://A.eks.amazonaws.com"),
        ("b", "us-east-1", None),
    )
    assert list(inventory.resolved()) == [(ClusterRecord("a", "us-east-1"), "https://A.eks.amazonaws.com")]
    assert len(inventory) == 2


def test_status():
    ok = make_inventory(("a", "us-east-1", "https://A.eks.amazonaws.com"))
    empty = ClusterInventory()

    assert DiscoveryReport("1", ["us-east-1"], ok).status is DiscoveryStatus.SUCCESS
    assert DiscoveryReport("1", [], empty).status is DiscoveryStatus.SUCCESS
    assert DiscoveryReport(
        "1", ["us-east-1", "us-west-2"], ok, region_errors={"us-west-2": AuthError("denied")}
    ).status is DiscoveryStatus.PARTIAL
    assert DiscoveryReport(
        "1", ["us-west-2"], empty, region_errors={"us-west-2": AuthError("denied")}
    ).status is DiscoveryStatus.FAILED


def test_report_serialises_to_json():
    inventory = make_inventory(
        ("a", "us-east-1", "https://A.eks.amazonaws.com"),
        ("b", "us-east-1", None),
    )
    report = DiscoveryReport(
        account="111111111111",
        regions=["us-east-1", "us-west-2"],
        clusters=inventory,
        region_errors={"us-west-2": AuthError("denied", region="us-west-2", code="AccessDeniedException")},
        cluster_errors={ClusterRecord("b", "us-east-1"): NotFoundError("gone", region="us-east-1")},
    )

    data = json.loads(to_json(report))

    assert data["account"] == "111111111111"
    assert data["status"] == "partial"
    assert data["cluster_count"] == 2
    assert data["clusters"][0] == {"name": "a", "region": "us-east-1", "endpoint": "https://A.eks.amazonaws.com"}
    assert data["region_errors"]["us-west-2"]["type"] == "AuthError"
    assert data["region_errors"]["us-west-2"]["code"] == "AccessDeniedException"
    assert data["cluster_errors"] == [{
        "name": "b",
        "region": "us-east-1",
        "error": {"type": "NotFoundError", "message": "gone", "region": "us-east-1", "operation": None, "code": None},
    }]
