"""
Property-based tests for gap analysis and the confirmation gate.

Properties:
*For any* snapshot and requirement set, analysis is deterministic and a
requirement is present exactly when enough accepted records exist.
*For any* answer that is not the token (after trimming and case folding),
the gate declines.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from oculus_deploy.inventory.models import (
    InventorySnapshot,
    NetworkRecord,
    ObjectStoreBucketRecord,
    ResourceKind,
    SubnetRecord,
    SubnetRole,
)
from oculus_deploy.reconcile.analyzer import analyze
from oculus_deploy.reconcile.confirmation import token_matches
from oculus_deploy.reconcile.requirements import RequiredResourceSet, Requirement

# =============================================================================
# Strategies
# =============================================================================

KINDS = [ResourceKind.NETWORK, ResourceKind.SUBNET, ResourceKind.OBJECT_STORE_BUCKET]


@st.composite
def snapshots(draw):
    networks = draw(st.integers(min_value=0, max_value=3))
    subnet_roles = draw(st.lists(st.sampled_from(list(SubnetRole)), max_size=6))
    buckets = draw(st.integers(min_value=0, max_value=3))
    return InventorySnapshot(
        region="us-east-1",
        resources={
            ResourceKind.NETWORK: [NetworkRecord(id=f"vpc-{i}") for i in range(networks)],
            ResourceKind.SUBNET: [
                SubnetRecord(id=f"subnet-{i}", role=role) for i, role in enumerate(subnet_roles)
            ],
            ResourceKind.OBJECT_STORE_BUCKET: [
                ObjectStoreBucketRecord(id=f"bucket-{i}") for i in range(buckets)
            ],
        },
    )


@st.composite
def requirement_sets(draw):
    count = draw(st.integers(min_value=1, max_value=5))
    requirements = []
    for index in range(count):
        kind = draw(st.sampled_from(KINDS))
        role = draw(st.sampled_from([None] + list(SubnetRole))) if kind == ResourceKind.SUBNET else None
        requirements.append(Requirement(
            name=f"req-{index}",
            kind=kind,
            min_count=draw(st.integers(min_value=1, max_value=4)),
            role=role,
            new_network_only=draw(st.booleans()),
        ))
    return RequiredResourceSet(requirements)


# =============================================================================
# Gap analysis
# =============================================================================

@given(snapshot=snapshots(), required=requirement_sets(), reuse=st.booleans())
@settings(max_examples=100)
def test_analysis_is_deterministic(snapshot, required, reuse):
    assert analyze(snapshot, required, reuse) == analyze(snapshot, required, reuse)


@given(snapshot=snapshots(), required=requirement_sets())
@settings(max_examples=100)
def test_presence_matches_counts(snapshot, required):
    report = analyze(snapshot, required)

    for requirement, status in zip(required, report.statuses):
        accepted = sum(1 for r in snapshot.of_kind(requirement.kind) if requirement.accepts(r))
        assert status.present == (accepted >= requirement.min_count)


@given(snapshot=snapshots(), required=requirement_sets(), reuse=st.booleans())
@settings(max_examples=100)
def test_missing_follows_kind_order(snapshot, required, reuse):
    report = analyze(snapshot, required, reuse)

    positions = [status.kind.position for status in report.missing]
    assert positions == sorted(positions)
    assert report.all_present == (not report.missing)


@given(snapshot=snapshots(), required=requirement_sets())
@settings(max_examples=100)
def test_reusing_a_network_never_adds_blockers(snapshot, required):
    fresh = set(analyze(snapshot, required).missing_names)
    reused = set(analyze(snapshot, required, reuse_network=True).missing_names)

    assert reused <= fresh


# =============================================================================
# Confirmation tokens
# =============================================================================

@given(answer=st.text(max_size=20))
@settings(max_examples=200)
def test_only_the_create_token_confirms(answer):
    assert token_matches(answer, "YES") == (answer.strip().casefold() == "yes")


@given(answer=st.text(max_size=20))
@settings(max_examples=200)
def test_only_the_destroy_token_confirms(answer):
    assert token_matches(answer, "DELETE ALL") == (answer.strip().casefold() == "delete all")


@given(padding=st.text(alphabet=" \t\n", max_size=4))
def test_whitespace_padding_is_ignored(padding):
    assert token_matches(padding + "Delete All" + padding, "DELETE ALL")
    assert not token_matches(padding, "YES")
