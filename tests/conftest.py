"""Pytest configuration and shared fixtures."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from oculus_deploy.deploy.backend import DeployBackend, ToolResult
from oculus_deploy.inventory.models import (
    ApiEndpointGroupRecord,
    DatabaseInstanceRecord,
    DatabaseProxyRecord,
    DistributionRecord,
    InventorySnapshot,
    ManagedSecretRecord,
    NetworkAclRecord,
    NetworkRecord,
    ObjectStoreBucketRecord,
    ResourceKind,
    RouteTableRecord,
    SubnetRecord,
    SubnetRole,
)
from oculus_deploy.inventory.store import MemorySnapshotStore
from oculus_deploy.reconcile.confirmation import ConfirmationPort


# =============================================================================
# Environment Fixtures
# =============================================================================

@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    monkeypatch.delenv("AWS_PROFILE", raising=False)


# =============================================================================
# Test Doubles
# =============================================================================

class ScriptedConfirmation(ConfirmationPort):
    """Answers prompts from a fixed list and records what was asked."""

    def __init__(self, *answers: Optional[str]):
        self.answers = list(answers)
        self.prompts: List[str] = []
        self.tokens: List[str] = []

    def confirm(self, prompt: str, required_token: str) -> bool:
        from oculus_deploy.reconcile.confirmation import token_matches

        self.prompts.append(prompt)
        self.tokens.append(required_token)
        answer = self.answers.pop(0) if self.answers else None
        return token_matches(answer, required_token)


class FakeBackend(DeployBackend):
    """Backend returning scripted results and recording every call."""

    def __init__(
        self,
        synth_results: Optional[List[bool]] = None,
        deploy_ok: bool = True,
        destroy_ok: bool = True,
        prepare_results: Optional[Dict[bool, bool]] = None,
        lockfile: bool = True,
        stacks: Optional[List[str]] = None,
        list_ok: bool = True
    ):
        self.synth_results = list(synth_results or [True])
        self.deploy_ok = deploy_ok
        self.destroy_ok = destroy_ok
        self.prepare_results = prepare_results or {True: True, False: True}
        self.lockfile = lockfile
        self.stacks = stacks if stacks is not None else ['OculusMiniStack']
        self.list_ok = list_ok
        self.calls: List[tuple] = []

    def _result(self, name: str, success: bool, output: str = '') -> ToolResult:
        return ToolResult(
            command=['fake', name],
            success=success,
            returncode=0 if success else 1,
            output=output or (f"{name} ok" if success else f"{name} failed"),
        )

    def has_lockfile(self) -> bool:
        return self.lockfile

    def prepare(self, clean: bool = True) -> ToolResult:
        self.calls.append(('prepare', clean))
        return self._result('ci' if clean else 'i', self.prepare_results[clean])

    def synthesize(self, context=None) -> ToolResult:
        self.calls.append(('synth', dict(context or {})))
        success = self.synth_results.pop(0) if self.synth_results else True
        return self._result('synth', success)

    def deploy(self, context=None) -> ToolResult:
        self.calls.append(('deploy', dict(context or {})))
        return self._result('deploy', self.deploy_ok)

    def destroy(self, context=None) -> ToolResult:
        self.calls.append(('destroy', dict(context or {})))
        return self._result('destroy', self.destroy_ok)

    def list_stacks(self) -> ToolResult:
        self.calls.append(('list', None))
        return self._result('list', self.list_ok, "\n".join(self.stacks))

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]


class StaticCollector:
    """Collector returning queued snapshots, one per call."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.calls = 0

    def collect(self) -> InventorySnapshot:
        self.calls += 1
        item = self.snapshots.pop(0) if len(self.snapshots) > 1 else self.snapshots[0]
        if isinstance(item, Exception):
            raise item
        return item


class FixedPublicIp:
    """Public IP lookup returning a fixed address."""

    def __init__(self, address: str = "203.0.113.10"):
        self.address = address
        self.calls = 0

    def fetch(self) -> str:
        self.calls += 1
        return self.address


class RecordingRunner:
    """Command runner double: records (command, cwd) and runs optional side effects.

    ``effects`` maps a command word (e.g. "tsc") to a callable taking the
    working directory; ``fail_on`` names a word whose command fails.
    """

    def __init__(self, effects=None, fail_on: Optional[str] = None):
        self.effects = effects or {}
        self.fail_on = fail_on
        self.calls: List[tuple] = []

    def run(self, command, cwd=None) -> ToolResult:
        command = list(command)
        self.calls.append((command, cwd))
        if self.fail_on in command:
            return ToolResult(command=command, success=False, returncode=1,
                              output=f"{' '.join(command)} failed")
        for word, effect in self.effects.items():
            if word in command:
                effect(Path(cwd))
        return ToolResult(command=command, success=True, returncode=0, output="ok")

    def commands(self) -> List[List[str]]:
        return [command for command, _ in self.calls]


# =============================================================================
# Snapshot Builders
# =============================================================================

def empty_snapshot(region: str = "us-east-1") -> InventorySnapshot:
    return InventorySnapshot(region=region, captured_at=datetime(2024, 1, 1, 12, 0, 0))


def full_snapshot(region: str = "us-east-1") -> InventorySnapshot:
    """Snapshot holding everything the default requirement set asks for."""
    vpc = "vpc-0123456789abcdef0"
    return InventorySnapshot(
        region=region,
        captured_at=datetime(2024, 1, 1, 12, 0, 0),
        resources={
            ResourceKind.NETWORK: [NetworkRecord(id=vpc, name="oculus-vpc", cidr_block="10.0.0.0/16")],
            ResourceKind.SUBNET: [
                SubnetRecord(id="subnet-pub1", vpc_id=vpc, role=SubnetRole.PUBLIC),
                SubnetRecord(id="subnet-prv1", vpc_id=vpc, role=SubnetRole.PRIVATE),
                SubnetRecord(id="subnet-iso1", vpc_id=vpc, role=SubnetRole.ISOLATED),
            ],
            ResourceKind.ROUTE_TABLE: [RouteTableRecord(id="rtb-1", vpc_id=vpc, main=True)],
            ResourceKind.NETWORK_ACL: [NetworkAclRecord(id="acl-1", vpc_id=vpc, is_default=True)],
            ResourceKind.DATABASE_INSTANCE: [
                DatabaseInstanceRecord(id="oculus-db", engine="postgres", status="available")
            ],
            ResourceKind.DATABASE_PROXY: [
                DatabaseProxyRecord(
                    id="oculus-proxy",
                    name="oculus-proxy",
                    endpoint="oculus-proxy.proxy-abc123.us-east-1.rds.amazonaws.com",
                )
            ],
            ResourceKind.API_ENDPOINT_GROUP: [
                ApiEndpointGroupRecord(id="abc123", name="oculus-api", stage_name="prod",
                                       has_prod_deployment=True)
            ],
            ResourceKind.MANAGED_SECRET: [
                ManagedSecretRecord(
                    id="arn:aws:secretsmanager:us-east-1:123456789012:secret:oculus_db_secret-AbCd",
                    name="oculus_db_secret",
                    arn="arn:aws:secretsmanager:us-east-1:123456789012:secret:oculus_db_secret-AbCd",
                )
            ],
            ResourceKind.OBJECT_STORE_BUCKET: [ObjectStoreBucketRecord(id="oculus-site-bucket")],
            ResourceKind.CONTENT_DELIVERY_DISTRIBUTION: [
                DistributionRecord(id="E1ABCDEF", name="oculus site", domain_name="d111.cloudfront.net")
            ],
        },
    )


@pytest.fixture
def empty():
    return empty_snapshot()


@pytest.fixture
def full():
    return full_snapshot()


@pytest.fixture
def memory_store():
    return MemorySnapshotStore()
