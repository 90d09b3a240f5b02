"""Unit tests for post-run verification."""

from datetime import datetime

import pytest

from oculus_deploy.inventory.store import MemorySnapshotStore
from oculus_deploy.pipeline.verifier import Verifier
from oculus_deploy.utils.errors import SnapshotStoreError, VerificationError

from conftest import StaticCollector, empty_snapshot, full_snapshot


class BrokenStore(MemorySnapshotStore):
    def save(self, snapshot):
        raise SnapshotStoreError("disk full")


def test_verify_saves_fresh_snapshot():
    store = MemorySnapshotStore()
    snapshot = Verifier(StaticCollector(full_snapshot()), store).verify()

    assert store.load() is snapshot
    assert snapshot.observed_public_ip is None


def test_verify_carries_public_ip():
    observed = datetime(2024, 3, 1, 9, 30)
    previous = empty_snapshot().with_public_ip("203.0.113.10", observed)

    snapshot = Verifier(StaticCollector(full_snapshot()), MemorySnapshotStore()).verify(previous)

    assert snapshot.observed_public_ip == "203.0.113.10"
    assert snapshot.last_ip_update == observed


def test_collection_failure_wrapped():
    with pytest.raises(VerificationError) as exc_info:
        Verifier(StaticCollector(RuntimeError("throttled")), MemorySnapshotStore()).verify()
    assert isinstance(exc_info.value.cause, RuntimeError)


def test_store_failure_wrapped():
    with pytest.raises(VerificationError):
        Verifier(StaticCollector(full_snapshot()), BrokenStore()).verify()
