"""Resource inventory: collection, matching and caching."""

from .models import InventorySnapshot, ResourceKind, ResourceRecord, SubnetRole
from .matcher import MarkerMatcher
from .collector import InventoryCollector
from .store import SnapshotStore, FileSnapshotStore, MemorySnapshotStore
from .public_ip import PublicIpLookup

__all__ = [
    'InventorySnapshot',
    'ResourceKind',
    'ResourceRecord',
    'SubnetRole',
    'MarkerMatcher',
    'InventoryCollector',
    'SnapshotStore',
    'FileSnapshotStore',
    'MemorySnapshotStore',
    'PublicIpLookup',
]
