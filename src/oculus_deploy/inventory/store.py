"""Persistence of the latest inventory snapshot."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from oculus_deploy.inventory.models import InventorySnapshot
from oculus_deploy.utils.errors import SnapshotStoreError
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class SnapshotStore(ABC):
    """Holds at most one snapshot: the most recently saved one."""

    @abstractmethod
    def load(self) -> Optional[InventorySnapshot]:
        """Return the stored snapshot, or None when there is no usable one."""

    @abstractmethod
    def save(self, snapshot: InventorySnapshot) -> None:
        """Replace the stored snapshot.

        Raises:
            SnapshotStoreError: If the snapshot cannot be written
        """


class FileSnapshotStore(SnapshotStore):
    """JSON file store; each save overwrites the previous content."""

    def __init__(self, path: str):
        """
        Initialize the store.

        Args:
            path: Path to the cache file (e.g. aws-inventory.json)
        """
        self.path = Path(path)

    def load(self) -> Optional[InventorySnapshot]:
        if not self.path.exists():
            return None

        try:
            with open(self.path, "r") as f:
                data = json.load(f)
            return InventorySnapshot.from_dict(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable inventory cache {self.path}: {e}")
            return None

    def save(self, snapshot: InventorySnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        try:
            # Write to temporary file first
            temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(temp_path, "w") as f:
                json.dump(snapshot.to_dict(), f, indent=2)

            # Atomic rename
            temp_path.replace(self.path)
        except OSError as e:
            raise SnapshotStoreError(
                f"Failed to save inventory cache {self.path}: {e}",
                cause=e,
                suggestions=["Check that the working directory is writable"]
            )

        logger.debug(f"Saved inventory snapshot to {self.path}")


class MemorySnapshotStore(SnapshotStore):
    """In-process store, used when no cache file is wanted."""

    def __init__(self, snapshot: Optional[InventorySnapshot] = None):
        self.snapshot = snapshot
        self.saves = 0

    def load(self) -> Optional[InventorySnapshot]:
        return self.snapshot

    def save(self, snapshot: InventorySnapshot) -> None:
        self.snapshot = snapshot
        self.saves += 1
