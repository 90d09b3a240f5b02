"""Post-deploy verification by re-collecting the inventory."""

from typing import Optional

from oculus_deploy.inventory.collector import InventoryCollector
from oculus_deploy.inventory.models import InventorySnapshot
from oculus_deploy.inventory.store import SnapshotStore
from oculus_deploy.utils.errors import ErrorContext, VerificationError
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class Verifier:
    """Refreshes the snapshot after the infrastructure tool has run."""

    def __init__(self, collector: InventoryCollector, store: SnapshotStore):
        self.collector = collector
        self.store = store

    def verify(self, previous: Optional[InventorySnapshot] = None) -> InventorySnapshot:
        """Collect and save a fresh snapshot.

        The public address recorded in ``previous`` is carried over so the
        cache keeps it.

        Raises:
            VerificationError: If collection or saving fails
        """
        try:
            snapshot = self.collector.collect()
            if previous is not None and previous.observed_public_ip:
                snapshot = snapshot.with_public_ip(
                    previous.observed_public_ip, previous.last_ip_update
                )
            self.store.save(snapshot)
        except VerificationError:
            raise
        except Exception as e:
            raise VerificationError(
                f"Post-deploy verification failed: {e}",
                context=ErrorContext(operation='verify'),
                cause=e,
            )

        logger.info(f"Verified inventory: {snapshot.total()} resources")
        return snapshot
