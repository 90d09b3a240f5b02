"""Gap analysis between the required resource set and a snapshot."""

from oculus_deploy.inventory.models import InventorySnapshot
from oculus_deploy.reconcile.requirements import GapReport, RequiredResourceSet, RequirementStatus
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)


def analyze(
    snapshot: InventorySnapshot,
    required: RequiredResourceSet,
    reuse_network: bool = False
) -> GapReport:
    """Classify every requirement as present or missing.

    Presence is count based: a requirement holds when at least ``min_count``
    accepted records of its kind are in the snapshot. The result depends only
    on the arguments.

    Args:
        snapshot: Latest inventory snapshot
        required: Requirements to check
        reuse_network: When True, requirements that only apply to a freshly
            created network are reported but do not block

    Returns:
        GapReport for this run
    """
    statuses = []
    for requirement in required:
        observed = sum(1 for record in snapshot.of_kind(requirement.kind)
                       if requirement.accepts(record))
        statuses.append(RequirementStatus(
            name=requirement.name,
            kind=requirement.kind,
            required=requirement.min_count,
            observed=observed,
            present=observed >= requirement.min_count,
            blocking=not (reuse_network and requirement.new_network_only),
        ))

    report = GapReport(statuses=tuple(statuses), reuse_network=reuse_network)
    if report.all_present:
        logger.info("All required resources are present", extra={'operation': 'analyze'})
    else:
        logger.info(f"Missing: {', '.join(report.missing_names)}", extra={'operation': 'analyze'})
    return report
