"""Single-pass reconciliation pipeline for deploy and destroy runs.

    START -> COLLECT -> ANALYZE -> [CONFIRM -> HALT] -> DEPLOY | DESTROY -> VERIFY -> END

Confirmation is only requested on the deploy path when something blocking
is missing; the destroy path always asks. There is no loop back into
COLLECT.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from oculus_deploy.deploy.executor import DeployExecutor
from oculus_deploy.inventory.collector import InventoryCollector
from oculus_deploy.inventory.models import InventorySnapshot, ResourceKind
from oculus_deploy.inventory.public_ip import PublicIpLookup
from oculus_deploy.inventory.store import SnapshotStore
from oculus_deploy.pipeline.verifier import Verifier
from oculus_deploy.reconcile.analyzer import analyze
from oculus_deploy.reconcile.confirmation import ConfirmationPort, NetworkSelector
from oculus_deploy.reconcile.requirements import GapReport, RequiredResourceSet
from oculus_deploy.utils.errors import VerificationError
from oculus_deploy.utils.logging import LogContext, get_logger

logger = get_logger(__name__)


class PipelineStage(Enum):
    """States of a pipeline run."""
    START = "start"
    COLLECT = "collect"
    ANALYZE = "analyze"
    CONFIRM = "confirm"
    HALT = "halt"
    DEPLOY = "deploy"
    DESTROY = "destroy"
    VERIFY = "verify"
    END = "end"


class PipelineOutcome(Enum):
    """How a run ended. Fatal errors are raised, not returned."""
    COMPLETED = "completed"
    DECLINED = "declined"


@dataclass
class PipelineResult:
    """Result of one pipeline run."""

    outcome: PipelineOutcome
    stages: List[PipelineStage] = field(default_factory=list)
    snapshot: Optional[InventorySnapshot] = None
    gap_report: Optional[GapReport] = None
    verified_snapshot: Optional[InventorySnapshot] = None
    network_id: Optional[str] = None
    stack_found: Optional[bool] = None
    verification_warning: Optional[str] = None

    def is_completed(self) -> bool:
        return self.outcome == PipelineOutcome.COMPLETED

    def is_declined(self) -> bool:
        return self.outcome == PipelineOutcome.DECLINED


class PipelineCallback:
    """Progress hooks; every method is a no-op by default."""

    def on_stage(self, stage: PipelineStage):
        pass

    def on_snapshot(self, snapshot: InventorySnapshot):
        pass

    def on_public_ip(self, address: str):
        pass

    def on_gap_report(self, report: GapReport):
        pass

    def on_stack_check(self, stack_name: str, found: bool):
        pass

    def on_verified(self, snapshot: InventorySnapshot):
        pass

    def on_warning(self, message: str):
        pass


class ReconciliationPipeline:
    """Ties collector, store, analyzer, confirmation gate, executor and
    verifier into one deploy or destroy run."""

    def __init__(
        self,
        collector: InventoryCollector,
        store: SnapshotStore,
        executor: DeployExecutor,
        confirmation: ConfirmationPort,
        required: Optional[RequiredResourceSet] = None,
        public_ip: Optional[PublicIpLookup] = None,
        network_selector: Optional[NetworkSelector] = None,
        create_token: str = 'YES',
        destroy_token: str = 'DELETE ALL',
        stack_name: str = 'OculusMiniStack',
        network_context_key: str = 'oculusVpcId',
        callback: Optional[PipelineCallback] = None
    ):
        """Initialize the pipeline.

        Args:
            collector: Inventory collector
            store: Snapshot store, written after every collection
            executor: Deploy executor
            confirmation: Operator confirmation gate
            required: Required resource set (default topology if None)
            public_ip: Public address lookup; a deploy run requires it when given
            network_selector: Used when the operator asks to pick a network
            create_token: Token confirming a deploy
            destroy_token: Token confirming a destroy
            stack_name: Stack checked before destroying
            network_context_key: Context parameter naming a reused network
            callback: Progress hooks
        """
        self.collector = collector
        self.store = store
        self.executor = executor
        self.confirmation = confirmation
        self.required = required or RequiredResourceSet.default()
        self.public_ip = public_ip
        self.network_selector = network_selector
        self.create_token = create_token
        self.destroy_token = destroy_token
        self.stack_name = stack_name
        self.network_context_key = network_context_key
        self.callback = callback or PipelineCallback()
        self.verifier = Verifier(collector, store)

    def run_deploy(
        self,
        reuse_network: Optional[str] = None,
        select_network: bool = False
    ) -> PipelineResult:
        """Bring the environment up to the required resource set.

        Args:
            reuse_network: Existing VPC id to deploy into
            select_network: Ask the network selector which VPC to reuse

        Returns:
            PipelineResult, COMPLETED or DECLINED

        Raises:
            PreconditionError: If the public address cannot be determined
            SnapshotStoreError: If the cache cannot be written
            ToolExecutionError: If dependency install or deploy fails
            SynthesisError: If synthesis fails on every attempt
            VerificationError: If the post-deploy refresh fails
        """
        result = PipelineResult(outcome=PipelineOutcome.COMPLETED)
        self._enter(result, PipelineStage.START)

        snapshot = self._collect(result)

        if self.public_ip is not None:
            address = self.public_ip.fetch()
            snapshot = snapshot.with_public_ip(address)
            self.store.save(snapshot)
            result.snapshot = snapshot
            self.callback.on_public_ip(address)

        network_id = reuse_network
        if network_id is None and select_network and self.network_selector is not None:
            network_id = self.network_selector.select(snapshot.of_kind(ResourceKind.NETWORK))
        if network_id and network_id not in {n.id for n in snapshot.of_kind(ResourceKind.NETWORK)}:
            message = f"Network {network_id} is not in the project inventory"
            logger.warning(message)
            self.callback.on_warning(message)
        result.network_id = network_id

        self._enter(result, PipelineStage.ANALYZE)
        with LogContext(logger, stage=PipelineStage.ANALYZE.value):
            report = analyze(snapshot, self.required, reuse_network=bool(network_id))
        result.gap_report = report
        self.callback.on_gap_report(report)

        if not report.all_present:
            self._enter(result, PipelineStage.CONFIRM)
            if not self.confirmation.confirm(self.create_prompt(report, network_id), self.create_token):
                return self._halt(result)

        context = self._context(network_id)
        self._enter(result, PipelineStage.DEPLOY)
        with LogContext(logger, stage=PipelineStage.DEPLOY.value):
            self.executor.prepare()
            self.executor.synthesize(context)
            self.executor.deploy(context)

        self._enter(result, PipelineStage.VERIFY)
        with LogContext(logger, stage=PipelineStage.VERIFY.value):
            result.verified_snapshot = self.verifier.verify(previous=snapshot)
        self.callback.on_verified(result.verified_snapshot)

        self._enter(result, PipelineStage.END)
        return result

    def run_destroy(self) -> PipelineResult:
        """Delete the stack after the stronger confirmation.

        A failed refresh afterwards is expected when resources are gone and
        is reported as a warning.

        Raises:
            SnapshotStoreError: If the cache cannot be written
            ToolExecutionError: If dependency install or destroy fails
        """
        result = PipelineResult(outcome=PipelineOutcome.COMPLETED)
        self._enter(result, PipelineStage.START)

        snapshot = self._collect(result)

        found = self.executor.stack_exists(self.stack_name)
        result.stack_found = found
        self.callback.on_stack_check(self.stack_name, found)
        if not found:
            message = f"Stack {self.stack_name} not found in the CDK app; destroy will still be attempted"
            logger.warning(message)
            self.callback.on_warning(message)

        self._enter(result, PipelineStage.ANALYZE)
        with LogContext(logger, stage=PipelineStage.ANALYZE.value):
            result.gap_report = analyze(snapshot, self.required)
        self.callback.on_gap_report(result.gap_report)

        self._enter(result, PipelineStage.CONFIRM)
        if not self.confirmation.confirm(self.destroy_prompt(snapshot), self.destroy_token):
            return self._halt(result)

        self._enter(result, PipelineStage.DESTROY)
        with LogContext(logger, stage=PipelineStage.DESTROY.value):
            self.executor.prepare()
            self.executor.destroy()

        self._enter(result, PipelineStage.VERIFY)
        try:
            with LogContext(logger, stage=PipelineStage.VERIFY.value):
                result.verified_snapshot = self.verifier.verify(previous=snapshot)
            self.callback.on_verified(result.verified_snapshot)
        except VerificationError as e:
            result.verification_warning = e.message
            logger.warning(f"Verification after destroy failed (expected when resources are gone): {e.message}")
            self.callback.on_warning(e.message)

        self._enter(result, PipelineStage.END)
        return result

    def create_prompt(self, report: GapReport, network_id: Optional[str] = None) -> str:
        lines = ["The following required resources are missing and will be created:", ""]
        for status in report.missing:
            lines.append(f"  • {status.name}: {status.observed}/{status.required} found")
        lines.append("")
        if network_id:
            lines.append(f"Deploying into existing network {network_id}.")
        lines.append(f"Stack {self.stack_name} will be deployed with the CDK.")
        return "\n".join(lines)

    def destroy_prompt(self, snapshot: InventorySnapshot) -> str:
        lines = [
            f"This will DELETE stack {self.stack_name} and every resource it owns.",
            "Database contents and bucket objects will be lost.",
            "",
            "Resources currently in the inventory:",
        ]
        for kind, count in snapshot.counts().items():
            if count:
                lines.append(f"  • {kind.value}: {count}")
        if not snapshot.total():
            lines.append("  (none)")
        return "\n".join(lines)

    def _collect(self, result: PipelineResult) -> InventorySnapshot:
        self._enter(result, PipelineStage.COLLECT)
        with LogContext(logger, stage=PipelineStage.COLLECT.value):
            snapshot = self.collector.collect()
        self.store.save(snapshot)
        result.snapshot = snapshot
        self.callback.on_snapshot(snapshot)
        return snapshot

    def _context(self, network_id: Optional[str]) -> Dict[str, str]:
        if not network_id:
            return {}
        return {self.network_context_key: network_id}

    def _enter(self, result: PipelineResult, stage: PipelineStage):
        result.stages.append(stage)
        logger.debug(f"Pipeline stage: {stage.value}")
        self.callback.on_stage(stage)

    def _halt(self, result: PipelineResult) -> PipelineResult:
        logger.info("Operator declined; no changes made")
        result.outcome = PipelineOutcome.DECLINED
        self._enter(result, PipelineStage.HALT)
        return result
