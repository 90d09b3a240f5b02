"""Unit tests for the reconciliation pipeline."""

import pytest

from oculus_deploy.deploy.executor import DeployExecutor
from oculus_deploy.inventory.models import ResourceKind
from oculus_deploy.pipeline.runner import (
    PipelineCallback,
    PipelineOutcome,
    PipelineStage,
    ReconciliationPipeline,
)
from oculus_deploy.reconcile.requirements import RequiredResourceSet, Requirement
from oculus_deploy.utils.errors import (
    PreconditionError,
    SynthesisError,
    ToolExecutionError,
    VerificationError,
)

from conftest import (
    FakeBackend,
    FixedPublicIp,
    ScriptedConfirmation,
    StaticCollector,
    empty_snapshot,
    full_snapshot,
)


class RecordingCallback(PipelineCallback):
    def __init__(self):
        self.events = []

    def on_stage(self, stage):
        self.events.append(("stage", stage))

    def on_warning(self, message):
        self.events.append(("warning", message))

    def on_gap_report(self, report):
        self.events.append(("gap", report))


class FailingPublicIp:
    def fetch(self):
        raise PreconditionError("Public IP lookup timed out after 10s")


def five_requirements():
    return RequiredResourceSet([
        Requirement("network", ResourceKind.NETWORK),
        Requirement("subnets", ResourceKind.SUBNET, 2),
        Requirement("database", ResourceKind.DATABASE_INSTANCE),
        Requirement("proxy", ResourceKind.DATABASE_PROXY),
        Requirement("bucket", ResourceKind.OBJECT_STORE_BUCKET),
    ])


def make_pipeline(collector, store, backend, confirmation, public_ip=None, **kwargs):
    executor = DeployExecutor(backend, synth_attempts=3, synth_delay=5.0, sleep=lambda _: None)
    return ReconciliationPipeline(
        collector=collector,
        store=store,
        executor=executor,
        confirmation=confirmation,
        public_ip=public_ip,
        **kwargs
    )


# =============================================================================
# Deploy path
# =============================================================================

def test_declined_deploy_makes_no_tool_calls(memory_store):
    backend = FakeBackend()
    confirmation = ScriptedConfirmation("NO")
    pipeline = make_pipeline(StaticCollector(empty_snapshot()), memory_store, backend, confirmation,
                             public_ip=FixedPublicIp(), required=five_requirements())

    result = pipeline.run_deploy()

    assert result.outcome == PipelineOutcome.DECLINED
    assert result.is_declined()
    assert backend.calls == []
    assert result.gap_report.missing_kinds == [
        ResourceKind.NETWORK,
        ResourceKind.SUBNET,
        ResourceKind.DATABASE_INSTANCE,
        ResourceKind.DATABASE_PROXY,
        ResourceKind.OBJECT_STORE_BUCKET,
    ]
    assert result.stages[-1] == PipelineStage.HALT
    assert confirmation.tokens == ["YES"]


def test_confirmed_deploy_runs_tools_and_verifies(memory_store):
    backend = FakeBackend()
    collector = StaticCollector(empty_snapshot(), full_snapshot())
    pipeline = make_pipeline(collector, memory_store, backend, ScriptedConfirmation("yes"),
                             public_ip=FixedPublicIp())

    result = pipeline.run_deploy()

    assert result.is_completed()
    assert backend.call_names() == ["prepare", "synth", "deploy"]
    assert result.stages == [
        PipelineStage.START,
        PipelineStage.COLLECT,
        PipelineStage.ANALYZE,
        PipelineStage.CONFIRM,
        PipelineStage.DEPLOY,
        PipelineStage.VERIFY,
        PipelineStage.END,
    ]
    assert collector.calls == 2
    assert result.verified_snapshot.total() == full_snapshot().total()


def test_public_ip_saved_and_carried_into_verified_snapshot(memory_store):
    pipeline = make_pipeline(StaticCollector(empty_snapshot(), full_snapshot()), memory_store,
                             FakeBackend(), ScriptedConfirmation("YES"),
                             public_ip=FixedPublicIp("198.51.100.7"))

    result = pipeline.run_deploy()

    assert result.snapshot.observed_public_ip == "198.51.100.7"
    assert result.verified_snapshot.observed_public_ip == "198.51.100.7"
    assert memory_store.load().observed_public_ip == "198.51.100.7"
    # collect, public IP, verify
    assert memory_store.saves == 3


def test_all_present_deploys_without_prompt(memory_store):
    backend = FakeBackend()
    confirmation = ScriptedConfirmation()
    pipeline = make_pipeline(StaticCollector(full_snapshot()), memory_store, backend, confirmation,
                             public_ip=FixedPublicIp())

    result = pipeline.run_deploy()

    assert result.is_completed()
    assert confirmation.prompts == []
    assert PipelineStage.CONFIRM not in result.stages
    assert backend.call_names() == ["prepare", "synth", "deploy"]


def test_repeated_run_on_full_environment_is_stable(memory_store):
    collector = StaticCollector(full_snapshot())
    backend = FakeBackend()
    pipeline = make_pipeline(collector, memory_store, backend, ScriptedConfirmation(),
                             public_ip=FixedPublicIp())

    first = pipeline.run_deploy()
    second = pipeline.run_deploy()

    assert first.gap_report == second.gap_report
    assert first.verified_snapshot.counts() == second.verified_snapshot.counts()


def test_public_ip_failure_aborts_before_changes(memory_store):
    backend = FakeBackend()
    confirmation = ScriptedConfirmation("YES")
    pipeline = make_pipeline(StaticCollector(empty_snapshot()), memory_store, backend, confirmation,
                             public_ip=FailingPublicIp())

    with pytest.raises(PreconditionError):
        pipeline.run_deploy()

    assert backend.calls == []
    assert confirmation.prompts == []
    # The inventory itself was still cached
    assert memory_store.saves == 1


def test_reuse_network_passes_context(memory_store):
    backend = FakeBackend()
    snapshot = full_snapshot()
    vpc_id = snapshot.first(ResourceKind.NETWORK).id
    pipeline = make_pipeline(StaticCollector(snapshot), memory_store, backend, ScriptedConfirmation())

    result = pipeline.run_deploy(reuse_network=vpc_id)

    assert result.network_id == vpc_id
    assert ("synth", {"oculusVpcId": vpc_id}) in backend.calls
    assert ("deploy", {"oculusVpcId": vpc_id}) in backend.calls


def test_reuse_unknown_network_warns(memory_store):
    callback = RecordingCallback()
    pipeline = make_pipeline(StaticCollector(full_snapshot()), memory_store, FakeBackend(),
                             ScriptedConfirmation("YES"), callback=callback)

    pipeline.run_deploy(reuse_network="vpc-elsewhere")

    assert any(kind == "warning" and "vpc-elsewhere" in message
               for kind, message in callback.events)


def test_selected_network_is_used(memory_store):
    class PickFirst:
        def select(self, networks):
            return networks[0].id

    backend = FakeBackend()
    pipeline = make_pipeline(StaticCollector(full_snapshot()), memory_store, backend,
                             ScriptedConfirmation(), network_selector=PickFirst())

    result = pipeline.run_deploy(select_network=True)

    assert result.network_id == full_snapshot().first(ResourceKind.NETWORK).id


def test_synthesis_failure_stops_before_deploy(memory_store):
    backend = FakeBackend(synth_results=[False, False, False])
    pipeline = make_pipeline(StaticCollector(empty_snapshot()), memory_store, backend,
                             ScriptedConfirmation("YES"))

    with pytest.raises(SynthesisError):
        pipeline.run_deploy()

    assert "deploy" not in backend.call_names()


def test_deploy_failure_propagates(memory_store):
    pipeline = make_pipeline(StaticCollector(empty_snapshot()), memory_store,
                             FakeBackend(deploy_ok=False), ScriptedConfirmation("YES"))
    with pytest.raises(ToolExecutionError):
        pipeline.run_deploy()


def test_verify_failure_after_deploy_is_fatal(memory_store):
    collector = StaticCollector(empty_snapshot(), RuntimeError("throttled"))
    pipeline = make_pipeline(collector, memory_store, FakeBackend(), ScriptedConfirmation("YES"))

    with pytest.raises(VerificationError):
        pipeline.run_deploy()


def test_create_prompt_lists_missing(memory_store):
    pipeline = make_pipeline(StaticCollector(empty_snapshot()), memory_store, FakeBackend(),
                             ScriptedConfirmation("NO"), required=five_requirements())

    pipeline.run_deploy()

    prompt = pipeline.confirmation.prompts[0]
    assert "network: 0/1 found" in prompt
    assert "subnets: 0/2 found" in prompt


# =============================================================================
# Destroy path
# =============================================================================

def test_destroy_declined(memory_store):
    backend = FakeBackend()
    confirmation = ScriptedConfirmation("YES")
    pipeline = make_pipeline(StaticCollector(full_snapshot()), memory_store, backend, confirmation)

    result = pipeline.run_destroy()

    assert result.is_declined()
    assert confirmation.tokens == ["DELETE ALL"]
    assert "destroy" not in backend.call_names()
    assert "prepare" not in backend.call_names()


def test_destroy_confirmed(memory_store):
    backend = FakeBackend()
    pipeline = make_pipeline(StaticCollector(full_snapshot(), empty_snapshot()), memory_store, backend,
                             ScriptedConfirmation("delete all"))

    result = pipeline.run_destroy()

    assert result.is_completed()
    assert result.stack_found is True
    assert backend.call_names() == ["list", "prepare", "destroy"]
    assert result.verified_snapshot.total() == 0
    assert PipelineStage.DESTROY in result.stages


def test_destroy_always_asks_even_when_nothing_missing(memory_store):
    confirmation = ScriptedConfirmation("DELETE ALL")
    pipeline = make_pipeline(StaticCollector(full_snapshot()), memory_store, FakeBackend(), confirmation)

    pipeline.run_destroy()

    assert len(confirmation.prompts) == 1
    assert "OculusMiniStack" in confirmation.prompts[0]


def test_destroy_verification_failure_is_warning(memory_store):
    callback = RecordingCallback()
    collector = StaticCollector(full_snapshot(), RuntimeError("vpc gone"))
    pipeline = make_pipeline(collector, memory_store, FakeBackend(), ScriptedConfirmation("DELETE ALL"),
                             callback=callback)

    result = pipeline.run_destroy()

    assert result.is_completed()
    assert "vpc gone" in result.verification_warning
    assert result.stages[-1] == PipelineStage.END


def test_destroy_missing_stack_warns_and_continues(memory_store):
    callback = RecordingCallback()
    backend = FakeBackend(stacks=["SomethingElse"])
    pipeline = make_pipeline(StaticCollector(full_snapshot()), memory_store, backend,
                             ScriptedConfirmation("DELETE ALL"), callback=callback)

    result = pipeline.run_destroy()

    assert result.stack_found is False
    assert "destroy" in backend.call_names()
    assert any(kind == "warning" for kind, _ in callback.events)


def test_custom_tokens(memory_store):
    confirmation = ScriptedConfirmation("proceed")
    pipeline = make_pipeline(StaticCollector(empty_snapshot()), memory_store, FakeBackend(), confirmation,
                             create_token="PROCEED", destroy_token="DESTROY EVERYTHING")

    assert pipeline.run_deploy().is_completed()
    assert confirmation.tokens == ["PROCEED"]
