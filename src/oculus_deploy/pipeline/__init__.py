"""Reconciliation pipeline."""

from .runner import (
    PipelineCallback,
    PipelineOutcome,
    PipelineResult,
    PipelineStage,
    ReconciliationPipeline,
)
from .verifier import Verifier

__all__ = [
    'PipelineCallback',
    'PipelineOutcome',
    'PipelineResult',
    'PipelineStage',
    'ReconciliationPipeline',
    'Verifier',
]
