"""Gap analysis and operator confirmation."""

from .requirements import GapReport, Requirement, RequiredResourceSet, RequirementStatus
from .analyzer import analyze
from .confirmation import (
    ConfirmationPort,
    ConsoleConfirmation,
    ConsoleNetworkSelector,
    NetworkSelector,
    token_matches,
)

__all__ = [
    'GapReport',
    'Requirement',
    'RequiredResourceSet',
    'RequirementStatus',
    'analyze',
    'ConfirmationPort',
    'ConsoleConfirmation',
    'ConsoleNetworkSelector',
    'NetworkSelector',
    'token_matches',
]
