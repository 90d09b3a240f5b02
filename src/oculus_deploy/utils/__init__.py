"""Utility modules for logging, AWS client management, and helpers."""

from oculus_deploy.utils.aws_client import AWSClientManager, AWSCredentials
from oculus_deploy.utils.retry import RetryStrategy
from oculus_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    ConfigurationError,
    CredentialError,
    NetworkError,
    PreconditionError,
    InventoryError,
    SnapshotStoreError,
    SynthesisError,
    ToolExecutionError,
    VerificationError,
    ErrorHandler,
    error_handler
)
from oculus_deploy.utils.logging import get_logger, setup_logging, LogContext

__all__ = [
    # AWS Client
    'AWSClientManager',
    'AWSCredentials',

    # Retry
    'RetryStrategy',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'ConfigurationError',
    'CredentialError',
    'NetworkError',
    'PreconditionError',
    'InventoryError',
    'SnapshotStoreError',
    'SynthesisError',
    'ToolExecutionError',
    'VerificationError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',
]
