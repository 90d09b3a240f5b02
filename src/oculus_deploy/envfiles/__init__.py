"""Generated environment files for the frontend and the Lambda functions."""

from .generator import (
    CheckResult,
    WriteResult,
    api_url,
    check_api_url,
    check_proxy_endpoint,
    render_backend_env,
    render_frontend_env,
    snapshot_api_url,
    write_env_file,
)

__all__ = [
    'CheckResult',
    'WriteResult',
    'api_url',
    'check_api_url',
    'check_proxy_endpoint',
    'render_backend_env',
    'render_frontend_env',
    'snapshot_api_url',
    'write_env_file',
]
