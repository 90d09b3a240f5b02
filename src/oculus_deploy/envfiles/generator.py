"""Environment file generation from the cached inventory snapshot."""

import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from oculus_deploy.inventory.models import InventorySnapshot, ResourceKind
from oculus_deploy.utils.errors import ErrorContext, InventoryError
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)

DB_SECRET_MARKER = 'db_secret'
DEFAULT_STAGE = 'prod'
PG_PORT = 5432
PG_DATABASE = 'postgres'

WARNING_HEADER = """\
# WARNING: This file is auto-generated. Manual changes will be overwritten.
# The previous version is kept as a .backup sibling."""


@dataclass
class CheckResult:
    """Outcome of an endpoint format check."""
    success: bool
    details: Optional[str] = None
    error: Optional[str] = None


@dataclass
class WriteResult:
    """Where an env file was written and whether a backup was made."""
    path: Path
    backup_path: Optional[Path] = None


def api_url(api_id: str, region: str, stage: Optional[str] = None) -> str:
    return f"https://{api_id}.execute-api.{region}.amazonaws.com/{stage or DEFAULT_STAGE}"


def snapshot_api_url(snapshot: InventorySnapshot) -> Optional[str]:
    """URL of the first API in the snapshot, or None."""
    api = snapshot.first(ResourceKind.API_ENDPOINT_GROUP)
    if api is None:
        return None
    return api_url(api.id, snapshot.region, api.stage_name)


def find_db_secret(snapshot: InventorySnapshot):
    for secret in snapshot.of_kind(ResourceKind.MANAGED_SECRET):
        if DB_SECRET_MARKER in (secret.name or ''):
            return secret
    return None


def _header(title: str, generated_at: Optional[datetime]) -> List[str]:
    timestamp = (generated_at or datetime.now(timezone.utc)).isoformat()
    return [
        f"# {title}",
        "# Auto-generated from AWS infrastructure inventory",
        f"# Generated on: {timestamp}",
        WARNING_HEADER,
        "",
    ]


def render_frontend_env(
    snapshot: InventorySnapshot,
    app_name: str = 'Oculus',
    generated_at: Optional[datetime] = None
) -> str:
    """Render the Next.js ``.env.local`` content.

    Raises:
        InventoryError: If the snapshot holds no API endpoint group
    """
    api = snapshot.first(ResourceKind.API_ENDPOINT_GROUP)
    if api is None:
        raise InventoryError(
            "No API Gateway found in inventory",
            context=ErrorContext(resource_kind=ResourceKind.API_ENDPOINT_GROUP.value),
            suggestions=["Run oculus deploy-infra first", "Run oculus inventory to refresh the cache"],
        )

    distribution = snapshot.first(ResourceKind.CONTENT_DELIVERY_DISTRIBUTION)
    bucket = snapshot.first(ResourceKind.OBJECT_STORE_BUCKET)
    proxy = snapshot.first(ResourceKind.DATABASE_PROXY)

    lines = _header("Next.js Frontend Environment Configuration", generated_at)
    lines += [
        "NODE_ENV=development",
        f"NEXT_PUBLIC_APP_NAME={app_name}",
        "NEXT_PUBLIC_APP_VERSION=1.0.0",
        "",
        f"NEXT_PUBLIC_API_URL={api_url(api.id, snapshot.region, api.stage_name)}",
        "NEXT_PUBLIC_API_TIMEOUT=30000",
        "NEXT_PUBLIC_ENABLE_API_LOGGING=true",
        "",
        "NEXT_PUBLIC_APP_ENVIRONMENT=development",
        "NEXT_PUBLIC_PORT=3000",
        "",
        "# AWS resources (reference only)",
        f"# API Gateway ID: {api.id}",
        f"# API Gateway Name: {api.name or '-'}",
        f"# CloudFront Domain: {distribution.domain_name}" if distribution else "# CloudFront: Not found",
        f"# S3 Bucket: {bucket.id}" if bucket else "# S3 Bucket: Not found",
        f"# RDS Proxy: {proxy.endpoint}" if proxy else "# RDS Proxy: Not found",
    ]
    return "\n".join(lines) + "\n"


def render_backend_env(
    snapshot: InventorySnapshot,
    generated_at: Optional[datetime] = None
) -> str:
    """Render the Lambda ``.env`` content.

    Raises:
        InventoryError: If the snapshot lacks a database proxy or the
            database secret
    """
    proxy = snapshot.first(ResourceKind.DATABASE_PROXY)
    if proxy is None or not proxy.endpoint:
        raise InventoryError(
            "No RDS Proxy found in inventory",
            context=ErrorContext(resource_kind=ResourceKind.DATABASE_PROXY.value),
            suggestions=["Run oculus deploy-infra first"],
        )
    secret = find_db_secret(snapshot)
    if secret is None:
        raise InventoryError(
            f"No database secret (name containing '{DB_SECRET_MARKER}') found in inventory",
            context=ErrorContext(resource_kind=ResourceKind.MANAGED_SECRET.value),
            suggestions=["Run oculus deploy-infra first"],
        )

    url = snapshot_api_url(snapshot)
    lines = _header("Lambda Functions Environment Configuration", generated_at)
    lines += [
        f"AWS_REGION={snapshot.region}",
        "",
        f"PGHOST={proxy.endpoint}",
        f"PGPORT={PG_PORT}",
        f"PGDATABASE={PG_DATABASE}",
        f"DB_SECRET_ARN={secret.arn or secret.id}",
        "",
        f"API_GATEWAY_URL={url}" if url else "# API Gateway: Not found",
        "",
        "DB_CONNECTION_TIMEOUT=5000",
        "DB_QUERY_TIMEOUT=10000",
        "DB_POOL_SIZE=5",
        "",
        "# AWS resources (reference only)",
        f"# RDS Proxy Endpoint: {proxy.endpoint}",
        f"# Database Secret: {secret.name}",
    ]
    return "\n".join(lines) + "\n"


def write_env_file(path: str, content: str) -> WriteResult:
    """Write ``content`` to ``path``, first copying any existing file to
    ``<name>.backup`` next to it.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    backup_path = None
    if target.exists():
        backup_path = target.with_name(target.name + '.backup')
        shutil.copyfile(target, backup_path)
        logger.info(f"Created backup: {backup_path}")

    target.write_text(content)
    logger.info(f"Environment file saved: {target}")
    return WriteResult(path=target, backup_path=backup_path)


def check_proxy_endpoint(endpoint: Optional[str]) -> CheckResult:
    """Check that an endpoint looks like an RDS Proxy host name."""
    if not endpoint:
        return CheckResult(success=False, error="No RDS Proxy found")
    if '.rds.amazonaws.com' in endpoint and 'proxy' in endpoint:
        return CheckResult(success=True, details="Endpoint format is valid")
    return CheckResult(success=False, error="Invalid RDS Proxy endpoint format")


def check_api_url(url: Optional[str]) -> CheckResult:
    """Check that a URL looks like an API Gateway stage URL."""
    if not url:
        return CheckResult(success=False, error="No API Gateway found")
    if url.startswith('https://') and '.execute-api.' in url and url.rstrip('/').count('/') >= 3:
        return CheckResult(success=True, details="URL format is valid")
    return CheckResult(success=False, error="Invalid API Gateway URL format")
