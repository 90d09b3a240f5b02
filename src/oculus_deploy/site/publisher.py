"""Static site publishing to S3 with CloudFront invalidation."""

import hashlib
import mimetypes
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from oculus_deploy.utils.errors import ConfigurationError, ErrorContext, error_handler
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# delete_objects accepts at most this many keys per call
DELETE_BATCH_SIZE = 1000


@dataclass
class PublishResult:
    """What a publish run changed."""
    bucket: str
    uploaded: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    unchanged: int = 0
    invalidation_id: Optional[str] = None


def _md5(path: Path) -> str:
    digest = hashlib.md5()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b''):
            digest.update(chunk)
    return digest.hexdigest()


def _content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or 'application/octet-stream'


class SitePublisher:
    """Mirrors a built site directory into a bucket.

    New and changed files are uploaded, keys with no local file are deleted,
    and the distribution cache is invalidated when one is given.
    """

    def __init__(self, s3_client, cloudfront_client=None):
        self.s3 = s3_client
        self.cloudfront = cloudfront_client

    def publish(
        self,
        site_dir: str,
        bucket: str,
        distribution_id: Optional[str] = None
    ) -> PublishResult:
        """Sync ``site_dir`` into ``bucket``.

        Raises:
            ConfigurationError: If the site directory does not exist
            DeploymentError: If an S3 or CloudFront call fails
        """
        root = Path(site_dir)
        if not root.is_dir():
            raise ConfigurationError(
                f"Build output directory not found: {root}",
                suggestions=["Build the frontend first (npm run build in app/)"],
            )

        result = PublishResult(bucket=bucket)
        try:
            remote = self._remote_etags(bucket)
            local = {
                path.relative_to(root).as_posix(): path
                for path in sorted(root.rglob('*')) if path.is_file()
            }

            for key, path in local.items():
                if remote.get(key) == _md5(path):
                    result.unchanged += 1
                    continue
                self.s3.upload_file(
                    str(path), bucket, key,
                    ExtraArgs={'ContentType': _content_type(path)},
                )
                result.uploaded.append(key)

            stale = sorted(set(remote) - set(local))
            for start in range(0, len(stale), DELETE_BATCH_SIZE):
                batch = stale[start:start + DELETE_BATCH_SIZE]
                self.s3.delete_objects(
                    Bucket=bucket,
                    Delete={'Objects': [{'Key': key} for key in batch], 'Quiet': True},
                )
                result.deleted.extend(batch)

            logger.info(
                f"Synced {root} to s3://{bucket}: {len(result.uploaded)} uploaded, "
                f"{len(result.deleted)} deleted, {result.unchanged} unchanged"
            )

            if distribution_id and self.cloudfront is not None:
                result.invalidation_id = self.invalidate(distribution_id)
        except (ClientError, BotoCoreError) as e:
            raise error_handler.handle_exception(
                e, ErrorContext(operation='publish-site', resource_id=bucket)
            )

        return result

    def invalidate(self, distribution_id: str, paths: Optional[List[str]] = None) -> str:
        """Create a cache invalidation and return its id."""
        items = paths or ['/*']
        response = self.cloudfront.create_invalidation(
            DistributionId=distribution_id,
            InvalidationBatch={
                'Paths': {'Quantity': len(items), 'Items': items},
                'CallerReference': f"oculus-{int(time.time() * 1000)}",
            },
        )
        invalidation_id = response['Invalidation']['Id']
        logger.info(f"Invalidated CloudFront cache: {distribution_id} ({invalidation_id})")
        return invalidation_id

    def _remote_etags(self, bucket: str) -> Dict[str, str]:
        etags = {}
        paginator = self.s3.get_paginator('list_objects_v2')
        for page in paginator.paginate(Bucket=bucket):
            for obj in page.get('Contents', []):
                etags[obj['Key']] = obj.get('ETag', '').strip('"')
        return etags
