"""Stack outputs and post-deploy database seeding."""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

import requests
from botocore.exceptions import BotoCoreError, ClientError

from oculus_deploy.utils.errors import DeploymentError, ErrorCategory, ErrorContext, error_handler
from oculus_deploy.utils.logging import get_logger
from oculus_deploy.utils.retry import RetryStrategy

logger = get_logger(__name__)

API_URL_KEY = 'ApiUrl'
# CDK names the RestApi's endpoint output after the construct id plus a hash
API_ENDPOINT_PREFIX = 'oculusapiEndpoint'
SITE_URL_KEY = 'SiteUrl'

SEED_TIMEOUT = 15.0
SEED_SUCCESS_CODES = (200, 204)


@dataclass
class StackOutputs:
    """Outputs of the deployed stack."""
    stack_name: str
    values: Dict[str, str] = field(default_factory=dict)

    @property
    def api_url(self) -> Optional[str]:
        if self.values.get(API_URL_KEY):
            return self.values[API_URL_KEY]
        for key in sorted(self.values):
            if key.startswith(API_ENDPOINT_PREFIX) and self.values[key]:
                return self.values[key]
        return None

    @property
    def site_url(self) -> Optional[str]:
        return self.values.get(SITE_URL_KEY) or None

    @classmethod
    def fetch(cls, cloudformation, stack_name: str) -> "StackOutputs":
        """Read outputs with CloudFormation ``describe_stacks``.

        Raises:
            DeploymentError: If the stack cannot be described
        """
        try:
            response = cloudformation.describe_stacks(StackName=stack_name)
        except (ClientError, BotoCoreError) as e:
            raise error_handler.handle_exception(
                e, ErrorContext(operation='describe-stacks', aws_service='cloudformation')
            )

        stacks = response.get('Stacks', [])
        if not stacks:
            raise DeploymentError(
                f"Stack {stack_name} not found",
                category=ErrorCategory.AWS,
                suggestions=['Run oculus deploy-infra first'],
            )

        values = {
            output['OutputKey']: output.get('OutputValue', '')
            for output in stacks[0].get('Outputs', [])
        }
        return cls(stack_name=stack_name, values=values)


class SeedAttemptFailed(Exception):
    """One seeding request did not return a success status."""


def seed_url(api_url: str, seed_path: str = '/admin/seed') -> str:
    return api_url.rstrip('/') + '/' + seed_path.lstrip('/')


def seed_database(
    api_url: str,
    seed_path: str = '/admin/seed',
    attempts: int = 5,
    delay: float = 3.0,
    timeout: float = SEED_TIMEOUT,
    session: Optional[requests.Session] = None,
    sleep: Callable[[float], None] = time.sleep
) -> bool:
    """POST to the API's seed route until it succeeds or attempts run out.

    Seeding is idempotent on the server side, so repeating it is safe. A
    failure is reported to the caller, not raised.

    Returns:
        True if a request returned 200 or 204
    """
    url = seed_url(api_url, seed_path)
    http = session or requests.Session()

    def post() -> int:
        try:
            response = http.post(url, timeout=timeout)
        except requests.RequestException as e:
            raise SeedAttemptFailed(str(e))
        if response.status_code not in SEED_SUCCESS_CODES:
            raise SeedAttemptFailed(f"status {response.status_code}")
        return response.status_code

    strategy = RetryStrategy(
        max_attempts=attempts,
        delay=delay,
        retry_on=(SeedAttemptFailed,),
        sleep=sleep,
    )
    try:
        status = strategy.execute_with_retry(post, description=f"Seed {url}")
    except SeedAttemptFailed:
        logger.error(f"Seeding failed after {attempts} attempts")
        return False

    logger.info(f"Seed attempt {strategy.attempts_made} succeeded with status {status}")
    return True
