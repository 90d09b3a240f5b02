"""Lookup of the operator's public egress address."""

import ipaddress

import requests

from oculus_deploy.utils.errors import ErrorContext, PreconditionError
from oculus_deploy.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_URL = 'https://checkip.amazonaws.com'
DEFAULT_TIMEOUT = 10.0


class PublicIpLookup:
    """Fetches the public address from a plain-text echo service.

    The address is a hard precondition of a deploy run: any failure raises
    PreconditionError before anything is changed.
    """

    def __init__(self, url: str = DEFAULT_URL, timeout: float = DEFAULT_TIMEOUT,
                 session: requests.Session = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self) -> str:
        """Return the public address as text.

        Raises:
            PreconditionError: On timeout, transport error, non-200 status
                or a body that is not an IP address
        """
        context = ErrorContext(operation='public-ip-lookup')
        suggestions = ['Check your internet connection', f'Verify that {self.url} is reachable']

        try:
            response = self.session.get(self.url, timeout=self.timeout)
        except requests.Timeout as e:
            raise PreconditionError(
                f"Public IP lookup timed out after {self.timeout:.0f}s",
                context=context, cause=e, suggestions=suggestions
            )
        except requests.RequestException as e:
            raise PreconditionError(
                f"Public IP lookup failed: {e}",
                context=context, cause=e, suggestions=suggestions
            )

        if response.status_code != 200:
            raise PreconditionError(
                f"Public IP lookup returned HTTP {response.status_code}",
                context=context, suggestions=suggestions
            )

        address = response.text.strip()
        try:
            ipaddress.ip_address(address)
        except ValueError as e:
            raise PreconditionError(
                f"Public IP lookup returned an invalid address: {address!r}",
                context=context, cause=e
            )

        logger.info(f"Public IP: {address}")
        return address
