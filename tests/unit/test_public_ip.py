"""Unit tests for the public IP lookup."""

from unittest.mock import MagicMock

import pytest
import requests

from oculus_deploy.inventory.public_ip import DEFAULT_URL, PublicIpLookup
from oculus_deploy.utils.errors import ErrorCategory, PreconditionError


def _session(status=200, text="203.0.113.10\n", error=None):
    session = MagicMock()
    if error is not None:
        session.get.side_effect = error
    else:
        session.get.return_value = MagicMock(status_code=status, text=text)
    return session


def test_fetch_strips_whitespace():
    session = _session()
    lookup = PublicIpLookup(session=session, timeout=10)

    assert lookup.fetch() == "203.0.113.10"
    session.get.assert_called_once_with(DEFAULT_URL, timeout=10)


def test_fetch_accepts_ipv6():
    assert PublicIpLookup(session=_session(text="2001:db8::1")).fetch() == "2001:db8::1"


@pytest.mark.parametrize("session", [
    _session(error=requests.Timeout("timed out")),
    _session(error=requests.ConnectionError("unreachable")),
    _session(status=503, text="unavailable"),
    _session(text="<html>captive portal</html>"),
    _session(text=""),
])
def test_fetch_failures_are_preconditions(session):
    with pytest.raises(PreconditionError) as exc_info:
        PublicIpLookup(session=session).fetch()

    assert exc_info.value.category == ErrorCategory.PRECONDITION
