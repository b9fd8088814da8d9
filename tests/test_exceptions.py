"""
Tests for the client library exception hierarchy.

Validates the four error families and the diagnostic attributes each carries.
"""

import httpx

from openstack_client.exceptions import (
    APIConnectionError,
    APIStatusError,
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    InvalidArgumentError,
    ItemNotFoundError,
    MissingArgumentError,
    OpenStackError,
    OtherError,
    OverLimitError,
    ResourceStateConflictError,
)


class TestExceptionHierarchy:
    """Test the exception inheritance structure."""

    def test_base_exception(self):
        exc = OpenStackError("test message")
        assert str(exc) == "test message"
        assert exc.message == "test message"
        assert exc.response is None
        assert exc.request is None

        response = httpx.Response(500)
        request = httpx.Request("GET", "http://example.com")
        exc = OpenStackError("test", response=response, request=request)
        assert exc.response is response
        assert exc.request is request

    def test_configuration_errors(self):
        for exc_class in (MissingArgumentError, InvalidArgumentError):
            exc = exc_class("bad option")
            assert isinstance(exc, ConfigurationError)
            assert isinstance(exc, OpenStackError)
            # Must not be swallowed into pydantic's ValidationError
            assert not isinstance(exc, ValueError)

    def test_service_faults_inherit_from_status_error(self):
        for exc_class in (
            BadRequestError,
            ItemNotFoundError,
            OverLimitError,
            ResourceStateConflictError,
            OtherError,
        ):
            exc = exc_class("fault", 400, "{}")
            assert isinstance(exc, APIStatusError)
            assert isinstance(exc, OpenStackError)
            assert not isinstance(exc, APIConnectionError)

    def test_families_are_separate(self):
        assert not issubclass(APIConnectionError, APIStatusError)
        assert not issubclass(AuthenticationError, APIStatusError)
        assert not issubclass(AuthenticationError, APIConnectionError)
        assert not issubclass(ConfigurationError, APIConnectionError)


class TestExceptionAttributes:
    def test_status_error_keeps_code_and_body(self):
        exc = ItemNotFoundError("gone", 404, '{"itemNotFound": {}}')
        assert exc.message == "gone"
        assert exc.status_code == 404
        assert exc.body == '{"itemNotFound": {}}'

    def test_connection_error_keeps_host_and_attempts(self):
        exc = APIConnectionError("Unable to reconnect", host="h", attempts=5)
        assert exc.host == "h"
        assert exc.attempts == 5

        bare = APIConnectionError("boom")
        assert bare.host is None
        assert bare.attempts is None

    def test_authentication_error_keeps_status(self):
        exc = AuthenticationError("rejected", status_code=401)
        assert exc.status_code == 401
        assert str(exc) == "rejected"
