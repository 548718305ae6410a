"""Tests for session creation and authentication."""

import httpx
import pytest

from errors import AuthenticationError
from models import Credentials
from portal_session import build_base_url, open_session, validate

from conftest import HOST, PASSWORD, USERNAME


class TestBaseUrl:
    """Test API root derivation from the configured host."""

    def test_bare_hostname(self):
        assert build_base_url("portal.example.com") == "https://portal.example.com/api"

    def test_hostname_with_port(self):
        assert build_base_url("portal.example.com:7050") == "https://portal.example.com:7050/api"

    def test_full_url_used_as_given(self):
        assert build_base_url("http://localhost:4000/api/") == "http://localhost:4000/api"


class TestSessionValidation:
    """Test the login check."""

    def test_open_session_is_unauthenticated(self, portal):
        session = open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=portal.transport)
        assert session.authenticated is False
        assert session.insecure is False
        assert portal.requests == []

    def test_valid_credentials_authenticate(self, portal):
        with open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=portal.transport) as session:
            assert validate(session) is True
            assert session.authenticated is True
        assert portal.requests[0].url.path == "/api/auth/login"

    def test_bad_credentials_stay_unauthenticated(self, portal):
        with open_session(HOST, Credentials(username=USERNAME, password="wrong"), transport=portal.transport) as session:
            assert validate(session) is False
            assert session.authenticated is False

    def test_network_failure_returns_false(self):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        with open_session(HOST, Credentials(username=USERNAME, password=PASSWORD),
                          transport=httpx.MockTransport(refuse)) as session:
            assert session.validate() is False
            assert session.authenticated is False

    def test_login_refused_in_envelope(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"success": False}))
        with open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=transport) as session:
            assert session.validate() is False

    def test_malformed_login_response(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
        with open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=transport) as session:
            assert session.validate() is False

    def test_server_error_returns_false(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, json={"success": False}))
        with open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=transport) as session:
            assert session.validate() is False

    @pytest.mark.parametrize("host", ["portal.test:notaport", "[::1"])
    def test_malformed_host_returns_false(self, host):
        with open_session(host, Credentials(username=USERNAME, password=PASSWORD)) as session:
            assert session.validate() is False
            assert session.authenticated is False

    def test_revalidation_failure_clears_flag(self, portal):
        with open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=portal.transport) as session:
            assert session.validate() is True
            session.credentials = Credentials(username=USERNAME, password="changed")
            session.close()
            assert session.validate() is False
            assert session.authenticated is False

    def test_require_authenticated(self, portal):
        session = open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=portal.transport)
        with pytest.raises(AuthenticationError):
            session.require_authenticated()

    def test_password_not_in_repr(self):
        assert PASSWORD not in repr(Credentials(username=USERNAME, password=PASSWORD))
