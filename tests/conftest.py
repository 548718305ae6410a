"""Shared fixtures: an in-memory portal behind httpx.MockTransport."""

import base64
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

from models import Credentials
from portal_client import PortalClient
from portal_session import open_session

HOST = "portal.test"
USERNAME = "admin"
PASSWORD = "secret"

Route = Union[Tuple[int, Any], Callable[[httpx.Request], httpx.Response]]


class FakePortal:
    """Answers portal requests from a route table and records every request."""

    def __init__(self, username: str = USERNAME, password: str = PASSWORD):
        token = base64.b64encode(f"{username}:{password}".encode()).decode()
        self.expected_auth = f"Basic {token}"
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, body: Any = None, status: int = 200):
        self.routes[(method, f"/api{path}")] = (status, body)

    def add_handler(self, method: str, path: str, handler: Callable[[httpx.Request], httpx.Response]):
        self.routes[(method, f"/api{path}")] = handler

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.headers.get("Authorization") != self.expected_auth:
            return httpx.Response(
                401,
                json={"success": False, "error": {"code": "auth", "message": "Invalid credentials"}}
            )

        if (request.method, request.url.path) == ("POST", "/api/auth/login"):
            return httpx.Response(200, json={"success": True})

        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(
                404,
                json={"success": False, "error": {"code": "not_found", "message": "Unknown key"}}
            )
        if callable(route):
            return route(request)

        status, body = route
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def command_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path != "/api/auth/login"]


@pytest.fixture
def portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def session(portal):
    """A validated session against the fake portal."""
    with open_session(HOST, Credentials(username=USERNAME, password=PASSWORD), transport=portal.transport) as s:
        assert s.validate() is True
        yield s


@pytest.fixture
def client(session) -> PortalClient:
    return PortalClient(session)


@pytest.fixture
def key_records() -> List[Dict[str, Any]]:
    return [
        {
            "keyNumber": "KEY.0001",
            "keyType": "SERVER",
            "createDate": "2023-01-15T10:00:00Z",
            "lastReportingDate": "20240301T08:30:00",
            "lastReportingIp": "10.0.0.1",
            "terminated": False
        },
        {
            "keyNumber": "KEY.0002",
            "keyType": "SERVER",
            "createDate": 1673776800,
            "lastReportingDate": None,
            "lastReportingIp": "10.0.0.2",
            "terminated": True
        },
        {
            "keyNumber": 3,
            "keyType": "ADDON",
            "createDate": "2023-02-01",
            "lastReportingIp": "10.0.0.1",
            "terminated": None
        }
    ]


@pytest.fixture
def key_metadata() -> Dict[str, Any]:
    return {
        "keyNumber": "KEY.0001",
        "keyType": "SERVER",
        "productKey": "PROD-XYZ",
        "billingType": "LEASE",
        "createDate": "2023-01-15T10:00:00Z",
        "updateDate": "2024-02-01T00:00:00Z",
        "expirationDate": "20250115T00:00:00",
        "lastReportingDate": "2024-03-01T08:30:00Z",
        "lastReportingIp": "10.0.0.1",
        "terminated": False,
        "problem": False,
        "features": [
            {"name": "Backup", "apiName": "backup"},
            {"name": "Antivirus", "apiName": "av"},
            {"name": "Firewall", "apiName": "fw"}
        ],
        "additionalKeys": [
            {
                "keyType": "ADDON",
                "apiKeyType": "addon_av",
                "keyNumber": "KEY.0100",
                "expirationDate": "2025-01-15"
            },
            {
                "keyType": "ADDON",
                "apiKeyType": "addon_fw",
                "keyNumber": "KEY.0101",
                "expirationDate": None
            }
        ]
    }
