"""
Shared fixtures.

`FakeLedgerApi` stands in for the CNX ledger API behind an
`httpx.MockTransport`; it records every request it receives.
"""

import json
import pytest
from typing import Callable, Optional

import httpx

from receipt_ledger.audit import AuditLogger
from receipt_ledger.models import LedgerConnection
from receipt_ledger.services.ledger import LedgerApiClient, LedgerSessionManager


BASE_URL = "https://cnx.test/api"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now
    
    def __call__(self) -> float:
        return self.now
    
    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLedgerApi:
    """Scriptable ledger API. Override a route with `responses[path] = callable`; async callables work too."""
    
    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.auth_count = 0
        self.responses: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
    
    def paths(self) -> list[str]:
        return [request.url.path.removeprefix("/api/") for request in self.requests]
    
    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(path)]
    
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api/")
        if path in self.responses:
            return self.responses[path](request)
        
        if path == "v1/authentification":
            self.auth_count += 1
            return httpx.Response(200, json={"UUID": f"token-{self.auth_count}"})
        if path == "v2/sessions/dossier":
            return httpx.Response(200, text="Dossier ouvert")
        if path == "v1/ged/documents":
            return httpx.Response(200, json={"Id": 9001})
        if path == "v1/compta/ecriture":
            return httpx.Response(200, text="Ecriture créée")
        return httpx.Response(404, text="not found")
    
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_connection(**overrides) -> LedgerConnection:
    values = dict(
        base_url=BASE_URL,
        identifier="compta",
        secret="s3cret",
        tenant_code="DOS01",
    )
    values.update(overrides)
    return LedgerConnection(**values)


def make_session_manager(
    api: FakeLedgerApi,
    connection: Optional[LedgerConnection] = None,
    clock: Optional[FakeClock] = None,
    audit_logger: Optional[AuditLogger] = None,
    ttl_seconds: float = 600,
) -> LedgerSessionManager:
    return LedgerSessionManager(
        connection=connection or make_connection(),
        client=LedgerApiClient(timeout_seconds=5, transport=api.transport()),
        ttl_seconds=ttl_seconds,
        clock=clock or FakeClock(),
        audit_logger=audit_logger,
    )


def json_body(request: httpx.Request):
    return json.loads(request.content)


@pytest.fixture
def ledger_api() -> FakeLedgerApi:
    return FakeLedgerApi()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(keep_events=True)
