"""
CNX ledger API client.

Raw calls only; token caching and dossier scoping live in
`LedgerSessionManager`. Every call has a timeout and none is retried.

    POST v1/authentification      {"identifiant", "motdepasse"} -> UUID token
    POST v2/sessions/dossier      "<tenant code>" (bare JSON string)
    POST v1/ged/documents         multipart idArboGed + file   -> document id
    POST v1/compta/ecriture       LedgerEntry payload
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import httpx

from receipt_ledger.errors import SessionError, UpstreamTransportError
from receipt_ledger.models.ledger import LedgerConnection, LedgerEntry


SERVICE_NAME = "ledger"

# The API has answered with each of these shapes over time
TOKEN_PATHS: tuple[tuple[str, ...], ...] = (
    ("UUID",),
    ("uuid",),
    ("data", "UUID"),
    ("data", "uuid"),
)
DOCUMENT_ID_PATHS: tuple[tuple[str, ...], ...] = (
    ("Id",),
    ("id",),
    ("data", "Id"),
    ("data", "id"),
)


def lookup_first(payload: Any, paths: Sequence[Sequence[str]]) -> Optional[str]:
    """
    Value at the first field path present and non-empty in `payload`.
    
    >>> lookup_first({"data": {"uuid": "abc"}}, TOKEN_PATHS)
    'abc'
    """
    for path in paths:
        node = payload
        for key in path:
            if not isinstance(node, dict):
                node = None
                break
            node = node.get(key)
        if node not in (None, "") and not isinstance(node, (dict, list)):
            return str(node)
    return None


def parse_body(text: str) -> Any:
    """JSON body, or {"raw": text} when the body is not JSON."""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return {"raw": text}


@dataclass(frozen=True)
class LedgerAck:
    """Acknowledgement returned by a ledger call (plain text)."""
    raw: str


class LedgerApiClient:
    """
    Thin async wrapper around the ledger HTTP API.
    
    One `httpx.AsyncClient` is shared by all calls; `transport` allows
    tests to plug in `httpx.MockTransport`.
    """
    
    def __init__(
        self,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._http = httpx.AsyncClient(timeout=timeout_seconds, transport=transport)
    
    async def aclose(self) -> None:
        await self._http.aclose()
    
    async def _post(self, operation: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.post(url, **kwargs)
        except httpx.TimeoutException as e:
            raise UpstreamTransportError(SERVICE_NAME, f"{operation}: request timed out") from e
        except httpx.RequestError as e:
            raise UpstreamTransportError(SERVICE_NAME, f"{operation}: request failed ({type(e).__name__})") from e
    
    async def authenticate(self, connection: LedgerConnection) -> str:
        """
        Exchange login/password for a session token.
        
        Raises:
            ValidationError: base URL or credentials missing
            SessionError: call failed or no token in the answer
        """
        connection.require("base_url", "identifier", "secret")
        try:
            response = await self._post(
                "authentication",
                connection.url("v1/authentification"),
                json={"identifiant": connection.identifier, "motdepasse": connection.secret},
            )
        except UpstreamTransportError as e:
            raise SessionError(f"Ledger credentials rejected: {e.message}") from e
        
        if not response.is_success:
            raise SessionError(
                "Ledger credentials rejected",
                status_code=response.status_code,
                body=response.text,
            )
        
        token = lookup_first(parse_body(response.text), TOKEN_PATHS)
        if not token:
            raise SessionError(
                "Ledger credentials rejected: no token in authentication response",
                status_code=response.status_code,
                body=response.text,
            )
        return token
    
    async def open_dossier_session(
        self,
        connection: LedgerConnection,
        token: str,
        tenant_code: str,
    ) -> LedgerAck:
        """Scope the token to one dossier (accounting book)."""
        try:
            response = await self._post(
                "dossier session",
                connection.url("v2/sessions/dossier"),
                headers={
                    "accept": "text/plain",
                    "UUID": token,
                    "Content-Type": "application/json-patch+json",
                },
                content=json.dumps(str(tenant_code)),
            )
        except UpstreamTransportError as e:
            raise SessionError(f"Dossier session rejected: {e.message}") from e
        
        if not response.is_success:
            raise SessionError(
                f"Dossier session rejected for {tenant_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return LedgerAck(raw=response.text)
    
    async def upload_document(
        self,
        connection: LedgerConnection,
        token: str,
        content: bytes,
        filename: str,
        folder_id: int,
        content_type: str = "application/pdf",
    ) -> str:
        """
        Store a document in the GED and return its id.
        
        Raises:
            UpstreamTransportError: non-success status, or no id in the answer
        """
        safe_name = (filename or "ticket.pdf").replace('"', "")
        response = await self._post(
            "GED upload",
            connection.url("v1/ged/documents"),
            headers={"UUID": token},
            data={"idArboGed": str(folder_id)},
            files={"file": (safe_name, content, content_type)},
        )
        if not response.is_success:
            raise UpstreamTransportError(
                SERVICE_NAME,
                "GED upload rejected",
                status_code=response.status_code,
                body=response.text,
            )
        
        document_id = lookup_first(parse_body(response.text), DOCUMENT_ID_PATHS)
        if not document_id:
            raise UpstreamTransportError(
                SERVICE_NAME,
                "GED upload returned no document id",
                status_code=response.status_code,
                body=response.text,
            )
        return document_id
    
    async def post_entry(
        self,
        connection: LedgerConnection,
        token: str,
        entry: LedgerEntry,
    ) -> LedgerAck:
        """Post one ledger entry."""
        response = await self._post(
            "entry post",
            connection.url("v1/compta/ecriture"),
            headers={"Accept": "text/plain", "UUID": token},
            json=entry.to_payload(),
        )
        if not response.is_success:
            raise UpstreamTransportError(
                SERVICE_NAME,
                "ledger entry rejected",
                status_code=response.status_code,
                body=response.text,
            )
        return LedgerAck(raw=response.text)
