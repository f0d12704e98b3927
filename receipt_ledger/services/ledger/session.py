"""
Ledger session management.

One process-wide token per session manager:

    Unauthenticated --authenticate--> Authenticated(token, acquired_at)
    Authenticated   --ttl elapsed---> Expired  (checked lazily on use)
    any             --connection change / session rejected--> Unauthenticated

Refreshes are single-flight: concurrent callers that find the token
expired wait on one lock and share the result of a single authenticate
call. A refresh that finishes after the connection changed is not
cached.

Every document upload and entry post first opens the dossier session
with a current token.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional
from uuid import UUID

import httpx

from receipt_ledger.audit.logger import AuditLogger
from receipt_ledger.config.settings import LedgerApiSettings
from receipt_ledger.errors import SessionError, ValidationError
from receipt_ledger.models.audit import AuditEventBuilder
from receipt_ledger.models.ledger import LedgerConnection, LedgerEntry
from receipt_ledger.services.ledger.client import LedgerAck, LedgerApiClient


DEFAULT_TTL_SECONDS = 10 * 60
DEFAULT_GED_FOLDER_ID = 945


@dataclass(frozen=True)
class LedgerSession:
    token: str
    acquired_at: float
    
    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.acquired_at < ttl_seconds


@dataclass(frozen=True)
class DossierScope:
    """Connection snapshot and token used for one scoped operation."""
    connection: LedgerConnection
    token: str
    tenant_code: str
    ack: LedgerAck


class LedgerSessionManager:
    """
    Authenticates against the ledger API, caches the token with a TTL and
    opens the dossier scope before uploads and posts.
    """
    
    def __init__(
        self,
        connection: LedgerConnection,
        client: LedgerApiClient,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        ged_folder_id: int = DEFAULT_GED_FOLDER_ID,
        clock: Callable[[], float] = time.monotonic,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._connection = connection
        self._client = client
        self._ttl = ttl_seconds
        self._ged_folder_id = ged_folder_id
        self._clock = clock
        self._audit_logger = audit_logger
        
        self._session: Optional[LedgerSession] = None
        self._generation = 0
        self._refresh_lock = asyncio.Lock()
    
    @classmethod
    def from_settings(
        cls,
        settings: LedgerApiSettings,
        audit_logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "LedgerSessionManager":
        return cls(
            connection=LedgerConnection.from_settings(settings),
            client=LedgerApiClient(settings.timeout_seconds, transport=transport),
            ttl_seconds=settings.session_ttl_seconds,
            ged_folder_id=settings.ged_folder_id,
            audit_logger=audit_logger,
        )
    
    @property
    def connection(self) -> LedgerConnection:
        return self._connection
    
    @property
    def session(self) -> Optional[LedgerSession]:
        return self._session
    
    def update_connection(self, connection: LedgerConnection) -> None:
        """Replace the connection; the cached token is dropped immediately."""
        self._connection = connection
        self._generation += 1
        self._session = None
        if self._audit_logger:
            self._audit_logger.log(
                AuditEventBuilder.connection_updated(connection.base_url, connection.tenant_code)
            )
    
    def invalidate(self) -> None:
        """Forget the cached token."""
        self._session = None
    
    def _invalidate_token(self, token: str) -> None:
        if self._session is not None and self._session.token == token:
            self._session = None
    
    def _fresh_session(self) -> Optional[LedgerSession]:
        session = self._session
        if session is not None and session.is_fresh(self._clock(), self._ttl):
            return session
        return None
    
    async def _acquire(self) -> tuple[LedgerConnection, str]:
        """Current connection and a valid token for it."""
        session = self._fresh_session()
        if session is not None:
            return self._connection, session.token
        
        async with self._refresh_lock:
            session = self._fresh_session()
            if session is not None:
                return self._connection, session.token
            
            generation = self._generation
            connection = self._connection
            self._session = None
            try:
                token = await self._client.authenticate(connection)
            except SessionError as e:
                if self._audit_logger:
                    self._audit_logger.log(AuditEventBuilder.session_rejected("authentication", e.message))
                raise
            
            if generation == self._generation:
                self._session = LedgerSession(token=token, acquired_at=self._clock())
            if self._audit_logger:
                self._audit_logger.log(AuditEventBuilder.session_authenticated(connection.base_url))
            return connection, token
    
    async def get_token(self) -> str:
        """A token younger than the TTL, authenticating if needed."""
        _, token = await self._acquire()
        return token
    
    async def open_dossier(
        self,
        tenant_code: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> DossierScope:
        """
        Open the dossier session for `tenant_code` (default: the
        connection's tenant code).
        
        Raises:
            ValidationError: no tenant code available
            SessionError: authentication or dossier scope rejected;
                the cached token is dropped
        """
        code = (tenant_code or "").strip() or self._connection.tenant_code
        if not code:
            raise ValidationError("codeDossier", "Missing required field: codeDossier")
        
        connection, token = await self._acquire()
        try:
            ack = await self._client.open_dossier_session(connection, token, code)
        except SessionError as e:
            self._invalidate_token(token)
            if self._audit_logger:
                self._audit_logger.log(
                    AuditEventBuilder.session_rejected("dossier", e.message, correlation_id)
                )
            raise
        
        if self._audit_logger:
            self._audit_logger.log(AuditEventBuilder.dossier_opened(code, correlation_id))
        return DossierScope(connection=connection, token=token, tenant_code=code, ack=ack)
    
    async def upload_document(
        self,
        content: bytes,
        filename: str,
        folder_id: Optional[int] = None,
        content_type: str = "application/pdf",
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """Open the configured dossier, then store `content` in the GED."""
        self._connection.require("tenant_code")
        scope = await self.open_dossier(correlation_id=correlation_id)
        return await self._client.upload_document(
            scope.connection,
            scope.token,
            content,
            filename,
            folder_id if folder_id is not None else self._ged_folder_id,
            content_type=content_type,
        )
    
    async def post_entry(
        self,
        entry: LedgerEntry,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerAck:
        """Open the configured dossier, then post `entry`."""
        self._connection.require("tenant_code")
        scope = await self.open_dossier(correlation_id=correlation_id)
        return await self._client.post_entry(scope.connection, scope.token, entry)
    
    async def aclose(self) -> None:
        await self._client.aclose()
