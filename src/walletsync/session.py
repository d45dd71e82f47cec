"""Session-scoped wallet context.

A WalletSession is created when a user session starts, owns every
collaborator needed for reconciliation and aggregation, and is torn down at
logout. There is no process-wide wallet state: everything lives on the
session object held by the SessionManager.
"""

import asyncio
import logging
import uuid
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from walletsync.config import Settings, get_settings
from walletsync.crypto import get_encryptor
from walletsync.funding.base import FundingCollaborator
from walletsync.funding.factory import create_funder
from walletsync.identity.cache import WalletIdentityCache
from walletsync.identity.database import IdentityDatabase
from walletsync.models import ConnectionState, PortfolioState
from walletsync.probes.factory import ProbeSet, create_probes
from walletsync.registry.base import WalletRegistry
from walletsync.registry.factory import create_registry
from walletsync.services.aggregator import BalanceAggregator
from walletsync.services.portfolio_store import PortfolioStateStore, RefreshScheduler
from walletsync.services.reconciliation import ReconciliationCoordinator
from walletsync.utils.locks import SingleFlight

logger = logging.getLogger(__name__)


class WalletSession:
    """Wallet reconciliation and portfolio state of one user session."""

    def __init__(
        self,
        session_id: str,
        user_id: str,
        cache: WalletIdentityCache,
        coordinator: ReconciliationCoordinator,
        aggregator: BalanceAggregator,
        single_flight: SingleFlight,
        refresh_interval: float = 60.0,
    ):
        self.session_id = session_id
        self.user_id = user_id
        self.cache = cache
        self.coordinator = coordinator
        self.aggregator = aggregator
        self._lock = asyncio.Lock()
        self.store = PortfolioStateStore(session_id, aggregator, single_flight, self._lock)
        self.scheduler = RefreshScheduler(self.store, refresh_interval)
        self._closed = False

    @property
    def connection(self) -> ConnectionState:
        return self.store.connection

    @property
    def portfolio(self) -> Optional[PortfolioState]:
        return self.store.state

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> Optional[PortfolioState]:
        """Reconcile, then load the first portfolio snapshot."""
        await self.reconcile()
        return await self.refresh(force=True)

    async def reconcile(self) -> ConnectionState:
        """Re-run reconciliation and (re)arm the periodic refresh."""
        if self._closed:
            return self.store.connection

        async with self._lock:
            try:
                connection = await self.coordinator.reconcile()
            except Exception:
                logger.exception(f"Reconciliation failed for session {self.session_id}")
                return self.store.connection
            self.store.update_connection(connection)

        if self._closed:
            return connection

        if connection.custodial_connected:
            self.scheduler.start()
        else:
            await self.scheduler.stop()

        return connection

    async def resync(self) -> Optional[PortfolioState]:
        """Reconcile again and refresh balances (manual re-sync)."""
        await self.reconcile()
        return await self.refresh(force=True)

    async def refresh(self, force: bool = False) -> Optional[PortfolioState]:
        return await self.store.refresh(force=force)

    async def close(self, clear_cache: bool = True) -> None:
        """Tear the session down.

        Stops the scheduler and discards portfolio state; an in-flight
        refresh completes but its result is dropped.

        Args:
            clear_cache: Remove the user's cached wallet identity (logout)
        """
        if self._closed:
            return
        self._closed = True

        await self.scheduler.stop()
        self.store.close()

        if clear_cache:
            try:
                await self.cache.clear()
            except SQLAlchemyError as e:
                logger.error(f"Failed to clear wallet cache for user {self.user_id}: {e}")

        logger.info(f"Closed wallet session {self.session_id} for user {self.user_id}")


class SessionManager:
    """Creates, tracks and tears down wallet sessions."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        database: Optional[IdentityDatabase] = None,
        registry_factory: Optional[Callable[[str], WalletRegistry]] = None,
        probes_factory: Optional[Callable[[], ProbeSet]] = None,
        funder_factory: Optional[Callable[[], FundingCollaborator]] = None,
    ):
        """Initialize manager.

        Args:
            settings: Settings (defaults to get_settings())
            database: Identity cache storage (built from settings.database_url if omitted)
            registry_factory: Builds a registry client from an auth token
            probes_factory: Builds the chain probe set
            funder_factory: Builds the funding collaborator
        """
        self.settings = settings or get_settings()
        self.database = database or IdentityDatabase(self.settings.database_url)
        self._registry_factory = registry_factory or (
            lambda token: create_registry(token, self.settings)
        )
        self._probes_factory = probes_factory or (lambda: create_probes(self.settings))
        self._funder_factory = funder_factory or (lambda: create_funder(self.settings))
        self._single_flight = SingleFlight()
        self._sessions: dict[str, WalletSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def stats(self) -> dict[str, int]:
        """Session counts for the detailed health check."""
        sessions = list(self._sessions.values())
        flight = self._single_flight
        return {
            "active": len(sessions),
            "auto_refresh": sum(1 for s in sessions if s.scheduler.running),
            "refreshing": sum(1 for s in sessions if flight.in_flight(s.session_id)),
            "degraded": sum(1 for s in sessions if s.connection.degraded),
        }

    def build(self, user_id: str, auth_token: str) -> WalletSession:
        """Wire a new session without starting it."""
        session_id = uuid.uuid4().hex
        cache = WalletIdentityCache(
            user_id,
            db=self.database.session,
            encryptor=get_encryptor(self.settings.master_key),
        )
        probes = self._probes_factory()
        coordinator = ReconciliationCoordinator(
            cache=cache,
            registry=self._registry_factory(auth_token),
            self_custody_probe=probes.aptos,
            funder=self._funder_factory(),
        )
        aggregator = BalanceAggregator(
            probes=probes,
            stable_symbols=self.settings.stable_symbols,
            evm_fallback_address=self.settings.evm_fallback_address,
        )
        return WalletSession(
            session_id=session_id,
            user_id=user_id,
            cache=cache,
            coordinator=coordinator,
            aggregator=aggregator,
            single_flight=self._single_flight,
            refresh_interval=self.settings.refresh_interval_seconds,
        )

    async def open(self, user_id: str, auth_token: str) -> WalletSession:
        """Start a session: reconcile and load the first snapshot."""
        session = self.build(user_id, auth_token)
        self._sessions[session.session_id] = session
        logger.info(f"Opened wallet session {session.session_id} for user {user_id}")
        await session.start()
        return session

    def get(self, session_id: str) -> Optional[WalletSession]:
        return self._sessions.get(session_id)

    async def logout(self, session_id: str) -> bool:
        """Close a session and clear its cache.

        Returns:
            True if the session existed
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close(clear_cache=True)
        return True

    async def close_all(self) -> None:
        """Close every session without clearing caches (shutdown)."""
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await session.close(clear_cache=False)
