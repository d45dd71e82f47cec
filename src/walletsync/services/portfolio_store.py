"""Portfolio state store and periodic refresh scheduler.

The store holds the last committed PortfolioState of one session. Every
refresh ends in exactly one assignment of a complete snapshot, so consumers
never observe partial state. Overlapping refreshes for the same session are
collapsed by a single-flight guard.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Optional

from walletsync.errors import AggregationPartialFailure, WalletUnavailableError
from walletsync.models import ConnectionState, PortfolioState
from walletsync.result import Err
from walletsync.services.aggregator import BalanceAggregator
from walletsync.utils.locks import SingleFlight

logger = logging.getLogger(__name__)


class PortfolioStateStore:
    """Last committed portfolio snapshot of a session."""

    def __init__(
        self,
        session_id: str,
        aggregator: BalanceAggregator,
        single_flight: SingleFlight,
        sync_lock: Optional[asyncio.Lock] = None,
    ):
        """Initialize store.

        Args:
            session_id: Owning session (single-flight key)
            aggregator: Balance aggregator of the session
            single_flight: Guard shared by the sessions of a manager
            sync_lock: Lock serialising refreshes with reconciliation
        """
        self.session_id = session_id
        self.aggregator = aggregator
        self._flight = single_flight
        self._sync_lock = sync_lock or asyncio.Lock()
        self.connection = ConnectionState()
        self.state: Optional[PortfolioState] = None
        self.last_error: Optional[Err] = None
        self.commits = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def update_connection(self, connection: ConnectionState) -> None:
        """Use a freshly reconciled connection state for later refreshes."""
        self.connection = connection

    async def refresh(self, force: bool = False) -> Optional[PortfolioState]:
        """Refresh balances and commit a new snapshot.

        Args:
            force: Refresh even when no wallet is connected (manual pull
                and periodic timer)

        Returns:
            The committed (or, on failure, the previous) PortfolioState
        """
        if self._closed:
            return None

        if not force and not self.connection.has_any_wallet:
            logger.debug(f"Refresh skipped for session {self.session_id}: no wallets")
            return self.state

        return await self._flight.run(self.session_id, self._refresh_once)

    async def _refresh_once(self) -> Optional[PortfolioState]:
        async with self._sync_lock:
            connection = self.connection
            try:
                portfolio = await self.aggregator.aggregate(connection)
            except WalletUnavailableError as e:
                logger.error(f"Wallet balances unavailable for session {self.session_id}: {e}")
                self.last_error = Err.from_exception(e)
                return self.state
            except Exception as e:
                logger.exception(f"Unexpected refresh failure for session {self.session_id}")
                self.last_error = Err.from_exception(e)
                return self.state

        if self._closed:
            logger.debug(f"Session {self.session_id} closed during refresh, discarding result")
            return None

        self.state = portfolio
        self.commits += 1

        if portfolio.is_partial:
            partial = AggregationPartialFailure([f.value for f in portfolio.failures])
            logger.warning(f"Session {self.session_id}: {partial}")
            self.last_error = Err.from_exception(partial)
        else:
            self.last_error = None

        return portfolio

    def close(self) -> None:
        """Discard state; later results are dropped."""
        self._closed = True
        self.state = None
        self.last_error = None


class RefreshScheduler:
    """Periodically forces a store refresh while it is running."""

    def __init__(self, store: PortfolioStateStore, interval_seconds: float = 60.0):
        self.store = store
        self.interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the timer (no-op if already running)."""
        if self.running:
            return
        logger.info(
            f"Starting balance refresh for session {self.store.session_id} "
            f"(interval: {self.interval}s)"
        )
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the timer; an in-flight refresh is left to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task
        logger.info(f"Stopped balance refresh for session {self.store.session_id}")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.store.refresh(force=True)
            except Exception as e:
                logger.error(f"Scheduled refresh error: {e}")
