"""Wallet session endpoints: start, portfolio, refresh, re-sync, logout."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from walletsync.api.contracts import (
    ConnectionContract,
    ErrorContract,
    PortfolioContract,
    SessionResponse,
    SessionStartRequest,
)
from walletsync.services.aggregator import is_total_failure
from walletsync.session import SessionManager, WalletSession

logger = logging.getLogger(__name__)

router = APIRouter()


def get_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_session(session_id: str, manager: SessionManager = Depends(get_manager)) -> WalletSession:
    session = manager.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )
    return session


def _response(session: WalletSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        user_id=session.user_id,
        connection=ConnectionContract.from_state(session.connection),
        portfolio=PortfolioContract.from_state(session.portfolio),
        error=ErrorContract.from_err(session.store.last_error),
        auto_refresh=session.scheduler.running,
    )


def _raise_if_unavailable(session: WalletSession) -> None:
    """Map a total balance failure to 503 so clients can offer a retry."""
    err = session.store.last_error
    if is_total_failure(err):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"session_id": session.session_id, **err.to_dict()},
        )


@router.post("/sessions", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    payload: SessionStartRequest,
    manager: SessionManager = Depends(get_manager),
):
    """Start a session: reconcile wallets and load the first portfolio."""
    session = await manager.open(payload.user_id, payload.auth_token)
    return _response(session)


@router.get("/sessions/{session_id}/portfolio", response_model=SessionResponse)
async def get_portfolio(session: WalletSession = Depends(get_session)):
    """Last committed portfolio snapshot (no fetch)."""
    return _response(session)


@router.post("/sessions/{session_id}/refresh", response_model=SessionResponse)
async def refresh_portfolio(session: WalletSession = Depends(get_session)):
    """Manual refresh; joins an in-flight refresh if one is running."""
    await session.refresh(force=True)
    _raise_if_unavailable(session)
    return _response(session)


@router.post("/sessions/{session_id}/reconcile", response_model=SessionResponse)
async def resync_session(session: WalletSession = Depends(get_session)):
    """Re-run reconciliation, then refresh balances."""
    await session.resync()
    _raise_if_unavailable(session)
    return _response(session)


@router.delete("/sessions/{session_id}")
async def logout(session_id: str, manager: SessionManager = Depends(get_manager)):
    """Logout: clear the wallet cache and discard portfolio state."""
    if not await manager.logout(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )
    logger.info(f"Session {session_id} logged out")
    return {"success": True, "session_id": session_id}
