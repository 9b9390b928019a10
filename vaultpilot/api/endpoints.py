"""API endpoints for the vault assistant service."""

from datetime import UTC, datetime

import httpx
from fastapi import APIRouter, Depends, HTTPException

from vaultpilot import __version__
from vaultpilot.exceptions import VaultError
from vaultpilot.models.auth import DeviceCodeResponse, ModelOption
from vaultpilot.models.conversation import (
    CancelResponse,
    ConversationRequest,
    ConversationResponse,
    DevicePollRequest,
    DevicePollResponse,
    HealthResponse,
)
from vaultpilot.models.session import Session
from vaultpilot.services.auth_store import AuthStore, get_auth_store
from vaultpilot.services.conversation import ConversationService, get_conversation_service
from vaultpilot.services.session_manager import InMemorySessionManager, get_session_manager
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _require_session(session_id: str, sessions: InMemorySessionManager) -> Session:
    session = sessions.get_session(session_id)
    if not session:
        logger.warning(f"Unknown session ID: {session_id}")
        raise HTTPException(status_code=404, detail=f"Unknown session ID: {session_id}")
    return session


@router.post("/conversation", response_model=ConversationResponse, tags=["Conversation"])
async def handle_conversation(
    request: ConversationRequest,
    service: ConversationService = Depends(get_conversation_service),
    sessions: InMemorySessionManager = Depends(get_session_manager),
) -> ConversationResponse:
    """Run the assistant on one user message within a session."""
    if request.session_id:
        logger.info(f"Validating existing session: {request.session_id}")
        session = _require_session(request.session_id, sessions)
    else:
        logger.info("Creating new session")
        session = sessions.get_or_create_session()

    session_id = session.session_id

    try:
        logger.info(f"Processing message for session {session_id}: {request.message[:50]}...")
        result = await service.process_message(request.message, session, request.active_file)
    except (ValueError, VaultError) as e:
        logger.warning(f"Message validation error for session {session_id}: {e}")
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.info(f"Generated response for session {session_id}: {result.response[:50]}...")
    return ConversationResponse(
        response=result.response,
        session_id=session_id,
        messages=result.messages,
        errors=result.errors,
    )


@router.post("/conversation/{session_id}/cancel", response_model=CancelResponse, tags=["Conversation"])
async def cancel_conversation(
    session_id: str,
    service: ConversationService = Depends(get_conversation_service),
    sessions: InMemorySessionManager = Depends(get_session_manager),
) -> CancelResponse:
    """Cancel the run currently in progress for a session."""
    session = _require_session(session_id, sessions)
    return CancelResponse(session_id=session_id, cancelled=service.cancel(session))


@router.delete("/conversation/{session_id}", status_code=204, tags=["Conversation"])
async def delete_conversation(
    session_id: str,
    sessions: InMemorySessionManager = Depends(get_session_manager),
) -> None:
    """Forget a session and its history."""
    if not sessions.delete_session(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session ID: {session_id}")


@router.get("/models", response_model=list[ModelOption], tags=["Models"])
async def list_models(service: ConversationService = Depends(get_conversation_service)) -> list[ModelOption]:
    """List selectable chat models."""
    return await service.fetch_available_models()


@router.post("/auth/device", response_model=DeviceCodeResponse, tags=["Auth"])
async def start_device_login(auth_store: AuthStore = Depends(get_auth_store)) -> DeviceCodeResponse:
    """Start the GitHub device login flow."""
    try:
        return await auth_store.start_device_login()
    except httpx.HTTPError as e:
        logger.error(f"Device login could not be started: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail="Could not reach GitHub") from e


@router.post("/auth/device/poll", response_model=DevicePollResponse, tags=["Auth"])
async def poll_device_login(
    request: DevicePollRequest,
    auth_store: AuthStore = Depends(get_auth_store),
) -> DevicePollResponse:
    """Check once whether the device code has been authorized."""
    try:
        authenticated, error = await auth_store.poll_device_login(request.device_code)
    except httpx.HTTPError as e:
        logger.error(f"Device login poll failed: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail="Could not reach GitHub") from e
    return DevicePollResponse(authenticated=authenticated, error=error)


@router.post("/auth/logout", status_code=204, tags=["Auth"])
async def logout(auth_store: AuthStore = Depends(get_auth_store)) -> None:
    """Forget all credentials."""
    auth_store.sign_out()


@router.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(sessions: InMemorySessionManager = Depends(get_session_manager)) -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=__version__,
        active_sessions=sessions.get_session_count(),
    )
