"""
FastAPI Application - WebSocket events and REST snapshots.

Endpoints:
    WS     /ws                            Event channel (presenter and audience)
    GET    /api/session/{code}            Session existence and metadata
    GET    /api/session/{code}/results    Live projection of the current activity
    GET    /api/session/{code}/info       Full session summary
    GET    /health                        Health check

WebSocket Flow:
    1. Client connects; server replies {"event": "connected", "data": {"identity": ...}}
    2. Client sends {"event": "<name>", "data": {...}, "ref": <optional>}
    3. Server replies {"event": "ack", "ref": ..., "for": "<name>", "data": {"success": ...}}
    4. Resulting broadcasts go to the presenter, the room, or one participant

All payloads are JSON with explicit Pydantic schemas.
"""

from typing import Optional, Union
import logging
import os
import uuid

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .. import __version__
from ..logging_config import configure_logging
from ..session import ErrorCode, SessionDirectory
from .connections import ConnectionHub
from .schemas import (
    CurrentResultsResponse,
    ErrorResponse,
    HealthResponse,
    InboundMessage,
    SessionLookupResponse,
    SessionSummary,
)
from .service import APIService

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


# Environment configuration
LIVEPOLL_ENV = os.getenv("LIVEPOLL_ENV", "development")
LIVEPOLL_LOG_LEVEL = os.getenv("LIVEPOLL_LOG_LEVEL", "INFO")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
ACCEPT_LATE_SUBMISSIONS = _env_flag("LIVEPOLL_ACCEPT_LATE_SUBMISSIONS", True)
ENDED_SESSION_TTL = float(os.getenv("LIVEPOLL_ENDED_SESSION_TTL", "3600"))


def create_app(
    service: Optional[APIService] = None,
    log_level: Optional[str] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)
        log_level: Logging level (defaults to LIVEPOLL_LOG_LEVEL)

    Returns:
        FastAPI application instance
    """
    configure_logging(log_level or LIVEPOLL_LOG_LEVEL)

    app = FastAPI(
        title="LivePoll API",
        description="""
Live polls, quizzes, word clouds and Q&A for presentations.

## Error Codes

| Code | Description |
|------|-------------|
| `NOT_FOUND` | Session, activity or question does not exist |
| `UNAUTHORIZED` | Only the presenter may do that |
| `INVALID_TRANSITION` | No activity in that direction / at that index |
| `DUPLICATE_SUBMISSION` | Quiz already answered |
| `INACTIVE_SESSION` | Session has ended |
| `ACTIVITY_CLOSED` | Activity is closed to submissions |
| `VALIDATION_ERROR` | Payload failed validation |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_service = service or APIService(
        directory=SessionDirectory(accept_late_submissions=ACCEPT_LATE_SUBMISSIONS),
        ended_session_ttl=ENDED_SESSION_TTL,
    )
    hub = ConnectionHub()
    app.state.service = api_service
    app.state.hub = hub

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def not_found(response: ErrorResponse) -> JSONResponse:
        return make_error_response(response.error_code, response.error, status_code=404)

    # =========================================================================
    # Snapshot Endpoints
    # =========================================================================

    @app.get(
        "/api/session/{code}",
        response_model=SessionLookupResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Check a session code",
    )
    async def lookup_session(code: str) -> Union[SessionLookupResponse, JSONResponse]:
        """Used by the join page to validate a code before connecting."""
        response = api_service.lookup(code)
        if isinstance(response, ErrorResponse):
            return not_found(response)
        return response

    @app.get(
        "/api/session/{code}/results",
        response_model=CurrentResultsResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Live results of the current activity",
    )
    async def current_results(code: str) -> Union[CurrentResultsResponse, JSONResponse]:
        response = api_service.current_results(code)
        if isinstance(response, ErrorResponse):
            return not_found(response)
        return response

    @app.get(
        "/api/session/{code}/info",
        response_model=SessionSummary,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Full session summary",
    )
    async def session_info(code: str) -> Union[SessionSummary, JSONResponse]:
        response = api_service.summary(code)
        if isinstance(response, ErrorResponse):
            return not_found(response)
        return response

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        Event channel for presenters and participants.

        Every inbound event gets an ack; broadcasts follow the ack.
        All outbound frames go through the hub queue, so each socket sees
        them in the order events were handled.
        Client may also send {"event": "ping"} for a keep-alive pong.
        """
        await websocket.accept()
        identity = str(uuid.uuid4())
        hub.register(identity, websocket)
        logger.debug("Connection %s opened", identity)

        try:
            hub.send(identity, {"event": "connected", "data": {"identity": identity}})

            while True:
                data = await websocket.receive_text()
                try:
                    message = InboundMessage.model_validate_json(data)
                except ValidationError:
                    hub.send(identity, {
                        "event": "error",
                        "data": {
                            "message": "Invalid message",
                            "error_code": ErrorCode.VALIDATION_ERROR.value,
                        },
                    })
                    continue

                if message.event == "ping":
                    hub.send(identity, {"event": "pong", "ref": message.ref})
                    continue

                dispatch = api_service.handle(identity, message.event, message.data)
                hub.send(identity, {
                    "event": "ack",
                    "ref": message.ref,
                    "for": message.event,
                    "data": dispatch.ack,
                })
                hub.deliver(dispatch.emissions)

        except WebSocketDisconnect:
            logger.debug("Connection %s closed", identity)
        finally:
            hub.unregister(identity)
            hub.deliver(api_service.disconnect(identity))

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            version=__version__,
            active_sessions=len(api_service.list_sessions()),
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "LivePoll API",
            "version": __version__,
            "env": LIVEPOLL_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn livepoll.api.app:app
app = create_app()
