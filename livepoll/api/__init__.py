"""
API Module - Browser client interface.

Exposes the session engine over a WebSocket event channel plus a few
read-only REST endpoints. Clients:
1. Presenter creates a session and authors activities
2. Audience joins by code
3. Presenter launches / navigates activities
4. Audience submits votes, answers, words and questions
5. Everyone receives live results scoped to what they may see

All state is session-scoped. Identity is the WebSocket connection.
"""

from .schemas import (
    # Inbound
    InboundMessage,
    CreateSessionPayload,
    JoinSessionPayload,
    AddActivityPayload,
    LaunchActivityPayload,
    SubmitVotePayload,
    SubmitAnswerPayload,
    SubmitWordPayload,
    SubmitQuestionPayload,
    UpvoteQuestionPayload,
    # Responses
    SessionLookupResponse,
    CurrentResultsResponse,
    SessionSummary,
    ErrorResponse,
    HealthResponse,
)
from .service import APIService, Audience, Dispatch, Emission
from .connections import ConnectionHub
from .app import create_app

__all__ = [
    # Inbound
    "InboundMessage",
    "CreateSessionPayload",
    "JoinSessionPayload",
    "AddActivityPayload",
    "LaunchActivityPayload",
    "SubmitVotePayload",
    "SubmitAnswerPayload",
    "SubmitWordPayload",
    "SubmitQuestionPayload",
    "UpvoteQuestionPayload",
    # Responses
    "SessionLookupResponse",
    "CurrentResultsResponse",
    "SessionSummary",
    "ErrorResponse",
    "HealthResponse",
    # Service
    "APIService",
    "Audience",
    "Dispatch",
    "Emission",
    "ConnectionHub",
    "create_app",
]
