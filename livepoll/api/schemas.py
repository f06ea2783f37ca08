"""
Pydantic Schemas for API - Wire models for events and snapshots.

These models define the exact contract between browser clients and
the engine:
- Inbound event payloads (client -> server over the WebSocket)
- Outbound event payloads (server -> presenter / room / participant)
- REST snapshot responses

Error Codes:
- NOT_FOUND: Session, activity or question does not resolve
- UNAUTHORIZED: Presenter-only operation from another connection
- INVALID_TRANSITION: Navigation past either end, bad launch index
- DUPLICATE_SUBMISSION: Second quiz answer from the same participant
- INACTIVE_SESSION: Join or submission after the session ended
- ACTIVITY_CLOSED: Submission to a closed activity (when refused)
- VALIDATION_ERROR: Payload failed schema validation
- UNKNOWN_EVENT: Event name not recognised
"""

from typing import Optional, Any, Union
from pydantic import BaseModel, Field

from ..session.activity import ActivityType
from ..session.results import ErrorCode


# =============================================================================
# Envelope
# =============================================================================

class InboundMessage(BaseModel):
    """One client frame on the WebSocket."""
    event: str = Field(..., min_length=1, description="Inbound event name")
    data: dict[str, Any] = Field(default_factory=dict)
    ref: Optional[Union[int, str]] = Field(
        None, description="Echoed back in the ack so clients can match replies"
    )


# =============================================================================
# Inbound Payloads
# =============================================================================

class SessionCodePayload(BaseModel):
    """Payload carrying only a session code."""
    code: str = Field(..., description="6-digit session code")


class CreateSessionPayload(BaseModel):
    name: Optional[str] = Field(None, description="Session title")


class JoinSessionPayload(SessionCodePayload):
    name: Optional[str] = Field(None, description="Participant display name")


class AddActivityPayload(SessionCodePayload):
    type: ActivityType
    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: Optional[int] = Field(None, description="Quiz only: index into options")
    time_limit: int = Field(0, ge=0, description="Seconds, 0 for untimed")


class LaunchActivityPayload(SessionCodePayload):
    index: int


class SubmitVotePayload(SessionCodePayload):
    activity_id: str
    option_index: int


class SubmitAnswerPayload(SessionCodePayload):
    activity_id: str
    option_index: int
    response_time_ms: Optional[float] = Field(None, ge=0)


class SubmitWordPayload(SessionCodePayload):
    activity_id: str
    word: str


class SubmitQuestionPayload(SessionCodePayload):
    activity_id: str
    text: str = Field(..., min_length=1)


class UpvoteQuestionPayload(SessionCodePayload):
    activity_id: str
    question_id: str


# =============================================================================
# Shared Models
# =============================================================================

class ActivityInfo(BaseModel):
    """What participants see when an activity is launched."""
    id: str
    type: ActivityType = Field(alias="activity_type")
    question: str
    options: list[str] = Field(default_factory=list)
    is_open: bool = False
    time_limit: int = 0

    model_config = {"from_attributes": True, "populate_by_name": True}


class ParticipantInfo(BaseModel):
    name: str
    joined_at: float

    model_config = {"from_attributes": True}


class ActivitySummary(BaseModel):
    id: str
    type: ActivityType
    question: str
    options: list[str] = Field(default_factory=list)
    is_open: bool
    response_count: int


class SessionSummary(BaseModel):
    """Full read-only view of a session."""
    id: str
    code: str
    name: str
    created_at: float
    current_activity_index: int
    participant_count: int
    activity_count: int
    is_active: bool
    activities: list[ActivitySummary] = Field(default_factory=list)


# =============================================================================
# Projections
# =============================================================================

class PollOptionResult(BaseModel):
    option: str
    votes: int
    voter_names: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class PollResults(BaseModel):
    activity_id: str
    type: ActivityType
    question: str
    results: list[PollOptionResult]
    total_votes: int

    model_config = {"from_attributes": True}


class QuizOptionResult(BaseModel):
    option: str
    count: int
    is_correct: bool

    model_config = {"from_attributes": True}


class QuizLeaderboardEntry(BaseModel):
    name: str
    is_correct: bool
    answered_option: str
    correct_option: str
    answered_at: float
    response_time_ms: float
    score: int

    model_config = {"from_attributes": True}


class QuizResults(BaseModel):
    activity_id: str
    type: ActivityType
    question: str
    results: list[QuizOptionResult]
    total_answers: int
    correct_count: int
    correct_answer: Optional[int] = None
    correct_option: str
    leaderboard: list[QuizLeaderboardEntry] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class WordCountInfo(BaseModel):
    text: str
    count: int

    model_config = {"from_attributes": True}


class WordCloudResults(BaseModel):
    activity_id: str
    type: ActivityType
    question: str
    words: list[WordCountInfo]
    total_submissions: int

    model_config = {"from_attributes": True}


class RankedQuestionInfo(BaseModel):
    id: str
    text: str
    participant_name: str
    upvote_count: int
    submitted_at: float

    model_config = {"from_attributes": True}


class QAResults(BaseModel):
    activity_id: str
    type: ActivityType
    question: str
    questions: list[RankedQuestionInfo]
    total_questions: int

    model_config = {"from_attributes": True}


ActivityResults = Union[PollResults, QuizResults, WordCloudResults, QAResults]

RESULTS_MODELS: dict[ActivityType, type[BaseModel]] = {
    ActivityType.POLL: PollResults,
    ActivityType.QUIZ: QuizResults,
    ActivityType.WORDCLOUD: WordCloudResults,
    ActivityType.QA: QAResults,
}


def results_model(projection) -> BaseModel:
    """Wrap an aggregator projection in its wire model."""
    return RESULTS_MODELS[projection.type].model_validate(projection)


class LeaderboardRowInfo(BaseModel):
    name: str
    correct: int
    total: int
    accuracy: int = Field(description="Percent correct, rounded")

    model_config = {"from_attributes": True}


# =============================================================================
# Outbound Event Payloads
# =============================================================================

class ParticipantJoined(BaseModel):
    participant_count: int
    name: str
    participants: list[ParticipantInfo]


class ParticipantLeft(BaseModel):
    participant_count: int
    participants: list[ParticipantInfo]


class QuizFeedback(BaseModel):
    """Sent only to the participant who answered."""
    is_correct: bool
    correct_option: str
    score: int


class ActivityClosed(BaseModel):
    activity_id: str


class LeaderboardReveal(BaseModel):
    leaderboard: list[LeaderboardRowInfo]


class Notice(BaseModel):
    """Plain message events (session-ended, presenter-disconnected)."""
    message: str


# =============================================================================
# Acknowledgements
# =============================================================================

class AckFailure(BaseModel):
    success: bool = False
    error: str
    error_code: ErrorCode
    details: Optional[list[dict[str, Any]]] = None


# =============================================================================
# REST Responses
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Human-readable error message")
    error_code: ErrorCode = Field(..., description="Machine-readable error code")
    details: Optional[dict[str, Any]] = Field(None, description="Additional error context")


class SessionLookupResponse(BaseModel):
    """Existence check by code, used by the join page."""
    exists: bool = True
    name: str
    code: str
    participant_count: int
    is_active: bool


class CurrentResultsResponse(BaseModel):
    """Live projection of the activity at the cursor."""
    has_activity: bool
    activity: Optional[ActivityResults] = None


class HealthResponse(BaseModel):
    status: str = "healthy"
    service: str = "livepoll"
    version: str
    active_sessions: int = 0
