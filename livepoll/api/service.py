"""
API Service - Real-time coordination between connections and sessions.

The service:
1. Validates inbound event payloads
2. Enforces presenter-only authorization
3. Runs the engine operation under the session lock
4. Decides who hears about it (presenter, room, or one participant)
5. Serves read-only snapshots for the REST endpoints

This layer is framework-agnostic: it returns Emissions naming the
recipients by identity, and the transport (see connections.py) does
the actual sending.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable
import logging

from pydantic import BaseModel, ValidationError

from .schemas import (
    # Inbound
    AddActivityPayload,
    CreateSessionPayload,
    JoinSessionPayload,
    LaunchActivityPayload,
    SessionCodePayload,
    SubmitAnswerPayload,
    SubmitQuestionPayload,
    SubmitVotePayload,
    SubmitWordPayload,
    UpvoteQuestionPayload,
    # Outbound
    ActivityClosed,
    ActivityInfo,
    AckFailure,
    LeaderboardReveal,
    LeaderboardRowInfo,
    Notice,
    ParticipantInfo,
    ParticipantJoined,
    ParticipantLeft,
    QuizFeedback,
    SessionSummary,
    results_model,
    # REST
    CurrentResultsResponse,
    ErrorResponse,
    SessionLookupResponse,
)
from ..session import ErrorCode, OperationResult, Session, SessionDirectory

logger = logging.getLogger(__name__)


class Audience(Enum):
    """Who an outbound event is meant for."""
    PRESENTER = "presenter"
    ROOM = "room"
    PARTICIPANT = "participant"


@dataclass
class Emission:
    """An outbound event with its resolved recipients."""
    event: str
    payload: dict[str, Any]
    audience: Audience
    recipients: list[str] = field(default_factory=list)


@dataclass
class Dispatch:
    """
    Outcome of handling one inbound event.

    ack goes back to the sender only; emissions fan out.
    """
    ack: dict[str, Any]
    emissions: list[Emission] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return bool(self.ack.get("success"))


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json")


def _ok(**data: Any) -> dict[str, Any]:
    return {"success": True, **data}


def _fail(
    error: str,
    error_code: ErrorCode,
    details: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    return _dump(AckFailure(error=error, error_code=error_code, details=details))


def _from_result(result: OperationResult) -> dict[str, Any]:
    return _fail(result.error or "Operation failed", result.error_code)


@dataclass
class APIService:
    """
    Coordinator for live sessions.

    Usage:
        service = APIService()

        dispatch = service.handle(identity, "create-session", {"name": "Demo"})
        send_to_sender(dispatch.ack)
        deliver(dispatch.emissions)

        # On socket close
        deliver(service.disconnect(identity))
    """
    directory: SessionDirectory = field(default_factory=SessionDirectory)

    # Ended sessions older than this are reaped on each create-session
    ended_session_ttl: float = 3600

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _handlers(self) -> dict[str, tuple[type[BaseModel], Callable[..., Dispatch]]]:
        return {
            "create-session": (CreateSessionPayload, self._create_session),
            "join-session": (JoinSessionPayload, self._join_session),
            "add-activity": (AddActivityPayload, self._add_activity),
            "launch-activity": (LaunchActivityPayload, self._launch_activity),
            "next-activity": (SessionCodePayload, self._next_activity),
            "prev-activity": (SessionCodePayload, self._prev_activity),
            "close-activity": (SessionCodePayload, self._close_activity),
            "submit-vote": (SubmitVotePayload, self._submit_vote),
            "submit-answer": (SubmitAnswerPayload, self._submit_answer),
            "submit-word": (SubmitWordPayload, self._submit_word),
            "submit-question": (SubmitQuestionPayload, self._submit_question),
            "upvote-question": (UpvoteQuestionPayload, self._upvote_question),
            "end-session": (SessionCodePayload, self._end_session),
            "show-leaderboard": (SessionCodePayload, self._show_leaderboard),
        }

    def handle(self, identity: str, event: str, data: dict[str, Any] | None = None) -> Dispatch:
        """
        Handle one inbound event from a connection.

        Never raises for client mistakes; failures come back in the ack.
        """
        entry = self._handlers().get(event)
        if not entry:
            return Dispatch(ack=_fail(f"Unknown event: {event}", ErrorCode.UNKNOWN_EVENT))

        payload_model, handler = entry
        try:
            payload = payload_model.model_validate(data or {})
        except ValidationError as e:
            return Dispatch(
                ack=_fail(
                    f"Invalid payload for {event}",
                    ErrorCode.VALIDATION_ERROR,
                    details=e.errors(include_url=False, include_context=False),
                )
            )

        dispatch = handler(identity, payload)
        if not dispatch.success:
            logger.debug(
                "%s from %s rejected: %s", event, identity, dispatch.ack.get("error_code")
            )
        return dispatch

    def disconnect(self, identity: str) -> list[Emission]:
        """
        A connection went away.

        Presenter leaving only notifies the room; the session stays.
        A participant leaving is removed from the roster.
        """
        session = self.directory.find_by_identity(identity)
        if not session:
            return []

        with session.lock:
            if session.is_presenter(identity):
                logger.info("Presenter of session %s disconnected", session.code)
                return [
                    self._to_room(
                        session,
                        "presenter-disconnected",
                        Notice(message="The presenter has disconnected."),
                        exclude=identity,
                    )
                ]

            count = session.remove_participant(identity)
            logger.info("Participant left session %s (%d remaining)", session.code, count)
            return [
                self._to_presenter(
                    session,
                    "participant-left",
                    ParticipantLeft(
                        participant_count=count,
                        participants=self._participants(session),
                    ),
                )
            ]

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def _create_session(self, identity: str, payload: CreateSessionPayload) -> Dispatch:
        self.directory.cleanup_ended_sessions(self.ended_session_ttl)
        session = self.directory.create(payload.name, identity)
        return Dispatch(ack=_ok(session=self._summary(session)))

    def _join_session(self, identity: str, payload: JoinSessionPayload) -> Dispatch:
        session = self.directory.get(payload.code)
        if not session:
            return Dispatch(ack=_fail("Session not found", ErrorCode.NOT_FOUND))

        with session.lock:
            if not session.is_active:
                return Dispatch(ack=_fail("Session has ended", ErrorCode.INACTIVE_SESSION))

            count = session.add_participant(identity, payload.name)
            name = session.display_name_for(identity)
            logger.info("%s joined session %s", name, session.code)

            current = session.current_activity()
            ack = _ok(
                session_name=session.name,
                participant_count=count,
                current_activity=self._activity(current) if current else None,
            )
            joined = self._to_presenter(
                session,
                "participant-joined",
                ParticipantJoined(
                    participant_count=count,
                    name=name,
                    participants=self._participants(session),
                ),
            )
        return Dispatch(ack=ack, emissions=[joined])

    def _end_session(self, identity: str, payload: SessionCodePayload) -> Dispatch:
        session, denied = self._authorize(identity, payload.code)
        if denied:
            return denied

        with session.lock:
            leaderboard = session.end()
            ended = self._to_room(
                session,
                "session-ended",
                Notice(message="Session has ended. Thank you!"),
                exclude=identity,
            )
            ack = _ok(leaderboard=self._leaderboard(leaderboard))
        return Dispatch(ack=ack, emissions=[ended])

    def _show_leaderboard(self, identity: str, payload: SessionCodePayload) -> Dispatch:
        session, denied = self._authorize(identity, payload.code)
        if denied:
            return denied

        with session.lock:
            reveal = LeaderboardReveal(
                leaderboard=self._leaderboard(session.overall_leaderboard())
            )
            emission = self._to_room(session, "leaderboard-reveal", reveal)
        return Dispatch(ack=_ok(leaderboard=_dump(reveal)["leaderboard"]), emissions=[emission])

    # =========================================================================
    # Authoring & navigation (presenter only)
    # =========================================================================

    def _add_activity(self, identity: str, payload: AddActivityPayload) -> Dispatch:
        session, denied = self._authorize(identity, payload.code)
        if denied:
            return denied

        with session.lock:
            result = session.create_activity(
                payload.type,
                question=payload.question,
                options=payload.options,
                correct_answer=payload.correct_answer,
                time_limit=payload.time_limit,
            )
            ack = _ok(activity=self._activity(result.value), session=self._summary(session))
        return Dispatch(ack=ack)

    def _launch_activity(self, identity: str, payload: LaunchActivityPayload) -> Dispatch:
        return self._navigate(identity, payload.code, lambda s: s.launch(payload.index))

    def _next_activity(self, identity: str, payload: SessionCodePayload) -> Dispatch:
        return self._navigate(identity, payload.code, lambda s: s.advance())

    def _prev_activity(self, identity: str, payload: SessionCodePayload) -> Dispatch:
        return self._navigate(identity, payload.code, lambda s: s.retreat())

    def _navigate(
        self,
        identity: str,
        code: str,
        move: Callable[[Session], OperationResult],
    ) -> Dispatch:
        session, denied = self._authorize(identity, code)
        if denied:
            return denied

        with session.lock:
            result = move(session)
            if not result:
                return Dispatch(ack=_from_result(result))

            activity = self._activity(result.value)
            logger.info(
                "Session %s launched activity %d (%s)",
                session.code, session.current_activity_index, activity["type"],
            )
            launched = self._to_room(session, "activity-launched", activity, exclude=identity)
            ack = _ok(activity=activity, session=self._summary(session))
        return Dispatch(ack=ack, emissions=[launched])

    def _close_activity(self, identity: str, payload: SessionCodePayload) -> Dispatch:
        session, denied = self._authorize(identity, payload.code)
        if denied:
            return denied

        with session.lock:
            result = session.close_current()
            if not result:
                return Dispatch(ack=_from_result(result))

            closed = ActivityClosed(activity_id=result.value.id)
            emission = self._to_room(session, "activity-closed", closed, exclude=identity)
        return Dispatch(ack=_ok(activity_id=closed.activity_id), emissions=[emission])

    # =========================================================================
    # Participant submissions
    # =========================================================================

    def _submit_vote(self, identity: str, payload: SubmitVotePayload) -> Dispatch:
        return self._submit(
            identity,
            payload.code,
            "poll-results",
            lambda s: s.submit_poll_vote(
                payload.activity_id,
                identity,
                payload.option_index,
                s.display_name_for(identity),
            ),
        )

    def _submit_word(self, identity: str, payload: SubmitWordPayload) -> Dispatch:
        return self._submit(
            identity,
            payload.code,
            "wordcloud-results",
            lambda s: s.submit_word(
                payload.activity_id,
                identity,
                payload.word,
                s.display_name_for(identity),
            ),
        )

    def _submit_question(self, identity: str, payload: SubmitQuestionPayload) -> Dispatch:
        return self._submit(
            identity,
            payload.code,
            "qa-results",
            lambda s: s.submit_question(
                payload.activity_id,
                identity,
                payload.text,
                s.display_name_for(identity),
            ),
        )

    def _upvote_question(self, identity: str, payload: UpvoteQuestionPayload) -> Dispatch:
        return self._submit(
            identity,
            payload.code,
            "qa-results",
            lambda s: s.toggle_upvote(payload.activity_id, payload.question_id, identity),
        )

    def _submit(
        self,
        identity: str,
        code: str,
        event: str,
        operation: Callable[[Session], OperationResult],
    ) -> Dispatch:
        """Run a submission and broadcast the fresh projection to the room."""
        session = self.directory.get(code)
        if not session:
            return Dispatch(ack=_fail("Session not found", ErrorCode.NOT_FOUND))

        with session.lock:
            result = operation(session)
            if not result:
                return Dispatch(ack=_from_result(result))
            emission = self._to_room(session, event, results_model(result.value))
        return Dispatch(ack=_ok(), emissions=[emission])

    def _submit_answer(self, identity: str, payload: SubmitAnswerPayload) -> Dispatch:
        session = self.directory.get(payload.code)
        if not session:
            return Dispatch(ack=_fail("Session not found", ErrorCode.NOT_FOUND))

        with session.lock:
            result = session.submit_quiz_answer(
                payload.activity_id,
                identity,
                payload.option_index,
                session.display_name_for(identity),
                payload.response_time_ms,
            )
            if not result:
                return Dispatch(ack=_from_result(result))

            outcome = result.value
            # Correctness goes to the answering participant only
            feedback = Emission(
                event="quiz-feedback",
                payload=_dump(
                    QuizFeedback(
                        is_correct=outcome.is_correct,
                        correct_option=outcome.correct_option,
                        score=outcome.score,
                    )
                ),
                audience=Audience.PARTICIPANT,
                recipients=[identity],
            )
            results = self._to_presenter(session, "quiz-results", results_model(outcome.results))
        return Dispatch(ack=_ok(), emissions=[feedback, results])

    # =========================================================================
    # Read-only snapshots
    # =========================================================================

    def lookup(self, code: str) -> SessionLookupResponse | ErrorResponse:
        """Session existence and metadata by code."""
        session = self.directory.get(code)
        if not session:
            return ErrorResponse(error="Session not found", error_code=ErrorCode.NOT_FOUND)
        return SessionLookupResponse(
            name=session.name,
            code=session.code,
            participant_count=len(session.participants),
            is_active=session.is_active,
        )

    def current_results(self, code: str) -> CurrentResultsResponse | ErrorResponse:
        """Projection of the activity at the session's cursor."""
        session = self.directory.get(code)
        if not session:
            return ErrorResponse(error="Session not found", error_code=ErrorCode.NOT_FOUND)

        with session.lock:
            activity = session.current_activity()
            if not activity:
                return CurrentResultsResponse(has_activity=False)
            projection = session.project(activity.id).value
            return CurrentResultsResponse(
                has_activity=True,
                activity=results_model(projection),
            )

    def summary(self, code: str) -> SessionSummary | ErrorResponse:
        """Full session summary."""
        session = self.directory.get(code)
        if not session:
            return ErrorResponse(error="Session not found", error_code=ErrorCode.NOT_FOUND)
        with session.lock:
            return SessionSummary.model_validate(session.summary())

    def list_sessions(self) -> list[str]:
        """List codes of sessions that have not ended."""
        return self.directory.list_active_sessions()

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _authorize(
        self,
        identity: str,
        code: str,
    ) -> tuple[Session | None, Dispatch | None]:
        """Resolve a session for a presenter-only operation."""
        session = self.directory.get(code)
        if not session:
            return None, Dispatch(ack=_fail("Session not found", ErrorCode.NOT_FOUND))
        if not session.is_presenter(identity):
            logger.warning("Unauthorized presenter action on %s from %s", code, identity)
            return None, Dispatch(ack=_fail("Unauthorized", ErrorCode.UNAUTHORIZED))
        return session, None

    def _room(self, session: Session) -> list[str]:
        # A presenter that also joined its own room is still one member
        return list(dict.fromkeys([session.presenter_id, *session.participants]))

    def _to_room(
        self,
        session: Session,
        event: str,
        payload: BaseModel | dict[str, Any],
        exclude: str | None = None,
    ) -> Emission:
        return Emission(
            event=event,
            payload=_dump(payload) if isinstance(payload, BaseModel) else payload,
            audience=Audience.ROOM,
            recipients=[i for i in self._room(session) if i != exclude],
        )

    def _to_presenter(self, session: Session, event: str, payload: BaseModel) -> Emission:
        return Emission(
            event=event,
            payload=_dump(payload),
            audience=Audience.PRESENTER,
            recipients=[session.presenter_id],
        )

    def _activity(self, activity) -> dict[str, Any]:
        return _dump(ActivityInfo.model_validate(activity))

    def _participants(self, session: Session) -> list[ParticipantInfo]:
        return [ParticipantInfo(**p) for p in session.participant_list()]

    def _leaderboard(self, rows) -> list[dict[str, Any]]:
        return [_dump(LeaderboardRowInfo.model_validate(row)) for row in rows]

    def _summary(self, session: Session) -> dict[str, Any]:
        return _dump(SessionSummary.model_validate(session.summary()))
