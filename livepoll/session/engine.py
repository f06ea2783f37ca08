"""
Session Engine - State machine for one live session.

A session holds:
- An ordered, append-only list of activities
- A navigation cursor (current_activity_index, -1 = nothing selected)
- The participant roster (connection identity -> participant)
- A lifecycle flag (is_active), which only ever goes True -> False

INVARIANTS (Non-Negotiable):
- At most one activity has is_open=True, and it is the one at the cursor
- The cursor never leaves [-1, len(activities) - 1]
- Once is_active is False, no participant submission is accepted
- A failed OperationResult means nothing was mutated

CONCURRENCY:
Every mutator runs to completion without awaiting. Callers that share a
session across threads hold session.lock around the mutate + project
pass so broadcasts see a consistent snapshot.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import logging
import threading
import time
import uuid

from .activity import (
    Activity,
    ActivityType,
    AudienceQuestion,
    PollActivity,
    PollResponse,
    QAActivity,
    QuizActivity,
    QuizResponse,
    WordCloudActivity,
    WordSubmission,
    create_activity,
)
from .aggregator import (
    LeaderboardRow,
    overall_leaderboard,
    project,
    project_poll,
    project_qa,
    project_quiz,
    project_wordcloud,
)
from .results import ErrorCode, OperationResult
from .scoring import DEFAULT_RESPONSE_TIME_MS, DEFAULT_WINDOW_MS, quiz_score

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "Untitled Session"
DEFAULT_DISPLAY_NAME = "Anonymous"


@dataclass
class Participant:
    """An audience member, keyed by connection identity."""
    identity: str
    name: str
    joined_at: float = field(default_factory=time.time)


@dataclass
class QuizOutcome:
    """What a quiz submission produced."""
    is_correct: bool
    score: int
    correct_option: str
    results: Any  # QuizProjection


@dataclass
class Session:
    """
    One presenter-owned live session.

    The presenter identity is fixed at creation. Ending a session keeps
    all state readable; only removal from the directory discards it.
    """
    code: str
    presenter_id: str
    name: str = DEFAULT_SESSION_NAME
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: float = field(default_factory=time.time)
    is_active: bool = True
    ended_at: float | None = None

    participants: dict[str, Participant] = field(default_factory=dict)
    activities: list[Activity] = field(default_factory=list)
    current_activity_index: int = -1

    # When False, submissions to a closed activity are refused
    accept_late_submissions: bool = True

    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    # =========================================================================
    # Lookup
    # =========================================================================

    def is_presenter(self, identity: str) -> bool:
        return identity == self.presenter_id

    def get_activity(self, activity_id: str) -> Activity | None:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None

    def current_activity(self) -> Activity | None:
        if 0 <= self.current_activity_index < len(self.activities):
            return self.activities[self.current_activity_index]
        return None

    def open_activities(self) -> list[Activity]:
        return [a for a in self.activities if a.is_open]

    # =========================================================================
    # Authoring
    # =========================================================================

    def create_activity(
        self,
        activity_type: ActivityType | str,
        question: str = "",
        options: list[str] | None = None,
        correct_answer: int | None = None,
        time_limit: int = 0,
    ) -> OperationResult:
        """
        Append a new closed activity.

        Option count and answer bounds are not checked; the authoring
        client is responsible for those.
        """
        activity = create_activity(
            activity_type,
            question=question,
            options=options,
            correct_answer=correct_answer,
            time_limit=time_limit,
        )
        self.activities.append(activity)
        logger.debug(
            "Activity %s (%s) added to session %s",
            activity.id, activity.activity_type.value, self.code,
        )
        return OperationResult.ok(activity)

    # =========================================================================
    # Navigation
    # =========================================================================

    def _move_to(self, index: int) -> Activity:
        current = self.current_activity()
        if current:
            current.is_open = False
        self.current_activity_index = index
        activity = self.activities[index]
        activity.is_open = True
        return activity

    def launch(self, index: int) -> OperationResult:
        """
        Open the activity at index, closing whatever was open.

        An out-of-range index changes nothing.
        """
        if not 0 <= index < len(self.activities):
            return OperationResult.failure(
                "No activity at that index", ErrorCode.INVALID_TRANSITION
            )
        return OperationResult.ok(self._move_to(index))

    def advance(self) -> OperationResult:
        """Move the cursor forward one step and open that activity."""
        if self.current_activity_index >= len(self.activities) - 1:
            return OperationResult.failure(
                "No more activities", ErrorCode.INVALID_TRANSITION
            )
        return OperationResult.ok(self._move_to(self.current_activity_index + 1))

    def retreat(self) -> OperationResult:
        """Move the cursor back one step and open that activity."""
        if self.current_activity_index <= 0:
            return OperationResult.failure(
                "Already at the beginning", ErrorCode.INVALID_TRANSITION
            )
        return OperationResult.ok(self._move_to(self.current_activity_index - 1))

    def close_current(self) -> OperationResult:
        """Close the activity at the cursor without moving the cursor."""
        activity = self.current_activity()
        if not activity:
            return OperationResult.failure(
                "No activity is selected", ErrorCode.NOT_FOUND
            )
        activity.is_open = False
        return OperationResult.ok(activity)

    # =========================================================================
    # Submissions
    # =========================================================================

    def _submission_target(
        self,
        activity_id: str,
        activity_type: ActivityType,
    ) -> Activity | OperationResult:
        """Resolve a submission target, or the failure explaining why not."""
        if not self.is_active:
            return OperationResult.failure(
                "Session has ended", ErrorCode.INACTIVE_SESSION
            )
        activity = self.get_activity(activity_id)
        if not activity or activity.activity_type != activity_type:
            return OperationResult.failure(
                f"No {activity_type.value} activity {activity_id}",
                ErrorCode.NOT_FOUND,
            )
        if not activity.is_open and not self.accept_late_submissions:
            return OperationResult.failure(
                "Activity is closed", ErrorCode.ACTIVITY_CLOSED
            )
        return activity

    def submit_poll_vote(
        self,
        activity_id: str,
        participant_id: str,
        option_index: int,
        display_name: str = DEFAULT_DISPLAY_NAME,
    ) -> OperationResult:
        """Record a vote, replacing this participant's previous one."""
        activity = self._submission_target(activity_id, ActivityType.POLL)
        if isinstance(activity, OperationResult):
            return activity

        activity.responses = [
            r for r in activity.responses if r.participant_id != participant_id
        ]
        activity.responses.append(
            PollResponse(
                participant_id=participant_id,
                option_index=option_index,
                display_name=display_name,
            )
        )
        return OperationResult.ok(project_poll(activity))

    def submit_quiz_answer(
        self,
        activity_id: str,
        participant_id: str,
        option_index: int,
        display_name: str = DEFAULT_DISPLAY_NAME,
        response_time_ms: float | None = None,
    ) -> OperationResult:
        """
        Record a quiz answer. Only the first answer per participant counts.

        Returns a QuizOutcome with correctness, score and the projection.
        """
        activity = self._submission_target(activity_id, ActivityType.QUIZ)
        if isinstance(activity, OperationResult):
            return activity

        if activity.response_for(participant_id):
            return OperationResult.failure(
                "Already answered", ErrorCode.DUPLICATE_SUBMISSION
            )

        if response_time_ms is None:
            response_time_ms = DEFAULT_RESPONSE_TIME_MS
        is_correct = option_index == activity.correct_index
        window_ms = activity.time_limit * 1000 or DEFAULT_WINDOW_MS
        score = quiz_score(is_correct, response_time_ms, window_ms)

        activity.responses.append(
            QuizResponse(
                participant_id=participant_id,
                option_index=option_index,
                display_name=display_name,
                is_correct=is_correct,
                response_time_ms=response_time_ms,
                score=score,
            )
        )
        return OperationResult.ok(
            QuizOutcome(
                is_correct=is_correct,
                score=score,
                correct_option=activity.option_text(activity.correct_index),
                results=project_quiz(activity),
            )
        )

    def submit_word(
        self,
        activity_id: str,
        participant_id: str,
        text: str,
        display_name: str = DEFAULT_DISPLAY_NAME,
    ) -> OperationResult:
        """Append a word (trimmed). Participants may submit any number."""
        activity = self._submission_target(activity_id, ActivityType.WORDCLOUD)
        if isinstance(activity, OperationResult):
            return activity

        activity.words.append(
            WordSubmission(
                participant_id=participant_id,
                text=text.strip(),
                display_name=display_name,
            )
        )
        return OperationResult.ok(project_wordcloud(activity))

    def submit_question(
        self,
        activity_id: str,
        participant_id: str,
        text: str,
        display_name: str = DEFAULT_DISPLAY_NAME,
    ) -> OperationResult:
        """Append an audience question with no upvotes."""
        activity = self._submission_target(activity_id, ActivityType.QA)
        if isinstance(activity, OperationResult):
            return activity

        activity.questions.append(
            AudienceQuestion(
                participant_id=participant_id,
                text=text.strip(),
                display_name=display_name,
            )
        )
        return OperationResult.ok(project_qa(activity))

    def toggle_upvote(
        self,
        activity_id: str,
        question_id: str,
        participant_id: str,
    ) -> OperationResult:
        """Add the participant's upvote, or remove it if already present."""
        if not self.is_active:
            return OperationResult.failure(
                "Session has ended", ErrorCode.INACTIVE_SESSION
            )
        activity = self.get_activity(activity_id)
        if not isinstance(activity, QAActivity):
            return OperationResult.failure(
                f"No qa activity {activity_id}", ErrorCode.NOT_FOUND
            )
        question = activity.get_question(question_id)
        if not question:
            return OperationResult.failure(
                f"No question {question_id}", ErrorCode.NOT_FOUND
            )

        if participant_id in question.upvoters:
            question.upvoters.discard(participant_id)
        else:
            question.upvoters.add(participant_id)
        return OperationResult.ok(project_qa(activity))

    # =========================================================================
    # Participants
    # =========================================================================

    def add_participant(self, identity: str, display_name: str | None = None) -> int:
        """Register (or re-register) a participant; returns the new count."""
        self.participants[identity] = Participant(
            identity=identity,
            name=display_name or DEFAULT_DISPLAY_NAME,
        )
        return len(self.participants)

    def remove_participant(self, identity: str) -> int:
        """Drop a participant if present; returns the new count."""
        self.participants.pop(identity, None)
        return len(self.participants)

    def display_name_for(self, identity: str) -> str:
        participant = self.participants.get(identity)
        return participant.name if participant else DEFAULT_DISPLAY_NAME

    def participant_list(self) -> list[dict[str, Any]]:
        return [
            {"name": p.name, "joined_at": p.joined_at}
            for p in self.participants.values()
        ]

    # =========================================================================
    # Lifecycle & reads
    # =========================================================================

    def end(self) -> list[LeaderboardRow]:
        """
        End the session. Permanent; state stays readable.

        Returns the overall leaderboard at the moment of ending.
        """
        if self.is_active:
            self.is_active = False
            self.ended_at = time.time()
            logger.info("Session %s ended", self.code)
        return self.overall_leaderboard()

    def overall_leaderboard(self) -> list[LeaderboardRow]:
        return overall_leaderboard(self.activities)

    def project(self, activity_id: str) -> OperationResult:
        """Live projection for any activity in this session."""
        activity = self.get_activity(activity_id)
        if not activity:
            return OperationResult.failure(
                f"No activity {activity_id}", ErrorCode.NOT_FOUND
            )
        return OperationResult.ok(project(activity))

    def summary(self) -> dict[str, Any]:
        """Full read-only summary of the session."""
        return {
            "id": self.session_id,
            "code": self.code,
            "name": self.name,
            "created_at": self.created_at,
            "current_activity_index": self.current_activity_index,
            "participant_count": len(self.participants),
            "activity_count": len(self.activities),
            "is_active": self.is_active,
            "activities": [
                {
                    "id": a.id,
                    "type": a.activity_type,
                    "question": a.question,
                    "options": a.options,
                    "is_open": a.is_open,
                    "response_count": a.response_count,
                }
                for a in self.activities
            ],
        }
