"""
Activity Aggregator - Point-in-time result projections.

Pure functions: each takes an activity and returns a projection
computed from scratch over its raw responses. Nothing is cached or
updated incrementally; callers re-project after every mutation.

Design principles:
- Dispatch on the activity's kind tag, not on which fields exist
- Stable sorts, so ties keep submission order
- No mutation of the activity
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Iterable, Union

from .activity import (
    ActivityType,
    BaseActivity,
    PollActivity,
    QuizActivity,
    WordCloudActivity,
    QAActivity,
)


# =============================================================================
# Projection types
# =============================================================================

@dataclass
class PollOptionTally:
    option: str
    votes: int
    voter_names: list[str] = field(default_factory=list)


@dataclass
class PollProjection:
    activity_id: str
    question: str
    results: list[PollOptionTally]
    total_votes: int
    type: ActivityType = ActivityType.POLL


@dataclass
class QuizOptionTally:
    option: str
    count: int
    is_correct: bool


@dataclass
class QuizLeaderboardEntry:
    name: str
    is_correct: bool
    answered_option: str
    correct_option: str
    answered_at: float
    response_time_ms: float
    score: int


@dataclass
class QuizProjection:
    activity_id: str
    question: str
    results: list[QuizOptionTally]
    total_answers: int
    correct_count: int
    correct_answer: int | None
    correct_option: str
    leaderboard: list[QuizLeaderboardEntry]
    type: ActivityType = ActivityType.QUIZ


@dataclass
class WordCount:
    text: str
    count: int


@dataclass
class WordCloudProjection:
    activity_id: str
    question: str
    words: list[WordCount]
    total_submissions: int
    type: ActivityType = ActivityType.WORDCLOUD


@dataclass
class RankedQuestion:
    id: str
    text: str
    participant_name: str
    upvote_count: int
    submitted_at: float


@dataclass
class QAProjection:
    activity_id: str
    question: str
    questions: list[RankedQuestion]
    total_questions: int
    type: ActivityType = ActivityType.QA


@dataclass
class LeaderboardRow:
    """One row of the session-wide quiz leaderboard."""
    name: str
    correct: int
    total: int
    accuracy: int  # percent, rounded half-up


Projection = Union[PollProjection, QuizProjection, WordCloudProjection, QAProjection]


# =============================================================================
# Projections
# =============================================================================

def project_poll(activity: PollActivity) -> PollProjection:
    """Tally current votes per option (one vote per participant)."""
    results = []
    for index, option in enumerate(activity.choices):
        voters = [r for r in activity.responses if r.option_index == index]
        results.append(
            PollOptionTally(
                option=option,
                votes=len(voters),
                voter_names=[v.display_name for v in voters],
            )
        )

    return PollProjection(
        activity_id=activity.id,
        question=activity.question,
        results=results,
        total_votes=len(activity.responses),
    )


def project_quiz(activity: QuizActivity) -> QuizProjection:
    """
    Tally answers per option and rank this question's responders.

    Leaderboard order: correct answers first, then earliest submission.
    """
    results = [
        QuizOptionTally(
            option=option,
            count=sum(1 for r in activity.responses if r.option_index == index),
            is_correct=index == activity.correct_index,
        )
        for index, option in enumerate(activity.choices)
    ]

    correct_option = activity.option_text(activity.correct_index)
    leaderboard = [
        QuizLeaderboardEntry(
            name=r.display_name,
            is_correct=r.is_correct,
            answered_option=activity.option_text(r.option_index),
            correct_option=correct_option,
            answered_at=r.submitted_at,
            response_time_ms=r.response_time_ms,
            score=r.score,
        )
        for r in activity.responses
    ]
    leaderboard.sort(key=lambda e: (not e.is_correct, e.answered_at))

    return QuizProjection(
        activity_id=activity.id,
        question=activity.question,
        results=results,
        total_answers=len(activity.responses),
        correct_count=sum(1 for r in activity.responses if r.is_correct),
        correct_answer=activity.correct_index,
        correct_option=correct_option,
        leaderboard=leaderboard,
    )


def project_wordcloud(activity: WordCloudActivity) -> WordCloudProjection:
    """Case-insensitive word frequencies, most frequent first."""
    counts: dict[str, int] = {}
    for submission in activity.words:
        key = submission.text.lower()
        counts[key] = counts.get(key, 0) + 1

    words = [WordCount(text=text, count=count) for text, count in counts.items()]
    words.sort(key=lambda w: -w.count)

    return WordCloudProjection(
        activity_id=activity.id,
        question=activity.question,
        words=words,
        total_submissions=len(activity.words),
    )


def project_qa(activity: QAActivity) -> QAProjection:
    """Audience questions, most upvoted first."""
    questions = [
        RankedQuestion(
            id=q.id,
            text=q.text,
            participant_name=q.display_name,
            upvote_count=q.upvote_count,
            submitted_at=q.submitted_at,
        )
        for q in activity.questions
    ]
    questions.sort(key=lambda q: -q.upvote_count)

    return QAProjection(
        activity_id=activity.id,
        question=activity.question,
        questions=questions,
        total_questions=len(activity.questions),
    )


_PROJECTORS: dict[ActivityType, Callable[..., Projection]] = {
    ActivityType.POLL: project_poll,
    ActivityType.QUIZ: project_quiz,
    ActivityType.WORDCLOUD: project_wordcloud,
    ActivityType.QA: project_qa,
}


def project(activity: BaseActivity) -> Projection:
    """Compute the projection for any activity kind."""
    return _PROJECTORS[activity.activity_type](activity)


def overall_leaderboard(activities: Iterable[BaseActivity]) -> list[LeaderboardRow]:
    """
    Aggregate correct/attempted counts across every quiz activity.

    Rows are keyed by display name, so two participants who picked the
    same name share a row. Sorted by correct count, then accuracy.
    """
    totals: dict[str, list[int]] = {}
    for activity in activities:
        if activity.activity_type != ActivityType.QUIZ:
            continue
        for response in activity.responses:
            entry = totals.setdefault(response.display_name, [0, 0])
            entry[1] += 1
            if response.is_correct:
                entry[0] += 1

    rows = [
        LeaderboardRow(
            name=name,
            correct=correct,
            total=total,
            accuracy=int(correct * 100 / total + 0.5) if total else 0,
        )
        for name, (correct, total) in totals.items()
    ]
    rows.sort(key=lambda r: (-r.correct, -r.accuracy))
    return rows
