"""
Activities - The four kinds of prompt a presenter can run.

Each kind is its own dataclass with its own response collection:
- PollActivity: one vote per participant, last vote wins
- QuizActivity: one answer per participant, first answer wins
- WordCloudActivity: unbounded list of submitted words
- QAActivity: audience questions with upvoter sets

The kind tag (ActivityType) is fixed per class and never changes
after creation. Use create_activity() to build the right variant.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Union
import time
import uuid


class ActivityType(str, Enum):
    """Kinds of activity."""
    POLL = "poll"
    QUIZ = "quiz"
    WORDCLOUD = "wordcloud"
    QA = "qa"


def _new_id() -> str:
    return str(uuid.uuid4())


# =============================================================================
# Response records
# =============================================================================

@dataclass
class PollResponse:
    """A participant's current vote on a poll."""
    participant_id: str
    option_index: int
    display_name: str
    submitted_at: float = field(default_factory=time.time)


@dataclass
class QuizResponse:
    """A participant's (only) answer to a quiz question."""
    participant_id: str
    option_index: int
    display_name: str
    is_correct: bool
    response_time_ms: float
    score: int
    submitted_at: float = field(default_factory=time.time)


@dataclass
class WordSubmission:
    """One word or short phrase for a word cloud."""
    participant_id: str
    text: str
    display_name: str
    submitted_at: float = field(default_factory=time.time)


@dataclass
class AudienceQuestion:
    """A question asked by an audience member during Q&A."""
    participant_id: str
    text: str
    display_name: str
    id: str = field(default_factory=_new_id)
    submitted_at: float = field(default_factory=time.time)
    upvoters: set[str] = field(default_factory=set)

    @property
    def upvote_count(self) -> int:
        return len(self.upvoters)


# =============================================================================
# Activity variants
# =============================================================================

@dataclass
class BaseActivity:
    """Fields shared by every activity kind."""
    question: str = ""
    id: str = field(default_factory=_new_id)
    is_open: bool = False
    time_limit: int = 0  # seconds, 0 = untimed
    created_at: float = field(default_factory=time.time)

    activity_type: ClassVar[ActivityType]

    @property
    def options(self) -> list[str]:
        return []

    @property
    def correct_answer(self) -> int | None:
        return None

    @property
    def response_count(self) -> int:
        raise NotImplementedError


@dataclass
class PollActivity(BaseActivity):
    choices: list[str] = field(default_factory=list)
    responses: list[PollResponse] = field(default_factory=list)

    activity_type: ClassVar[ActivityType] = ActivityType.POLL

    @property
    def options(self) -> list[str]:
        return self.choices

    @property
    def response_count(self) -> int:
        return len(self.responses)


@dataclass
class QuizActivity(BaseActivity):
    choices: list[str] = field(default_factory=list)
    correct_index: int | None = None
    responses: list[QuizResponse] = field(default_factory=list)

    activity_type: ClassVar[ActivityType] = ActivityType.QUIZ

    @property
    def options(self) -> list[str]:
        return self.choices

    @property
    def correct_answer(self) -> int | None:
        return self.correct_index

    @property
    def response_count(self) -> int:
        return len(self.responses)

    def response_for(self, participant_id: str) -> QuizResponse | None:
        for response in self.responses:
            if response.participant_id == participant_id:
                return response
        return None

    def option_text(self, index: int | None) -> str:
        """Option text for an index, "?" when it does not resolve."""
        if index is None or not 0 <= index < len(self.choices):
            return "?"
        return self.choices[index]


@dataclass
class WordCloudActivity(BaseActivity):
    words: list[WordSubmission] = field(default_factory=list)

    activity_type: ClassVar[ActivityType] = ActivityType.WORDCLOUD

    @property
    def response_count(self) -> int:
        return len(self.words)


@dataclass
class QAActivity(BaseActivity):
    questions: list[AudienceQuestion] = field(default_factory=list)

    activity_type: ClassVar[ActivityType] = ActivityType.QA

    @property
    def response_count(self) -> int:
        return len(self.questions)

    def get_question(self, question_id: str) -> AudienceQuestion | None:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None


Activity = Union[PollActivity, QuizActivity, WordCloudActivity, QAActivity]


def create_activity(
    activity_type: ActivityType | str,
    question: str = "",
    options: list[str] | None = None,
    correct_answer: int | None = None,
    time_limit: int = 0,
) -> Activity:
    """
    Build a fresh, closed activity of the given kind.

    Options are only kept for poll and quiz; correct_answer only for quiz.
    No validation of option count or answer bounds happens here.
    """
    activity_type = ActivityType(activity_type)
    options = list(options or [])

    if activity_type == ActivityType.POLL:
        return PollActivity(question=question, time_limit=time_limit, choices=options)
    if activity_type == ActivityType.QUIZ:
        return QuizActivity(
            question=question,
            time_limit=time_limit,
            choices=options,
            correct_index=correct_answer,
        )
    if activity_type == ActivityType.WORDCLOUD:
        return WordCloudActivity(question=question, time_limit=time_limit)
    return QAActivity(question=question, time_limit=time_limit)
