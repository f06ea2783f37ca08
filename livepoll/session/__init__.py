"""
Session Module - Live interactive sessions.

A session is one presenter's run of activities:
- Created when the presenter opens a room
- Holds the activity sequence, roster and navigation cursor
- Accepts audience submissions and re-projects results after each one
- Ended by the presenter (state kept, submissions refused)

Sessions are EPHEMERAL:
- No persistence to database
- Removed from the directory explicitly or reaped after ending
"""

from .activity import (
    Activity,
    ActivityType,
    PollActivity,
    QuizActivity,
    WordCloudActivity,
    QAActivity,
    create_activity,
)
from .aggregator import LeaderboardRow, Projection, overall_leaderboard, project
from .codes import allocate_code
from .directory import SessionDirectory
from .engine import Participant, QuizOutcome, Session
from .results import ErrorCode, OperationResult
from .scoring import quiz_score

__all__ = [
    "Activity",
    "ActivityType",
    "PollActivity",
    "QuizActivity",
    "WordCloudActivity",
    "QAActivity",
    "create_activity",
    "LeaderboardRow",
    "Projection",
    "overall_leaderboard",
    "project",
    "allocate_code",
    "SessionDirectory",
    "Participant",
    "QuizOutcome",
    "Session",
    "ErrorCode",
    "OperationResult",
    "quiz_score",
]
