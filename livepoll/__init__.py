"""
LivePoll - Real-time audience interaction engine

Runs live sessions where a presenter drives a sequence of activities
(polls, quizzes, word clouds, Q&A) and the audience responds in real time:
- Session state machine (open/close, navigation)
- Submission rules (last vote wins, first answer wins)
- Result projections recomputed on every submission
- Scoped fan-out to presenter, room, or a single participant
"""

__version__ = "0.1.0"
