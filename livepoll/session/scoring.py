"""Speed-bonus scoring for quiz answers."""

from __future__ import annotations

MAX_POINTS = 1000
MIN_CORRECT_POINTS = 500
DEFAULT_WINDOW_MS = 30_000

# Used when a client sends an answer without a timing
DEFAULT_RESPONSE_TIME_MS = 25_000


def quiz_score(
    is_correct: bool,
    response_time_ms: float,
    window_ms: float = DEFAULT_WINDOW_MS,
) -> int:
    """
    Score a quiz answer.

    Incorrect answers score 0. Correct answers score MAX_POINTS at 0 ms,
    falling linearly to MIN_CORRECT_POINTS at the end of the window.
    Times outside [0, window] are clamped, so the curve never increases.
    """
    if not is_correct:
        return 0
    if window_ms <= 0:
        window_ms = DEFAULT_WINDOW_MS

    elapsed = min(max(response_time_ms, 0), window_ms)
    penalty = (MAX_POINTS - MIN_CORRECT_POINTS) * elapsed / window_ms
    return int(MAX_POINTS - penalty + 0.5)
