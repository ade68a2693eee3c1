import math
from typing import Optional


def session_score(accuracy: Optional[float], unique_mastered: Optional[int], base: float = 100) -> int:
    """
    Score for a finished session: base * accuracy^2 * sqrt(unique_mastered).

    Accuracy is clamped to [0, 1] and the mastered count is floored at 1,
    so the function is total over any numeric input.
    """
    if accuracy is None or math.isnan(accuracy):
        accuracy = 0
    safe_accuracy = max(0.0, min(1.0, accuracy))
    mastered = max(1, unique_mastered or 0)
    # Half-up rounding
    return int(math.floor(base * safe_accuracy ** 2 * math.sqrt(mastered) + 0.5))
