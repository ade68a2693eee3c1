import math
import re

_EMAIL = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


def _clamp_operand(value) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(number):
        return 0
    return int(max(0, min(12, math.floor(number))))


def sanitize_operands(a, b):
    """Clamp both operands to whole numbers in 0..12."""
    return _clamp_operand(a), _clamp_operand(b)


def strip_pii(text: str) -> str:
    if not text:
        return ""
    return _EMAIL.sub("[redacted]", text)
