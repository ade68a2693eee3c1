MNEMONICS = {
    "7x8": "Think 7×8=56: five-six. A handy rhyme!",
}


def _key_for(a: int, b: int) -> str:
    x, y = sorted((a, b))
    return f"{x}x{y}"


def deterministic_hint(a: int, b: int) -> str:
    """Offline hint used whenever the AI coach is unavailable."""
    if a == 9 or b == 9:
        return "For 9×N, the digits sum to 9 (e.g., 9×7=63 → 6+3=9)."
    return MNEMONICS.get(_key_for(a, b), "Break it down: (a×10) − (a×(10−b)).")
