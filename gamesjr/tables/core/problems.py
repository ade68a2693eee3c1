import random
from typing import Any, Dict, Optional

NAMES = ["Ava", "Liam", "Mia", "Noah", "Zoe", "Leo"]

THEMES = {
    "animals": "{name} sees {a} rows of {b} birds. How many birds in total?",
    "space": "{name} stacks {a} trays with {b} star stickers each. How many stickers?",
    "pirates": "{name} packs {a} chests with {b} coins each. How many coins?",
    "sports": "{name} arranges {a} rows of {b} balls. How many balls?",
}

MAX_PROBLEM_LENGTH = 160


def generate_deterministic_problem(a: int, b: int, theme: Optional[str] = None,
                                   rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Templated word problem; unknown themes fall back to animals."""
    template = THEMES.get(theme or "animals", THEMES["animals"])
    name = (rng or random).choice(NAMES)
    text = template.format(name=name, a=a, b=b)
    return {"problem": text[:MAX_PROBLEM_LENGTH], "operands": [a, b], "op": "*"}
