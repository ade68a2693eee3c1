"""
Pydantic schemas for AI responses used by the times tables coach.
Anything that fails validation is replaced by a deterministic fallback.
"""
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

ErrorPattern = Literal["typo", "reversal", "near-multiple", "unknown"]


class Hint(BaseModel):
    hint: str = Field(..., max_length=160)
    teacher_note: Optional[str] = Field(None, max_length=160)


class Explain(BaseModel):
    message: str = Field(..., max_length=200)
    pattern: Optional[ErrorPattern] = None


class WordProblem(BaseModel):
    problem: str = Field(..., max_length=160)
    operands: List[int] = Field(..., min_length=2, max_length=2)
    op: Literal["*"]
    cultural_check: Optional[bool] = None

    @field_validator("operands", mode="before")
    @classmethod
    def operands_are_numbers(cls, value):
        if not isinstance(value, list) or any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in value):
            raise ValueError("operands must be numbers")
        return value


class ChallengeQuestion(BaseModel):
    factId: str
    a: int
    b: int
    prompt: str = Field(..., max_length=120)
    answer: int


# JSON schemas sent to the model when safe mode is on
HINT_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "hint": {"type": "string", "maxLength": 160},
        "teacher_note": {"type": "string", "maxLength": 160},
    },
    "required": ["hint"],
    "additionalProperties": False,
}

EXPLAIN_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "message": {"type": "string", "maxLength": 200},
        "pattern": {"type": "string", "enum": ["typo", "reversal", "near-multiple", "unknown"]},
    },
    "required": ["message"],
    "additionalProperties": False,
}

WORD_PROBLEM_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "problem": {"type": "string", "maxLength": 160},
        "operands": {"type": "array", "items": {"type": "integer"}, "minItems": 2, "maxItems": 2},
        "op": {"type": "string", "enum": ["*"]},
        "cultural_check": {"type": "boolean"},
    },
    "required": ["problem", "operands", "op"],
    "additionalProperties": False,
}


def challenge_json_schema(count: int) -> dict:
    return {
        "type": "object",
        "properties": {
            "questions": {
                "type": "array",
                "minItems": count,
                "maxItems": count,
                "items": {
                    "type": "object",
                    "properties": {
                        "factId": {"type": "string"},
                        "prompt": {"type": "string", "maxLength": 120},
                        "answer": {"type": "integer"},
                    },
                    "required": ["factId", "prompt", "answer"],
                    "additionalProperties": False,
                },
            },
        },
        "required": ["questions"],
        "additionalProperties": False,
    }


def _parse(model, value: Any):
    if not isinstance(value, dict):
        return None
    try:
        return model.model_validate(value)
    except ValidationError:
        return None


def validate_hint(value: Any) -> Optional[Hint]:
    return _parse(Hint, value)


def validate_explain(value: Any) -> Optional[Explain]:
    return _parse(Explain, value)


def validate_word_problem(value: Any) -> Optional[WordProblem]:
    return _parse(WordProblem, value)


def validate_challenge_question(value: Any) -> Optional[ChallengeQuestion]:
    return _parse(ChallengeQuestion, value)
