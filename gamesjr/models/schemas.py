from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional


class Game(BaseModel):
    """A catalog entry; only slug and title are required."""
    model_config = ConfigDict(extra="allow")

    slug: str
    title: str
    description: Optional[str] = None
    description_it: Optional[str] = None
    price: Optional[float] = None
    tags: List[str] = Field(default_factory=list)
    hero: Optional[str] = None
    screenshots: List[str] = Field(default_factory=list)
    demoPath: Optional[str] = None
    status: Optional[Literal["released", "coming-soon"]] = None
    gameType: Optional[Literal["html5", "video-preview", "download", "ai-powered"]] = None
    engine: Optional[str] = None
    version: Optional[str] = None
    submissionId: Optional[str] = None


# Leaderboard

class SaveScoreRequest(BaseModel):
    # Validated and coerced by hand so that odd types give a 400 or are stringified
    slug: Any = None
    score: Any = None
    name: Any = None


# Game submissions

class ApproveSubmissionRequest(BaseModel):
    adminEmail: Optional[str] = None
    reviewNotes: Optional[str] = None


class RejectSubmissionRequest(BaseModel):
    reviewNotes: Optional[str] = None


class UpdateSubmissionRequest(BaseModel):
    gameTitle: Optional[str] = None
    gameDescription: Optional[str] = None
    gameType: Optional[str] = None
    status: Optional[str] = None
    generatedCode: Optional[str] = None
    reviewNotes: Optional[str] = None


class PromptOverrideRequest(BaseModel):
    # Checked by hand so that a non-string prompt gets the endpoint's own 400 message
    characterId: Any = None
    prompt: Any = None


# Times tables

class SessionRequest(BaseModel):
    mode: Optional[str] = None
    end: bool = False
    sessionId: Optional[str] = None
    userId: Optional[str] = None
    batchSize: Optional[int] = None


class AttemptRequest(BaseModel):
    factId: str
    answer: Any = None
    sessionId: Optional[str] = None
    userId: Optional[str] = None
    latencyMs: Optional[float] = None
    hintUsed: bool = False


class RewardClaimRequest(BaseModel):
    kind: Optional[str] = None


class SessionScoreRequest(BaseModel):
    accuracy: Optional[float] = None
    uniqueMastered: Optional[int] = None
    base: float = 100


class HintRequest(BaseModel):
    a: float
    b: float
    lastWrong: Optional[int] = None
    theme: Optional[str] = None


class ExplainRequest(BaseModel):
    a: float
    b: float
    typed: Optional[str] = None


class WordProblemRequest(BaseModel):
    a: float
    b: float
    theme: Optional[str] = None
    ageBand: Optional[str] = None


class ChallengeRequest(BaseModel):
    userId: Optional[str] = None
    batchSize: Any = None


# Imaginary friends

class ConversationTurn(BaseModel):
    speaker: Literal["player", "character"]
    text: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    characterId: Optional[str] = None
    message: Optional[str] = None
    conversationHistory: List[Any] = Field(default_factory=list)
    requestImage: bool = False
    userId: Optional[str] = None


class CharacterIntroRequest(BaseModel):
    characterId: Optional[str] = None


# Community

class CommunityPostRequest(BaseModel):
    name: Optional[str] = None
    text: Optional[str] = None


# Analytics

class TrackEventRequest(BaseModel):
    event: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


# Auth

class LoginRequest(BaseModel):
    email: Optional[str] = None
    tier: Optional[str] = None


class SimpleLoginRequest(BaseModel):
    username: Optional[str] = None
