"""
Imaginary Friends Service

Character roster, safety filter, prompt building and per-user chat
history for the imaginary friends chat. History is appended as JSONL,
one file per day plus one per character/user pair; on read-only hosts
it is kept in memory instead.
"""
import json
import logging
import os
import re
import threading
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from gamesjr.config import (
    IMAGINARY_FRIENDS_DATA_DIR,
    IMAGINARY_FRIENDS_SESSION_SECONDS,
    IMAGINARY_FRIENDS_STORAGE,
    OPENAI_CHAT_MODEL,
    SERVERLESS,
)
from gamesjr.tables.ai.openai_client import get_client

logger = logging.getLogger(__name__)

UNSAFE_REPLY = "I'd rather talk about something positive. What would you like to imagine or create?"
FALLBACK_REPLY = "I'm having trouble answering right now."
DEFAULT_USER_ID = "default"
PROMPT_HISTORY_TURNS = 8
MAX_COMPLETION_TOKENS = 512

# Callable taking (prompt, max_tokens) and returning the reply text
ChatCaller = Callable[[str, int], str]


@dataclass(frozen=True)
class Character:
    id: str
    name: str
    appearance: str
    personality: str
    speechStyle: str
    interests: List[str] = field(default_factory=list)
    mannerisms: List[str] = field(default_factory=list)
    imageStyle: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


CHARACTERS: Dict[str, Character] = {
    "luna": Character(
        id="luna",
        name="Luna",
        appearance="A wise owl with silver feathers and starry patterns, perched on a crescent moon, "
                   "with glowing eyes full of cosmic wisdom.",
        personality="Wise owl stargazer who loves sharing astronomy knowledge in a thoughtful way. "
                    "Combines scientific facts with wonder and curiosity.",
        speechStyle='Gentle, encouraging, often begins with "Hoo!" and references constellations and space.',
        interests=["telescopes", "moon phases", "constellations", "space missions", "stargazing", "cosmic events"],
        mannerisms=["*hoots softly*", "*turns head thoughtfully*", "*ruffles feathers*"],
        imageStyle="dreamy night sky, soft glowing starlight, gentle cosmic palette",
    ),
    "shadow": Character(
        id="shadow",
        name="Shadow",
        appearance="A sleek black cat with glowing green eyes and mystical shadow patterns in its fur, "
                   "sitting elegantly in moonlight.",
        personality="Playful, mysterious cat who speaks in riddles and has a mischievous sense of humour "
                    "while remaining kind.",
        speechStyle='Curious, sly, sprinkles in cat sounds like "Mrow!" and references sneaking or secret paths.',
        interests=["secrets", "adventure", "mystery", "play", "stealth", "night sky"],
        mannerisms=["*purrs*", "*flicks tail*", "*tilts head*"],
        imageStyle="moonlit alleys, soft neon glows, curious feline poses",
    ),
    "oak": Character(
        id="oak",
        name="Oak",
        appearance="A gentle deer with antlers covered in green moss and tiny flowers, standing peacefully "
                   "in a forest clearing.",
        personality="Ancient deer spirit who speaks slowly and thoughtfully. Loves nature, growth, "
                    "and sharing stories of the forest.",
        speechStyle="Warm, steady, uses nature metaphors, no owl or cat sounds.",
        interests=["nature", "growth", "wisdom", "forest paths", "peaceful moments"],
        mannerisms=["*ears twitch*", "*steps carefully*", "*antlers catch sunlight*"],
        imageStyle="sun-dappled forests, warm green palette, gentle woodland ambience",
    ),
    "spark": Character(
        id="spark",
        name="Spark",
        appearance="A vibrant hummingbird with rainbow feathers that shimmer with creative energy, "
                   "hovering near colourful flowers.",
        personality="Energetic hummingbird who loves creativity and new ideas. Always excited to share "
                    "discoveries and inspire others.",
        speechStyle="Fast, enthusiastic, references colours and art, sprinkles in wing buzzes.",
        interests=["creativity", "art", "inspiration", "innovation", "bright colours"],
        mannerisms=["*wings buzz*", "*darts excitedly*"],
        imageStyle="bold colour splashes, motion blur, bright studio lighting",
    ),
    "coral": Character(
        id="coral",
        name="Coral",
        appearance="A graceful dolphin with shimmering blue-grey skin swimming through coral reefs "
                   "under shafts of sunlight.",
        personality="Vibrant dolphin who loves the ocean depths and knows all about marine life. "
                    "Creates beautiful underwater scenes.",
        speechStyle="Flowing, calming, references tides and sea creatures, uses gentle clicks or whistles.",
        interests=["ocean", "marine life", "exploration", "coral reefs", "waves"],
        mannerisms=["*clicks and whistles*", "*swims in graceful arcs*"],
        imageStyle="clear tropical water, colourful coral, beams of light through the surface",
    ),
    "ember": Character(
        id="ember",
        name="Ember",
        appearance="A cozy fox with warm orange fur that glows like firelight, curled near a crackling fireplace.",
        personality="Warm fox spirit who loves telling stories by the fire, creating cozy scenes, "
                    "and offering comfort.",
        speechStyle="Gentle, comforting, references warmth, stories, soft fox sounds.",
        interests=["stories", "warmth", "fireplace", "comfort", "autumn evenings"],
        mannerisms=["*tail curls around warmly*", "*yips softly*"],
        imageStyle="candlelight ambience, glowing embers, soft blankets and cushions",
    ),
}

UNSAFE_PATTERNS = [
    re.compile(r"violence|hurt|kill|die|death|blood|weapon|gun|knife|fight", re.IGNORECASE),
    re.compile(r"inappropriate|sexual|romantic|dating|kiss|body|private", re.IGNORECASE),
    re.compile(r"drugs|alcohol|smoking|drinking|party|drunk", re.IGNORECASE),
    re.compile(r"scary|horror|nightmare|monster|ghost|demon|evil", re.IGNORECASE),
    re.compile(r"personal.*info|address|phone|email|school|real.*name", re.IGNORECASE),
    re.compile(r"meet.*person|stranger|secret|don't.*tell", re.IGNORECASE),
]


def get_character(character_id: str) -> Character:
    """
    Raises:
        ValueError: If the character is not in the roster
    """
    character = CHARACTERS.get(character_id)
    if character is None:
        raise ValueError(f"Unknown character: {character_id}")
    return character


def is_content_safe(message: str) -> bool:
    return not any(pattern.search(message or "") for pattern in UNSAFE_PATTERNS)


def list_avatars() -> Dict[str, str]:
    """Initial letter per character."""
    return {character_id: character.name[:1] for character_id, character in CHARACTERS.items()}


def normalize_turns(entries: List[Any]) -> List[Dict[str, str]]:
    """Keep only well-formed ``{speaker, text}`` turns."""
    turns = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        speaker = entry.get("speaker")
        text = entry.get("text")
        if speaker in ("player", "character") and isinstance(text, str) and text:
            turns.append({"speaker": speaker, "text": text})
    return turns


def default_role_prompt(character: Character) -> str:
    return f"""You are {character.name}, {character.personality}

APPEARANCE: {character.appearance}
SPEECH STYLE: {character.speechStyle}
INTERESTS: {', '.join(character.interests)}
MANNERISMS: {', '.join(character.mannerisms)}"""


DEFAULT_ROLE_PROMPTS: Dict[str, str] = {
    character_id: default_role_prompt(character) for character_id, character in CHARACTERS.items()
}


def build_prompt(character: Character, conversation: List[Dict[str, str]], user_message: str,
                 role_prompt: Optional[str] = None) -> str:
    """The safety rules and conversation are always appended, even to an edited role prompt."""
    history = "\n".join(
        f"Child: {turn['text']}" if turn["speaker"] == "player" else f"{character.name}: {turn['text']}"
        for turn in conversation[-PROMPT_HISTORY_TURNS:]
    )
    return f"""{role_prompt or default_role_prompt(character)}

SAFETY RULES:
- You talk to a child; keep responses gentle, educational and friendly.
- Avoid scary, violent, private or inappropriate topics. Redirect kindly if asked.
- Never ask for personal data. Encourage imagination and creativity instead.
- Keep responses under 90 words unless the child asks for a longer story.
- Mention your mannerisms occasionally (e.g. {character.mannerisms[0]}).

Conversation so far:
{history or '(no previous messages)'}

Child: {user_message or 'Say hello and ask what they would like to imagine today.'}

{character.name}:"""


def build_intro_prompt(character: Character) -> str:
    return (
        f"You are {character.name}. Provide a single friendly sentence to greet a child. "
        f"Stay in character, include one of your mannerisms ({', '.join(character.mannerisms)}) "
        f"and mention something from your interests ({', '.join(character.interests)})."
    )


def call_openai(prompt: str, max_tokens: int = 180) -> str:
    client = get_client()
    if client is None:
        logger.warning("OPENAI_API_KEY missing, imaginary friends reply with fallback text")
        return FALLBACK_REPLY
    completion = client.chat.completions.create(
        model=OPENAI_CHAT_MODEL,
        messages=[{"role": "system", "content": prompt}],
        max_tokens=min(MAX_COMPLETION_TOKENS, max_tokens),
        temperature=0.6,
    )
    content = completion.choices[0].message.content if completion.choices else None
    return (content or "").strip() or FALLBACK_REPLY


class SessionTracker:
    """Remembers when each user started chatting; sessions last a fixed number of seconds."""

    def __init__(self, session_seconds: int = IMAGINARY_FRIENDS_SESSION_SECONDS):
        self.session_seconds = session_seconds
        self._starts: Dict[str, float] = {}
        self._lock = threading.Lock()

    def info(self, user_id: str, now: Optional[float] = None) -> Dict[str, int]:
        now = time.time() if now is None else now
        with self._lock:
            start = self._starts.setdefault(user_id, now)
        elapsed = int(now - start)
        return {
            "remainingTime": max(0, self.session_seconds - elapsed),
            # Image generation is not offered
            "imagesRemaining": 0,
            "dailyUsageSeconds": elapsed,
        }

    def reset(self) -> None:
        with self._lock:
            self._starts.clear()


def storage_mode() -> str:
    if IMAGINARY_FRIENDS_STORAGE in ("file", "memory"):
        return IMAGINARY_FRIENDS_STORAGE
    return "memory" if SERVERLESS else "file"


def _safe_name(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "_", value) or DEFAULT_USER_ID


class ConversationLog:
    """Append-only chat history per character/user pair."""

    def __init__(self, data_dir: str = IMAGINARY_FRIENDS_DATA_DIR, mode: Optional[str] = None):
        self.data_dir = data_dir
        self.mode = mode or storage_mode()
        self._memory: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    @property
    def conversations_dir(self) -> str:
        return os.path.join(self.data_dir, "conversations")

    def _user_file(self, character_id: str, user_id: str) -> str:
        return os.path.join(self.conversations_dir, f"{_safe_name(character_id)}_{_safe_name(user_id)}.jsonl")

    def append(self, character_id: str, user_id: str, user_message: str, response: str) -> Dict[str, Any]:
        entry = {
            "id": str(uuid.uuid4()),
            "characterId": character_id,
            "userId": user_id,
            "userMessage": user_message,
            "response": response,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self.mode == "memory":
            with self._lock:
                self._memory.setdefault(f"{character_id}:{user_id}", []).append(entry)
            return entry

        try:
            os.makedirs(self.conversations_dir, exist_ok=True)
            line = json.dumps(entry) + "\n"
            today = entry["timestamp"][:10]
            with open(os.path.join(self.conversations_dir, f"conversations_{today}.jsonl"), "a", encoding="utf-8") as f:
                f.write(line)
            with open(self._user_file(character_id, user_id), "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.warning(f"Failed to save conversation: {e}")
        return entry

    def _entries(self, character_id: str, user_id: str) -> List[Dict[str, Any]]:
        if self.mode == "memory":
            with self._lock:
                return list(self._memory.get(f"{character_id}:{user_id}", []))

        path = self._user_file(character_id, user_id)
        if not os.path.exists(path):
            return []
        entries = []
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.debug(f"Skipping malformed history line in {path}")
        return entries

    def recent_turns(self, character_id: str, user_id: str, limit: int = 20) -> List[Dict[str, str]]:
        """Last ``limit`` turns, oldest first."""
        turns = []
        for entry in self._entries(character_id, user_id):
            if entry.get("userMessage"):
                turns.append({"speaker": "player", "text": entry["userMessage"]})
            if entry.get("response"):
                turns.append({"speaker": "character", "text": entry["response"]})
        return turns[-limit:] if limit > 0 else []

    def clear(self, character_id: str, user_id: str) -> None:
        if self.mode == "memory":
            with self._lock:
                self._memory.pop(f"{character_id}:{user_id}", None)
            return
        path = self._user_file(character_id, user_id)
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Cleared history for {character_id}/{user_id}")


class PromptOverrides:
    """
    Admin edits to the character role prompts, kept as one JSON object
    of character id to prompt text. Characters without an edit use
    their default role prompt.
    """

    FILE_NAME = "prompt-overrides.json"

    def __init__(self, data_dir: str = IMAGINARY_FRIENDS_DATA_DIR, mode: Optional[str] = None):
        self.data_dir = data_dir
        self.mode = mode or storage_mode()
        self._memory: Dict[str, str] = {}
        self._lock = threading.Lock()

    @property
    def path(self) -> str:
        return os.path.join(self.data_dir, self.FILE_NAME)

    def load(self) -> Dict[str, str]:
        """Stored overrides; an unreadable file counts as no overrides."""
        if self.mode == "memory":
            with self._lock:
                return dict(self._memory)
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read prompt overrides: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if isinstance(value, str)}

    def merged(self) -> Dict[str, str]:
        return {**DEFAULT_ROLE_PROMPTS, **self.load()}

    def role_prompt(self, character: Character) -> str:
        return self.load().get(character.id) or default_role_prompt(character)

    def set(self, character_id: str, prompt: str) -> Dict[str, str]:
        """
        Store one override and return the merged prompts.

        Raises:
            OSError: If the overrides file cannot be written
        """
        if self.mode == "memory":
            with self._lock:
                self._memory[character_id] = prompt
            return self.merged()

        overrides = self.load()
        overrides[character_id] = prompt
        os.makedirs(self.data_dir, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(overrides, f, indent=2)
        logger.info(f"Saved prompt override for {character_id}")
        return {**DEFAULT_ROLE_PROMPTS, **overrides}


class ImaginaryFriendsService:
    def __init__(self, log: Optional[ConversationLog] = None, sessions: Optional[SessionTracker] = None,
                 call_chat: Optional[ChatCaller] = None, overrides: Optional[PromptOverrides] = None):
        self.log = log or ConversationLog()
        self.sessions = sessions or SessionTracker()
        self.call_chat = call_chat or call_openai
        self.overrides = overrides or PromptOverrides(self.log.data_dir, self.log.mode)

    def character_intro(self, character_id: str) -> str:
        character = get_character(character_id)
        text = self.call_chat(build_intro_prompt(character), 120)
        return " ".join(text.split())

    def chat(self, character_id: str, user_message: str, history: List[Any],
             user_id: str = DEFAULT_USER_ID) -> Dict[str, Any]:
        """
        Reply in character. Stored history is prepended to the client's turns.

        Raises:
            ValueError: If the character is unknown
        """
        character = get_character(character_id)
        if not is_content_safe(user_message):
            logger.info(f"Unsafe message redirected for {character_id}/{user_id}")
            return {"response": UNSAFE_REPLY, "imageUrl": None, "sessionInfo": self.sessions.info(user_id)}

        stored = self.log.recent_turns(character_id, user_id, 20)
        conversation = normalize_turns(stored + list(history or []))
        role_prompt = self.overrides.role_prompt(character)
        response = self.call_chat(build_prompt(character, conversation, user_message, role_prompt), 160)
        self.log.append(character_id, user_id, user_message, response)

        return {"response": response, "imageUrl": None, "sessionInfo": self.sessions.info(user_id)}

    def history(self, character_id: str, user_id: str, limit: int = 20) -> List[Dict[str, str]]:
        return self.log.recent_turns(character_id, user_id, limit)

    def clear_history(self, character_id: str, user_id: str) -> None:
        self.log.clear(character_id, user_id)

    def session_info(self, user_id: str) -> Dict[str, int]:
        return self.sessions.info(user_id)


_service: Optional[ImaginaryFriendsService] = None


def get_service() -> ImaginaryFriendsService:
    global _service
    if _service is None:
        _service = ImaginaryFriendsService()
    return _service


def set_service(service: Optional[ImaginaryFriendsService]) -> None:
    global _service
    _service = service
