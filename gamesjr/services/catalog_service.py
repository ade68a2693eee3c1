"""
Game Catalog Service

Loads the game catalog from a JSON file, validates every entry and caches
the result. Deployments of approved submissions upsert entries back into
the same file.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from gamesjr.config import GAMES_CATALOG_PATH
from gamesjr.models.schemas import Game

logger = logging.getLogger(__name__)


class GameCatalog:
    """Cached, validated view of the games JSON file."""

    _games: Optional[List[Game]] = None
    _path: Path = Path(GAMES_CATALOG_PATH)

    @classmethod
    def load(cls) -> List[Game]:
        """
        Load and validate the catalog.

        Raises:
            ValueError: If an entry misses its slug/title or has bad field types
        """
        if cls._games is None:
            with open(cls._path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            games = []
            for index, entry in enumerate(raw):
                try:
                    games.append(Game.model_validate(entry))
                except ValidationError as e:
                    raise ValueError(f"Game at index {index}: {e}") from e
            cls._games = games
            logger.info(f"Loaded {len(games)} games from {cls._path}")
        return cls._games

    @classmethod
    def reset(cls, path: Optional[Path] = None) -> None:
        """Drop the cache (and optionally point at another file)."""
        cls._games = None
        if path is not None:
            cls._path = Path(path)

    @classmethod
    def get_games(cls) -> List[Game]:
        return list(cls.load())

    @classmethod
    def get_game_by_slug(cls, slug: str) -> Optional[Game]:
        return next((game for game in cls.load() if game.slug == slug), None)

    @classmethod
    def get_game_paths(cls) -> List[Dict[str, str]]:
        return [{"slug": game.slug} for game in cls.load()]

    @classmethod
    def upsert_game(cls, entry: Dict[str, Any]) -> Game:
        """Insert or replace an entry by slug and write the file back."""
        game = Game.model_validate(entry)
        with open(cls._path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        index = next((i for i, item in enumerate(raw) if item.get("slug") == game.slug), None)
        serialised = game.model_dump(exclude_none=True)
        if index is None:
            raw.append(serialised)
        else:
            raw[index] = serialised

        with open(cls._path, "w", encoding="utf-8") as f:
            json.dump(raw, f, indent=2, ensure_ascii=False)
        cls._games = None
        logger.info(f"Catalog updated with: {game.slug}")
        return game
