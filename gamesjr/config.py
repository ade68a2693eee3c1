import os
from dotenv import load_dotenv

# Load environment-specific configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

if ENVIRONMENT == "development":
    load_dotenv(".env.development")
elif ENVIRONMENT == "production":
    load_dotenv(".env.production")
else:
    load_dotenv()  # Fallback to default .env

# Database settings (PostgreSQL in production, SQLite locally)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gamesjr.db")

# Remote KV store (Upstash-compatible REST API)
KV_REST_API_URL = os.getenv("KV_REST_API_URL", "")
KV_REST_API_TOKEN = os.getenv("KV_REST_API_TOKEN", "")
KV_TIMEOUT_SECONDS = float(os.getenv("KV_TIMEOUT_SECONDS", "10"))

# OpenAI settings
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL") or None

# Tables AI settings
AI_ENABLED = os.getenv("AI_ENABLED", "false").lower() == "true"
AI_SAFE_MODE = os.getenv("AI_SAFE_MODE", "true").lower() != "false"
AI_MODEL_HINTS = os.getenv("AI_MODEL_HINTS", "gpt-4o-mini")
AI_MODEL_CONTENT = os.getenv("AI_MODEL_CONTENT", AI_MODEL_HINTS)
AI_MODEL_CHALLENGE = os.getenv("AI_MODEL_CHALLENGE", AI_MODEL_CONTENT)
AI_CACHE_TTL_SECONDS = int(os.getenv("AI_CACHE_TTL_SECONDS", "604800"))  # 7 days

# Imaginary friends settings
OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
IMAGINARY_FRIENDS_SESSION_SECONDS = int(os.getenv("IMAGINARY_FRIENDS_SESSION_SECONDS", "900"))
IMAGINARY_FRIENDS_DATA_DIR = os.getenv("IMAGINARY_FRIENDS_DATA_DIR", os.path.join("data", "imaginary-friends"))
IMAGINARY_FRIENDS_STORAGE = os.getenv("IMAGINARY_FRIENDS_STORAGE", "auto").lower()

# Game catalog and deployment
GAMES_CATALOG_PATH = os.getenv(
    "GAMES_CATALOG_PATH",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data", "games.json"),
)
DEMOS_DIR = os.getenv("DEMOS_DIR", os.path.join("public", "demos"))
SERVERLESS = os.getenv("SERVERLESS", "false").lower() == "true" or os.getenv("VERCEL") == "1"

# Auth cookies
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"

# Debug settings
DEBUG_MODE = os.getenv("DEBUG_MODE", "False").lower() == "true"
