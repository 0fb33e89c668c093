# callwave/core/config.py
"""
Application configuration - loads from environment variables.
Single source of truth for all settings.
"""
import os
from typing import List, Optional
from urllib.parse import quote_plus
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables FIRST
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env_path = BASE_DIR / '.env'
load_dotenv(dotenv_path=env_path)

# ────────────────────────────────────────────
# Voice API (ElevenLabs ConvAI)
# ────────────────────────────────────────────
ELEVENLABS_API_KEY: str = os.getenv("ELEVENLABS_API_KEY", "")
ELEVENLABS_BASE_URL: str = os.getenv("ELEVENLABS_BASE_URL", "https://api.elevenlabs.io").rstrip("/")
ELEVENLABS_WEBHOOK_SECRET: str = os.getenv("ELEVENLABS_WEBHOOK_SECRET", "")
VOICE_API_TIMEOUT: float = float(os.getenv("VOICE_API_TIMEOUT", "30"))

# ────────────────────────────────────────────
# Batch polling
# ────────────────────────────────────────────
POLL_INTERVAL_SECONDS: float = float(os.getenv("POLL_INTERVAL_SECONDS", "10"))
MAX_POLLS: int = int(os.getenv("MAX_POLLS", "100"))

# ────────────────────────────────────────────
# Pharmacy bot (WhatsApp via YCloud + Gemini)
# ────────────────────────────────────────────
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
GEMINI_BASE_URL: str = os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com").rstrip("/")
YCLOUD_API_KEY: str = os.getenv("YCLOUD_API_KEY", "")
YCLOUD_BASE_URL: str = os.getenv("YCLOUD_BASE_URL", "https://api.ycloud.com").rstrip("/")
DEFAULT_PHARMACY_USER_ID: Optional[str] = os.getenv("DEFAULT_PHARMACY_USER_ID")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# ────────────────────────────────────────────
# Multi-tenant
# ────────────────────────────────────────────
DEFAULT_USER_ID: str = os.getenv("DEFAULT_USER_ID", "default")

# ────────────────────────────────────────────
# Database Configuration
# ────────────────────────────────────────────
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "callwave_db")
DATABASE_URL = os.getenv("DATABASE_URL")

# Build DATABASE_URL
if not DATABASE_URL:
    encoded_password = quote_plus(DB_PASSWORD)
    DATABASE_URL = f"postgresql://{DB_USER}:{encoded_password}@{DB_HOST}:{DB_PORT}/{DB_NAME}"

# ────────────────────────────────────────────
# JWT Configuration
# ────────────────────────────────────────────
JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

if not JWT_SECRET_KEY:
    import warnings
    warnings.warn("JWT_SECRET_KEY not set!")

# ────────────────────────────────────────────
# CORS
# ────────────────────────────────────────────
ALLOWED_ORIGINS: List[str] = [
    origin.strip()
    for origin in os.getenv(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]

