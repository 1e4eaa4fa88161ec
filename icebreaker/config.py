import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./icebreaker.db")

# Supabase-issued access tokens (HS256)
SUPABASE_JWT_SECRET = os.getenv("SUPABASE_JWT_SECRET")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")

# Security - used to encrypt third-party OAuth tokens at rest
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Frontend base URL for redirects
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")

# Google Calendar OAuth Configuration
# OAuth flow: Google → Frontend → Frontend sends code to Backend API
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET")
GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", f"{FRONTEND_URL}/google-calendar/callback")

# AI gateway (OpenAI-compatible chat completions endpoint)
AI_GATEWAY_URL = os.getenv("AI_GATEWAY_URL", "https://ai.gateway.lovable.dev/v1/chat/completions")
AI_GATEWAY_API_KEY = os.getenv("AI_GATEWAY_API_KEY") or os.getenv("LOVABLE_API_KEY")
AI_GATEWAY_MODEL = os.getenv("AI_GATEWAY_MODEL", "google/gemini-2.5-flash")
AI_GATEWAY_TIMEOUT_SECONDS = float(os.getenv("AI_GATEWAY_TIMEOUT_SECONDS", "10"))

# Meeting event notifications are POSTed here when set
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")

# Scheduling rules
SCHEDULING_TIMEZONE = os.getenv("SCHEDULING_TIMEZONE", "UTC")
SLOT_HORIZON_DAYS = int(os.getenv("SLOT_HORIZON_DAYS", "14"))
SLOT_LENGTH_MINUTES = int(os.getenv("SLOT_LENGTH_MINUTES", "60"))
MAX_SLOTS = int(os.getenv("MAX_SLOTS", "20"))
PENDING_EXPIRY_DAYS = int(os.getenv("PENDING_EXPIRY_DAYS", "4"))
CANCELLATION_CUTOFF_HOURS = int(os.getenv("CANCELLATION_CUTOFF_HOURS", "48"))
CALENDAR_IMPORT_DAYS = int(os.getenv("CALENDAR_IMPORT_DAYS", "30"))

# CORS
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]

# API server bind address (python -m icebreaker / icebreaker-api)
HOST = os.getenv("HOST", "0.0.0.0")  # noqa: S104 - container bind
PORT = int(os.getenv("PORT", "8000"))
WEB_CONCURRENCY = int(os.getenv("WEB_CONCURRENCY", "1"))
