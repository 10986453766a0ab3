import os
from dotenv import load_dotenv

load_dotenv()

GROQ_API_KEY = os.getenv("GROQ_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "llama-3.3-70b-versatile")
ASSEMBLYAI_API_KEY = os.getenv("ASSEMBLYAI_API_KEY")

PORT = int(os.getenv("PORT", "3000"))
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
FRONTEND_URL = os.getenv("FRONTEND_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
STATIC_DIR = os.getenv("STATIC_DIR", "static")

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "25"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))
RATE_LIMIT_WINDOW_SECONDS = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

# Wall-clock ceiling for a whole /process-audio request
REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "300"))

# Worker threads for blocking AssemblyAI / Groq calls
UPSTREAM_WORKERS = int(os.getenv("UPSTREAM_WORKERS", "8"))

MEETING_LANGUAGE = os.getenv("MEETING_LANGUAGE", "Vietnamese")
TRANSCRIPT_LANGUAGE_CODE = os.getenv("TRANSCRIPT_LANGUAGE_CODE", "vi")
MAX_OUTPUT_TOKENS = int(os.getenv("MAX_OUTPUT_TOKENS", "8192"))

REQUIRED_KEYS = ("GROQ_API_KEY", "ASSEMBLYAI_API_KEY")


def is_production() -> bool:
    return ENVIRONMENT == "production"


def validate_config():
    """
    Fail fast when a required API credential is missing.

    Called once on application startup; raising here aborts the server
    instead of failing every request later.
    """
    missing = [name for name in REQUIRED_KEYS if not os.getenv(name)]
    if missing:
        raise RuntimeError(
            f"Missing required environment variable(s): {', '.join(missing)}"
        )
