import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env at the project root
BASE_DIR = Path(__file__).resolve().parents[1]
load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    LIBLIB_ACCESS_KEY: str = os.getenv("LIBLIB_ACCESS_KEY", "")
    LIBLIB_SECRET_KEY: str = os.getenv("LIBLIB_SECRET_KEY", "")

    LIBLIB_BASE_URL: str = os.getenv("LIBLIB_BASE_URL", "https://openapi.liblibai.cloud")
    LIBLIB_TEXT2IMG_ENDPOINT: str = os.getenv(
        "LIBLIB_TEXT2IMG_ENDPOINT", "/api/generate/webui/text2img/ultra"
    )
    LIBLIB_STATUS_ENDPOINT: str = os.getenv("LIBLIB_STATUS_ENDPOINT", "/api/generate/webui/status")

    SERVER_HOST: str = os.getenv("SERVER_HOST", "127.0.0.1")
    SERVER_PORT: int = int(os.getenv("SERVER_PORT", "3001"))
    STATIC_DIR: str = os.getenv("STATIC_DIR", str(BASE_DIR / "public"))

    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))  # seconds

    PROXY_URL: str = os.getenv("PROXY_URL", "http://127.0.0.1:3001/api")
    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "1.0"))  # seconds
    POLL_TIMEOUT: float = float(os.getenv("POLL_TIMEOUT", "300"))
    POLL_MAX_ERRORS: int = int(os.getenv("POLL_MAX_ERRORS", "5"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = _env_bool("LOG_JSON")

settings = Settings()
