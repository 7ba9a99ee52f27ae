import os
import secrets
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

PLACEHOLDER_KEYS = {"", "MY_GEMINI_API_KEY", "MY_OPENAI_API_KEY"}


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_key(*names: str) -> Optional[str]:
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value not in PLACEHOLDER_KEYS:
            return value
    return None


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./smartdesk.db"
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_expire_days: int = 7
    cookie_name: str = "token"
    cookie_secure: bool = True
    cookie_samesite: Literal["lax", "strict", "none"] = "none"

    llm_api_key: Optional[str] = None
    llm_base_url: Optional[str] = "https://generativelanguage.googleapis.com/v1beta/openai/"
    llm_model: str = "gemini-2.5-flash"

    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_url: str = "http://localhost:8000"
    cors_origins: List[str] = []

    google_client_id: Optional[str] = None
    slack_client_id: Optional[str] = None

    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    admin_name: str = "Admin"
    seed_demo_data: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment and an optional .env file."""
        load_dotenv()

        jwt_secret = os.getenv("JWT_SECRET")
        if not jwt_secret:
            print("⚠️  JWT_SECRET not set. Using a random secret; sessions will not survive a restart.")
            jwt_secret = secrets.token_urlsafe(48)

        llm_api_key = _env_key("LLM_API_KEY", "GEMINI_API_KEY", "OPENAI_API_KEY")
        if not llm_api_key:
            print("⚠️  No LLM API key found. AI endpoints will report the service as unavailable.")

        origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

        values = dict(
            jwt_secret=jwt_secret,
            jwt_expire_days=int(os.getenv("JWT_EXPIRE_DAYS", "7")),
            cookie_secure=_env_bool("COOKIE_SECURE", True),
            cookie_samesite=os.getenv("COOKIE_SAMESITE", "none").lower(),
            llm_api_key=llm_api_key,
            app_host=os.getenv("APP_HOST", "0.0.0.0"),
            app_port=int(os.getenv("APP_PORT", "8000")),
            cors_origins=origins,
            google_client_id=os.getenv("GOOGLE_CLIENT_ID") or None,
            slack_client_id=os.getenv("SLACK_CLIENT_ID") or None,
            admin_email=(os.getenv("ADMIN_EMAIL") or "").strip().lower() or None,
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
        )
        # Only override the defaults that are actually configured
        for key, env_name in (
            ("database_url", "DATABASE_URL"),
            ("llm_base_url", "LLM_BASE_URL"),
            ("llm_model", "LLM_MODEL"),
            ("app_url", "APP_URL"),
            ("admin_name", "ADMIN_NAME"),
        ):
            if os.getenv(env_name):
                values[key] = os.getenv(env_name)
        return cls(**values)
