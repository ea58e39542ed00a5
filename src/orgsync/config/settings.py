from dataclasses import dataclass
import os
from dotenv import load_dotenv


load_dotenv()


def _split_csv(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _str_to_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "y", "on")


@dataclass(frozen=True)
class Settings:
    firebase_api_key: str = os.getenv("FIREBASE_API_KEY", "")
    firebase_project_id: str = os.getenv("FIREBASE_PROJECT_ID", "")
    identity_toolkit_url: str = os.getenv(
        "IDENTITY_TOOLKIT_URL", "https://identitytoolkit.googleapis.com/v1"
    )

    firestore_users_collection: str = os.getenv("FIRESTORE_USERS_COLLECTION", "users")
    firestore_connection_check: bool = _str_to_bool(os.getenv("FIRESTORE_CONNECTION_CHECK", "false"))

    local_store_path: str = os.getenv("LOCAL_STORE_PATH", "orgsync.db")
    request_timeout_seconds: float = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15"))

    sync_interval_seconds: float = float(os.getenv("SYNC_INTERVAL_SECONDS", "60"))
    initial_sync_delay_seconds: float = float(os.getenv("INITIAL_SYNC_DELAY_SECONDS", "3"))
    visibility_sync_delay_seconds: float = float(os.getenv("VISIBILITY_SYNC_DELAY_SECONDS", "1"))
    fallback_login_delay_seconds: float = float(os.getenv("FALLBACK_LOGIN_DELAY_SECONDS", "2"))
    organization_prompt_delay_seconds: float = float(os.getenv("ORGANIZATION_PROMPT_DELAY_SECONDS", "0.5"))

    provider_ready_attempts: int = int(os.getenv("PROVIDER_READY_ATTEMPTS", "10"))
    provider_ready_initial_delay_seconds: float = float(os.getenv("PROVIDER_READY_INITIAL_DELAY_SECONDS", "0.1"))
    provider_ready_max_delay_seconds: float = float(os.getenv("PROVIDER_READY_MAX_DELAY_SECONDS", "2"))

    cors_allowed_origins: tuple[str, ...] = _split_csv(
        os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173")
    )
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8080"))


settings = Settings()
