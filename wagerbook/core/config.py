from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://127.0.0.1:5500"]


def _parse_list(v: Any, default: List[str]) -> List[str]:
    try:
        if v is None or v == "":
            return default.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return default.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or default.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or default.copy()
    except ValueError:
        return default.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")

    # Token signing. SECRET_KEY signs new tokens; PREVIOUS_SECRET_KEYS still verify.
    secret_key: str = Field(default="change-me-in-production-min-32-chars")
    previous_secret_keys_raw: str = Field(default="", alias="PREVIOUS_SECRET_KEYS")
    token_max_age_seconds: int = Field(default=24 * 3600, alias="TOKEN_MAX_AGE_SECONDS")
    bcrypt_rounds: int = Field(default=10, alias="BCRYPT_ROUNDS")

    # MongoDB (transactions need a replica set or mongos)
    mongodb_uri: str = Field(default="mongodb://localhost:27017/?replicaSet=rs0", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="wagerbook", alias="MONGODB_DB_NAME")
    mongodb_timeout_ms: int = Field(default=5000, alias="MONGODB_TIMEOUT_MS")
    db_connect_retries: int = Field(default=5, alias="DB_CONNECT_RETRIES")
    db_connect_retry_delay_seconds: float = Field(default=5.0, alias="DB_CONNECT_RETRY_DELAY_SECONDS")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://127.0.0.1:5500",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_list(getattr(self, "cors_origins_raw", None), _DEFAULT_CORS)

    @property
    def verification_keys(self) -> List[str]:
        """Keys accepted when verifying tokens, oldest first; the signing key is last."""
        previous = _parse_list(self.previous_secret_keys_raw, [])
        return previous + [self.secret_key]

    # Wallet
    initial_balance: int = Field(default=1000, alias="INITIAL_BALANCE")
    allow_negative_balance: bool = Field(default=False, alias="ALLOW_NEGATIVE_BALANCE")


@lru_cache
def get_settings() -> Settings:
    return Settings()
